"""SQLAlchemy ORM models — maps to PostgreSQL tables."""

from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.adapters.persistence.database import Base


class ProviderModel(Base):
    __tablename__ = "providers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    provider_type: Mapped[str] = mapped_column(String(20), nullable=False)
    zone: Mapped[str] = mapped_column(String(100), nullable=False)
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    performance_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    specialties: Mapped[list[str]] = mapped_column(ARRAY(String(50)), nullable=False, default=list)
    current_load: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    assignments: Mapped[list["AssignmentModel"]] = relationship(back_populates="provider")

    __table_args__ = (
        CheckConstraint(
            "current_load >= 0 AND current_load <= max_capacity",
            name="ck_providers_load_within_capacity",
        ),
        Index("idx_providers_match", "zone", "provider_type", "is_available"),
    )


class OrderModel(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    provider_type: Mapped[str] = mapped_column(String(20), nullable=False)
    zone: Mapped[str] = mapped_column(String(100), nullable=False)
    meal_slot: Mapped[str] = mapped_column(String(20), nullable=False, default="lunch")
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    delivery_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    delivery_end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="unassigned")
    match_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_match_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    history: Mapped[list["OrderStatusHistoryModel"]] = relationship(
        back_populates="order",
        order_by="OrderStatusHistoryModel.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    assignments: Mapped[list["AssignmentModel"]] = relationship(back_populates="order")

    __table_args__ = (
        Index("idx_orders_queue", "status", "zone", "provider_type", "priority", "created_at"),
        Index("idx_orders_user", "user_id"),
    )


class OrderStatusHistoryModel(Base):
    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    changed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    order: Mapped["OrderModel"] = relationship(back_populates="history")

    __table_args__ = (Index("idx_order_history_order", "order_id"),)


class AssignmentModel(Base):
    __tablename__ = "assignments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    provider_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("providers.id"), nullable=False
    )
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    manual: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supersedes: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("assignments.id"), nullable=True
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    voided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    void_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    order: Mapped["OrderModel"] = relationship(back_populates="assignments")
    provider: Mapped["ProviderModel"] = relationship(back_populates="assignments")

    __table_args__ = (
        # At most one active assignment per order.
        Index(
            "uq_assignments_active_order",
            "order_id",
            unique=True,
            postgresql_where=text("voided_at IS NULL"),
        ),
        Index("idx_assignments_provider", "provider_id"),
    )


class OrderSequenceModel(Base):
    """Last order number handed out per delivery date."""

    __tablename__ = "order_sequences"

    delivery_date: Mapped[date] = mapped_column(Date, primary_key=True)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False)
