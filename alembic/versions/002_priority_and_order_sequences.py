"""Order priority and per-date order number counters.

Revision ID: 002
Revises: 001
Create Date: 2026-10-20
"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "orders",
        sa.Column("priority", sa.String(10), nullable=False, server_default="medium"),
    )
    op.drop_index("idx_orders_queue", table_name="orders")
    op.create_index(
        "idx_orders_queue", "orders", ["status", "zone", "provider_type", "priority", "created_at"]
    )

    op.create_table(
        "order_sequences",
        sa.Column("delivery_date", sa.Date, primary_key=True),
        sa.Column("last_value", sa.Integer, nullable=False),
    )
    # Continue after the highest number already issued for each date (MS-YYYYMMDD-NNNN).
    op.execute(
        """
        INSERT INTO order_sequences (delivery_date, last_value)
        SELECT to_date(substring(order_number from 4 for 8), 'YYYYMMDD'),
               max(substring(order_number from 13)::integer)
        FROM orders
        WHERE order_number LIKE 'MS-________-%'
        GROUP BY 1
        """
    )


def downgrade() -> None:
    op.drop_table("order_sequences")
    op.drop_index("idx_orders_queue", table_name="orders")
    op.create_index("idx_orders_queue", "orders", ["status", "zone", "provider_type", "created_at"])
    op.drop_column("orders", "priority")
