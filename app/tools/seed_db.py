"""Seed the provider registry and order queue from CSV files.

Usage:
    python -m app.tools.seed_db
    python -m app.tools.seed_db --data-dir data
    python -m app.tools.seed_db --drop  # drop existing data first
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from pathlib import Path

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.adapters.csv_loader.loader import load_orders, load_providers
from app.adapters.persistence.database import async_session_factory
from app.adapters.persistence.models import (
    AssignmentModel,
    OrderModel,
    OrderSequenceModel,
    OrderStatusHistoryModel,
    ProviderModel,
)
from app.application.use_cases.intake_order import OrderDraft, SubmitOrderUseCase
from app.application.use_cases.manage_provider import ManageProviderUseCase
from app.config import configure_logging
from app.domain.entities.provider import Provider
from app.domain.errors import InvalidOrder, InvalidProvider
from app.domain.value_objects.enums import ProviderType
from app.infrastructure.api.dependencies import Stores, get_notifier, sql_stores

logger = logging.getLogger(__name__)


def _parse_datetime(raw: str | None) -> datetime | None:
    """Parse ISO-8601 or 'YYYY-MM-DD HH:MM' timestamps."""
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.strip())
    except ValueError:
        pass
    for fmt in ("%d.%m.%Y %H:%M", "%d/%m/%Y %H:%M", "%Y/%m/%d %H:%M"):
        try:
            return datetime.strptime(raw.strip(), fmt)
        except ValueError:
            continue
    logger.warning("Could not parse timestamp: %s", raw)
    return None


async def _drop_data(session: AsyncSession) -> None:
    """Delete all data in correct order (respecting FK constraints)."""
    for model in [AssignmentModel, OrderStatusHistoryModel, OrderModel, OrderSequenceModel, ProviderModel]:
        await session.execute(delete(model))
    await session.commit()
    logger.info("Dropped all existing data")


async def ingest(stores: Stores, data_dir: Path) -> dict[str, int]:
    """Load providers and queued orders from *data_dir* through the ports.

    Rows already present (same provider name and zone, same user, zone and
    delivery start) are skipped, so ingesting twice is harmless. Orders are
    queued unassigned; the sweep matches them.
    """
    counts = {"providers": 0, "orders": 0, "skipped": 0}

    provider_csv = _find_csv(data_dir, ["providers", "vendors", "chefs"])
    order_csv = _find_csv(data_dir, ["orders"])
    if not provider_csv:
        raise FileNotFoundError(
            f"No providers CSV found in {data_dir}. Expected something like providers.csv"
        )

    # 1. Providers
    registry_uc = ManageProviderUseCase(stores.providers)
    known = {(p.name.lower(), p.zone.lower()) for p in await stores.providers.get_all()}
    for pd in load_providers(provider_csv):
        key = (pd["name"].lower(), pd["zone"].lower())
        if key in known:
            logger.debug("Provider '%s' already exists, skipping", pd["name"])
            continue
        try:
            provider = Provider(id=None, **{**pd, "provider_type": ProviderType(pd["provider_type"])})
            await registry_uc.register(provider)
        except ValueError:
            logger.warning("Provider '%s': unknown type '%s', skipping", pd["name"], pd["provider_type"])
            counts["skipped"] += 1
            continue
        except InvalidProvider as e:
            logger.warning("Provider '%s' rejected: %s", pd["name"], e)
            counts["skipped"] += 1
            continue
        known.add(key)
        counts["providers"] += 1

    # 2. Orders (if CSV exists)
    if order_csv:
        intake = SubmitOrderUseCase(stores.orders, auto_assign=False)
        seen = {
            (o.user_id, o.zone, o.delivery_window.start.replace(tzinfo=None))
            for o in await stores.orders.get_all()
        }
        for od in load_orders(order_csv):
            start = _parse_datetime(od["delivery_start"])
            end = _parse_datetime(od["delivery_end"])
            if start is not None and (od["user_id"], od["zone"], start.replace(tzinfo=None)) in seen:
                logger.debug("Order for '%s' at %s already exists, skipping", od["user_id"], start)
                continue
            try:
                result = await intake.execute(
                    OrderDraft(**{**od, "delivery_start": start, "delivery_end": end})
                )
            except InvalidOrder as e:
                logger.warning("Order row for user '%s' rejected: %s", od["user_id"], e)
                counts["skipped"] += 1
                continue
            seen.add((result.order.user_id, result.order.zone, start.replace(tzinfo=None)))
            counts["orders"] += 1
    else:
        logger.info("No orders CSV found, skipping order import")

    await stores.commit()
    logger.info(
        "Ingest complete: %d providers, %d orders, %d rows skipped",
        counts["providers"], counts["orders"], counts["skipped"],
    )
    return counts


async def seed(data_dir: Path, drop: bool = False) -> dict[str, int]:
    """Seed the SQL database. Returns counts of seeded records."""
    async with async_session_factory() as session:
        if drop:
            await _drop_data(session)
        return await ingest(sql_stores(session, get_notifier()), data_dir)


def _find_csv(data_dir: Path, name_hints: list[str]) -> Path | None:
    """Find a CSV file matching any of the name hints."""
    for f in sorted(data_dir.glob("*.csv")):
        fname_lower = f.stem.lower()
        for hint in name_hints:
            if hint in fname_lower:
                logger.info("Found CSV: %s (matched hint '%s')", f.name, hint)
                return f
    return None


async def _verify_data() -> None:
    """Print sanity checks after seeding."""
    async with async_session_factory() as session:
        providers = (await session.execute(select(ProviderModel))).scalars().all()
        by_status = dict(
            (await session.execute(
                select(OrderModel.status, func.count(OrderModel.id)).group_by(OrderModel.status)
            )).all()
        )

        print(f"\n{'='*50}")
        print("SEED VERIFICATION")
        print(f"{'='*50}")
        print(f"Providers: {len(providers)}")
        print(f"Available providers: {sum(1 for p in providers if p.is_available)}/{len(providers)}")

        zones: dict[str, int] = {}
        for p in providers:
            zones[p.zone] = zones.get(p.zone, 0) + (p.max_capacity - p.current_load)
        print(f"Spare capacity by zone: {zones}")
        print(f"Orders by status: {by_status}")
        print(f"{'='*50}\n")


async def _run(data_dir: Path, drop: bool, verify_only: bool) -> None:
    if not verify_only:
        await seed(data_dir, drop=drop)
    await _verify_data()


def main():
    configure_logging()
    parser = argparse.ArgumentParser(
        description="Load providers and queued orders from CSV files into the database",
    )
    parser.add_argument("--data-dir", default="data", help="folder holding providers.csv / orders.csv")
    parser.add_argument("--drop", action="store_true", help="delete providers, orders and assignments first")
    parser.add_argument("--verify-only", action="store_true", help="print the summary without loading anything")
    args = parser.parse_args()

    data_dir = Path(args.data_dir)
    if not (args.verify_only or data_dir.is_dir()):
        logger.error("No data directory at %s", data_dir)
        sys.exit(1)
    asyncio.run(_run(data_dir, args.drop, args.verify_only))


if __name__ == "__main__":
    main()
