"""CSV loader — reads and normalizes provider and order data files."""

from __future__ import annotations

import csv
import logging
from pathlib import Path

from app.adapters.csv_loader.normalizer import (
    clean_string,
    normalize_column_name,
    parse_bool,
    parse_number,
    parse_specialties,
)

logger = logging.getLogger(__name__)


def _sniff_dialect(sample: str) -> type[csv.Dialect]:
    """Pick the delimiter (comma/semicolon/tab) that occurs most in the header."""
    if not sample:
        return csv.excel

    first_line = sample.splitlines()[0]
    counts = {d: first_line.count(d) for d in (";", ",", "\t")}
    best_delim = max(counts, key=counts.get)
    if counts[best_delim] == 0:
        return csv.excel

    class DynamicDialect(csv.excel):
        delimiter = best_delim

    return DynamicDialect


def _read_csv(file_path: Path, encoding: str = "utf-8-sig") -> list[dict[str, str | None]]:
    """Read a CSV file with BOM handling and column normalization.

    Returns:
        List of dicts keyed by normalized column names.
    """
    with open(file_path, encoding=encoding, newline="") as f:
        sample = f.read(4096)
        f.seek(0)
        reader = csv.DictReader(f, dialect=_sniff_dialect(sample))
        if reader.fieldnames is None:
            raise ValueError(f"CSV file {file_path} has no header row")

        col_map = {col: normalize_column_name(col) for col in reader.fieldnames}
        rows = [
            {col_map[k]: clean_string(v) for k, v in raw_row.items() if k is not None}
            for raw_row in reader
        ]

    logger.info("Loaded %d rows from %s (columns: %s)", len(rows), file_path.name, list(col_map.values()))
    return rows


def _first(row: dict, *keys: str) -> str | None:
    for key in keys:
        value = row.get(key)
        if value:
            return value
    return None


def load_providers(file_path: Path) -> list[dict]:
    """Load and normalize the providers CSV.

    Expected columns (after normalization):
        name, provider_type (or type), zone, max_capacity (or daily_orders),
        current_load, rating, performance_score, specialties (or cuisine_types),
        is_available
    """
    providers = []
    for row in _read_csv(file_path):
        name = _first(row, "name", "business_name", "provider")
        if not name:
            logger.warning("Skipping provider row without a name: %s", row)
            continue
        providers.append({
            "name": name,
            "provider_type": (_first(row, "provider_type", "type") or "").lower(),
            "zone": _first(row, "zone", "area", "service_area") or "",
            "max_capacity": int(parse_number(_first(row, "max_capacity", "daily_orders", "capacity")) or 0),
            "current_load": int(parse_number(_first(row, "current_load", "load")) or 0),
            "rating": parse_number(row.get("rating")) or 0.0,
            "performance_score": parse_number(_first(row, "performance_score", "performance")) or 0.0,
            "specialties": parse_specialties(_first(row, "specialties", "cuisine_types", "cuisines")),
            "is_available": parse_bool(row.get("is_available")),
        })
    logger.info("Parsed %d providers", len(providers))
    return providers


def load_orders(file_path: Path) -> list[dict]:
    """Load and normalize the orders CSV.

    Expected columns (after normalization):
        user_id, provider_type, zone, delivery_start, delivery_end,
        total_amount, meal_slot, priority
    """
    orders = []
    for row in _read_csv(file_path):
        orders.append({
            "user_id": _first(row, "user_id", "user", "customer") or "",
            "provider_type": (_first(row, "provider_type", "type") or "").lower(),
            "zone": _first(row, "zone", "area") or "",
            "delivery_start": row.get("delivery_start"),
            "delivery_end": row.get("delivery_end"),
            "total_amount": (_first(row, "total_amount", "amount") or "0").replace(",", "."),
            "meal_slot": (_first(row, "meal_slot", "meal_type", "slot") or "lunch").lower(),
            "priority": (_first(row, "priority", "urgency") or "medium").lower(),
        })
    logger.info("Parsed %d orders", len(orders))
    return orders
