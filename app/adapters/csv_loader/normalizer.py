"""CSV column normalization — handles BOM, trailing spaces, encoding quirks."""

from __future__ import annotations

import re

TRUE_VALUES = {"1", "true", "yes", "y", "да", "available"}
FALSE_VALUES = {"0", "false", "no", "n", "нет", "unavailable"}


def normalize_column_name(name: str) -> str:
    """Normalize a CSV column name.

    - Removes BOM characters (\\ufeff)
    - Replaces runs of spaces / non-breaking spaces / dashes with one underscore
    - Lowercases
    - Strips anything that is not alphanumeric or underscore
    """
    name = name.replace("\ufeff", "").strip()
    name = re.sub(r"[\s\u00a0\-]+", "_", name)
    name = name.lower()
    return re.sub(r"[^\w]", "", name, flags=re.UNICODE)


def clean_string(value: str | None) -> str | None:
    """Strip whitespace and return None for empty strings."""
    if value is None:
        return None
    value = value.strip()
    return value if value else None


def parse_specialties(raw: str | None) -> set[str]:
    """Parse cuisine lists like 'North Indian; Jain, vegan' into lowercase tags.

    Commas, semicolons and pipes separate entries; spaces inside an entry
    are kept.
    """
    if not raw:
        return set()
    parts = re.split(r"[,;|]+", raw)
    return {" ".join(p.split()).lower() for p in parts if p.strip()}


def parse_bool(raw: str | None, default: bool = True) -> bool:
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUE_VALUES:
        return True
    if value in FALSE_VALUES:
        return False
    return default


def parse_number(raw: str | None) -> float | None:
    """Parse '4,5' / '4.5' / ' 12 ' into a float; None when blank or garbage."""
    if not raw:
        return None
    try:
        return float(raw.replace(",", ".").strip())
    except ValueError:
        return None
