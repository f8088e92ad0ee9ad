"""Utility helpers for record ingestion.

This module provides:
- stable_entity_id: stable SHA-1 based identifier for records without an id
- snake_case: normalize source column names (``PostalCode`` -> ``postal_code``)
- clean_value: trim strings and map blanks to None
- parse_float / parse_date: lenient scalar parsing for CSV input
"""
import hashlib
import re
from datetime import date
from typing import Any, Optional

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def stable_entity_id(s: str) -> str:
    """Compute a stable 40-char SHA-1 hex identifier for a string.

    Args:
        s: Input string (e.g., the record's embedding text).

    Returns:
        str: First 40 hex characters of the SHA-1 digest.
    """
    return hashlib.sha1(s.encode("utf-8")).hexdigest()[:40]


def snake_case(key: str) -> str:
    """Convert CamelCase / spaced / dashed column names to snake_case."""
    key = _CAMEL_BOUNDARY.sub("_", key.strip())
    return re.sub(r"[\s\-]+", "_", key).lower()


def clean_value(v: Any) -> Any:
    if isinstance(v, str):
        v = v.strip()
        return v or None
    return v


def parse_float(v: Any) -> Optional[float]:
    v = clean_value(v)
    if v is None:
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def parse_date(v: Any) -> Optional[date]:
    v = clean_value(v)
    if v is None or isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v)[:10])
    except ValueError:
        return None
