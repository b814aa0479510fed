from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

import asyncpg


def to_json(value):
    """Recursively convert rows, UUIDs, decimals and dates into JSON friendly values."""
    if isinstance(value, (Mapping, asyncpg.Record)):
        return {k: to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_json(v) for v in value]
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, UUID):
        return str(value)
    return value


def serialize_row(row):
    """A database row as a plain dict, or None"""
    if row is None:
        return None
    return to_json(row)


def to_iso(val):
    if hasattr(val, 'isoformat'):
        return val.isoformat()
    return val


def is_valid_uuid(value) -> bool:
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True
