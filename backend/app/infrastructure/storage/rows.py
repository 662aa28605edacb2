"""
Supabase Row Helpers
Conversion between domain field values and PostgREST row values
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from app.utils.time_utils import ensure_utc, to_iso


def to_row(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize a partial update for a Supabase row."""
    row = {}
    for key, value in fields.items():
        if isinstance(value, datetime):
            row[key] = to_iso(value)
        elif isinstance(value, Enum):
            row[key] = value.value
        else:
            row[key] = value
    return row


def from_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Drop NULL columns so model defaults apply."""
    return {key: value for key, value in row.items() if value is not None}


def filter_timestamp(value: datetime) -> str:
    """Timestamp literal safe to embed in a PostgREST `or` filter (no '+')."""
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
