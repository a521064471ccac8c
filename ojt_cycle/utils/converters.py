"""Shared value conversion helpers."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional


def to_date(value: Any) -> Optional[date]:
    """Coerce ``value`` to a :class:`date`, returning ``None`` when that is not possible."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            return None
    return None
