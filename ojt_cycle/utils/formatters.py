"""Text formatting helpers."""

from __future__ import annotations

from datetime import date


def format_full_name(first_name: str, last_name: str, middle_name: str | None = None) -> str:
    """Return ``"First M. Last"``, dropping the initial when there is no middle name."""

    parts = [(first_name or "").strip()]
    middle = (middle_name or "").strip()
    if middle:
        parts.append(f"{middle[0].upper()}.")
    parts.append((last_name or "").strip())
    return " ".join(part for part in parts if part)


def format_day_label(value: date | None) -> str:
    """Short label such as ``"Feb 10"``; ``"-"`` when the date is missing."""

    if value is None:
        return "-"
    return f"{value.strftime('%b')} {value.day}"
