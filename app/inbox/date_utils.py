from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Tuple

PORTAL_DATE_FORMAT = "%d/%m/%Y"

_DATE_FORMATS: Iterable[str] = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%Y-%m-%d",
    "%d-%m-%Y",
)


def format_portal_date(value: date) -> str:
    """Return *value* in the portal's ``DD/MM/YYYY`` form."""

    return value.strftime(PORTAL_DATE_FORMAT)


def parse_portal_date(value: str) -> Optional[datetime]:
    """Parse a notification timestamp as shown in the inbox table.

    Returns ``None`` when the value cannot be reasonably parsed.
    """

    candidate = re.sub(r"\s+", " ", (value or "").strip())
    if not candidate:
        return None

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(candidate, fmt)
        except ValueError:
            continue
    return None


def default_date_range(today: Optional[date] = None, days: int = 7) -> Tuple[str, str]:
    """Return ``(start, end)`` covering the last *days* days up to *today*."""

    end = today or date.today()
    start = end - timedelta(days=max(0, days))
    return format_portal_date(start), format_portal_date(end)


def sortable_date(value: str) -> str:
    """Return ``YYYY-MM-DD`` for a portal timestamp, or ``""`` if unparseable."""

    parsed = parse_portal_date(value)
    return parsed.strftime("%Y-%m-%d") if parsed else ""


__all__ = [
    "PORTAL_DATE_FORMAT",
    "format_portal_date",
    "parse_portal_date",
    "default_date_range",
    "sortable_date",
]
