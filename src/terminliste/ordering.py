from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")


def convert_date_for_sorting(value: str) -> str:
    """Turn ``DD.MM.YYYY`` into ``YYYY-MM-DD``.

    Anything without exactly three dot-separated parts is returned as is.
    """
    if not value:
        return ""
    parts = value.split(".")
    if len(parts) == 3:
        day, month, year = parts
        return f"{year}-{month}-{day}"
    return value


def parse_match_date(value: str) -> Optional[datetime]:
    """Return the last second of the given ``DD.MM.YYYY`` day, or ``None``."""
    parts = (value or "").split(".")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(part) for part in parts)
        return datetime(year, month, day, 23, 59, 59)
    except ValueError:
        return None


def _date_and_time(record: Any) -> Tuple[str, str]:
    if isinstance(record, dict):
        return record.get("Dato") or "", record.get("Tid") or ""
    return getattr(record, "date", "") or "", getattr(record, "time", "") or ""


def _sort_key(record: Any) -> Tuple[str, str]:
    date_label, time_label = _date_and_time(record)
    return convert_date_for_sorting(date_label), time_label


def sort_matches_by_date(matches: Iterable[T]) -> List[T]:
    """Return a new list ordered by date, then ``HH:MM`` time.

    Records may be objects exposing ``date``/``time`` or feed rows keyed by
    ``Dato``/``Tid``. The sort is stable.
    """
    return sorted(matches, key=_sort_key)
