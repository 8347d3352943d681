from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Iterable, Optional

from ..enums import ACTIVE_BOOKING_STATUSES
from ..errors import InvalidRange


def _as_date(v: Any) -> Optional[date]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return v.date()
    if isinstance(v, date):
        return v
    try:
        return date.fromisoformat(str(v))
    except ValueError:
        return None


@dataclass(frozen=True)
class DateRange:
    """Half-open [start, end): the end day is free for the next reservation."""

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise InvalidRange(
                "end_date must be after start_date",
                start=self.start.isoformat(),
                end=self.end.isoformat(),
            )

    @property
    def nights(self) -> int:
        return (self.end - self.start).days


def validate_range(start: Any, end: Any) -> DateRange:
    """
    Normalise and validate a requested range.

    Raises InvalidRange when either endpoint is missing/unparseable or when
    start >= end. This always runs before any conflict check.
    """
    s = _as_date(start)
    e = _as_date(end)
    if s is None or e is None:
        raise InvalidRange("start_date and end_date are required ISO dates", start=str(start), end=str(end))
    return DateRange(start=s, end=e)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    # touching endpoints (a_end == b_start) do not overlap
    return a_start < b_end and b_start < a_end


def _participates(row: Any) -> bool:
    status = getattr(row, "status", None)
    if status is None:
        return False
    return str(getattr(status, "value", status)).strip().upper() in {s.value for s in ACTIVE_BOOKING_STATUSES}


def find_conflicts(candidate: DateRange, existing: Iterable[Any]) -> list[Any]:
    """
    Return the existing reservations that collide with `candidate`.

    `existing` items only need start_date/end_date (or start/end) and status
    attributes, so ORM rows and plain dataclasses both work. CANCELLED and
    COMPLETED reservations never block.
    """
    out: list[Any] = []
    for row in existing:
        if not _participates(row):
            continue
        r_start = _as_date(getattr(row, "start_date", None) or getattr(row, "start", None))
        r_end = _as_date(getattr(row, "end_date", None) or getattr(row, "end", None))
        if r_start is None or r_end is None:
            continue
        if ranges_overlap(candidate.start, candidate.end, r_start, r_end):
            out.append(row)
    return out


def has_conflict(candidate: DateRange, existing: Iterable[Any]) -> bool:
    return bool(find_conflicts(candidate, existing))
