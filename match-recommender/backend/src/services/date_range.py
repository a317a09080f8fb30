from __future__ import annotations

from typing import List

from models import DateRange, Trip
from utils import add_days, day_str, parse_day


def resolve_date_range(trip: Trip) -> DateRange:
    """Active window of a trip.

    Explicit start/end win when both parse and are ordered, widened to cover any
    saved match that falls outside them. Otherwise the window spans the saved
    matches. ``DateRange(None, None)`` means there is nothing to go on.
    """
    match_days = [d for d in (parse_day(m.date) for m in trip.matches) if d is not None]

    start = parse_day(trip.start_date)
    end = parse_day(trip.end_date)
    if start is not None and end is not None and start <= end:
        if match_days:
            start = min(start, min(match_days))
            end = max(end, max(match_days))
        return DateRange(start=start, end=end)

    if not match_days:
        return DateRange()
    return DateRange(start=min(match_days), end=max(match_days))


def days_without_matches(trip: Trip, date_range: DateRange) -> List[str]:
    if not date_range.is_valid:
        return []
    taken = {d for d in (parse_day(m.date) for m in trip.matches) if d is not None}
    out: list[str] = []
    current = date_range.start
    while current <= date_range.end:  # type: ignore[operator]
        if current not in taken:
            out.append(day_str(current))
        current = add_days(current, 1)  # type: ignore[arg-type]
    return out


def search_dates(day: str, date_range: DateRange) -> List[str]:
    """The target day first, then its neighbours that stay inside the trip."""
    target = parse_day(day)
    if target is None:
        return []
    out = [day_str(target)]
    for offset in (-1, 1):
        candidate = add_days(target, offset)
        if date_range.contains(candidate):
            out.append(day_str(candidate))
    return out


def alternative_dates(day: str, date_range: DateRange, limit: int = 2) -> List[str]:
    target = parse_day(day)
    if target is None:
        return []
    out: list[str] = []
    for offset in (-1, 1, -2, 2):
        candidate = add_days(target, offset)
        if date_range.contains(candidate):
            out.append(day_str(candidate))
        if len(out) >= limit:
            break
    return out
