"""Classify fixtures as upcoming, live or completed.

Only upcoming fixtures are worth recommending; anything in progress or already
finished is dropped before candidates reach the pipeline.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from models import CandidateMatch, FixtureStatus

LIVE_SHORT_CODES = {"LIVE", "1H", "2H", "HT", "ET", "BT", "P", "INT"}
COMPLETED_SHORT_CODES = {"FT", "AET", "PEN"}
COMPLETED_LONG_TEXT = {"finished", "match finished", "completed"}

# A fixture that kicked off less than this long ago without a final status is treated as live.
LIVE_WINDOW = timedelta(hours=3)


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def is_match_past(kickoff: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if kickoff is None:
        return False
    return kickoff < _now(now)


def _status_says_live(status: FixtureStatus) -> bool:
    if status.long:
        text = status.long.lower()
        if text in ("live", "in play") or "half" in text or "extra time" in text:
            return True
    if status.short and status.short.upper() in LIVE_SHORT_CODES:
        return True
    return False


def _status_says_completed(status: FixtureStatus) -> bool:
    if status.long and status.long.lower() in COMPLETED_LONG_TEXT:
        return True
    if status.short and status.short.upper() in COMPLETED_SHORT_CODES:
        return True
    return False


def is_match_live(match: CandidateMatch, now: Optional[datetime] = None) -> bool:
    if _status_says_live(match.status):
        return True
    current = _now(now)
    if is_match_past(match.kickoff, current):
        elapsed = current - match.kickoff
        if elapsed < LIVE_WINDOW:
            long_text = (match.status.long or "").lower()
            if "finished" not in long_text and "completed" not in long_text:
                return True
    return False


def is_match_completed(match: CandidateMatch, now: Optional[datetime] = None) -> bool:
    if _status_says_completed(match.status):
        return True
    current = _now(now)
    return is_match_past(match.kickoff, current) and not is_match_live(match, current)


def get_match_status_type(match: Optional[CandidateMatch], now: Optional[datetime] = None) -> str:
    if match is None:
        return "unknown"
    if is_match_live(match, now):
        return "live"
    if is_match_completed(match, now):
        return "completed"
    return "upcoming"


def should_filter_match(match: Optional[CandidateMatch], now: Optional[datetime] = None) -> bool:
    """True when a fixture is not actionable (missing, live or completed)."""
    if match is None:
        return True
    return get_match_status_type(match, now) != "upcoming"
