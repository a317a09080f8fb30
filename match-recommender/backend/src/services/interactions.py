from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Set

from models import InteractionEntry, User

VALID_ACTIONS = ("viewed", "saved", "dismissed")


def dismissed_match_ids(user: Optional[User], trip_id: Optional[str]) -> Set[str]:
    """Match ids the user dismissed for this trip. Dismissals never expire and never cross trips."""
    if user is None or trip_id is None:
        return set()
    return {
        str(entry.match_id)
        for entry in user.recommendation_history
        if entry.action == "dismissed" and entry.trip_id is not None and str(entry.trip_id) == str(trip_id)
    }


def recent_history(
    history: Iterable[InteractionEntry],
    days: int = 30,
    now: Optional[datetime] = None,
) -> List[InteractionEntry]:
    """Entries from the last ``days`` days, newest first."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)
    recent = [e for e in history if e.timestamp is not None and e.timestamp >= cutoff]
    recent.sort(key=lambda e: e.timestamp, reverse=True)  # type: ignore[arg-type,return-value]
    return recent


def summarize_interactions(history: Iterable[InteractionEntry]) -> Dict[str, Any]:
    entries = list(history)
    total = len(entries)
    saved = sum(1 for e in entries if e.action == "saved")
    dismissed = sum(1 for e in entries if e.action == "dismissed")
    viewed = sum(1 for e in entries if e.action == "viewed")
    save_rate = (saved / total) * 100 if total else 0.0
    average_score = sum(e.score or 0.0 for e in entries) / total if total else 0.0
    return {
        "totalRecommendations": total,
        "savedCount": saved,
        "dismissedCount": dismissed,
        "viewedCount": viewed,
        "saveRate": round(save_rate, 2),
        "averageScore": round(average_score, 2),
    }
