from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from models import Trip, User


@dataclass
class CacheEntry:
    value: Any
    created_at: float
    expires_at: float
    trip_id: Optional[str] = None
    user_id: Optional[str] = None

    def expired(self, now: float) -> bool:
        return now >= self.expires_at


def build_cache_key(user: User, trip_id: str, trip: Trip, radius: float, default_tier: str = "freemium") -> str:
    """Fingerprint of everything that changes the answer for a trip."""
    tier = user.subscription_tier or default_tier
    user_key = f"{user.id}-{tier}-{radius:g}"
    ids = sorted(trip.match_ids())
    trip_key = f"{trip_id}-{len(ids)}-{','.join(ids)}"
    return f"recommendations:{user_key}:{trip_key}"


class RecommendationCache:
    """In-memory TTL cache for generated recommendations.

    Non-empty results live for ``ttl_sec``; empty ones for ``empty_ttl_sec`` so
    gaps in the catalog heal quickly. Least recently used entries are evicted
    once ``max_entries`` is reached.
    """

    def __init__(
        self,
        ttl_sec: int = 24 * 60 * 60,
        empty_ttl_sec: int = 60 * 60,
        max_entries: int = 512,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.ttl_sec = ttl_sec
        self.empty_ttl_sec = empty_ttl_sec
        self.max_entries = max(1, max_entries)
        self._clock = clock

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expired(self._clock()):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None,
        *,
        trip_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> CacheEntry:
        if ttl is None:
            ttl = self.ttl_sec if _has_recommendations(value) else self.empty_ttl_sec
        now = self._clock()
        self.sweep()
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_entries:
            self._entries.popitem(last=False)
        entry = CacheEntry(value=value, created_at=now, expires_at=now + ttl, trip_id=trip_id, user_id=user_id)
        self._entries[key] = entry
        return entry

    def sweep(self) -> int:
        """Drop expired entries."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expired(now)]
        for k in expired:
            del self._entries[k]
        return len(expired)

    # Tagged entries match on their tag only; untagged ones fall back to their key segment.
    def invalidate_by_trip(self, trip_id: str) -> int:
        return self._invalidate(
            lambda k, e: e.trip_id == str(trip_id) if e.trip_id is not None
            else _key_parts(k)[1].startswith(f"{trip_id}-")
        )

    def invalidate_by_user(self, user_id: str) -> int:
        return self._invalidate(
            lambda k, e: e.user_id == str(user_id) if e.user_id is not None
            else _key_parts(k)[0].startswith(f"{user_id}-")
        )

    def _invalidate(self, predicate: Callable[[str, CacheEntry], bool]) -> int:
        doomed = [k for k, e in self._entries.items() if predicate(k, e)]
        for k in doomed:
            del self._entries[k]
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _key_parts(key: str) -> Tuple[str, str]:
    """(user segment, trip segment) of a key from ``build_cache_key``."""
    parts = key.split(":", 2)
    if len(parts) != 3 or parts[0] != "recommendations":
        return ("", "")
    return (parts[1], parts[2])


def _has_recommendations(value: Any) -> bool:
    if isinstance(value, dict):
        return bool(value.get("recommendations"))
    if isinstance(value, list):
        return bool(value)
    return bool(value)


def cache_payload(value: Any) -> Dict[str, Any]:
    """Read either a structured entry or a legacy bare list."""
    if isinstance(value, list):
        return {"recommendations": value, "diagnostics": None}
    if isinstance(value, dict):
        return {"recommendations": list(value.get("recommendations") or []), "diagnostics": value.get("diagnostics")}
    return {"recommendations": [], "diagnostics": None}
