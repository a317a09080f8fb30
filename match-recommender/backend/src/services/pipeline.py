from __future__ import annotations

from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set

from loguru import logger

from models import (
    CandidateMatch,
    DateRange,
    ProximityData,
    Recommendation,
    SavedVenue,
    ScoredCandidate,
    Trip,
    User,
)
from services.date_range import alternative_dates, search_dates
from services.fixtures import FixtureCatalogAdapter
from services.interactions import dismissed_match_ids
from services.scoring import score_candidate
from services.weights import DEFAULT_WEIGHTS, ScoringWeights
from utils import haversine_miles, parse_datetime, parse_day


def restrict_leagues(matches: Iterable[CandidateMatch], allowed_leagues: Iterable[str]) -> List[CandidateMatch]:
    allowed = {str(x) for x in allowed_leagues}
    return [m for m in matches if str(m.league.id) in allowed]


def filter_by_proximity(
    matches: Sequence[CandidateMatch],
    saved_venues: Sequence[SavedVenue],
    radius_miles: float,
) -> List[ScoredCandidate]:
    """Keep fixtures within ``radius_miles`` of at least one saved venue."""
    nearby: list[ScoredCandidate] = []
    for idx, match in enumerate(matches):
        coords = match.venue.coordinates
        if not coords:
            continue
        closest: Optional[SavedVenue] = None
        closest_distance = float("inf")
        for saved in saved_venues:
            distance = haversine_miles(coords[1], coords[0], saved.coordinates[1], saved.coordinates[0])
            if distance <= radius_miles and distance < closest_distance:
                closest = saved
                closest_distance = distance
        if closest is None:
            continue
        nearby.append(
            ScoredCandidate(
                match=match,
                proximity=ProximityData(closest_venue=closest, distance_miles=closest_distance),
                catalog_index=idx,
            )
        )
    return nearby


def remove_conflicts(
    candidates: Sequence[ScoredCandidate],
    trip: Trip,
    window_hours: float = 3.0,
) -> List[ScoredCandidate]:
    """Drop fixtures kicking off within ``window_hours`` of a match already in the trip."""
    window = timedelta(hours=window_hours)
    existing = [dt for dt in (parse_datetime(m.date) for m in trip.matches) if dt is not None]
    return [
        c for c in candidates
        if all(abs(c.match.kickoff - kickoff) >= window for kickoff in existing)
    ]


def remove_saved(candidates: Sequence[ScoredCandidate], trip: Trip) -> List[ScoredCandidate]:
    """Drop fixtures the trip already holds."""
    saved = set(trip.match_ids())
    return [c for c in candidates if str(c.match.id) not in saved]


def remove_dismissed(candidates: Sequence[ScoredCandidate], user: User, trip_id: str) -> List[ScoredCandidate]:
    dismissed = dismissed_match_ids(user, trip_id)
    if not dismissed:
        return list(candidates)
    return [c for c in candidates if str(c.match.id) not in dismissed]


def select_candidates(
    scored: Sequence[ScoredCandidate],
    *,
    max_per_day: int = 3,
    min_threshold: float = 30.0,
) -> List[ScoredCandidate]:
    """Best candidates above the threshold, backfilled with positive ones below it.

    Ties keep catalog order. Non-positive scores are never returned.
    """
    max_per_day = max(0, max_per_day)
    ranked = sorted((c for c in scored if c.score > 0), key=lambda c: (-c.score, c.catalog_index))
    qualified = [c for c in ranked if c.score >= min_threshold]
    fallback = [c for c in ranked if c.score < min_threshold]

    results: list[ScoredCandidate] = list(qualified[:max_per_day])
    if len(results) < max_per_day and fallback:
        remaining_slots = max_per_day - len(results)
        results.extend(fallback[:remaining_slots])
    return results


def proximity_text(candidate: ScoredCandidate) -> str:
    distance = round(candidate.proximity.distance_miles)
    return f"{distance} miles from {candidate.proximity.closest_venue.name}"


def build_reason(candidate: ScoredCandidate) -> str:
    venue = candidate.proximity.closest_venue.name
    distance = round(candidate.proximity.distance_miles)
    parts = [f"Near your {venue} match ({distance} miles away)"]
    debug = candidate.debug_scores
    match = candidate.match
    if debug.get("favorite_team", 0) > 0:
        parts.append(f"Features a favorite team ({match.home.name} vs {match.away.name})")
    if debug.get("favorite_league", 0) > 0:
        parts.append(f"{match.league.name} is one of your favorite leagues")
    if debug.get("favorite_venue", 0) > 0:
        parts.append(f"Played at {match.venue.name}, one of your favorite venues")
    return ". ".join(parts)


class CandidatePipeline:
    """Fetch, filter, score and pick the matches to suggest for one open day."""

    def __init__(
        self,
        adapter: FixtureCatalogAdapter,
        *,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        max_per_day: int = 3,
        conflict_window_hours: float = 3.0,
    ) -> None:
        self.adapter = adapter
        self.weights = weights
        self.max_per_day = max_per_day
        self.conflict_window_hours = conflict_window_hours

    async def fetch_candidates(
        self,
        day: str,
        date_range: DateRange,
        allowed_leagues: Sequence[str],
        fixtures_by_date: Optional[Dict[str, List[CandidateMatch]]] = None,
    ) -> List[CandidateMatch]:
        """Fixtures for the day and its neighbours; ``fixtures_by_date`` memoizes catalog hits per date."""
        fixtures_by_date = fixtures_by_date if fixtures_by_date is not None else {}
        matches: list[CandidateMatch] = []
        seen: set[str] = set()
        for search_date in search_dates(day, date_range):
            if search_date not in fixtures_by_date:
                fixtures_by_date[search_date] = await self.adapter.search_fixtures(search_date, allowed_leagues)
            for match in fixtures_by_date[search_date]:
                if match.id in seen:
                    continue
                seen.add(match.id)
                matches.append(match)
        return matches

    async def run_day(
        self,
        day: str,
        *,
        saved_venues: Sequence[SavedVenue],
        date_range: DateRange,
        allowed_leagues: Sequence[str],
        trip: Trip,
        user: User,
        radius_miles: float,
        seen_ids: Optional[Set[str]] = None,
        trip_id: Optional[str] = None,
        fixtures_by_date: Optional[Dict[str, List[CandidateMatch]]] = None,
    ) -> List[Recommendation]:
        target = parse_day(day)
        if target is None:
            return []
        seen_ids = seen_ids if seen_ids is not None else set()
        trip_id = str(trip_id) if trip_id is not None else trip.id

        fetched = await self.fetch_candidates(day, date_range, allowed_leagues, fixtures_by_date)
        pool = [m for m in restrict_leagues(fetched, allowed_leagues) if m.id not in seen_ids]
        nearby = filter_by_proximity(pool, saved_venues, radius_miles)
        conflict_free = remove_conflicts(remove_saved(nearby, trip), trip, self.conflict_window_hours)
        eligible = remove_dismissed(conflict_free, user, trip_id)

        scored: list[ScoredCandidate] = []
        for candidate in eligible:
            try:
                score_candidate(candidate, target, trip, user, self.weights)
            except Exception as exc:
                logger.warning("dropping candidate {}: scoring failed: {}", candidate.match.id, exc)
                continue
            scored.append(candidate)

        picks = select_candidates(scored, max_per_day=self.max_per_day, min_threshold=self.weights.min_threshold)
        logger.debug(
            "day={} fetched={} nearby={} conflict_free={} eligible={} picked={}",
            day,
            len(fetched),
            len(nearby),
            len(conflict_free),
            len(eligible),
            len(picks),
        )

        recommendations: list[Recommendation] = []
        for pick in picks:
            seen_ids.add(pick.match.id)
            recommendations.append(
                Recommendation(
                    match_id=pick.match.id,
                    recommended_for_date=day,
                    match=pick.match,
                    reason=build_reason(pick),
                    proximity=proximity_text(pick),
                    score=pick.score,
                    alternative_dates=alternative_dates(day, date_range),
                )
            )
        return recommendations
