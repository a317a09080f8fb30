from __future__ import annotations

from datetime import date
from typing import Dict, Iterable, Optional

from models import ScoredCandidate, Trip, User
from services.weights import DEFAULT_WEIGHTS, ScoringWeights, band_points, league_tier


def _as_ids(values: Iterable[object]) -> set[str]:
    return {str(v).strip() for v in values if v is not None and str(v).strip()}


def proximity_points(distance_miles: Optional[float], weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    if distance_miles is None:
        return weights.proximity_beyond
    return band_points(weights.proximity_bands, weights.proximity_beyond, distance_miles)


def temporal_points(day_diff: int, weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    return band_points(weights.temporal_bands, weights.temporal_beyond, day_diff)


def league_quality_points(league_id: Optional[str], weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    tier = league_tier(league_id, weights)
    if tier == 1:
        return weights.league_tier1
    if tier == 2:
        return weights.league_tier2
    return weights.league_other


def preference_multiplier(strength: Optional[str], weights: ScoringWeights = DEFAULT_WEIGHTS) -> float:
    key = (strength or "standard").strip().lower()
    return weights.preference_strength.get(key, weights.preference_strength.get("standard", 1.0))


def preference_points(candidate: ScoredCandidate, user: User, weights: ScoringWeights = DEFAULT_WEIGHTS) -> Dict[str, float]:
    """Favorite team / league / venue bonuses, already scaled by preference strength."""
    prefs = user.preferences
    mult = preference_multiplier(prefs.preference_strength, weights)
    match = candidate.match
    out = {"favorite_team": 0.0, "favorite_league": 0.0, "favorite_venue": 0.0}

    teams = _as_ids(prefs.favorite_teams)
    if teams and (_as_ids([match.home.id]) | _as_ids([match.away.id])) & teams:
        out["favorite_team"] = weights.favorite_team_playing * mult

    leagues = _as_ids(prefs.favorite_leagues)
    if str(match.league.id) in leagues:
        tier = league_tier(match.league.id, weights)
        bonus = weights.favorite_league_tier_bonus.get(tier, 0.0) if tier else 0.0
        out["favorite_league"] = (weights.favorite_league_match + bonus) * mult

    venues = _as_ids(prefs.favorite_venues)
    if match.venue.id is not None and str(match.venue.id) in venues:
        out["favorite_venue"] = weights.favorite_venue_match * mult

    return out


def score_candidate(
    candidate: ScoredCandidate,
    target_day: date,
    trip: Trip,
    user: User,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> float:
    """Score a candidate for ``target_day`` and record the per-term breakdown."""
    day_diff = abs((candidate.match.kickoff.date() - target_day).days)

    debug_scores: Dict[str, float] = {
        "base": weights.base_score,
        "proximity": proximity_points(candidate.proximity.distance_miles, weights),
        "temporal": temporal_points(day_diff, weights),
        "league_quality": league_quality_points(candidate.match.league.id, weights),
    }
    debug_scores.update(preference_points(candidate, user, weights))
    debug_scores["already_saved"] = (
        weights.already_saved_penalty if str(candidate.match.id) in set(trip.match_ids()) else 0.0
    )

    total = sum(debug_scores.values())
    candidate.debug_scores = {k: round(v, 4) for k, v in debug_scores.items()}
    candidate.score = float(round(total, 4))
    return candidate.score
