"""Scoring weights for trip recommendations.

All values are additive points except the preference-strength multipliers.
Bands are ``(upper_bound, points)`` pairs read as half-open ``[previous, upper)``
buckets; anything past the last bound gets the matching ``*_beyond`` value.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple, Union

WEIGHTS_VERSION = "2"

Band = Tuple[float, float]


@dataclass(frozen=True)
class ScoringWeights:
    version: str = WEIGHTS_VERSION

    base_score: float = 10.0
    min_threshold: float = 30.0

    # Distance to the closest saved venue, miles
    proximity_bands: Tuple[Band, ...] = (
        (10.0, 40.0),
        (25.0, 35.0),
        (50.0, 30.0),
        (100.0, 25.0),
        (200.0, 20.0),
    )
    proximity_beyond: float = 0.0

    # Whole days between the fixture and the day being filled
    temporal_bands: Tuple[Band, ...] = (
        (1.0, 30.0),
        (2.0, 25.0),
        (3.0, 20.0),
        (4.0, 15.0),
    )
    temporal_beyond: float = 10.0

    league_tier1: float = 20.0
    league_tier2: float = 15.0
    league_other: float = 10.0

    favorite_team_playing: float = 50.0
    favorite_league_match: float = 30.0
    favorite_league_tier_bonus: Dict[int, float] = field(
        default_factory=lambda: {1: 10.0, 2: 5.0, 3: 2.0}
    )
    favorite_venue_match: float = 40.0

    preference_strength: Dict[str, float] = field(
        default_factory=lambda: {"light": 0.5, "standard": 1.0, "strong": 1.5}
    )

    already_saved_penalty: float = -100.0

    tier1_leagues: FrozenSet[str] = frozenset({"39", "140", "135", "61", "78"})
    tier2_leagues: FrozenSet[str] = frozenset({"40", "41", "79", "94", "88"})
    tier3_leagues: FrozenSet[str] = frozenset({"203", "144", "113", "218"})


DEFAULT_WEIGHTS = ScoringWeights()


def band_points(bands: Tuple[Band, ...], beyond: float, value: float) -> float:
    """Look up ``value`` in half-open bands. Never raises."""
    try:
        v = abs(float(value))
    except (TypeError, ValueError):
        return beyond
    if v != v:  # NaN
        return beyond
    for upper, points in bands:
        if v < upper:
            return points
    return beyond


def league_tier(league_id: Optional[str], weights: ScoringWeights = DEFAULT_WEIGHTS) -> Optional[int]:
    key = str(league_id) if league_id is not None else ""
    if key in weights.tier1_leagues:
        return 1
    if key in weights.tier2_leagues:
        return 2
    if key in weights.tier3_leagues:
        return 3
    return None


def _coerce(name: str, value: Any) -> Any:
    if name.endswith("_bands"):
        return tuple((float(upper), float(points)) for upper, points in value)
    if name.endswith("_leagues"):
        return frozenset(str(v) for v in value)
    if name == "favorite_league_tier_bonus":
        return {int(k): float(v) for k, v in value.items()}
    if name == "preference_strength":
        return {str(k): float(v) for k, v in value.items()}
    if name == "version":
        return str(value)
    return float(value)


def weights_from_dict(data: Dict[str, Any], base: ScoringWeights = DEFAULT_WEIGHTS) -> ScoringWeights:
    known = {f.name for f in fields(ScoringWeights)}
    updates = {k: _coerce(k, v) for k, v in data.items() if k in known}
    return replace(base, **updates)


def load_weights(path: Optional[Union[str, Path]]) -> ScoringWeights:
    """Load weight overrides from a JSON file; defaults when no path is given."""
    if not path:
        return DEFAULT_WEIGHTS
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"weights file must hold a JSON object: {path}")
    return weights_from_dict(payload)
