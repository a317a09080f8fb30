"""Data models for the trip match recommender."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Tuple

Coordinates = Tuple[float, float]  # lon, lat


@dataclass
class VenueInfo:
    name: str
    city: Optional[str] = None
    country: Optional[str] = None
    id: Optional[str] = None
    coordinates: Optional[Coordinates] = None


@dataclass
class LeagueInfo:
    id: str
    name: str
    country: Optional[str] = None
    logo: Optional[str] = None


@dataclass
class TeamInfo:
    name: str
    id: Optional[str] = None
    logo: Optional[str] = None


@dataclass
class FixtureStatus:
    short: Optional[str] = None
    long: Optional[str] = None


@dataclass
class CandidateMatch:
    id: str
    kickoff: datetime  # aware, UTC
    venue: VenueInfo
    league: LeagueInfo
    home: TeamInfo
    away: TeamInfo
    status: FixtureStatus = field(default_factory=FixtureStatus)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["kickoff"] = self.kickoff.isoformat()
        if self.venue.coordinates is not None:
            payload["venue"]["coordinates"] = list(self.venue.coordinates)
        return payload


@dataclass
class SavedMatch:
    match_id: str
    date: str  # ISO date or kickoff timestamp
    home_team: str = ""
    away_team: str = ""
    league: Optional[str] = None
    venue: Optional[VenueInfo] = None


@dataclass
class Trip:
    id: str
    matches: List[SavedMatch] = field(default_factory=list)
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    recommendations: List[Dict[str, Any]] = field(default_factory=list)
    recommendations_version: Optional[str] = None
    recommendations_generated_at: Optional[datetime] = None

    def match_ids(self) -> List[str]:
        return [str(m.match_id) for m in self.matches]


@dataclass
class InteractionEntry:
    match_id: str
    action: str  # viewed | saved | dismissed
    trip_id: Optional[str] = None
    recommended_date: Optional[str] = None
    timestamp: Optional[datetime] = None
    score: float = 0.0
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["timestamp"] = self.timestamp.isoformat() if self.timestamp else None
        return payload


@dataclass
class UserPreferences:
    favorite_teams: List[str] = field(default_factory=list)
    favorite_leagues: List[str] = field(default_factory=list)
    favorite_venues: List[str] = field(default_factory=list)
    preference_strength: str = "standard"  # light | standard | strong
    recommendation_radius: Optional[float] = None  # miles


@dataclass
class User:
    id: str
    subscription_tier: Optional[str] = None
    preferences: UserPreferences = field(default_factory=UserPreferences)
    recommendation_history: List[InteractionEntry] = field(default_factory=list)


@dataclass
class DateRange:
    start: Optional[date] = None
    end: Optional[date] = None

    @property
    def is_valid(self) -> bool:
        return self.start is not None and self.end is not None and self.start <= self.end

    def contains(self, day: date) -> bool:
        return self.is_valid and self.start <= day <= self.end  # type: ignore[operator]


@dataclass
class SavedVenue:
    name: str
    coordinates: Coordinates
    city: Optional[str] = None
    country: Optional[str] = None


@dataclass
class ProximityData:
    closest_venue: SavedVenue
    distance_miles: float


@dataclass
class ScoredCandidate:
    match: CandidateMatch
    proximity: ProximityData
    score: float = 0.0
    debug_scores: Dict[str, float] = field(default_factory=dict)
    catalog_index: int = 0


@dataclass
class Recommendation:
    match_id: str
    recommended_for_date: str
    match: CandidateMatch
    reason: str
    proximity: str
    score: float
    alternative_dates: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "matchId": self.match_id,
            "recommendedForDate": self.recommended_for_date,
            "match": self.match.to_dict(),
            "reason": self.reason,
            "proximity": self.proximity,
            "score": self.score,
            "alternativeDates": list(self.alternative_dates),
        }


@dataclass
class Diagnostics:
    reason: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"reason": self.reason, "message": self.message, **self.details}


@dataclass
class RecommendationResult:
    recommendations: List[Recommendation] = field(default_factory=list)
    cached: bool = False
    diagnostics: Optional[Diagnostics] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recommendations": [r.to_dict() for r in self.recommendations],
            "cached": self.cached,
            "diagnostics": self.diagnostics.to_dict() if self.diagnostics else None,
        }
