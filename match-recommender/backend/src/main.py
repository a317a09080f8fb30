from __future__ import annotations

import sys
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import InteractionEntry, SavedMatch, Trip, User, UserPreferences, VenueInfo
from services.interactions import VALID_ACTIONS, recent_history, summarize_interactions
from services.recommendations import RecommendationService
from utils import parse_datetime

load_dotenv()

Id = Union[int, str]

app = FastAPI(title="Trip Match Recommender")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def configure_logging(cfg: Configuration) -> None:
    logger.remove()
    logger.add(sys.stderr, level=cfg.log_level.upper())


@lru_cache(maxsize=1)
def get_service() -> RecommendationService:
    cfg = Configuration.from_env()
    configure_logging(cfg)
    logger.info("cfg: {}", cfg.log_summary())
    return RecommendationService.from_config(cfg)


def _opt_str(value: Optional[Id]) -> Optional[str]:
    return str(value) if value is not None else None


class VenuePayload(BaseModel):
    name: str = ""
    city: Optional[str] = None
    country: Optional[str] = None
    id: Optional[Id] = None
    coordinates: Optional[List[float]] = Field(None, description="[lon, lat]")

    def to_domain(self) -> VenueInfo:
        coords = None
        if self.coordinates and len(self.coordinates) >= 2:
            coords = (float(self.coordinates[0]), float(self.coordinates[1]))
        return VenueInfo(name=self.name, city=self.city, country=self.country, id=_opt_str(self.id), coordinates=coords)


class SavedMatchPayload(BaseModel):
    match_id: Id
    date: str
    home_team: str = ""
    away_team: str = ""
    league: Optional[Id] = None
    venue: Optional[VenuePayload] = None

    def to_domain(self) -> SavedMatch:
        return SavedMatch(
            match_id=str(self.match_id),
            date=self.date,
            home_team=self.home_team,
            away_team=self.away_team,
            league=_opt_str(self.league),
            venue=self.venue.to_domain() if self.venue else None,
        )


class TripPayload(BaseModel):
    matches: List[SavedMatchPayload] = []
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class InteractionPayload(BaseModel):
    match_id: Id
    action: str
    trip_id: Optional[Id] = None
    recommended_date: Optional[str] = None
    timestamp: Optional[str] = None
    score: float = 0.0
    reason: str = ""

    def to_domain(self) -> InteractionEntry:
        return InteractionEntry(
            match_id=str(self.match_id),
            action=self.action,
            trip_id=_opt_str(self.trip_id),
            recommended_date=self.recommended_date,
            timestamp=parse_datetime(self.timestamp),
            score=self.score,
            reason=self.reason,
        )


class PreferencesPayload(BaseModel):
    favorite_teams: List[Id] = []
    favorite_leagues: List[Id] = []
    favorite_venues: List[Id] = []
    preference_strength: str = "standard"
    recommendation_radius: Optional[float] = None


class UserPayload(BaseModel):
    id: Id
    subscription_tier: Optional[str] = None
    preferences: PreferencesPayload = PreferencesPayload()
    recommendation_history: List[InteractionPayload] = []

    def to_domain(self) -> User:
        prefs = self.preferences
        return User(
            id=str(self.id),
            subscription_tier=self.subscription_tier,
            preferences=UserPreferences(
                favorite_teams=[str(x) for x in prefs.favorite_teams],
                favorite_leagues=[str(x) for x in prefs.favorite_leagues],
                favorite_venues=[str(x) for x in prefs.favorite_venues],
                preference_strength=prefs.preference_strength,
                recommendation_radius=prefs.recommendation_radius,
            ),
            recommendation_history=[h.to_domain() for h in self.recommendation_history],
        )


class RecommendationsRequest(BaseModel):
    user: UserPayload
    trip: Optional[TripPayload] = Field(None, description="Trip as stored by the caller; null when not found")
    force_refresh: bool = False


class TrackRequest(BaseModel):
    user_id: Id
    action: str
    trip_id: Optional[Id] = None
    recommended_date: Optional[str] = None
    score: float = 0.0
    reason: str = ""


class AnalyticsRequest(BaseModel):
    history: List[InteractionPayload] = []


class HistoryRequest(BaseModel):
    history: List[InteractionPayload] = []
    days: int = Field(30, ge=1)


@app.get("/healthz")
def healthz() -> dict:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok"}


@app.post("/trips/{trip_id}/recommendations")
async def trip_recommendations(
    trip_id: str,
    req: RecommendationsRequest,
    service: RecommendationService = Depends(get_service),
) -> Dict[str, Any]:
    try:
        service.cfg.require_fixtures_api()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    trip = None
    if req.trip is not None:
        trip = Trip(
            id=trip_id,
            matches=[m.to_domain() for m in req.trip.matches],
            start_date=req.trip.start_date,
            end_date=req.trip.end_date,
        )
    result = await service.get_recommendations_for_trip(trip_id, req.user.to_domain(), trip, req.force_refresh)
    payload = result.to_dict()
    return {
        "success": True,
        "tripId": trip_id,
        "recommendations": payload["recommendations"],
        "cached": payload["cached"],
        "diagnostics": payload["diagnostics"],
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    }


@app.post("/recommendations/{match_id}/track")
def track_recommendation(
    match_id: str,
    req: TrackRequest,
    service: RecommendationService = Depends(get_service),
) -> Dict[str, Any]:
    if req.action not in VALID_ACTIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid action. Must be one of: {', '.join(VALID_ACTIONS)}",
        )
    now = datetime.now(timezone.utc)
    entry = {
        "match_id": match_id,
        "trip_id": _opt_str(req.trip_id),
        "recommended_date": req.recommended_date,
        "timestamp": now.isoformat(),
        "action": req.action,
        "score": req.score,
        "reason": req.reason,
    }
    if req.trip_id is not None:
        service.invalidate_trip_cache(str(req.trip_id))
    service.invalidate_user_cache(str(req.user_id))
    logger.info("tracked {} for match {} (trip={})", req.action, match_id, req.trip_id)
    return {"success": True, "action": req.action, "matchId": match_id, "entry": entry}


@app.post("/recommendations/analytics")
def recommendation_analytics(req: AnalyticsRequest) -> Dict[str, Any]:
    history = [h.to_domain() for h in req.history]
    return {"success": True, "analytics": summarize_interactions(history)}


@app.post("/recommendations/history")
def recommendation_history(req: HistoryRequest) -> Dict[str, Any]:
    recent = recent_history([h.to_domain() for h in req.history], days=req.days)
    return {"success": True, "history": [e.to_dict() for e in recent], "totalCount": len(recent)}


@app.delete("/recommendations/cache/trips/{trip_id}")
def invalidate_trip(trip_id: str, service: RecommendationService = Depends(get_service)) -> Dict[str, Any]:
    return {"success": True, "removed": service.invalidate_trip_cache(trip_id)}


@app.delete("/recommendations/cache/users/{user_id}")
def invalidate_user(user_id: str, service: RecommendationService = Depends(get_service)) -> Dict[str, Any]:
    return {"success": True, "removed": service.invalidate_user_cache(user_id)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
