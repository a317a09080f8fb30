"""Entry point for trip recommendations.

A request walks CHECK_TRIP_EXISTS -> RESOLVE_DATE_RANGE -> CHECK_DAYS_REMAINING
-> RESOLVE_VENUES -> (cache hit) -> RUN_PIPELINE_PER_DAY -> MERGE_AND_DEDUPE ->
CACHE_STORE. Any step may stop early with an empty list and a diagnostic; no
exception escapes to the caller.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from loguru import logger

from config import Configuration
from models import CandidateMatch, Diagnostics, Recommendation, RecommendationResult, Trip, User
from services.cache import RecommendationCache, build_cache_key, cache_payload
from services.collaborators import Geocoder, SubscriptionService, TeamNameMapper, TierAccessService
from services.date_range import days_without_matches, resolve_date_range
from services.fixtures import ApiSportsClient, FixtureCatalogAdapter
from services.geoapify import GeoapifyClient
from services.pipeline import CandidatePipeline
from services.venues import VenueDirectory, extract_venues
from services.weights import DEFAULT_WEIGHTS, ScoringWeights, load_weights

TRIP_NOT_FOUND = "trip_not_found"
INVALID_TRIP_DATES = "invalid_trip_dates"
ALL_DAYS_HAVE_MATCHES = "all_days_have_matches"
NO_VENUES_WITH_COORDINATES = "no_venues_with_coordinates"
NO_MATCHES_FOUND = "no_matches_found"
ERROR = "error"


def _empty(reason: str, message: str, **details) -> RecommendationResult:
    return RecommendationResult(recommendations=[], cached=False, diagnostics=Diagnostics(reason, message, details))


class RecommendationService:
    def __init__(
        self,
        cfg: Configuration,
        *,
        adapter: FixtureCatalogAdapter,
        subscriptions: Optional[SubscriptionService] = None,
        geocoder: Optional[Geocoder] = None,
        cache: Optional[RecommendationCache] = None,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
    ) -> None:
        self.cfg = cfg
        self.adapter = adapter
        self.subscriptions = subscriptions or TierAccessService(default_tier=cfg.default_subscription_tier)
        self.geocoder = geocoder
        self.cache = cache or RecommendationCache(
            ttl_sec=cfg.recommendation_cache_ttl,
            empty_ttl_sec=cfg.recommendation_empty_cache_ttl,
            max_entries=cfg.recommendation_cache_max_entries,
        )
        self.weights = weights
        self.pipeline = CandidatePipeline(
            adapter,
            weights=weights,
            max_per_day=cfg.max_recommendations_per_day,
            conflict_window_hours=cfg.conflict_window_hours,
        )

    @classmethod
    def from_config(cls, cfg: Configuration) -> "RecommendationService":
        adapter = FixtureCatalogAdapter(
            ApiSportsClient(cfg),
            team_names=TeamNameMapper.from_json(cfg.team_aliases_path),
            venues=VenueDirectory.from_json(cfg.venues_path),
            timeout=cfg.api_sports_timeout,
            max_concurrency=cfg.fixtures_max_concurrency,
        )
        return cls(
            cfg,
            adapter=adapter,
            geocoder=GeoapifyClient(cfg),
            weights=load_weights(cfg.scoring_weights_path),
        )

    async def get_recommendations_for_trip(
        self,
        trip_id: str,
        user: User,
        trip: Optional[Trip],
        force_refresh: bool = False,
    ) -> RecommendationResult:
        try:
            return await self._generate(trip_id, user, trip, force_refresh)
        except Exception as exc:
            logger.exception("recommendation failed for trip {}: {}", trip_id, exc)
            return _empty(ERROR, str(exc) or exc.__class__.__name__)

    async def _generate(
        self,
        trip_id: str,
        user: User,
        trip: Optional[Trip],
        force_refresh: bool,
    ) -> RecommendationResult:
        if trip is None:
            return _empty(TRIP_NOT_FOUND, f"Trip {trip_id} not found")

        if not trip.matches:
            return _empty(INVALID_TRIP_DATES, "Trip has no saved matches to base recommendations on")

        date_range = resolve_date_range(trip)
        if not date_range.is_valid:
            return _empty(INVALID_TRIP_DATES, "Could not determine the trip's dates")

        open_days = days_without_matches(trip, date_range)
        if not open_days:
            return _empty(
                ALL_DAYS_HAVE_MATCHES,
                "Trip already has matches for all days",
                start=date_range.start.isoformat(),  # type: ignore[union-attr]
                end=date_range.end.isoformat(),  # type: ignore[union-attr]
            )

        saved_venues = await extract_venues(trip, self.geocoder)
        if not saved_venues:
            return _empty(NO_VENUES_WITH_COORDINATES, "No saved matches with venue coordinates to search around")

        radius = self.cfg.effective_radius(user.preferences.recommendation_radius)
        key = build_cache_key(user, trip_id, trip, radius, self.cfg.default_subscription_tier)
        if not force_refresh:
            cached = self.cache.get(key)
            if cached is not None:
                payload = cache_payload(cached)
                logger.info("returning cached recommendations for trip {}", trip_id)
                return RecommendationResult(
                    recommendations=list(payload["recommendations"]),
                    cached=True,
                    diagnostics=payload["diagnostics"],
                )

        allowed_leagues = self.subscriptions.accessible_leagues(user)
        seen_ids: set[str] = set()
        fixtures_by_date: Dict[str, List[CandidateMatch]] = {}
        recommendations: List[Recommendation] = []
        for day in open_days:
            try:
                recommendations.extend(
                    await self.pipeline.run_day(
                        day,
                        saved_venues=saved_venues,
                        date_range=date_range,
                        allowed_leagues=allowed_leagues,
                        trip=trip,
                        user=user,
                        radius_miles=radius,
                        seen_ids=seen_ids,
                        trip_id=str(trip_id),
                        fixtures_by_date=fixtures_by_date,
                    )
                )
            except Exception as exc:
                logger.warning("no recommendations for {} on trip {}: {}", day, trip_id, exc)

        diagnostics = None
        if not recommendations:
            diagnostics = Diagnostics(
                NO_MATCHES_FOUND,
                "No nearby matches found for the open days of this trip",
                {"daysSearched": len(open_days), "leaguesSearched": len(allowed_leagues), "radiusMiles": radius},
            )

        self.cache.set(
            key,
            {"recommendations": list(recommendations), "diagnostics": diagnostics},
            trip_id=str(trip_id),
            user_id=str(user.id),
        )
        logger.info(
            "recommendations trip={} open_days={} venues={} leagues={} radius={} count={}",
            trip_id,
            len(open_days),
            len(saved_venues),
            len(allowed_leagues),
            radius,
            len(recommendations),
        )
        return RecommendationResult(recommendations=recommendations, cached=False, diagnostics=diagnostics)

    def invalidate_trip_cache(self, trip_id: str) -> int:
        return self.cache.invalidate_by_trip(trip_id)

    def invalidate_user_cache(self, user_id: str) -> int:
        return self.cache.invalidate_by_user(user_id)

    def attach_to_trip(
        self,
        trip: Trip,
        result: RecommendationResult,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> Trip:
        """Store a freshly generated set on the trip, for callers that persist it."""
        trip.recommendations = [r.to_dict() for r in result.recommendations]
        trip.recommendations_version = self.weights.version
        trip.recommendations_generated_at = (clock or (lambda: datetime.now(timezone.utc)))()
        return trip
