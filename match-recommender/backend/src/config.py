from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


class Configuration(BaseModel):
    # API-Sports fixture catalog
    api_sports_key: Optional[str] = Field(default=None)
    api_sports_base_url: str = Field(default="https://v3.football.api-sports.io")
    api_sports_timeout: float = Field(default=10.0)
    api_sports_season: Optional[int] = Field(default=None)
    fixtures_max_concurrency: int = Field(default=8)

    # Geoapify (venue geocoding)
    geoapify_api_key: Optional[str] = Field(default=None)
    geoapify_base_url: str = Field(default="https://api.geoapify.com")
    geoapify_timeout: int = Field(default=15)

    # Recommendation behaviour
    default_radius_miles: float = Field(default=400.0)
    min_radius_miles: float = Field(default=50.0)
    max_radius_miles: float = Field(default=1000.0)
    max_recommendations_per_day: int = Field(default=3)
    conflict_window_hours: float = Field(default=3.0)
    default_subscription_tier: str = Field(default="freemium")

    # Cache
    recommendation_cache_ttl: int = Field(default=24 * 60 * 60)
    recommendation_empty_cache_ttl: int = Field(default=60 * 60)
    recommendation_cache_max_entries: int = Field(default=512)

    # Data files
    scoring_weights_path: Optional[str] = Field(default=None)
    venues_path: Optional[str] = Field(default=None)
    team_aliases_path: Optional[str] = Field(default=None)

    log_level: str = Field(default="INFO")

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "api_sports_key": os.getenv("API_SPORTS_KEY"),
            "api_sports_base_url": os.getenv("API_SPORTS_BASE_URL"),
            "api_sports_timeout": os.getenv("API_SPORTS_TIMEOUT"),
            "api_sports_season": os.getenv("API_SPORTS_SEASON"),
            "fixtures_max_concurrency": os.getenv("FIXTURES_MAX_CONCURRENCY"),
            "geoapify_api_key": os.getenv("GEOAPIFY_API_KEY"),
            "geoapify_base_url": os.getenv("GEOAPIFY_BASE_URL"),
            "geoapify_timeout": os.getenv("GEOAPIFY_TIMEOUT"),
            "default_radius_miles": os.getenv("DEFAULT_RADIUS_MILES"),
            "min_radius_miles": os.getenv("MIN_RADIUS_MILES"),
            "max_radius_miles": os.getenv("MAX_RADIUS_MILES"),
            "max_recommendations_per_day": os.getenv("MAX_RECOMMENDATIONS_PER_DAY"),
            "conflict_window_hours": os.getenv("CONFLICT_WINDOW_HOURS"),
            "default_subscription_tier": os.getenv("DEFAULT_SUBSCRIPTION_TIER"),
            "recommendation_cache_ttl": os.getenv("RECOMMENDATION_CACHE_TTL"),
            "recommendation_empty_cache_ttl": os.getenv("RECOMMENDATION_EMPTY_CACHE_TTL"),
            "recommendation_cache_max_entries": os.getenv("RECOMMENDATION_CACHE_MAX_ENTRIES"),
            "scoring_weights_path": os.getenv("SCORING_WEIGHTS_PATH"),
            "venues_path": os.getenv("VENUES_PATH"),
            "team_aliases_path": os.getenv("TEAM_ALIASES_PATH"),
            "log_level": os.getenv("LOG_LEVEL"),
        }

        for k, v in env_map.items():
            if v is None or v == "":
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_fixtures_api(self) -> None:
        if not self.api_sports_key:
            raise ValueError("API_SPORTS_KEY is required")

    def effective_radius(self, radius: Optional[float]) -> float:
        """Clamp a user's radius preference into the supported range (miles)."""
        if radius is None or radius <= 0:
            return self.default_radius_miles
        return max(self.min_radius_miles, min(self.max_radius_miles, float(radius)))

    def log_summary(self) -> str:
        return (
            "fixtures=%s base=%s timeout=%s concurrency=%s geoapify=%s radius=%s per_day=%s api_key=%s"
            % (
                bool(self.api_sports_key),
                self.api_sports_base_url,
                self.api_sports_timeout,
                self.fixtures_max_concurrency,
                bool(self.geoapify_api_key),
                self.default_radius_miles,
                self.max_recommendations_per_day,
                mask_secret(self.api_sports_key),
            )
        )
