"""Boundary interfaces the engine consumes, plus the default in-process implementations."""

from __future__ import annotations

import json
import re
import unicodedata
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

from models import Coordinates, User, VenueInfo


class FixtureCatalog(Protocol):
    def list_fixtures(self, league_id: str, date: str) -> List[Dict[str, Any]]:
        ...


class Geocoder(Protocol):
    def get_venue_coordinates(
        self, name: str, city: Optional[str] = None, country: Optional[str] = None
    ) -> Optional[Coordinates]:
        ...


class VenueLookup(Protocol):
    def get_venue(self, api_id: Any) -> Optional[VenueInfo]:
        ...


class TeamNameNormalizer(Protocol):
    def normalize_team_name(self, api_name: str) -> str:
        ...


class SubscriptionService(Protocol):
    def accessible_leagues(self, user: Optional[User]) -> List[str]:
        ...


# Club competitions searched for recommendations, in query order.
RECOMMENDATION_LEAGUES: List[str] = [
    "39",   # Premier League
    "40",   # Championship
    "41",   # League One
    "140",  # La Liga
    "135",  # Serie A
    "61",   # Ligue 1
    "78",   # Bundesliga
    "88",   # Eredivisie
    "94",   # Primeira Liga
    "97",   # Taca de Portugal
    "203",  # Super Lig
    "113",  # Allsvenskan
    "144",  # Jupiler Pro League
]

TIER_ACCESS: Dict[str, Dict[str, Any]] = {
    "freemium": {
        "restricted_leagues": ["40", "41"],
        "description": "Top flight leagues only",
    },
    "pro": {
        "restricted_leagues": [],
        "description": "Access to leagues around the world",
    },
    "planner": {
        "restricted_leagues": [],
        "description": "Access to all leagues and premium features",
    },
}


FALLBACK_TIER = "freemium"


class TierAccessService:
    """Blacklist-style league access per subscription tier."""

    def __init__(
        self,
        leagues: Optional[List[str]] = None,
        tiers: Optional[Dict[str, Dict[str, Any]]] = None,
        default_tier: str = "freemium",
    ) -> None:
        self.leagues = list(leagues if leagues is not None else RECOMMENDATION_LEAGUES)
        self.tiers = tiers if tiers is not None else TIER_ACCESS
        self.default_tier = default_tier

    def tier_for(self, user: Optional[User]) -> str:
        for tier in ((user.subscription_tier if user else None), self.default_tier):
            if tier and tier in self.tiers:
                return tier
        return FALLBACK_TIER

    def restricted_leagues(self, user: Optional[User]) -> List[str]:
        config = self.tiers.get(self.tier_for(user)) or TIER_ACCESS[FALLBACK_TIER]
        return [str(x) for x in config.get("restricted_leagues", [])]

    def accessible_leagues(self, user: Optional[User]) -> List[str]:
        blocked = set(self.restricted_leagues(user))
        return [league for league in self.leagues if league not in blocked]


def _normalize_token(text: Optional[str]) -> str:
    if not text:
        return ""
    folded = unicodedata.normalize("NFKD", text)
    folded = "".join(ch for ch in folded if not unicodedata.combining(ch))
    return re.sub(r"[^a-z0-9 ]+", "", folded.lower()).strip()


class TeamNameMapper:
    """Maps provider team names onto canonical names; unknown names pass through."""

    def __init__(self, aliases: Optional[Dict[str, str]] = None) -> None:
        self._aliases = {_normalize_token(k): v for k, v in (aliases or {}).items()}

    @classmethod
    def from_json(cls, path: Optional[Union[str, Path]]) -> "TeamNameMapper":
        if not path:
            return cls()
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls({str(k): str(v) for k, v in payload.items()})

    def normalize_team_name(self, api_name: str) -> str:
        if not api_name:
            return api_name
        return self._aliases.get(_normalize_token(api_name), api_name.strip())
