from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from models import Coordinates, SavedMatch, Trip, User, UserPreferences, VenueInfo
from services.venues import VenueDirectory

NOW = datetime(2025, 12, 1, 12, 0, tzinfo=timezone.utc)

PARC_DES_PRINCES: Coordinates = (2.2530, 48.8414)
STADE_DE_FRANCE: Coordinates = (2.3601, 48.9245)
PIERRE_MAUROY: Coordinates = (3.1305, 50.6119)  # Lille
GROUPAMA: Coordinates = (4.9816, 45.7653)  # Lyon
BERNABEU: Coordinates = (-3.6883, 40.4531)  # Madrid

VENUES = VenueDirectory(
    {
        "671": VenueInfo(id="671", name="Parc des Princes", city="Paris", country="France", coordinates=PARC_DES_PRINCES),
        "670": VenueInfo(id="670", name="Stade de France", city="Saint-Denis", country="France", coordinates=STADE_DE_FRANCE),
        "1265": VenueInfo(id="1265", name="Stade Pierre-Mauroy", city="Lille", country="France", coordinates=PIERRE_MAUROY),
        "666": VenueInfo(id="666", name="Groupama Stadium", city="Lyon", country="France", coordinates=GROUPAMA),
        "1456": VenueInfo(id="1456", name="Santiago Bernabeu", city="Madrid", country="Spain", coordinates=BERNABEU),
        "999": VenueInfo(id="999", name="Nowhere Park", city="Paris", country="France"),
    }
)


def raw_fixture(
    fixture_id: int,
    kickoff: str,
    *,
    league: int = 61,
    venue_id: Optional[int] = 670,
    home: Tuple[int, str] = (85, "Paris Saint Germain"),
    away: Tuple[int, str] = (79, "Lille"),
    short: str = "NS",
    long: str = "Not Started",
) -> Dict[str, Any]:
    return {
        "fixture": {
            "id": fixture_id,
            "date": kickoff,
            "venue": {"id": venue_id, "name": f"venue-{venue_id}", "city": "Somewhere"},
            "status": {"short": short, "long": long},
        },
        "league": {"id": league, "name": f"league-{league}", "country": "France", "logo": None},
        "teams": {
            "home": {"id": home[0], "name": home[1], "logo": None},
            "away": {"id": away[0], "name": away[1], "logo": None},
        },
    }


class FakeCatalog:
    """In-memory fixture catalog keyed by (league, date)."""

    def __init__(
        self,
        fixtures: Optional[Dict[Tuple[str, str], List[Dict[str, Any]]]] = None,
        failing: Tuple[str, ...] = (),
    ) -> None:
        self.fixtures = fixtures or {}
        self.failing = set(failing)
        self.calls: List[Tuple[str, str]] = []

    def add(self, league: str, date: str, *items: Dict[str, Any]) -> "FakeCatalog":
        self.fixtures.setdefault((str(league), date), []).extend(items)
        return self

    def list_fixtures(self, league_id: str, date: str) -> List[Dict[str, Any]]:
        self.calls.append((str(league_id), date))
        if str(league_id) in self.failing:
            raise RuntimeError(f"league {league_id} unavailable")
        return list(self.fixtures.get((str(league_id), date), []))


class FakeGeocoder:
    def __init__(self, known: Optional[Dict[str, Coordinates]] = None, fail: bool = False) -> None:
        self.known = known or {}
        self.fail = fail
        self.calls: List[Tuple[str, Optional[str], Optional[str]]] = []

    def get_venue_coordinates(self, name: str, city: Optional[str] = None, country: Optional[str] = None):
        self.calls.append((name, city, country))
        if self.fail:
            raise RuntimeError("geocoder down")
        return self.known.get(name)


class AllLeagues:
    """Subscription stub granting a fixed league list."""

    def __init__(self, leagues: List[str]) -> None:
        self.leagues = leagues

    def accessible_leagues(self, user) -> List[str]:
        return list(self.leagues)


def paris_trip(trip_id: str = "trip-1", **kwargs: Any) -> Trip:
    defaults: Dict[str, Any] = {"start_date": "2026-01-01", "end_date": "2026-01-09"}
    defaults.update(kwargs)
    return Trip(
        id=trip_id,
        matches=[
            SavedMatch(
                match_id="1001",
                date="2026-01-03T20:00:00+00:00",
                home_team="Paris Saint Germain",
                away_team="Marseille",
                league="61",
                venue=VenueInfo(name="Parc des Princes", city="Paris", country="France", coordinates=PARC_DES_PRINCES),
            )
        ],
        **defaults,
    )


def make_user(user_id: str = "user-1", **prefs: Any) -> User:
    tier = prefs.pop("tier", "pro")
    history = prefs.pop("history", [])
    return User(id=user_id, subscription_tier=tier, preferences=UserPreferences(**prefs), recommendation_history=history)
