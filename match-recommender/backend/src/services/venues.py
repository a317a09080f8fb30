from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from models import Coordinates, SavedVenue, Trip, VenueInfo
from services.collaborators import Geocoder


def _coerce_coordinates(value: Any) -> Optional[Coordinates]:
    if isinstance(value, (list, tuple)) and len(value) >= 2:
        try:
            lon, lat = float(value[0]), float(value[1])
        except (TypeError, ValueError):
            return None
        if -180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0:
            return (lon, lat)
    return None


class VenueDirectory:
    """Stadium records keyed by the fixture provider's venue id."""

    def __init__(self, venues: Optional[Dict[str, VenueInfo]] = None) -> None:
        self._venues = {str(k): v for k, v in (venues or {}).items()}

    @classmethod
    def from_records(cls, records: List[Dict[str, Any]]) -> "VenueDirectory":
        venues: dict[str, VenueInfo] = {}
        for rec in records:
            api_id = rec.get("id") or rec.get("apiId")
            name = rec.get("name")
            if api_id is None or not name:
                continue
            coords = rec.get("coordinates")
            if coords is None and isinstance(rec.get("location"), dict):
                coords = rec["location"].get("coordinates")
            venues[str(api_id)] = VenueInfo(
                id=str(api_id),
                name=str(name),
                city=rec.get("city"),
                country=rec.get("country"),
                coordinates=_coerce_coordinates(coords),
            )
        return cls(venues)

    @classmethod
    def from_json(cls, path: Optional[Union[str, Path]]) -> "VenueDirectory":
        if not path:
            return cls()
        payload = json.loads(Path(path).read_text(encoding="utf-8"))
        if isinstance(payload, dict):
            payload = payload.get("venues", [])
        return cls.from_records(list(payload))

    def get_venue(self, api_id: Any) -> Optional[VenueInfo]:
        if api_id is None:
            return None
        return self._venues.get(str(api_id))

    def __len__(self) -> int:
        return len(self._venues)


async def extract_venues(trip: Trip, geocoder: Optional[Geocoder]) -> List[SavedVenue]:
    """Coordinates of the trip's saved venues, geocoding the ones that lack them.

    Matches without usable venue data are skipped. An empty result means there
    is nothing to search around.
    """
    venues: list[SavedVenue] = []
    for match in trip.matches:
        venue = match.venue
        if venue is None:
            logger.debug("match {} has no venue data", match.match_id)
            continue

        coords = _coerce_coordinates(venue.coordinates)
        if coords is not None:
            venues.append(SavedVenue(name=venue.name, coordinates=coords, city=venue.city, country=venue.country))
            continue

        if not (venue.name and venue.city) or geocoder is None:
            logger.debug("match {} has insufficient venue data for recommendations", match.match_id)
            continue

        try:
            found = await asyncio.to_thread(geocoder.get_venue_coordinates, venue.name, venue.city, venue.country)
        except Exception as exc:
            logger.warning("geocoding failed for {}: {}", venue.name, exc)
            continue

        coords = _coerce_coordinates(found)
        if coords is None:
            logger.debug("could not geocode venue {}", venue.name)
            continue
        # lazily enrich the saved match so later calls skip the lookup
        venue.coordinates = coords
        venues.append(SavedVenue(name=venue.name, coordinates=coords, city=venue.city, country=venue.country))
        logger.info("geocoded venue {} at [{}, {}]", venue.name, coords[0], coords[1])
    return venues
