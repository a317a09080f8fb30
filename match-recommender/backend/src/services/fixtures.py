from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import requests
from loguru import logger

from config import Configuration
from models import CandidateMatch, FixtureStatus, LeagueInfo, TeamInfo, VenueInfo
from services.collaborators import FixtureCatalog, TeamNameNormalizer, VenueLookup
from services.match_status import should_filter_match
from utils import parse_datetime, parse_day


class FixtureCatalogError(RuntimeError):
    pass


class MalformedFixtureError(ValueError):
    pass


@dataclass
class _RetryPolicy:
    retries: int = 2
    base_delay: float = 0.5


def season_for(day: str) -> int:
    """European season a date belongs to: July onwards starts a new season."""
    parsed = parse_day(day)
    if parsed is None:
        return datetime.now(timezone.utc).year
    return parsed.year if parsed.month >= 7 else parsed.year - 1


class ApiSportsClient:
    """Thin client for the API-Sports football fixtures endpoint."""

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.api_sports_base_url.rstrip("/")
        self.session = session or requests.Session()

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json", "x-apisports-key": self.cfg.api_sports_key or ""}
        policy = _RetryPolicy()
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.api_sports_timeout)
            except requests.RequestException as exc:
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise FixtureCatalogError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise FixtureCatalogError(f"upstream {resp.status_code}: {resp.text[:300]}")

            if not resp.ok:
                raise FixtureCatalogError(f"upstream {resp.status_code}: {resp.text[:300]}")

            try:
                return resp.json()
            except ValueError:
                raise FixtureCatalogError("invalid json response")

    def list_fixtures(self, league_id: str, date: str) -> List[Dict[str, Any]]:
        season = self.cfg.api_sports_season or season_for(date)
        payload = self._get("/fixtures", {"league": league_id, "date": date, "season": season})
        errors = payload.get("errors")
        if errors:
            raise FixtureCatalogError(f"api errors for league {league_id}: {errors}")
        response = payload.get("response") or []
        if not isinstance(response, list):
            raise FixtureCatalogError("unexpected response shape")
        return response


def _require(mapping: Any, key: str) -> Any:
    if not isinstance(mapping, dict) or mapping.get(key) in (None, ""):
        raise MalformedFixtureError(f"missing {key}")
    return mapping[key]


def _team(raw: Any, team_names: Optional[TeamNameNormalizer]) -> TeamInfo:
    name = str(_require(raw, "name"))
    if team_names is not None:
        try:
            name = team_names.normalize_team_name(name) or name
        except Exception as exc:
            logger.debug("team name mapping failed for {}: {}", name, exc)
    team_id = raw.get("id")
    return TeamInfo(name=name, id=str(team_id) if team_id is not None else None, logo=raw.get("logo"))


def normalize_fixture(
    raw: Dict[str, Any],
    *,
    team_names: Optional[TeamNameNormalizer] = None,
    venues: Optional[VenueLookup] = None,
) -> CandidateMatch:
    """Turn one provider fixture into a CandidateMatch or raise MalformedFixtureError."""
    fixture = raw.get("fixture") if isinstance(raw, dict) else None
    fixture_id = _require(fixture, "id")
    kickoff = parse_datetime(_require(fixture, "date"))
    if kickoff is None:
        raise MalformedFixtureError(f"bad kickoff for fixture {fixture_id}")

    league_raw = raw.get("league")
    league = LeagueInfo(
        id=str(_require(league_raw, "id")),
        name=str(league_raw.get("name") or ""),
        country=league_raw.get("country"),
        logo=league_raw.get("logo"),
    )

    teams = raw.get("teams")
    home = _team(_require(teams, "home"), team_names)
    away = _team(_require(teams, "away"), team_names)

    venue_raw = fixture.get("venue") or {}
    venue_id = venue_raw.get("id")
    known = venues.get_venue(venue_id) if venues is not None and venue_id is not None else None
    if known is not None:
        venue = VenueInfo(
            id=str(venue_id),
            name=known.name,
            city=known.city,
            country=known.country or league.country,
            coordinates=known.coordinates,
        )
    else:
        venue = VenueInfo(
            id=str(venue_id) if venue_id is not None else None,
            name=venue_raw.get("name") or "Unknown Venue",
            city=venue_raw.get("city") or "Unknown City",
            country=league.country or "Unknown Country",
        )

    status_raw = fixture.get("status") or {}
    status = FixtureStatus(short=status_raw.get("short"), long=status_raw.get("long"))

    return CandidateMatch(
        id=str(fixture_id),
        kickoff=kickoff,
        venue=venue,
        league=league,
        home=home,
        away=away,
        status=status,
    )


LeagueResult = Tuple[str, List[Dict[str, Any]], Optional[BaseException]]


class FixtureCatalogAdapter:
    """Fans out one catalog request per league and returns upcoming, normalized fixtures."""

    def __init__(
        self,
        catalog: FixtureCatalog,
        *,
        team_names: Optional[TeamNameNormalizer] = None,
        venues: Optional[VenueLookup] = None,
        timeout: float = 10.0,
        max_concurrency: int = 8,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.catalog = catalog
        self.team_names = team_names
        self.venues = venues
        self.timeout = timeout
        self.max_concurrency = max(1, max_concurrency)
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    async def _fetch_league(self, semaphore: asyncio.Semaphore, league_id: str, date: str) -> LeagueResult:
        async with semaphore:
            try:
                fixtures = await asyncio.wait_for(
                    asyncio.to_thread(self.catalog.list_fixtures, league_id, date),
                    timeout=self.timeout,
                )
                return (league_id, list(fixtures or []), None)
            except Exception as exc:
                return (league_id, [], exc)

    async def fetch_raw(self, date: str, allowed_leagues: Sequence[str]) -> List[LeagueResult]:
        semaphore = asyncio.Semaphore(self.max_concurrency)
        return await asyncio.gather(*(self._fetch_league(semaphore, str(lg), date) for lg in allowed_leagues))

    async def search_fixtures(self, date: str, allowed_leagues: Sequence[str]) -> List[CandidateMatch]:
        if not allowed_leagues:
            return []
        results = await self.fetch_raw(date, allowed_leagues)
        now = self.clock()

        matches: list[CandidateMatch] = []
        seen: set[str] = set()
        failed = 0
        for league_id, fixtures, error in results:
            if error is not None:
                failed += 1
                logger.warning("fixtures for league {} on {} unavailable: {!r}", league_id, date, error)
                continue
            for raw in fixtures:
                try:
                    match = normalize_fixture(raw, team_names=self.team_names, venues=self.venues)
                except MalformedFixtureError as exc:
                    logger.debug("dropping malformed fixture in league {}: {}", league_id, exc)
                    continue
                except Exception as exc:
                    logger.warning("failed to transform fixture in league {}: {}", league_id, exc)
                    continue
                if match.id in seen or should_filter_match(match, now):
                    continue
                seen.add(match.id)
                matches.append(match)

        logger.debug(
            "fixtures date={} leagues={} failed={} upcoming={}",
            date,
            len(allowed_leagues),
            failed,
            len(matches),
        )
        return matches
