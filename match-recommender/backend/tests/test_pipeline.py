from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

from fakes import BERNABEU, GROUPAMA, NOW, PARC_DES_PRINCES, STADE_DE_FRANCE, VENUES, FakeCatalog, make_user, paris_trip, raw_fixture
from models import (
    CandidateMatch,
    InteractionEntry,
    LeagueInfo,
    ProximityData,
    SavedVenue,
    ScoredCandidate,
    TeamInfo,
    VenueInfo,
)
from services.date_range import resolve_date_range
from services.fixtures import FixtureCatalogAdapter
from services.pipeline import (
    CandidatePipeline,
    build_reason,
    filter_by_proximity,
    remove_conflicts,
    remove_dismissed,
    remove_saved,
    restrict_leagues,
    select_candidates,
)

PARC = SavedVenue(name="Parc des Princes", coordinates=PARC_DES_PRINCES, city="Paris")


def _match(fixture_id: str, kickoff: datetime, coords=STADE_DE_FRANCE, league: str = "61") -> CandidateMatch:
    return CandidateMatch(
        id=fixture_id,
        kickoff=kickoff,
        venue=VenueInfo(name=f"venue-{fixture_id}", city="X", coordinates=coords),
        league=LeagueInfo(id=league, name="Ligue 1"),
        home=TeamInfo(name="Home", id="1"),
        away=TeamInfo(name="Away", id="2"),
    )


def _scored(fixture_id: str, score: float, idx: int = 0) -> ScoredCandidate:
    kickoff = datetime(2026, 1, 4, 15, tzinfo=timezone.utc)
    return ScoredCandidate(
        match=_match(fixture_id, kickoff),
        proximity=ProximityData(closest_venue=PARC, distance_miles=6.0),
        score=score,
        catalog_index=idx,
    )


def test_restrict_leagues() -> None:
    kickoff = datetime(2026, 1, 4, 15, tzinfo=timezone.utc)
    matches = [_match("1", kickoff, league="61"), _match("2", kickoff, league="40")]
    assert [m.id for m in restrict_leagues(matches, ["61", "39"])] == ["1"]


def test_filter_by_proximity_keeps_closest_saved_venue() -> None:
    kickoff = datetime(2026, 1, 4, 15, tzinfo=timezone.utc)
    lyon = SavedVenue(name="Groupama Stadium", coordinates=GROUPAMA)
    matches = [
        _match("near", kickoff, coords=STADE_DE_FRANCE),
        _match("far", kickoff, coords=BERNABEU),
        _match("nocoords", kickoff, coords=None),
    ]
    nearby = filter_by_proximity(matches, [lyon, PARC], radius_miles=400)
    assert [c.match.id for c in nearby] == ["near"]
    assert nearby[0].proximity.closest_venue is PARC
    assert nearby[0].proximity.distance_miles < 10
    assert nearby[0].catalog_index == 0


def test_radius_is_inclusive_and_bounded() -> None:
    kickoff = datetime(2026, 1, 4, 15, tzinfo=timezone.utc)
    matches = [_match("lyon", kickoff, coords=GROUPAMA)]
    assert filter_by_proximity(matches, [PARC], radius_miles=100) == []
    assert len(filter_by_proximity(matches, [PARC], radius_miles=400)) == 1


def test_remove_conflicts_uses_three_hour_window() -> None:
    trip = paris_trip()  # saved kickoff 2026-01-03 20:00Z
    candidates = [
        _scored("clash", 50),
        _scored("edge", 50),
        _scored("fine", 50),
    ]
    candidates[0].match.kickoff = datetime(2026, 1, 3, 18, 0, tzinfo=timezone.utc)
    candidates[1].match.kickoff = datetime(2026, 1, 3, 17, 0, tzinfo=timezone.utc)
    candidates[2].match.kickoff = datetime(2026, 1, 4, 15, 0, tzinfo=timezone.utc)
    assert [c.match.id for c in remove_conflicts(candidates, trip)] == ["edge", "fine"]


def test_dismissals_are_scoped_to_the_trip() -> None:
    user = make_user(
        history=[
            InteractionEntry(match_id="a", action="dismissed", trip_id="trip-1"),
            InteractionEntry(match_id="b", action="dismissed", trip_id="trip-2"),
            InteractionEntry(match_id="c", action="viewed", trip_id="trip-1"),
        ]
    )
    candidates = [_scored("a", 50), _scored("b", 50), _scored("c", 50)]
    assert [c.match.id for c in remove_dismissed(candidates, user, "trip-1")] == ["b", "c"]
    assert [c.match.id for c in remove_dismissed(candidates, user, "trip-2")] == ["a", "c"]


def test_select_prefers_qualified_then_backfills() -> None:
    scored = [_scored("low", 20, 0), _scored("high", 90, 1), _scored("mid", 40, 2), _scored("neg", -5, 3)]
    picks = select_candidates(scored, max_per_day=3, min_threshold=30)
    assert [c.match.id for c in picks] == ["high", "mid", "low"]


def test_select_never_returns_non_positive_scores() -> None:
    picks = select_candidates([_scored("zero", 0), _scored("neg", -70)], max_per_day=3, min_threshold=30)
    assert picks == []


def test_select_breaks_ties_by_catalog_order() -> None:
    scored = [_scored("b", 50, 1), _scored("a", 50, 0), _scored("c", 50, 2)]
    picks = select_candidates(scored, max_per_day=2, min_threshold=30)
    assert [c.match.id for c in picks] == ["a", "b"]


def test_build_reason_mentions_favorites() -> None:
    candidate = _scored("x", 100)
    candidate.debug_scores = {"favorite_team": 50.0, "favorite_league": 0.0, "favorite_venue": 40.0}
    reason = build_reason(candidate)
    assert reason.startswith("Near your Parc des Princes match (6 miles away)")
    assert "favorite team" in reason
    assert "favorite venues" in reason
    assert "favorite leagues" not in reason


def _pipeline(catalog: FakeCatalog) -> CandidatePipeline:
    adapter = FixtureCatalogAdapter(catalog, venues=VENUES, clock=lambda: NOW)
    return CandidatePipeline(adapter)


def test_run_day_scores_picks_and_marks_seen() -> None:
    catalog = FakeCatalog()
    catalog.add("61", "2026-01-04", raw_fixture(2001, "2026-01-04T15:00:00Z", venue_id=670))
    catalog.add("61", "2026-01-05", raw_fixture(2002, "2026-01-05T15:00:00Z", venue_id=1265))
    catalog.add("61", "2026-01-03", raw_fixture(2003, "2026-01-03T18:00:00Z", venue_id=670))
    trip = paris_trip()
    seen: set = set()

    recs = asyncio.run(
        _pipeline(catalog).run_day(
            "2026-01-04",
            saved_venues=[PARC],
            date_range=resolve_date_range(trip),
            allowed_leagues=["61"],
            trip=trip,
            user=make_user(),
            radius_miles=400,
            seen_ids=seen,
        )
    )

    # 2003 clashes with the saved 20:00 kickoff on the 3rd
    assert [r.match_id for r in recs] == ["2001", "2002"]
    assert recs[0].score == 100
    assert recs[0].recommended_for_date == "2026-01-04"
    assert recs[0].alternative_dates == ["2026-01-03", "2026-01-05"]
    assert recs[0].proximity == "8 miles from Parc des Princes"
    assert recs[1].reason.startswith("Near your Parc des Princes match (")
    assert seen == {"2001", "2002"}


def test_run_day_skips_matches_already_recommended() -> None:
    catalog = FakeCatalog().add("61", "2026-01-05", raw_fixture(2002, "2026-01-05T15:00:00Z"))
    trip = paris_trip()
    recs = asyncio.run(
        _pipeline(catalog).run_day(
            "2026-01-05",
            saved_venues=[PARC],
            date_range=resolve_date_range(trip),
            allowed_leagues=["61"],
            trip=trip,
            user=make_user(),
            radius_miles=400,
            seen_ids={"2002"},
        )
    )
    assert recs == []


def test_temporal_score_is_relative_to_target_day() -> None:
    catalog = FakeCatalog().add("61", "2026-01-05", raw_fixture(2002, "2026-01-05T15:00:00Z"))
    trip = paris_trip()
    recs = asyncio.run(
        _pipeline(catalog).run_day(
            "2026-01-06",
            saved_venues=[PARC],
            date_range=resolve_date_range(trip),
            allowed_leagues=["61"],
            trip=trip,
            user=make_user(),
            radius_miles=400,
        )
    )
    # one day off the target: 10 + 40 + 25 + 20
    assert [r.score for r in recs] == [95]
    assert date.fromisoformat(recs[0].recommended_for_date) == date(2026, 1, 6)


def test_remove_saved_drops_fixtures_already_in_trip() -> None:
    candidates = [_scored("1001", 50), _scored("2001", 50)]
    assert [c.match.id for c in remove_saved(candidates, paris_trip())] == ["2001"]


def test_saved_fixture_never_returns_even_for_a_favorite_team() -> None:
    # date-only saved match: midnight is more than 3h from the 20:00 kickoff
    trip = paris_trip()
    trip.matches[0].date = "2026-01-03"
    catalog = FakeCatalog().add("61", "2026-01-03", raw_fixture(1001, "2026-01-03T20:00:00Z", venue_id=671))
    recs = asyncio.run(
        _pipeline(catalog).run_day(
            "2026-01-02",
            saved_venues=[PARC],
            date_range=resolve_date_range(trip),
            allowed_leagues=["61"],
            trip=trip,
            user=make_user(favorite_teams=["85"], preference_strength="strong"),
            radius_miles=400,
        )
    )
    assert recs == []


def test_dismissals_follow_the_requested_trip_id() -> None:
    catalog = FakeCatalog().add("61", "2026-01-04", raw_fixture(2001, "2026-01-04T15:00:00Z"))
    trip = paris_trip("stored-id")
    user = make_user(history=[InteractionEntry(match_id="2001", action="dismissed", trip_id="trip-1")])
    recs = asyncio.run(
        _pipeline(catalog).run_day(
            "2026-01-04",
            saved_venues=[PARC],
            date_range=resolve_date_range(trip),
            allowed_leagues=["61"],
            trip=trip,
            user=user,
            radius_miles=400,
            trip_id="trip-1",
        )
    )
    assert recs == []


def test_fixtures_by_date_reuses_catalog_results() -> None:
    catalog = FakeCatalog().add("61", "2026-01-04", raw_fixture(2001, "2026-01-04T15:00:00Z"))
    pipeline = _pipeline(catalog)
    rng = resolve_date_range(paris_trip())
    memo: dict = {}

    first = asyncio.run(pipeline.fetch_candidates("2026-01-04", rng, ["61"], memo))
    second = asyncio.run(pipeline.fetch_candidates("2026-01-05", rng, ["61"], memo))

    assert [m.id for m in first] == [m.id for m in second] == ["2001"]
    assert sorted(memo) == ["2026-01-03", "2026-01-04", "2026-01-05", "2026-01-06"]
    assert len(catalog.calls) == 4
