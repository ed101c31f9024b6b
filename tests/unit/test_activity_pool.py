import random

import pytest

from fakes import FakePlacesService, make_place
from pawpath.core.activity_pool import (
    ActivityPool,
    UsedPlaceTracker,
    build_interest_pool,
    estimate_cost,
    interest_query_text,
    InterestQuery,
    place_price_level_to_cost,
    place_to_activity,
)
from pawpath.core.places_service import PlaceSearchClient
from pawpath.core.schemas import ActivityType, Coordinates, Place


@pytest.mark.parametrize(
    "level, cost",
    [(None, "$30 - $60"), (0, "$ - $"), (1, "$ - $"), (2, "$$ - $$"), (3, "$$$ - $$$$"), (4, "$$$$+")],
)
def test_price_level_to_cost(level, cost):
    assert place_price_level_to_cost(level) == cost


def test_estimate_cost_refines_unknown_price_by_type():
    assert estimate_cost(Place(name="Museu", types=["museum"])) == "$20 - $50"
    assert estimate_cost(Place(name="Parque", types=["park"])) == "Free - $20"
    assert estimate_cost(Place(name="Cafe", types=["cafe"], price_level=3)) == "$$$ - $$$$"
    assert estimate_cost(Place(name="Thing", types=["store"])) == "$30 - $60"


def test_place_to_activity_uses_fallback_location_and_meal_defaults():
    activity = place_to_activity(Place(place_id="r1", types=[]), ActivityType.MEAL, fallback_location="Lisbon")
    assert activity.name == "Pet-Friendly Meal Spot"
    assert activity.description == "Restaurant/Cafe"
    assert activity.location == "Lisbon"
    assert activity.type == ActivityType.MEAL


def test_tracker_matches_by_identity_or_location():
    tracker = UsedPlaceTracker()
    first = place_to_activity(make_place("a", "Castle", vicinity="Rua A"))
    tracker.mark(first)

    assert tracker.is_used(make_place("a", "Castle renamed", vicinity="Rua Z"))
    assert tracker.is_used(make_place("b", "Other", vicinity="Rua A"))
    assert not tracker.is_used(make_place("c", "Third", vicinity="Rua C"))

    nameless_id = Place(name="Kiosk", lat=1.0, lng=2.0, vicinity="Rua K")
    tracker.mark(place_to_activity(nameless_id))
    assert tracker.is_used(Place(name="kiosk", lat=1.0, lng=2.0, vicinity="elsewhere"))

    tracker.unmark(first)
    assert not tracker.is_used(make_place("a", "Castle", vicinity="Rua A"))


def test_pool_take_skips_used_and_put_back_restores():
    tracker = UsedPlaceTracker()
    a = place_to_activity(make_place("a", "A"))
    b = place_to_activity(make_place("b", "B"))
    tracker.mark(a)
    pool = ActivityPool([a, b])

    taken = pool.take(tracker)
    assert taken.place_id == "b"
    assert pool.take(tracker) is None

    pool.put_back(taken, tracker)
    assert len(pool) == 1
    assert pool.take(tracker).place_id == "b"


def test_interest_query_text():
    assert interest_query_text(InterestQuery(place_type="tourist_attraction"), "Lisbon") == "tourist attraction in Lisbon"
    assert interest_query_text(InterestQuery("pet friendly park"), "Lisbon") == "pet friendly park in Lisbon"


@pytest.mark.asyncio
async def test_interest_pool_dedupes_and_slices():
    fake = FakePlacesService(results_per_query=3)
    client = PlaceSearchClient(fake, has_pets=True)
    seen = {"p1-0"}

    pool = await build_interest_pool(
        client,
        ["Sightseeing", "Outdoor Adventures"],
        "Lisbon",
        Coordinates(lat=38.7, lng=-9.1),
        trip_days=3,
        seen_place_ids=seen,
        pet_friendly=True,
        rng=random.Random(7),
    )

    # One search per interest suffices for three candidates
    assert len(fake.searches) == 2
    assert len(pool) == 4
    assert len({a.place_id for a in pool}) == 4
    assert "p1-0" not in {a.place_id for a in pool}
    assert {"p1-1", "p1-2", "p2-0", "p2-1", "p2-2"} <= seen
    assert all(s["radius"] == 15000 for s in fake.searches)


@pytest.mark.asyncio
async def test_unknown_interest_uses_other_and_single_day_needs_nothing():
    fake = FakePlacesService()
    client = PlaceSearchClient(fake, has_pets=False)
    pool = await build_interest_pool(
        client, ["Knitting"], "Lisbon", Coordinates(lat=0, lng=0), 1, set(), pet_friendly=False
    )
    assert pool == []
    assert fake.searches[0]["place_type"] == "point_of_interest"
