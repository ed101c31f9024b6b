from datetime import date

import pytest

from fakes import FakePlacesService, make_place
from pawpath.core.activity_pool import ActivityPool, UsedPlaceTracker, place_to_activity
from pawpath.core.day_scheduler import (
    MEAL_PLACEHOLDER_NAMES,
    DayScheduler,
    TripAnchors,
    build_pre_departure,
    city_for_day,
    trip_length_days,
)
from pawpath.core.places_service import PlaceSearchClient
from pawpath.core.schemas import ActivityType, Coordinates, TripRequest

LISBON = Coordinates(lat=38.72, lng=-9.14)
AIRPORT = Coordinates(lat=38.77, lng=-9.13)


def _is_placeholder(activity) -> bool:
    return activity.type == ActivityType.PLACEHOLDER or activity.name in MEAL_PLACEHOLDER_NAMES


def _scheduler(places, payload, interest=(), restaurants=(), accommodation=None) -> DayScheduler:
    trip = TripRequest.model_validate(payload)
    start = date.fromisoformat(trip.start_date)
    end = date.fromisoformat(trip.end_date)
    return DayScheduler(
        PlaceSearchClient(places, has_pets=trip.pets > 0, budget=trip.budget),
        trip,
        start,
        trip_length_days(start, end),
        TripAnchors(
            accommodation_name=accommodation.name if accommodation else "Hotel",
            accommodation=accommodation,
            airport_coords=AIRPORT,
            primary_coords=LISBON,
        ),
        interest_pool=ActivityPool(interest),
        restaurant_pool=ActivityPool(restaurants),
        tracker=UsedPlaceTracker(),
    )


def test_city_for_day_splits_into_segments():
    cities = ["Lisbon", "Porto"]
    assert [city_for_day(d, cities, 4) for d in range(1, 5)] == ["Lisbon", "Lisbon", "Porto", "Porto"]
    assert [city_for_day(d, ["Lisbon"], 3) for d in range(1, 4)] == ["Lisbon"] * 3
    assert city_for_day(1, ["A", "B", "C"], 2) == "A"


def test_pre_departure_only_with_pets(lisbon_trip):
    assert len(build_pre_departure(TripRequest.model_validate(lisbon_trip))) == 2
    no_pets = {**lisbon_trip, "pets": 0, "petDetails": []}
    assert build_pre_departure(TripRequest.model_validate(no_pets)) == []


@pytest.mark.asyncio
async def test_builds_one_day_per_date_with_arrival_and_departure(lisbon_trip):
    hotel = make_place("hotel-1", "Hotel Lisboa", vicinity="Avenida 1")
    itinerary = await _scheduler(FakePlacesService(), lisbon_trip, accommodation=hotel).build()

    assert [d.day for d in itinerary.days] == [1, 2, 3, 4]
    assert [d.date for d in itinerary.days] == ["2025-06-10", "2025-06-11", "2025-06-12", "2025-06-13"]
    assert all(d.city == "Lisbon" for d in itinerary.days)

    day_one = itinerary.days[0]
    assert len(day_one.activities) == 7
    assert [a.name for a in day_one.activities[:4]] == [
        "Final Travel Prep",
        "Arrive in Lisbon",
        "Transfer to Accommodation",
        "Check-in: Hotel Lisboa",
    ]
    assert day_one.activities[3].place_id == "hotel-1"
    assert day_one.activities[4].name.startswith("Lunch: ")
    assert day_one.activities[5].start_time == "16:00"
    assert day_one.activities[6].start_time == "19:00"
    assert day_one.travel == "Travel day from New York to Lisbon."

    last = itinerary.days[-1]
    assert last.activities[0].name == "Final Vet Check (Optional but Recommended)"
    assert last.activities[-1].name == "Transfer to Departure Airport"
    assert last.activities[-1].type == ActivityType.TRANSFER
    assert len(itinerary.days[1].activities) == 4


@pytest.mark.asyncio
async def test_no_place_is_scheduled_twice(lisbon_trip):
    restaurants = [place_to_activity(make_place(f"r{i}", f"Restaurant {i}"), ActivityType.MEAL) for i in range(3)]
    # Same place as a restaurant: must not reappear as an activity
    interest = [place_to_activity(make_place("r0", "Restaurant 0")), place_to_activity(make_place("i1", "Park One"))]
    itinerary = await _scheduler(FakePlacesService(), lisbon_trip, interest, restaurants).build()

    scheduled = [a for d in itinerary.days for a in d.activities if a.place_id]
    assert len({a.place_id for a in scheduled}) == len(scheduled)
    assert len({a.location for a in scheduled}) == len(scheduled)
    for day in itinerary.days:
        located = [a.location for a in day.activities if not _is_placeholder(a)]
        assert len(located) == len(set(located)), day.day


@pytest.mark.asyncio
async def test_departure_logistics_have_their_own_locations(lisbon_trip):
    last = (await _scheduler(FakePlacesService(), lisbon_trip).build()).days[-1]

    assert last.activities[0].location == "Veterinary clinic, Lisbon"
    assert last.activities[-1].location == "Lisbon Airport"


@pytest.mark.asyncio
async def test_meal_slot_prefix_kept_for_venues_named_after_meals(lisbon_trip):
    restaurants = [
        place_to_activity(make_place("r1", "Lunchbox Cafe"), ActivityType.MEAL),
        place_to_activity(make_place("r2", "Dinner Bell"), ActivityType.MEAL),
    ]
    day_one = (await _scheduler(FakePlacesService(), lisbon_trip, restaurants=restaurants).build()).days[0]

    assert day_one.activities[4].name == "Lunch: Lunchbox Cafe"
    assert day_one.activities[6].name == "Dinner: Dinner Bell"


@pytest.mark.asyncio
async def test_day_one_afternoon_prefers_parks(lisbon_trip):
    museum = place_to_activity(make_place("m1", "City Museum", types=["museum"]))
    places = FakePlacesService()
    itinerary = await _scheduler(places, lisbon_trip, interest=[museum]).build()

    afternoon = itinerary.days[0].activities[5]
    assert afternoon.name.startswith("Afternoon: ")
    assert afternoon.place_id != "m1"
    assert any(s["place_type"] == "park" for s in places.searches)
    # The museum goes back to the pool for the next morning
    assert itinerary.days[1].activities[0].place_id == "m1"


@pytest.mark.asyncio
async def test_empty_searches_fall_back_to_placeholders(lisbon_trip):
    itinerary = await _scheduler(FakePlacesService(empty=True), lisbon_trip).build()

    day_one = itinerary.days[0]
    assert [a.name for a in day_one.activities[4:]] == [
        "Lunch Near Accommodation",
        "Afternoon: Relax or Local Walk",
        "Dinner Near Accommodation",
    ]
    day_two = itinerary.days[1]
    assert [a.name for a in day_two.activities] == [
        "Morning Exploration",
        "Lunch",
        "Afternoon Relaxation",
        "Dinner",
    ]
    assert [a.cost for a in day_two.activities] == ["Free", "$30 - $60", "Free", "$40 - $100"]
    assert day_two.activities[0].type == ActivityType.PLACEHOLDER


@pytest.mark.asyncio
async def test_additional_city_switch_geocodes_and_notes_travel(lisbon_trip):
    places = FakePlacesService()
    payload = {**lisbon_trip, "additionalCities": ["Porto"]}
    itinerary = await _scheduler(places, payload).build()

    assert [d.city for d in itinerary.days] == ["Lisbon", "Lisbon", "Porto", "Porto"]
    assert itinerary.days[2].travel == "Travel from Lisbon to Porto."
    assert itinerary.days[3].travel is None
    assert places.geocoded == ["Porto"]


@pytest.mark.asyncio
async def test_no_departure_logistics_without_pets(lisbon_trip):
    payload = {**lisbon_trip, "pets": 0, "petDetails": []}
    itinerary = await _scheduler(FakePlacesService(), payload).build()
    names = [a.name for a in itinerary.days[-1].activities]
    assert "Transfer to Departure Airport" not in names
    assert len(names) == 4
