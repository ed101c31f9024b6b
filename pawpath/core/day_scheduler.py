"""
Assemble the day-by-day itinerary skeleton from the candidate pools.

Every slot is resolved in three tiers: the shared pool, a live fallback
search around the day's city, then a hand-written placeholder. Day 1 is a
fixed arrival sequence; the last day gets departure logistics when the
party travels with pets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta

from pawpath.core.activity_pool import ActivityPool, UsedPlaceTracker, place_to_activity
from pawpath.core.places_service import PlaceSearchClient
from pawpath.core.schemas import (
    Activity,
    ActivityType,
    Coordinates,
    Itinerary,
    ItineraryDay,
    Place,
    TripRequest,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Slot:
    start: str
    end: str


MORNING = Slot("10:00", "13:00")
LUNCH = Slot("13:00", "14:00")
AFTERNOON = Slot("15:00", "18:00")
DINNER = Slot("19:00", "20:30")

# Placeholder meals already name their slot
MEAL_PLACEHOLDER_NAMES = {"Lunch", "Lunch Near Accommodation", "Dinner", "Dinner Near Accommodation"}

DAY_ONE_LUNCH = Slot("14:30", "15:30")
DAY_ONE_AFTERNOON = Slot("16:00", "17:30")


@dataclass(frozen=True)
class FallbackSearch:
    query: str
    place_type: str
    radius: int


@dataclass
class TripAnchors:
    """Locations resolved before scheduling starts."""

    accommodation_name: str
    accommodation: Place | None
    airport_coords: Coordinates | None
    primary_coords: Coordinates


def trip_length_days(start: date, end: date) -> int:
    return (end - start).days + 1


def city_for_day(day: int, cities: list[str], trip_days: int) -> str:
    """Split the trip into contiguous city segments; day 1 is always the first city."""
    index = (day - 1) * len(cities) // trip_days
    return cities[min(index, len(cities) - 1)]


def build_pre_departure(trip: TripRequest) -> list[Activity]:
    if trip.pets <= 0:
        return []
    origin = trip.origin or "Origin City"
    return [
        Activity(
            name="Veterinarian Visit & Paperwork",
            description=(
                "Schedule a vet appointment 1-2 weeks before departure. Obtain required "
                "vaccinations/treatments and a health certificate stating your pet is fit to "
                "travel. Ensure all documentation matches the destination country's requirements."
            ),
            location=origin,
            cost="Varies ($50-$200+)",
            type=ActivityType.PREPARATION,
        ),
        Activity(
            name="Airline & Transport Confirmation",
            description=(
                "Confirm pet booking with your airline. Review their specific check-in procedures "
                "and crate requirements. Arrange pet-friendly transport to the airport."
            ),
            location=origin,
            cost="Varies",
            type=ActivityType.PREPARATION,
        ),
    ]


class DayScheduler:
    def __init__(
        self,
        client: PlaceSearchClient,
        trip: TripRequest,
        start: date,
        trip_days: int,
        anchors: TripAnchors,
        interest_pool: ActivityPool,
        restaurant_pool: ActivityPool,
        tracker: UsedPlaceTracker | None = None,
    ):
        self.client = client
        self.trip = trip
        self.start = start
        self.trip_days = trip_days
        self.anchors = anchors
        self.interest_pool = interest_pool
        self.restaurant_pool = restaurant_pool
        self.tracker = tracker or UsedPlaceTracker()
        self.cities = [trip.destination, *trip.additional_cities]

    async def build(self) -> Itinerary:
        itinerary = Itinerary(days=[await self._build_day_one()])

        current_city = self.trip.destination
        current_coords = self.anchors.primary_coords
        for day in range(2, self.trip_days + 1):
            city = city_for_day(day, self.cities, self.trip_days)
            travel = None
            if city != current_city:
                coords = await self.client.geocode(city)
                if coords is None:
                    logger.warning("[DayScheduler] Could not geocode %s, keeping previous coordinates", city)
                travel = f"Travel from {current_city} to {city}."
                current_city, current_coords = city, coords or current_coords
                logger.info("[DayScheduler] Day %d switches to %s", day, city)

            itinerary.days.append(await self._build_day(day, current_city, current_coords, travel))

        return itinerary

    def _date_for(self, day: int) -> str:
        return (self.start + timedelta(days=day - 1)).isoformat()

    async def _fallback(
        self, search: FallbackSearch, coords: Coordinates, activity_type: ActivityType, city: str
    ) -> Activity | None:
        results = await self.client.text_search(
            search.query, place_type=search.place_type, location=coords, radius=search.radius
        )
        for place in results:
            if self.tracker.is_used(place):
                continue
            activity = place_to_activity(place, activity_type, fallback_location=city)
            self.tracker.mark(activity)
            return activity
        return None

    async def _resolve(
        self,
        pool: ActivityPool,
        search: FallbackSearch,
        coords: Coordinates,
        activity_type: ActivityType,
        city: str,
        placeholder: Activity,
    ) -> Activity:
        activity = pool.take(self.tracker)
        if activity is not None:
            return activity
        activity = await self._fallback(search, coords, activity_type, city)
        if activity is not None:
            return activity
        logger.info("[DayScheduler] Using placeholder '%s' in %s", placeholder.name, city)
        return placeholder

    async def _build_day_one(self) -> ItineraryDay:
        trip = self.trip
        acc_name = self.anchors.accommodation_name
        primary = self.anchors.primary_coords
        airport = self.anchors.airport_coords
        accommodation = self.anchors.accommodation

        activities = [
            Activity(
                name="Final Travel Prep",
                description=(
                    "Check flight status. Ensure all pet documents (vet certificates, airline forms) "
                    "are easily accessible. Confirm airline's specific pet check-in procedure."
                ),
                location=trip.origin,
                start_time="08:00",
                end_time="09:00",
                cost="Free",
                type=ActivityType.PREPARATION,
            ),
            Activity(
                name=f"Arrive in {trip.destination}",
                description=(
                    f"Flight from {trip.origin}. Proceed through immigration/customs (if applicable). "
                    "Collect baggage and pet at designated area."
                ),
                location=f"{trip.destination} Airport Area",
                coordinates=airport,
                start_time="11:00",
                end_time="12:00",
                cost="Flight cost varies",
                type=ActivityType.FLIGHT,
            ),
            Activity(
                name="Transfer to Accommodation",
                description=(
                    f"Take pre-booked pet-friendly taxi/shuttle or arrange transport to {acc_name}. "
                    "Check options like Uber Pet if available."
                ),
                location=trip.destination,
                coordinates=airport,
                start_time="12:00",
                end_time="13:00",
                cost="$50 - $100",
                type=ActivityType.TRANSFER,
            ),
            Activity(
                name=f"Check-in: {acc_name}",
                description=(
                    f"Check into {acc_name}. Settle your pet in. Confirm pet policies and any "
                    "designated relief areas with staff."
                ),
                location=(accommodation.vicinity if accommodation else None) or acc_name,
                coordinates=primary,
                start_time="14:00",
                end_time="14:30",
                cost="Accommodation cost varies",
                type=ActivityType.ACCOMMODATION,
                place_id=accommodation.place_id if accommodation else None,
            ),
        ]
        if accommodation is not None:
            self.tracker.mark(activities[-1])

        nearby_restaurant = FallbackSearch(f"pet friendly restaurant near {acc_name}", "restaurant", 5000)

        lunch = await self._resolve(
            self.restaurant_pool,
            nearby_restaurant,
            primary,
            ActivityType.MEAL,
            trip.destination,
            Activity(
                name="Lunch Near Accommodation",
                description="Find a nearby pet-friendly cafe or restaurant.",
                location=acc_name,
                coordinates=primary,
                cost="$30 - $60",
                type=ActivityType.MEAL,
            ),
        )
        activities.append(_in_slot(lunch, DAY_ONE_LUNCH, "Lunch: "))

        afternoon = self.interest_pool.take(self.tracker)
        if afternoon is not None and not any(
            word in afternoon.description.lower() for word in ("park", "hiking")
        ):
            self.interest_pool.put_back(afternoon, self.tracker)
            afternoon = None
        if afternoon is None:
            afternoon = await self._fallback(
                FallbackSearch(f"pet friendly park near {acc_name}", "park", 5000),
                primary,
                ActivityType.ACTIVITY,
                trip.destination,
            )
        if afternoon is None:
            afternoon = Activity(
                name="Relax or Local Walk",
                description="Settle in or take a short walk around your accommodation area.",
                location=acc_name,
                coordinates=primary,
                cost="Free",
                type=ActivityType.PLACEHOLDER,
            )
        activities.append(_in_slot(afternoon, DAY_ONE_AFTERNOON, "Afternoon: "))

        dinner = await self._resolve(
            self.restaurant_pool,
            nearby_restaurant,
            primary,
            ActivityType.MEAL,
            trip.destination,
            Activity(
                name="Dinner Near Accommodation",
                description="Find a pet-friendly restaurant near your accommodation.",
                location=acc_name,
                coordinates=primary,
                cost="$40 - $100",
                type=ActivityType.MEAL,
            ),
        )
        activities.append(_in_slot(dinner, DINNER, "Dinner: "))

        return ItineraryDay(
            day=1,
            date=self._date_for(1),
            city=trip.destination,
            activities=activities,
            travel=f"Travel day from {trip.origin or 'Origin'} to {trip.destination}.",
        )

    async def _build_day(
        self, day: int, city: str, coords: Coordinates, travel: str | None
    ) -> ItineraryDay:
        morning = await self._resolve(
            self.interest_pool,
            FallbackSearch(f"pet friendly park or trail in {city}", "park", 10000),
            coords,
            ActivityType.ACTIVITY,
            city,
            Activity(
                name="Morning Exploration",
                description=f"Discover a local park or interesting street in {city}.",
                location=city,
                coordinates=coords,
                cost="Free",
                type=ActivityType.PLACEHOLDER,
            ),
        )
        lunch = await self._resolve(
            self.restaurant_pool,
            FallbackSearch(f"pet friendly cafe or restaurant in {city}", "cafe", 5000),
            coords,
            ActivityType.MEAL,
            city,
            Activity(
                name="Lunch",
                description=f"Find a local pet-friendly cafe or casual spot in {city}.",
                location=city,
                coordinates=coords,
                cost="$30 - $60",
                type=ActivityType.MEAL,
            ),
        )
        afternoon = await self._resolve(
            self.interest_pool,
            FallbackSearch(f"pet friendly things to do in {city}", "point_of_interest", 10000),
            coords,
            ActivityType.ACTIVITY,
            city,
            Activity(
                name="Afternoon Relaxation",
                description=f"Visit a pet-friendly shop or relax near your location in {city}.",
                location=city,
                coordinates=coords,
                cost="Free",
                type=ActivityType.PLACEHOLDER,
            ),
        )
        dinner = await self._resolve(
            self.restaurant_pool,
            FallbackSearch(f"pet friendly restaurant in {city}", "restaurant", 10000),
            coords,
            ActivityType.MEAL,
            city,
            Activity(
                name="Dinner",
                description=f"Explore the local dining scene for a pet-friendly restaurant in {city}.",
                location=city,
                coordinates=coords,
                cost="$40 - $100",
                type=ActivityType.MEAL,
            ),
        )

        activities = [
            _in_slot(morning, MORNING),
            _in_slot(lunch, LUNCH, "Lunch: "),
            _in_slot(afternoon, AFTERNOON),
            _in_slot(dinner, DINNER, "Dinner: "),
        ]

        if day == self.trip_days and self.trip.pets > 0:
            activities.insert(
                0,
                Activity(
                    name="Final Vet Check (Optional but Recommended)",
                    description=(
                        "If your trip exceeded ~10-14 days or required specific entry paperwork, "
                        "consider a final vet visit for a health check/certificate for your return "
                        "or onward travel."
                    ),
                    location=f"Veterinary clinic, {city}",
                    start_time="09:00",
                    end_time="10:00",
                    cost="Varies ($50-$150+)",
                    type=ActivityType.PREPARATION,
                ),
            )
            activities.append(
                Activity(
                    name="Transfer to Departure Airport",
                    description=(
                        "Head to the airport for your departure. Arrange pet-friendly transport in "
                        "advance. Check options like Uber Pet if available."
                    ),
                    location=f"{city} Airport",
                    coordinates=coords,
                    start_time="16:00",
                    end_time="17:00",
                    cost="$50 - $100",
                    type=ActivityType.TRANSFER,
                )
            )

        logger.debug("[DayScheduler] Day %d in %s has %d activities", day, city, len(activities))
        return ItineraryDay(
            day=day, date=self._date_for(day), city=city, activities=activities, travel=travel
        )


def _in_slot(activity: Activity, slot: Slot, prefix: str = "") -> Activity:
    name = activity.name
    if prefix and name not in MEAL_PLACEHOLDER_NAMES and not name.startswith(prefix):
        name = f"{prefix}{name}"
    return activity.model_copy(update={"name": name, "start_time": slot.start, "end_time": slot.end})
