"""
Candidate activity and restaurant pools built from interest-driven place searches.
"""

from __future__ import annotations

import logging
import random
from collections import deque
from typing import Iterable, NamedTuple

from pawpath.core.places_service import PlaceSearchClient
from pawpath.core.schemas import Activity, ActivityType, Coordinates, Place
from pawpath.core.time_utils import estimate_activity_duration

logger = logging.getLogger(__name__)

MAX_ACTIVITIES_PER_INTEREST_TYPE = 3
ACTIVITIES_PER_DAY_GOAL = 2
INTEREST_SEARCH_RADIUS = 15000

DEFAULT_COST = "$30 - $60"


class InterestQuery(NamedTuple):
    query: str | None = None
    place_type: str | None = None


# Interest tag -> ordered sub-queries. Restaurants are searched separately.
INTEREST_QUERIES: dict[str, list[InterestQuery]] = {
    "Sightseeing": [
        InterestQuery(place_type="tourist_attraction"),
        InterestQuery(place_type="landmark"),
    ],
    "Outdoor Adventures": [
        InterestQuery("pet friendly hiking trail"),
        InterestQuery("pet friendly park"),
        InterestQuery(place_type="dog_park"),
        InterestQuery(place_type="park"),
    ],
    "Sports": [
        InterestQuery(place_type="stadium"),
        InterestQuery("sports complex"),
    ],
    "Food Tours": [
        InterestQuery("pet friendly cafe", "cafe"),
        InterestQuery("pet friendly brewery", "bar"),
    ],
    "Museums": [
        InterestQuery(place_type="museum"),
        InterestQuery(place_type="art_gallery"),
    ],
    "Shopping": [
        InterestQuery(place_type="shopping_mall"),
        InterestQuery("pet friendly market", "market"),
        InterestQuery("pet friendly shops"),
    ],
    "Spa and Wellness": [
        InterestQuery("quiet park", "park"),
    ],
    "Local Experiences": [
        InterestQuery("pet friendly walking tour"),
        InterestQuery("local market", "market"),
        InterestQuery(place_type="tourist_attraction"),
    ],
    "Photography": [
        InterestQuery("scenic viewpoint", "point_of_interest"),
        InterestQuery(place_type="park"),
        InterestQuery(place_type="landmark"),
    ],
    "Wildlife Viewing": [
        InterestQuery("nature reserve", "park"),
    ],
    "Water Activities": [
        InterestQuery("pet friendly beach", "beach"),
        InterestQuery("dog beach", "beach"),
    ],
    "Nightlife": [
        InterestQuery("pet friendly bar", "bar"),
        InterestQuery("pet friendly pub", "bar"),
    ],
    "Historical Sites": [
        InterestQuery(place_type="historical_landmark"),
        InterestQuery("historic site"),
    ],
    "Cultural Events": [
        InterestQuery("outdoor theater", "performing_arts_theater"),
    ],
    "Other": [InterestQuery(place_type="point_of_interest")],
}


def place_price_level_to_cost(price_level: int | None) -> str:
    """Map a Places price level (0-4) to a cost range string."""
    if price_level is None:
        return DEFAULT_COST
    if price_level <= 1:
        return "$ - $"
    if price_level == 2:
        return "$$ - $$"
    if price_level == 3:
        return "$$$ - $$$$"
    return "$$$$+"


def estimate_cost(place: Place) -> str:
    """Price-level cost, refined by place type when the level is unknown."""
    cost = place_price_level_to_cost(place.price_level)
    if place.price_level is not None:
        return cost

    types = set(place.types)
    if types & {"museum", "tourist_attraction", "amusement_park", "zoo"}:
        return "$20 - $50"
    if types & {"park", "landmark", "hiking_area", "natural_feature"}:
        return "Free - $20"
    if types & {"cafe", "bar"}:
        return "$10 - $30"
    return cost


def describe_types(types: list[str], default: str) -> str:
    if not types:
        return default
    return ", ".join(t.replace("_", " ") for t in types)


def place_to_activity(
    place: Place,
    activity_type: ActivityType = ActivityType.ACTIVITY,
    fallback_location: str = "",
    pet_friendly: bool = True,
    refine_cost: bool = False,
) -> Activity:
    """Convert a search result into a schedulable Activity."""
    is_meal = activity_type == ActivityType.MEAL
    return Activity(
        name=place.name or ("Pet-Friendly Meal Spot" if is_meal else "Interesting Place"),
        description=describe_types(place.types, "Restaurant/Cafe" if is_meal else "Attraction"),
        pet_friendly=pet_friendly,
        location=place.display_location or fallback_location,
        coordinates=place.coordinates,
        cost=estimate_cost(place) if refine_cost else place_price_level_to_cost(place.price_level),
        type=activity_type,
        place_id=place.place_id,
        types=place.types,
        estimated_duration=estimate_activity_duration(place.types, activity_type.value),
        rating=place.rating,
        user_ratings_total=place.user_ratings_total,
        website=place.website,
        phone_number=place.phone_number,
        opening_hours="; ".join(place.opening_hours) or None,
        photo_references=place.photo_references,
    )


class UsedPlaceTracker:
    """
    Places already scheduled in this itinerary.

    A candidate counts as used when either its identity (place id, else
    name plus coordinates) or its location string has been seen.
    """

    def __init__(self) -> None:
        self._identities: set[str] = set()
        self._locations: set[str] = set()

    @staticmethod
    def identity(place_id: str | None, name: str | None, coords: Coordinates | None) -> str | None:
        if place_id:
            return f"id:{place_id}"
        if name and coords is not None:
            return f"nc:{name.strip().lower()}@{coords.lat:.5f},{coords.lng:.5f}"
        return None

    def _keys(
        self,
        place_id: str | None,
        name: str | None,
        coords: Coordinates | None,
        location: str | None,
    ) -> tuple[str | None, str | None]:
        return self.identity(place_id, name, coords), (location or None)

    def is_used(self, item: Activity | Place) -> bool:
        if isinstance(item, Place):
            ident, location = self._keys(item.place_id, item.name, item.coordinates, item.display_location)
        else:
            ident, location = self._keys(item.place_id, item.name, item.coordinates, item.location)
        return (ident is not None and ident in self._identities) or (
            location is not None and location in self._locations
        )

    def mark(self, activity: Activity) -> None:
        ident, location = self._keys(
            activity.place_id, activity.name, activity.coordinates, activity.location
        )
        if ident is not None:
            self._identities.add(ident)
        if location is not None:
            self._locations.add(location)

    def unmark(self, activity: Activity) -> None:
        ident, location = self._keys(
            activity.place_id, activity.name, activity.coordinates, activity.location
        )
        self._identities.discard(ident)
        self._locations.discard(location)


class ActivityPool:
    """An ordered queue of candidates shared by the slots of one itinerary."""

    def __init__(self, activities: Iterable[Activity] = ()) -> None:
        self._queue: deque[Activity] = deque(activities)

    def __len__(self) -> int:
        return len(self._queue)

    def take(self, tracker: UsedPlaceTracker) -> Activity | None:
        """Pop the next candidate not yet used, marking it used."""
        while self._queue:
            activity = self._queue.popleft()
            if not tracker.is_used(activity):
                tracker.mark(activity)
                return activity
        return None

    def put_back(self, activity: Activity, tracker: UsedPlaceTracker) -> None:
        tracker.unmark(activity)
        self._queue.appendleft(activity)


def interest_query_text(spec: InterestQuery, destination: str) -> str:
    if spec.query:
        return spec.query if destination in spec.query else f"{spec.query} in {destination}"
    return f"{(spec.place_type or 'place').replace('_', ' ')} in {destination}"


async def build_interest_pool(
    client: PlaceSearchClient,
    interests: list[str],
    destination: str,
    location: Coordinates,
    trip_days: int,
    seen_place_ids: set[str],
    pet_friendly: bool,
    rng: random.Random | None = None,
) -> list[Activity]:
    """
    Search candidates for each interest, dedupe globally, shuffle and slice.

    ``seen_place_ids`` is shared with the rest of the run and updated in place.
    """
    rng = rng or random.Random()
    candidates: list[Activity] = []

    for interest in interests:
        queries = INTEREST_QUERIES.get(interest) or INTEREST_QUERIES["Other"]
        places_for_interest: list[Place] = []

        for spec in queries:
            results = await client.text_search(
                interest_query_text(spec, destination),
                place_type=spec.place_type,
                location=location,
                radius=INTEREST_SEARCH_RADIUS,
            )
            places_for_interest.extend(results)
            if len(places_for_interest) >= MAX_ACTIVITIES_PER_INTEREST_TYPE:
                break

        added = 0
        for place in places_for_interest:
            if not place.place_id or place.place_id in seen_place_ids:
                continue
            seen_place_ids.add(place.place_id)
            candidates.append(
                place_to_activity(
                    place,
                    ActivityType.ACTIVITY,
                    fallback_location=destination,
                    pet_friendly=pet_friendly,
                    refine_cost=True,
                )
            )
            added += 1
        logger.info("[ActivityPool] Interest '%s': %d new candidates", interest, added)

    rng.shuffle(candidates)
    needed = max(0, (trip_days - 1) * ACTIVITIES_PER_DAY_GOAL)
    logger.info("[ActivityPool] %d unique candidates, keeping %d", len(candidates), min(needed, len(candidates)))
    return candidates[:needed]


def build_restaurant_pool(restaurants: list[Place], destination: str) -> list[Activity]:
    return [
        place_to_activity(place, ActivityType.MEAL, fallback_location=destination)
        for place in restaurants
    ]
