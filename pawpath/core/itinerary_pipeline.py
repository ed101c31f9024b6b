"""
Itinerary generation pipeline: validate, gather context, search, schedule, enhance.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import date
from typing import Any

from pydantic import ValidationError

from pawpath.core.activity_pool import (
    ActivityPool,
    UsedPlaceTracker,
    build_interest_pool,
    build_restaurant_pool,
)
from pawpath.core.day_scheduler import DayScheduler, TripAnchors, build_pre_departure, trip_length_days
from pawpath.core.llm_provider import LLMProvider
from pawpath.core.narrative_enhancer import EnhancementContext, NarrativeEnhancer
from pawpath.core.places_service import PlaceSearchClient, PlacesService
from pawpath.core.policy_lookup import PolicyStore, lookup_policy
from pawpath.core.preference_extractor import extract_preferences
from pawpath.core.schemas import Coordinates, ItineraryResponse, TripRequest

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = [
    "origin",
    "originCountry",
    "destination",
    "destinationCountry",
    "startDate",
    "endDate",
    "adults",
    "budget",
    "accommodation",
    "interests",
]


class TripValidationError(ValueError):
    """Trip input rejected before any external call is made."""


@dataclass
class ValidatedTrip:
    trip: TripRequest
    start: date
    end: date
    trip_days: int


def _is_missing(value: Any) -> bool:
    # An empty list is a valid answer; empty scalars are not
    if isinstance(value, list):
        return False
    return not value


def _parse_date(value: str) -> date:
    # Accept plain dates and ISO timestamps from the client
    return date.fromisoformat(value.strip()[:10])


def validate_trip_request(payload: Any) -> ValidatedTrip:
    if not isinstance(payload, dict):
        raise TripValidationError("Invalid request body: Malformed JSON.")

    missing = [f for f in REQUIRED_FIELDS if _is_missing(payload.get(f))]
    if missing:
        raise TripValidationError(f"Missing required fields: {', '.join(missing)}")

    try:
        trip = TripRequest.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise TripValidationError(f"Invalid trip request: {location}: {first['msg']}") from e

    if trip.pets > 0 and len(trip.pet_details) != trip.pets:
        raise TripValidationError("petDetails must match the number of pets")

    try:
        start = _parse_date(trip.start_date)
        end = _parse_date(trip.end_date)
    except ValueError as e:
        raise TripValidationError("Invalid date format; expected YYYY-MM-DD") from e

    if end <= start:
        raise TripValidationError("End date must be after start date")

    return ValidatedTrip(trip=trip, start=start, end=end, trip_days=trip_length_days(start, end))


def pet_summary(trip: TripRequest) -> str:
    if trip.pets <= 0:
        return "no pets"
    return ", ".join(f"{p.size} {p.type}".strip() for p in trip.pet_details)


class ItineraryPipeline:
    def __init__(
        self,
        places: PlacesService,
        provider: LLMProvider,
        policy_store: PolicyStore | None = None,
        rng: random.Random | None = None,
    ):
        self.places = places
        self.provider = provider
        self.policy_store = policy_store
        self.rng = rng or random.Random()

    async def run(self, validated: ValidatedTrip) -> ItineraryResponse:
        trip = validated.trip
        client = PlaceSearchClient(self.places, has_pets=trip.pets > 0, budget=trip.budget)
        logger.info(
            "[Pipeline] Generating %d-day itinerary for %s", validated.trip_days, trip.destination
        )

        preferences, policy = await asyncio.gather(
            extract_preferences(trip.additional_info, self.provider, trip.destination),
            lookup_policy(self.policy_store, trip.destination_country),
        )

        # Foundational searches
        airport_results = await client.text_search(
            f"{trip.destination} airport", place_type="airport", trip_hints=False
        )
        airport_coords = airport_results[0].coordinates if airport_results else None
        if airport_coords is None:
            logger.warning("[Pipeline] Could not find destination airport for %s", trip.destination)

        accommodation = None
        if trip.accommodation and trip.accommodation != "Flexible":
            options = await client.text_search(
                f"pet friendly {trip.accommodation.lower()} in {trip.destination}",
                place_type="lodging",
                location=airport_coords,
                radius=20000,
            )
            accommodation = next((p for p in options if p.coordinates is not None), None)

        primary_coords = (
            (accommodation.coordinates if accommodation else None)
            or airport_coords
            or Coordinates(lat=0, lng=0)
        )
        accommodation_name = (
            (accommodation.name if accommodation else None) or trip.accommodation or "Your Accommodation"
        )

        restaurants = await client.text_search(
            f"pet friendly restaurant in {trip.destination}",
            place_type="restaurant",
            location=primary_coords,
            radius=15000,
        )

        seen_place_ids = {p.place_id for p in restaurants if p.place_id}
        if accommodation and accommodation.place_id:
            seen_place_ids.add(accommodation.place_id)

        interest_activities = await build_interest_pool(
            client,
            trip.interests,
            trip.destination,
            primary_coords,
            validated.trip_days,
            seen_place_ids,
            pet_friendly=trip.pets > 0,
            rng=self.rng,
        )

        scheduler = DayScheduler(
            client,
            trip,
            validated.start,
            validated.trip_days,
            TripAnchors(
                accommodation_name=accommodation_name,
                accommodation=accommodation,
                airport_coords=airport_coords,
                primary_coords=primary_coords,
            ),
            interest_pool=ActivityPool(interest_activities),
            restaurant_pool=ActivityPool(build_restaurant_pool(restaurants, trip.destination)),
            tracker=UsedPlaceTracker(),
        )
        itinerary = await scheduler.build()

        enhancer = NarrativeEnhancer(self.provider, client)
        itinerary = await enhancer.enhance_itinerary(
            itinerary,
            EnhancementContext(
                destination=trip.destination,
                budget=trip.budget.value,
                pet_summary=pet_summary(trip),
                preferences=preferences + [p.detail for p in trip.learned_preferences],
                trip_days=validated.trip_days,
            ),
        )

        return ItineraryResponse(
            itinerary=itinerary,
            policy_requirements=policy.policy_requirements,
            general_preparation=policy.general_preparation,
            pre_departure_preparation=build_pre_departure(trip),
            destination_slug=policy.destination_slug,
        )
