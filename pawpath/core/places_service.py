"""
Google Places API integration for trip planning searches, details and photos.
"""

from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any

import requests

from pawpath.core.schemas import BudgetTier, Coordinates, Place
from pawpath.core.settings import get_settings

logger = logging.getLogger(__name__)

PLACES_API_BASE = "https://maps.googleapis.com/maps/api/place"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
REQUEST_TIMEOUT = 10

DETAILS_FIELDS = (
    "place_id,name,formatted_address,vicinity,geometry,types,rating,user_ratings_total,"
    "price_level,website,formatted_phone_number,opening_hours,photos,url"
)


def _parse_place(result: dict[str, Any]) -> Place:
    """Convert a raw Places API result into a Place."""
    lat = None
    lng = None
    geometry = result.get("geometry")
    if geometry and geometry.get("location"):
        location = geometry["location"]
        lat = location.get("lat")
        lng = location.get("lng")

    opening = result.get("opening_hours") or {}
    return Place(
        place_id=result.get("place_id"),
        name=result.get("name"),
        address=result.get("formatted_address"),
        vicinity=result.get("vicinity"),
        lat=lat,
        lng=lng,
        types=result.get("types", []),
        rating=result.get("rating"),
        user_ratings_total=result.get("user_ratings_total"),
        price_level=result.get("price_level"),
        website=result.get("website"),
        phone_number=result.get("formatted_phone_number"),
        opening_hours=opening.get("weekday_text", []),
        photo_references=[
            p["photo_reference"] for p in result.get("photos", []) if p.get("photo_reference")
        ],
        google_maps_url=result.get("url"),
    )


class PlacesService:
    """Service for interacting with Google Places API."""

    def __init__(self, api_key: str | None = None):
        api_key = api_key or get_settings().google_maps_api_key
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY not found in environment variables")
        self.api_key = api_key

    def text_search(
        self,
        query: str,
        place_type: str | None = None,
        location: Coordinates | None = None,
        radius: int | None = None,
        min_price: int | None = None,
        max_price: int | None = None,
    ) -> list[Place]:
        """
        Search for places using the Text Search API.

        Args:
            query: Search query (e.g., "pet friendly park in Lisbon")
            place_type: Optional Google place type restriction
            location: Optional bias center, only applied together with radius
            radius: Bias radius in meters
            min_price: Optional minprice hint (0-4)
            max_price: Optional maxprice hint (0-4)

        Returns:
            List of places; empty on zero results or any API/network error
        """
        params: dict[str, Any] = {"query": query, "key": self.api_key}
        if place_type:
            params["type"] = place_type
        if location is not None and radius:
            params["location"] = f"{location.lat},{location.lng}"
            params["radius"] = radius
        if min_price is not None:
            params["minprice"] = min_price
        if max_price is not None:
            params["maxprice"] = max_price

        try:
            response = requests.get(
                f"{PLACES_API_BASE}/textsearch/json", params=params, timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            data = response.json()
        except Exception as e:
            logger.warning("[Places] Search failed for '%s': %s", query, e)
            return []

        status = data.get("status")
        if status == "ZERO_RESULTS":
            logger.debug("[Places] No results for '%s'", query)
            return []
        if status != "OK":
            logger.warning(
                "[Places] Search for '%s' returned %s: %s",
                query,
                status,
                data.get("error_message", ""),
            )
            return []

        places = [_parse_place(r) for r in data.get("results", [])]
        logger.debug("[Places] %d results for '%s'", len(places), query)
        return places

    def place_details(self, place_id: str) -> Place | None:
        """
        Get detailed information about a specific place.

        Returns None on any failure; callers keep the data they already have.
        """
        params = {"place_id": place_id, "fields": DETAILS_FIELDS, "key": self.api_key}
        try:
            response = requests.get(
                f"{PLACES_API_BASE}/details/json", params=params, timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            data = response.json()
            if data.get("status") != "OK":
                logger.warning("[Places] Details failed for %s: %s", place_id, data.get("status"))
                return None
            place = _parse_place(data.get("result", {}))
        except Exception as e:
            logger.warning("[Places] Error getting place details for %s: %s", place_id, e)
            return None

        if not place.place_id:
            place.place_id = place_id
        return place

    def geocode(self, address: str) -> Coordinates | None:
        """
        Geocode an address or city name to coordinates.

        Returns:
            Coordinates, or None if geocoding fails
        """
        try:
            response = requests.get(
                GEOCODE_URL, params={"address": address, "key": self.api_key}, timeout=REQUEST_TIMEOUT
            )
            response.raise_for_status()
            data = response.json()
            if data.get("status") != "OK" or not data.get("results"):
                logger.warning("[Places] Geocoding failed for %s: %s", address, data.get("status"))
                return None
            location = data["results"][0]["geometry"]["location"]
            return Coordinates(lat=location["lat"], lng=location["lng"])
        except Exception as e:
            logger.warning("[Places] Error geocoding %s: %s", address, e)
            return None

    def get_place_photo_url(self, photo_reference: str, max_width: int = 1080) -> str | None:
        """Build the Places photo URL for a photo reference."""
        if not photo_reference:
            return None
        return (
            f"{PLACES_API_BASE}/photo"
            f"?maxwidth={max_width}"
            f"&photo_reference={photo_reference}"
            f"&key={self.api_key}"
        )

    async def text_search_async(self, *args: Any, **kwargs: Any) -> list[Place]:
        return await asyncio.to_thread(self.text_search, *args, **kwargs)

    async def place_details_async(self, place_id: str) -> Place | None:
        return await asyncio.to_thread(self.place_details, place_id)

    async def geocode_async(self, address: str) -> Coordinates | None:
        return await asyncio.to_thread(self.geocode, address)


class PlaceSearchClient:
    """
    Trip-aware wrapper around PlacesService.

    Shapes queries for the trip being planned: adds a "pet friendly" prefix
    when the party travels with pets and turns the budget tier into price hints.
    """

    def __init__(self, service: PlacesService, has_pets: bool, budget: BudgetTier | None = None):
        self.service = service
        self.has_pets = has_pets
        self.budget = budget

    def shape_query(self, query: str) -> str:
        lowered = query.lower()
        if self.has_pets and "pet friendly" not in lowered and "dog park" not in lowered:
            return f"pet friendly {query}"
        return query

    def price_hints(self, place_type: str | None) -> dict[str, int]:
        if self.budget == BudgetTier.BUDGET and place_type != "lodging":
            return {"max_price": 2}
        if self.budget == BudgetTier.LUXURY:
            return {"min_price": 3}
        return {}

    async def text_search(
        self,
        query: str,
        place_type: str | None = None,
        location: Coordinates | None = None,
        radius: int | None = None,
        trip_hints: bool = True,
    ) -> list[Place]:
        """
        Run a text search for this trip.

        With ``trip_hints=False`` the query is sent as-is (used for logistics
        lookups such as the arrival airport).
        """
        hints: dict[str, int] = {}
        if trip_hints:
            query = self.shape_query(query)
            hints = self.price_hints(place_type)
        return await self.service.text_search_async(
            query, place_type=place_type, location=location, radius=radius, **hints
        )

    async def place_details(self, place_id: str) -> Place | None:
        return await self.service.place_details_async(place_id)

    async def geocode(self, address: str) -> Coordinates | None:
        return await self.service.geocode_async(address)


@lru_cache(maxsize=1)
def get_places_service() -> PlacesService:
    return PlacesService()
