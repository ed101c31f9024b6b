from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CamelModel(BaseModel):
    """Models whose wire names follow the frontend's camelCase contract."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


# =============================================================================
# Trip input
# =============================================================================


class BudgetTier(str, Enum):
    BUDGET = "Budget"
    MODERATE = "Moderate"
    LUXURY = "Luxury"


class PetDetail(BaseModel):
    type: str
    size: str = ""


class LearnedPreference(CamelModel):
    type: str
    detail: str
    item_reference: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.type.strip().lower(), self.detail.strip().lower())


class TripRequest(CamelModel):
    origin: str
    origin_country: str = Field(alias="originCountry")
    destination: str
    destination_country: str = Field(alias="destinationCountry")
    additional_cities: list[str] = Field(default_factory=list, alias="additionalCities")
    start_date: str = Field(alias="startDate")
    end_date: str = Field(alias="endDate")
    adults: int = Field(ge=1)
    children: int = Field(0, ge=0)
    pets: int = Field(0, ge=0)
    pet_details: list[PetDetail] = Field(default_factory=list, alias="petDetails")
    budget: BudgetTier
    accommodation: str
    interests: list[str]
    additional_info: str = Field("", alias="additionalInfo")
    learned_preferences: list[LearnedPreference] = Field(
        default_factory=list, alias="learnedPreferences"
    )
    draft_id: str | None = Field(None, alias="draftId")

    @field_validator("accommodation", mode="before")
    @classmethod
    def join_accommodation(cls, value: Any) -> Any:
        # The trip builder stores accommodation as a list of preferences
        if isinstance(value, list):
            return ", ".join(str(v) for v in value if str(v).strip())
        return value

    @field_validator("interests")
    @classmethod
    def dedupe_interests(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        ordered: list[str] = []
        for interest in value:
            interest = interest.strip()
            if interest and interest not in seen:
                seen.add(interest)
                ordered.append(interest)
        return ordered

    @field_validator("additional_cities")
    @classmethod
    def clean_cities(cls, value: list[str]) -> list[str]:
        return [city.strip() for city in value if city and city.strip()]

    @field_validator("additional_info", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return value or ""


# =============================================================================
# Places & itinerary
# =============================================================================


class Coordinates(BaseModel):
    lat: float
    lng: float


class Place(BaseModel):
    """A candidate location returned by the places API. Never persisted."""

    place_id: str | None = None
    name: str | None = None
    address: str | None = Field(None, description="Formatted address")
    vicinity: str | None = None
    lat: float | None = None
    lng: float | None = None
    types: list[str] = Field(default_factory=list)
    rating: float | None = None
    user_ratings_total: int | None = None
    price_level: int | None = None

    # Details-only fields, filled lazily
    website: str | None = None
    phone_number: str | None = None
    opening_hours: list[str] = Field(default_factory=list)
    photo_references: list[str] = Field(default_factory=list)
    google_maps_url: str | None = None

    @property
    def display_location(self) -> str | None:
        return self.vicinity or self.address

    @property
    def coordinates(self) -> Coordinates | None:
        if self.lat is None or self.lng is None:
            return None
        return Coordinates(lat=self.lat, lng=self.lng)


class ActivityType(str, Enum):
    FLIGHT = "flight"
    TRANSFER = "transfer"
    ACCOMMODATION = "accommodation"
    MEAL = "meal"
    ACTIVITY = "activity"
    PLACEHOLDER = "placeholder"
    PREPARATION = "preparation"


class Activity(CamelModel):
    name: str
    description: str = ""
    pet_friendly: bool = Field(True, alias="petFriendly")
    pet_friendliness_details: str | None = None
    location: str
    coordinates: Coordinates | None = None
    start_time: str | None = Field(None, alias="startTime")
    end_time: str | None = Field(None, alias="endTime")
    cost: str | None = None
    type: ActivityType = ActivityType.ACTIVITY

    # Mirrored from the source Place when there is one
    place_id: str | None = None
    types: list[str] = Field(default_factory=list)
    estimated_duration: int | None = Field(None, description="Minutes")
    rating: float | None = None
    user_ratings_total: int | None = None
    website: str | None = None
    phone_number: str | None = None
    opening_hours: str | None = None
    photo_references: list[str] = Field(default_factory=list)


class ItineraryDay(CamelModel):
    day: int = Field(ge=1)
    date: str
    city: str
    activities: list[Activity] = Field(default_factory=list)
    travel: str | None = None
    narrative_intro: str | None = None
    narrative_outro: str | None = None


class Itinerary(CamelModel):
    days: list[ItineraryDay] = Field(default_factory=list)


class PolicyRequirementStep(BaseModel):
    step: int
    label: str
    text: str


class GeneralPreparationItem(BaseModel):
    requirement: str
    details: str


class ItineraryResponse(CamelModel):
    itinerary: Itinerary
    policy_requirements: list[PolicyRequirementStep] = Field(alias="policyRequirements")
    general_preparation: list[GeneralPreparationItem] = Field(alias="generalPreparation")
    pre_departure_preparation: list[Activity] = Field(alias="preDeparturePreparation")
    destination_slug: str | None = Field(None, alias="destinationSlug")

    def to_wire(self) -> dict[str, Any]:
        # destinationSlug is part of the contract even when unknown
        data = super().to_wire()
        data.setdefault("destinationSlug", None)
        return data


# =============================================================================
# Conversational builder
# =============================================================================


class TripState(CamelModel):
    """Trip state shared with the trip builder UI. Every field is optional and unknown keys are kept."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    origin: str | None = None
    origin_country: str | None = Field(None, alias="originCountry")
    destination: str | None = None
    destination_country: str | None = Field(None, alias="destinationCountry")
    additional_cities: list[str] | None = Field(None, alias="additionalCities")
    start_date: str | None = Field(None, alias="startDate")
    end_date: str | None = Field(None, alias="endDate")
    adults: int | None = None
    children: int | None = None
    pets: int | None = None
    pet_details: list[PetDetail] | None = Field(None, alias="petDetails")
    budget: str | None = None
    accommodation: str | list[str] | None = None
    interests: list[str] | None = None
    additional_info: str | None = Field(None, alias="additionalInfo")
    draft_id: str | None = Field(None, alias="draftId")
    itinerary: dict[str, Any] | None = None
    policy_requirements: list[dict[str, Any]] | None = Field(None, alias="policyRequirements")
    general_preparation: list[dict[str, Any]] | None = Field(None, alias="generalPreparation")
    pre_departure_preparation: list[dict[str, Any]] | None = Field(
        None, alias="preDeparturePreparation"
    )
    destination_slug: str | None = Field(None, alias="destinationSlug")
    learned_preferences: list[LearnedPreference] | None = Field(None, alias="learnedPreferences")


class ChatBuilderRequest(CamelModel):
    message_content: str = Field("", alias="messageContent")
    thread_id: str | None = Field(None, alias="threadId")
    current_trip_data: TripState | None = Field(None, alias="currentTripData")

    @field_validator("message_content", mode="before")
    @classmethod
    def none_to_empty(cls, value: Any) -> Any:
        return value or ""


class ChatBuilderResponse(CamelModel):
    reply: str
    updated_trip_data: dict[str, Any] | None = Field(None, alias="updatedTripData")
    trigger_itinerary_generation: bool | None = Field(None, alias="triggerItineraryGeneration")
    thread_id: str | None = Field(None, alias="threadId")
