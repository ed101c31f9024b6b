"""
Tools the trip-builder assistant can call.

Each tool is a ``ToolSpec`` registered by name with a pydantic model for its
arguments. Handlers read the merged trip state from a ``ToolContext`` and
write their changes into the shared delta.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Protocol

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from pawpath.core.places_service import PlacesService
from pawpath.core.run_state import ToolCall
from pawpath.core.schemas import Activity, ActivityType, BudgetTier, Itinerary, LearnedPreference, PetDetail
from pawpath.core.time_utils import parse_time_to_minutes

logger = logging.getLogger(__name__)

ESSENTIAL_FIELDS_FOR_GENERATION = ["destination", "startDate", "endDate"]
MAX_REQUIREMENT_TEXT = 150
MAX_SUGGESTIONS = 5

_DATE_FORMATS = ["%B %d, %Y", "%B %d %Y", "%b %d, %Y", "%b %d %Y", "%d %B %Y", "%m/%d/%Y"]


class ChatStore(Protocol):
    def get_pet_policy(self, country_name: str) -> dict | None: ...

    def update_learned_preferences(self, user_id: str, prefs: list[LearnedPreference]) -> bool: ...

    def save_trip_draft(self, user_id: str, trip_data: dict[str, Any], draft_id: str | None = None) -> str: ...


@dataclass
class ToolContext:
    trip: dict[str, Any]
    user_id: str | None = None
    store: ChatStore | None = None
    places: PlacesService | None = None
    delta: dict[str, Any] = field(default_factory=dict)
    trigger_generation: bool = False
    fallback_reply: str | None = None

    def merged(self) -> dict[str, Any]:
        return {**self.trip, **self.delta}


class ToolArgs(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    args_model: type[ToolArgs]
    handler: Callable[[Any, ToolContext], Any]

    def definition(self) -> dict[str, Any]:
        """Function definition in the shape the assistant configuration expects."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.args_model.model_json_schema(by_alias=True),
            },
        }


class ToolRegistry:
    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        self._tools[spec.name] = spec

    def tool(self, name: str, args_model: type[ToolArgs], description: str = ""):
        def decorator(handler: Callable[[Any, ToolContext], Any]):
            self.register(ToolSpec(name, description or (handler.__doc__ or "").strip(), args_model, handler))
            return handler

        return decorator

    @property
    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolSpec | None:
        return self._tools.get(name)

    def definitions(self) -> list[dict[str, Any]]:
        return [spec.definition() for spec in self._tools.values()]

    def execute(self, call: ToolCall, ctx: ToolContext) -> str:
        """Run one tool call and return its JSON-encoded output. Never raises."""
        spec = self._tools.get(call.name)
        if spec is None:
            logger.warning("[Tools] Unknown function call requested: %s", call.name)
            return _dump({"error": f"Unknown function: {call.name}"})

        try:
            args = spec.args_model.model_validate(json.loads(call.arguments or "{}"))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("[Tools] Invalid arguments for %s: %s", call.name, e)
            return _dump({"error": f"Invalid arguments for {call.name}: {e}"})

        logger.info("[Tools] Executing %s", call.name)
        try:
            output = spec.handler(args, ctx)
        except Exception as e:
            logger.exception("[Tools] Tool %s failed: %s", call.name, e)
            return _dump({"error": f"Tool {call.name} failed. Please inform the user."})
        return _dump(output)


def _dump(output: Any) -> str:
    return json.dumps(output, default=str)


def normalize_date(value: str) -> str:
    """Return YYYY-MM-DD when the value is a recognizable date, else the value unchanged."""
    text = value.strip()
    try:
        return datetime.fromisoformat(text[:10]).date().isoformat()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date().isoformat()
        except ValueError:
            continue
    logger.debug("[Tools] Keeping unparsed date '%s'", value)
    return value


def essentials_present(state: dict[str, Any]) -> bool:
    return all(str(state.get(f) or "").strip() for f in ESSENTIAL_FIELDS_FOR_GENERATION)


registry = ToolRegistry()


# =============================================================================
# Trip state setters
# =============================================================================


class SetDestinationArgs(ToolArgs):
    destination: str = Field(description="The primary destination (e.g., 'Paris, France', 'Tokyo').")
    destination_country: str | None = Field(None, alias="destinationCountry")


@registry.tool("set_destination", SetDestinationArgs, "Sets the primary destination for the trip.")
def set_destination(args: SetDestinationArgs, ctx: ToolContext) -> dict:
    ctx.delta["destination"] = args.destination
    if args.destination_country:
        ctx.delta["destinationCountry"] = args.destination_country
    return {"status": "success", "destination": args.destination}


class SetTravelDatesArgs(ToolArgs):
    start_date: str = Field(alias="startDate", description="Start date, YYYY-MM-DD preferred.")
    end_date: str = Field(alias="endDate", description="End date, YYYY-MM-DD preferred.")


@registry.tool("set_travel_dates", SetTravelDatesArgs, "Sets the start and end dates for the trip.")
def set_travel_dates(args: SetTravelDatesArgs, ctx: ToolContext) -> dict:
    ctx.delta["startDate"] = normalize_date(args.start_date)
    ctx.delta["endDate"] = normalize_date(args.end_date)
    return {"status": "success", "startDate": ctx.delta["startDate"], "endDate": ctx.delta["endDate"]}


class SetTravelersArgs(ToolArgs):
    adults: int = Field(ge=1, description="Number of adult travelers (18+).")
    children: int = Field(0, ge=0, description="Number of child travelers (0-17).")
    pets: int = Field(ge=0, description="Number of pets traveling.")
    pet_details: list[PetDetail] | None = Field(None, alias="petDetails")


@registry.tool("set_travelers", SetTravelersArgs, "Sets the number of adults, children, and pets.")
def set_travelers(args: SetTravelersArgs, ctx: ToolContext) -> dict:
    ctx.delta.update({"adults": args.adults, "children": args.children, "pets": args.pets})
    if args.pet_details is not None:
        ctx.delta["petDetails"] = [p.model_dump() for p in args.pet_details]
    return {"status": "success", "adults": args.adults, "children": args.children, "pets": args.pets}


class SetPreferencesArgs(ToolArgs):
    budget: BudgetTier | None = None
    accommodation: list[str] | None = Field(None, description="Preferred accommodation types.")
    interests: list[str] | None = Field(None, description="Interests or desired activities.")


@registry.tool(
    "set_preferences",
    SetPreferencesArgs,
    "Sets travel preferences like budget, accommodation types, or interests.",
)
def set_preferences(args: SetPreferencesArgs, ctx: ToolContext) -> dict:
    if args.budget:
        ctx.delta["budget"] = args.budget.value
    if args.accommodation:
        ctx.delta["accommodation"] = ", ".join(args.accommodation)
    if args.interests:
        ctx.delta["interests"] = args.interests
    ctx.fallback_reply = ctx.fallback_reply or "Preferences updated! Ready to generate the itinerary now?"
    return {"status": "success", "updated": [k for k in ("budget", "accommodation", "interests") if getattr(args, k)]}


class UpdateLearnedPreferencesArgs(ToolArgs):
    preferences: list[LearnedPreference]


def _persist_learned_preferences(ctx: ToolContext, prefs: list[LearnedPreference]) -> bool:
    if ctx.store is None:
        logger.warning("[Tools] No store configured, learned preferences for %s not saved", ctx.user_id)
        return False
    try:
        ctx.store.update_learned_preferences(ctx.user_id, prefs)
    except Exception as e:
        logger.warning("[Tools] Failed to persist learned preferences for %s: %s", ctx.user_id, e)
        return False
    return True


@registry.tool(
    "update_learned_preferences",
    UpdateLearnedPreferencesArgs,
    "Remembers preferences the user revealed during the conversation.",
)
def update_learned_preferences(args: UpdateLearnedPreferencesArgs, ctx: ToolContext) -> dict:
    existing = [LearnedPreference.model_validate(p) for p in ctx.merged().get("learnedPreferences") or []]
    seen = {p.key for p in existing}
    added: list[LearnedPreference] = []
    for pref in args.preferences:
        if pref.key not in seen:
            seen.add(pref.key)
            added.append(pref)

    updated = existing + added
    ctx.delta["learnedPreferences"] = [p.model_dump(mode="json", exclude_none=True) for p in updated]

    if ctx.user_id and not _persist_learned_preferences(ctx, updated):
        return {
            "status": "partial_success",
            "added": len(added),
            "message": "Preferences noted for this conversation but could not be saved to the profile.",
        }
    return {"status": "success", "added": len(added)}


# =============================================================================
# Lookups
# =============================================================================


def _require_places(ctx: ToolContext) -> PlacesService:
    if ctx.places is None:
        raise RuntimeError("Places search is not configured")
    return ctx.places


class SuggestPlacesArgs(ToolArgs):
    location: str
    interests: list[str] | None = None
    activity_type: str | None = None


@registry.tool(
    "suggest_places_of_interest",
    SuggestPlacesArgs,
    "Suggests pet-friendly places of interest in a location.",
)
def suggest_places_of_interest(args: SuggestPlacesArgs, ctx: ToolContext) -> list[dict]:
    places = _require_places(ctx)
    query = f"pet friendly {args.activity_type or 'attractions'} in {args.location}"
    if not args.activity_type and args.interests:
        query = f"pet friendly {' or '.join(args.interests)} in {args.location}"
    query = re.sub(r"[^a-zA-Z0-9\s]", "", query)

    return [
        {
            "name": p.name,
            "location": p.address or p.vicinity,
            "rating": p.rating,
            "place_id": p.place_id,
            "types": p.types,
            "coordinates": p.coordinates.model_dump() if p.coordinates else None,
        }
        for p in places.text_search(query)[:MAX_SUGGESTIONS]
    ]


class FindServiceArgs(ToolArgs):
    location: str
    service_type: str = Field(description="e.g. veterinary_care, pet_store, dog_groomer")


@registry.tool("find_nearby_service", FindServiceArgs, "Finds pet services such as vets near a location.")
def find_nearby_service(args: FindServiceArgs, ctx: ToolContext) -> list[dict]:
    places = _require_places(ctx)
    query = f"{args.service_type.replace('_', ' ')} in {args.location}"
    return [
        {
            "name": p.name,
            "location": p.address or p.vicinity,
            "phone": p.phone_number,
            "rating": p.rating,
            "place_id": p.place_id,
            "coordinates": p.coordinates.model_dump() if p.coordinates else None,
        }
        for p in places.text_search(query)[:MAX_SUGGESTIONS]
    ]


class CheckRegulationsArgs(ToolArgs):
    destination_country: str
    origin_country: str | None = None
    pet_type: str | None = None


@registry.tool(
    "check_travel_regulations",
    CheckRegulationsArgs,
    "Looks up pet entry requirements for a destination country.",
)
def check_travel_regulations(args: CheckRegulationsArgs, ctx: ToolContext) -> dict:
    if ctx.store is None:
        raise RuntimeError("Policy store is not configured")

    policy = ctx.store.get_pet_policy(args.destination_country)
    requirements = (policy or {}).get("entry_requirements")
    if isinstance(requirements, list) and requirements:
        truncated = []
        for req in requirements:
            if not isinstance(req, dict) or not req.get("label") or not req.get("text"):
                continue
            text = str(req["text"])
            if len(text) > MAX_REQUIREMENT_TEXT:
                text = text[:MAX_REQUIREMENT_TEXT] + "..."
            truncated.append({"label": req["label"], "text": text})
        return {
            "destination_country": args.destination_country,
            "country_slug": policy.get("slug"),
            "requirements": truncated,
        }
    return {
        "destination_country": args.destination_country,
        "message": (
            f"No specific entry requirements found for {args.destination_country} in the database. "
            "Please check official sources."
        ),
    }


@registry.tool("get_trip_details", ToolArgs, "Returns the current trip details.")
def get_trip_details(args: ToolArgs, ctx: ToolContext) -> dict:
    state = ctx.merged()
    if not state:
        return {"message": "No current trip data available from client."}
    itinerary = state.get("itinerary") or {}
    return {
        "destination": state.get("destination"),
        "destinationCountry": state.get("destinationCountry"),
        "startDate": state.get("startDate"),
        "endDate": state.get("endDate"),
        "interests": state.get("interests"),
        "hasItinerary": bool(itinerary.get("days")),
    }


# =============================================================================
# Itinerary actions
# =============================================================================


class NewActivityArgs(ToolArgs):
    name: str
    description: str = ""
    location: str = ""
    start_time: str | None = Field(None, alias="startTime")
    end_time: str | None = Field(None, alias="endTime")
    cost: str | None = None
    type: ActivityType = ActivityType.ACTIVITY
    pet_friendly: bool = Field(True, alias="petFriendly")


class AddActivityArgs(ToolArgs):
    day: int = Field(ge=1, description="Day number in the current itinerary.")
    activity: NewActivityArgs


@registry.tool("add_activity_to_day", AddActivityArgs, "Adds an activity to a day of the current itinerary.")
def add_activity_to_day(args: AddActivityArgs, ctx: ToolContext) -> dict:
    raw = ctx.merged().get("itinerary")
    if not raw or not raw.get("days"):
        return {"status": "error", "message": "There is no itinerary yet. Generate one first."}

    itinerary = Itinerary.model_validate(raw)
    target = next((d for d in itinerary.days if d.day == args.day), None)
    if target is None:
        return {"status": "error", "message": f"Day {args.day} not found in the current itinerary."}

    new = args.activity
    target.activities.append(
        Activity(
            name=new.name,
            description=new.description,
            pet_friendly=new.pet_friendly,
            location=new.location or target.city,
            start_time=new.start_time,
            end_time=new.end_time,
            cost=new.cost,
            type=new.type,
        )
    )
    target.activities.sort(key=lambda a: parse_time_to_minutes(a.start_time))

    ctx.delta["itinerary"] = itinerary.to_wire()
    return {"status": "success", "message": f"Added '{new.name}' to day {args.day}."}


@registry.tool("save_trip_progress", ToolArgs, "Saves the current trip as a draft for the signed-in user.")
def save_trip_progress(args: ToolArgs, ctx: ToolContext) -> dict:
    if not ctx.user_id:
        return {"status": "error", "message": "The user must be signed in to save trip progress."}
    if ctx.store is None:
        raise RuntimeError("Trip store is not configured")

    state = ctx.merged()
    try:
        draft_id = ctx.store.save_trip_draft(ctx.user_id, state, state.get("draftId"))
    except PermissionError as e:
        logger.warning("[Tools] Refused to save draft for %s: %s", ctx.user_id, e)
        return {
            "status": "error",
            "message": "That saved trip belongs to a different account, so it can't be updated.",
        }
    ctx.delta["draftId"] = draft_id
    return {"status": "success", "draftId": draft_id}


@registry.tool("generate_itinerary", ToolArgs, "Signals readiness to generate itinerary.")
def generate_itinerary(args: ToolArgs, ctx: ToolContext) -> dict:
    state = ctx.merged()
    if not essentials_present(state):
        logger.warning("[Tools] Generation requested but essential fields are missing")
        ctx.fallback_reply = (
            "Looks like we still need the destination and dates before I can generate the itinerary. "
            "Could you provide those?"
        )
        return {"status": "error", "message": "Destination, startDate and endDate are required."}

    ctx.trigger_generation = True
    ctx.fallback_reply = (
        f"Okay, generating your pet-friendly itinerary for {state['destination']}... "
        "This might take a minute."
    )
    return {"status": "success", "message": "Itinerary generation will start on the client."}
