"""
LLM post-processing of the itinerary skeleton.

For every day, concurrently: enrich activities from place details, rewrite
short descriptions, write an intro and outro line, and ask for a realistic
timeline. Every model call recovers locally; a day that fails as a whole is
returned unchanged.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from dataclasses import dataclass, field

from pawpath.core.llm_json import parse_schedule
from pawpath.core.llm_provider import LLMProvider
from pawpath.core.places_service import PlaceSearchClient
from pawpath.core.schemas import Activity, ActivityType, Itinerary, ItineraryDay, Place
from pawpath.core.time_utils import estimate_activity_duration, parse_time_to_minutes

logger = logging.getLogger(__name__)

SHORT_DESCRIPTION_CHARS = 80
MAX_DESCRIPTION_CHARS = 200

NO_REWRITE_TYPES = {
    ActivityType.FLIGHT,
    ActivityType.TRANSFER,
    ActivityType.PLACEHOLDER,
    ActivityType.PREPARATION,
}


@dataclass
class EnhancementContext:
    destination: str
    budget: str
    pet_summary: str
    preferences: list[str] = field(default_factory=list)
    trip_days: int = 1


def default_intro(day: ItineraryDay) -> str:
    return f"Day {day.day} in {day.city}: here's what's planned for you and your pet."


def default_outro(is_final: bool) -> str:
    if is_final:
        return "Safe travels home with your furry companion!"
    return "Rest up. More pet-friendly adventures await tomorrow!"


def truncate_description(text: str, limit: int = MAX_DESCRIPTION_CHARS) -> str:
    if len(text) <= limit:
        return text
    cut = text[: limit - 1]
    if " " in cut:
        cut = cut.rsplit(" ", 1)[0]
    return cut.rstrip(" ,.;:") + "…"


def _clean_reply(reply: str | None) -> str:
    return (reply or "").strip().strip('"').strip()


def needs_rewrite(activity: Activity) -> bool:
    return activity.type not in NO_REWRITE_TYPES and len(activity.description) < SHORT_DESCRIPTION_CHARS


def merge_details(activity: Activity, details: Place) -> Activity:
    """Copy details-only fields onto the activity, keeping what it already has."""
    update = {}
    if details.website and not activity.website:
        update["website"] = details.website
    if details.phone_number and not activity.phone_number:
        update["phone_number"] = details.phone_number
    if details.opening_hours and not activity.opening_hours:
        update["opening_hours"] = "; ".join(details.opening_hours)
    if details.photo_references and not activity.photo_references:
        update["photo_references"] = details.photo_references
    if details.rating is not None:
        update["rating"] = details.rating
    if details.user_ratings_total is not None:
        update["user_ratings_total"] = details.user_ratings_total
    return activity.model_copy(update=update) if update else activity


def sort_by_start_time(activities: list[Activity]) -> list[Activity]:
    return sorted(activities, key=lambda a: parse_time_to_minutes(a.start_time))


class NarrativeEnhancer:
    def __init__(self, provider: LLMProvider, places: PlaceSearchClient | None = None):
        self.provider = provider
        self.places = places

    async def enhance_itinerary(self, itinerary: Itinerary, ctx: EnhancementContext) -> Itinerary:
        days = itinerary.days
        results = await asyncio.gather(
            *(self.enhance_day(day, ctx, is_final=day.day == ctx.trip_days) for day in days),
            return_exceptions=True,
        )

        enhanced: list[ItineraryDay] = []
        for original, result in zip(days, results):
            if isinstance(result, BaseException):
                logger.warning("[NarrativeEnhancer] Day %d enhancement failed: %s", original.day, result)
                enhanced.append(original)
            else:
                enhanced.append(result)
        return Itinerary(days=enhanced)

    async def enhance_day(self, day: ItineraryDay, ctx: EnhancementContext, is_final: bool) -> ItineraryDay:
        day = day.model_copy(deep=True)
        day.narrative_intro = day.narrative_intro or default_intro(day)
        day.narrative_outro = day.narrative_outro or default_outro(is_final)

        day.activities = await self._enrich(day.activities)

        rewrite_indexes = [i for i, a in enumerate(day.activities) if needs_rewrite(a)]
        rewrites, intro, outro = await asyncio.gather(
            asyncio.gather(*(self._rewrite_description(day.activities[i], day, ctx) for i in rewrite_indexes)),
            self._narrative_line(day, ctx, "intro", is_final),
            self._narrative_line(day, ctx, "outro", is_final),
        )
        for i, text in zip(rewrite_indexes, rewrites):
            if text:
                day.activities[i] = day.activities[i].model_copy(update={"description": text})
        if intro:
            day.narrative_intro = intro
        if outro:
            day.narrative_outro = outro

        if len(day.activities) > 1:
            day.activities = await self._reschedule(day, ctx)

        day.activities = sort_by_start_time(day.activities)
        return day

    async def _chat(self, messages: list[dict], temperature: float) -> str | None:
        try:
            return await self.provider.chat_async(messages=messages, temperature=temperature)
        except Exception as e:
            logger.warning("[NarrativeEnhancer] Model call failed: %s", e)
            return None

    async def _enrich(self, activities: list[Activity]) -> list[Activity]:
        if self.places is None:
            return activities

        async def enrich_one(activity: Activity) -> Activity:
            if not activity.place_id:
                return activity
            details = await self.places.place_details(activity.place_id)
            return merge_details(activity, details) if details else activity

        return list(await asyncio.gather(*(enrich_one(a) for a in activities)))

    async def _rewrite_description(
        self, activity: Activity, day: ItineraryDay, ctx: EnhancementContext
    ) -> str | None:
        system = {
            "role": "system",
            "content": (
                "You write short, warm activity descriptions for pet-friendly travel itineraries. "
                f"Write at most {MAX_DESCRIPTION_CHARS} characters. Mention what makes the place "
                "enjoyable with a pet and any practical pet tip. Return ONLY the description text."
            ),
        }
        lines = [
            f"Activity: {activity.name}",
            f"Type: {activity.type.value}",
            f"Location: {activity.location}, {day.city}",
            f"Current description: {activity.description}",
            f"Traveling with: {ctx.pet_summary}",
            f"Budget: {ctx.budget}",
        ]
        if activity.rating is not None:
            lines.append(f"Rating: {activity.rating}")
        if ctx.preferences:
            lines.append(f"Traveler preferences: {'; '.join(ctx.preferences)}")

        reply = _clean_reply(
            await self._chat([system, {"role": "user", "content": "\n".join(lines)}], temperature=0.7)
        )
        if not reply:
            return None
        return truncate_description(reply)

    async def _narrative_line(
        self, day: ItineraryDay, ctx: EnhancementContext, kind: str, is_final: bool
    ) -> str | None:
        if kind == "intro":
            task = "Write ONE upbeat sentence introducing this day of the trip."
        else:
            task = (
                "Write ONE warm sentence closing this final day before heading home."
                if is_final
                else "Write ONE warm sentence closing this day and hinting at tomorrow."
            )
        system = {
            "role": "system",
            "content": (
                "You are a friendly travel writer for people traveling with their pets. "
                f"{task} Return ONLY the sentence."
            ),
        }
        user = {
            "role": "user",
            "content": (
                f"Day {day.day} in {day.city} ({day.date}). Traveling with: {ctx.pet_summary}.\n"
                "Activities: " + ", ".join(a.name for a in day.activities)
            ),
        }
        return _clean_reply(await self._chat([system, user], temperature=0.8)) or None

    async def _reschedule(self, day: ItineraryDay, ctx: EnhancementContext) -> list[Activity]:
        names = [a.name for a in day.activities]
        lines = []
        for a in day.activities:
            duration = a.estimated_duration or estimate_activity_duration(a.types, a.type.value)
            lines.append(
                f"- {a.name} | type: {a.type.value} | current: {a.start_time or '?'}-{a.end_time or '?'} "
                f"| estimated duration: {duration} min"
            )

        system = {
            "role": "system",
            "content": (
                "You are a travel itinerary timing optimizer for trips with pets. Reorder the day's "
                "activities into a realistic sequence and assign start and end times.\n\n"
                "RULES:\n"
                "1. Keep every activity exactly once and copy each name exactly as given.\n"
                "2. Use 24-hour HH:MM times and respect each estimated duration.\n"
                "3. Leave short breaks for the pet between activities.\n"
                "4. Meals go at normal meal times; flights, transfers and check-ins keep their times.\n\n"
                'Return ONLY a JSON array like [{"name": "...", "startTime": "09:00", "endTime": "10:30"}] '
                "with exactly one entry per activity."
            ),
        }
        user = {
            "role": "user",
            "content": f"Day {day.day} in {day.city}, budget {ctx.budget}:\n" + "\n".join(lines),
        }

        reply = await self._chat([system, user], temperature=0.3)
        result = parse_schedule(reply, names)
        if not result.ok:
            logger.info(
                "[NarrativeEnhancer] Keeping original schedule for day %d (%s %s)",
                day.day,
                result.error.value,
                result.detail,
            )
            return day.activities

        by_name: dict[str, deque[Activity]] = defaultdict(deque)
        for a in day.activities:
            by_name[a.name].append(a)
        return [
            by_name[item.name]
            .popleft()
            .model_copy(update={"start_time": item.start_time, "end_time": item.end_time})
            for item in result.value
        ]
