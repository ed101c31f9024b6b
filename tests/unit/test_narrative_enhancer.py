import json

import pytest

from fakes import FakeLLM, FakePlacesService
from pawpath.core.narrative_enhancer import (
    EnhancementContext,
    NarrativeEnhancer,
    default_outro,
    truncate_description,
)
from pawpath.core.places_service import PlaceSearchClient
from pawpath.core.schemas import Activity, ActivityType, Itinerary, ItineraryDay, Place

CTX = EnhancementContext(
    destination="Lisbon",
    budget="Moderate",
    pet_summary="Medium Dog",
    preferences=["quiet parks"],
    trip_days=2,
)


def _day(number: int = 1) -> ItineraryDay:
    return ItineraryDay(
        day=number,
        date="2025-06-10",
        city="Lisbon",
        activities=[
            Activity(
                name="Arrive in Lisbon",
                description="Flight.",
                location="Airport",
                start_time="11:00",
                end_time="12:00",
                type=ActivityType.FLIGHT,
            ),
            Activity(
                name="Jardim da Estrela",
                description="park",
                location="Praça da Estrela",
                start_time="10:00",
                end_time="13:00",
                place_id="estrela",
            ),
        ],
    )


def _responder(schedule: str, description: str = "A leafy garden with shade and water bowls."):
    def respond(messages):
        system = messages[0]["content"]
        if "timing optimizer" in system:
            return schedule
        if "activity descriptions" in system:
            return description
        if "introducing" in system:
            return '"Sunny start in Lisbon!"'
        return "A calm evening to end the day."

    return respond


def test_truncate_description_cuts_on_word_boundary():
    text = "word " * 60
    short = truncate_description(text)
    assert len(short) <= 200
    assert short.endswith("…")
    assert truncate_description("short") == "short"


@pytest.mark.asyncio
async def test_rejected_schedule_keeps_times_and_sorts():
    llm = FakeLLM(_responder('[{"name": "Jardim da Estrela", "startTime": "09:00", "endTime": "10:00"}]'))
    day = await NarrativeEnhancer(llm).enhance_day(_day(), CTX, is_final=False)

    assert [a.name for a in day.activities] == ["Jardim da Estrela", "Arrive in Lisbon"]
    assert day.activities[0].start_time == "10:00"
    assert day.narrative_intro == "Sunny start in Lisbon!"
    assert day.narrative_outro == "A calm evening to end the day."


@pytest.mark.asyncio
async def test_accepted_schedule_applies_new_times():
    schedule = json.dumps(
        [
            {"name": "Arrive in Lisbon", "startTime": "11:00", "endTime": "12:00"},
            {"name": "Jardim da Estrela", "startTime": "14:00", "endTime": "15:30"},
        ]
    )
    day = await NarrativeEnhancer(FakeLLM(_responder(schedule))).enhance_day(_day(), CTX, is_final=False)

    assert [(a.name, a.start_time, a.end_time) for a in day.activities] == [
        ("Arrive in Lisbon", "11:00", "12:00"),
        ("Jardim da Estrela", "14:00", "15:30"),
    ]


@pytest.mark.asyncio
async def test_only_short_non_logistics_descriptions_are_rewritten():
    long_text = "Shady paths, a pond and plenty of benches. " * 10
    day = await NarrativeEnhancer(FakeLLM(_responder("[]", long_text))).enhance_day(_day(), CTX, is_final=False)

    by_name = {a.name: a for a in day.activities}
    assert by_name["Arrive in Lisbon"].description == "Flight."
    rewritten = by_name["Jardim da Estrela"].description
    assert rewritten.startswith("Shady paths")
    assert len(rewritten) <= 200


@pytest.mark.asyncio
async def test_model_failure_keeps_defaults():
    day = await NarrativeEnhancer(FakeLLM(fail=True)).enhance_day(_day(), CTX, is_final=True)

    assert day.narrative_intro == "Day 1 in Lisbon: here's what's planned for you and your pet."
    assert day.narrative_outro == default_outro(True)
    assert {a.description for a in day.activities} == {"Flight.", "park"}


@pytest.mark.asyncio
async def test_place_details_are_merged():
    class DetailedPlaces(FakePlacesService):
        def place_details(self, place_id):
            return Place(place_id=place_id, website="https://estrela.example", rating=4.7)

    enhancer = NarrativeEnhancer(FakeLLM(fail=True), PlaceSearchClient(DetailedPlaces(), has_pets=True))
    day = await enhancer.enhance_day(_day(), CTX, is_final=False)

    park = next(a for a in day.activities if a.place_id == "estrela")
    assert park.website == "https://estrela.example"
    assert park.rating == 4.7


@pytest.mark.asyncio
async def test_failed_day_is_returned_unchanged():
    class FlakyEnhancer(NarrativeEnhancer):
        async def enhance_day(self, day, ctx, is_final):
            if day.day == 2:
                raise RuntimeError("boom")
            return await super().enhance_day(day, ctx, is_final)

    original = Itinerary(days=[_day(1), _day(2)])
    result = await FlakyEnhancer(FakeLLM(fail=True)).enhance_itinerary(original, CTX)

    assert result.days[0].narrative_intro is not None
    assert result.days[1] == original.days[1]
    assert result.days[1].narrative_intro is None
