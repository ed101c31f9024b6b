import random

import pytest
from httpx import ASGITransport, AsyncClient

from fakes import FakeLLM, FakePlacesService
from pawpath.api.dependencies import get_pipeline_factory
from pawpath.core.day_scheduler import MEAL_PLACEHOLDER_NAMES
from pawpath.core.itinerary_pipeline import ItineraryPipeline
from pawpath.main import create_app

URL = "/api/ai/enhanced-itinerary"


def _app(fake_repo, places=None):
    app = create_app()
    places = places or FakePlacesService()

    def factory():
        return ItineraryPipeline(places, FakeLLM(fail=True), policy_store=fake_repo, rng=random.Random(3))

    app.dependency_overrides[get_pipeline_factory] = lambda: factory
    return app


@pytest.mark.asyncio
async def test_healthz_integration():
    transport = ASGITransport(app=create_app())
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.get("/healthz")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_lisbon_itinerary(lisbon_trip, fake_repo):
    transport = ASGITransport(app=_app(fake_repo))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(URL, json=lisbon_trip)

    assert response.status_code == 200
    body = response.json()
    days = body["itinerary"]["days"]
    assert len(days) == 4
    assert days[0]["city"] == "Lisbon"
    assert days[0]["date"] == "2025-06-10"

    transfer = next(a for a in days[3]["activities"] if a["name"] == "Transfer to Departure Airport")
    assert transfer["type"] == "transfer"

    first = days[0]["activities"][0]
    assert {"name", "description", "petFriendly", "location", "startTime", "endTime", "type"} <= first.keys()
    assert body["destinationSlug"] == "portugal"
    assert [s["step"] for s in body["policyRequirements"]] == [1, 2]
    assert body["generalPreparation"][0]["requirement"] == "Quarantine Info"
    assert len(body["preDeparturePreparation"]) == 2


@pytest.mark.asyncio
async def test_unknown_destination_policy_still_succeeds(lisbon_trip, fake_repo):
    payload = {**lisbon_trip, "destinationCountry": "Atlantis"}
    transport = ASGITransport(app=_app(fake_repo))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(URL, json=payload)

    body = response.json()
    assert response.status_code == 200
    assert body["destinationSlug"] is None
    assert body["policyRequirements"] == []
    assert body["generalPreparation"][0]["requirement"] == "Check Requirements"


@pytest.mark.asyncio
async def test_malformed_json_returns_400(fake_repo):
    transport = ASGITransport(app=_app(fake_repo))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(URL, content="{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid request body: Malformed JSON."}


@pytest.mark.asyncio
async def test_validation_errors_make_no_external_calls(lisbon_trip, fake_repo):
    places = FakePlacesService()
    transport = ASGITransport(app=_app(fake_repo, places))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        missing = await ac.post(URL, json={**lisbon_trip, "origin": ""})
        pets = await ac.post(URL, json={**lisbon_trip, "pets": 2})
        dates = await ac.post(URL, json={**lisbon_trip, "endDate": "2025-06-09"})

    assert missing.status_code == 400
    assert missing.json()["error"] == "Missing required fields: origin"
    assert pets.json()["error"] == "petDetails must match the number of pets"
    assert dates.json()["error"] == "End date must be after start date"
    assert places.searches == []


@pytest.mark.asyncio
async def test_pipeline_failure_returns_500(lisbon_trip):
    app = create_app()

    def factory():
        raise ValueError("GOOGLE_MAPS_API_KEY not found in environment variables")

    app.dependency_overrides[get_pipeline_factory] = lambda: factory
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(URL, json=lisbon_trip)

    assert response.status_code == 500
    assert "GOOGLE_MAPS_API_KEY" in response.json()["error"]


@pytest.mark.asyncio
async def test_boston_to_lisbon_example(fake_repo):
    payload = {
        "origin": "Boston",
        "originCountry": "United States",
        "destination": "Lisbon",
        "destinationCountry": "Portugal",
        "startDate": "2025-06-01",
        "endDate": "2025-06-04",
        "adults": 2,
        "pets": 1,
        "petDetails": [{"type": "Dog", "size": "Medium"}],
        "budget": "Moderate",
        "accommodation": "Hotels",
        "interests": ["Sightseeing"],
    }
    transport = ASGITransport(app=_app(fake_repo))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(URL, json=payload)

    days = response.json()["itinerary"]["days"]
    assert len(days) == 4
    assert [d["day"] for d in days] == [1, 2, 3, 4]
    assert days[0]["city"] == "Lisbon"
    assert len(days[0]["activities"]) == 7
    assert any(
        a["name"] == "Transfer to Departure Airport" and a["type"] == "transfer" for a in days[3]["activities"]
    )
    for day in days:
        located = [
            a["location"]
            for a in day["activities"]
            if a["type"] != "placeholder" and a["name"] not in MEAL_PLACEHOLDER_NAMES
        ]
        assert len(located) == len(set(located))
