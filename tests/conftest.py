from typing import Any

import pytest

from fakes import FakeLLM, FakePlacesService, FakeRepo


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def fake_places() -> FakePlacesService:
    return FakePlacesService()


@pytest.fixture
def fake_repo() -> FakeRepo:
    return FakeRepo(
        policies=[
            {
                "country_name": "Portugal",
                "slug": "portugal",
                "entry_requirements": [
                    {"step": 2, "label": "Rabies Vaccine", "text": "Vaccinate at least 21 days before travel."},
                    {"step": 1, "label": "Microchip", "text": "ISO 11784/11785 compliant microchip."},
                ],
                "quarantine_info": "No quarantine for compliant pets.",
                "additional_info": {"pet_passport": "EU pet passport accepted."},
                "external_link": "https://example.org/portugal-pets",
            }
        ]
    )


@pytest.fixture
def lisbon_trip() -> dict[str, Any]:
    return {
        "origin": "New York",
        "originCountry": "United States",
        "destination": "Lisbon",
        "destinationCountry": "Portugal",
        "startDate": "2025-06-10",
        "endDate": "2025-06-13",
        "adults": 2,
        "children": 0,
        "pets": 1,
        "petDetails": [{"type": "Dog", "size": "Medium"}],
        "budget": "Moderate",
        "accommodation": "Hotel",
        "interests": ["Sightseeing", "Outdoor Adventures"],
        "additionalInfo": "",
    }
