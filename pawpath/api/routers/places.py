from urllib.parse import unquote

import requests
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response

from pawpath.api.dependencies import get_optional_places
from pawpath.core.places_service import PlaceSearchClient, PlacesService
from pawpath.core.schemas import BudgetTier

router = APIRouter(prefix="/api/places", tags=["places"])


def _require_places(places: PlacesService | None) -> PlacesService:
    if places is None:
        raise HTTPException(status_code=503, detail="Places API is not configured")
    return places


@router.post("/text-search")
async def text_search(
    query: str = Body(..., embed=True, min_length=2, max_length=200),
    pets: bool = Body(True, embed=True),
    budget: BudgetTier | None = Body(None, embed=True),
    places: PlacesService | None = Depends(get_optional_places),
) -> list[dict]:
    """Pet-aware text search. Returns an empty list when nothing matches."""
    client = PlaceSearchClient(_require_places(places), has_pets=pets, budget=budget)
    results = await client.text_search(query)
    return [place.model_dump(mode="json", exclude_none=True) for place in results]


@router.get("/photo")
def get_place_photo(
    ref: str = Query(..., description="Google Places photo reference"),
    w: int = Query(1080, ge=1, le=1600, description="Maximum width in pixels"),
    places: PlacesService | None = Depends(get_optional_places),
) -> Response:
    """
    Proxy endpoint for Google Places photos.
    Fetches photo from Google Places API and streams it to the client.
    """
    photo_url = _require_places(places).get_place_photo_url(unquote(ref), max_width=w)
    if not photo_url:
        raise HTTPException(status_code=400, detail="Invalid photo reference")

    try:
        response = requests.get(photo_url, timeout=10)
        response.raise_for_status()
    except requests.exceptions.RequestException as e:
        raise HTTPException(status_code=502, detail=f"Failed to fetch photo: {str(e)}")

    return Response(
        content=response.content,
        media_type=response.headers.get("Content-Type", "image/jpeg"),
        headers={"Cache-Control": "public, max-age=31536000"},
    )
