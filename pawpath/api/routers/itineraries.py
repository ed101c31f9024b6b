import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from pawpath.api.dependencies import PipelineFactory, get_pipeline_factory
from pawpath.core.itinerary_pipeline import TripValidationError, validate_trip_request

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["itineraries"])


@router.post("/enhanced-itinerary")
async def generate_enhanced_itinerary(
    request: Request,
    pipeline_factory: PipelineFactory = Depends(get_pipeline_factory),
):
    """
    Generate a pet-friendly itinerary with policy requirements and
    pre-departure preparation for the submitted trip.
    """
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse({"error": "Invalid request body: Malformed JSON."}, status_code=400)

    try:
        validated = validate_trip_request(payload)
    except TripValidationError as e:
        logger.info("[Itinerary] Rejected request: %s", e)
        return JSONResponse({"error": str(e)}, status_code=400)

    try:
        pipeline = pipeline_factory()
        result = await pipeline.run(validated)
    except Exception as e:
        logger.exception("[Itinerary] Generation failed for %s", validated.trip.destination)
        message = str(e) or "An internal server error occurred during itinerary generation."
        return JSONResponse({"error": message}, status_code=500)

    return JSONResponse(result.to_wire())
