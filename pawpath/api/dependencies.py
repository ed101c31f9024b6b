import logging
from typing import Callable

from fastapi import Header

from pawpath.core.conversation_builder import ConversationalBuilder
from pawpath.core.itinerary_pipeline import ItineraryPipeline
from pawpath.core.llm_provider import LLMProvider
from pawpath.core.places_service import PlacesService, get_places_service
from pawpath.core.repository import MongoDBRepo, get_repo
from pawpath.core.settings import get_settings

logger = logging.getLogger(__name__)

PipelineFactory = Callable[[], ItineraryPipeline]


def get_optional_repo() -> MongoDBRepo | None:
    """The store is optional: policy lookups fall back to defaults without it."""
    try:
        return get_repo()
    except ValueError as e:
        logger.warning("[Dependencies] Store unavailable: %s", e)
        return None


def get_optional_places() -> PlacesService | None:
    try:
        return get_places_service()
    except ValueError as e:
        logger.warning("[Dependencies] Places client unavailable: %s", e)
        return None


def build_pipeline() -> ItineraryPipeline:
    # Raises ValueError when the places key is missing
    return ItineraryPipeline(
        places=get_places_service(),
        provider=LLMProvider(model=get_settings().aisuite_model),
        policy_store=get_optional_repo(),
    )


def get_pipeline_factory() -> PipelineFactory:
    """
    Construction is deferred to the handler so that request validation runs
    first and configuration errors surface as a 500 ``{error}`` body.
    """
    return build_pipeline


def get_builder() -> ConversationalBuilder:
    return ConversationalBuilder(store=get_optional_repo(), places=get_optional_places())


def get_user_id(x_user_id: str | None = Header(None)) -> str | None:
    """Authenticated user id forwarded by the upstream auth layer."""
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None
