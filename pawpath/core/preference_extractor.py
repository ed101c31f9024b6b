"""
Extract short actionable preferences from free-text trip notes using LLM.
"""

from __future__ import annotations

import logging

from pawpath.core.llm_json import parse_string_list
from pawpath.core.llm_provider import LLMProvider
from pawpath.core.settings import get_settings

logger = logging.getLogger(__name__)

MAX_PREFERENCES = 10

SYSTEM_PROMPT = {
    "role": "system",
    "content": (
        "You are a travel preference extraction system for pet-friendly trips. "
        "Read the traveler's free-text notes and extract short, actionable preferences "
        "that should shape their itinerary (e.g., 'quiet outdoor spaces for an anxious dog', "
        "'vegetarian restaurants', 'avoid long walks in the heat').\n\n"
        "Rules:\n"
        "1. Each preference is a short phrase (under 12 words).\n"
        "2. Only include preferences the notes actually express.\n"
        "3. Return at most 10 preferences, most important first.\n\n"
        "Return ONLY a JSON array of strings, no other text. "
        'Example: ["preference 1", "preference 2"]\n'
        "If the notes contain no usable preferences, return []."
    ),
}


async def extract_preferences(
    text: str | None,
    provider: LLMProvider | None = None,
    destination: str | None = None,
) -> list[str]:
    """
    Turn free-text notes into an ordered list of preference strings.

    Args:
        text: Free-text notes from the trip form (may be empty)
        provider: LLM provider; a default one is created when omitted
        destination: Optional destination used as extra context

    Returns:
        List of preference strings. Empty input, an unusable reply or a
        failed model call all yield an empty list.
    """
    if not text or not text.strip():
        return []

    user_prompt = {
        "role": "user",
        "content": (f"Destination: {destination}\n" if destination else "")
        + f"Traveler's notes:\n{text.strip()}",
    }

    try:
        if provider is None:
            provider = LLMProvider(model=get_settings().aisuite_model)
        response = await provider.chat_async(
            messages=[SYSTEM_PROMPT, user_prompt],
            temperature=0.3,
            use_cache=True,
        )
    except Exception as e:
        logger.warning("[PreferenceExtractor] Model call failed: %s", e)
        return []

    result = parse_string_list(response)
    if not result.ok:
        logger.warning(
            "[PreferenceExtractor] Discarding reply (%s): %s",
            result.error.value,
            (response or "")[:200],
        )
        return []

    return result.value[:MAX_PREFERENCES]
