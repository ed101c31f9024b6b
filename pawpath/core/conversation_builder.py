"""
Conversational trip builder backed by a stateful assistant thread.

Each turn appends context and the user's message to the thread, starts a
run, executes any requested tools against the current trip state and
returns the assistant's reply together with the accumulated trip-state delta.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from pawpath.core.assistant_client import AssistantClient, AssistantNotConfiguredError
from pawpath.core.chat_tools import ChatStore, ToolContext, ToolRegistry, registry as default_registry
from pawpath.core.places_service import PlacesService
from pawpath.core.run_state import RunPoller, RunSnapshot, RunStatus, RunTimeoutError
from pawpath.core.schemas import ChatBuilderRequest, ChatBuilderResponse
from pawpath.core.settings import get_settings

logger = logging.getLogger(__name__)

SYSTEM_UPDATE_PREFIX = "SYSTEM_UPDATE:"
EXAMPLE_TRIP_PREFIX = "Example trip selected:"

KEY_ACTIVITY_TYPES = {"accommodation", "flight", "transfer"}


@dataclass
class BuilderResult:
    reply: str
    thread_id: str | None = None
    updated_trip_data: dict[str, Any] | None = None
    trigger_itinerary_generation: bool | None = None
    status_code: int = 200

    def to_response(self) -> ChatBuilderResponse:
        return ChatBuilderResponse(
            reply=self.reply,
            updated_trip_data=self.updated_trip_data,
            trigger_itinerary_generation=self.trigger_itinerary_generation,
            thread_id=self.thread_id,
        )


def handle_system_update(message: str, thread_id: str | None) -> BuilderResult:
    """Acknowledge UI-originated updates without involving the assistant."""
    update = message.strip()[len(SYSTEM_UPDATE_PREFIX):].strip()
    if update.startswith(EXAMPLE_TRIP_PREFIX):
        trip_name = update[len(EXAMPLE_TRIP_PREFIX):].strip()
        trip_name = trip_name.split(" (")[0].strip() or "that destination"
        reply = (
            f"Great choice! I've loaded the example trip to {trip_name}. "
            "Ask me to adjust anything, add activities, or check pet entry requirements."
        )
    else:
        reply = "Got it, I've noted that update to your trip."
    logger.info("[ChatBuilder] Handled system update without a run")
    return BuilderResult(reply=reply, thread_id=thread_id)


def summarize_itinerary(itinerary: dict[str, Any] | None) -> list[dict[str, Any]] | None:
    days = (itinerary or {}).get("days") or []
    if not days:
        return None
    summary = []
    for day in days:
        activities = day.get("activities") or []
        key = [
            a
            for i, a in enumerate(activities)
            if a.get("type") in KEY_ACTIVITY_TYPES or i in (0, len(activities) - 1)
        ]
        summary.append(
            {
                "day": day.get("day"),
                "date": day.get("date"),
                "city": day.get("city"),
                "keyActivities": [
                    {"name": a.get("name"), "type": a.get("type"), "location": a.get("location")} for a in key
                ],
                "activityCount": len(activities),
            }
        )
    return summary


def build_context_message(trip: dict[str, Any]) -> str:
    context = {
        "destination": trip.get("destination"),
        "destinationCountry": trip.get("destinationCountry"),
        "startDate": trip.get("startDate"),
        "endDate": trip.get("endDate"),
        "adults": trip.get("adults"),
        "pets": trip.get("pets"),
        "petDetails": trip.get("petDetails"),
        "budget": trip.get("budget"),
        "interests": trip.get("interests"),
        "itinerarySummary": summarize_itinerary(trip.get("itinerary")),
    }
    return (
        "CONTEXT UPDATE:\n"
        f"Current trip data: {json.dumps(context, default=str)}\n"
        "Refer to this context when answering the latest user message."
    )


def failed_run_reply(snapshot: RunSnapshot) -> str:
    if snapshot.last_error_code == "rate_limit_exceeded":
        return "I'm experiencing high traffic right now. Please try again in a moment."
    if snapshot.last_error_code or snapshot.last_error_message:
        return f"Sorry, something went wrong on my end (Status: {snapshot.status.value}). Please try again."
    return f"Sorry, the process didn't complete successfully (Status: {snapshot.status.value}). Please try again."


class ConversationalBuilder:
    def __init__(
        self,
        assistant_factory: Callable[[], AssistantClient] = AssistantClient,
        store: ChatStore | None = None,
        places: PlacesService | None = None,
        tools: ToolRegistry | None = None,
        poller: RunPoller | None = None,
    ):
        settings = get_settings()
        self.assistant_factory = assistant_factory
        self.store = store
        self.places = places
        self.tools = tools or default_registry
        self.poller = poller or RunPoller(
            interval=settings.chat_poll_interval_seconds,
            timeout=settings.chat_run_timeout_seconds,
        )

    def handle(self, request: ChatBuilderRequest, user_id: str | None = None) -> BuilderResult:
        message = request.message_content
        thread_id = request.thread_id

        if message.lstrip().startswith(SYSTEM_UPDATE_PREFIX):
            return handle_system_update(message, thread_id)

        trip = request.current_trip_data.to_wire() if request.current_trip_data else {}
        if not message.strip() and not trip:
            return BuilderResult(
                reply="Please type a message to continue planning.",
                thread_id=thread_id,
                status_code=400,
            )

        try:
            assistant = self.assistant_factory()
        except AssistantNotConfiguredError as e:
            logger.error("[ChatBuilder] Assistant not configured: %s", e)
            return BuilderResult(
                reply="The trip assistant isn't available right now. Please try again later.",
                thread_id=thread_id,
                status_code=503,
            )

        ctx = ToolContext(trip=trip, user_id=user_id, store=self.store, places=self.places)
        try:
            if not thread_id:
                thread_id = assistant.create_thread()
            if trip:
                assistant.add_user_message(thread_id, build_context_message(trip))
            if message.strip():
                assistant.add_user_message(thread_id, message)

            run = assistant.create_run(thread_id)
            logger.info("[ChatBuilder] Run %s created on thread %s", run.id, thread_id)

            def execute_tools(snapshot: RunSnapshot) -> None:
                # Tools share the delta, so they run one after another
                outputs = [
                    {"tool_call_id": call.id, "output": self.tools.execute(call, ctx)}
                    for call in snapshot.tool_calls
                ]
                assistant.submit_tool_outputs(thread_id, snapshot.id, outputs)

            final = self.poller.wait(
                fetch=lambda: assistant.get_run(thread_id, run.id),
                handle_action=execute_tools,
                cancel=lambda run_id: assistant.cancel_run(thread_id, run_id),
                initial=run,
            )

            if final.status == RunStatus.COMPLETED:
                reply = (
                    assistant.latest_assistant_reply(thread_id)
                    or ctx.fallback_reply
                    or "I finished processing, but didn't generate a message."
                )
            else:
                logger.error(
                    "[ChatBuilder] Run %s ended with %s: %s %s",
                    final.id,
                    final.status.value,
                    final.last_error_code,
                    final.last_error_message,
                )
                reply = failed_run_reply(final)

        except RunTimeoutError as e:
            logger.error("[ChatBuilder] %s", e)
            return BuilderResult(
                reply="Sorry, I took too long to respond. Please try again.",
                thread_id=thread_id,
                status_code=504,
            )
        except Exception as e:
            logger.exception("[ChatBuilder] Unhandled error: %s", e)
            return BuilderResult(
                reply="Sorry, an unexpected error occurred on the server. Please try again later.",
                thread_id=thread_id,
                status_code=500,
            )

        return BuilderResult(
            reply=reply,
            thread_id=thread_id,
            updated_trip_data=ctx.delta or None,
            trigger_itinerary_generation=True if ctx.trigger_generation else None,
        )
