"""
Thin wrapper over the OpenAI Assistants API (threads, messages and runs).
"""

from __future__ import annotations

import logging
from typing import Any

from openai import OpenAI

from pawpath.core.run_state import RunSnapshot, RunStatus, ToolCall
from pawpath.core.settings import get_settings

logger = logging.getLogger(__name__)


class AssistantNotConfiguredError(RuntimeError):
    pass


def _to_snapshot(run: Any) -> RunSnapshot:
    tool_calls: list[ToolCall] = []
    required = getattr(run, "required_action", None)
    if required is not None and getattr(required, "submit_tool_outputs", None) is not None:
        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "{}")
            for tc in required.submit_tool_outputs.tool_calls
        ]
    last_error = getattr(run, "last_error", None)
    return RunSnapshot(
        id=run.id,
        status=RunStatus(run.status),
        tool_calls=tool_calls,
        last_error_code=getattr(last_error, "code", None),
        last_error_message=getattr(last_error, "message", None),
    )


class AssistantClient:
    def __init__(
        self,
        api_key: str | None = None,
        assistant_id: str | None = None,
        client: OpenAI | None = None,
    ):
        settings = get_settings()
        api_key = api_key or settings.openai_api_key
        self.assistant_id = assistant_id or settings.openai_assistant_id
        if not self.assistant_id or (client is None and not api_key):
            raise AssistantNotConfiguredError("OPENAI_API_KEY and OPENAI_ASSISTANT_ID are required")
        self._client = client or OpenAI(api_key=api_key)

    def create_thread(self) -> str:
        thread = self._client.beta.threads.create()
        logger.info("[Assistant] Created thread %s", thread.id)
        return thread.id

    def add_user_message(self, thread_id: str, content: str) -> None:
        self._client.beta.threads.messages.create(thread_id=thread_id, role="user", content=content)

    def create_run(self, thread_id: str) -> RunSnapshot:
        run = self._client.beta.threads.runs.create(thread_id=thread_id, assistant_id=self.assistant_id)
        return _to_snapshot(run)

    def get_run(self, thread_id: str, run_id: str) -> RunSnapshot:
        run = self._client.beta.threads.runs.retrieve(run_id=run_id, thread_id=thread_id)
        return _to_snapshot(run)

    def submit_tool_outputs(self, thread_id: str, run_id: str, outputs: list[dict[str, str]]) -> None:
        self._client.beta.threads.runs.submit_tool_outputs(
            run_id=run_id, thread_id=thread_id, tool_outputs=outputs
        )

    def cancel_run(self, thread_id: str, run_id: str) -> None:
        self._client.beta.threads.runs.cancel(run_id=run_id, thread_id=thread_id)

    def latest_assistant_reply(self, thread_id: str) -> str | None:
        messages = self._client.beta.threads.messages.list(thread_id=thread_id, order="desc", limit=1)
        for message in messages.data:
            if message.role != "assistant":
                continue
            parts = [p.text.value for p in message.content if getattr(p, "type", None) == "text"]
            text = "\n".join(parts).strip()
            return text or None
        return None
