"""
Assistant run lifecycle: statuses, allowed transitions and the polling loop.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class RunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    CANCELLING = "cancelling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"
    INCOMPLETE = "incomplete"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        RunStatus.COMPLETED,
        RunStatus.FAILED,
        RunStatus.CANCELLED,
        RunStatus.EXPIRED,
        RunStatus.INCOMPLETE,
    }
)

TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.QUEUED: frozenset(
        {RunStatus.IN_PROGRESS, RunStatus.CANCELLING, RunStatus.FAILED, RunStatus.EXPIRED}
    ),
    RunStatus.IN_PROGRESS: frozenset(
        {
            RunStatus.REQUIRES_ACTION,
            RunStatus.COMPLETED,
            RunStatus.FAILED,
            RunStatus.CANCELLING,
            RunStatus.EXPIRED,
            RunStatus.INCOMPLETE,
        }
    ),
    RunStatus.REQUIRES_ACTION: frozenset(
        {RunStatus.QUEUED, RunStatus.IN_PROGRESS, RunStatus.CANCELLING, RunStatus.EXPIRED, RunStatus.FAILED}
    ),
    RunStatus.CANCELLING: frozenset({RunStatus.CANCELLED, RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
    RunStatus.CANCELLED: frozenset(),
    RunStatus.EXPIRED: frozenset(),
    RunStatus.INCOMPLETE: frozenset(),
}


def can_transition(current: RunStatus, new: RunStatus) -> bool:
    return current == new or new in TRANSITIONS[current]


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str


@dataclass
class RunSnapshot:
    id: str
    status: RunStatus
    tool_calls: list[ToolCall] = field(default_factory=list)
    last_error_code: str | None = None
    last_error_message: str | None = None


class RunTimeoutError(TimeoutError):
    def __init__(self, run_id: str, status: RunStatus, elapsed: float):
        super().__init__(f"Run {run_id} still {status.value} after {elapsed:.1f}s")
        self.run_id = run_id
        self.status = status


class RunPoller:
    """
    Poll a run until it reaches a terminal status.

    ``clock`` and ``sleep`` are injectable so the timeout and cancellation
    paths can be exercised without real waiting.
    """

    def __init__(
        self,
        interval: float = 1.0,
        timeout: float = 120.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.interval = interval
        self.timeout = timeout
        self.clock = clock
        self.sleep = sleep

    def wait(
        self,
        fetch: Callable[[], RunSnapshot],
        handle_action: Callable[[RunSnapshot], None],
        cancel: Callable[[str], None],
        initial: RunSnapshot | None = None,
    ) -> RunSnapshot:
        """
        Drive a run to a terminal state.

        Args:
            fetch: returns the current run snapshot
            handle_action: executes and submits tool calls for a requires_action snapshot
            cancel: cancels the run by id; called once before raising on timeout
            initial: snapshot already in hand, e.g. the one returned on run creation

        Raises:
            RunTimeoutError: the wall-clock ceiling was reached in a non-terminal state
        """
        started = self.clock()
        snapshot = initial if initial is not None else fetch()
        previous = snapshot.status
        handled: set[str] = set()

        while not snapshot.status.is_terminal:
            elapsed = self.clock() - started
            if elapsed >= self.timeout:
                self._cancel(cancel, snapshot)
                raise RunTimeoutError(snapshot.id, snapshot.status, elapsed)

            pending = [c for c in snapshot.tool_calls if c.id not in handled]
            if snapshot.status == RunStatus.REQUIRES_ACTION and pending:
                logger.info("[RunPoller] Run %s requires %d tool call(s)", snapshot.id, len(pending))
                handle_action(snapshot)
                handled.update(c.id for c in snapshot.tool_calls)
            else:
                self.sleep(self.interval)

            snapshot = fetch()
            if not can_transition(previous, snapshot.status):
                logger.warning(
                    "[RunPoller] Unexpected transition %s -> %s for run %s",
                    previous.value,
                    snapshot.status.value,
                    snapshot.id,
                )
            previous = snapshot.status

        logger.info("[RunPoller] Run %s finished with status %s", snapshot.id, snapshot.status.value)
        return snapshot

    def _cancel(self, cancel: Callable[[str], None], snapshot: RunSnapshot) -> None:
        logger.warning("[RunPoller] Timeout reached, cancelling run %s (%s)", snapshot.id, snapshot.status.value)
        try:
            cancel(snapshot.id)
        except Exception as e:
            logger.warning("[RunPoller] Failed to cancel run %s: %s", snapshot.id, e)
