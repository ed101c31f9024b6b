import pytest

from fakes import FakeClock, snapshot
from pawpath.core.run_state import RunPoller, RunStatus, RunTimeoutError, ToolCall, can_transition


def _sequence(*snapshots):
    remaining = list(snapshots)

    def fetch():
        return remaining.pop(0) if len(remaining) > 1 else remaining[0]

    return fetch


def test_transition_table():
    assert can_transition(RunStatus.QUEUED, RunStatus.IN_PROGRESS)
    assert can_transition(RunStatus.REQUIRES_ACTION, RunStatus.QUEUED)
    assert can_transition(RunStatus.IN_PROGRESS, RunStatus.IN_PROGRESS)
    assert not can_transition(RunStatus.COMPLETED, RunStatus.IN_PROGRESS)
    assert not can_transition(RunStatus.QUEUED, RunStatus.COMPLETED)
    assert RunStatus.EXPIRED.is_terminal
    assert not RunStatus.REQUIRES_ACTION.is_terminal


def test_poller_handles_each_tool_batch_once():
    clock = FakeClock()
    call = ToolCall(id="call_1", name="set_destination", arguments='{"destination": "Lisbon"}')
    fetch = _sequence(
        snapshot(RunStatus.REQUIRES_ACTION, call),
        snapshot(RunStatus.REQUIRES_ACTION, call),
        snapshot(RunStatus.IN_PROGRESS),
        snapshot(RunStatus.COMPLETED),
    )
    handled = []

    final = RunPoller(interval=1, timeout=60, clock=clock, sleep=clock.sleep).wait(
        fetch=fetch,
        handle_action=lambda snap: handled.append([c.id for c in snap.tool_calls]),
        cancel=lambda run_id: pytest.fail("should not cancel"),
        initial=snapshot(RunStatus.QUEUED),
    )

    assert final.status == RunStatus.COMPLETED
    assert handled == [["call_1"]]


def test_poller_times_out_and_cancels_without_real_sleep():
    clock = FakeClock()
    cancelled = []

    with pytest.raises(RunTimeoutError) as exc:
        RunPoller(interval=1, timeout=5, clock=clock, sleep=clock.sleep).wait(
            fetch=lambda: snapshot(RunStatus.IN_PROGRESS),
            handle_action=lambda snap: None,
            cancel=cancelled.append,
        )

    assert cancelled == ["run_1"]
    assert exc.value.run_id == "run_1"
    assert exc.value.status == RunStatus.IN_PROGRESS
    assert clock.now == 5


def test_cancel_failure_still_raises_timeout():
    clock = FakeClock()

    def cancel(run_id):
        raise ConnectionError("cannot reach api")

    with pytest.raises(RunTimeoutError):
        RunPoller(interval=2, timeout=3, clock=clock, sleep=clock.sleep).wait(
            fetch=lambda: snapshot(RunStatus.QUEUED),
            handle_action=lambda snap: None,
            cancel=cancel,
        )


def test_terminal_initial_snapshot_returns_immediately():
    final = RunPoller(clock=FakeClock(), sleep=lambda s: pytest.fail("should not sleep")).wait(
        fetch=lambda: pytest.fail("should not fetch"),
        handle_action=lambda snap: None,
        cancel=lambda run_id: None,
        initial=snapshot(RunStatus.FAILED, last_error_code="server_error"),
    )
    assert final.last_error_code == "server_error"
