import asyncio

import pytest

from app.core.deletion import PendingDeletionRegistry


class Recorder:
    def __init__(self):
        self.calls: list[str] = []

    def action(self, label: str):
        async def run() -> None:
            self.calls.append(label)
        return run


@pytest.mark.asyncio
async def test_scheduled_deletion_fires_once_and_clears(deletions: PendingDeletionRegistry) -> None:
    recorder = Recorder()
    deletions.schedule("room-1", 0.01, recorder.action("first"))

    assert deletions.is_pending("room-1")
    await asyncio.sleep(0.05)

    assert recorder.calls == ["first"]
    assert "room-1" not in deletions


@pytest.mark.asyncio
async def test_cancel_is_idempotent(deletions: PendingDeletionRegistry) -> None:
    recorder = Recorder()
    deletions.schedule("room-1", 0.02, recorder.action("first"))

    assert deletions.cancel("room-1") is True
    assert deletions.cancel("room-1") is False
    assert deletions.cancel("never-scheduled") is False

    await asyncio.sleep(0.05)
    assert recorder.calls == []
    assert len(deletions) == 0


@pytest.mark.asyncio
async def test_reschedule_replaces_previous_entry(deletions: PendingDeletionRegistry) -> None:
    recorder = Recorder()
    first = deletions.schedule("room-1", 0.02, recorder.action("first"))
    second = deletions.schedule("room-1", 0.02, recorder.action("second"))

    assert first.cancel_token != second.cancel_token
    assert deletions.get("room-1") is second

    await asyncio.sleep(0.06)
    assert recorder.calls == ["second"]


@pytest.mark.asyncio
async def test_cancel_racing_with_fire_runs_at_most_once(deletions: PendingDeletionRegistry) -> None:
    recorder = Recorder()
    deletions.schedule("room-1", 0, recorder.action("fire"))

    # let the timer wake up, then cancel in the same tick
    await asyncio.sleep(0)
    cancelled = deletions.cancel("room-1")
    await asyncio.sleep(0.02)

    assert len(recorder.calls) + int(cancelled) == 1


@pytest.mark.asyncio
async def test_failing_action_is_logged_not_raised(deletions: PendingDeletionRegistry) -> None:
    async def boom() -> None:
        raise RuntimeError("discord unavailable")

    entry = deletions.schedule("room-1", 0, boom)
    await asyncio.sleep(0.02)

    assert entry.task.done()
    assert entry.task.exception() is None
    assert "room-1" not in deletions


@pytest.mark.asyncio
async def test_shutdown_drops_all_pending() -> None:
    registry = PendingDeletionRegistry()
    recorder = Recorder()
    registry.schedule("a", 1, recorder.action("a"))
    registry.schedule("b", 1, recorder.action("b"))

    await registry.shutdown()

    assert len(registry) == 0
    assert recorder.calls == []
