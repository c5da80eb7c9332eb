"""
Tests for the respawn scheduler.

Uses short real delays on the running loop rather than a fake clock.
"""

import asyncio

import pytest

from autorespawn.app.tracked_task_manager import TrackedTaskManager
from autorespawn.services.respawn_scheduler import RespawnScheduler


class Recorder:
    """Collects which entity fired and at what loop time."""

    def __init__(self) -> None:
        self.fired: list[tuple[str, str, float]] = []

    def factory(self, entity_id: str, label: str):
        async def _run() -> None:
            self.fired.append((entity_id, label, asyncio.get_running_loop().time()))

        return _run


@pytest.fixture
def scheduler(task_manager: TrackedTaskManager) -> RespawnScheduler:
    return RespawnScheduler(task_manager=task_manager)


class TestSchedule:
    """schedule() and firing."""

    @pytest.mark.asyncio
    async def test_task_fires_after_delay(self, scheduler):
        recorder = Recorder()
        loop = asyncio.get_running_loop()
        start = loop.time()

        scheduled = scheduler.schedule("bob-id", 0.05, recorder.factory("bob-id", "first"))

        assert scheduled.attempt == 1
        assert scheduled.fire_at == pytest.approx(start + 0.05, abs=0.02)
        assert "bob-id" in scheduler

        await asyncio.sleep(0.15)

        assert [(e, label) for e, label, _ in recorder.fired] == [("bob-id", "first")]
        assert recorder.fired[0][2] >= start + 0.05 - 0.01
        assert len(scheduler) == 0

    @pytest.mark.asyncio
    async def test_double_schedule_fires_once_at_second_time(self, scheduler):
        """The second schedule replaces the first; only it fires."""
        recorder = Recorder()
        loop = asyncio.get_running_loop()

        scheduler.schedule("bob-id", 0.05, recorder.factory("bob-id", "first"))
        second = scheduler.schedule("bob-id", 0.12, recorder.factory("bob-id", "second"))

        assert second.attempt == 2
        assert len(scheduler) == 1

        await asyncio.sleep(0.08)
        assert recorder.fired == []

        await asyncio.sleep(0.12)
        assert [label for _, label, _ in recorder.fired] == ["second"]
        assert recorder.fired[0][2] >= second.fire_at - 0.01
        assert loop.time() >= second.fire_at

    @pytest.mark.asyncio
    async def test_entities_are_independent(self, scheduler):
        recorder = Recorder()
        scheduler.schedule("bob-id", 0.02, recorder.factory("bob-id", "bob"))
        scheduler.schedule("alice-id", 0.02, recorder.factory("alice-id", "alice"))

        assert sorted(scheduler.pending_entities()) == ["alice-id", "bob-id"]
        await asyncio.sleep(0.1)
        assert sorted(label for _, label, _ in recorder.fired) == ["alice", "bob"]

    @pytest.mark.asyncio
    async def test_negative_delay_fires_immediately(self, scheduler):
        recorder = Recorder()
        scheduled = scheduler.schedule("bob-id", -5, recorder.factory("bob-id", "now"))
        assert scheduled.delay == 0.0
        await asyncio.sleep(0.02)
        assert len(recorder.fired) == 1

    @pytest.mark.asyncio
    async def test_slot_released_before_task_runs(self, scheduler):
        """While the task body runs the entity is no longer pending, so it can reschedule itself."""
        seen: list[bool] = []

        async def body() -> None:
            seen.append("bob-id" in scheduler)

        scheduler.schedule("bob-id", 0.01, body)
        await asyncio.sleep(0.05)
        assert seen == [False]


class TestCancel:
    """cancel() semantics."""

    @pytest.mark.asyncio
    async def test_cancel_prevents_firing(self, scheduler):
        recorder = Recorder()
        scheduler.schedule("bob-id", 0.03, recorder.factory("bob-id", "first"))

        assert scheduler.cancel("bob-id") is True
        await asyncio.sleep(0.08)

        assert recorder.fired == []
        assert scheduler.get("bob-id") is None

    @pytest.mark.asyncio
    async def test_cancel_unknown_is_noop(self, scheduler):
        assert scheduler.cancel("nobody") is False

    @pytest.mark.asyncio
    async def test_cancel_does_not_interrupt_running_task(self, scheduler):
        started = asyncio.Event()
        release = asyncio.Event()
        finished: list[str] = []

        async def body() -> None:
            started.set()
            await release.wait()
            finished.append("done")

        scheduler.schedule("bob-id", 0.0, body)
        await asyncio.wait_for(started.wait(), timeout=1)

        assert scheduler.cancel("bob-id") is False
        release.set()
        await asyncio.sleep(0.01)
        assert finished == ["done"]


class TestFailures:
    """Errors inside a task never corrupt the registry."""

    @pytest.mark.asyncio
    async def test_raising_task_is_logged_and_registry_stays_usable(self, scheduler):
        async def boom() -> None:
            raise RuntimeError("spawn exploded")

        recorder = Recorder()
        scheduler.schedule("bob-id", 0.0, boom)
        await asyncio.sleep(0.02)

        assert len(scheduler) == 0
        scheduler.schedule("bob-id", 0.0, recorder.factory("bob-id", "retry"))
        await asyncio.sleep(0.02)
        assert [label for _, label, _ in recorder.fired] == ["retry"]

    @pytest.mark.asyncio
    async def test_raising_factory_is_contained(self, scheduler):
        def bad_factory():
            raise ValueError("no coroutine for you")

        scheduler.schedule("bob-id", 0.0, bad_factory)
        await asyncio.sleep(0.02)
        assert len(scheduler) == 0


class TestLifecycle:
    """Thread-safe scheduling and shutdown."""

    @pytest.mark.asyncio
    async def test_schedule_threadsafe_from_worker_thread(self, task_manager):
        loop = asyncio.get_running_loop()
        scheduler = RespawnScheduler(loop=loop, task_manager=task_manager)
        recorder = Recorder()

        await asyncio.to_thread(scheduler.schedule_threadsafe, "bob-id", 0.0, recorder.factory("bob-id", "thread"))
        await asyncio.sleep(0.05)

        assert [label for _, label, _ in recorder.fired] == ["thread"]

    def test_schedule_threadsafe_requires_bound_loop(self):
        scheduler = RespawnScheduler()
        with pytest.raises(RuntimeError, match="not bound"):
            scheduler.schedule_threadsafe("bob-id", 0.0, lambda: None)

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_and_refuses_new(self, scheduler):
        recorder = Recorder()
        scheduler.schedule("bob-id", 0.03, recorder.factory("bob-id", "a"))
        scheduler.schedule("alice-id", 0.03, recorder.factory("alice-id", "b"))

        assert scheduler.shutdown() == 2
        await asyncio.sleep(0.06)

        assert recorder.fired == []
        with pytest.raises(RuntimeError, match="shut down"):
            scheduler.schedule("bob-id", 0.0, recorder.factory("bob-id", "c"))
