import asyncio

from replyclaw.monitor.tasks import BackgroundTaskTracker


async def test_tracked_task_runs_and_leaves_the_set() -> None:
    tracker = BackgroundTaskTracker()
    seen: list[str] = []

    async def work() -> None:
        await asyncio.sleep(0)
        seen.append("ran")

    task = tracker.track(work, label="work")
    assert task is not None
    assert task in tracker
    assert tracker.pending == 1

    assert await tracker.drain(timeout=1.0) is True
    assert seen == ["ran"]
    assert len(tracker) == 0


async def test_failing_task_is_logged_not_raised() -> None:
    tracker = BackgroundTaskTracker()

    async def boom() -> None:
        raise RuntimeError("reaction failed")

    tracker.track(boom)
    assert await tracker.drain(timeout=1.0) is True
    assert tracker.pending == 0


async def test_factory_failure_returns_none() -> None:
    tracker = BackgroundTaskTracker()

    def broken():
        raise ValueError("cannot build coroutine")

    assert tracker.track(broken) is None
    assert tracker.pending == 0


async def test_drain_reports_timeout() -> None:
    tracker = BackgroundTaskTracker()
    gate = asyncio.Event()

    async def wait_for_gate() -> None:
        await gate.wait()

    tracker.track(wait_for_gate)
    assert await tracker.drain(timeout=0.01) is False
    assert tracker.pending == 1

    gate.set()
    assert await tracker.drain(timeout=1.0) is True


async def test_drain_with_nothing_pending() -> None:
    assert await BackgroundTaskTracker().drain() is True
