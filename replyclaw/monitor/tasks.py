"""Tracking for fire-and-forget follow-up work."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger


class BackgroundTaskTracker:
    """
    Owns detached tasks so they can be observed and drained on shutdown.

    Results never flow back to whoever called ``track``; failures are logged
    and the task leaves the set as soon as it finishes.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()
        self._labels: dict[asyncio.Task[Any], str] = {}

    def track(self, factory: Callable[[], Awaitable[Any]], label: str | None = None) -> asyncio.Task[Any] | None:
        """Start ``factory()`` as a task and keep its handle until it is done."""
        name = label or getattr(factory, "__name__", "background task")
        try:
            task = asyncio.ensure_future(factory())
        except Exception as exc:
            logger.warning(f"Background task {name} failed to start: {exc}")
            return None
        self._tasks.add(task)
        self._labels[task] = name
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        name = self._labels.pop(task, "background task")
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"Background task {name} failed: {exc}")

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for outstanding tasks. Returns False if the timeout expired first."""
        if not self._tasks:
            return True
        _done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        return not pending

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task: object) -> bool:
        return task in self._tasks
