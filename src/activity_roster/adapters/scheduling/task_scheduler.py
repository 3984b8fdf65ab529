"""Named, cancellable asyncio timers."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable

from activity_roster.domain.contracts.task_scheduler import (
    ScheduledTaskProtocol,
    TaskSchedulerProtocol,
)

logger = logging.getLogger(__name__)

TaskCallback = Callable[[], Awaitable[None] | None]


class ScheduledTask(ScheduledTaskProtocol):
    """A callback that runs once after a delay unless cancelled first.

    Once the callback has started it runs to completion; cancel() only
    prevents a task that is still sleeping.
    """

    def __init__(
        self,
        name: str,
        delay: float,
        callback: TaskCallback,
        on_finished: Callable[[ScheduledTask], None] | None = None,
    ) -> None:
        """Create and start the timer. Requires a running event loop."""
        self.name = name
        self.delay = delay
        self._callback = callback
        self._on_finished = on_finished
        self._started = False
        self._cancelled = False
        self._task = asyncio.create_task(self._run(), name=f"scheduled:{name}")

    @property
    def done(self) -> bool:
        """Whether the task has run or been cancelled."""
        return self._task.done()

    @property
    def started(self) -> bool:
        """Whether the callback has started running."""
        return self._started

    @property
    def cancelled(self) -> bool:
        """Whether the task was cancelled before running."""
        return self._cancelled

    def cancel(self) -> None:
        """Cancel the task if it has not started running."""
        if not self._started and not self._task.done():
            self._cancelled = True
            self._task.cancel()
            logger.debug(f"Cancelled scheduled task {self.name}")

    async def wait(self) -> None:
        """Wait for the task to finish or be cancelled."""
        await asyncio.wait([self._task])

    async def _run(self) -> None:
        try:
            await asyncio.sleep(self.delay)
            self._started = True
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            if self._started:
                raise
        except Exception as e:
            logger.error(f"Scheduled task {self.name} failed: {e}", exc_info=True)
        finally:
            if self._on_finished is not None:
                self._on_finished(self)


class TaskScheduler(TaskSchedulerProtocol):
    """Keeps at most one pending task per name."""

    def __init__(self) -> None:
        """Initialize the scheduler."""
        self._pending: dict[str, ScheduledTask] = {}

    def schedule(self, name: str, delay: float, callback: TaskCallback) -> ScheduledTask:
        """Schedule a callback, replacing any pending task with the same name.

        Args:
            name: Task name; scheduling the same name again resets the timer.
            delay: Seconds to wait before running.
            callback: Sync or async callable to run.

        Returns:
            The new scheduled task.
        """
        previous = self._pending.get(name)
        if previous is not None and not previous.started:
            previous.cancel()
            logger.debug(f"Reset timer for {name}")
        task = ScheduledTask(name, delay, callback, on_finished=self._finished)
        self._pending[name] = task
        return task

    def cancel(self, name: str) -> bool:
        """Cancel a pending task by name. Returns True if one was pending."""
        task = self._pending.get(name)
        if task is None or task.started:
            return False
        del self._pending[name]
        task.cancel()
        return True

    def cancel_all(self, prefix: str = "") -> int:
        """Cancel every pending task whose name starts with prefix."""
        names = [name for name in self._pending if name.startswith(prefix)]
        return sum(1 for name in names if self.cancel(name))

    def is_pending(self, name: str) -> bool:
        """Check whether a task with this name is pending."""
        task = self._pending.get(name)
        return task is not None and not task.done

    def pending_names(self) -> list[str]:
        """Names of tasks that have not finished yet."""
        return [name for name, task in self._pending.items() if not task.done]

    async def wait_idle(self) -> None:
        """Wait until no task is pending, including tasks scheduled meanwhile."""
        while True:
            pending = [task for task in self._pending.values() if not task.done]
            if not pending:
                return
            await asyncio.gather(*(task.wait() for task in pending))

    def _finished(self, task: ScheduledTask) -> None:
        if self._pending.get(task.name) is task:
            del self._pending[task.name]
