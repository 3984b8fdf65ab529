"""Protocol for cancellable scheduled tasks."""

from collections.abc import Awaitable, Callable
from typing import Protocol


class ScheduledTaskProtocol(Protocol):
    """A named callback that runs once after a delay unless cancelled."""

    name: str
    delay: float

    @property
    def done(self) -> bool:
        """Whether the task has run or been cancelled."""
        ...

    def cancel(self) -> None:
        """Cancel the task if it has not started running."""
        ...

    async def wait(self) -> None:
        """Wait for the task to finish or be cancelled."""
        ...


class TaskSchedulerProtocol(Protocol):
    """Protocol for scheduling named, resettable timers."""

    def schedule(
        self, name: str, delay: float, callback: Callable[[], Awaitable[None] | None]
    ) -> ScheduledTaskProtocol:
        """Schedule a callback, replacing any pending task with the same name."""
        ...

    def cancel(self, name: str) -> bool:
        """Cancel a pending task by name. Returns True if one was pending."""
        ...

    def is_pending(self, name: str) -> bool:
        """Check whether a task with this name is pending."""
        ...
