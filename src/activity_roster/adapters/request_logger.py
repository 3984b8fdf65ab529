"""Tracing of resource service calls, enabled by ROSTER_LOG_REQUESTS."""

import logging
import os
import time
from collections.abc import Callable, Mapping
from urllib.parse import urlencode, urlsplit

from activity_roster.domain.models import RemoteError

logger = logging.getLogger(__name__)


def should_log_requests() -> bool:
    """Check if call tracing is enabled via the ROSTER_LOG_REQUESTS environment variable."""
    return os.getenv("ROSTER_LOG_REQUESTS", "").lower() == "true"


def call_target(url: str, params: Mapping[str, object] | None = None) -> str:
    """Path of a call with its query parameters in sorted order."""
    path = urlsplit(url).path or "/"
    if not params:
        return path
    return f"{path}?{urlencode(sorted((k, str(v)) for k, v in params.items()))}"


class RemoteCallTrace:
    """Logs one call to the resource service and how it ended.

    Whether to log is decided when the call starts, so a call is never
    traced halfway.
    """

    def __init__(
        self,
        method: str,
        url: str,
        params: Mapping[str, object] | None = None,
        actor_id: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.enabled = should_log_requests()
        self.description = f"{method} {call_target(url, params)} as {actor_id or 'anonymous'}"
        self._clock = clock
        self._started = clock()
        if self.enabled:
            logger.info(f"Remote call: {self.description}")

    def elapsed_ms(self) -> int:
        """Milliseconds since the call started."""
        return round((self._clock() - self._started) * 1000)

    def finished(self, status: int) -> None:
        """Record the HTTP status the service answered with."""
        if self.enabled:
            logger.info(
                f"Remote call {self.description} answered {status} in {self.elapsed_ms()} ms"
            )

    def failed(self, error: RemoteError) -> None:
        """Record a call that ended without a usable answer."""
        if self.enabled:
            logger.info(
                f"Remote call {self.description} failed in {self.elapsed_ms()} ms: "
                f"{error.kind.value} ({error.reason})"
            )
