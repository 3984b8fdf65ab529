"""Retry classification, backoff and timeout handling for remote calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from activity_roster.domain.models import Err, ErrorKind, Ok, RemoteError, Result, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def classify_exception(error: BaseException) -> RemoteError:
    """Map an exception escaping a remote call onto an error kind."""
    if isinstance(error, TimeoutError):
        return RemoteError.timeout(str(error) or "Request timed out")
    if isinstance(error, OSError):
        return RemoteError.transient(str(error) or type(error).__name__)
    return RemoteError.unknown(str(error) or type(error).__name__)


async def call_with_timeout(
    operation: Callable[[], Awaitable[Result[T]]], timeout_seconds: float | None
) -> Result[T]:
    """Run one remote call under the external latency threshold.

    Exceeding the threshold is reported as a timeout; any other exception
    is classified instead of propagated.
    """
    try:
        return await asyncio.wait_for(operation(), timeout_seconds)
    except TimeoutError:
        return Err(RemoteError.timeout(f"No response within {timeout_seconds}s"))
    except Exception as e:
        return Err(classify_exception(e))


async def run_with_retries(
    operation: Callable[[], Awaitable[Result[T]]],
    policy: RetryPolicy,
    timeout_seconds: float | None,
    on_failure: Callable[[ErrorKind], None] | None = None,
    label: str = "remote call",
) -> tuple[Result[T], int]:
    """Run a remote call, retrying per policy.

    Args:
        operation: Factory for the remote call coroutine.
        policy: Retry policy.
        timeout_seconds: Latency threshold per attempt.
        on_failure: Called with the error kind of every failed attempt; may raise
            to abort further attempts.
        label: Name used in log messages.

    Returns:
        The last result and the number of attempts made.
    """
    attempts = 0
    while True:
        attempts += 1
        result = await call_with_timeout(operation, timeout_seconds)
        if isinstance(result, Ok):
            return result, attempts

        error = result.error
        if on_failure is not None:
            on_failure(error.kind)

        retries_done = attempts - 1
        if not policy.should_retry(error.kind, retries_done):
            if retries_done:
                logger.warning(f"{label} failed after {attempts} attempts: {error.reason}")
            return result, attempts

        delay = policy.delay_for(retries_done)
        logger.warning(
            f"{label} failed ({error.kind.value}: {error.reason}), retrying in {delay:.2f}s"
        )
        await asyncio.sleep(delay)
