"""Retry policy value type."""

from dataclasses import dataclass

from activity_roster.domain.models.error_details import ErrorKind


@dataclass(frozen=True)
class RetryPolicy:
    """How often each error kind is retried and how long to back off.

    Validation and unknown errors are never retried.
    """

    max_timeout_retries: int = 1
    max_transient_retries: int = 2
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 5.0

    def should_retry(self, kind: ErrorKind, retries_done: int) -> bool:
        """Decide whether another attempt is allowed.

        Args:
            kind: Classification of the last failure.
            retries_done: Retries already performed (0 after the first attempt).
        """
        if kind is ErrorKind.TIMEOUT:
            return retries_done < self.max_timeout_retries
        if kind is ErrorKind.TRANSIENT_NETWORK:
            return retries_done < self.max_transient_retries
        return False

    def delay_for(self, retries_done: int) -> float:
        """Exponential backoff capped at max_delay_seconds."""
        return min(self.base_delay_seconds * 2**retries_done, self.max_delay_seconds)
