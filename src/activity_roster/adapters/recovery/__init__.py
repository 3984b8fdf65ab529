"""Recovery adapters."""

from activity_roster.adapters.recovery.counter_stores import (
    InMemoryCounterStore,
    JsonFileCounterStore,
)
from activity_roster.adapters.recovery.recovery_breaker import TIMEOUT_COUNTER, RecoveryBreaker

__all__ = [
    "TIMEOUT_COUNTER",
    "InMemoryCounterStore",
    "JsonFileCounterStore",
    "RecoveryBreaker",
]
