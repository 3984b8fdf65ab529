"""Contracts (protocols) for the roster cache components."""

from activity_roster.domain.contracts.counter_store import CounterStoreProtocol
from activity_roster.domain.contracts.entity_cache import EntityCacheProtocol
from activity_roster.domain.contracts.invalidation_scheduler import (
    InvalidationSchedulerProtocol,
)
from activity_roster.domain.contracts.membership_tracker import MembershipTrackerProtocol
from activity_roster.domain.contracts.recovery_breaker import RecoveryBreakerProtocol
from activity_roster.domain.contracts.subscription import Subscription
from activity_roster.domain.contracts.task_scheduler import (
    ScheduledTaskProtocol,
    TaskSchedulerProtocol,
)

__all__ = [
    "CounterStoreProtocol",
    "EntityCacheProtocol",
    "InvalidationSchedulerProtocol",
    "MembershipTrackerProtocol",
    "RecoveryBreakerProtocol",
    "ScheduledTaskProtocol",
    "Subscription",
    "TaskSchedulerProtocol",
]
