"""Adapters layer - cache, scheduling, recovery and external system integrations."""

from activity_roster.adapters.cache import (
    CacheGarbageCollector,
    EntityCacheStore,
    MembershipTracker,
)
from activity_roster.adapters.config import AppConfig
from activity_roster.adapters.realtime import (
    InMemoryIdentityProvider,
    InMemoryRealtimeEventSource,
    RealtimeInvalidationBridge,
)
from activity_roster.adapters.recovery import (
    InMemoryCounterStore,
    JsonFileCounterStore,
    RecoveryBreaker,
)
from activity_roster.adapters.remote import HttpResourceService, InMemoryResourceService
from activity_roster.adapters.scheduling import InvalidationScheduler, TaskScheduler

__all__ = [
    "AppConfig",
    "CacheGarbageCollector",
    "EntityCacheStore",
    "HttpResourceService",
    "InMemoryCounterStore",
    "InMemoryIdentityProvider",
    "InMemoryRealtimeEventSource",
    "InMemoryResourceService",
    "InvalidationScheduler",
    "JsonFileCounterStore",
    "MembershipTracker",
    "RealtimeInvalidationBridge",
    "RecoveryBreaker",
    "TaskScheduler",
]
