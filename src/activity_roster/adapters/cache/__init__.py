"""Cache adapters."""

from activity_roster.adapters.cache.entity_cache_store import EntityCacheStore
from activity_roster.adapters.cache.garbage_collector import CacheGarbageCollector
from activity_roster.adapters.cache.membership_tracker import MembershipTracker

__all__ = ["CacheGarbageCollector", "EntityCacheStore", "MembershipTracker"]
