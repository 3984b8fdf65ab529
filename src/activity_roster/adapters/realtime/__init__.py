"""Realtime and identity adapters."""

from activity_roster.adapters.realtime.event_source import InMemoryRealtimeEventSource
from activity_roster.adapters.realtime.identity_provider import InMemoryIdentityProvider
from activity_roster.adapters.realtime.invalidation_bridge import RealtimeInvalidationBridge

__all__ = [
    "InMemoryIdentityProvider",
    "InMemoryRealtimeEventSource",
    "RealtimeInvalidationBridge",
]
