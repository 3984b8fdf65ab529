"""Ports (interfaces) for the ports-and-adapters architecture."""

from activity_roster.domain.ports.identity_provider import IdentityProvider
from activity_roster.domain.ports.realtime_event_source import RealtimeEventSource
from activity_roster.domain.ports.resource_service import ResourceService

__all__ = [
    "IdentityProvider",
    "RealtimeEventSource",
    "ResourceService",
]
