"""Domain layer - core models, contracts and ports."""

from activity_roster.domain.models import (
    MutationKind,
    Participant,
    Resource,
    ViewKey,
)
from activity_roster.domain.ports import (
    IdentityProvider,
    RealtimeEventSource,
    ResourceService,
)

__all__ = [
    "IdentityProvider",
    "MutationKind",
    "Participant",
    "RealtimeEventSource",
    "Resource",
    "ResourceService",
    "ViewKey",
]
