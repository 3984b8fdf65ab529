"""Realtime event domain model."""

from dataclasses import dataclass
from enum import Enum


class RealtimeEventType(str, Enum):
    """Participant change notifications pushed by the realtime source."""

    PARTICIPANT_JOINED = "participant_joined"
    PARTICIPANT_LEFT = "participant_left"


@dataclass(frozen=True)
class RealtimeEvent:
    """A push notification about a resource's participants."""

    type: RealtimeEventType
    resource_id: str
    actor_id: str | None = None
