"""Participant domain model."""

from dataclasses import dataclass
from enum import Enum


class ParticipantStatus(str, Enum):
    """Status of an actor's participation row."""

    JOINED = "joined"
    LEFT = "left"
    KICKED = "kicked"
    BANNED = "banned"


@dataclass(frozen=True)
class Participant:
    """An actor listed in a resource's participant view."""

    actor_id: str
    status: ParticipantStatus = ParticipantStatus.JOINED
    display_name: str = ""

    @property
    def is_joined(self) -> bool:
        """Only joined participants count towards the confirmed count."""
        return self.status is ParticipantStatus.JOINED


def joined_actor_ids(participants: tuple[Participant, ...]) -> set[str]:
    """Return the ids of actors whose status is joined."""
    return {p.actor_id for p in participants if p.is_joined}
