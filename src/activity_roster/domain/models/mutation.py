"""Mutation domain models."""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict

from activity_roster.domain.models.cache_entry import ViewSnapshot


class MutationKind(str, Enum):
    """Direction of a membership mutation."""

    JOIN = "join"
    LEAVE = "leave"

    @property
    def target_membership(self) -> bool:
        """Membership the actor should have once the mutation lands."""
        return self is MutationKind.JOIN


class MutationPhase(str, Enum):
    """Lifecycle of a single mutation for one (resource, actor) pair."""

    IDLE = "idle"
    APPLYING = "applying"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class MembershipAnswer(str, Enum):
    """Whether the actor is already counted in a resource's confirmed count."""

    COUNTED = "counted"
    NOT_COUNTED = "not_counted"
    UNKNOWN = "unknown"


@dataclass
class PendingMutation:
    """Ephemeral record of a mutation that is in flight."""

    resource_id: str
    actor_id: str
    kind: MutationKind
    snapshot: ViewSnapshot
    started_at: float
    delta: int = 0
    phase: MutationPhase = MutationPhase.APPLYING
    attempts: int = 0

    @property
    def pair(self) -> tuple[str, str]:
        """The (resource_id, actor_id) pair this mutation is exclusive on."""
        return (self.resource_id, self.actor_id)


class MutationResult(BaseModel):
    """Outcome of a confirmed mutation."""

    model_config = ConfigDict(frozen=True)

    resource_id: str
    actor_id: str
    kind: MutationKind
    phase: MutationPhase
    delta: int
    attempts: int
    already_applied: bool = False
