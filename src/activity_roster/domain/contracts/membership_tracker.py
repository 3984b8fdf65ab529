"""Membership tracker contract (protocol)."""

from typing import Protocol

from activity_roster.domain.models.mutation import MembershipAnswer
from activity_roster.domain.models.resource import Resource


class MembershipTrackerProtocol(Protocol):
    """Protocol for deciding whether an actor is already counted."""

    def is_actor_counted(self, resource_id: str, actor_id: str) -> MembershipAnswer:
        """Check whether the actor is counted in the resource's confirmed count.

        Args:
            resource_id: The resource id.
            actor_id: The actor id.

        Returns:
            COUNTED, NOT_COUNTED, or UNKNOWN when no view can answer.
        """
        ...

    def find_resource(self, resource_id: str) -> Resource | None:
        """Return the freshest cached snapshot of a resource, if any view holds one."""
        ...
