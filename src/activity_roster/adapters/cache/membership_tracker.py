"""Membership tracking over the cached participant, detail and list views."""

import logging
from typing import TYPE_CHECKING

from activity_roster.domain.contracts.membership_tracker import MembershipTrackerProtocol
from activity_roster.domain.models import (
    MembershipAnswer,
    Resource,
    ViewKey,
    ViewKind,
    joined_actor_ids,
)

if TYPE_CHECKING:
    from activity_roster.domain.contracts.entity_cache import EntityCacheProtocol

logger = logging.getLogger(__name__)


class MembershipTracker(MembershipTrackerProtocol):
    """Decides whether an actor is already counted for a resource.

    The participant view and the list/detail views are fetched independently
    and may be at different freshness, so the participant view wins whenever
    it is loaded.
    """

    def __init__(self, store: "EntityCacheProtocol") -> None:
        """Initialize the tracker."""
        self._store = store

    def is_actor_counted(self, resource_id: str, actor_id: str) -> MembershipAnswer:
        """Check whether the actor is counted in the resource's confirmed count.

        Args:
            resource_id: The resource id.
            actor_id: The actor id.

        Returns:
            COUNTED, NOT_COUNTED, or UNKNOWN when no view can answer.
        """
        participants = self._store.read(ViewKey.for_participants(resource_id))
        if participants is not None:
            counted = actor_id in joined_actor_ids(participants)  # type: ignore[arg-type]
            logger.debug(
                f"Membership of {actor_id} in {resource_id} from participant view: {counted}"
            )
            return MembershipAnswer.COUNTED if counted else MembershipAnswer.NOT_COUNTED

        resource = self.find_resource(resource_id)
        if resource is not None:
            return (
                MembershipAnswer.COUNTED
                if resource.actor_membership
                else MembershipAnswer.NOT_COUNTED
            )

        return MembershipAnswer.UNKNOWN

    def find_resource(self, resource_id: str) -> Resource | None:
        """Find the freshest cached copy of a resource, detail view first.

        Args:
            resource_id: The resource id.

        Returns:
            The resource from the detail view, else from the first list view
            containing it, else None.
        """
        detail = self._store.read(ViewKey.for_detail(resource_id))
        if isinstance(detail, Resource):
            return detail

        for key in self._store.keys(kind=ViewKind.LIST, resource_id=resource_id):
            for resource in self._store.read(key) or ():  # type: ignore[union-attr]
                if isinstance(resource, Resource) and resource.id == resource_id:
                    return resource
        return None
