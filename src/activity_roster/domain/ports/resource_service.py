"""Remote resource service port."""

from collections.abc import Mapping
from typing import Protocol

from activity_roster.domain.models.participant import Participant
from activity_roster.domain.models.resource import Resource
from activity_roster.domain.models.result import Ack, Result


class ResourceService(Protocol):
    """Port for the authoritative remote resource service."""

    async def join(self, resource_id: str, actor_id: str) -> Result[Ack]:
        """Join a resource as the actor."""
        ...

    async def leave(self, resource_id: str, actor_id: str) -> Result[Ack]:
        """Leave a resource as the actor."""
        ...

    async def fetch_list(
        self, filters: Mapping[str, object] | None = None, actor_id: str | None = None
    ) -> Result[tuple[Resource, ...]]:
        """Fetch resources matching a filter set, from the actor's perspective."""
        ...

    async def fetch_detail(
        self, resource_id: str, actor_id: str | None = None
    ) -> Result[Resource]:
        """Fetch a single resource, from the actor's perspective."""
        ...

    async def fetch_participants(self, resource_id: str) -> Result[tuple[Participant, ...]]:
        """Fetch the participant rows of a resource."""
        ...
