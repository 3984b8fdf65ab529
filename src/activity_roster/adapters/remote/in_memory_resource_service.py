"""Authoritative in-process resource service.

Holds the source of truth for resources and their participants. Used by
the demo host and the tests; supports injected failures and latency so
rollback and recovery paths can be driven deterministically.
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict, deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from activity_roster.domain.models import (
    Ack,
    Err,
    Ok,
    Participant,
    ParticipantStatus,
    RealtimeEvent,
    RealtimeEventType,
    RemoteError,
    Resource,
    Result,
)
from activity_roster.domain.ports.resource_service import ResourceService

if TYPE_CHECKING:
    from activity_roster.adapters.realtime.event_source import InMemoryRealtimeEventSource

logger = logging.getLogger(__name__)

OPERATIONS = frozenset({"join", "leave", "fetch_list", "fetch_detail", "fetch_participants"})
BLOCKED_STATUSES = frozenset({ParticipantStatus.KICKED, ParticipantStatus.BANNED})


@dataclass
class ResourceRecord:
    """Server-side state of one resource."""

    id: str
    capacity: int
    creator_id: str | None = None
    title: str = ""
    attributes: dict[str, Any] = field(default_factory=dict)
    participants: dict[str, Participant] = field(default_factory=dict)

    @property
    def confirmed_count(self) -> int:
        return sum(1 for p in self.participants.values() if p.is_joined)

    def is_member(self, actor_id: str | None) -> bool:
        participant = self.participants.get(actor_id or "")
        return participant is not None and participant.is_joined

    def matches(self, filters: Mapping[str, object]) -> bool:
        return all(self.attributes.get(name) == value for name, value in filters.items())

    def to_resource(self, actor_id: str | None) -> Resource:
        return Resource(
            id=self.id,
            capacity=self.capacity,
            confirmed_count=self.confirmed_count,
            actor_membership=self.is_member(actor_id),
            creator_id=self.creator_id,
            title=self.title,
        )


class InMemoryResourceService(ResourceService):
    """Authoritative resource service kept in memory."""

    def __init__(
        self,
        latency_seconds: float = 0.0,
        events: InMemoryRealtimeEventSource | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            latency_seconds: Delay applied to every call.
            events: Where participant changes are published, if anywhere.
        """
        self.latency_seconds = latency_seconds
        self._events = events
        self._records: dict[str, ResourceRecord] = {}
        self._faults: dict[str, deque[RemoteError | float]] = defaultdict(deque)
        self.calls: list[tuple[str, str | None]] = []

    def add_resource(
        self,
        resource_id: str,
        capacity: int,
        creator_id: str | None = None,
        title: str = "",
        participants: list[str] | None = None,
        **attributes: Any,
    ) -> ResourceRecord:
        """Create a resource. The creator is joined automatically."""
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        record = ResourceRecord(
            id=resource_id,
            capacity=capacity,
            creator_id=creator_id,
            title=title,
            attributes=dict(attributes),
        )
        members = ([creator_id] if creator_id else []) + list(participants or [])
        for actor_id in members:
            record.participants[actor_id] = Participant(actor_id=actor_id)
        self._records[resource_id] = record
        return record

    def set_status(self, resource_id: str, actor_id: str, status: ParticipantStatus) -> None:
        """Set a participant's status directly, bypassing join/leave rules."""
        record = self._records[resource_id]
        record.participants[actor_id] = Participant(actor_id=actor_id, status=status)

    def record(self, resource_id: str) -> ResourceRecord:
        """Get the server-side record of a resource."""
        return self._records[resource_id]

    def fail_next(self, operation: str, error: RemoteError, times: int = 1) -> None:
        """Make the next calls of an operation fail with error."""
        self._check_operation(operation)
        self._faults[operation].extend([error] * times)

    def delay_next(self, operation: str, seconds: float, times: int = 1) -> None:
        """Make the next calls of an operation take extra time before answering."""
        self._check_operation(operation)
        self._faults[operation].extend([seconds] * times)

    def call_count(self, operation: str) -> int:
        """Number of calls made to an operation."""
        return sum(1 for name, _ in self.calls if name == operation)

    async def join(self, resource_id: str, actor_id: str) -> Result[Ack]:
        """Join a resource. Joining twice is acknowledged as already applied."""
        fault = await self._enter("join", resource_id)
        if fault is not None:
            return fault

        record = self._records.get(resource_id)
        if record is None:
            return Err(RemoteError.validation("Activity not found", status_code=404))
        if record.is_member(actor_id):
            return Ok(
                Ack(
                    resource_id=resource_id,
                    confirmed_count=record.confirmed_count,
                    already_applied=True,
                )
            )

        existing = record.participants.get(actor_id)
        if existing is not None and existing.status in BLOCKED_STATUSES:
            return Err(RemoteError.validation("You cannot join this activity", status_code=403))
        if record.confirmed_count >= record.capacity:
            return Err(RemoteError.validation("This activity is full", status_code=409))

        record.participants[actor_id] = Participant(actor_id=actor_id)
        logger.info(f"{actor_id} joined {resource_id} ({record.confirmed_count}/{record.capacity})")
        self._publish(RealtimeEventType.PARTICIPANT_JOINED, resource_id, actor_id)
        return Ok(Ack(resource_id=resource_id, confirmed_count=record.confirmed_count))

    async def leave(self, resource_id: str, actor_id: str) -> Result[Ack]:
        """Leave a resource. The creator cannot leave, and neither can a non-member."""
        fault = await self._enter("leave", resource_id)
        if fault is not None:
            return fault

        record = self._records.get(resource_id)
        if record is None:
            return Err(RemoteError.validation("Activity not found", status_code=404))
        if record.creator_id == actor_id:
            return Err(RemoteError.validation("Cannot leave your own activity", status_code=403))
        if not record.is_member(actor_id):
            return Err(
                RemoteError.validation("You are not currently in this activity", status_code=409)
            )

        record.participants[actor_id] = Participant(
            actor_id=actor_id, status=ParticipantStatus.LEFT
        )
        logger.info(f"{actor_id} left {resource_id} ({record.confirmed_count}/{record.capacity})")
        self._publish(RealtimeEventType.PARTICIPANT_LEFT, resource_id, actor_id)
        return Ok(Ack(resource_id=resource_id, confirmed_count=record.confirmed_count))

    async def fetch_list(
        self, filters: Mapping[str, object] | None = None, actor_id: str | None = None
    ) -> Result[tuple[Resource, ...]]:
        """Fetch resources whose attributes match every filter."""
        fault = await self._enter("fetch_list", None)
        if fault is not None:
            return fault
        return Ok(
            tuple(
                record.to_resource(actor_id)
                for record in self._records.values()
                if record.matches(filters or {})
            )
        )

    async def fetch_detail(
        self, resource_id: str, actor_id: str | None = None
    ) -> Result[Resource]:
        """Fetch one resource."""
        fault = await self._enter("fetch_detail", resource_id)
        if fault is not None:
            return fault
        record = self._records.get(resource_id)
        if record is None:
            return Err(RemoteError.validation("Activity not found", status_code=404))
        return Ok(record.to_resource(actor_id))

    async def fetch_participants(self, resource_id: str) -> Result[tuple[Participant, ...]]:
        """Fetch every participant row of a resource, in join order."""
        fault = await self._enter("fetch_participants", resource_id)
        if fault is not None:
            return fault
        record = self._records.get(resource_id)
        if record is None:
            return Err(RemoteError.validation("Activity not found", status_code=404))
        return Ok(tuple(record.participants.values()))

    async def _enter(self, operation: str, resource_id: str | None) -> Err | None:
        self.calls.append((operation, resource_id))
        if self.latency_seconds:
            await asyncio.sleep(self.latency_seconds)

        faults = self._faults[operation]
        if not faults:
            return None
        fault = faults.popleft()
        if isinstance(fault, RemoteError):
            logger.debug(f"Injected {fault.kind.value} failure into {operation}")
            return Err(fault)
        await asyncio.sleep(fault)
        return None

    def _publish(self, event_type: RealtimeEventType, resource_id: str, actor_id: str) -> None:
        if self._events is not None:
            self._events.publish(
                RealtimeEvent(type=event_type, resource_id=resource_id, actor_id=actor_id)
            )

    @staticmethod
    def _check_operation(operation: str) -> None:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")
