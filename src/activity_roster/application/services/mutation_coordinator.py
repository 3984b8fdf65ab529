"""Optimistic join/leave coordination over the entity cache.

A mutation runs in two halves. ``mutate()`` performs the speculative half
synchronously: it snapshots every view of the resource, asks the membership
tracker whether the actor is already counted, applies the delta and cancels
competing fetches. Only then is the remote call dispatched as a task, so any
read made after ``mutate()`` returns sees the speculative state. Fetches that
start while the mutation is in flight are held back from its views.

The settling half runs in that task. On success the list views are patched
in place and a refresh of the detail and participant views is scheduled. On
failure the snapshot is restored wholesale, so no view is ever left ahead of
another, and ``MutationFailedError`` is raised.

Invariants:
    - At most one mutation is applying per (resource_id, actor_id) pair
    - The speculative write completes before the remote call is dispatched
    - A dispatched mutation cannot be cancelled by its caller
    - A rolled-back mutation leaves every view equal to its snapshot
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import replace
from typing import TYPE_CHECKING

from activity_roster.application.services.retry_policy import run_with_retries
from activity_roster.domain.errors import (
    CacheCorruptedError,
    MembershipConflictError,
    MutationFailedError,
    MutationInFlightError,
)
from activity_roster.domain.models import (
    Ack,
    ErrorKind,
    MembershipAnswer,
    MutationKind,
    MutationPhase,
    MutationResult,
    Ok,
    Participant,
    ParticipantStatus,
    PendingMutation,
    RemoteError,
    Resource,
    RetryPolicy,
    ViewKey,
    ViewKind,
)

if TYPE_CHECKING:
    from activity_roster.application.services.query_service import ResourceQueryService
    from activity_roster.domain.contracts.entity_cache import EntityCacheProtocol
    from activity_roster.domain.contracts.invalidation_scheduler import (
        InvalidationSchedulerProtocol,
    )
    from activity_roster.domain.contracts.membership_tracker import MembershipTrackerProtocol
    from activity_roster.domain.contracts.recovery_breaker import RecoveryBreakerProtocol
    from activity_roster.domain.ports import IdentityProvider, ResourceService

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGES = {
    MutationKind.JOIN: "Failed to join activity. Please try again later.",
    MutationKind.LEAVE: "Failed to leave activity. Please try again later.",
}
TIMEOUT_FAILURE_MESSAGE = "The server took too long to respond. Please try again."


def membership_delta(kind: MutationKind, answer: MembershipAnswer) -> int:
    """Count change a mutation should apply given what the tracker knows.

    A target state that already holds applies no delta, and so does an
    unknown membership, so the count is never moved twice for one actor.
    """
    if answer is MembershipAnswer.UNKNOWN:
        return 0
    counted = answer is MembershipAnswer.COUNTED
    if kind.target_membership == counted:
        return 0
    return 1 if kind is MutationKind.JOIN else -1


def _mark_retrieved(future: asyncio.Future) -> None:
    # Failures are logged on rollback; callers may drop the future unawaited
    if not future.cancelled():
        future.exception()


class MutationCoordinator:
    """Runs join/leave mutations optimistically against the entity cache."""

    def __init__(
        self,
        store: EntityCacheProtocol,
        tracker: MembershipTrackerProtocol,
        remote: ResourceService,
        scheduler: InvalidationSchedulerProtocol,
        breaker: RecoveryBreakerProtocol,
        query_service: ResourceQueryService,
        identity: IdentityProvider,
        policy: RetryPolicy | None = None,
        timeout_seconds: float | None = 10.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the coordinator.

        Args:
            store: The shared entity cache.
            tracker: Membership tracker over the same cache.
            remote: The authoritative resource service.
            scheduler: Schedules the post-commit refresh.
            breaker: Recovery breaker; checked before and fed during each mutation.
            query_service: Used to cancel fetches competing with a mutation.
            identity: Supplies the current actor.
            policy: Retry policy for the remote call.
            timeout_seconds: Latency threshold per remote attempt.
            clock: Time source for PendingMutation.started_at.
        """
        self._store = store
        self._tracker = tracker
        self._remote = remote
        self._scheduler = scheduler
        self._breaker = breaker
        self._query_service = query_service
        self._identity = identity
        self._policy = policy or RetryPolicy(max_timeout_retries=1, max_transient_retries=1)
        self._timeout_seconds = timeout_seconds
        self._clock = clock
        self._pending: dict[tuple[str, str], PendingMutation] = {}
        self._tasks: set[asyncio.Task] = set()

    def join(self, resource_id: str) -> asyncio.Future[MutationResult]:
        """Join a resource as the current actor."""
        return self.mutate(resource_id, MutationKind.JOIN)

    def leave(self, resource_id: str) -> asyncio.Future[MutationResult]:
        """Leave a resource as the current actor."""
        return self.mutate(resource_id, MutationKind.LEAVE)

    def toggle(self, resource_id: str) -> asyncio.Future[MutationResult]:
        """Join if the current actor is not a member, leave otherwise."""
        resource = self._tracker.find_resource(resource_id)
        joined = resource is not None and resource.actor_membership
        return self.mutate(resource_id, MutationKind.LEAVE if joined else MutationKind.JOIN)

    def mutate(
        self, resource_id: str, kind: MutationKind, actor_id: str | None = None
    ) -> asyncio.Future[MutationResult]:
        """Apply a mutation speculatively and dispatch the remote call.

        Must be called from a running event loop. Everything up to the remote
        dispatch happens before this method returns.

        Args:
            resource_id: The resource to join or leave.
            kind: JOIN or LEAVE.
            actor_id: Acting identity; the identity provider's current actor if None.

        Returns:
            A future resolving to the MutationResult, or raising
            MutationFailedError after rollback.

        Raises:
            CacheCorruptedError: The recovery breaker has tripped.
            MembershipConflictError: No actor is signed in, or a creator tries to leave.
            MutationInFlightError: A mutation for the same pair is still applying.
        """
        loop = asyncio.get_running_loop()
        self._breaker.ensure_trusted()

        actor_id = actor_id or self._identity.current_actor_id()
        if actor_id is None:
            raise MembershipConflictError("Must be logged in to join or leave activities")

        pair = (resource_id, actor_id)
        if pair in self._pending:
            raise MutationInFlightError(resource_id, actor_id)

        if kind is MutationKind.LEAVE:
            resource = self._tracker.find_resource(resource_id)
            if resource is not None and resource.creator_id == actor_id:
                raise MembershipConflictError("Cannot leave your own activity")

        keys = self._affected_keys(resource_id)
        snapshot = self._store.snapshot(keys)
        answer = self._tracker.is_actor_counted(resource_id, actor_id)
        delta = membership_delta(kind, answer)

        self._apply(resource_id, actor_id, kind, delta)
        self._query_service.cancel_fetches(keys)
        self._query_service.hold_writes(keys)

        pending = PendingMutation(
            resource_id=resource_id,
            actor_id=actor_id,
            kind=kind,
            snapshot=snapshot,
            started_at=self._clock(),
            delta=delta,
        )
        self._pending[pair] = pending
        logger.info(
            f"Applied speculative {kind.value} of {resource_id} by {actor_id} "
            f"(membership {answer.value}, delta {delta:+d})"
        )

        task = loop.create_task(self._settle(pending), name=f"mutation:{kind.value}:{resource_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        future = asyncio.shield(task)
        future.add_done_callback(_mark_retrieved)
        return future

    def phase(self, resource_id: str, actor_id: str) -> MutationPhase:
        """Current phase of the pair: APPLYING while a mutation is in flight, else IDLE."""
        pending = self._pending.get((resource_id, actor_id))
        return pending.phase if pending is not None else MutationPhase.IDLE

    def pending_mutations(self) -> list[PendingMutation]:
        """Mutations currently in flight."""
        return list(self._pending.values())

    async def wait_idle(self) -> None:
        """Wait for every dispatched mutation to settle, ignoring their outcomes."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    def _affected_keys(self, resource_id: str) -> list[ViewKey]:
        return [
            ViewKey.for_detail(resource_id),
            ViewKey.for_participants(resource_id),
            *self._store.keys(kind=ViewKind.LIST, resource_id=resource_id),
        ]

    def _apply(self, resource_id: str, actor_id: str, kind: MutationKind, delta: int) -> None:
        joined = kind.target_membership

        def patch_resource(value: object) -> Resource | None:
            if not isinstance(value, Resource):
                return None
            return value.with_membership(joined, delta)

        def patch_list(value: object) -> tuple[Resource, ...] | None:
            if not isinstance(value, tuple):
                return None
            return tuple(
                r.with_membership(joined, delta) if r.id == resource_id else r for r in value
            )

        def patch_participants(value: object) -> tuple[Participant, ...] | None:
            if not isinstance(value, tuple):
                return None
            others = tuple(p for p in value if p.actor_id != actor_id)
            if delta > 0:
                existing = next((p for p in value if p.actor_id == actor_id), None)
                joined_row = (
                    replace(existing, status=ParticipantStatus.JOINED)
                    if existing is not None
                    else Participant(actor_id=actor_id)
                )
                return (*others, joined_row)
            return others

        self._store.write(ViewKey.for_detail(resource_id), patch_resource)
        for key in self._store.keys(kind=ViewKind.LIST, resource_id=resource_id):
            self._store.write(key, patch_list)
        if delta != 0:
            self._store.write(ViewKey.for_participants(resource_id), patch_participants)

    async def _settle(self, pending: PendingMutation) -> MutationResult:
        try:
            result, attempts = await run_with_retries(
                lambda: self._call_remote(pending),
                self._policy,
                self._timeout_seconds,
                on_failure=self._record_failure,
                label=f"{pending.kind.value} {pending.resource_id}",
            )
            pending.attempts = attempts
            if isinstance(result, Ok):
                return self._confirm(pending, result.value)
            self._rollback(pending, result.error)
        except CacheCorruptedError:
            pending.phase = MutationPhase.ROLLED_BACK
            logger.error(
                f"{pending.kind.value} of {pending.resource_id} abandoned: cache was wiped"
            )
            raise
        except asyncio.CancelledError:
            self._store.restore(pending.snapshot)
            pending.phase = MutationPhase.ROLLED_BACK
            raise
        finally:
            self._pending.pop(pending.pair, None)
            self._query_service.release_writes(list(pending.snapshot))

    def _call_remote(self, pending: PendingMutation):  # noqa: ANN202
        if pending.kind is MutationKind.JOIN:
            return self._remote.join(pending.resource_id, pending.actor_id)
        return self._remote.leave(pending.resource_id, pending.actor_id)

    def _record_failure(self, kind: ErrorKind) -> None:
        self._breaker.record_outcome(kind)
        if self._breaker.is_tripped():
            raise CacheCorruptedError("Recovery breaker tripped during mutation")

    def _confirm(self, pending: PendingMutation, ack: Ack) -> MutationResult:
        pending.phase = MutationPhase.CONFIRMED
        if ack.confirmed_count is not None:
            self._patch_lists(pending, ack.confirmed_count)

        self._scheduler.schedule_invalidation(
            [
                ViewKey.for_detail(pending.resource_id),
                ViewKey.for_participants(pending.resource_id),
            ]
        )
        logger.info(
            f"Confirmed {pending.kind.value} of {pending.resource_id} by {pending.actor_id} "
            f"after {pending.attempts} attempt(s)"
        )
        return MutationResult(
            resource_id=pending.resource_id,
            actor_id=pending.actor_id,
            kind=pending.kind,
            phase=pending.phase,
            delta=pending.delta,
            attempts=pending.attempts,
            already_applied=ack.already_applied,
        )

    def _patch_lists(self, pending: PendingMutation, confirmed_count: int) -> None:
        joined = pending.kind.target_membership

        def patch(value: object) -> tuple[Resource, ...] | None:
            if not isinstance(value, tuple):
                return None
            return tuple(
                replace(r, confirmed_count=confirmed_count, actor_membership=joined)
                if r.id == pending.resource_id
                else r
                for r in value
            )

        for key in self._store.keys(kind=ViewKind.LIST, resource_id=pending.resource_id):
            self._store.write(key, patch)

    def _rollback(self, pending: PendingMutation, error: RemoteError) -> None:
        self._store.restore(pending.snapshot)
        pending.phase = MutationPhase.ROLLED_BACK
        logger.warning(
            f"Rolled back {pending.kind.value} of {pending.resource_id} by {pending.actor_id}: "
            f"{error.kind.value} ({error.reason})"
        )
        raise MutationFailedError(
            pending.resource_id, pending.kind, error, self._user_message(pending.kind, error)
        )

    @staticmethod
    def _user_message(kind: MutationKind, error: RemoteError) -> str:
        if error.kind is ErrorKind.VALIDATION:
            return error.reason
        if error.kind is ErrorKind.TIMEOUT:
            return TIMEOUT_FAILURE_MESSAGE
        return GENERIC_FAILURE_MESSAGES[kind]
