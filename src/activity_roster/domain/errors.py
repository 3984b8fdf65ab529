"""Exceptions raised by the roster cache core.

Remote failures travel as ``Err`` values until the application layer turns
them into one of these exceptions. Every exception derives from
``RosterError`` so hosts can catch the whole family.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from activity_roster.domain.models.error_details import ErrorKind, RemoteError

if TYPE_CHECKING:
    from activity_roster.domain.models.mutation import MutationKind
    from activity_roster.domain.models.view_key import ViewKey


class RosterError(Exception):
    """Base exception for all roster cache errors."""


class MutationInFlightError(RosterError):
    """A mutation for the same resource and actor is already applying."""

    def __init__(self, resource_id: str, actor_id: str) -> None:
        super().__init__(f"A mutation for {resource_id} by {actor_id} is already in flight")
        self.resource_id = resource_id
        self.actor_id = actor_id


class MutationFailedError(RosterError):
    """A join or leave failed and its speculative changes were rolled back."""

    def __init__(
        self, resource_id: str, kind: MutationKind, error: RemoteError, user_message: str
    ) -> None:
        super().__init__(f"{kind.value} {resource_id} failed: {error.reason}")
        self.resource_id = resource_id
        self.kind = kind
        self.error = error
        self.user_message = user_message

    @property
    def error_kind(self) -> ErrorKind:
        """Classification of the underlying remote failure."""
        return self.error.kind


class MembershipConflictError(RosterError):
    """The requested membership change is not allowed for this actor."""


class FetchFailedError(RosterError):
    """A view could not be fetched after retries were exhausted."""

    def __init__(self, key: ViewKey, error: RemoteError) -> None:
        super().__init__(f"Failed to fetch {key}: {error.reason}")
        self.key = key
        self.error = error


class CacheCorruptedError(RosterError):
    """The recovery breaker has tripped and the cache can no longer be trusted."""
