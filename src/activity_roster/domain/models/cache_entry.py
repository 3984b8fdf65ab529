"""Cache entry domain model."""

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, TypeAlias

from activity_roster.domain.models.participant import Participant
from activity_roster.domain.models.resource import Resource
from activity_roster.domain.models.view_key import ViewKey

if TYPE_CHECKING:
    from activity_roster.domain.models.error_details import RemoteError

ViewValue: TypeAlias = Resource | tuple[Resource, ...] | tuple[Participant, ...]


@dataclass(frozen=True)
class CacheEntry:
    """A cached view value together with its freshness metadata."""

    value: ViewValue
    updated_at: float
    is_invalidated: bool = False
    error: "RemoteError | None" = None

    def with_value(self, value: ViewValue, updated_at: float) -> "CacheEntry":
        """Return a copy holding a new value."""
        return replace(self, value=value, updated_at=updated_at)


ViewSnapshot: TypeAlias = dict[ViewKey, CacheEntry | None]
