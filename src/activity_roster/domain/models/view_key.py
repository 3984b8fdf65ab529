"""Cache view key domain model."""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum


class ViewKind(str, Enum):
    """The three denormalized read models over the same resources."""

    LIST = "list"
    DETAIL = "detail"
    PARTICIPANTS = "participants"


def filter_signature(filters: Mapping[str, object] | None) -> str:
    """Build a canonical signature for a list query's filter set."""
    return json.dumps(dict(filters or {}), sort_keys=True, separators=(",", ":"), default=str)


@dataclass(frozen=True)
class ViewKey:
    """Identifies one cached view.

    List views are keyed by filter signature, detail and participant views
    by resource id.
    """

    kind: ViewKind
    resource_id: str | None = None
    filter_signature: str | None = None

    @classmethod
    def for_list(cls, filters: Mapping[str, object] | None = None) -> "ViewKey":
        """Key of the list view for a filter set."""
        return cls(kind=ViewKind.LIST, filter_signature=filter_signature(filters))

    @classmethod
    def for_detail(cls, resource_id: str) -> "ViewKey":
        """Key of the detail view for a resource."""
        return cls(kind=ViewKind.DETAIL, resource_id=resource_id)

    @classmethod
    def for_participants(cls, resource_id: str) -> "ViewKey":
        """Key of the participant view for a resource."""
        return cls(kind=ViewKind.PARTICIPANTS, resource_id=resource_id)

    @property
    def filters(self) -> dict[str, object]:
        """Decode the filter set of a list key."""
        if self.filter_signature is None:
            return {}
        return dict(json.loads(self.filter_signature))

    def __str__(self) -> str:
        if self.kind is ViewKind.LIST:
            return f"list{self.filter_signature}"
        return f"{self.kind.value}:{self.resource_id}"
