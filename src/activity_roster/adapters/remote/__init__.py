"""Remote resource service adapters."""

from activity_roster.adapters.remote.http_resource_service import HttpResourceService
from activity_roster.adapters.remote.in_memory_resource_service import (
    InMemoryResourceService,
    ResourceRecord,
)

__all__ = ["HttpResourceService", "InMemoryResourceService", "ResourceRecord"]
