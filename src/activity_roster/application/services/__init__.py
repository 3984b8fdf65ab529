"""Application services."""

from activity_roster.application.services.mutation_coordinator import (
    MutationCoordinator,
    membership_delta,
)
from activity_roster.application.services.query_service import ResourceQueryService
from activity_roster.application.services.retry_policy import (
    call_with_timeout,
    classify_exception,
    run_with_retries,
)

__all__ = [
    "MutationCoordinator",
    "ResourceQueryService",
    "call_with_timeout",
    "classify_exception",
    "membership_delta",
    "run_with_retries",
]
