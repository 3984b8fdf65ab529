"""Domain models for the activity roster cache."""

from activity_roster.domain.models.cache_entry import CacheEntry, ViewSnapshot, ViewValue
from activity_roster.domain.models.corruption_counter import CorruptionCounter, ForceReloadSignal
from activity_roster.domain.models.error_details import ErrorKind, RemoteError
from activity_roster.domain.models.mutation import (
    MembershipAnswer,
    MutationKind,
    MutationPhase,
    MutationResult,
    PendingMutation,
)
from activity_roster.domain.models.participant import (
    Participant,
    ParticipantStatus,
    joined_actor_ids,
)
from activity_roster.domain.models.realtime_event import RealtimeEvent, RealtimeEventType
from activity_roster.domain.models.resource import Resource
from activity_roster.domain.models.result import Ack, Err, Ok, Result
from activity_roster.domain.models.retry_policy import RetryPolicy
from activity_roster.domain.models.view_key import ViewKey, ViewKind, filter_signature

__all__ = [
    "Ack",
    "CacheEntry",
    "CorruptionCounter",
    "Err",
    "ErrorKind",
    "ForceReloadSignal",
    "MembershipAnswer",
    "MutationKind",
    "MutationPhase",
    "MutationResult",
    "Ok",
    "Participant",
    "ParticipantStatus",
    "PendingMutation",
    "RealtimeEvent",
    "RealtimeEventType",
    "RemoteError",
    "Resource",
    "Result",
    "RetryPolicy",
    "ViewKey",
    "ViewKind",
    "ViewSnapshot",
    "ViewValue",
    "filter_signature",
    "joined_actor_ids",
]
