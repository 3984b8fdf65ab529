"""Typed result envelopes returned by the remote resource service."""

from dataclasses import dataclass
from typing import Generic, TypeAlias, TypeVar

from pydantic import BaseModel, ConfigDict

from activity_roster.domain.models.error_details import RemoteError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful remote result."""

    value: T


@dataclass(frozen=True)
class Err:
    """Failed remote result."""

    error: RemoteError


Result: TypeAlias = Ok[T] | Err


class Ack(BaseModel):
    """Acknowledgement of a join or leave.

    confirmed_count is the authoritative count after the change when the
    service reports one. already_applied is set when the service found the
    actor already in the target state.
    """

    model_config = ConfigDict(frozen=True)

    resource_id: str
    confirmed_count: int | None = None
    already_applied: bool = False
