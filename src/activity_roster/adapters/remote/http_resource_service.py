"""REST resource service adapter over aiohttp.

Endpoints, relative to the configured base URL:

    GET  /resources                       list (filters as query parameters)
    GET  /resources/{id}                  detail
    GET  /resources/{id}/participants     participant rows
    POST /resources/{id}/join             join as the X-Actor-Id actor
    POST /resources/{id}/leave            leave as the X-Actor-Id actor
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeVar

import aiohttp
from pydantic import BaseModel, ConfigDict, ValidationError

from activity_roster.adapters.request_logger import RemoteCallTrace
from activity_roster.domain.models import (
    Ack,
    Err,
    Ok,
    Participant,
    ParticipantStatus,
    RemoteError,
    Resource,
    Result,
)
from activity_roster.domain.ports.resource_service import ResourceService

if TYPE_CHECKING:
    from aiohttp import ClientResponse, ClientSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

ACTOR_HEADER = "X-Actor-Id"
TIMEOUT_STATUSES = frozenset({408, 504})
THROTTLED_STATUS = 429
REMOTE_ERRORS = (asyncio.TimeoutError, aiohttp.ClientError, ValueError)


class ResourcePayload(BaseModel):
    """Wire format of a resource."""

    model_config = ConfigDict(extra="ignore")

    id: str
    capacity: int
    confirmed_count: int
    actor_membership: bool = False
    creator_id: str | None = None
    title: str = ""

    def to_domain(self) -> Resource:
        return Resource(**self.model_dump())


class ParticipantPayload(BaseModel):
    """Wire format of a participant row."""

    model_config = ConfigDict(extra="ignore")

    actor_id: str
    status: ParticipantStatus = ParticipantStatus.JOINED
    display_name: str = ""

    def to_domain(self) -> Participant:
        return Participant(
            actor_id=self.actor_id, status=self.status, display_name=self.display_name
        )


class AckPayload(BaseModel):
    """Wire format of a join/leave acknowledgement."""

    model_config = ConfigDict(extra="ignore")

    confirmed_count: int | None = None
    already_applied: bool = False


def error_from_status(status: int, reason: str) -> RemoteError:
    """Classify a non-success HTTP status."""
    if status in TIMEOUT_STATUSES:
        return RemoteError.timeout(reason)
    if status == THROTTLED_STATUS:
        return RemoteError.transient(reason, status_code=status)
    if 400 <= status < 500:
        return RemoteError.validation(reason, status_code=status)
    if status >= 500:
        return RemoteError.transient(reason, status_code=status)
    return RemoteError.unknown(reason)


def error_from_exception(error: Exception) -> RemoteError:
    """Classify an exception raised while talking to the service."""
    if isinstance(error, asyncio.TimeoutError):
        return RemoteError.timeout()
    if isinstance(error, aiohttp.ClientConnectionError):
        return RemoteError.transient(str(error) or type(error).__name__)
    if isinstance(error, ValueError):
        return RemoteError.unknown("Malformed response from resource service")
    return RemoteError.unknown(str(error) or type(error).__name__)


class HttpResourceService(ResourceService):
    """Adapter for the REST resource service."""

    def __init__(self, session: "ClientSession", base_url: str) -> None:
        """Initialize with an aiohttp session and the service base URL."""
        self._session = session
        self._base_url = base_url.rstrip("/")

    async def join(self, resource_id: str, actor_id: str) -> Result[Ack]:
        """Join a resource.

        A 409 Conflict is a duplicate join only when its body carries
        ``already_applied: true``; any other conflict (a full activity) is a
        validation error.
        """
        url = f"{self._base_url}/resources/{resource_id}/join"
        headers = self._headers(actor_id)
        trace = RemoteCallTrace("POST", url, actor_id=actor_id)
        try:
            async with self._session.post(url, headers=headers) as response:
                trace.finished(response.status)
                if response.status == 409 and await self._is_duplicate(response):
                    logger.debug(f"{actor_id} already joined {resource_id}")
                    return Ok(Ack(resource_id=resource_id, already_applied=True))
                return await self._parse_ack(response, resource_id)
        except REMOTE_ERRORS as e:
            return self._failure(trace, e)

    async def leave(self, resource_id: str, actor_id: str) -> Result[Ack]:
        """Leave a resource."""
        url = f"{self._base_url}/resources/{resource_id}/leave"
        headers = self._headers(actor_id)
        trace = RemoteCallTrace("POST", url, actor_id=actor_id)
        try:
            async with self._session.post(url, headers=headers) as response:
                trace.finished(response.status)
                return await self._parse_ack(response, resource_id)
        except REMOTE_ERRORS as e:
            return self._failure(trace, e)

    async def fetch_list(
        self, filters: Mapping[str, object] | None = None, actor_id: str | None = None
    ) -> Result[tuple[Resource, ...]]:
        """Fetch resources matching the filters."""
        params = {name: str(value) for name, value in (filters or {}).items()}
        data = await self._get_json(f"{self._base_url}/resources", actor_id, params)
        if isinstance(data, Err):
            return data
        items = data.get("resources", []) if isinstance(data, dict) else data
        return self._convert(
            lambda: tuple(ResourcePayload.model_validate(item).to_domain() for item in items)
        )

    async def fetch_detail(
        self, resource_id: str, actor_id: str | None = None
    ) -> Result[Resource]:
        """Fetch one resource."""
        data = await self._get_json(f"{self._base_url}/resources/{resource_id}", actor_id)
        if isinstance(data, Err):
            return data
        return self._convert(lambda: ResourcePayload.model_validate(data).to_domain())

    async def fetch_participants(self, resource_id: str) -> Result[tuple[Participant, ...]]:
        """Fetch the participant rows of a resource."""
        data = await self._get_json(
            f"{self._base_url}/resources/{resource_id}/participants", None
        )
        if isinstance(data, Err):
            return data
        items = data.get("participants", []) if isinstance(data, dict) else data
        return self._convert(
            lambda: tuple(ParticipantPayload.model_validate(item).to_domain() for item in items)
        )

    async def _get_json(
        self, url: str, actor_id: str | None, params: dict[str, str] | None = None
    ) -> Any:
        headers = self._headers(actor_id)
        trace = RemoteCallTrace("GET", url, params=params, actor_id=actor_id)
        try:
            async with self._session.get(url, params=params, headers=headers) as response:
                trace.finished(response.status)
                if response.status != 200:
                    return Err(error_from_status(response.status, await self._reason(response)))
                return await response.json()
        except REMOTE_ERRORS as e:
            return self._failure(trace, e)

    async def _parse_ack(self, response: "ClientResponse", resource_id: str) -> Result[Ack]:
        if response.status not in (200, 201, 204):
            return Err(error_from_status(response.status, await self._reason(response)))
        if response.status == 204:
            return Ok(Ack(resource_id=resource_id))
        payload = AckPayload.model_validate(await response.json())
        return Ok(
            Ack(
                resource_id=resource_id,
                confirmed_count=payload.confirmed_count,
                already_applied=payload.already_applied,
            )
        )

    @staticmethod
    def _failure(trace: RemoteCallTrace, error: Exception) -> Err:
        remote_error = error_from_exception(error)
        trace.failed(remote_error)
        return Err(remote_error)

    @staticmethod
    def _convert(build: Callable[[], T]) -> Result[T]:
        try:
            return Ok(build())
        except (ValidationError, TypeError) as e:
            logger.warning(f"Malformed response from resource service: {e}")
            return Err(RemoteError.unknown("Malformed response from resource service"))

    @staticmethod
    async def _is_duplicate(response: "ClientResponse") -> bool:
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ClientError, ValueError):
            return False
        return isinstance(body, dict) and body.get("already_applied") is True

    @staticmethod
    async def _reason(response: "ClientResponse") -> str:
        """Extract a human-readable reason from an error response."""
        try:
            body = await response.json(content_type=None)
        except (aiohttp.ClientError, ValueError):
            body = None
        if isinstance(body, dict):
            for field in ("message", "error", "detail"):
                if isinstance(body.get(field), str):
                    return body[field]
        return response.reason or f"HTTP {response.status}"

    @staticmethod
    def _headers(actor_id: str | None) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if actor_id:
            headers[ACTOR_HEADER] = actor_id
        return headers
