"""Remote error domain models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict


class ErrorKind(str, Enum):
    """Closed classification of remote failures."""

    VALIDATION = "validation"
    TIMEOUT = "timeout"
    TRANSIENT_NETWORK = "transient_network"
    UNKNOWN = "unknown"


class RemoteError(BaseModel):
    """Details about a failed remote call, including HTTP status code if applicable."""

    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    reason: str
    status_code: int | None = None

    @classmethod
    def validation(cls, reason: str, status_code: int | None = None) -> "RemoteError":
        """Build a validation-class error."""
        return cls(kind=ErrorKind.VALIDATION, reason=reason, status_code=status_code)

    @classmethod
    def timeout(cls, reason: str = "Request timed out") -> "RemoteError":
        """Build a timeout-class error."""
        return cls(kind=ErrorKind.TIMEOUT, reason=reason)

    @classmethod
    def transient(cls, reason: str, status_code: int | None = None) -> "RemoteError":
        """Build a transient network error."""
        return cls(kind=ErrorKind.TRANSIENT_NETWORK, reason=reason, status_code=status_code)

    @classmethod
    def unknown(cls, reason: str = "Unknown error") -> "RemoteError":
        """Build an unclassified error."""
        return cls(kind=ErrorKind.UNKNOWN, reason=reason)
