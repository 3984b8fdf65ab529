"""Corruption counter and reload signal domain models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class CorruptionCounter(BaseModel):
    """Snapshot of the recovery breaker's state."""

    model_config = ConfigDict(frozen=True)

    consecutive_timeouts: int
    threshold: int
    tripped: bool


class ForceReloadSignal(BaseModel):
    """Signal to the host application that it must reload from scratch."""

    model_config = ConfigDict(frozen=True)

    reason: str
    consecutive_timeouts: int
    emitted_at: datetime
