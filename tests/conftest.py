"""Shared fixtures for the roster cache tests."""

import pytest

from activity_roster.adapters.config import AppConfig
from activity_roster.adapters.realtime import InMemoryIdentityProvider
from activity_roster.adapters.recovery import InMemoryCounterStore
from activity_roster.adapters.remote import InMemoryResourceService
from activity_roster.domain.models import ForceReloadSignal
from activity_roster.main import RosterRuntime, build_runtime


@pytest.fixture
def fast_config() -> AppConfig:
    """Config with near-zero delays so scheduled work settles quickly."""
    return AppConfig.for_testing(
        identity_debounce_seconds=0.01,
        refresh_delay_seconds=0.01,
        realtime_delay_seconds=0.01,
        fetch_base_delay_seconds=0.0,
        mutation_base_delay_seconds=0.0,
        remote_timeout_seconds=1.0,
    )


@pytest.fixture
def remote() -> InMemoryResourceService:
    """Authoritative service holding one activity with 5 of 10 spots taken."""
    service = InMemoryResourceService()
    service.add_resource(
        "r1",
        capacity=10,
        creator_id="owner",
        title="Tuesday run",
        participants=["p1", "p2", "p3", "p4"],
        sport="running",
    )
    return service


@pytest.fixture
def identity() -> InMemoryIdentityProvider:
    """Identity provider signed in as alice."""
    return InMemoryIdentityProvider("alice")


@pytest.fixture
def runtime(
    fast_config: AppConfig,
    remote: InMemoryResourceService,
    identity: InMemoryIdentityProvider,
) -> RosterRuntime:
    """Fully wired cache instance around the in-memory service."""
    return build_runtime(
        fast_config, remote, identity=identity, counter_store=InMemoryCounterStore()
    )


@pytest.fixture
def reload_signals(runtime: RosterRuntime) -> list[ForceReloadSignal]:
    """Collects force-reload signals emitted by the runtime's breaker."""
    signals: list[ForceReloadSignal] = []
    runtime.subscriptions.append(runtime.breaker.on_force_reload(signals.append))
    return signals
