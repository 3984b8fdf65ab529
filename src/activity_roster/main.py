"""Composition root and demo host for the activity roster cache."""

import asyncio
import logging
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass, field

import aiohttp

from activity_roster.adapters.cache import (
    CacheGarbageCollector,
    EntityCacheStore,
    MembershipTracker,
)
from activity_roster.adapters.config import AppConfig
from activity_roster.adapters.realtime import (
    InMemoryIdentityProvider,
    InMemoryRealtimeEventSource,
    RealtimeInvalidationBridge,
)
from activity_roster.adapters.recovery import (
    InMemoryCounterStore,
    JsonFileCounterStore,
    RecoveryBreaker,
)
from activity_roster.adapters.remote import HttpResourceService, InMemoryResourceService
from activity_roster.adapters.scheduling import InvalidationScheduler, TaskScheduler
from activity_roster.application.services import MutationCoordinator, ResourceQueryService
from activity_roster.domain.contracts import CounterStoreProtocol, Subscription
from activity_roster.domain.errors import (
    CacheCorruptedError,
    MembershipConflictError,
    MutationFailedError,
    RosterError,
)
from activity_roster.domain.models import ErrorKind, ForceReloadSignal, RemoteError, ViewKey
from activity_roster.domain.ports import IdentityProvider, RealtimeEventSource, ResourceService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stderr,
)

logger = logging.getLogger(__name__)


@dataclass
class RosterRuntime:
    """Every component of one cache instance, wired together."""

    config: AppConfig
    store: EntityCacheStore
    tracker: MembershipTracker
    identity: IdentityProvider
    remote: ResourceService
    counter_store: CounterStoreProtocol
    breaker: RecoveryBreaker
    query_service: ResourceQueryService
    task_scheduler: TaskScheduler
    scheduler: InvalidationScheduler
    coordinator: MutationCoordinator
    collector: CacheGarbageCollector
    bridge: RealtimeInvalidationBridge | None = None
    subscriptions: list[Subscription] = field(default_factory=list)

    async def start(self) -> None:
        """Start background work: garbage collection and realtime invalidation."""
        await self.collector.start()
        if self.bridge is not None:
            self.bridge.start()

    async def stop(self) -> None:
        """Stop background work and let in-flight mutations settle."""
        if self.bridge is not None:
            self.bridge.stop()
        await self.coordinator.wait_idle()
        self.scheduler.cancel_all()
        await self.collector.stop()
        for subscription in self.subscriptions:
            subscription.dispose()
        self.subscriptions.clear()


def build_counter_store(config: AppConfig) -> CounterStoreProtocol:
    """File-backed counter store when counter_file is configured, in-memory otherwise."""
    if config.counter_file:
        return JsonFileCounterStore(config.counter_file)
    return InMemoryCounterStore()


def build_runtime(
    config: AppConfig,
    remote: ResourceService,
    identity: IdentityProvider | None = None,
    events: RealtimeEventSource | None = None,
    counter_store: CounterStoreProtocol | None = None,
    clock: Callable[[], float] = time.monotonic,
) -> RosterRuntime:
    """Wire one cache instance around an authoritative service.

    Identity changes feed the invalidation scheduler, and a forced reload
    cancels every pending invalidation. The host registers its own
    force-reload handler on the returned runtime's breaker.
    """
    if identity is None:
        identity = InMemoryIdentityProvider()
    if counter_store is None:
        counter_store = build_counter_store(config)

    store = EntityCacheStore(clock=clock)
    tracker = MembershipTracker(store)
    breaker = RecoveryBreaker(store, counter_store, threshold=config.corruption_threshold)
    query_service = ResourceQueryService(
        store,
        remote,
        breaker,
        identity=identity,
        policy=config.fetch_retry_policy(),
        timeout_seconds=config.remote_timeout_seconds,
    )
    task_scheduler = TaskScheduler()
    scheduler = InvalidationScheduler(
        store,
        refresher=query_service.refresh,
        task_scheduler=task_scheduler,
        cooldown_seconds=config.identity_cooldown_seconds,
        debounce_seconds=config.identity_debounce_seconds,
        refresh_delay_seconds=config.refresh_delay_seconds,
        clock=clock,
    )
    coordinator = MutationCoordinator(
        store,
        tracker,
        remote,
        scheduler,
        breaker,
        query_service,
        identity,
        policy=config.mutation_retry_policy(),
        timeout_seconds=config.remote_timeout_seconds,
        clock=clock,
    )
    collector = CacheGarbageCollector(
        store, gc_time_seconds=config.gc_time_seconds, interval_seconds=config.gc_interval_seconds
    )
    bridge = (
        RealtimeInvalidationBridge(
            events, store, scheduler, delay_seconds=config.realtime_delay_seconds
        )
        if events is not None
        else None
    )

    subscriptions = [
        identity.subscribe(scheduler.on_identity_change),
        breaker.on_force_reload(lambda _signal: scheduler.cancel_all()),
    ]

    return RosterRuntime(
        config=config,
        store=store,
        tracker=tracker,
        identity=identity,
        remote=remote,
        counter_store=counter_store,
        breaker=breaker,
        query_service=query_service,
        task_scheduler=task_scheduler,
        scheduler=scheduler,
        coordinator=coordinator,
        collector=collector,
        bridge=bridge,
        subscriptions=subscriptions,
    )


def seed_demo_service(service: InMemoryResourceService) -> None:
    """Populate the in-memory service with a few activities."""
    demo_resources = [
        ("sunday-hike", 6, "bob", "Sunday hike", "carol", "hiking"),
        ("futsal-night", 3, "dave", "Futsal night", "erin", "football"),
        ("padel-doubles", 2, "frank", "Padel doubles", "grace", "padel"),
    ]
    for resource_id, capacity, creator_id, title, participant, sport in demo_resources:
        service.add_resource(
            resource_id,
            capacity=capacity,
            creator_id=creator_id,
            title=title,
            participants=[participant],
            sport=sport,
        )


def build_http_service(config: AppConfig, session: aiohttp.ClientSession) -> HttpResourceService:
    """HTTP adapter for the resource service at api_base_url."""
    return HttpResourceService(session, config.api_base_url)


def create_http_session(config: AppConfig) -> aiohttp.ClientSession:
    """Client session whose total timeout is the remote timeout."""
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=config.remote_timeout_seconds)
    )


async def run_session(
    config: AppConfig,
    remote: ResourceService,
    resource_id: str,
    actor_id: str = "alice",
    events: RealtimeEventSource | None = None,
) -> int:
    """Sign in, list the resources, then join and leave one of them.

    Returns:
        Process exit code: 1 if the host was told to reload, 0 otherwise.
    """
    identity = InMemoryIdentityProvider()
    runtime = build_runtime(config, remote, identity=identity, events=events)

    reload_signals: list[ForceReloadSignal] = []
    runtime.subscriptions.append(runtime.breaker.on_force_reload(reload_signals.append))

    await runtime.start()
    try:
        identity.set_actor(actor_id)
        resources = await runtime.query_service.fetch_list()
        for resource in resources:
            logger.info(
                f"{resource.title}: {resource.confirmed_count}/{resource.capacity} "
                f"({'joined' if resource.actor_membership else 'not joined'})"
            )

        await runtime.query_service.fetch_detail(resource_id)
        await runtime.query_service.fetch_participants(resource_id)

        for mutate in (runtime.coordinator.join, runtime.coordinator.leave):
            try:
                pending = mutate(resource_id)
                speculative = runtime.store.read(ViewKey.for_detail(resource_id))
                logger.info(f"Speculative view of {resource_id}: {speculative}")
                result = await pending
                logger.info(f"{result.kind.value} confirmed after {result.attempts} attempt(s)")
            except MutationFailedError as e:
                logger.warning(f"{e.kind.value} failed: {e.user_message}")
            except MembershipConflictError as e:
                logger.warning(str(e))
            await runtime.scheduler.wait_idle()
            settled = runtime.store.read(ViewKey.for_detail(resource_id))
            logger.info(f"Settled view of {resource_id}: {settled}")
    except CacheCorruptedError as e:
        logger.error(f"Cache corrupted: {e}")
    except RosterError as e:
        logger.error(f"Session failed: {e}")
    finally:
        await runtime.stop()

    if reload_signals:
        logger.error(f"Host reload requested: {reload_signals[-1].reason}")
        return 1
    return 0


async def run_demo(
    config: AppConfig,
    actor_id: str = "alice",
    latency_seconds: float = 0.05,
    fail_join: ErrorKind | None = None,
) -> int:
    """Run a join/leave session against the seeded in-memory service.

    Args:
        config: Application configuration.
        actor_id: Identity to sign in as.
        latency_seconds: Simulated latency of every remote call.
        fail_join: Make every join attempt fail with this error kind.

    Returns:
        Process exit code: 1 if the host was told to reload, 0 otherwise.
    """
    events = InMemoryRealtimeEventSource()
    remote = InMemoryResourceService(latency_seconds=latency_seconds, events=events)
    seed_demo_service(remote)
    if fail_join is not None:
        remote.fail_next("join", RemoteError(kind=fail_join, reason="Injected failure"), 3)
    return await run_session(config, remote, "futsal-night", actor_id=actor_id, events=events)


async def run_remote_session(config: AppConfig, resource_id: str, actor_id: str = "alice") -> int:
    """Run a join/leave session against the HTTP resource service."""
    async with create_http_session(config) as session:
        logger.info(f"Using resource service at {config.api_base_url}")
        return await run_session(
            config, build_http_service(config, session), resource_id, actor_id=actor_id
        )


async def main() -> None:
    """Main application entry point."""
    config = AppConfig()
    exit_code = await run_demo(config)
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    asyncio.run(main())
