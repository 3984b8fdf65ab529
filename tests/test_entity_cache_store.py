"""Tests for the entity cache store."""

import pytest

from activity_roster.adapters.cache import CacheGarbageCollector, EntityCacheStore
from activity_roster.domain.models import Participant, RemoteError, Resource, ViewKey, ViewKind
from tests.roster_helpers import FakeClock

RUN = Resource(id="r1", capacity=10, confirmed_count=5, title="Tuesday run")
HIKE = Resource(id="r2", capacity=6, confirmed_count=2, title="Sunday hike")


@pytest.fixture
def clock() -> FakeClock:
    """Manually advanced clock for entry timestamps."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> EntityCacheStore:
    """Cache holding two lists, a detail view and a participant view."""
    store = EntityCacheStore(clock=clock)
    store.replace(ViewKey.for_list(), (RUN, HIKE))
    store.replace(ViewKey.for_list({"sport": "hiking"}), (HIKE,))
    store.replace(ViewKey.for_detail("r1"), RUN)
    store.replace(ViewKey.for_participants("r1"), (Participant(actor_id="p1"),))
    return store


def test_write_applies_transformer(store: EntityCacheStore, clock: FakeClock) -> None:
    """Given a cached detail view, when writing, then the transformed value is stored with a new timestamp."""
    clock.advance(5)

    written = store.write(ViewKey.for_detail("r1"), lambda r: r.with_membership(True, 1))

    assert written.confirmed_count == 6
    assert store.read(ViewKey.for_detail("r1")).actor_membership is True
    assert store.entry(ViewKey.for_detail("r1")).updated_at == clock.now


def test_write_returning_none_is_no_op(store: EntityCacheStore) -> None:
    """Given an absent view, when the transformer returns None, then nothing is stored."""
    notified: list[ViewKey] = []
    store.subscribe(lambda key, _value: notified.append(key))

    assert store.write(ViewKey.for_detail("r9"), lambda _current: None) is None

    assert ViewKey.for_detail("r9") not in store
    assert notified == []


def test_write_of_equal_value_does_not_notify(store: EntityCacheStore) -> None:
    """Given a cached view, when the transformer returns an equal value, then no observer is notified."""
    notified: list[ViewKey] = []
    store.subscribe(lambda key, _value: notified.append(key))

    store.write(ViewKey.for_detail("r1"), lambda r: r.with_membership(False, 0))

    assert notified == []


def test_snapshot_and_restore(store: EntityCacheStore) -> None:
    """Given a snapshot including an absent view, when restoring after writes, then every view is back."""
    keys = [ViewKey.for_detail("r1"), ViewKey.for_detail("r9")]
    snapshot = store.snapshot(keys)
    store.write(keys[0], lambda r: r.with_membership(True, 1))
    store.replace(keys[1], HIKE)

    store.restore(snapshot)

    assert store.read(keys[0]) == RUN
    assert keys[1] not in store


def test_keys_selects_by_kind_and_resource(store: EntityCacheStore) -> None:
    """Given views of several resources, when selecting by resource, then lists containing it are included."""
    assert set(store.keys(resource_id="r1")) == {
        ViewKey.for_list(),
        ViewKey.for_detail("r1"),
        ViewKey.for_participants("r1"),
    }
    assert set(store.keys(kind=ViewKind.LIST, resource_id="r2")) == {
        ViewKey.for_list(),
        ViewKey.for_list({"sport": "hiking"}),
    }
    assert store.keys(kind=ViewKind.PARTICIPANTS) == [ViewKey.for_participants("r1")]


def test_invalidate_marks_only_cached_views(store: EntityCacheStore) -> None:
    """Given one cached and one absent key, when invalidating, then only the cached one is returned."""
    invalidated = store.invalidate([ViewKey.for_detail("r1"), ViewKey.for_detail("r9")])

    assert invalidated == [ViewKey.for_detail("r1")]
    entry = store.entry(ViewKey.for_detail("r1"))
    assert entry.is_invalidated
    assert entry.value == RUN


def test_replace_clears_error_and_invalidation(store: EntityCacheStore) -> None:
    """Given an invalidated view with an error, when replaced, then the flags are cleared."""
    key = ViewKey.for_detail("r1")
    store.invalidate([key])
    store.set_error(key, RemoteError.transient("reset"))

    store.replace(key, RUN)

    entry = store.entry(key)
    assert not entry.is_invalidated
    assert entry.error is None


def test_set_error_on_absent_view_is_ignored(store: EntityCacheStore) -> None:
    """Given an absent view, when recording an error, then nothing is cached."""
    store.set_error(ViewKey.for_detail("r9"), RemoteError.timeout())

    assert ViewKey.for_detail("r9") not in store


def test_clear_notifies_removals(store: EntityCacheStore) -> None:
    """Given four cached views, when clearing, then observers see each removal."""
    removed: list[tuple[ViewKey, object]] = []
    store.subscribe(lambda key, value: removed.append((key, value)))

    store.clear()

    assert len(store) == 0
    assert len(removed) == 4
    assert all(value is None for _key, value in removed)


def test_subscription_to_one_key(store: EntityCacheStore) -> None:
    """Given an observer of one view, when another view changes, then it is not notified."""
    seen: list[object] = []
    subscription = store.subscribe(lambda _key, value: seen.append(value), ViewKey.for_detail("r1"))

    store.replace(ViewKey.for_detail("r2"), HIKE)
    store.write(ViewKey.for_detail("r1"), lambda r: r.with_membership(True, 1))
    subscription.dispose()
    store.replace(ViewKey.for_detail("r1"), RUN)

    assert len(seen) == 1
    assert seen[0].confirmed_count == 6


def test_evict_expired_keeps_observed_views(store: EntityCacheStore, clock: FakeClock) -> None:
    """Given old views, when evicting, then only views without an exact observer go."""
    store.subscribe(lambda _key, _value: None, ViewKey.for_detail("r1"))
    clock.advance(601)

    evicted = store.evict_expired(600)

    assert evicted == 3
    assert list(store.keys()) == [ViewKey.for_detail("r1")]


def test_evict_expired_keeps_fresh_views(store: EntityCacheStore, clock: FakeClock) -> None:
    """Given views younger than the gc time, when evicting, then nothing goes."""
    clock.advance(10)

    assert store.evict_expired(600) == 0
    assert len(store) == 4


@pytest.mark.asyncio
async def test_garbage_collector_pass(store: EntityCacheStore, clock: FakeClock) -> None:
    """Given expired views, when the collector runs one pass, then they are evicted."""
    collector = CacheGarbageCollector(store, gc_time_seconds=60, interval_seconds=0.01)
    clock.advance(61)

    assert collector.collect() == 4


@pytest.mark.asyncio
async def test_garbage_collector_loop_start_stop(store: EntityCacheStore, clock: FakeClock) -> None:
    """Given a running collector, when stopped, then the loop is no longer running."""
    collector = CacheGarbageCollector(store, gc_time_seconds=60, interval_seconds=0.01)
    clock.advance(61)

    await collector.start()
    assert collector.running
    await collector.start()
    await collector.stop()

    assert not collector.running
