"""Tests for optimistic join/leave coordination."""

import asyncio
import gc
from unittest.mock import call, patch

import pytest

from activity_roster.adapters.remote import InMemoryResourceService
from activity_roster.application.services import membership_delta
from activity_roster.application.services.mutation_coordinator import (
    GENERIC_FAILURE_MESSAGES,
    TIMEOUT_FAILURE_MESSAGE,
)
from activity_roster.domain.errors import (
    CacheCorruptedError,
    MembershipConflictError,
    MutationFailedError,
    MutationInFlightError,
)
from activity_roster.domain.models import (
    ErrorKind,
    ForceReloadSignal,
    MembershipAnswer,
    MutationKind,
    MutationPhase,
    RemoteError,
    Resource,
    ViewKey,
    joined_actor_ids,
)
from activity_roster.main import RosterRuntime
from tests.roster_helpers import load_views

DETAIL = ViewKey.for_detail("r1")
PARTICIPANTS = ViewKey.for_participants("r1")
ALL = ViewKey.for_list()


def _list_entry(runtime: RosterRuntime) -> Resource:
    return next(r for r in runtime.store.read(ALL) if r.id == "r1")


class TestMembershipDelta:
    """Tests for the count change a mutation applies."""

    @pytest.mark.parametrize(
        ("kind", "answer", "expected"),
        [
            (MutationKind.JOIN, MembershipAnswer.NOT_COUNTED, 1),
            (MutationKind.JOIN, MembershipAnswer.COUNTED, 0),
            (MutationKind.LEAVE, MembershipAnswer.COUNTED, -1),
            (MutationKind.LEAVE, MembershipAnswer.NOT_COUNTED, 0),
            (MutationKind.JOIN, MembershipAnswer.UNKNOWN, 0),
            (MutationKind.LEAVE, MembershipAnswer.UNKNOWN, 0),
        ],
    )
    def test_delta_follows_tracker_answer(
        self, kind: MutationKind, answer: MembershipAnswer, expected: int
    ) -> None:
        """Given a tracker answer, when computing the delta, then only real changes move the count."""
        assert membership_delta(kind, answer) == expected


@pytest.mark.asyncio
async def test_join_is_visible_before_remote_settles(runtime: RosterRuntime) -> None:
    """Given 5/10 taken and actor not joined, when join is called, then every view shows the join immediately."""
    await load_views(runtime, "r1")

    pending = runtime.coordinator.join("r1")

    detail = runtime.store.read(DETAIL)
    assert detail.confirmed_count == 6
    assert detail.actor_membership is True
    assert detail.available_spots == 4
    assert _list_entry(runtime).confirmed_count == 6
    assert "alice" in joined_actor_ids(runtime.store.read(PARTICIPANTS))
    assert runtime.coordinator.phase("r1", "alice") is MutationPhase.APPLYING
    assert not pending.done()

    result = await pending
    await runtime.scheduler.wait_idle()

    assert result.phase is MutationPhase.CONFIRMED
    assert result.delta == 1
    detail = runtime.store.read(DETAIL)
    assert detail.confirmed_count == 6
    assert detail.actor_membership is True
    assert runtime.coordinator.phase("r1", "alice") is MutationPhase.IDLE


@pytest.mark.asyncio
async def test_validation_failure_rolls_back(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given the service rejects the join, when it settles, then views are restored and the reason surfaces."""
    await load_views(runtime, "r1")
    remote.fail_next("join", RemoteError.validation("This activity is full", status_code=409))

    with pytest.raises(MutationFailedError) as exc_info:
        await runtime.coordinator.join("r1")

    assert exc_info.value.error_kind is ErrorKind.VALIDATION
    assert exc_info.value.user_message == "This activity is full"
    detail = runtime.store.read(DETAIL)
    assert detail.confirmed_count == 5
    assert detail.actor_membership is False
    assert detail.available_spots == 5
    assert remote.call_count("join") == 1


@pytest.mark.asyncio
async def test_rollback_restores_every_view_exactly(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given loaded views, when a join fails, then list, detail and participants equal their snapshot."""
    await load_views(runtime, "r1")
    before = {key: runtime.store.entry(key) for key in (ALL, DETAIL, PARTICIPANTS)}
    remote.fail_next("join", RemoteError.unknown("boom"))

    with pytest.raises(MutationFailedError) as exc_info:
        await runtime.coordinator.join("r1")

    assert exc_info.value.user_message == GENERIC_FAILURE_MESSAGES[MutationKind.JOIN]
    for key, entry in before.items():
        assert runtime.store.entry(key) == entry


@pytest.mark.asyncio
async def test_rollback_removes_views_that_did_not_exist(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given only the detail view is cached, when a join fails, then no other view is left behind."""
    await runtime.query_service.fetch_detail("r1")
    remote.fail_next("join", RemoteError.validation("nope"))

    with pytest.raises(MutationFailedError):
        await runtime.coordinator.join("r1")

    assert PARTICIPANTS not in runtime.store
    assert runtime.store.read(DETAIL).confirmed_count == 5


@pytest.mark.asyncio
async def test_stale_detail_does_not_double_count(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given participants already list the actor but detail is stale, when joining, then only the flag changes."""
    remote.add_resource("r2", capacity=4, creator_id="owner", participants=["alice"])
    await runtime.query_service.fetch_participants("r2")
    runtime.store.replace(
        ViewKey.for_detail("r2"),
        Resource(id="r2", capacity=4, confirmed_count=2, actor_membership=False),
    )

    pending = runtime.coordinator.join("r2")

    detail = runtime.store.read(ViewKey.for_detail("r2"))
    assert detail.confirmed_count == 2
    assert detail.actor_membership is True
    result = await pending
    assert result.delta == 0
    assert result.already_applied is True


@pytest.mark.asyncio
async def test_rapid_second_join_is_rejected(runtime: RosterRuntime) -> None:
    """Given a join in flight, when the same actor joins again, then it is rejected and counted once."""
    await load_views(runtime, "r1")

    first = runtime.coordinator.join("r1")
    with pytest.raises(MutationInFlightError):
        runtime.coordinator.join("r1")
    await first

    assert runtime.store.read(DETAIL).confirmed_count == 6


@pytest.mark.asyncio
async def test_join_when_already_counted_applies_no_increment(runtime: RosterRuntime) -> None:
    """Given the actor is already counted, when joining twice, then the count never moves."""
    await load_views(runtime, "r1")
    await runtime.coordinator.join("r1")
    await runtime.scheduler.wait_idle()

    first = runtime.coordinator.join("r1")
    with pytest.raises(MutationInFlightError):
        runtime.coordinator.join("r1")
    result = await first

    assert result.delta == 0
    assert runtime.store.read(DETAIL).confirmed_count == 6


@pytest.mark.asyncio
async def test_join_then_leave_round_trips(runtime: RosterRuntime) -> None:
    """Given count c and actor not joined, when joining then leaving, then count and flag return to start."""
    await load_views(runtime, "r1")
    start = runtime.store.read(DETAIL)

    await runtime.coordinator.join("r1")
    await runtime.scheduler.wait_idle()
    await runtime.coordinator.leave("r1")
    await runtime.scheduler.wait_idle()

    detail = runtime.store.read(DETAIL)
    assert detail.confirmed_count == start.confirmed_count
    assert detail.actor_membership == start.actor_membership
    assert _list_entry(runtime).confirmed_count == start.confirmed_count


@pytest.mark.asyncio
async def test_views_converge_after_refresh(runtime: RosterRuntime) -> None:
    """Given a confirmed join, when the scheduled refresh completes, then counts match joined participants."""
    await load_views(runtime, "r1")

    await runtime.coordinator.join("r1")
    await runtime.scheduler.wait_idle()

    joined = len(joined_actor_ids(runtime.store.read(PARTICIPANTS)))
    assert runtime.store.read(DETAIL).confirmed_count == joined
    assert _list_entry(runtime).confirmed_count == joined
    assert not runtime.store.entry(DETAIL).is_invalidated


@pytest.mark.asyncio
async def test_confirm_patches_list_with_authoritative_count(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given another actor joined on the server meanwhile, when the join confirms, then the list takes the server count."""
    await load_views(runtime, "r1")
    await remote.join("r1", "bob")

    await runtime.coordinator.join("r1")

    assert _list_entry(runtime).confirmed_count == 7


@pytest.mark.asyncio
async def test_creator_cannot_leave(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given the actor created the activity, when leaving, then it is refused before any write."""
    await load_views(runtime, "r1")
    before = runtime.store.entry(DETAIL)

    with pytest.raises(MembershipConflictError, match="Cannot leave your own activity"):
        runtime.coordinator.mutate("r1", MutationKind.LEAVE, actor_id="owner")

    assert runtime.store.entry(DETAIL) is before
    assert remote.call_count("leave") == 0


@pytest.mark.asyncio
async def test_signed_out_actor_cannot_mutate(runtime: RosterRuntime) -> None:
    """Given nobody is signed in, when joining, then a membership conflict is raised."""
    runtime.identity.set_actor(None)

    with pytest.raises(MembershipConflictError, match="logged in"):
        runtime.coordinator.join("r1")


@pytest.mark.asyncio
async def test_leave_when_not_joined_surfaces_server_message(runtime: RosterRuntime) -> None:
    """Given the actor is not joined, when leaving, then nothing changes and the server reason surfaces."""
    await load_views(runtime, "r1")

    pending = runtime.coordinator.leave("r1")
    assert runtime.store.read(DETAIL).confirmed_count == 5
    with pytest.raises(MutationFailedError) as exc_info:
        await pending

    assert exc_info.value.user_message == "You are not currently in this activity"


@pytest.mark.asyncio
async def test_timeout_is_retried_once_and_counted(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given one timeout, when joining, then the retry succeeds and the timeout reaches the breaker."""
    await load_views(runtime, "r1")
    remote.fail_next("join", RemoteError.timeout())

    with patch.object(
        runtime.breaker, "record_outcome", wraps=runtime.breaker.record_outcome
    ) as spy:
        result = await runtime.coordinator.join("r1")

    assert result.attempts == 2
    assert spy.call_args_list == [call(ErrorKind.TIMEOUT)]
    assert runtime.breaker.consecutive_timeouts == 1
    assert runtime.store.read(DETAIL).confirmed_count == 6


@pytest.mark.asyncio
async def test_transient_failure_rolls_back_after_one_retry(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given the network keeps failing, when joining, then one retry is made before rolling back."""
    await load_views(runtime, "r1")
    remote.fail_next("join", RemoteError.transient("connection reset"), times=5)

    with pytest.raises(MutationFailedError) as exc_info:
        await runtime.coordinator.join("r1")

    assert exc_info.value.error_kind is ErrorKind.TRANSIENT_NETWORK
    assert remote.call_count("join") == 2
    assert runtime.store.read(DETAIL).confirmed_count == 5


@pytest.mark.asyncio
async def test_repeated_timeouts_during_join_trip_breaker(
    runtime: RosterRuntime,
    remote: InMemoryResourceService,
    reload_signals: list[ForceReloadSignal],
) -> None:
    """Given every attempt times out, when joining, then the breaker trips and the cache is wiped."""
    await load_views(runtime, "r1")
    remote.fail_next("join", RemoteError.timeout(), times=2)

    with pytest.raises(CacheCorruptedError):
        await runtime.coordinator.join("r1")

    assert runtime.breaker.is_tripped()
    assert len(runtime.store) == 0
    assert len(reload_signals) == 1
    assert runtime.coordinator.pending_mutations() == []


@pytest.mark.asyncio
async def test_timeout_failure_uses_timeout_message(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given a high breaker threshold, when every attempt times out, then the timeout message surfaces."""
    runtime.breaker.threshold = 10
    await load_views(runtime, "r1")
    remote.fail_next("join", RemoteError.timeout(), times=2)

    with pytest.raises(MutationFailedError) as exc_info:
        await runtime.coordinator.join("r1")

    assert exc_info.value.user_message == TIMEOUT_FAILURE_MESSAGE
    assert runtime.store.read(DETAIL).confirmed_count == 5


@pytest.mark.asyncio
async def test_tripped_breaker_blocks_mutation(
    runtime: RosterRuntime,
    remote: InMemoryResourceService,
    reload_signals: list[ForceReloadSignal],
) -> None:
    """Given a tripped breaker, when joining, then a reload is forced and nothing is sent."""
    runtime.breaker.record_outcome(ErrorKind.TIMEOUT)
    runtime.breaker.record_outcome(ErrorKind.TIMEOUT)

    with pytest.raises(CacheCorruptedError):
        runtime.coordinator.join("r1")

    assert len(reload_signals) == 2
    assert remote.call_count("join") == 0


@pytest.mark.asyncio
async def test_mutation_cancels_competing_fetch(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given a detail fetch in flight, when joining, then the fetch is dropped and returns the speculative view."""
    await load_views(runtime, "r1")
    remote.latency_seconds = 0.05
    fetch = asyncio.create_task(runtime.query_service.fetch_detail("r1"))
    await asyncio.sleep(0)
    assert runtime.query_service.is_fetching(DETAIL)

    pending = runtime.coordinator.join("r1")
    fetched = await fetch

    assert fetched.confirmed_count == 6
    assert fetched.actor_membership is True
    await pending


@pytest.mark.asyncio
async def test_caller_cannot_cancel_dispatched_mutation(runtime: RosterRuntime) -> None:
    """Given a dispatched join, when the caller cancels its future, then the join still lands."""
    await load_views(runtime, "r1")

    pending = runtime.coordinator.join("r1")
    pending.cancel()
    await runtime.coordinator.wait_idle()

    assert runtime.store.read(DETAIL).confirmed_count == 6
    assert runtime.remote.record("r1").is_member("alice")


@pytest.mark.asyncio
async def test_unknown_membership_sets_flag_only(runtime: RosterRuntime) -> None:
    """Given no cached view of the resource, when joining, then no count is guessed."""
    pending = runtime.coordinator.join("r1")

    assert DETAIL not in runtime.store
    result = await pending
    assert result.delta == 0


@pytest.mark.asyncio
async def test_toggle_leaves_when_joined(runtime: RosterRuntime) -> None:
    """Given the actor has joined, when toggling, then the actor leaves."""
    await load_views(runtime, "r1")
    await runtime.coordinator.join("r1")
    await runtime.scheduler.wait_idle()

    result = await runtime.coordinator.toggle("r1")

    assert result.kind is MutationKind.LEAVE
    assert runtime.store.read(DETAIL).actor_membership is False


@pytest.mark.asyncio
async def test_refresh_during_mutation_keeps_speculative_views(
    runtime: RosterRuntime, remote: InMemoryResourceService
) -> None:
    """Given a refresh scheduled by a confirmed join, when it lands while a leave is in flight, then the views keep the leave."""
    await load_views(runtime, "r1")
    await runtime.coordinator.join("r1")
    remote.delay_next("leave", 0.3)

    pending = runtime.coordinator.leave("r1")
    await asyncio.sleep(0.1)

    assert remote.call_count("fetch_detail") == 2
    detail = runtime.store.read(DETAIL)
    assert (detail.confirmed_count, detail.actor_membership) == (5, False)
    assert "alice" not in joined_actor_ids(runtime.store.read(PARTICIPANTS))
    assert _list_entry(runtime).confirmed_count == 5

    await pending
    assert not runtime.query_service.is_held(DETAIL)
    assert not runtime.query_service.is_held(ALL)


@pytest.mark.asyncio
async def test_dropped_failed_mutation_is_not_reported_unretrieved(
    runtime: RosterRuntime, remote: InMemoryResourceService, caplog: pytest.LogCaptureFixture
) -> None:
    """Given a failing join whose future is never awaited, when it settles, then only the rollback is logged."""
    await load_views(runtime, "r1")
    remote.fail_next("join", RemoteError.validation("This activity is full", status_code=409))

    runtime.coordinator.join("r1")
    await runtime.coordinator.wait_idle()
    for _ in range(3):
        await asyncio.sleep(0)
    gc.collect()

    assert "never retrieved" not in caplog.text
    assert "Rolled back join of r1" in caplog.text
    assert runtime.store.read(DETAIL).confirmed_count == 5
