import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from scoutquest.models.challenge import Challenge
from scoutquest.models.scout import ScoutAccount
from scoutquest.models.submission import Submission, STARTED, PENDING_VALIDATION, COMPLETED, EXPIRED
from scoutquest.services import tracker
from scoutquest.services.authority import ScoutActor, ParentActor, LeaderActor
from scoutquest.services.errors import (
    ChallengeExpired, DanglingReference, InvalidArgument, InvalidTransition, NotFound, Unauthorized,
)
from scoutquest.services.points_ledger import award_once, unawarded_completions


def _now():
    return datetime.now(timezone.utc)


async def _pending(session, seed, group_id, points=10, **challenge_kw):
    leader = uuid.uuid4()
    await seed.leader(leader, group_id)
    scout = await seed.scout(group_id, "Alice")
    ch = await seed.challenge(leader, points=points, group_id=group_id, **challenge_kw)
    sub = await tracker.start(session, scout, ch)
    sub = await tracker.submit(session, sub.id, ScoutActor(scout), proof_ref="s3://proofs/1.jpg")
    return sub, scout, leader, ch


@pytest.mark.asyncio
async def test_full_lifecycle_awards_once(session, seed, group_id, ranker):
    sub, scout, leader, ch = await _pending(session, seed, group_id, points=25)
    assert sub.status == PENDING_VALIDATION
    assert sub.submitted_at is not None

    done = await tracker.accept(session, sub.id, LeaderActor(leader), comment="Bravo", ranker=ranker)
    assert done.status == COMPLETED
    assert done.awarded is True
    assert done.validated_by == leader
    assert done.validator_comment == "Bravo"

    # Replayed accept: success, no second credit
    again = await tracker.accept(session, sub.id, LeaderActor(leader))
    assert again.status == COMPLETED

    acc = await session.get(ScoutAccount, scout, populate_existing=True)
    assert acc.point_total == 25
    challenge = await session.get(Challenge, ch, populate_existing=True)
    assert challenge.participants_count == 1


@pytest.mark.asyncio
async def test_award_once_direct_replay_returns_none(session, seed, group_id):
    sub, scout, leader, _ = await _pending(session, seed, group_id, points=5)
    await tracker.accept(session, sub.id, LeaderActor(leader))
    assert await award_once(session, sub.id) is None
    await session.commit()
    acc = await session.get(ScoutAccount, scout, populate_existing=True)
    assert acc.point_total == 5


@pytest.mark.asyncio
async def test_reject_then_resubmit(session, seed, group_id):
    sub, scout, leader, _ = await _pending(session, seed, group_id)
    rejected = await tracker.reject(session, sub.id, LeaderActor(leader), "Photo is blurry")
    assert rejected.status == STARTED
    assert rejected.rejection_count == 1
    assert rejected.validator_comment == "Photo is blurry"
    assert rejected.awarded is False

    again = await tracker.submit(session, sub.id, ScoutActor(scout), proof_ref="s3://proofs/2.jpg")
    assert again.status == PENDING_VALIDATION
    assert again.proof_ref == "s3://proofs/2.jpg"


@pytest.mark.asyncio
async def test_reject_requires_reason(session, seed, group_id):
    sub, _, leader, _ = await _pending(session, seed, group_id)
    with pytest.raises(InvalidArgument):
        await tracker.reject(session, sub.id, LeaderActor(leader), "   ")


@pytest.mark.asyncio
async def test_concurrent_accept_loses_swap_without_second_award(session, session_factory, seed, group_id):
    sub, scout, leader, _ = await _pending(session, seed, group_id, points=15)
    await session.commit()

    # B reads the submission while it is still pending and holds on to that copy
    b = session_factory()
    stale = await tracker.get_submission(b, sub.id)
    await b.commit()
    assert stale.status == PENDING_VALIDATION

    async with session_factory() as a:
        won = await tracker.accept(a, sub.id, LeaderActor(leader))
        assert won.awarded is True

    lost = await tracker.accept(b, sub.id, LeaderActor(leader))
    assert lost.status == COMPLETED
    assert lost.validated_by == leader
    await b.close()

    acc = await session.get(ScoutAccount, scout, populate_existing=True)
    assert acc.point_total == 15


@pytest.mark.asyncio
async def test_start_rules(session, seed, group_id):
    leader = uuid.uuid4()
    scout = await seed.scout(group_id)
    ch = await seed.challenge(leader, group_id=group_id)

    await tracker.start(session, scout, ch)
    with pytest.raises(InvalidTransition):
        await tracker.start(session, scout, ch)

    with pytest.raises(NotFound):
        await tracker.start(session, scout, uuid.uuid4())
    with pytest.raises(NotFound):
        await tracker.start(session, uuid.uuid4(), ch)

    other_group = await seed.challenge(leader, group_id=uuid.uuid4())
    with pytest.raises(Unauthorized):
        await tracker.start(session, scout, other_group)


@pytest.mark.asyncio
async def test_start_outside_window(session, seed, group_id):
    scout = await seed.scout(group_id)
    upcoming = await seed.challenge(uuid.uuid4(), starts_at=_now() + timedelta(days=1), ends_at=_now() + timedelta(days=2))
    closed = await seed.challenge(uuid.uuid4(), starts_at=_now() - timedelta(days=2), ends_at=_now() - timedelta(days=1))
    with pytest.raises(InvalidTransition):
        await tracker.start(session, scout, upcoming)
    with pytest.raises(ChallengeExpired):
        await tracker.start(session, scout, closed)


@pytest.mark.asyncio
async def test_completed_blocks_restart_unless_multiple_allowed(session, seed, group_id):
    sub, scout, leader, ch = await _pending(session, seed, group_id)
    await tracker.accept(session, sub.id, LeaderActor(leader))
    with pytest.raises(InvalidTransition):
        await tracker.start(session, scout, ch)

    repeatable = await seed.challenge(leader, group_id=group_id, allow_multiple_completions=True)
    first = await tracker.start(session, scout, repeatable)
    await tracker.submit(session, first.id, ScoutActor(scout))
    await tracker.accept(session, first.id, LeaderActor(leader))
    second = await tracker.start(session, scout, repeatable)
    assert second.status == STARTED
    assert second.id != first.id


@pytest.mark.asyncio
async def test_only_owner_submits_and_only_from_started(session, seed, group_id):
    sub, scout, leader, _ = await _pending(session, seed, group_id)
    with pytest.raises(Unauthorized):
        await tracker.submit(session, sub.id, ScoutActor(uuid.uuid4()))
    with pytest.raises(InvalidTransition):
        await tracker.submit(session, sub.id, ScoutActor(scout))


@pytest.mark.asyncio
async def test_accept_from_started_is_invalid(session, seed, group_id):
    leader = uuid.uuid4()
    await seed.leader(leader, group_id)
    scout = await seed.scout(group_id)
    ch = await seed.challenge(leader, group_id=group_id)
    sub = await tracker.start(session, scout, ch)
    with pytest.raises(InvalidTransition):
        await tracker.accept(session, sub.id, LeaderActor(leader))


@pytest.mark.asyncio
async def test_unrelated_validators_refused(session, seed, group_id):
    sub, scout, _, _ = await _pending(session, seed, group_id)
    with pytest.raises(Unauthorized):
        await tracker.accept(session, sub.id, ParentActor(uuid.uuid4()))
    with pytest.raises(Unauthorized):
        await tracker.reject(session, sub.id, LeaderActor(uuid.uuid4()), "no")
    with pytest.raises(Unauthorized):
        await tracker.accept(session, sub.id, ScoutActor(scout))


@pytest.mark.asyncio
async def test_parent_validates_linked_scout(session, seed, group_id):
    scout = await seed.scout(group_id)
    parent = uuid.uuid4()
    await seed.parent_link(parent, scout)
    ch = await seed.challenge(uuid.uuid4(), points=7)
    sub = await tracker.start(session, scout, ch)
    await tracker.submit(session, sub.id, ScoutActor(scout))
    done = await tracker.accept(session, sub.id, ParentActor(parent))
    assert done.status == COMPLETED
    assert done.validated_by == parent


@pytest.mark.asyncio
async def test_expired_submission_refuses_transitions(session, seed, group_id):
    sub, scout, leader, ch = await _pending(session, seed, group_id)
    later = _now() + timedelta(days=30)
    challenge = await session.get(Challenge, ch)
    assert tracker.effective_status(sub, challenge, later) == EXPIRED
    with pytest.raises(ChallengeExpired):
        await tracker.accept(session, sub.id, LeaderActor(leader), now=later)
    with pytest.raises(ChallengeExpired):
        await tracker.reject(session, sub.id, LeaderActor(leader), "late", now=later)

    # Nothing moved
    stored = await session.scalar(select(Submission.status).where(Submission.id == sub.id))
    assert stored == PENDING_VALIDATION


@pytest.mark.asyncio
async def test_completed_survives_window_close(session, seed, group_id):
    sub, _, leader, ch = await _pending(session, seed, group_id)
    done = await tracker.accept(session, sub.id, LeaderActor(leader))
    challenge = await session.get(Challenge, ch)
    assert tracker.effective_status(done, challenge, _now() + timedelta(days=30)) == COMPLETED


@pytest.mark.asyncio
async def test_dangling_scout_leaves_completed_unawarded(session, seed, group_id):
    parent = uuid.uuid4()
    scout = await seed.scout(group_id)
    await seed.parent_link(parent, scout)
    ch = await seed.challenge(uuid.uuid4(), points=40)
    sub = await tracker.start(session, scout, ch)
    await tracker.submit(session, sub.id, ScoutActor(scout))

    # Account removed by the identity side after submit
    await session.delete(await session.get(ScoutAccount, scout))
    await session.commit()

    with pytest.raises(DanglingReference) as exc:
        await tracker.accept(session, sub.id, ParentActor(parent))
    assert exc.value.submission_id == sub.id

    row = await session.get(Submission, sub.id, populate_existing=True)
    assert row.status == COMPLETED
    assert row.awarded is False
    challenge = await session.get(Challenge, ch, populate_existing=True)
    assert challenge.participants_count == 0
    assert [s.id for s in await unawarded_completions(session)] == [sub.id]


@pytest.mark.asyncio
async def test_validator_queue(session, seed, group_id):
    sub, scout, leader, _ = await _pending(session, seed, group_id)
    parent = uuid.uuid4()
    await seed.parent_link(parent, scout)

    assert [s.id for s in await tracker.pending_for_validator(session, LeaderActor(leader))] == [sub.id]
    assert [s.id for s in await tracker.pending_for_validator(session, ParentActor(parent))] == [sub.id]
    assert await tracker.pending_for_validator(session, ParentActor(uuid.uuid4())) == []
    assert await tracker.pending_for_validator(session, ScoutActor(scout)) == []
    assert await tracker.pending_for_validator(session, LeaderActor(leader), now=_now() + timedelta(days=30)) == []

    await tracker.reject(session, sub.id, LeaderActor(leader), "Again please")
    history = await tracker.processed_for_group(session, group_id)
    assert [s.id for s in history] == [sub.id]


@pytest.mark.asyncio
async def test_submit_after_window_closed(session, seed, group_id):
    scout = await seed.scout(group_id)
    ch = await seed.challenge(uuid.uuid4(), ends_at=_now() + timedelta(hours=1))
    sub = await tracker.start(session, scout, ch)
    with pytest.raises(ChallengeExpired):
        await tracker.submit(session, sub.id, ScoutActor(scout), now=_now() + timedelta(hours=2))
    assert sub.status == STARTED


@pytest.mark.asyncio
async def test_reject_then_leader_accept_awards_exactly_once(session, seed, group_id, ranker):
    leader, parent = uuid.uuid4(), uuid.uuid4()
    await seed.leader(leader, group_id)
    x = await seed.scout(group_id, "X")
    rival = await seed.scout(group_id, "Rival", points=30)
    await seed.parent_link(parent, x)
    ch = await seed.challenge(uuid.uuid4(), points=50)

    assert await ranker.rank_of(session, group_id, x) == 2

    sub = await tracker.start(session, x, ch)
    await tracker.submit(session, sub.id, ScoutActor(x))
    await tracker.reject(session, sub.id, ParentActor(parent), "blurry photo")
    acc = await session.get(ScoutAccount, x, populate_existing=True)
    assert acc.point_total == 0

    await tracker.submit(session, sub.id, ScoutActor(x))
    await tracker.accept(session, sub.id, LeaderActor(leader), ranker=ranker)
    await tracker.accept(session, sub.id, ParentActor(parent), ranker=ranker)

    acc = await session.get(ScoutAccount, x, populate_existing=True)
    assert acc.point_total == 50
    # The award dropped the cached group view
    assert await ranker.rank_of(session, group_id, x) == 1
    assert await ranker.rank_of(session, group_id, rival) == 2
