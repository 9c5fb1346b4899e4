"""
Per-(scout, challenge) submission lifecycle.

    STARTED --submit--> PENDING_VALIDATION --accept--> COMPLETED
       ^                        |
       +--------reject----------+

EXPIRED is never written: any non-completed submission whose challenge window
has closed reads as expired and refuses every transition.

Every status change is a conditional UPDATE on the expected current status
(compare-and-swap). A transition that loses the swap changes nothing. Each
public call here is one unit of work and commits before returning.
"""
from __future__ import annotations
from datetime import datetime
from uuid import UUID
import structlog
from sqlalchemy import select, update, exists, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scoutquest.db import utcnow
from scoutquest.models.challenge import Challenge
from scoutquest.models.scout import ScoutAccount
from scoutquest.models.submission import Submission, STARTED, PENDING_VALIDATION, COMPLETED, EXPIRED
from scoutquest.services.authority import Actor, RelationshipDirectory, SqlRelationshipDirectory, can_validate
from scoutquest.services.errors import InvalidArgument, NotFound, InvalidTransition, Unauthorized, DanglingReference
from scoutquest.services.catalog import get_challenge
from scoutquest.services.leaderboard import LeaderboardRanker
from scoutquest.services.points_ledger import award_once
from scoutquest.services.badges import award_automatic
from scoutquest.services.windows import ensure_open, runtime_state

log = structlog.get_logger()


def effective_status(sub: Submission, ch: Challenge | None, now: datetime) -> str:
    if sub.status == COMPLETED:
        return COMPLETED
    if ch is None or ch.deleted_at is not None or runtime_state(ch.starts_at, ch.ends_at, now) == "closed":
        return EXPIRED
    return sub.status


def _clean(text: str | None) -> str | None:
    if text is None:
        return None
    text = text.strip()
    return text or None


async def get_submission(session: AsyncSession, submission_id: UUID) -> Submission:
    sub = await session.get(Submission, submission_id)
    if not sub:
        raise NotFound("Submission not found")
    return sub


async def _swap_status(session: AsyncSession, sub: Submission, expected: str, **values) -> bool:
    res = await session.execute(
        update(Submission)
        .where(Submission.id == sub.id, Submission.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


# ---------- start / submit (scout side) ----------

async def start(session: AsyncSession, scout_id: UUID, challenge_id: UUID, now: datetime | None = None) -> Submission:
    now = now or utcnow()
    ch = await get_challenge(session, challenge_id)
    scout = await session.get(ScoutAccount, scout_id)
    if not scout:
        raise NotFound("Scout account not found")
    if ch.group_id is not None and ch.group_id != scout.group_id:
        raise Unauthorized("Challenge is not available to this scout's group")
    ensure_open(ch, now)

    in_flight = await session.scalar(
        select(exists().where(
            Submission.challenge_id == ch.id,
            Submission.scout_id == scout_id,
            Submission.status != COMPLETED,
        ))
    )
    if in_flight:
        raise InvalidTransition("An attempt at this challenge is already in progress")
    if not ch.allow_multiple_completions:
        done = await session.scalar(
            select(exists().where(
                Submission.challenge_id == ch.id,
                Submission.scout_id == scout_id,
                Submission.status == COMPLETED,
            ))
        )
        if done:
            raise InvalidTransition("Challenge already completed")

    sub = Submission(challenge_id=ch.id, scout_id=scout_id, status=STARTED, started_at=now)
    session.add(sub)
    try:
        await session.commit()
    except IntegrityError:
        # Lost a race against a concurrent start for the same pair
        await session.rollback()
        raise InvalidTransition("An attempt at this challenge is already in progress")
    await session.refresh(sub)
    log.info("submission_started", submission_id=str(sub.id), scout_id=str(scout_id), challenge_id=str(ch.id))
    return sub


async def submit(
    session: AsyncSession,
    submission_id: UUID,
    actor: Actor,
    proof_ref: str | None = None,
    comment: str | None = None,
    now: datetime | None = None,
) -> Submission:
    now = now or utcnow()
    sub = await get_submission(session, submission_id)
    if actor.id != sub.scout_id:
        raise Unauthorized("Only the scout who started this attempt can submit it")
    ch = await get_challenge(session, sub.challenge_id)
    ensure_open(ch, now)
    if sub.status != STARTED:
        raise InvalidTransition(f"Cannot submit from {sub.status}")

    swapped = await _swap_status(
        session, sub, STARTED,
        status=PENDING_VALIDATION,
        submitted_at=now,
        proof_ref=_clean(proof_ref),
        scout_comment=_clean(comment),
    )
    if not swapped:
        await session.rollback()
        raise InvalidTransition("Submission changed state concurrently")
    await session.commit()
    await session.refresh(sub)
    log.info("submission_submitted", submission_id=str(sub.id), scout_id=str(sub.scout_id), has_proof=bool(sub.proof_ref))
    return sub


# ---------- accept / reject (validator side) ----------

async def _authorize_validator(
    session: AsyncSession, sub: Submission, actor: Actor, directory: RelationshipDirectory | None
) -> None:
    directory = directory or SqlRelationshipDirectory(session)
    if not await can_validate(actor, sub, directory):
        log.info("validation_refused", submission_id=str(sub.id), actor_id=str(actor.id), actor_kind=actor.kind)
        raise Unauthorized("Not allowed to validate this submission")


async def accept(
    session: AsyncSession,
    submission_id: UUID,
    actor: Actor,
    comment: str | None = None,
    now: datetime | None = None,
    *,
    directory: RelationshipDirectory | None = None,
    ranker: LeaderboardRanker | None = None,
) -> Submission:
    """
    PENDING_VALIDATION -> COMPLETED plus the one-time award, in one transaction.

    A replayed or duplicated accept that finds the submission already
    COMPLETED returns it unchanged and awards nothing.
    """
    now = now or utcnow()
    sub = await get_submission(session, submission_id)
    await _authorize_validator(session, sub, actor, directory)
    if sub.status == COMPLETED:
        log.info("accept_replayed", submission_id=str(sub.id), actor_id=str(actor.id))
        return sub
    ch = await get_challenge(session, sub.challenge_id)
    ensure_open(ch, now)
    if sub.status != PENDING_VALIDATION:
        raise InvalidTransition(f"Cannot accept from {sub.status}")

    swapped = await _swap_status(
        session, sub, PENDING_VALIDATION,
        status=COMPLETED,
        validated_at=now,
        validated_by=actor.id,
        validator_comment=_clean(comment),
    )
    if not swapped:
        await session.rollback()
        await session.refresh(sub)
        if sub.status == COMPLETED:
            # Someone else won the swap and did the award
            log.info("accept_lost_race", submission_id=str(sub.id), actor_id=str(actor.id))
            return sub
        raise InvalidTransition(f"Cannot accept from {sub.status}")

    dangling: DanglingReference | None = None
    account = None
    try:
        account = await award_once(session, sub.id, now)
    except DanglingReference as e:
        dangling = e
    if account is not None:
        await award_automatic(session, account.id, now)
    # COMPLETED sticks even when the award could not land
    await session.commit()
    await session.refresh(sub)
    log.info("submission_accepted", submission_id=str(sub.id), actor_id=str(actor.id), actor_kind=actor.kind, awarded=sub.awarded)

    if dangling is not None:
        raise dangling
    if ranker is not None and account is not None:
        ranker.invalidate_group(account.group_id)
    return sub


async def reject(
    session: AsyncSession,
    submission_id: UUID,
    actor: Actor,
    reason: str,
    now: datetime | None = None,
    *,
    directory: RelationshipDirectory | None = None,
) -> Submission:
    now = now or utcnow()
    reason = _clean(reason)
    if not reason:
        raise InvalidArgument("A rejection reason is required")
    sub = await get_submission(session, submission_id)
    await _authorize_validator(session, sub, actor, directory)
    ch = await get_challenge(session, sub.challenge_id)
    ensure_open(ch, now)
    if sub.status != PENDING_VALIDATION:
        raise InvalidTransition(f"Cannot reject from {sub.status}")

    swapped = await _swap_status(
        session, sub, PENDING_VALIDATION,
        status=STARTED,
        validator_comment=reason,
        validated_by=actor.id,
        last_rejected_at=now,
        rejection_count=Submission.rejection_count + 1,
    )
    if not swapped:
        await session.rollback()
        raise InvalidTransition("Submission changed state concurrently")
    await session.commit()
    await session.refresh(sub)
    log.info("submission_rejected", submission_id=str(sub.id), actor_id=str(actor.id), actor_kind=actor.kind, rejections=sub.rejection_count)
    return sub


# ---------- reads ----------

async def list_for_scout(session: AsyncSession, scout_id: UUID) -> list[Submission]:
    q = select(Submission).where(Submission.scout_id == scout_id).order_by(Submission.started_at.desc())
    return list((await session.execute(q)).scalars().all())


async def list_for_challenge(session: AsyncSession, challenge_id: UUID, status: str | None = None) -> list[Submission]:
    q = select(Submission).where(Submission.challenge_id == challenge_id)
    if status:
        q = q.where(Submission.status == status)
    q = q.order_by(Submission.started_at.desc())
    return list((await session.execute(q)).scalars().all())


async def pending_for_validator(session: AsyncSession, actor: Actor, now: datetime | None = None, limit: int = 50) -> list[Submission]:
    """
    Validation queue: pending submissions the actor could act on right now.
    Expired ones are left out since they can only be read.
    """
    now = now or utcnow()
    directory = SqlRelationshipDirectory(session)
    q = (
        select(Submission)
        .join(Challenge, Challenge.id == Submission.challenge_id)
        .where(Submission.status == PENDING_VALIDATION)
        .where(Challenge.deleted_at.is_(None), Challenge.ends_at > now)
        .where(Submission.scout_id != actor.id)
    )
    if actor.kind == "parent":
        scout_ids = await directory.scouts_of_parent(actor.id)
        if not scout_ids:
            return []
        q = q.where(Submission.scout_id.in_(scout_ids))
    elif actor.kind == "leader":
        group_ids = await directory.groups_of_leader(actor.id)
        if not group_ids:
            return []
        q = q.join(ScoutAccount, ScoutAccount.id == Submission.scout_id).where(ScoutAccount.group_id.in_(group_ids))
    else:
        return []
    q = q.order_by(Submission.submitted_at.asc()).limit(limit)
    return list((await session.execute(q)).scalars().all())


async def processed_for_group(session: AsyncSession, group_id: UUID, limit: int = 50) -> list[Submission]:
    """Validation history for a group: completed or bounced-back attempts, newest verdict first."""
    q = (
        select(Submission)
        .join(ScoutAccount, ScoutAccount.id == Submission.scout_id)
        .where(ScoutAccount.group_id == group_id)
        .where(or_(Submission.validated_at.is_not(None), Submission.last_rejected_at.is_not(None)))
        .order_by(func.coalesce(Submission.validated_at, Submission.last_rejected_at).desc())
        .limit(limit)
    )
    return list((await session.execute(q)).scalars().all())
