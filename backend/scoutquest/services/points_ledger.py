from __future__ import annotations
from datetime import datetime
from uuid import UUID
import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from scoutquest.db import utcnow
from scoutquest.models.challenge import Challenge
from scoutquest.models.scout import ScoutAccount
from scoutquest.models.submission import Submission, COMPLETED
from scoutquest.services.errors import DanglingReference

log = structlog.get_logger()


async def award_once(session: AsyncSession, submission_id: UUID, now: datetime | None = None) -> ScoutAccount | None:
    """
    Credit a completed submission's points to its scout, at most once.

    Idempotency rides on the submission's ``awarded`` flag: the flag flip is a
    compare-and-swap guarded by ``status = 'completed'``, so whichever caller
    flips it is the only one that increments totals. A caller that loses the
    swap gets ``None`` back, not an error.

    All three writes run in a savepoint. If the scout account or the challenge
    is gone, the savepoint rolls back (the submission stays COMPLETED with
    ``awarded = false``) and ``DanglingReference`` is raised for an operator.

    Does not commit; the caller owns the outer transaction.
    """
    now = now or utcnow()
    try:
        async with session.begin_nested():
            flipped = await session.execute(
                update(Submission)
                .where(
                    Submission.id == submission_id,
                    Submission.status == COMPLETED,
                    Submission.awarded.is_(False),
                )
                .values(awarded=True, awarded_at=now)
                .execution_options(synchronize_session=False)
            )
            if flipped.rowcount != 1:
                log.info("award_skipped", submission_id=str(submission_id), reason="already_awarded_or_not_completed")
                return None

            row = (await session.execute(
                select(Submission.scout_id, Submission.challenge_id).where(Submission.id == submission_id)
            )).one()
            scout_id, challenge_id = row

            point_value = await session.scalar(select(Challenge.point_value).where(Challenge.id == challenge_id))
            if point_value is None:
                raise DanglingReference(f"Challenge {challenge_id} missing at award time", submission_id=submission_id)

            credited = await session.execute(
                update(ScoutAccount)
                .where(ScoutAccount.id == scout_id)
                .values(point_total=ScoutAccount.point_total + point_value)
                .execution_options(synchronize_session=False)
            )
            if credited.rowcount != 1:
                raise DanglingReference(f"Scout account {scout_id} missing at award time", submission_id=submission_id)

            await session.execute(
                update(Challenge)
                .where(Challenge.id == challenge_id)
                .values(participants_count=Challenge.participants_count + 1)
                .execution_options(synchronize_session=False)
            )
    except DanglingReference as e:
        log.error("award_dangling_reference", submission_id=str(submission_id), detail=e.detail)
        raise

    account = await session.get(ScoutAccount, scout_id, populate_existing=True)
    log.info(
        "points_awarded",
        submission_id=str(submission_id),
        scout_id=str(scout_id),
        challenge_id=str(challenge_id),
        points=int(point_value),
        point_total=int(account.point_total) if account else None,
    )
    return account


async def unawarded_completions(session: AsyncSession, limit: int = 100) -> list[Submission]:
    """Completed submissions whose award never landed; the reconciliation queue."""
    q = (
        select(Submission)
        .where(Submission.status == COMPLETED, Submission.awarded.is_(False))
        .order_by(Submission.validated_at.asc())
        .limit(limit)
    )
    return list((await session.execute(q)).scalars().all())
