from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from scoutquest.db import utcnow
from scoutquest.models.challenge import Challenge
from scoutquest.models.scout import ScoutAccount
from scoutquest.models.submission import Submission, STARTED, PENDING_VALIDATION, COMPLETED
from scoutquest.services.windows import is_open


@dataclass(frozen=True)
class ChallengeStats:
    challenge_id: UUID
    title: str
    points: int
    scouts_in_scope: int
    started_count: int
    pending_count: int
    completed_count: int
    completion_rate: int  # percent of scouts in scope who completed
    is_active: bool


@dataclass(frozen=True)
class GroupStats:
    group_id: UUID
    total_challenges: int
    active_challenges: int
    total_validations: int
    pending_validations: int
    average_completion_rate: int


def _rate(done: int, population: int) -> int:
    return round(done * 100 / population) if population > 0 else 0


async def _status_counts(session: AsyncSession, challenge_id: UUID, group_id: UUID | None) -> dict[str, int]:
    q = select(Submission.status, func.count()).where(Submission.challenge_id == challenge_id)
    if group_id is not None:
        q = q.join(ScoutAccount, ScoutAccount.id == Submission.scout_id).where(ScoutAccount.group_id == group_id)
    q = q.group_by(Submission.status)
    return {status: int(n) for status, n in (await session.execute(q)).all()}


async def _scouts_in(session: AsyncSession, group_id: UUID | None) -> int:
    q = select(func.count()).select_from(ScoutAccount)
    if group_id is not None:
        q = q.where(ScoutAccount.group_id == group_id)
    return int(await session.scalar(q) or 0)


async def challenge_stats(
    session: AsyncSession, ch: Challenge, now: datetime | None = None, group_id: UUID | None = None
) -> ChallengeStats:
    """
    Counts for one challenge. For a global challenge ``group_id`` narrows the
    figures to one group; a group challenge is always counted in its own group.
    """
    now = now or utcnow()
    scope = ch.group_id if ch.group_id is not None else group_id
    counts = await _status_counts(session, ch.id, scope)
    population = await _scouts_in(session, scope)
    completed = counts.get(COMPLETED, 0)
    return ChallengeStats(
        challenge_id=ch.id,
        title=ch.title,
        points=ch.point_value,
        scouts_in_scope=population,
        started_count=counts.get(STARTED, 0),
        pending_count=counts.get(PENDING_VALIDATION, 0),
        completed_count=completed,
        completion_rate=_rate(completed, population),
        is_active=ch.deleted_at is None and is_open(ch.starts_at, ch.ends_at, now),
    )


async def group_stats(session: AsyncSession, group_id: UUID, now: datetime | None = None) -> GroupStats:
    """Roll-up over the group's own challenges (global ones are not counted here)."""
    now = now or utcnow()
    challenges = (await session.execute(
        select(Challenge).where(Challenge.group_id == group_id, Challenge.deleted_at.is_(None))
    )).scalars().all()

    validations = pending = 0
    rates: list[int] = []
    active = 0
    for ch in challenges:
        st = await challenge_stats(session, ch, now)
        validations += st.completed_count
        pending += st.pending_count
        rates.append(st.completion_rate)
        if st.is_active:
            active += 1

    return GroupStats(
        group_id=group_id,
        total_challenges=len(challenges),
        active_challenges=active,
        total_validations=validations,
        pending_validations=pending,
        average_completion_rate=round(sum(rates) / len(rates)) if rates else 0,
    )
