from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID
import structlog
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from scoutquest.db import utcnow
from scoutquest.models.badge import BadgeDefinition, ScoutBadge, POINTS, CHALLENGES, CHALLENGES_CATEGORY, MANUAL
from scoutquest.models.challenge import Challenge
from scoutquest.models.scout import ScoutAccount
from scoutquest.models.submission import Submission, COMPLETED
from scoutquest.services.authority import Actor, RelationshipDirectory, SqlRelationshipDirectory
from scoutquest.services.catalog import CATEGORIES
from scoutquest.services.errors import InvalidArgument, NotFound, Unauthorized

log = structlog.get_logger()

CONDITION_TYPES = (POINTS, CHALLENGES, CHALLENGES_CATEGORY, MANUAL)
BADGE_CATEGORIES = ("nature", "cuisine", "sport", "first_aid", "creativity", "social", "technique")
AUTO_COMMENT = "Unlocked automatically"


@dataclass(frozen=True)
class CompletionCounts:
    total: int
    by_category: dict[str, int]


@dataclass(frozen=True)
class BadgeProgress:
    badge: BadgeDefinition
    unlocked: bool
    unlocked_at: datetime | None
    progress: int | None


def _validate(name: str, icon: str, category: str, condition_type: str,
              condition_value: int | None, challenge_category: str | None) -> None:
    if not name or not name.strip():
        raise InvalidArgument("name must not be empty")
    if not icon or not icon.strip():
        raise InvalidArgument("icon must not be empty")
    if category not in BADGE_CATEGORIES:
        raise InvalidArgument(f"category must be one of {', '.join(BADGE_CATEGORIES)}")
    if condition_type not in CONDITION_TYPES:
        raise InvalidArgument(f"condition_type must be one of {', '.join(CONDITION_TYPES)}")
    if condition_type != MANUAL and (condition_value is None or condition_value <= 0):
        raise InvalidArgument("condition_value must be a positive integer")
    if condition_type == CHALLENGES_CATEGORY and challenge_category not in CATEGORIES:
        raise InvalidArgument(f"challenge_category must be one of {', '.join(CATEGORIES)}")


async def create_badge(
    session: AsyncSession,
    *,
    name: str,
    icon: str,
    category: str,
    condition_type: str,
    condition_value: int | None = None,
    challenge_category: str | None = None,
    description: str = "",
    created_by: UUID | None = None,
) -> BadgeDefinition:
    _validate(name, icon, category, condition_type, condition_value, challenge_category)
    badge = BadgeDefinition(
        name=name.strip(),
        description=(description or "").strip(),
        icon=icon.strip(),
        category=category,
        condition_type=condition_type,
        condition_value=None if condition_type == MANUAL else condition_value,
        challenge_category=challenge_category if condition_type == CHALLENGES_CATEGORY else None,
        created_by=created_by,
    )
    session.add(badge)
    await session.commit()
    await session.refresh(badge)
    log.info("badge_created", badge_id=str(badge.id), condition_type=condition_type)
    return badge


async def set_badge_active(session: AsyncSession, badge_id: UUID, active: bool) -> BadgeDefinition:
    """Soft delete (or restore) a badge; badges already unlocked are kept."""
    badge = await session.get(BadgeDefinition, badge_id)
    if not badge:
        raise NotFound("Badge not found")
    badge.is_active = active
    await session.commit()
    log.info("badge_active_changed", badge_id=str(badge_id), active=active)
    return badge


async def list_definitions(session: AsyncSession, include_inactive: bool = False) -> list[BadgeDefinition]:
    q = select(BadgeDefinition).order_by(BadgeDefinition.name.asc(), BadgeDefinition.id.asc())
    if not include_inactive:
        q = q.where(BadgeDefinition.is_active.is_(True))
    return list((await session.execute(q)).scalars().all())


async def completion_counts(session: AsyncSession, scout_id: UUID) -> CompletionCounts:
    rows = await session.execute(
        select(Challenge.category, func.count(Submission.id))
        .join(Challenge, Challenge.id == Submission.challenge_id)
        .where(Submission.scout_id == scout_id, Submission.status == COMPLETED)
        .group_by(Challenge.category)
    )
    by_category: dict[str, int] = {}
    total = 0
    for category, n in rows.all():
        total += int(n)
        if category is not None:
            by_category[category] = int(n)
    return CompletionCounts(total=total, by_category=by_category)


def _measure(badge: BadgeDefinition, points: int, counts: CompletionCounts) -> int | None:
    if badge.condition_type == POINTS:
        return points
    if badge.condition_type == CHALLENGES:
        return counts.total
    if badge.condition_type == CHALLENGES_CATEGORY:
        return counts.by_category.get(badge.challenge_category, 0)
    return None


def qualifies(badge: BadgeDefinition, points: int, counts: CompletionCounts) -> bool:
    measured = _measure(badge, points, counts)
    if measured is None or not badge.condition_value:
        return False
    return measured >= badge.condition_value


def progress(badge: BadgeDefinition, points: int, counts: CompletionCounts) -> int | None:
    """Percent towards an automatic badge, rounded half up and capped at 100; None for manual ones."""
    measured = _measure(badge, points, counts)
    if measured is None or not badge.condition_value:
        return None
    return min(100, math.floor(measured * 100 / badge.condition_value + 0.5))


async def _held_ids(session: AsyncSession, scout_id: UUID) -> set[UUID]:
    rows = await session.scalars(select(ScoutBadge.badge_id).where(ScoutBadge.scout_id == scout_id))
    return set(rows)


async def _grant(
    session: AsyncSession, scout_id: UUID, badge_id: UUID, now: datetime,
    awarded_by: UUID | None = None, comment: str | None = None,
) -> ScoutBadge | None:
    row = ScoutBadge(scout_id=scout_id, badge_id=badge_id, unlocked_at=now, awarded_by=awarded_by, comment=comment)
    try:
        async with session.begin_nested():
            session.add(row)
    except IntegrityError:
        # uq_scout_badge: a concurrent grant landed first
        log.info("badge_already_held", scout_id=str(scout_id), badge_id=str(badge_id))
        return None
    log.info("badge_unlocked", scout_id=str(scout_id), badge_id=str(badge_id), awarded_by=str(awarded_by) if awarded_by else None)
    return row


async def award_automatic(session: AsyncSession, scout_id: UUID, now: datetime | None = None) -> list[ScoutBadge]:
    """
    Grant every active automatic badge the scout now qualifies for and does
    not hold yet. Runs inside the caller's transaction, after the points
    award, and does not commit.
    """
    now = now or utcnow()
    account = await session.get(ScoutAccount, scout_id)
    if account is None:
        return []
    counts = await completion_counts(session, scout_id)
    held = await _held_ids(session, scout_id)
    granted: list[ScoutBadge] = []
    for badge in await list_definitions(session):
        if badge.id in held or badge.condition_type == MANUAL:
            continue
        if not qualifies(badge, account.point_total, counts):
            continue
        row = await _grant(session, scout_id, badge.id, now, comment=AUTO_COMMENT)
        if row is not None:
            granted.append(row)
    return granted


async def award_manual(
    session: AsyncSession,
    scout_id: UUID,
    badge_id: UUID,
    actor: Actor,
    comment: str | None = None,
    now: datetime | None = None,
    *,
    directory: RelationshipDirectory | None = None,
) -> ScoutBadge:
    """A leader hands a badge to a scout of their group. Already held: the existing row comes back."""
    now = now or utcnow()
    directory = directory or SqlRelationshipDirectory(session)
    if actor.kind != "leader" or not await directory.is_leader_of_scouts_group(actor.id, scout_id):
        raise Unauthorized("Only the scout's group leaders can award badges")
    badge = await session.get(BadgeDefinition, badge_id)
    if not badge or not badge.is_active:
        raise NotFound("Badge not found")
    if await session.get(ScoutAccount, scout_id) is None:
        raise NotFound("Scout account not found")

    existing = await session.scalar(
        select(ScoutBadge).where(ScoutBadge.scout_id == scout_id, ScoutBadge.badge_id == badge_id)
    )
    if existing is not None:
        return existing
    comment = comment.strip() if comment and comment.strip() else None
    row = await _grant(session, scout_id, badge_id, now, awarded_by=actor.id, comment=comment)
    await session.commit()
    if row is None:
        row = await session.scalar(
            select(ScoutBadge).where(ScoutBadge.scout_id == scout_id, ScoutBadge.badge_id == badge_id)
        )
    return row


async def badges_for_scout(session: AsyncSession, scout_id: UUID) -> list[BadgeProgress]:
    """Active badges with unlock state and progress: unlocked first, then closest to unlocking."""
    account = await session.get(ScoutAccount, scout_id)
    if account is None:
        raise NotFound("Scout account not found")
    counts = await completion_counts(session, scout_id)
    unlocked = {
        b.badge_id: b.unlocked_at
        for b in (await session.scalars(select(ScoutBadge).where(ScoutBadge.scout_id == scout_id)))
    }
    views = []
    for badge in await list_definitions(session):
        has = badge.id in unlocked
        views.append(BadgeProgress(
            badge=badge,
            unlocked=has,
            unlocked_at=unlocked.get(badge.id),
            progress=None if has else progress(badge, account.point_total, counts),
        ))
    return sorted(views, key=lambda v: (not v.unlocked, -(v.progress or 0)))
