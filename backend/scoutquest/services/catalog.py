from __future__ import annotations
from datetime import datetime
from typing import Any
from uuid import UUID
import structlog
from sqlalchemy import select, exists, or_
from sqlalchemy.ext.asyncio import AsyncSession

from scoutquest.db import utcnow
from scoutquest.models.challenge import Challenge
from scoutquest.models.submission import Submission
from scoutquest.services.errors import InvalidArgument, NotFound, InvalidTransition, Unauthorized
from scoutquest.services.windows import validate_window

log = structlog.get_logger()

GLOBAL_SCOPE = "global"
DIFFICULTIES = ("easy", "medium", "hard")
CATEGORIES = ("nature", "sport", "technique", "cuisine", "creativity")

# Changing these after someone started would re-price or re-scope attempts already made
FROZEN_ONCE_ATTEMPTED = ("point_value", "group_id", "allow_multiple_completions")
EDITABLE_FIELDS = (
    "title", "description", "difficulty", "category", "emoji", "image_ref",
    "starts_at", "ends_at", *FROZEN_ONCE_ATTEMPTED,
)


def _check_fields(point_value: int | None, difficulty: str | None, category: str | None) -> None:
    if point_value is not None and (not isinstance(point_value, int) or isinstance(point_value, bool) or point_value <= 0):
        raise InvalidArgument("point_value must be a positive integer")
    if difficulty is not None and difficulty not in DIFFICULTIES:
        raise InvalidArgument(f"difficulty must be one of {', '.join(DIFFICULTIES)}")
    if category is not None and category not in CATEGORIES:
        raise InvalidArgument(f"category must be one of {', '.join(CATEGORIES)}")


async def create_challenge(
    session: AsyncSession,
    *,
    created_by: UUID,
    title: str,
    description: str | None,
    point_value: int,
    starts_at: datetime,
    ends_at: datetime,
    group_id: UUID | None = None,
    difficulty: str = "medium",
    category: str | None = None,
    emoji: str | None = None,
    image_ref: str | None = None,
    allow_multiple_completions: bool = False,
) -> Challenge:
    _check_fields(point_value, difficulty, category)
    validate_window(starts_at, ends_at)
    if not title or not title.strip():
        raise InvalidArgument("title must not be empty")

    ch = Challenge(
        created_by=created_by,
        title=title.strip(),
        description=description,
        point_value=point_value,
        difficulty=difficulty,
        category=category,
        emoji=emoji,
        image_ref=image_ref,
        group_id=group_id,
        starts_at=starts_at,
        ends_at=ends_at,
        allow_multiple_completions=allow_multiple_completions,
        participants_count=0,
        created_at=utcnow(),
    )
    session.add(ch)
    await session.commit()
    await session.refresh(ch)
    log.info("challenge_created", challenge_id=str(ch.id), group_id=str(group_id) if group_id else GLOBAL_SCOPE, points=point_value)
    return ch


async def get_challenge(session: AsyncSession, challenge_id: UUID) -> Challenge:
    ch = await session.get(Challenge, challenge_id)
    if not ch or ch.deleted_at is not None:
        raise NotFound("Challenge not found")
    return ch


def _scope_clause(scope: str | UUID):
    if scope == GLOBAL_SCOPE:
        return Challenge.group_id.is_(None)
    # A group sees its own challenges plus the global ones
    return or_(Challenge.group_id == scope, Challenge.group_id.is_(None))


async def list_active(session: AsyncSession, scope: str | UUID, at: datetime) -> list[Challenge]:
    if at.tzinfo is None:
        raise InvalidArgument("at must carry a timezone offset")
    q = (
        select(Challenge)
        .where(Challenge.deleted_at.is_(None))
        .where(_scope_clause(scope))
        .where(Challenge.starts_at <= at, Challenge.ends_at > at)
        .order_by(Challenge.created_at.desc(), Challenge.id.desc())
    )
    return list((await session.execute(q)).scalars().all())


async def list_for_scope(session: AsyncSession, scope: str | UUID) -> list[Challenge]:
    """Every live challenge for a scope, whatever its window (archives view)."""
    q = (
        select(Challenge)
        .where(Challenge.deleted_at.is_(None))
        .where(_scope_clause(scope))
        .order_by(Challenge.created_at.desc(), Challenge.id.desc())
    )
    return list((await session.execute(q)).scalars().all())


async def list_by_creator(session: AsyncSession, created_by: UUID) -> list[Challenge]:
    q = (
        select(Challenge)
        .where(Challenge.created_by == created_by, Challenge.deleted_at.is_(None))
        .order_by(Challenge.created_at.desc(), Challenge.id.desc())
    )
    return list((await session.execute(q)).scalars().all())


async def has_attempts(session: AsyncSession, challenge_id: UUID) -> bool:
    return bool(await session.scalar(select(exists().where(Submission.challenge_id == challenge_id))))


async def update_challenge(session: AsyncSession, challenge_id: UUID, actor_id: UUID, changes: dict[str, Any]) -> Challenge:
    """Administrative edit by the creator. Unknown keys are rejected, not ignored."""
    ch = await get_challenge(session, challenge_id)
    if ch.created_by != actor_id:
        raise Unauthorized("Only the creator can edit this challenge")

    unknown = set(changes) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidArgument(f"Fields not editable: {', '.join(sorted(unknown))}")

    _check_fields(changes.get("point_value"), changes.get("difficulty"), changes.get("category"))
    if "title" in changes and (not changes["title"] or not str(changes["title"]).strip()):
        raise InvalidArgument("title must not be empty")
    validate_window(changes.get("starts_at", ch.starts_at), changes.get("ends_at", ch.ends_at))

    frozen = [f for f in FROZEN_ONCE_ATTEMPTED if f in changes and changes[f] != getattr(ch, f)]
    if frozen and await has_attempts(session, ch.id):
        raise InvalidTransition(f"Cannot change {', '.join(frozen)} once scouts have started this challenge")

    for key, value in changes.items():
        setattr(ch, key, value)
    ch.updated_at = utcnow()
    await session.commit()
    await session.refresh(ch)
    log.info("challenge_updated", challenge_id=str(ch.id), fields=sorted(changes))
    return ch


async def delete_challenge(session: AsyncSession, challenge_id: UUID, actor_id: UUID) -> None:
    """
    Soft delete. Submissions keep pointing at the row, points already awarded
    stay credited, and in-flight attempts can no longer move.
    """
    ch = await get_challenge(session, challenge_id)
    if ch.created_by != actor_id:
        raise Unauthorized("Only the creator can delete this challenge")
    ch.deleted_at = utcnow()
    await session.commit()
    log.info("challenge_deleted", challenge_id=str(ch.id))
