from __future__ import annotations
import secrets
from uuid import UUID
from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from scoutquest.config import settings
from scoutquest.db import get_session, utcnow
from scoutquest.auth_deps import get_ranker
from scoutquest.models.submission import COMPLETED
from scoutquest.schemas.badge import BadgeCreate, BadgePublic
from scoutquest.schemas.submission import ReconciliationItem
from scoutquest.routes.badges import to_badge_public
from scoutquest.services import badges, tracker
from scoutquest.services.errors import InvalidTransition
from scoutquest.services.leaderboard import LeaderboardRanker
from scoutquest.services.points_ledger import award_once, unawarded_completions

router = APIRouter(prefix="/admin", tags=["admin"])
log = structlog.get_logger()

async def require_operator(x_operator_token: str | None = Header(default=None, alias="X-Operator-Token")) -> None:
    if not settings.operator_token:
        raise HTTPException(status_code=403, detail="Operator endpoints are disabled")
    if not x_operator_token or not secrets.compare_digest(x_operator_token, settings.operator_token):
        raise HTTPException(status_code=403, detail="Operator token required")

@router.get("/reconciliation", response_model=list[ReconciliationItem], dependencies=[Depends(require_operator)])
async def list_unawarded(
    limit: int = Query(default=100, ge=1, le=1000),
    session: AsyncSession = Depends(get_session),
):
    """Completed submissions whose points never landed (dangling scout or challenge at award time)."""
    rows = await unawarded_completions(session, limit)
    return [
        ReconciliationItem(
            submission_id=s.id, challenge_id=s.challenge_id, scout_id=s.scout_id,
            validated_at=s.validated_at, validated_by=s.validated_by,
        ) for s in rows
    ]

@router.post("/submissions/{submission_id}/award", dependencies=[Depends(require_operator)])
async def retry_award(
    submission_id: UUID,
    session: AsyncSession = Depends(get_session),
    ranker: LeaderboardRanker = Depends(get_ranker),
):
    """Operator-driven retry once the missing account or challenge has been restored."""
    sub = await tracker.get_submission(session, submission_id)
    if sub.status != COMPLETED:
        raise InvalidTransition("Only completed submissions can be awarded")
    now = utcnow()
    account = await award_once(session, sub.id, now)
    if account is not None:
        await badges.award_automatic(session, account.id, now)
    await session.commit()
    if account is None:
        return {"submission_id": str(sub.id), "status": "already_awarded"}
    ranker.invalidate_group(account.group_id)
    log.info("award_reconciled", submission_id=str(sub.id), scout_id=str(account.id))
    return {"submission_id": str(sub.id), "status": "awarded", "point_total": int(account.point_total)}

@router.get("/badges", response_model=list[BadgePublic], dependencies=[Depends(require_operator)])
async def list_all_badges(session: AsyncSession = Depends(get_session)):
    return [to_badge_public(b) for b in await badges.list_definitions(session, include_inactive=True)]

@router.post("/badges", response_model=BadgePublic, status_code=201, dependencies=[Depends(require_operator)])
async def create_badge(payload: BadgeCreate, session: AsyncSession = Depends(get_session)):
    b = await badges.create_badge(
        session,
        name=payload.name,
        description=payload.description,
        icon=payload.icon,
        category=payload.category,
        condition_type=payload.condition_type,
        condition_value=payload.condition_value,
        challenge_category=payload.challenge_category,
    )
    return to_badge_public(b)

@router.delete("/badges/{badge_id}", response_model=BadgePublic, dependencies=[Depends(require_operator)])
async def deactivate_badge(badge_id: UUID, session: AsyncSession = Depends(get_session)):
    return to_badge_public(await badges.set_badge_active(session, badge_id, False))

@router.post("/badges/{badge_id}/reactivate", response_model=BadgePublic, dependencies=[Depends(require_operator)])
async def reactivate_badge(badge_id: UUID, session: AsyncSession = Depends(get_session)):
    return to_badge_public(await badges.set_badge_active(session, badge_id, True))
