from __future__ import annotations
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from scoutquest.db import get_session
from scoutquest.auth_deps import get_current_actor
from scoutquest.models.badge import BadgeDefinition, ScoutBadge
from scoutquest.schemas.badge import BadgePublic, ScoutBadgeView, AwardBadgeRequest, ScoutBadgePublic
from scoutquest.services import badges

router = APIRouter(tags=["badges"])

def to_badge_public(b: BadgeDefinition) -> BadgePublic:
    return BadgePublic(
        id=b.id, name=b.name, description=b.description, icon=b.icon, category=b.category,
        condition_type=b.condition_type, condition_value=b.condition_value,
        challenge_category=b.challenge_category, is_active=b.is_active,
    )

def to_scout_badge_public(row: ScoutBadge) -> ScoutBadgePublic:
    return ScoutBadgePublic(
        id=row.id, scout_id=row.scout_id, badge_id=row.badge_id,
        unlocked_at=row.unlocked_at, awarded_by=row.awarded_by, comment=row.comment,
    )

@router.get("/badges", response_model=list[BadgePublic])
async def list_badges(session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    return [to_badge_public(b) for b in await badges.list_definitions(session)]

@router.get("/scouts/{scout_id}/badges", response_model=list[ScoutBadgeView])
async def list_scout_badges(scout_id: UUID, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    views = await badges.badges_for_scout(session, scout_id)
    return [
        ScoutBadgeView(badge=to_badge_public(v.badge), unlocked=v.unlocked, unlocked_at=v.unlocked_at, progress=v.progress)
        for v in views
    ]

@router.post("/scouts/{scout_id}/badges", response_model=ScoutBadgePublic)
async def award_badge(
    scout_id: UUID,
    payload: AwardBadgeRequest,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    row = await badges.award_manual(session, scout_id, payload.badge_id, actor, payload.comment)
    return to_scout_badge_public(row)
