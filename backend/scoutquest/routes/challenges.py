from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from dataclasses import asdict
from datetime import datetime
from uuid import UUID

from scoutquest.db import get_session, utcnow
from scoutquest.auth_deps import get_current_actor
from scoutquest.models.challenge import Challenge
from scoutquest.schemas.challenge import ChallengeCreate, ChallengeUpdate, ChallengePublic, ChallengeStatsPublic
from scoutquest.schemas.submission import SubmissionPublic
from scoutquest.services import catalog, tracker
from scoutquest.services.authority import SqlRelationshipDirectory
from scoutquest.services.kpi import challenge_stats
from scoutquest.services.leaderboard import parse_scope
from scoutquest.services.windows import runtime_state
from scoutquest.routes.submissions import to_submission_public

router = APIRouter(prefix="/challenges", tags=["challenges"])

def to_public(ch: Challenge, viewer_id: UUID, now: datetime) -> ChallengePublic:
    return ChallengePublic(
        id=ch.id, created_by=ch.created_by, title=ch.title, description=ch.description,
        point_value=ch.point_value, difficulty=ch.difficulty, category=ch.category,
        emoji=ch.emoji, image_ref=ch.image_ref,
        group_id=ch.group_id, is_global=ch.is_global,
        starts_at=ch.starts_at, ends_at=ch.ends_at,
        allow_multiple_completions=ch.allow_multiple_completions,
        participants_count=int(ch.participants_count or 0),
        created_at=ch.created_at, updated_at=ch.updated_at,
        runtime_state=runtime_state(ch.starts_at, ch.ends_at, now),
        is_owner=(ch.created_by == viewer_id),
    )

@router.post("", response_model=ChallengePublic, status_code=201)
async def create_challenge(payload: ChallengeCreate, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    # Who may publish is decided upstream by access control; scouts never do
    if actor.kind == "scout":
        raise HTTPException(status_code=403, detail="Scouts cannot publish challenges")
    ch = await catalog.create_challenge(
        session,
        created_by=actor.id,
        title=payload.title,
        description=payload.description,
        point_value=payload.point_value,
        starts_at=payload.starts_at,
        ends_at=payload.ends_at,
        group_id=payload.group_id,
        difficulty=payload.difficulty,
        category=payload.category,
        emoji=payload.emoji,
        image_ref=payload.image_ref,
        allow_multiple_completions=payload.allow_multiple_completions,
    )
    return to_public(ch, actor.id, utcnow())

@router.get("", response_model=list[ChallengePublic])
async def list_challenges(
    scope: str = Query(default="global", description="'global' or a group id"),
    active: int = Query(default=1, ge=0, le=1, description="1=only challenges open right now"),
    at: datetime | None = Query(default=None, description="evaluate the window at this instant (default: now)"),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    now = at or utcnow()
    sc = parse_scope(scope)
    if active == 1:
        rows = await catalog.list_active(session, sc, now)
    else:
        rows = await catalog.list_for_scope(session, sc)
    return [to_public(c, actor.id, now) for c in rows]

@router.get("/mine", response_model=list[ChallengePublic])
async def list_my_challenges(session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    now = utcnow()
    return [to_public(c, actor.id, now) for c in await catalog.list_by_creator(session, actor.id)]

@router.get("/{challenge_id}", response_model=ChallengePublic)
async def get_challenge(challenge_id: UUID, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    ch = await catalog.get_challenge(session, challenge_id)
    return to_public(ch, actor.id, utcnow())

@router.patch("/{challenge_id}", response_model=ChallengePublic)
async def update_challenge(
    challenge_id: UUID,
    payload: ChallengeUpdate,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    changes = payload.model_dump(exclude_unset=True)
    ch = await catalog.update_challenge(session, challenge_id, actor.id, changes)
    return to_public(ch, actor.id, utcnow())

@router.delete("/{challenge_id}", status_code=204)
async def delete_challenge(challenge_id: UUID, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    await catalog.delete_challenge(session, challenge_id, actor.id)
    return Response(status_code=204)

@router.get("/{challenge_id}/stats", response_model=ChallengeStatsPublic)
async def get_challenge_stats(
    challenge_id: UUID,
    group_id: UUID | None = Query(default=None, description="narrow a global challenge to one group"),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    ch = await catalog.get_challenge(session, challenge_id)
    if actor.id != ch.created_by:
        # Anyone else must lead the group the numbers are about
        scope_group = ch.group_id or group_id
        led = await SqlRelationshipDirectory(session).groups_of_leader(actor.id) if actor.kind == "leader" else []
        if scope_group is None or scope_group not in led:
            raise HTTPException(status_code=403, detail="Only the creator or the group's leaders can view these stats")
    st = await challenge_stats(session, ch, utcnow(), group_id=group_id)
    return ChallengeStatsPublic(**asdict(st))

@router.get("/{challenge_id}/submissions", response_model=list[SubmissionPublic])
async def list_challenge_submissions(
    challenge_id: UUID,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    ch = await catalog.get_challenge(session, challenge_id)
    rows = await tracker.list_for_challenge(session, ch.id)
    if actor.kind == "scout":
        rows = [s for s in rows if s.scout_id == actor.id]
    elif actor.id != ch.created_by:
        # Validators only see the scouts they could validate
        directory = SqlRelationshipDirectory(session)
        visible = []
        for s in rows:
            if await actor.can_validate(s.scout_id, directory):
                visible.append(s)
        rows = visible
    now = utcnow()
    return [to_submission_public(s, ch, now) for s in rows]

@router.post("/{challenge_id}/start", response_model=SubmissionPublic, status_code=201)
async def start_challenge(challenge_id: UUID, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    if actor.kind != "scout":
        raise HTTPException(status_code=403, detail="Only scouts can start challenges")
    now = utcnow()
    sub = await tracker.start(session, actor.id, challenge_id, now)
    ch = await catalog.get_challenge(session, challenge_id)
    return to_submission_public(sub, ch, now)
