from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime
from uuid import UUID

from scoutquest.db import get_session, utcnow
from scoutquest.auth_deps import get_current_actor, get_ranker
from scoutquest.models.challenge import Challenge
from scoutquest.models.submission import Submission
from scoutquest.schemas.submission import SubmissionPublic, SubmitRequest, AcceptRequest, RejectRequest
from scoutquest.services import tracker
from scoutquest.services.authority import SqlRelationshipDirectory, can_validate

router = APIRouter(tags=["submissions"])

def to_submission_public(s: Submission, ch: Challenge | None, now: datetime) -> SubmissionPublic:
    return SubmissionPublic(
        id=s.id,
        challenge_id=s.challenge_id,
        scout_id=s.scout_id,
        status=tracker.effective_status(s, ch, now),
        proof_ref=s.proof_ref,
        scout_comment=s.scout_comment,
        validator_comment=s.validator_comment,
        started_at=s.started_at,
        submitted_at=s.submitted_at,
        validated_at=s.validated_at,
        validated_by=s.validated_by,
        rejection_count=int(s.rejection_count or 0),
        awarded=bool(s.awarded),
    )

async def _challenges_for(session: AsyncSession, rows: list[Submission]) -> dict[UUID, Challenge]:
    ids = {s.challenge_id for s in rows}
    if not ids:
        return {}
    return {c.id: c for c in (await session.execute(select(Challenge).where(Challenge.id.in_(ids)))).scalars().all()}

async def _publish(session: AsyncSession, rows: list[Submission]) -> list[SubmissionPublic]:
    now = utcnow()
    ch_map = await _challenges_for(session, rows)
    return [to_submission_public(s, ch_map.get(s.challenge_id), now) for s in rows]

async def _publish_one(session: AsyncSession, s: Submission) -> SubmissionPublic:
    return (await _publish(session, [s]))[0]

@router.get("/submissions/mine", response_model=list[SubmissionPublic])
async def my_submissions(session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    if actor.kind != "scout":
        raise HTTPException(status_code=403, detail="Only scouts have submissions")
    return await _publish(session, await tracker.list_for_scout(session, actor.id))

@router.get("/submissions/{submission_id}", response_model=SubmissionPublic)
async def get_submission(submission_id: UUID, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    s = await tracker.get_submission(session, submission_id)
    # Owner, or anyone who could validate it
    if actor.id != s.scout_id and not await can_validate(actor, s, SqlRelationshipDirectory(session)):
        raise HTTPException(status_code=403, detail="Not allowed to view this submission")
    return await _publish_one(session, s)

@router.post("/submissions/{submission_id}/submit", response_model=SubmissionPublic)
async def submit_proof(
    submission_id: UUID,
    payload: SubmitRequest,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    s = await tracker.submit(session, submission_id, actor, proof_ref=payload.proof_ref, comment=payload.comment)
    return await _publish_one(session, s)

@router.post("/submissions/{submission_id}/accept", response_model=SubmissionPublic)
async def accept_submission(
    submission_id: UUID,
    payload: AcceptRequest | None = None,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
    ranker=Depends(get_ranker),
):
    s = await tracker.accept(session, submission_id, actor, comment=payload.comment if payload else None, ranker=ranker)
    return await _publish_one(session, s)

@router.post("/submissions/{submission_id}/reject", response_model=SubmissionPublic)
async def reject_submission(
    submission_id: UUID,
    payload: RejectRequest,
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    s = await tracker.reject(session, submission_id, actor, payload.reason)
    return await _publish_one(session, s)

@router.get("/reviews/pending", response_model=list[SubmissionPublic], tags=["reviews"])
async def pending_reviews(
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    return await _publish(session, await tracker.pending_for_validator(session, actor, limit=limit))

@router.get("/reviews/history", response_model=list[SubmissionPublic], tags=["reviews"])
async def review_history(
    group_id: UUID = Query(...),
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
):
    if actor.kind != "leader" or group_id not in await SqlRelationshipDirectory(session).groups_of_leader(actor.id):
        raise HTTPException(status_code=403, detail="Only the group's leaders can view its history")
    return await _publish(session, await tracker.processed_for_group(session, group_id, limit=limit))
