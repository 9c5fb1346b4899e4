from __future__ import annotations
from dataclasses import asdict
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from uuid import UUID

from scoutquest.config import settings
from scoutquest.db import get_session, utcnow
from scoutquest.auth_deps import get_current_actor, get_ranker
from scoutquest.models.scout import ScoutAccount
from scoutquest.schemas.challenge import GroupStatsPublic
from scoutquest.schemas.leaderboard import Leaderboard, LeaderboardRow, RankOf, ScoutLevel, LevelPublic
from scoutquest.services.authority import SqlRelationshipDirectory
from scoutquest.services.errors import NotFound
from scoutquest.services.kpi import group_stats
from scoutquest.services.leaderboard import LeaderboardRanker, parse_scope, scope_key
from scoutquest.services.levels import level_info, level_for, LevelDefinition

router = APIRouter(tags=["leaderboard"])

def _level_public(lvl: LevelDefinition) -> LevelPublic:
    return LevelPublic(
        order=lvl.order, name=lvl.name, icon=lvl.icon, color=lvl.color,
        min_points=lvl.min_points, max_points=lvl.max_points,
    )

@router.get("/leaderboard", response_model=Leaderboard)
async def get_leaderboard(
    scope: str = Query(default="global", description="'global' or a group id"),
    limit: int | None = Query(default=None, ge=1, le=1000),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
    ranker: LeaderboardRanker = Depends(get_ranker),
):
    sc = parse_scope(scope)
    view = await ranker.view(session, sc, utcnow())
    entries = list(view.entries)[: limit or settings.leaderboard_default_limit]
    return Leaderboard(
        scope=view.scope,
        computed_at=view.computed_at,
        entries=[
            LeaderboardRow(
                rank=e.rank, scout_id=e.scout_id, display_name=e.display_name,
                group_id=e.group_id, point_total=e.point_total,
                level=level_for(e.point_total).name,
            ) for e in entries
        ],
    )

@router.get("/leaderboard/rank/{scout_id}", response_model=RankOf)
async def get_rank_of(
    scout_id: UUID,
    scope: str = Query(default="global"),
    session: AsyncSession = Depends(get_session),
    actor=Depends(get_current_actor),
    ranker: LeaderboardRanker = Depends(get_ranker),
):
    sc = parse_scope(scope)
    r = await ranker.rank_of(session, sc, scout_id, utcnow())
    return RankOf(scope=scope_key(sc), scout_id=scout_id, rank=r)

@router.get("/scouts/{scout_id}/level", response_model=ScoutLevel)
async def get_scout_level(scout_id: UUID, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    scout = await session.get(ScoutAccount, scout_id)
    if not scout:
        raise NotFound("Scout account not found")
    info = level_info(scout.point_total)
    return ScoutLevel(
        scout_id=scout.id,
        points=info.points,
        current=_level_public(info.current),
        next=_level_public(info.next) if info.next else None,
        points_in_level=info.points_in_level,
        points_to_next=info.points_to_next,
        progress=info.progress,
        is_max_level=info.is_max_level,
    )

@router.get("/groups/{group_id}/stats", response_model=GroupStatsPublic)
async def get_group_stats(group_id: UUID, session: AsyncSession = Depends(get_session), actor=Depends(get_current_actor)):
    if actor.kind != "leader" or group_id not in await SqlRelationshipDirectory(session).groups_of_leader(actor.id):
        raise HTTPException(status_code=403, detail="Only the group's leaders can view its stats")
    return GroupStatsPublic(**asdict(await group_stats(session, group_id, utcnow())))
