from __future__ import annotations
from pydantic import BaseModel
from uuid import UUID
from datetime import datetime

class LevelPublic(BaseModel):
    order: int
    name: str
    icon: str
    color: str
    min_points: int
    max_points: int | None

class ScoutLevel(BaseModel):
    scout_id: UUID
    points: int
    current: LevelPublic
    next: LevelPublic | None
    points_in_level: int
    points_to_next: int
    progress: int
    is_max_level: bool

class LeaderboardRow(BaseModel):
    rank: int
    scout_id: UUID
    display_name: str
    group_id: UUID
    point_total: int
    level: str

class Leaderboard(BaseModel):
    scope: str
    computed_at: datetime
    entries: list[LeaderboardRow]

class RankOf(BaseModel):
    scope: str
    scout_id: UUID
    rank: int
