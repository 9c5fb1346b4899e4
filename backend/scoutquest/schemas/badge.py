from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

ConditionType = Literal["points", "challenges", "challenges_category", "manual"]

class BadgeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    description: str = ""
    icon: str = Field(min_length=1, max_length=16)
    category: str
    condition_type: ConditionType
    condition_value: int | None = Field(default=None, gt=0)
    challenge_category: str | None = None

class BadgePublic(BaseModel):
    id: UUID
    name: str
    description: str
    icon: str
    category: str
    condition_type: ConditionType
    condition_value: int | None = None
    challenge_category: str | None = None
    is_active: bool

class ScoutBadgeView(BaseModel):
    badge: BadgePublic
    unlocked: bool
    unlocked_at: datetime | None = None
    progress: int | None = Field(default=None, description="0-100 towards an automatic badge; null once unlocked or for manual badges")

class AwardBadgeRequest(BaseModel):
    badge_id: UUID
    comment: str | None = Field(default=None, max_length=2000)

class ScoutBadgePublic(BaseModel):
    id: UUID
    scout_id: UUID
    badge_id: UUID
    unlocked_at: datetime
    awarded_by: UUID | None = None
    comment: str | None = None
