from __future__ import annotations
from pydantic import BaseModel, Field, model_validator
from typing import Literal
from uuid import UUID
from datetime import datetime

Difficulty = Literal["easy", "medium", "hard"]
Category = Literal["nature", "sport", "technique", "cuisine", "creativity"]
RuntimeState = Literal["upcoming", "open", "closed"]

class ChallengeCreate(BaseModel):
    title: str = Field(min_length=3, max_length=120)
    description: str | None = None
    point_value: int = Field(gt=0)
    difficulty: Difficulty = "medium"
    category: Category | None = None
    emoji: str | None = Field(default=None, max_length=16)
    image_ref: str | None = None
    group_id: UUID | None = Field(default=None, description="null = global, available to all groups")
    starts_at: datetime
    ends_at: datetime
    allow_multiple_completions: bool = False

class ChallengeUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=3, max_length=120)
    description: str | None = None
    point_value: int | None = Field(default=None, gt=0)
    difficulty: Difficulty | None = None
    category: Category | None = None
    emoji: str | None = Field(default=None, max_length=16)
    image_ref: str | None = None
    group_id: UUID | None = None
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    allow_multiple_completions: bool | None = None

    @model_validator(mode="after")
    def no_null_required(self):
        for f in ("title", "point_value", "difficulty", "starts_at", "ends_at", "allow_multiple_completions"):
            if f in self.model_fields_set and getattr(self, f) is None:
                raise ValueError(f"{f} cannot be null")
        return self

class ChallengePublic(BaseModel):
    id: UUID
    created_by: UUID
    title: str
    description: str | None
    point_value: int
    difficulty: Difficulty
    category: Category | None = None
    emoji: str | None = None
    image_ref: str | None = None
    group_id: UUID | None
    is_global: bool
    starts_at: datetime
    ends_at: datetime
    allow_multiple_completions: bool
    participants_count: int
    created_at: datetime
    updated_at: datetime | None = None
    runtime_state: RuntimeState
    is_owner: bool

class ChallengeStatsPublic(BaseModel):
    challenge_id: UUID
    title: str
    points: int
    scouts_in_scope: int
    started_count: int
    pending_count: int
    completed_count: int
    completion_rate: int
    is_active: bool

class GroupStatsPublic(BaseModel):
    group_id: UUID
    total_challenges: int
    active_challenges: int
    total_validations: int
    pending_validations: int
    average_completion_rate: int
