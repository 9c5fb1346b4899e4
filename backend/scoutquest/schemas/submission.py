from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

SubmissionStatus = Literal["started", "pending_validation", "completed", "expired"]

class SubmitRequest(BaseModel):
    proof_ref: str | None = Field(default=None, description="pointer to the proof photo in external storage")
    comment: str | None = Field(default=None, max_length=2000)

class AcceptRequest(BaseModel):
    comment: str | None = Field(default=None, max_length=2000)

class RejectRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)

class SubmissionPublic(BaseModel):
    id: UUID
    challenge_id: UUID
    scout_id: UUID
    status: SubmissionStatus
    proof_ref: str | None = None
    scout_comment: str | None = None
    validator_comment: str | None = None
    started_at: datetime
    submitted_at: datetime | None = None
    validated_at: datetime | None = None
    validated_by: UUID | None = None
    rejection_count: int = 0
    awarded: bool = False

class ReconciliationItem(BaseModel):
    submission_id: UUID
    challenge_id: UUID
    scout_id: UUID
    validated_at: datetime | None
    validated_by: UUID | None
