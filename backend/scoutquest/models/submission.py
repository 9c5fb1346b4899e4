from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Text, Integer, Boolean, ForeignKey, Index, Uuid, text
from scoutquest.db import Base, UTCDateTime, utcnow

STARTED = "started"
PENDING_VALIDATION = "pending_validation"
COMPLETED = "completed"
# Never stored: derived from the challenge window at read time
EXPIRED = "expired"


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    challenge_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("challenges.id"), index=True, nullable=False
    )
    # NOTE: no FK, scout accounts belong to the identity service and can disappear underneath us
    scout_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)

    status: Mapped[str] = mapped_column(String(24), nullable=False, default=STARTED)  # started|pending_validation|completed

    proof_ref: Mapped[str | None] = mapped_column(Text(), nullable=True)
    scout_comment: Mapped[str | None] = mapped_column(Text(), nullable=True)
    validator_comment: Mapped[str | None] = mapped_column(Text(), nullable=True)

    started_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    validated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    validated_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    rejection_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_rejected_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    # Single source of truth for "points were credited"; flipped once by the ledger
    awarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    awarded_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        # One in-flight attempt per (challenge, scout)
        Index(
            "uq_submission_open_per_pair",
            "challenge_id",
            "scout_id",
            unique=True,
            postgresql_where=text("status <> 'completed'"),
            sqlite_where=text("status <> 'completed'"),
        ),
        Index("ix_submissions_status", "status"),
    )
