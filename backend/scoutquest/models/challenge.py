from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, Text, Uuid, CheckConstraint
from scoutquest.db import Base, UTCDateTime, utcnow

class Challenge(Base):
    __tablename__ = "challenges"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    title: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text())
    point_value: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")  # easy|medium|hard
    category: Mapped[str | None] = mapped_column(String(32))  # nature|sport|technique|cuisine|creativity
    emoji: Mapped[str | None] = mapped_column(String(16))
    image_ref: Mapped[str | None] = mapped_column(Text())
    # NULL = global, visible to every group
    group_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True, nullable=True)
    starts_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    ends_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    allow_multiple_completions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    participants_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("point_value > 0", name="ck_challenge_point_value_positive"),
        CheckConstraint("ends_at > starts_at", name="ck_challenge_window_order"),
        CheckConstraint("participants_count >= 0", name="ck_challenge_participants_non_negative"),
    )

    @property
    def is_global(self) -> bool:
        return self.group_id is None
