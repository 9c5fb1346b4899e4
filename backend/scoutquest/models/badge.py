from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, Text, Uuid, ForeignKey, CheckConstraint, UniqueConstraint
from scoutquest.db import Base, UTCDateTime, utcnow

POINTS = "points"
CHALLENGES = "challenges"
CHALLENGES_CATEGORY = "challenges_category"
MANUAL = "manual"

class BadgeDefinition(Base):
    __tablename__ = "badge_definitions"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(80), nullable=False)
    description: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    icon: Mapped[str] = mapped_column(String(16), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    condition_type: Mapped[str] = mapped_column(String(24), nullable=False)  # points|challenges|challenges_category|manual
    condition_value: Mapped[int | None] = mapped_column(Integer, nullable=True)
    challenge_category: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(
            "condition_type IN ('points','challenges','challenges_category','manual')",
            name="ck_badge_condition_type",
        ),
        CheckConstraint(
            "condition_type = 'manual' OR condition_value > 0",
            name="ck_badge_condition_value_positive",
        ),
        CheckConstraint(
            "condition_type <> 'challenges_category' OR challenge_category IS NOT NULL",
            name="ck_badge_category_condition",
        ),
    )


class ScoutBadge(Base):
    __tablename__ = "scout_badges"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    scout_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    badge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("badge_definitions.id", ondelete="CASCADE"), nullable=False)
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    # NULL when unlocked automatically
    awarded_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text(), nullable=True)

    __table_args__ = (
        UniqueConstraint("scout_id", "badge_id", name="uq_scout_badge"),
    )
