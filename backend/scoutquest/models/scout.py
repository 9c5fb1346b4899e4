from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, Uuid, UniqueConstraint, CheckConstraint
from scoutquest.db import Base, UTCDateTime, utcnow

class ScoutAccount(Base):
    """Point-bearing side of a scout. point_total only moves through the points ledger."""
    __tablename__ = "scout_accounts"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    group_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(120), nullable=False)
    point_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("point_total >= 0", name="ck_scout_point_total_non_negative"),
    )


# The two relation tables below are written by the identity service; read-only here.

class ParentScoutLink(Base):
    __tablename__ = "parent_scout_links"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    parent_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    scout_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("parent_id", "scout_id", name="uq_parent_scout_link"),
    )


class GroupLeader(Base):
    __tablename__ = "group_leaders"
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    leader_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    group_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("leader_id", "group_id", name="uq_group_leader"),
    )
