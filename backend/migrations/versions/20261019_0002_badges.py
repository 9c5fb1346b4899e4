from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "badge_definitions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=80), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("icon", sa.String(length=16), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("condition_type", sa.String(length=24), nullable=False),
        sa.Column("condition_value", sa.Integer(), nullable=True),
        sa.Column("challenge_category", sa.String(length=32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "condition_type IN ('points','challenges','challenges_category','manual')",
            name="ck_badge_condition_type",
        ),
        sa.CheckConstraint("condition_type = 'manual' OR condition_value > 0", name="ck_badge_condition_value_positive"),
        sa.CheckConstraint(
            "condition_type <> 'challenges_category' OR challenge_category IS NOT NULL",
            name="ck_badge_category_condition",
        ),
    )

    op.create_table(
        "scout_badges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("scout_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("badge_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("badge_definitions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("unlocked_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("awarded_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
    )
    op.create_index("ix_scout_badges_scout_id", "scout_badges", ["scout_id"])
    op.create_unique_constraint("uq_scout_badge", "scout_badges", ["scout_id", "badge_id"])

def downgrade() -> None:
    op.drop_constraint("uq_scout_badge", "scout_badges", type_="unique")
    op.drop_index("ix_scout_badges_scout_id", table_name="scout_badges")
    op.drop_table("scout_badges")
    op.drop_table("badge_definitions")
