from __future__ import annotations
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade() -> None:
    op.create_table(
        "challenges",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("title", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("point_value", sa.Integer(), nullable=False),
        sa.Column("difficulty", sa.String(length=16), nullable=False, server_default="medium"),
        sa.Column("category", sa.String(length=32), nullable=True),
        sa.Column("emoji", sa.String(length=16), nullable=True),
        sa.Column("image_ref", sa.Text(), nullable=True),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("starts_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("ends_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("allow_multiple_completions", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("participants_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("deleted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint("point_value > 0", name="ck_challenge_point_value_positive"),
        sa.CheckConstraint("ends_at > starts_at", name="ck_challenge_window_order"),
        sa.CheckConstraint("participants_count >= 0", name="ck_challenge_participants_non_negative"),
    )
    op.create_index("ix_challenges_group_id", "challenges", ["group_id"])
    op.create_index("ix_challenges_created_by", "challenges", ["created_by"])
    op.create_index("ix_challenges_created_at", "challenges", ["created_at"])

    op.create_table(
        "scout_accounts",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("display_name", sa.String(length=120), nullable=False),
        sa.Column("point_total", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("point_total >= 0", name="ck_scout_point_total_non_negative"),
    )
    op.create_index("ix_scout_accounts_group_id", "scout_accounts", ["group_id"])

    op.create_table(
        "parent_scout_links",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("parent_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("scout_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_parent_scout_links_parent_id", "parent_scout_links", ["parent_id"])
    op.create_index("ix_parent_scout_links_scout_id", "parent_scout_links", ["scout_id"])
    op.create_unique_constraint("uq_parent_scout_link", "parent_scout_links", ["parent_id", "scout_id"])

    op.create_table(
        "group_leaders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("leader_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("group_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_group_leaders_leader_id", "group_leaders", ["leader_id"])
    op.create_index("ix_group_leaders_group_id", "group_leaders", ["group_id"])
    op.create_unique_constraint("uq_group_leader", "group_leaders", ["leader_id", "group_id"])

    op.create_table(
        "submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("challenge_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("challenges.id"), nullable=False),
        sa.Column("scout_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False),
        sa.Column("proof_ref", sa.Text(), nullable=True),
        sa.Column("scout_comment", sa.Text(), nullable=True),
        sa.Column("validator_comment", sa.Text(), nullable=True),
        sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("validated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("validated_by", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("rejection_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_rejected_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("awarded", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("awarded_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index("ix_submissions_challenge_id", "submissions", ["challenge_id"])
    op.create_index("ix_submissions_scout_id", "submissions", ["scout_id"])
    op.create_index("ix_submissions_status", "submissions", ["status"])
    # At most one attempt in flight per (challenge, scout)
    op.create_index(
        "uq_submission_open_per_pair",
        "submissions",
        ["challenge_id", "scout_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'completed'"),
    )

def downgrade() -> None:
    op.drop_index("uq_submission_open_per_pair", table_name="submissions")
    op.drop_index("ix_submissions_status", table_name="submissions")
    op.drop_index("ix_submissions_scout_id", table_name="submissions")
    op.drop_index("ix_submissions_challenge_id", table_name="submissions")
    op.drop_table("submissions")
    op.drop_constraint("uq_group_leader", "group_leaders", type_="unique")
    op.drop_index("ix_group_leaders_group_id", table_name="group_leaders")
    op.drop_index("ix_group_leaders_leader_id", table_name="group_leaders")
    op.drop_table("group_leaders")
    op.drop_constraint("uq_parent_scout_link", "parent_scout_links", type_="unique")
    op.drop_index("ix_parent_scout_links_scout_id", table_name="parent_scout_links")
    op.drop_index("ix_parent_scout_links_parent_id", table_name="parent_scout_links")
    op.drop_table("parent_scout_links")
    op.drop_index("ix_scout_accounts_group_id", table_name="scout_accounts")
    op.drop_table("scout_accounts")
    op.drop_index("ix_challenges_created_at", table_name="challenges")
    op.drop_index("ix_challenges_created_by", table_name="challenges")
    op.drop_index("ix_challenges_group_id", table_name="challenges")
    op.drop_table("challenges")
