"""Initial lifecycle schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates the tables for the Tribeworks bounty and grant lifecycle:
- users, organizations, members: identity and organization roles
- grants, rfps, grant_applications: grant intake and review
- bounties, submissions: bounty intake and winner allocation
- curators: reviewers assigned to a grant or bounty
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Enum types shared across tables are created once, up front
bounty_status = postgresql.ENUM(
    "OPEN", "REVIEWING", "COMPLETED", "CLOSED", "CANCELLED",
    name="bounty_status", create_type=False,
)
visibility = postgresql.ENUM("DRAFT", "PUBLISHED", "ARCHIVED", name="visibility", create_type=False)
split_policy = postgresql.ENUM("FIXED", "EQUAL_SPLIT", "VARIABLE", name="split_policy", create_type=False)
submission_status = postgresql.ENUM(
    "SUBMITTED", "UNDER_REVIEW", "SELECTED", "REJECTED", "SPAM",
    name="submission_status", create_type=False,
)
grant_status = postgresql.ENUM("DRAFT", "OPEN", "PAUSED", "CLOSED", name="grant_status", create_type=False)
grant_source = postgresql.ENUM("NATIVE", "EXTERNAL", name="grant_source", create_type=False)
application_status = postgresql.ENUM(
    "DRAFT", "SUBMITTED", "UNDER_REVIEW", "APPROVED", "REJECTED",
    name="application_status", create_type=False,
)

ENUMS = (
    bounty_status,
    visibility,
    split_policy,
    submission_status,
    grant_status,
    grant_source,
    application_status,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    """Create the lifecycle schema."""
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    # ==========================================================================
    # Identity and organizations
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=False, unique=True),
        sa.Column("username", sa.String(64), nullable=True, unique=True),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False, unique=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "members",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("role", sa.String(20), nullable=False, server_default="member"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("organization_id", "user_id", name="uq_members_org_user"),
    )

    # ==========================================================================
    # Grants
    # ==========================================================================
    op.create_table(
        "grants",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("slug", sa.String(200), nullable=False, unique=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", grant_status, nullable=False, server_default="OPEN"),
        sa.Column("visibility", visibility, nullable=False, server_default="DRAFT"),
        sa.Column("source", grant_source, nullable=False, server_default="NATIVE"),
        sa.Column("application_url", sa.Text(), nullable=True),
        sa.Column("min_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("max_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("token", sa.String(20), nullable=True),
        sa.Column("screening", sa.JSON(), nullable=True),
        sa.Column("application_count", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    # Slug lookups are case-insensitive
    op.create_index("ix_grants_slug_lower", "grants", [sa.text("lower(slug)")])

    op.create_table(
        "rfps",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "grant_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("grants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("slug", sa.String(200), nullable=False),
        sa.Column("application_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("grant_id", "slug", name="uq_rfps_grant_slug"),
    )

    op.create_table(
        "grant_applications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "grant_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("grants.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "rfp_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("rfps.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("summary", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("timeline", sa.JSON(), nullable=True),
        sa.Column("milestones", sa.JSON(), nullable=True),
        sa.Column("budget", sa.Numeric(18, 2), nullable=True),
        sa.Column("responses", sa.JSON(), nullable=True),
        sa.Column("status", application_status, nullable=False, server_default="SUBMITTED"),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("grant_id", "user_id", name="uq_grant_applications_grant_user"),
    )
    op.create_index("ix_grant_applications_grant_id", "grant_applications", ["grant_id"])

    # ==========================================================================
    # Bounties
    # ==========================================================================
    op.create_table(
        "bounties",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "organization_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("slug", sa.String(200), nullable=False, unique=True),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("skills", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column("amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("token", sa.String(20), nullable=True),
        sa.Column("split", split_policy, nullable=False, server_default="FIXED"),
        sa.Column("winnings", sa.JSON(), nullable=True),
        sa.Column("deadline", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("status", bounty_status, nullable=False, server_default="OPEN"),
        sa.Column("visibility", visibility, nullable=False, server_default="DRAFT"),
        sa.Column("submission_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_winner_reminder_sent_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("winners_announced_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
    )
    # Deadline sweep scans by status and deadline
    op.create_index("ix_bounties_status_deadline", "bounties", ["status", "deadline"])
    op.create_index("ix_bounties_slug_lower", "bounties", [sa.text("lower(slug)")])

    op.create_table(
        "submissions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "bounty_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("bounties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("submission_url", sa.Text(), nullable=True),
        sa.Column("responses", sa.JSON(), nullable=True),
        sa.Column("status", submission_status, nullable=False, server_default="SUBMITTED"),
        sa.Column("is_winner", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("position", sa.Integer(), nullable=True),
        sa.Column("winning_amount", sa.Numeric(18, 2), nullable=True),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("bounty_id", "user_id", name="uq_submissions_bounty_user"),
        sa.UniqueConstraint("bounty_id", "position", name="uq_submissions_bounty_position"),
        sa.CheckConstraint(
            "(is_winner AND position IS NOT NULL) OR (NOT is_winner AND position IS NULL)",
            name="ck_submissions_winner_position",
        ),
    )
    op.create_index("ix_submissions_bounty_id", "submissions", ["bounty_id"])

    # ==========================================================================
    # Curators
    # ==========================================================================
    op.create_table(
        "curators",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "bounty_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("bounties.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "grant_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("grants.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("user_id", "bounty_id", name="uq_curators_user_bounty"),
        sa.UniqueConstraint("user_id", "grant_id", name="uq_curators_user_grant"),
        sa.CheckConstraint(
            "(bounty_id IS NULL) <> (grant_id IS NULL)",
            name="ck_curators_single_target",
        ),
    )


def downgrade() -> None:
    """Drop the lifecycle schema."""
    op.drop_table("curators")
    op.drop_index("ix_submissions_bounty_id", table_name="submissions")
    op.drop_table("submissions")
    op.drop_index("ix_bounties_slug_lower", table_name="bounties")
    op.drop_index("ix_bounties_status_deadline", table_name="bounties")
    op.drop_table("bounties")
    op.drop_index("ix_grant_applications_grant_id", table_name="grant_applications")
    op.drop_table("grant_applications")
    op.drop_table("rfps")
    op.drop_index("ix_grants_slug_lower", table_name="grants")
    op.drop_table("grants")
    op.drop_table("members")
    op.drop_table("organizations")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
