"""Add approaching-deadline reminder timestamp to bounties

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

Tracks when an OPEN bounty's organization was last warned that the
deadline is close, so the reminder job sends at most one per cooldown.
"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# Revision identifiers
revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column(
        "bounties",
        sa.Column("last_reminder_sent_at", sa.TIMESTAMP(timezone=True), nullable=True),
    )


def downgrade() -> None:
    op.drop_column("bounties", "last_reminder_sent_at")
