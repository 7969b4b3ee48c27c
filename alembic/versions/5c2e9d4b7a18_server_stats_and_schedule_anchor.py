"""Server stats collection and scheduled-message anchor day

Revision ID: 5c2e9d4b7a18
Revises: 0a1f3c5e7b90
Create Date: 2026-10-25 10:30:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "5c2e9d4b7a18"
down_revision: str | Sequence[str] | None = "0a1f3c5e7b90"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "server_stats",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("guild_id", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("member_count", sa.Integer(), nullable=True),
        sa.Column("online_count", sa.Integer(), nullable=True),
        sa.Column("messages_today", sa.Integer(), nullable=True),
        sa.Column("command_count", sa.Integer(), nullable=True),
        sa.Column("total_warnings", sa.Integer(), nullable=True),
        sa.Column("messages_weekly", sa.Text(), nullable=True),
        sa.Column("role_distribution", sa.Text(), nullable=True),
        sa.UniqueConstraint("guild_id", name="uq_server_stats_guild"),
    )

    # Existing monthly schedules keep stepping from their stored day.
    with op.batch_alter_table("scheduled_messages") as batch:
        batch.add_column(sa.Column("anchor_day", sa.Integer(), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("scheduled_messages") as batch:
        batch.drop_column("anchor_day")
    op.drop_table("server_stats")
