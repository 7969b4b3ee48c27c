"""Initial document collections

Revision ID: 0a1f3c5e7b90
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "0a1f3c5e7b90"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _document_columns() -> list[sa.Column]:
    """id, guild_id, created_at, updated_at — shared by every collection."""
    return [
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("guild_id", sa.String(32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    """Create one table per document collection shared with the bot."""
    op.create_table(
        "servers",
        *_document_columns(),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("icon_url", sa.String(256), nullable=True),
        sa.UniqueConstraint("guild_id", name="uq_servers_guild"),
    )

    op.create_table(
        "guild_settings",
        *_document_columns(),
        sa.Column("schema_generation", sa.Integer(), nullable=True),
        sa.Column("welcome_settings", sa.Text(), nullable=True),
        sa.Column("goodbye_settings", sa.Text(), nullable=True),
        sa.Column("auto_role_settings", sa.Text(), nullable=True),
        sa.Column("leveling_settings", sa.Text(), nullable=True),
        sa.Column("auto_mod_settings", sa.Text(), nullable=True),
        sa.UniqueConstraint("guild_id", name="uq_guild_settings_guild"),
    )

    op.create_table(
        "guild_metadata",
        *_document_columns(),
        sa.Column("data", sa.Text(), nullable=False),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("guild_id", name="uq_guild_metadata_guild"),
    )

    op.create_table(
        "moderation_queue",
        *_document_columns(),
        sa.Column("target_user_id", sa.String(32), nullable=False),
        sa.Column("target_username", sa.String(128), nullable=False),
        sa.Column("action_type", sa.String(16), nullable=False),
        sa.Column("reason", sa.String(512), nullable=True),
        sa.Column("initiator_id", sa.String(64), nullable=False),
    )
    op.create_index("ix_moderation_queue_guild", "moderation_queue", ["guild_id"])

    op.create_table(
        "reaction_roles",
        *_document_columns(),
        sa.Column("channel_id", sa.String(32), nullable=False),
        sa.Column("message_id", sa.String(32), nullable=False),
        sa.Column("embed_title", sa.String(256), nullable=False),
        sa.Column("embed_description", sa.Text(), nullable=True),
        sa.Column("embed_color", sa.String(10), nullable=True),
        sa.Column("roles", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
    )
    op.create_index("ix_reaction_roles_guild_message", "reaction_roles", ["guild_id", "message_id"])
    op.create_index("ix_reaction_roles_status", "reaction_roles", ["status", "updated_at"])

    op.create_table(
        "reaction_role_queue",
        *_document_columns(),
        sa.Column("reaction_role_id", sa.String(32), nullable=False),
    )
    op.create_index("ix_reaction_role_queue_guild", "reaction_role_queue", ["guild_id"])

    op.create_table(
        "giveaways",
        *_document_columns(),
        sa.Column("channel_id", sa.String(32), nullable=False),
        sa.Column("message_id", sa.String(32), nullable=False),
        sa.Column("prize", sa.String(256), nullable=False),
        sa.Column("winner_count", sa.Integer(), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("required_role_id", sa.String(32), nullable=True),
        sa.Column("winners", sa.Text(), nullable=True),
    )
    op.create_index("ix_giveaways_status_ends_at", "giveaways", ["status", "ends_at"])
    op.create_index("ix_giveaways_guild", "giveaways", ["guild_id"])

    op.create_table(
        "giveaway_queue",
        *_document_columns(),
        sa.Column("giveaway_id", sa.String(32), nullable=False),
    )
    op.create_index("ix_giveaway_queue_guild", "giveaway_queue", ["guild_id"])

    op.create_table(
        "scheduled_messages",
        *_document_columns(),
        sa.Column("channel_id", sa.String(32), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("repeat", sa.String(16), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("last_run", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_run", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_scheduled_messages_status_next_run", "scheduled_messages", ["status", "next_run"],
    )
    op.create_index("ix_scheduled_messages_guild", "scheduled_messages", ["guild_id"])

    op.create_table(
        "youtube_subscriptions",
        *_document_columns(),
        sa.Column("youtube_channel_id", sa.String(64), nullable=False),
        sa.Column("youtube_channel_name", sa.String(128), nullable=True),
        sa.Column("discord_channel_id", sa.String(32), nullable=False),
        sa.Column("discord_channel_name", sa.String(128), nullable=True),
        sa.Column("mention_role_id", sa.String(32), nullable=True),
        sa.Column("custom_message", sa.Text(), nullable=True),
        sa.Column("live_message", sa.Text(), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("last_video_timestamp", sa.DateTime(timezone=True), nullable=True),
        sa.Column("announced_video_ids", sa.Text(), nullable=True),
        sa.Column("last_announced_video_id", sa.String(64), nullable=True),
        sa.Column("last_announced_video_title", sa.String(256), nullable=True),
    )
    op.create_index("ix_youtube_subscriptions_guild", "youtube_subscriptions", ["guild_id"])

    op.create_table(
        "music_queue",
        *_document_columns(),
        sa.Column("song_url", sa.String(512), nullable=False),
        sa.Column("requester_id", sa.String(32), nullable=False),
    )
    op.create_index("ix_music_queue_guild", "music_queue", ["guild_id"])

    op.create_table(
        "custom_commands",
        *_document_columns(),
        sa.Column("command", sa.String(64), nullable=False),
        sa.Column("response", sa.Text(), nullable=True),
        sa.Column("is_embed", sa.Boolean(), nullable=True),
        sa.Column("embed_content", sa.Text(), nullable=True),
        sa.UniqueConstraint("guild_id", "command", name="uq_custom_commands_guild_command"),
    )

    op.create_table(
        "user_levels",
        *_document_columns(),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("username", sa.String(128), nullable=False),
        sa.Column("user_avatar_url", sa.String(256), nullable=True),
        sa.Column("level", sa.Integer(), nullable=True),
        sa.Column("xp", sa.Integer(), nullable=True),
        sa.UniqueConstraint("guild_id", "user_id", name="uq_user_levels_guild_user"),
    )
    op.create_index("ix_user_levels_guild_level_xp", "user_levels", ["guild_id", "level", "xp"])

    op.create_table(
        "members",
        *_document_columns(),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("username", sa.String(128), nullable=False),
        sa.Column("user_avatar_url", sa.String(256), nullable=True),
        sa.Column("joined_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("guild_id", "user_id", name="uq_members_guild_user"),
    )
    op.create_index("ix_members_guild_username", "members", ["guild_id", "username"])

    op.create_table(
        "audit_logs",
        *_document_columns(),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("user", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("user_avatar_url", sa.String(256), nullable=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_audit_logs_guild_ts", "audit_logs", ["guild_id", "timestamp"])

    op.create_table(
        "command_logs",
        *_document_columns(),
        sa.Column("command", sa.String(64), nullable=False),
        sa.Column("user", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(32), nullable=False),
        sa.Column("user_avatar_url", sa.String(256), nullable=True),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_command_logs_guild_ts", "command_logs", ["guild_id", "timestamp"])

    op.create_table(
        "bot_status",
        sa.Column("id", sa.String(32), primary_key=True),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("avatar_url", sa.String(256), nullable=True),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Drop every collection table."""
    for index, table in [
        ("ix_command_logs_guild_ts", "command_logs"),
        ("ix_audit_logs_guild_ts", "audit_logs"),
        ("ix_members_guild_username", "members"),
        ("ix_user_levels_guild_level_xp", "user_levels"),
        ("ix_music_queue_guild", "music_queue"),
        ("ix_youtube_subscriptions_guild", "youtube_subscriptions"),
        ("ix_scheduled_messages_guild", "scheduled_messages"),
        ("ix_scheduled_messages_status_next_run", "scheduled_messages"),
        ("ix_giveaway_queue_guild", "giveaway_queue"),
        ("ix_giveaways_guild", "giveaways"),
        ("ix_giveaways_status_ends_at", "giveaways"),
        ("ix_reaction_role_queue_guild", "reaction_role_queue"),
        ("ix_reaction_roles_status", "reaction_roles"),
        ("ix_reaction_roles_guild_message", "reaction_roles"),
        ("ix_moderation_queue_guild", "moderation_queue"),
    ]:
        op.drop_index(index, table_name=table)

    for table in [
        "bot_status", "command_logs", "audit_logs", "members", "user_levels",
        "custom_commands", "music_queue", "youtube_subscriptions",
        "scheduled_messages", "giveaway_queue", "giveaways",
        "reaction_role_queue", "reaction_roles", "moderation_queue",
        "guild_metadata", "guild_settings", "servers",
    ]:
        op.drop_table(table)
