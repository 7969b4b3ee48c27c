"""
guildboard.database.models — SQLAlchemy 2.0 Data Models
========================================================

One table per document collection shared with the bot process.  Every
document carries an opaque string id and a ``guild_id`` partition key;
there are no foreign keys — a ``reaction_role_id`` or ``role_id`` is
advisory and revalidated by the bot when it acts.

Tables:
- servers              — Guilds the bot is in (bot-owned)
- server_stats         — Dashboard counters and chart blobs (bot-owned)
- guild_settings       — One settings document per guild, five JSON sections
- guild_metadata       — Channel/role snapshot (bot-owned, overwritten wholesale)
- moderation_queue     — Kick/ban intents (dashboard creates, bot deletes)
- reaction_roles       — Reaction-role messages (status-bearing)
- reaction_role_queue  — Companion queue items for new reaction roles
- giveaways            — Giveaways (status-bearing)
- giveaway_queue       — Companion queue items for new giveaways
- scheduled_messages   — Scheduled posts, polled by (status, next_run)
- youtube_subscriptions — Upload alerts + the bot's poll cursor
- music_queue          — Song requests
- custom_commands      — Guild-defined text commands
- user_levels          — Per-guild XP / level (bot-owned)
- members              — Member directory (bot-owned)
- audit_logs           — Append-only moderation/event log (bot-owned)
- command_logs         — Append-only command usage log (bot-owned)
- bot_status           — Bot identity + heartbeat (single row)
"""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Guildboard ORM models."""


def new_document_id() -> str:
    """Opaque, collision-free document id (32 hex chars)."""
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class ResourceStatus(enum.StrEnum):
    """Lifecycle status of a main resource.  The bot owns most transitions."""
    PENDING = "pending"
    RUNNING = "running"
    SENT = "sent"
    ENDED = "ended"
    ERROR = "error"


class QueueFamily(enum.StrEnum):
    """Hand-off families the dashboard can originate intents for."""
    MODERATION = "moderation"
    REACTION_ROLE = "reaction_role"
    GIVEAWAY = "giveaway"
    SCHEDULED_MESSAGE = "scheduled_message"
    YOUTUBE = "youtube"
    MUSIC = "music"


class ModerationActionType(enum.StrEnum):
    KICK = "kick"
    BAN = "ban"


class RepeatInterval(enum.StrEnum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class LogType(enum.StrEnum):
    """Audit-log entry types written by the bot."""
    MESSAGE_DELETED = "MESSAGE_DELETED"
    USER_JOINED = "USER_JOINED"
    USER_LEFT = "USER_LEFT"
    USER_BANNED = "USER_BANNED"
    USER_KICKED = "USER_KICKED"
    USER_UNBANNED = "USER_UNBANNED"
    AI_MODERATION = "AI_MODERATION"
    AUTO_MOD_ACTION = "AUTO_MOD_ACTION"
    GIVEAWAY_ENDED = "GIVEAWAY_ENDED"


# ---------------------------------------------------------------------------
# Common document columns
# ---------------------------------------------------------------------------
class DocumentMixin:
    """Opaque id + tenant key + timestamps, shared by every collection."""

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_document_id)
    guild_id: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


# ---------------------------------------------------------------------------
# Servers — guilds the bot has joined
# ---------------------------------------------------------------------------
class Server(DocumentMixin, Base):
    __tablename__ = "servers"

    name: Mapped[str] = mapped_column(String(128), nullable=False)
    icon_url: Mapped[str | None] = mapped_column(String(256), default=None)

    __table_args__ = (
        UniqueConstraint("guild_id", name="uq_servers_guild"),
    )

    def __repr__(self) -> str:
        return f"<Server guild={self.guild_id} name={self.name!r}>"


# ---------------------------------------------------------------------------
# ServerStats — per-guild dashboard counters maintained by the bot
# ---------------------------------------------------------------------------
class ServerStats(DocumentMixin, Base):
    """Headline counters plus two JSON list blobs for the dashboard charts.

    ``messages_weekly`` holds ``[{"date", "count"}]`` and
    ``role_distribution`` holds ``[{"name", "count", "color"}]``.
    """

    __tablename__ = "server_stats"

    member_count: Mapped[int] = mapped_column(Integer, default=0)
    online_count: Mapped[int] = mapped_column(Integer, default=0)
    messages_today: Mapped[int] = mapped_column(Integer, default=0)
    command_count: Mapped[int] = mapped_column(Integer, default=0)
    total_warnings: Mapped[int] = mapped_column(Integer, default=0)
    messages_weekly: Mapped[str] = mapped_column(Text, default="[]")
    role_distribution: Mapped[str] = mapped_column(Text, default="[]")

    __table_args__ = (
        UniqueConstraint("guild_id", name="uq_server_stats_guild"),
    )


# ---------------------------------------------------------------------------
# SettingsDocument — five independently-defaulted JSON sections
# ---------------------------------------------------------------------------
class SettingsDocument(DocumentMixin, Base):
    """Per-guild settings aggregate.

    Each ``*_settings`` column holds one section serialized as a JSON
    object string.  Typed access and defaulting live in
    :mod:`guildboard.engine.sections`; this table never stores a parsed
    value.
    """
    __tablename__ = "guild_settings"

    schema_generation: Mapped[int] = mapped_column(Integer, default=2)
    welcome_settings: Mapped[str | None] = mapped_column(Text, default=None)
    goodbye_settings: Mapped[str | None] = mapped_column(Text, default=None)
    auto_role_settings: Mapped[str | None] = mapped_column(Text, default=None)
    leveling_settings: Mapped[str | None] = mapped_column(Text, default=None)
    auto_mod_settings: Mapped[str | None] = mapped_column(Text, default=None)

    __table_args__ = (
        UniqueConstraint("guild_id", name="uq_guild_settings_guild"),
    )

    def __repr__(self) -> str:
        return f"<SettingsDocument guild={self.guild_id} gen={self.schema_generation}>"


# ---------------------------------------------------------------------------
# GuildMetadata — channel/role snapshot maintained by the bot
# ---------------------------------------------------------------------------
class GuildMetadata(DocumentMixin, Base):
    __tablename__ = "guild_metadata"

    data: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    __table_args__ = (
        UniqueConstraint("guild_id", name="uq_guild_metadata_guild"),
    )

    def __repr__(self) -> str:
        return f"<GuildMetadata guild={self.guild_id}>"


# ---------------------------------------------------------------------------
# Moderation queue — write-once kick/ban intents
# ---------------------------------------------------------------------------
class ModerationQueueItem(DocumentMixin, Base):
    __tablename__ = "moderation_queue"

    target_user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    target_username: Mapped[str] = mapped_column(String(128), nullable=False)
    action_type: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(512), default=None)
    initiator_id: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        Index("ix_moderation_queue_guild", "guild_id"),
    )

    def __repr__(self) -> str:
        return f"<ModerationQueueItem {self.action_type} target={self.target_user_id}>"


# ---------------------------------------------------------------------------
# Reaction roles + their queue
# ---------------------------------------------------------------------------
class ReactionRole(DocumentMixin, Base):
    __tablename__ = "reaction_roles"

    channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    message_id: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    embed_title: Mapped[str] = mapped_column(String(256), nullable=False)
    embed_description: Mapped[str] = mapped_column(Text, default="")
    embed_color: Mapped[str] = mapped_column(String(10), default="#5865F2")
    roles: Mapped[str] = mapped_column(Text, default="[]")  # JSON [{emoji, roleId}]
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ResourceStatus.PENDING.value
    )

    __table_args__ = (
        Index("ix_reaction_roles_guild_message", "guild_id", "message_id"),
        Index("ix_reaction_roles_status", "status", "updated_at"),
    )

    def __repr__(self) -> str:
        return f"<ReactionRole id={self.id} status={self.status} msg={self.message_id}>"


class ReactionRoleQueueItem(DocumentMixin, Base):
    __tablename__ = "reaction_role_queue"

    reaction_role_id: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        Index("ix_reaction_role_queue_guild", "guild_id"),
    )


# ---------------------------------------------------------------------------
# Giveaways + their queue
# ---------------------------------------------------------------------------
class Giveaway(DocumentMixin, Base):
    __tablename__ = "giveaways"

    channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    message_id: Mapped[str] = mapped_column(String(32), nullable=False, default="pending")
    prize: Mapped[str] = mapped_column(String(256), nullable=False)
    winner_count: Mapped[int] = mapped_column(Integer, default=1)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ResourceStatus.RUNNING.value
    )
    required_role_id: Mapped[str | None] = mapped_column(String(32), default=None)
    winners: Mapped[str] = mapped_column(Text, default="[]")  # JSON [userId]

    __table_args__ = (
        Index("ix_giveaways_status_ends_at", "status", "ends_at"),
        Index("ix_giveaways_guild", "guild_id"),
    )

    def __repr__(self) -> str:
        return f"<Giveaway id={self.id} prize={self.prize!r} status={self.status}>"


class GiveawayQueueItem(DocumentMixin, Base):
    __tablename__ = "giveaway_queue"

    giveaway_id: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        Index("ix_giveaway_queue_guild", "guild_id"),
    )


# ---------------------------------------------------------------------------
# Scheduled messages — the document is its own queue entry
# ---------------------------------------------------------------------------
class ScheduledMessage(DocumentMixin, Base):
    __tablename__ = "scheduled_messages"

    channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    repeat: Mapped[str] = mapped_column(String(16), default=RepeatInterval.NONE.value)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ResourceStatus.PENDING.value
    )
    last_run: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    next_run: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Day of month monthly repeats return to after a clamped run.
    anchor_day: Mapped[int | None] = mapped_column(Integer, default=None)

    __table_args__ = (
        Index("ix_scheduled_messages_status_next_run", "status", "next_run"),
        Index("ix_scheduled_messages_guild", "guild_id"),
    )

    def __repr__(self) -> str:
        return f"<ScheduledMessage id={self.id} status={self.status} next={self.next_run}>"


# ---------------------------------------------------------------------------
# YouTube subscriptions — config fields + the bot's poll cursor
# ---------------------------------------------------------------------------
class YoutubeSubscription(DocumentMixin, Base):
    __tablename__ = "youtube_subscriptions"

    youtube_channel_id: Mapped[str] = mapped_column(String(64), nullable=False)
    youtube_channel_name: Mapped[str] = mapped_column(String(128), default="")
    discord_channel_id: Mapped[str] = mapped_column(String(32), nullable=False)
    discord_channel_name: Mapped[str] = mapped_column(String(128), default="")
    mention_role_id: Mapped[str | None] = mapped_column(String(32), default=None)
    custom_message: Mapped[str | None] = mapped_column(Text, default=None)
    live_message: Mapped[str | None] = mapped_column(Text, default=None)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=ResourceStatus.RUNNING.value
    )

    # Poll cursor — written by the bot only
    last_video_timestamp: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    announced_video_ids: Mapped[str] = mapped_column(Text, default="[]")
    last_announced_video_id: Mapped[str | None] = mapped_column(String(64), default=None)
    last_announced_video_title: Mapped[str | None] = mapped_column(String(256), default=None)

    __table_args__ = (
        Index("ix_youtube_subscriptions_guild", "guild_id"),
    )

    def __repr__(self) -> str:
        return f"<YoutubeSubscription id={self.id} yt={self.youtube_channel_id}>"


# ---------------------------------------------------------------------------
# Music queue
# ---------------------------------------------------------------------------
class MusicQueueItem(DocumentMixin, Base):
    __tablename__ = "music_queue"

    song_url: Mapped[str] = mapped_column(String(512), nullable=False)
    requester_id: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        Index("ix_music_queue_guild", "guild_id"),
    )


# ---------------------------------------------------------------------------
# Custom commands
# ---------------------------------------------------------------------------
class CustomCommand(DocumentMixin, Base):
    __tablename__ = "custom_commands"

    command: Mapped[str] = mapped_column(String(64), nullable=False)
    response: Mapped[str] = mapped_column(Text, default="")
    is_embed: Mapped[bool] = mapped_column(Boolean, default=False)
    embed_content: Mapped[str] = mapped_column(Text, default="{}")

    __table_args__ = (
        UniqueConstraint("guild_id", "command", name="uq_custom_commands_guild_command"),
    )

    def __repr__(self) -> str:
        return f"<CustomCommand guild={self.guild_id} command={self.command!r}>"


# ---------------------------------------------------------------------------
# UserLevel — per-guild XP / level (bot-owned)
# ---------------------------------------------------------------------------
class UserLevel(DocumentMixin, Base):
    __tablename__ = "user_levels"

    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str] = mapped_column(String(128), nullable=False)
    user_avatar_url: Mapped[str | None] = mapped_column(String(256), default=None)
    level: Mapped[int] = mapped_column(Integer, default=0)
    xp: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        UniqueConstraint("guild_id", "user_id", name="uq_user_levels_guild_user"),
        Index("ix_user_levels_guild_level_xp", "guild_id", "level", "xp"),
    )

    def __repr__(self) -> str:
        return f"<UserLevel user={self.user_id} lvl={self.level} xp={self.xp}>"


# ---------------------------------------------------------------------------
# Members — directory synced by the bot
# ---------------------------------------------------------------------------
class GuildMember(DocumentMixin, Base):
    __tablename__ = "members"

    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    username: Mapped[str] = mapped_column(String(128), nullable=False)
    user_avatar_url: Mapped[str | None] = mapped_column(String(256), default=None)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("guild_id", "user_id", name="uq_members_guild_user"),
        Index("ix_members_guild_username", "guild_id", "username"),
    )


# ---------------------------------------------------------------------------
# Append-only logs (bot-owned)
# ---------------------------------------------------------------------------
class AuditLogEntry(DocumentMixin, Base):
    __tablename__ = "audit_logs"

    type: Mapped[str] = mapped_column(String(64), nullable=False)
    user: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_avatar_url: Mapped[str | None] = mapped_column(String(256), default=None)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_audit_logs_guild_ts", "guild_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AuditLogEntry {self.type} user={self.user_id}>"


class CommandLogEntry(DocumentMixin, Base):
    __tablename__ = "command_logs"

    command: Mapped[str] = mapped_column(String(64), nullable=False)
    user: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(32), nullable=False)
    user_avatar_url: Mapped[str | None] = mapped_column(String(256), default=None)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        Index("ix_command_logs_guild_ts", "guild_id", "timestamp"),
    )


# ---------------------------------------------------------------------------
# BotStatus — identity + heartbeat (single row, not partitioned)
# ---------------------------------------------------------------------------
class BotStatus(Base):
    __tablename__ = "bot_status"

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(String(256), default=None)
    last_seen: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)

    def __repr__(self) -> str:
        return f"<BotStatus name={self.name!r} last_seen={self.last_seen}>"
