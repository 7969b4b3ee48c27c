"""
guildboard.engine.queue — Queue Intents (Tagged Union)
=======================================================

One frozen dataclass per hand-off family, each carrying only the fields
that family needs.  ``validate()`` runs before anything is written so a
malformed intent never leaves a half-created resource behind.

The ``family`` class attribute is the union tag::

    match intent:
        case GiveawayIntent():
            ...
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar

from guildboard.database.models import ModerationActionType, QueueFamily, RepeatInterval

_HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class IntentValidationError(ValueError):
    """The intent is missing a field or carries an invalid value."""


def _require(value: str | None, what: str) -> None:
    if not value or not str(value).strip():
        raise IntentValidationError(f"{what} is required")


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ModerationIntent:
    family: ClassVar[QueueFamily] = QueueFamily.MODERATION

    guild_id: str
    target_user_id: str
    target_username: str
    action_type: ModerationActionType
    initiator_id: str
    reason: str | None = None

    def validate(self) -> None:
        _require(self.guild_id, "Guild")
        _require(self.target_user_id, "Target user")
        _require(self.initiator_id, "Initiator")
        try:
            ModerationActionType(self.action_type)
        except ValueError:
            raise IntentValidationError(
                f"Unsupported moderation action: {self.action_type!r}"
            ) from None


@dataclass(frozen=True, slots=True)
class ReactionRoleBinding:
    emoji: str
    role_id: str

    def to_wire(self) -> dict:
        return {"emoji": self.emoji, "roleId": self.role_id}


@dataclass(frozen=True, slots=True)
class ReactionRoleIntent:
    family: ClassVar[QueueFamily] = QueueFamily.REACTION_ROLE

    guild_id: str
    channel_id: str
    embed_title: str
    roles: tuple[ReactionRoleBinding, ...]
    embed_description: str = ""
    embed_color: str = "#5865F2"

    def validate(self) -> None:
        _require(self.guild_id, "Guild")
        _require(self.channel_id, "Channel")
        _require(self.embed_title, "Embed title")
        if not self.roles:
            raise IntentValidationError("At least one emoji/role pair is required")
        emojis = [b.emoji for b in self.roles]
        if len(set(emojis)) != len(emojis):
            raise IntentValidationError("Each emoji may only be bound once")
        for binding in self.roles:
            _require(binding.emoji, "Emoji")
            _require(binding.role_id, "Role")
        if not _HEX_COLOR.match(self.embed_color):
            raise IntentValidationError(f"Invalid embed colour: {self.embed_color!r}")


@dataclass(frozen=True, slots=True)
class GiveawayIntent:
    family: ClassVar[QueueFamily] = QueueFamily.GIVEAWAY

    guild_id: str
    channel_id: str
    prize: str
    ends_at: datetime
    winner_count: int = 1
    required_role_id: str | None = None

    def validate(self) -> None:
        _require(self.guild_id, "Guild")
        _require(self.channel_id, "Channel")
        _require(self.prize, "Prize")
        if self.winner_count < 1:
            raise IntentValidationError("A giveaway needs at least one winner")
        if self.ends_at.tzinfo is None:
            raise IntentValidationError("End time must be timezone-aware")


@dataclass(frozen=True, slots=True)
class ScheduledMessageIntent:
    family: ClassVar[QueueFamily] = QueueFamily.SCHEDULED_MESSAGE

    guild_id: str
    channel_id: str
    content: str
    next_run: datetime
    repeat: RepeatInterval = RepeatInterval.NONE

    def validate(self) -> None:
        _require(self.guild_id, "Guild")
        _require(self.channel_id, "Channel")
        _require(self.content, "Message content")
        if self.next_run.tzinfo is None:
            raise IntentValidationError("Run time must be timezone-aware")
        try:
            RepeatInterval(self.repeat)
        except ValueError:
            raise IntentValidationError(f"Unsupported repeat: {self.repeat!r}") from None


@dataclass(frozen=True, slots=True)
class YoutubeSubscriptionIntent:
    family: ClassVar[QueueFamily] = QueueFamily.YOUTUBE

    guild_id: str
    youtube_channel_id: str
    discord_channel_id: str
    youtube_channel_name: str = ""
    discord_channel_name: str = ""
    mention_role_id: str | None = None
    custom_message: str | None = None
    live_message: str | None = None

    def validate(self) -> None:
        _require(self.guild_id, "Guild")
        _require(self.youtube_channel_id, "YouTube channel")
        _require(self.discord_channel_id, "Discord channel")


@dataclass(frozen=True, slots=True)
class SongIntent:
    family: ClassVar[QueueFamily] = QueueFamily.MUSIC

    guild_id: str
    song_url: str
    requester_id: str

    def validate(self) -> None:
        _require(self.guild_id, "Guild")
        _require(self.song_url, "Song URL")
        _require(self.requester_id, "Requester")


# ---------------------------------------------------------------------------
# Companion queue items (what the bot reads off the queue collections)
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ReactionRoleQueued:
    family: ClassVar[QueueFamily] = QueueFamily.REACTION_ROLE

    id: str
    guild_id: str
    reaction_role_id: str
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class GiveawayQueued:
    family: ClassVar[QueueFamily] = QueueFamily.GIVEAWAY

    id: str
    guild_id: str
    giveaway_id: str
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ModerationQueued:
    family: ClassVar[QueueFamily] = QueueFamily.MODERATION

    id: str
    intent: ModerationIntent
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class SongQueued:
    family: ClassVar[QueueFamily] = QueueFamily.MUSIC

    id: str
    intent: SongIntent
    created_at: datetime | None = None


Intent = (
    ModerationIntent
    | ReactionRoleIntent
    | GiveawayIntent
    | ScheduledMessageIntent
    | YoutubeSubscriptionIntent
    | SongIntent
)

QueuedItem = ReactionRoleQueued | GiveawayQueued | ModerationQueued | SongQueued

# Families whose queue lives in a separate collection from the resource.
QUEUE_FAMILIES: frozenset[QueueFamily] = frozenset({
    QueueFamily.MODERATION,
    QueueFamily.REACTION_ROLE,
    QueueFamily.GIVEAWAY,
    QueueFamily.MUSIC,
})
