"""
guildboard.api.routes.queues — Hand-off endpoints
==================================================

Every create here writes documents for the bot and returns immediately
with the resource in its initial status; nothing waits for Discord.
Creates are wrapped in the submission guard so a double submit returns
409 instead of a second resource.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AwareDatetime, BaseModel, Field

from guildboard.api.deps import get_current_admin, get_engine
from guildboard.api.submit_guard import guard_submission
from guildboard.database.models import (
    ModerationActionType,
    QueueFamily,
    RepeatInterval,
    as_utc,
)
from guildboard.engine.lifecycle import InvalidTransitionError
from guildboard.engine.queue import (
    GiveawayIntent,
    IntentValidationError,
    ModerationIntent,
    ReactionRoleBinding,
    ReactionRoleIntent,
    ScheduledMessageIntent,
    SongIntent,
    YoutubeSubscriptionIntent,
)
from guildboard.services import moderation_service, queue_service

router = APIRouter(prefix="/admin", tags=["queues"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class RoleBindingIn(BaseModel):
    emoji: str
    role_id: str


class ReactionRoleCreate(BaseModel):
    channel_id: str
    embed_title: str
    embed_description: str = ""
    embed_color: str = "#5865F2"
    roles: list[RoleBindingIn] = Field(default_factory=list)


class GiveawayCreate(BaseModel):
    channel_id: str
    prize: str
    ends_at: AwareDatetime
    winner_count: int = 1
    required_role_id: str | None = None


class ScheduledMessageCreate(BaseModel):
    channel_id: str
    content: str
    next_run: AwareDatetime
    repeat: RepeatInterval = RepeatInterval.NONE


class ScheduledMessageUpdate(BaseModel):
    channel_id: str | None = None
    content: str | None = None
    next_run: AwareDatetime | None = None
    repeat: RepeatInterval | None = None


class YoutubeCreate(BaseModel):
    youtube_channel_id: str
    discord_channel_id: str
    youtube_channel_name: str = ""
    discord_channel_name: str = ""
    mention_role_id: str | None = None
    custom_message: str | None = None
    live_message: str | None = None


class YoutubeUpdate(BaseModel):
    youtube_channel_name: str | None = None
    discord_channel_id: str | None = None
    discord_channel_name: str | None = None
    mention_role_id: str | None = None
    custom_message: str | None = None
    live_message: str | None = None


class ModerationCreate(BaseModel):
    target_user_id: str
    target_username: str = ""
    action_type: ModerationActionType
    reason: str | None = None


class SongCreate(BaseModel):
    song_url: str


# ---------------------------------------------------------------------------
# Serializers
# ---------------------------------------------------------------------------
def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


def _json_list(raw: str | None) -> list:
    try:
        value = json.loads(raw or "[]")
    except json.JSONDecodeError:
        return []
    return value if isinstance(value, list) else []


def _reaction_role_out(row) -> dict:
    return {
        "id": row.id,
        "guildId": row.guild_id,
        "channelId": row.channel_id,
        "messageId": row.message_id,
        "embedTitle": row.embed_title,
        "embedDescription": row.embed_description,
        "embedColor": row.embed_color,
        "roles": _json_list(row.roles),
        "status": row.status,
        "createdAt": _iso(row.created_at),
    }


def _giveaway_out(row) -> dict:
    return {
        "id": row.id,
        "guildId": row.guild_id,
        "channelId": row.channel_id,
        "messageId": row.message_id,
        "prize": row.prize,
        "winnerCount": row.winner_count,
        "endsAt": _iso(row.ends_at),
        "status": row.status,
        "requiredRoleId": row.required_role_id,
        "winners": _json_list(row.winners),
    }


def _scheduled_out(row) -> dict:
    return {
        "id": row.id,
        "guildId": row.guild_id,
        "channelId": row.channel_id,
        "content": row.content,
        "repeat": row.repeat,
        "status": row.status,
        "lastRun": _iso(row.last_run),
        "nextRun": _iso(row.next_run),
    }


def _youtube_out(row) -> dict:
    return {
        "id": row.id,
        "guildId": row.guild_id,
        "youtubeChannelId": row.youtube_channel_id,
        "youtubeChannelName": row.youtube_channel_name,
        "discordChannelId": row.discord_channel_id,
        "discordChannelName": row.discord_channel_name,
        "mentionRoleId": row.mention_role_id,
        "customMessage": row.custom_message,
        "liveMessage": row.live_message,
        "status": row.status,
        "lastVideoTimestamp": _iso(row.last_video_timestamp),
        "lastAnnouncedVideoId": row.last_announced_video_id,
        "lastAnnouncedVideoTitle": row.last_announced_video_title,
    }


def _song_out(row) -> dict:
    return {
        "id": row.id,
        "guildId": row.guild_id,
        "songUrl": row.song_url,
        "requesterId": row.requester_id,
        "createdAt": _iso(row.created_at),
    }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _owned(engine, family: QueueFamily, guild_id: str, resource_id: str):
    """Fetch a resource and 404 unless it belongs to *guild_id*."""
    row = queue_service.get_resource(engine, family, resource_id)
    if row is None or row.guild_id != guild_id:
        raise HTTPException(404, "Not found")
    return row


def _rearm(engine, family: QueueFamily, guild_id: str, resource_id: str):
    _owned(engine, family, guild_id, resource_id)
    try:
        row = queue_service.re_arm(engine, family, resource_id)
    except InvalidTransitionError as exc:
        raise HTTPException(409, str(exc))
    if row is None:
        raise HTTPException(404, "Not found")
    return row


def _delete(engine, family: QueueFamily, guild_id: str, resource_id: str) -> dict:
    _owned(engine, family, guild_id, resource_id)
    queue_service.delete_resource(engine, family, resource_id)
    return {"deleted": True}


# ---------------------------------------------------------------------------
# Reaction roles
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/reaction-roles")
def list_reaction_roles(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return [_reaction_role_out(r) for r in queue_service.list_reaction_roles(engine, guild_id)]


@router.post("/guilds/{guild_id}/reaction-roles", status_code=201)
def create_reaction_role(
    guild_id: str,
    body: ReactionRoleCreate,
    admin: dict = Depends(guard_submission(QueueFamily.REACTION_ROLE)),
    engine=Depends(get_engine),
):
    intent = ReactionRoleIntent(
        guild_id=guild_id,
        channel_id=body.channel_id,
        embed_title=body.embed_title,
        embed_description=body.embed_description,
        embed_color=body.embed_color,
        roles=tuple(ReactionRoleBinding(emoji=b.emoji, role_id=b.role_id) for b in body.roles),
    )
    try:
        row = queue_service.enqueue_reaction_role(engine, intent)
    except IntentValidationError as exc:
        raise HTTPException(400, str(exc))
    return _reaction_role_out(row)


@router.post("/guilds/{guild_id}/reaction-roles/{resource_id}/rearm")
def rearm_reaction_role(
    guild_id: str,
    resource_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return _reaction_role_out(_rearm(engine, QueueFamily.REACTION_ROLE, guild_id, resource_id))


@router.delete("/guilds/{guild_id}/reaction-roles/{resource_id}")
def delete_reaction_role(
    guild_id: str,
    resource_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return _delete(engine, QueueFamily.REACTION_ROLE, guild_id, resource_id)


# ---------------------------------------------------------------------------
# Giveaways
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/giveaways")
def list_giveaways(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return [_giveaway_out(g) for g in queue_service.list_giveaways(engine, guild_id)]


@router.post("/guilds/{guild_id}/giveaways", status_code=201)
def create_giveaway(
    guild_id: str,
    body: GiveawayCreate,
    admin: dict = Depends(guard_submission(QueueFamily.GIVEAWAY)),
    engine=Depends(get_engine),
):
    intent = GiveawayIntent(
        guild_id=guild_id,
        channel_id=body.channel_id,
        prize=body.prize,
        ends_at=body.ends_at,
        winner_count=body.winner_count,
        required_role_id=body.required_role_id or None,
    )
    try:
        row = queue_service.enqueue_giveaway(engine, intent)
    except IntentValidationError as exc:
        raise HTTPException(400, str(exc))
    return _giveaway_out(row)


@router.post("/guilds/{guild_id}/giveaways/{resource_id}/reroll")
def reroll_giveaway(
    guild_id: str,
    resource_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return _giveaway_out(_rearm(engine, QueueFamily.GIVEAWAY, guild_id, resource_id))


@router.delete("/guilds/{guild_id}/giveaways/{resource_id}")
def delete_giveaway(
    guild_id: str,
    resource_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return _delete(engine, QueueFamily.GIVEAWAY, guild_id, resource_id)


# ---------------------------------------------------------------------------
# Scheduled messages
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/scheduled-messages")
def list_scheduled_messages(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return [_scheduled_out(m) for m in queue_service.list_scheduled_messages(engine, guild_id)]


@router.post("/guilds/{guild_id}/scheduled-messages", status_code=201)
def create_scheduled_message(
    guild_id: str,
    body: ScheduledMessageCreate,
    admin: dict = Depends(guard_submission(QueueFamily.SCHEDULED_MESSAGE)),
    engine=Depends(get_engine),
):
    intent = ScheduledMessageIntent(
        guild_id=guild_id,
        channel_id=body.channel_id,
        content=body.content,
        next_run=body.next_run,
        repeat=body.repeat,
    )
    try:
        row = queue_service.create_scheduled_message(engine, intent)
    except IntentValidationError as exc:
        raise HTTPException(400, str(exc))
    return _scheduled_out(row)


@router.patch("/guilds/{guild_id}/scheduled-messages/{resource_id}")
def update_scheduled_message(
    guild_id: str,
    resource_id: str,
    body: ScheduledMessageUpdate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    _owned(engine, QueueFamily.SCHEDULED_MESSAGE, guild_id, resource_id)
    try:
        row = queue_service.update_scheduled_message(
            engine, resource_id, **body.model_dump(exclude_none=True),
        )
    except IntentValidationError as exc:
        raise HTTPException(400, str(exc))
    if row is None:
        raise HTTPException(404, "Not found")
    return _scheduled_out(row)


@router.delete("/guilds/{guild_id}/scheduled-messages/{resource_id}")
def delete_scheduled_message(
    guild_id: str,
    resource_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return _delete(engine, QueueFamily.SCHEDULED_MESSAGE, guild_id, resource_id)


# ---------------------------------------------------------------------------
# YouTube subscriptions
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/youtube")
def list_youtube_subscriptions(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return [_youtube_out(s) for s in queue_service.list_youtube_subscriptions(engine, guild_id)]


@router.post("/guilds/{guild_id}/youtube", status_code=201)
def create_youtube_subscription(
    guild_id: str,
    body: YoutubeCreate,
    admin: dict = Depends(guard_submission(QueueFamily.YOUTUBE)),
    engine=Depends(get_engine),
):
    intent = YoutubeSubscriptionIntent(guild_id=guild_id, **body.model_dump())
    try:
        row = queue_service.create_youtube_subscription(engine, intent)
    except IntentValidationError as exc:
        raise HTTPException(400, str(exc))
    return _youtube_out(row)


@router.patch("/guilds/{guild_id}/youtube/{resource_id}")
def update_youtube_subscription(
    guild_id: str,
    resource_id: str,
    body: YoutubeUpdate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    _owned(engine, QueueFamily.YOUTUBE, guild_id, resource_id)
    try:
        row = queue_service.update_youtube_subscription(
            engine, resource_id, **body.model_dump(exclude_unset=True),
        )
    except IntentValidationError as exc:
        raise HTTPException(400, str(exc))
    if row is None:
        raise HTTPException(404, "Not found")
    return _youtube_out(row)


@router.delete("/guilds/{guild_id}/youtube/{resource_id}")
def delete_youtube_subscription(
    guild_id: str,
    resource_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return _delete(engine, QueueFamily.YOUTUBE, guild_id, resource_id)


# ---------------------------------------------------------------------------
# Moderation
# ---------------------------------------------------------------------------
@router.post("/guilds/{guild_id}/moderation", status_code=202)
def queue_moderation_action(
    guild_id: str,
    body: ModerationCreate,
    admin: dict = Depends(guard_submission(QueueFamily.MODERATION)),
    engine=Depends(get_engine),
):
    """Queue a kick or ban.  The outcome shows up later in the audit log."""
    intent = ModerationIntent(
        guild_id=guild_id,
        target_user_id=body.target_user_id,
        target_username=body.target_username,
        action_type=body.action_type,
        initiator_id=str(admin["sub"]),
        reason=body.reason,
    )
    try:
        item = moderation_service.queue_moderation_action(engine, intent)
    except IntentValidationError as exc:
        raise HTTPException(400, str(exc))
    return {
        "id": item.id,
        "actionType": item.action_type,
        "targetUserId": item.target_user_id,
        "queuedAt": _iso(item.created_at),
    }


# ---------------------------------------------------------------------------
# Music
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/music")
def list_music_queue(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return [_song_out(s) for s in queue_service.list_music_queue(engine, guild_id)]


@router.post("/guilds/{guild_id}/music", status_code=201)
def enqueue_song(
    guild_id: str,
    body: SongCreate,
    admin: dict = Depends(guard_submission(QueueFamily.MUSIC)),
    engine=Depends(get_engine),
):
    intent = SongIntent(guild_id=guild_id, song_url=body.song_url, requester_id=str(admin["sub"]))
    try:
        row = queue_service.enqueue_song(engine, intent)
    except IntentValidationError as exc:
        raise HTTPException(400, str(exc))
    return _song_out(row)
