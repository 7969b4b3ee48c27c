"""
guildboard.services.queue_service — Producer Side of the Hand-off
==================================================================

The dashboard cannot talk to Discord.  Every side effect is written as
a document that the bot picks up on its next poll:

* **Reaction roles / giveaways** — a main resource (``message_id =
  "pending"``) followed by a companion queue item.  The two writes are
  not atomic.  If the queue write fails the resource is still returned;
  the bot's status poll (:func:`find_actionable`) finds it anyway.
* **Scheduled messages / YouTube subscriptions** — the resource *is*
  the queue entry, polled by status and time.
* **Music** — a single fire-and-forget queue document.

The dashboard never edits or deletes a queue item; only the bot
retires them (see :mod:`guildboard.services.consumer_service`).
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from guildboard.constants import PENDING_MESSAGE_ID
from guildboard.database.models import (
    Giveaway,
    GiveawayQueueItem,
    ModerationQueueItem,
    MusicQueueItem,
    QueueFamily,
    ReactionRole,
    ReactionRoleQueueItem,
    RepeatInterval,
    ResourceStatus,
    ScheduledMessage,
    YoutubeSubscription,
)
from guildboard.database.store import (
    create_document,
    delete_document,
    get_document,
    list_documents,
    update_document,
)
from guildboard.engine.lifecycle import (
    TERMINAL,
    InvalidTransitionError,
    ResourceEvent,
    initial_status,
    transition,
)
from guildboard.engine.queue import (
    GiveawayIntent,
    IntentValidationError,
    ReactionRoleIntent,
    ScheduledMessageIntent,
    SongIntent,
    YoutubeSubscriptionIntent,
)

logger = logging.getLogger(__name__)

# Family -> main resource table (status-bearing families only)
RESOURCE_MODELS: dict[QueueFamily, type] = {
    QueueFamily.REACTION_ROLE: ReactionRole,
    QueueFamily.GIVEAWAY: Giveaway,
    QueueFamily.SCHEDULED_MESSAGE: ScheduledMessage,
    QueueFamily.YOUTUBE: YoutubeSubscription,
}

# Family -> queue collection (families with a separate queue)
QUEUE_MODELS: dict[QueueFamily, type] = {
    QueueFamily.MODERATION: ModerationQueueItem,
    QueueFamily.REACTION_ROLE: ReactionRoleQueueItem,
    QueueFamily.GIVEAWAY: GiveawayQueueItem,
    QueueFamily.MUSIC: MusicQueueItem,
}

_NON_TERMINAL = [s.value for s in ResourceStatus if s not in TERMINAL]

# Dashboard-editable YouTube fields.  The poll cursor is bot-owned.
YOUTUBE_CONFIG_FIELDS: frozenset[str] = frozenset({
    "youtube_channel_name",
    "discord_channel_id",
    "discord_channel_name",
    "mention_role_id",
    "custom_message",
    "live_message",
})

SCHEDULED_EDITABLE_FIELDS: frozenset[str] = frozenset({
    "channel_id", "content", "next_run", "repeat",
})


def resource_model(family: QueueFamily) -> type:
    try:
        return RESOURCE_MODELS[QueueFamily(family)]
    except KeyError:
        raise InvalidTransitionError(f"{family} has no status-bearing resource") from None


# ---------------------------------------------------------------------------
# Reaction roles
# ---------------------------------------------------------------------------
def enqueue_reaction_role(engine, intent: ReactionRoleIntent) -> ReactionRole:
    """Create a reaction-role message for the bot to post.

    Raises
    ------
    IntentValidationError
        Before any write, if the intent is malformed.
    """
    intent.validate()
    role = create_document(engine, ReactionRole(
        guild_id=intent.guild_id,
        channel_id=intent.channel_id,
        message_id=PENDING_MESSAGE_ID,
        embed_title=intent.embed_title,
        embed_description=intent.embed_description,
        embed_color=intent.embed_color,
        roles=json.dumps([b.to_wire() for b in intent.roles]),
        status=initial_status(QueueFamily.REACTION_ROLE).value,
    ))
    _enqueue(engine, ReactionRoleQueueItem(
        guild_id=intent.guild_id, reaction_role_id=role.id,
    ), resource_id=role.id)
    logger.info("Reaction role %s queued for guild %s", role.id, intent.guild_id)
    return role


# ---------------------------------------------------------------------------
# Giveaways
# ---------------------------------------------------------------------------
def enqueue_giveaway(engine, intent: GiveawayIntent) -> Giveaway:
    intent.validate()
    giveaway = create_document(engine, Giveaway(
        guild_id=intent.guild_id,
        channel_id=intent.channel_id,
        message_id=PENDING_MESSAGE_ID,
        prize=intent.prize,
        winner_count=intent.winner_count,
        ends_at=intent.ends_at,
        required_role_id=intent.required_role_id,
        status=initial_status(QueueFamily.GIVEAWAY).value,
    ))
    _enqueue(engine, GiveawayQueueItem(
        guild_id=intent.guild_id, giveaway_id=giveaway.id,
    ), resource_id=giveaway.id)
    logger.info("Giveaway %s queued for guild %s", giveaway.id, intent.guild_id)
    return giveaway


def reroll_giveaway(engine, giveaway_id: str) -> Giveaway | None:
    """Re-arm an ended giveaway so the bot draws new winners."""
    return re_arm(engine, QueueFamily.GIVEAWAY, giveaway_id)


def _enqueue(engine, row, *, resource_id: str) -> None:
    try:
        create_document(engine, row)
    except SQLAlchemyError:
        logger.warning(
            "Queue item for %s %s not written; the status poll will pick it up",
            row.__tablename__, resource_id,
            extra={"guild_id": row.guild_id, "collection": row.__tablename__,
                   "operation": "enqueue"},
        )


# ---------------------------------------------------------------------------
# Scheduled messages
# ---------------------------------------------------------------------------
def create_scheduled_message(engine, intent: ScheduledMessageIntent) -> ScheduledMessage:
    intent.validate()
    message = create_document(engine, ScheduledMessage(
        guild_id=intent.guild_id,
        channel_id=intent.channel_id,
        content=intent.content,
        repeat=str(intent.repeat),
        next_run=intent.next_run,
        anchor_day=intent.next_run.astimezone(UTC).day,
        status=initial_status(QueueFamily.SCHEDULED_MESSAGE).value,
    ))
    logger.info("Scheduled message %s for guild %s at %s",
                message.id, intent.guild_id, intent.next_run.isoformat())
    return message


def update_scheduled_message(engine, message_id: str, **changes) -> ScheduledMessage | None:
    """Edit a scheduled message.

    Moving ``next_run`` re-arms the message: a sent or failed one goes
    back to ``pending`` so the bot picks it up again.
    """
    unknown = set(changes) - SCHEDULED_EDITABLE_FIELDS
    if unknown:
        raise IntentValidationError(f"Not editable: {', '.join(sorted(unknown))}")
    if "content" in changes and not (changes["content"] or "").strip():
        raise IntentValidationError("Message content is required")
    next_run = changes.get("next_run")
    if next_run is not None and next_run.tzinfo is None:
        raise IntentValidationError("Run time must be timezone-aware")
    if "repeat" in changes:
        try:
            changes["repeat"] = RepeatInterval(changes["repeat"]).value
        except ValueError:
            raise IntentValidationError(f"Unsupported repeat: {changes['repeat']!r}") from None

    if next_run is not None:
        current = get_document(engine, ScheduledMessage, message_id)
        if current is None:
            return None
        changes["anchor_day"] = next_run.astimezone(UTC).day
        changes["status"] = transition(
            QueueFamily.SCHEDULED_MESSAGE, current.status, ResourceEvent.REARM
        ).value
    return update_document(engine, ScheduledMessage, message_id, **changes)


# ---------------------------------------------------------------------------
# YouTube subscriptions
# ---------------------------------------------------------------------------
def create_youtube_subscription(engine, intent: YoutubeSubscriptionIntent) -> YoutubeSubscription:
    intent.validate()
    sub = create_document(engine, YoutubeSubscription(
        guild_id=intent.guild_id,
        youtube_channel_id=intent.youtube_channel_id,
        youtube_channel_name=intent.youtube_channel_name,
        discord_channel_id=intent.discord_channel_id,
        discord_channel_name=intent.discord_channel_name,
        mention_role_id=intent.mention_role_id,
        custom_message=intent.custom_message,
        live_message=intent.live_message,
        status=initial_status(QueueFamily.YOUTUBE).value,
    ))
    logger.info("YouTube subscription %s (%s) for guild %s",
                sub.id, intent.youtube_channel_id, intent.guild_id)
    return sub


def update_youtube_subscription(engine, subscription_id: str, **changes) -> YoutubeSubscription | None:
    """Edit the configuration fields of a subscription.

    The poll cursor (last video timestamp, announced ids) is never
    touched here, so an edit cannot cause a re-announcement.
    """
    unknown = set(changes) - YOUTUBE_CONFIG_FIELDS
    if unknown:
        raise IntentValidationError(f"Not editable: {', '.join(sorted(unknown))}")
    if "discord_channel_id" in changes and not changes["discord_channel_id"]:
        raise IntentValidationError("Discord channel is required")
    return update_document(engine, YoutubeSubscription, subscription_id, **changes)


# ---------------------------------------------------------------------------
# Music
# ---------------------------------------------------------------------------
def enqueue_song(engine, intent: SongIntent) -> MusicQueueItem:
    intent.validate()
    item = create_document(engine, MusicQueueItem(
        guild_id=intent.guild_id,
        song_url=intent.song_url,
        requester_id=intent.requester_id,
    ))
    logger.info("Song queued for guild %s by %s", intent.guild_id, intent.requester_id)
    return item


# ---------------------------------------------------------------------------
# Re-arm / delete
# ---------------------------------------------------------------------------
def re_arm(engine, family: QueueFamily, resource_id: str):
    """Flip a terminal resource back to its family's initial status.

    No queue item is written; the bot finds the resource through its
    status poll.  A non-terminal resource is returned unchanged.
    Returns ``None`` if the resource does not exist.
    """
    model = resource_model(family)
    current = get_document(engine, model, resource_id)
    if current is None:
        return None
    target = transition(family, current.status, ResourceEvent.REARM)
    if target.value == current.status:
        return current
    logger.info("Re-arming %s %s: %s → %s", family, resource_id, current.status, target)
    return update_document(engine, model, resource_id, status=target.value)


def delete_resource(engine, family: QueueFamily, resource_id: str) -> bool:
    """Delete the main resource only.

    Outstanding queue items are left for the bot, which revalidates the
    resource id and retires items whose resource is gone.
    """
    deleted = delete_document(engine, resource_model(family), resource_id)
    if deleted:
        logger.info("Deleted %s %s", family, resource_id)
    return deleted


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------
def get_resource(engine, family: QueueFamily, resource_id: str):
    return get_document(engine, resource_model(family), resource_id)


def list_reaction_roles(engine, guild_id: str) -> list[ReactionRole]:
    return list_documents(
        engine, ReactionRole,
        where=[ReactionRole.guild_id == guild_id],
        order_by=[ReactionRole.created_at.desc()],
    )


def list_giveaways(engine, guild_id: str) -> list[Giveaway]:
    return list_documents(
        engine, Giveaway,
        where=[Giveaway.guild_id == guild_id],
        order_by=[Giveaway.ends_at.desc()],
    )


def list_scheduled_messages(engine, guild_id: str) -> list[ScheduledMessage]:
    return list_documents(
        engine, ScheduledMessage,
        where=[ScheduledMessage.guild_id == guild_id],
        order_by=[ScheduledMessage.next_run.desc()],
    )


def list_youtube_subscriptions(engine, guild_id: str) -> list[YoutubeSubscription]:
    return list_documents(
        engine, YoutubeSubscription,
        where=[YoutubeSubscription.guild_id == guild_id],
        order_by=[YoutubeSubscription.youtube_channel_name.asc()],
    )


def list_music_queue(engine, guild_id: str) -> list[MusicQueueItem]:
    return list_documents(
        engine, MusicQueueItem,
        where=[MusicQueueItem.guild_id == guild_id],
        order_by=[MusicQueueItem.created_at.asc()],
    )


# ---------------------------------------------------------------------------
# Poll-by-status fallback
# ---------------------------------------------------------------------------
def find_actionable(
    engine,
    family: QueueFamily,
    *,
    now: datetime,
    grace_seconds: int,
    guild_id: str | None = None,
) -> list:
    """Non-terminal resources untouched for longer than *grace_seconds*.

    This is how the bot recovers from a lost queue item or a re-arm:
    anything still ``pending``/``running`` past the grace period is due.
    Scheduled messages additionally must have ``next_run <= now``.
    """
    model = resource_model(family)
    cutoff = now - timedelta(seconds=grace_seconds)
    stmt = select(model).where(
        model.status.in_(_NON_TERMINAL),
        model.updated_at <= cutoff,
    )
    if model is ScheduledMessage:
        stmt = stmt.where(ScheduledMessage.next_run <= now)
    if guild_id is not None:
        stmt = stmt.where(model.guild_id == guild_id)
    stmt = stmt.order_by(model.updated_at.asc())

    with Session(engine, expire_on_commit=False) as session:
        rows = list(session.scalars(stmt).all())
        session.expunge_all()
    return rows
