"""
guildboard.services.consumer_service — Bot-side Consumer Contract
==================================================================

What the bot does with the documents the dashboard writes, minus the
Discord calls.  The bot process imports these; the test suite uses them
to check that re-processing a queue item converges.

Delivery is at-least-once: the bot may see the same queue item twice
(crash between side effect and retire).  Every operation here is
therefore a no-op when its effect is already visible on the resource.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from guildboard.constants import ANNOUNCED_VIDEO_HISTORY, PENDING_MESSAGE_ID
from guildboard.database.models import (
    Giveaway,
    GiveawayQueueItem,
    ModerationActionType,
    ModerationQueueItem,
    QueueFamily,
    ReactionRole,
    ReactionRoleQueueItem,
    ResourceStatus,
    ScheduledMessage,
    YoutubeSubscription,
    as_utc,
)
from guildboard.database.store import delete_document, get_document, update_document
from guildboard.engine.lifecycle import (
    ResourceEvent,
    is_terminal,
    next_run_after,
    transition,
)
from guildboard.engine.queue import (
    GiveawayQueued,
    ModerationIntent,
    ModerationQueued,
    QueuedItem,
    ReactionRoleQueued,
    SongIntent,
    SongQueued,
)
from guildboard.services.queue_service import QUEUE_MODELS, resource_model

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Queue reads
# ---------------------------------------------------------------------------
def _to_queued(row) -> QueuedItem:
    if isinstance(row, ReactionRoleQueueItem):
        return ReactionRoleQueued(
            id=row.id, guild_id=row.guild_id,
            reaction_role_id=row.reaction_role_id, created_at=as_utc(row.created_at),
        )
    if isinstance(row, GiveawayQueueItem):
        return GiveawayQueued(
            id=row.id, guild_id=row.guild_id,
            giveaway_id=row.giveaway_id, created_at=as_utc(row.created_at),
        )
    if isinstance(row, ModerationQueueItem):
        return ModerationQueued(
            id=row.id,
            intent=ModerationIntent(
                guild_id=row.guild_id,
                target_user_id=row.target_user_id,
                target_username=row.target_username,
                action_type=ModerationActionType(row.action_type),
                initiator_id=row.initiator_id,
                reason=row.reason,
            ),
            created_at=as_utc(row.created_at),
        )
    return SongQueued(
        id=row.id,
        intent=SongIntent(
            guild_id=row.guild_id, song_url=row.song_url, requester_id=row.requester_id,
        ),
        created_at=as_utc(row.created_at),
    )


def pending_queue_items(engine, family: QueueFamily, *, limit: int = 50) -> list[QueuedItem]:
    """Oldest-first queue items of *family*, as typed variants."""
    model = QUEUE_MODELS[QueueFamily(family)]
    with Session(engine) as session:
        rows = session.scalars(
            select(model).order_by(model.created_at.asc(), model.id.asc()).limit(limit)
        ).all()
        return [_to_queued(r) for r in rows]


def retire_queue_item(engine, family: QueueFamily, item_id: str) -> bool:
    """Delete a processed queue item.  Already-retired is not an error."""
    return delete_document(engine, QUEUE_MODELS[QueueFamily(family)], item_id)


# ---------------------------------------------------------------------------
# Posting
# ---------------------------------------------------------------------------
def _mark_posted(engine, family: QueueFamily, resource_id: str, message_id: str):
    model = resource_model(family)
    current = get_document(engine, model, resource_id)
    if current is None:
        logger.info("%s %s no longer exists; nothing to post", family, resource_id)
        return None
    already_posted = current.message_id != PENDING_MESSAGE_ID
    if already_posted and is_terminal(current.status):
        return current
    target = transition(family, current.status, ResourceEvent.POSTED)
    if already_posted and current.status == target.value:
        return current
    changes = {"status": target.value}
    if not already_posted:
        changes["message_id"] = message_id
    return update_document(engine, model, resource_id, **changes)


def mark_reaction_role_posted(engine, reaction_role_id: str, message_id: str) -> ReactionRole | None:
    """Record the Discord message id once the embed is posted.

    A second call keeps the first message id.  Returns ``None`` if the
    reaction role was deleted in the meantime.
    """
    return _mark_posted(engine, QueueFamily.REACTION_ROLE, reaction_role_id, message_id)


def mark_giveaway_posted(engine, giveaway_id: str, message_id: str) -> Giveaway | None:
    return _mark_posted(engine, QueueFamily.GIVEAWAY, giveaway_id, message_id)


# ---------------------------------------------------------------------------
# Giveaway end
# ---------------------------------------------------------------------------
def end_giveaway(engine, giveaway_id: str, winners: list[str]) -> Giveaway | None:
    """Close a giveaway with its drawn winners.  No-op once ended."""
    current = get_document(engine, Giveaway, giveaway_id)
    if current is None:
        return None
    if current.status == ResourceStatus.ENDED:
        return current
    target = transition(QueueFamily.GIVEAWAY, current.status, ResourceEvent.ENDED)
    logger.info("Giveaway %s ended with %d winner(s)", giveaway_id, len(winners))
    return update_document(
        engine, Giveaway, giveaway_id,
        status=target.value, winners=json.dumps(list(winners)),
    )


# ---------------------------------------------------------------------------
# Scheduled messages
# ---------------------------------------------------------------------------
def mark_scheduled_sent(
    engine,
    message_id: str,
    *,
    scheduled_for: datetime,
    ran_at: datetime,
) -> ScheduledMessage | None:
    """Record that the occurrence due at *scheduled_for* was posted.

    If ``next_run`` has moved on (already recorded, or the admin edited
    the schedule) the call is a no-op.  Repeating messages advance to
    their next occurrence and stay ``pending``; one-shots become ``sent``.
    """
    current = get_document(engine, ScheduledMessage, message_id)
    if current is None:
        return None
    if as_utc(current.next_run) != as_utc(scheduled_for):
        return current
    if current.status != ResourceStatus.PENDING:
        return current

    upcoming = next_run_after(
        as_utc(current.next_run), current.repeat, now=ran_at, anchor_day=current.anchor_day,
    )
    if upcoming is None:
        return update_document(
            engine, ScheduledMessage, message_id,
            status=transition(
                QueueFamily.SCHEDULED_MESSAGE, current.status, ResourceEvent.POSTED
            ).value,
            last_run=ran_at,
        )
    return update_document(
        engine, ScheduledMessage, message_id,
        last_run=ran_at, next_run=upcoming,
    )


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------
def mark_failed(engine, family: QueueFamily, resource_id: str, reason: str = ""):
    """Move a resource to ``error`` (bad channel, missing permissions …)."""
    model = resource_model(family)
    current = get_document(engine, model, resource_id)
    if current is None:
        return None
    target = transition(family, current.status, ResourceEvent.FAILED)
    if current.status == target.value:
        return current
    logger.warning("%s %s failed: %s", family, resource_id, reason or "no reason given",
                   extra={"guild_id": current.guild_id, "collection": model.__tablename__,
                          "operation": "fail"})
    return update_document(engine, model, resource_id, status=target.value)


# ---------------------------------------------------------------------------
# YouTube poll cursor
# ---------------------------------------------------------------------------
def _announced_ids(raw: str | None) -> list[str]:
    try:
        ids = json.loads(raw or "[]")
    except json.JSONDecodeError:
        return []
    return [i for i in ids if isinstance(i, str)] if isinstance(ids, list) else []


def advance_youtube_cursor(
    engine,
    subscription_id: str,
    video_id: str,
    title: str,
    published_at: datetime,
) -> YoutubeSubscription | None:
    """Record an announced video.

    Keeps the newest :data:`ANNOUNCED_VIDEO_HISTORY` ids.  A video that
    is already in the history is not recorded again.
    """
    current = get_document(engine, YoutubeSubscription, subscription_id)
    if current is None:
        return None
    announced = _announced_ids(current.announced_video_ids)
    if video_id in announced:
        return current
    announced = [*announced, video_id][-ANNOUNCED_VIDEO_HISTORY:]

    last_ts = as_utc(current.last_video_timestamp)
    published_at = as_utc(published_at)
    newest = published_at if last_ts is None or published_at > last_ts else last_ts
    return update_document(
        engine, YoutubeSubscription, subscription_id,
        announced_video_ids=json.dumps(announced),
        last_announced_video_id=video_id,
        last_announced_video_title=title,
        last_video_timestamp=newest,
    )


def video_already_announced(subscription: YoutubeSubscription, video_id: str) -> bool:
    return video_id in _announced_ids(subscription.announced_video_ids)

