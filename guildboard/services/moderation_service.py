"""
guildboard.services.moderation_service — Kick / Ban Hand-off
=============================================================

The dashboard writes one ``moderation_queue`` document per action and
does not wait for the outcome.  The bot executes it, deletes the queue
item and writes an ``audit_logs`` entry of its own.

There is no request id linking the two.  The only way to show an admin
what happened is a loose match on guild, target user and time window
(:func:`find_correlated_audit_entries`).
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from guildboard.database.models import (
    AuditLogEntry,
    LogType,
    ModerationActionType,
    ModerationQueueItem,
)
from guildboard.database.store import create_document, list_documents
from guildboard.engine.queue import ModerationIntent

logger = logging.getLogger(__name__)

# Audit-log types the bot writes for each action.
_RESULT_TYPES: dict[ModerationActionType, str] = {
    ModerationActionType.KICK: LogType.USER_KICKED.value,
    ModerationActionType.BAN: LogType.USER_BANNED.value,
}


def queue_moderation_action(engine, intent: ModerationIntent) -> ModerationQueueItem:
    """Validate *intent* and hand it to the bot.

    Raises
    ------
    IntentValidationError
        Unsupported action type, or a missing target/initiator.
    """
    intent.validate()
    item = create_document(engine, ModerationQueueItem(
        guild_id=intent.guild_id,
        target_user_id=intent.target_user_id,
        target_username=intent.target_username or intent.target_user_id,
        action_type=ModerationActionType(intent.action_type).value,
        reason=intent.reason,
        initiator_id=intent.initiator_id,
    ))
    logger.info(
        "Queued %s of %s in guild %s (by %s)",
        item.action_type, intent.target_user_id, intent.guild_id, intent.initiator_id,
    )
    return item


def find_correlated_audit_entries(
    engine,
    guild_id: str,
    target_user_id: str,
    around: datetime,
    window_seconds: int = 300,
    action_type: ModerationActionType | None = None,
) -> list[AuditLogEntry]:
    """Audit entries for *target_user_id* within ``±window_seconds`` of *around*.

    A best-effort match, not a guarantee: two actions on the same user
    inside the window are indistinguishable.
    """
    window = timedelta(seconds=window_seconds)
    where = [
        AuditLogEntry.guild_id == guild_id,
        AuditLogEntry.user_id == target_user_id,
        AuditLogEntry.timestamp >= around - window,
        AuditLogEntry.timestamp <= around + window,
    ]
    if action_type is not None:
        where.append(AuditLogEntry.type == _RESULT_TYPES[ModerationActionType(action_type)])
    return list_documents(
        engine, AuditLogEntry,
        where=where,
        order_by=[AuditLogEntry.timestamp.asc()],
    )
