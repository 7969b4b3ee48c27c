"""
tests/test_moderation_service.py — Kick / Ban Hand-off & Correlation
=====================================================================
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from guildboard.database.models import LogType, ModerationActionType, ModerationQueueItem
from guildboard.database.store import list_documents
from guildboard.engine.queue import IntentValidationError, ModerationIntent
from guildboard.services.log_service import append_audit_log
from guildboard.services.moderation_service import (
    find_correlated_audit_entries,
    queue_moderation_action,
)

GUILD_ID = "400000000000000001"


def _intent(**overrides) -> ModerationIntent:
    fields = dict(
        guild_id=GUILD_ID,
        target_user_id="42",
        target_username="troll",
        action_type=ModerationActionType.KICK,
        initiator_id="99999",
        reason="spam",
    )
    fields.update(overrides)
    return ModerationIntent(**fields)


class TestQueueAction:
    def test_writes_one_document(self, db_engine):
        item = queue_moderation_action(db_engine, _intent())
        rows = list_documents(db_engine, ModerationQueueItem)
        assert [r.id for r in rows] == [item.id]
        assert item.action_type == "kick"
        assert item.initiator_id == "99999"
        assert item.reason == "spam"

    def test_unsupported_action(self, db_engine):
        with pytest.raises(IntentValidationError):
            queue_moderation_action(db_engine, _intent(action_type="timeout"))
        assert list_documents(db_engine, ModerationQueueItem) == []

    @pytest.mark.parametrize("field", ["target_user_id", "initiator_id"])
    def test_required_fields(self, db_engine, field):
        with pytest.raises(IntentValidationError):
            queue_moderation_action(db_engine, _intent(**{field: ""}))

    def test_username_falls_back_to_id(self, db_engine):
        item = queue_moderation_action(db_engine, _intent(target_username=""))
        assert item.target_username == "42"


class TestCorrelation:
    def test_window_match(self, db_engine, now):
        append_audit_log(db_engine, GUILD_ID, LogType.USER_KICKED, user="troll", user_id="42",
                         content="Kicked: spam", timestamp=now + timedelta(seconds=20))
        append_audit_log(db_engine, GUILD_ID, LogType.USER_KICKED, user="troll", user_id="42",
                         content="old kick", timestamp=now - timedelta(hours=2))
        append_audit_log(db_engine, GUILD_ID, LogType.USER_KICKED, user="other", user_id="43",
                         content="someone else", timestamp=now)

        entries = find_correlated_audit_entries(db_engine, GUILD_ID, "42", around=now)
        assert [e.content for e in entries] == ["Kicked: spam"]

    def test_action_type_filter(self, db_engine, now):
        append_audit_log(db_engine, GUILD_ID, LogType.USER_BANNED, user="troll", user_id="42",
                         content="Banned", timestamp=now)
        assert find_correlated_audit_entries(
            db_engine, GUILD_ID, "42", around=now, action_type=ModerationActionType.KICK
        ) == []
        banned = find_correlated_audit_entries(
            db_engine, GUILD_ID, "42", around=now, action_type=ModerationActionType.BAN
        )
        assert [e.type for e in banned] == ["USER_BANNED"]
