"""
tests/test_consumer_service.py — Bot-side Consumer Contract
============================================================

Every consumer operation must converge when a queue item is seen twice:
running it again leaves the resource exactly as the first run did.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from guildboard.constants import ANNOUNCED_VIDEO_HISTORY
from guildboard.database.models import (
    GiveawayQueueItem,
    ModerationActionType,
    QueueFamily,
    ReactionRoleQueueItem,
    as_utc,
)
from guildboard.database.store import list_documents
from guildboard.engine.queue import (
    GiveawayIntent,
    GiveawayQueued,
    ModerationIntent,
    ModerationQueued,
    ReactionRoleBinding,
    ReactionRoleIntent,
    ReactionRoleQueued,
    ScheduledMessageIntent,
    SongIntent,
    SongQueued,
    YoutubeSubscriptionIntent,
)
from guildboard.services import consumer_service, moderation_service, queue_service

GUILD_ID = "100000000000000001"


@pytest.fixture
def reaction_role(db_engine):
    return queue_service.enqueue_reaction_role(db_engine, ReactionRoleIntent(
        guild_id=GUILD_ID, channel_id="555", embed_title="Roles",
        roles=(ReactionRoleBinding("✅", "r1"),),
    ))


@pytest.fixture
def giveaway(db_engine):
    return queue_service.enqueue_giveaway(db_engine, GiveawayIntent(
        guild_id=GUILD_ID, channel_id="555", prize="Nitro",
        ends_at=datetime(2026, 4, 1, tzinfo=UTC),
    ))


def _snapshot(row, *fields):
    return tuple(getattr(row, f) for f in fields)


# ---------------------------------------------------------------------------
# Queue reads
# ---------------------------------------------------------------------------
class TestQueueReads:
    def test_typed_variants(self, db_engine, reaction_role, giveaway):
        rr_items = consumer_service.pending_queue_items(db_engine, QueueFamily.REACTION_ROLE)
        gw_items = consumer_service.pending_queue_items(db_engine, QueueFamily.GIVEAWAY)
        assert len(rr_items) == 1 and isinstance(rr_items[0], ReactionRoleQueued)
        assert rr_items[0].reaction_role_id == reaction_role.id
        assert len(gw_items) == 1 and isinstance(gw_items[0], GiveawayQueued)
        assert gw_items[0].giveaway_id == giveaway.id

    def test_moderation_and_song_variants(self, db_engine):
        moderation_service.queue_moderation_action(db_engine, ModerationIntent(
            guild_id=GUILD_ID, target_user_id="42", target_username="troll",
            action_type=ModerationActionType.BAN, initiator_id="99999", reason="spam",
        ))
        queue_service.enqueue_song(db_engine, SongIntent(
            guild_id=GUILD_ID, song_url="https://a/b", requester_id="1",
        ))
        (mod,) = consumer_service.pending_queue_items(db_engine, QueueFamily.MODERATION)
        (song,) = consumer_service.pending_queue_items(db_engine, QueueFamily.MUSIC)
        assert isinstance(mod, ModerationQueued)
        assert mod.intent.action_type is ModerationActionType.BAN
        assert mod.intent.reason == "spam"
        assert isinstance(song, SongQueued)
        assert song.intent.song_url == "https://a/b"

    def test_retire_twice(self, db_engine, reaction_role):
        (item,) = consumer_service.pending_queue_items(db_engine, QueueFamily.REACTION_ROLE)
        assert consumer_service.retire_queue_item(db_engine, QueueFamily.REACTION_ROLE, item.id)
        assert not consumer_service.retire_queue_item(db_engine, QueueFamily.REACTION_ROLE, item.id)
        assert list_documents(db_engine, ReactionRoleQueueItem) == []


# ---------------------------------------------------------------------------
# Posting
# ---------------------------------------------------------------------------
class TestPosting:
    def test_reaction_role_posted_twice_keeps_first_message(self, db_engine, reaction_role):
        first = consumer_service.mark_reaction_role_posted(db_engine, reaction_role.id, "m-1")
        second = consumer_service.mark_reaction_role_posted(db_engine, reaction_role.id, "m-2")
        assert first.status == "sent"
        assert first.message_id == "m-1"
        assert _snapshot(second, "status", "message_id") == ("sent", "m-1")

    def test_giveaway_posted_stays_running(self, db_engine, giveaway):
        first = consumer_service.mark_giveaway_posted(db_engine, giveaway.id, "m-9")
        second = consumer_service.mark_giveaway_posted(db_engine, giveaway.id, "m-10")
        assert _snapshot(first, "status", "message_id") == ("running", "m-9")
        assert _snapshot(second, "status", "message_id") == ("running", "m-9")

    def test_deleted_resource(self, db_engine, reaction_role):
        queue_service.delete_resource(db_engine, QueueFamily.REACTION_ROLE, reaction_role.id)
        assert consumer_service.mark_reaction_role_posted(db_engine, reaction_role.id, "m") is None

    def test_rearmed_reaction_role_reposts_without_new_message(self, db_engine, reaction_role):
        consumer_service.mark_reaction_role_posted(db_engine, reaction_role.id, "m-1")
        queue_service.re_arm(db_engine, QueueFamily.REACTION_ROLE, reaction_role.id)
        again = consumer_service.mark_reaction_role_posted(db_engine, reaction_role.id, "m-2")
        assert _snapshot(again, "status", "message_id") == ("sent", "m-1")


# ---------------------------------------------------------------------------
# Giveaway end
# ---------------------------------------------------------------------------
class TestEndGiveaway:
    def test_end_twice(self, db_engine, giveaway):
        first = consumer_service.end_giveaway(db_engine, giveaway.id, ["u1"])
        second = consumer_service.end_giveaway(db_engine, giveaway.id, ["u2"])
        assert first.status == "ended"
        assert json.loads(first.winners) == ["u1"]
        assert _snapshot(second, "status", "winners") == _snapshot(first, "status", "winners")

    def test_reroll_replaces_winners(self, db_engine, giveaway):
        consumer_service.end_giveaway(db_engine, giveaway.id, ["u1"])
        rerolled = queue_service.reroll_giveaway(db_engine, giveaway.id)
        # Previous winners are kept until the bot draws again
        assert json.loads(rerolled.winners) == ["u1"]
        redrawn = consumer_service.end_giveaway(db_engine, giveaway.id, ["u3"])
        assert json.loads(redrawn.winners) == ["u3"]

    def test_queue_item_untouched(self, db_engine, giveaway):
        consumer_service.end_giveaway(db_engine, giveaway.id, [])
        assert len(list_documents(db_engine, GiveawayQueueItem)) == 1


# ---------------------------------------------------------------------------
# Scheduled messages
# ---------------------------------------------------------------------------
class TestScheduledMessages:
    def _create(self, db_engine, run, repeat="none"):
        return queue_service.create_scheduled_message(db_engine, ScheduledMessageIntent(
            guild_id=GUILD_ID, channel_id="1", content="hello", next_run=run, repeat=repeat,
        ))

    def test_one_shot_sent_once(self, db_engine):
        run = datetime(2026, 3, 14, 12, 0, tzinfo=UTC)
        message = self._create(db_engine, run)
        ran = run + timedelta(seconds=3)
        first = consumer_service.mark_scheduled_sent(db_engine, message.id, scheduled_for=run, ran_at=ran)
        second = consumer_service.mark_scheduled_sent(
            db_engine, message.id, scheduled_for=run, ran_at=ran + timedelta(minutes=1)
        )
        assert first.status == "sent"
        assert as_utc(first.last_run) == ran
        assert _snapshot(second, "status") == ("sent",)
        assert as_utc(second.last_run) == ran

    def test_repeating_advances_once(self, db_engine):
        run = datetime(2026, 1, 31, 8, 0, tzinfo=UTC)
        message = self._create(db_engine, run, repeat="monthly")
        ran = run + timedelta(seconds=1)
        first = consumer_service.mark_scheduled_sent(db_engine, message.id, scheduled_for=run, ran_at=ran)
        second = consumer_service.mark_scheduled_sent(db_engine, message.id, scheduled_for=run, ran_at=ran)
        assert first.status == "pending"
        assert as_utc(first.next_run) == datetime(2026, 2, 28, 8, 0, tzinfo=UTC)
        assert as_utc(second.next_run) == as_utc(first.next_run)

    def test_monthly_keeps_day_of_month_across_short_months(self, db_engine):
        run = datetime(2026, 1, 31, 8, 0, tzinfo=UTC)
        message = self._create(db_engine, run, repeat="monthly")
        assert message.anchor_day == 31
        feb = consumer_service.mark_scheduled_sent(
            db_engine, message.id, scheduled_for=run, ran_at=run + timedelta(seconds=1)
        )
        feb_run = as_utc(feb.next_run)
        mar = consumer_service.mark_scheduled_sent(
            db_engine, message.id, scheduled_for=feb_run, ran_at=feb_run + timedelta(seconds=1)
        )
        assert feb_run == datetime(2026, 2, 28, 8, 0, tzinfo=UTC)
        assert as_utc(mar.next_run) == datetime(2026, 3, 31, 8, 0, tzinfo=UTC)

    def test_editing_next_run_moves_anchor(self, db_engine):
        message = self._create(db_engine, datetime(2026, 1, 31, 8, 0, tzinfo=UTC), repeat="monthly")
        edited = queue_service.update_scheduled_message(
            db_engine, message.id, next_run=datetime(2026, 2, 10, 8, 0, tzinfo=UTC)
        )
        assert edited.anchor_day == 10

    def test_missed_days_are_skipped(self, db_engine):
        run = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
        message = self._create(db_engine, run, repeat="daily")
        ran = datetime(2026, 3, 5, 10, 0, tzinfo=UTC)
        updated = consumer_service.mark_scheduled_sent(
            db_engine, message.id, scheduled_for=run, ran_at=ran
        )
        assert as_utc(updated.next_run) == datetime(2026, 3, 6, 9, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Failure
# ---------------------------------------------------------------------------
class TestFailure:
    def test_fail_twice(self, db_engine, reaction_role, caplog):
        with caplog.at_level("WARNING", logger="guildboard.services.consumer_service"):
            first = consumer_service.mark_failed(
                db_engine, QueueFamily.REACTION_ROLE, reaction_role.id, "Missing Access"
            )
            second = consumer_service.mark_failed(
                db_engine, QueueFamily.REACTION_ROLE, reaction_role.id, "Missing Access"
            )
        assert first.status == second.status == "error"
        assert sum("Missing Access" in r.getMessage() for r in caplog.records) == 1

    def test_failed_resource_can_be_rearmed(self, db_engine, giveaway):
        consumer_service.mark_failed(db_engine, QueueFamily.GIVEAWAY, giveaway.id)
        assert queue_service.re_arm(db_engine, QueueFamily.GIVEAWAY, giveaway.id).status == "running"


# ---------------------------------------------------------------------------
# YouTube cursor
# ---------------------------------------------------------------------------
class TestYoutubeCursor:
    @pytest.fixture
    def subscription(self, db_engine):
        return queue_service.create_youtube_subscription(db_engine, YoutubeSubscriptionIntent(
            guild_id=GUILD_ID, youtube_channel_id="UCabc", discord_channel_id="42",
        ))

    def test_same_video_twice(self, db_engine, subscription):
        published = datetime(2026, 3, 1, tzinfo=UTC)
        first = consumer_service.advance_youtube_cursor(db_engine, subscription.id, "v1", "One", published)
        second = consumer_service.advance_youtube_cursor(db_engine, subscription.id, "v1", "One", published)
        assert json.loads(first.announced_video_ids) == ["v1"]
        assert json.loads(second.announced_video_ids) == ["v1"]
        assert as_utc(second.last_video_timestamp) == published

    def test_older_video_does_not_rewind_timestamp(self, db_engine, subscription):
        newer = datetime(2026, 3, 2, tzinfo=UTC)
        consumer_service.advance_youtube_cursor(db_engine, subscription.id, "v2", "Two", newer)
        updated = consumer_service.advance_youtube_cursor(
            db_engine, subscription.id, "v1", "One", newer - timedelta(days=1)
        )
        assert as_utc(updated.last_video_timestamp) == newer
        assert updated.last_announced_video_id == "v1"

    def test_history_is_capped(self, db_engine, subscription):
        base = datetime(2026, 1, 1, tzinfo=UTC)
        for i in range(ANNOUNCED_VIDEO_HISTORY + 5):
            sub = consumer_service.advance_youtube_cursor(
                db_engine, subscription.id, f"v{i}", f"Video {i}", base + timedelta(hours=i)
            )
        ids = json.loads(sub.announced_video_ids)
        assert len(ids) == ANNOUNCED_VIDEO_HISTORY
        assert ids[0] == "v5"
        assert ids[-1] == f"v{ANNOUNCED_VIDEO_HISTORY + 4}"
