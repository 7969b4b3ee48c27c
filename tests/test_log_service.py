"""
tests/test_log_service.py — Audit Log, Command Log, Members, Bot Status & Stats
=================================================================================

Read surfaces over the bot-owned collections.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from guildboard.constants import LOG_PAGE_LIMIT
from guildboard.database.models import LogType, ServerStats
from guildboard.services import log_service, status_service

GUILD_ID = "600000000000000001"
OTHER_GUILD_ID = "600000000000000002"


class TestAuditLogs:
    def test_newest_first_and_guild_scoped(self, db_engine, now):
        for i in range(3):
            log_service.append_audit_log(
                db_engine, GUILD_ID, LogType.MESSAGE_DELETED,
                user="Alice", user_id="1", content=f"msg {i}",
                timestamp=now + timedelta(minutes=i),
            )
        log_service.append_audit_log(
            db_engine, OTHER_GUILD_ID, LogType.USER_JOINED,
            user="Bob", user_id="2", content="joined", timestamp=now,
        )
        entries = log_service.list_audit_logs(db_engine, GUILD_ID)
        assert [e.content for e in entries] == ["msg 2", "msg 1", "msg 0"]
        assert entries[0].type == "MESSAGE_DELETED"

    def test_limit_is_capped(self, db_engine, now):
        for i in range(LOG_PAGE_LIMIT + 5):
            log_service.append_audit_log(
                db_engine, GUILD_ID, LogType.USER_JOINED,
                user="u", user_id=str(i), content="joined",
                timestamp=now + timedelta(seconds=i),
            )
        assert len(log_service.list_audit_logs(db_engine, GUILD_ID, limit=1000)) == LOG_PAGE_LIMIT
        assert len(log_service.list_audit_logs(db_engine, GUILD_ID, limit=3)) == 3


class TestCommandLogs:
    def test_listing(self, db_engine, now):
        log_service.append_command_log(db_engine, GUILD_ID, "rank", user="Alice", user_id="1",
                                       timestamp=now)
        log_service.append_command_log(db_engine, GUILD_ID, "help", user="Bob", user_id="2",
                                       timestamp=now + timedelta(seconds=1))
        assert [e.command for e in log_service.list_command_logs(db_engine, GUILD_ID)] == [
            "help", "rank",
        ]


class TestMembers:
    def _seed(self, db_engine, now, names):
        for i, name in enumerate(names):
            log_service.upsert_member(db_engine, GUILD_ID, str(i), name, joined_at=now)

    def test_pagination(self, db_engine, now):
        self._seed(db_engine, now, [f"user{i:02d}" for i in range(30)])
        first = log_service.list_members(db_engine, GUILD_ID, page=1, page_size=25)
        second = log_service.list_members(db_engine, GUILD_ID, page=2, page_size=25)
        assert first.total == 30
        assert first.pages == 2
        assert len(first.members) == 25
        assert [m.username for m in second.members] == [f"user{i}" for i in range(25, 30)]

    def test_search_is_case_insensitive(self, db_engine, now):
        self._seed(db_engine, now, ["Alice", "alfred", "Bob"])
        result = log_service.list_members(db_engine, GUILD_ID, search="AL")
        assert [m.username for m in result.members] == ["Alice", "alfred"]
        assert result.total == 2

    def test_empty_guild(self, db_engine):
        result = log_service.list_members(db_engine, GUILD_ID, page=0)
        assert result.page == 1
        assert result.total == 0
        assert result.pages == 1

    def test_upsert_renames(self, db_engine, now):
        log_service.upsert_member(db_engine, GUILD_ID, "1", "Old", joined_at=now)
        log_service.upsert_member(db_engine, GUILD_ID, "1", "New", joined_at=now)
        result = log_service.list_members(db_engine, GUILD_ID)
        assert [m.username for m in result.members] == ["New"]


class TestBotStatus:
    def test_never_seen_is_offline(self, db_engine):
        assert status_service.get_bot_heartbeat(db_engine) == {
            "status": "offline", "last_heartbeat": None,
        }

    def test_recent_heartbeat_is_online(self, db_engine, now):
        status_service.save_bot_heartbeat(db_engine, "Guildbot", now=now)
        beat = status_service.get_bot_heartbeat(db_engine, now=now + timedelta(seconds=30))
        assert beat["status"] == "online"
        assert beat["name"] == "Guildbot"
        assert beat["age_seconds"] == 30.0

    def test_stale_heartbeat_is_offline(self, db_engine, now):
        status_service.save_bot_heartbeat(db_engine, "Guildbot", now=now)
        beat = status_service.get_bot_heartbeat(
            db_engine, offline_after_seconds=60, now=now + timedelta(minutes=5)
        )
        assert beat["status"] == "offline"

    def test_servers_sorted_by_name(self, db_engine):
        status_service.upsert_server(db_engine, "2", "Zeta")
        status_service.upsert_server(db_engine, "1", "Alpha")
        status_service.upsert_server(db_engine, "2", "Beta")
        assert [s.name for s in status_service.list_servers(db_engine)] == ["Alpha", "Beta"]


class TestServerStats:
    def test_new_guild_gets_zeroed_document(self, db_engine):
        stats = status_service.get_server_stats(db_engine, "g1")
        assert stats.to_wire() | {"updatedAt": None} == {
            "guildId": "g1",
            "memberCount": 0,
            "onlineCount": 0,
            "messagesToday": 0,
            "commandCount": 0,
            "totalWarnings": 0,
            "messagesWeekly": [],
            "roleDistribution": [],
            "updatedAt": None,
        }

    def test_second_read_creates_nothing(self, db_engine):
        first = status_service.get_server_stats(db_engine, "g1")
        status_service.get_server_stats(db_engine, "g1")
        with Session(db_engine) as session:
            rows = session.scalars(select(ServerStats).where(ServerStats.guild_id == "g1")).all()
        assert len(rows) == 1
        assert first.guild_id == "g1"

    @pytest.mark.parametrize("weekly, roles", [
        ("not json", "{broken"),
        ('{"date": "2026-03-01"}', "5"),
        ("", "   "),
    ])
    def test_malformed_blobs_read_as_empty(self, db_engine, weekly, roles):
        with Session(db_engine) as session:
            session.add(ServerStats(
                guild_id="g1", member_count=42,
                messages_weekly=weekly, role_distribution=roles,
            ))
            session.commit()
        stats = status_service.get_server_stats(db_engine, "g1")
        assert stats.member_count == 42
        assert stats.messages_weekly == []
        assert stats.role_distribution == []

    def test_non_object_entries_dropped(self, db_engine):
        with Session(db_engine) as session:
            session.add(ServerStats(
                guild_id="g1",
                messages_weekly='[{"date": "2026-03-01", "count": 12}, 7, "x"]',
                role_distribution='[{"name": "Mods", "count": 3, "color": "#ff0000"}]',
            ))
            session.commit()
        stats = status_service.get_server_stats(db_engine, "g1")
        assert stats.messages_weekly == [{"date": "2026-03-01", "count": 12}]
        assert stats.role_distribution[0]["name"] == "Mods"

    def test_bot_save_overwrites(self, db_engine):
        status_service.save_server_stats(db_engine, status_service.StatsSnapshot(
            guild_id="g1", member_count=10, online_count=4,
            messages_weekly=[{"date": "2026-03-01", "count": 5}],
        ))
        stats = status_service.get_server_stats(db_engine, "g1")
        assert (stats.member_count, stats.online_count) == (10, 4)
        assert stats.messages_weekly == [{"date": "2026-03-01", "count": 5}]
