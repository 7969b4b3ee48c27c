"""
tests/test_api_routes.py — FastAPI Route Integration Tests
============================================================
Admin API routes through the FastAPI TestClient, backed by the shared
in-memory database.

These tests verify:
- Auth guards on admin endpoints
- Settings read/write round trips in wire format
- Queue hand-off creates, re-arms and guild scoping
- Read surfaces (leaderboard, metadata, stats, members, commands)
"""

from __future__ import annotations

import jwt
import pytest
from sqlalchemy.orm import Session

from guildboard.api.deps import JWT_ALGORITHM, JWT_SECRET
from guildboard.api.submit_guard import get_submission_guard
from guildboard.database.models import GuildMetadata, ModerationQueueItem, QueueFamily, ServerStats
from guildboard.database.store import list_documents
from guildboard.services import leveling_service, log_service, status_service

GUILD_ID = "800000000000000001"
OTHER_GUILD_ID = "800000000000000002"


def _auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def non_admin_token():
    return jwt.encode(
        {"sub": "67890", "username": "RegularUser", "is_admin": False},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


def _giveaway_body(**overrides) -> dict:
    body = {
        "channel_id": "555",
        "prize": "Nitro",
        "ends_at": "2026-04-01T18:00:00+00:00",
        "winner_count": 1,
    }
    body.update(overrides)
    return body


# ===========================================================================
# Health
# ===========================================================================
class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_bot_health_offline_without_heartbeat(self, client):
        resp = client.get("/api/health/bot")
        assert resp.status_code == 200
        assert resp.json()["status"] == "offline"

    def test_bot_health_online(self, client, db_engine):
        status_service.save_bot_heartbeat(db_engine, "Guildbot")
        assert client.get("/api/health/bot").json()["status"] == "online"


# ===========================================================================
# Auth guards
# ===========================================================================
class TestAdminAuthGuards:
    ADMIN_GET_ENDPOINTS = [
        f"/api/admin/guilds/{GUILD_ID}/settings",
        f"/api/admin/guilds/{GUILD_ID}/giveaways",
        f"/api/admin/guilds/{GUILD_ID}/leaderboard",
        f"/api/admin/guilds/{GUILD_ID}/members",
        "/api/admin/servers",
        "/api/admin/logs",
    ]

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_get_rejects_no_auth(self, client, endpoint):
        assert client.get(endpoint).status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_get_rejects_invalid_token(self, client, endpoint):
        assert client.get(endpoint, headers=_auth("not-a-jwt")).status_code == 401

    @pytest.mark.parametrize("endpoint", ADMIN_GET_ENDPOINTS)
    def test_get_rejects_non_admin(self, client, non_admin_token, endpoint):
        assert client.get(endpoint, headers=_auth(non_admin_token)).status_code == 403

    def test_rejects_token_without_subject(self, client):
        token = jwt.encode({"is_admin": True}, JWT_SECRET, algorithm=JWT_ALGORITHM)
        resp = client.get("/api/admin/servers", headers=_auth(token))
        assert resp.status_code == 401

    def test_rejects_wrong_scheme(self, client, admin_token):
        resp = client.get("/api/admin/servers", headers={"Authorization": f"Token {admin_token}"})
        assert resp.status_code == 401

    def test_guarded_create_rejects_no_auth(self, client):
        resp = client.post(f"/api/admin/guilds/{GUILD_ID}/giveaways", json=_giveaway_body())
        assert resp.status_code == 401


class TestAuthMe:
    def test_me_returns_admin_info(self, client, auth_headers):
        resp = client.get("/api/auth/me", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["id"] == "99999"
        assert resp.json()["username"] == "FixtureAdmin"


# ===========================================================================
# Settings
# ===========================================================================
class TestSettings:
    def test_new_guild_gets_defaults(self, client, auth_headers):
        resp = client.get(f"/api/admin/guilds/{GUILD_ID}/settings", headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["guildId"] == GUILD_ID
        assert data["welcome"]["enabled"] is True
        assert data["autoMod"]["mentionSpamLimit"] == 5

    def test_put_merges_and_keeps_omitted_sections(self, client, auth_headers):
        url = f"/api/admin/guilds/{GUILD_ID}/settings"
        client.put(url, json={"goodbye": {"enabled": True}}, headers=auth_headers)
        resp = client.put(url, json={"autoMod": {"mentionSpamLimit": "8"}}, headers=auth_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["autoMod"]["mentionSpamLimit"] == 8
        assert data["goodbye"]["enabled"] is True
        assert client.get(url, headers=auth_headers).json() == data

    def test_role_rewards(self, client, auth_headers):
        url = f"/api/admin/guilds/{GUILD_ID}/role-rewards"
        first = client.post(url, json={"level": 10, "role_id": "r10"}, headers=auth_headers)
        assert first.status_code == 201
        dup = client.post(url, json={"level": 10, "role_id": "other"}, headers=auth_headers)
        assert dup.status_code == 409
        bad = client.post(url, json={"level": 0, "role_id": "r0"}, headers=auth_headers)
        assert bad.status_code == 400

        settings = client.get(f"/api/admin/guilds/{GUILD_ID}/settings", headers=auth_headers).json()
        assert settings["leveling"]["roleRewards"] == [{"level": 10, "roleId": "r10"}]

        removed = client.delete(f"{url}/10", headers=auth_headers)
        assert removed.json() == {"roleRewards": []}

    def test_log_level(self, client, auth_headers):
        bad = client.put("/api/admin/logs/level", json={"level": "LOUD"}, headers=auth_headers)
        assert bad.status_code == 400
        ok = client.put("/api/admin/logs/level", json={"level": "info"}, headers=auth_headers)
        assert ok.json() == {"capture_level": "INFO"}
        logs = client.get("/api/admin/logs", params={"tail": 5}, headers=auth_headers).json()
        assert logs["capture_level"] == "INFO"
        assert "WARNING" in logs["valid_levels"]


# ===========================================================================
# Queue hand-off
# ===========================================================================
class TestGiveaways:
    def test_create_and_list(self, client, auth_headers):
        url = f"/api/admin/guilds/{GUILD_ID}/giveaways"
        resp = client.post(url, json=_giveaway_body(), headers=auth_headers)
        assert resp.status_code == 201
        created = resp.json()
        assert created["status"] == "running"
        assert created["messageId"] == "pending"
        assert created["endsAt"].startswith("2026-04-01T18:00:00")

        listed = client.get(url, headers=auth_headers).json()
        assert [g["id"] for g in listed] == [created["id"]]

    def test_naive_end_time_rejected(self, client, auth_headers):
        resp = client.post(
            f"/api/admin/guilds/{GUILD_ID}/giveaways",
            json=_giveaway_body(ends_at="2026-04-01T18:00:00"),
            headers=auth_headers,
        )
        assert resp.status_code == 422

    def test_zero_winners_rejected(self, client, auth_headers):
        resp = client.post(
            f"/api/admin/guilds/{GUILD_ID}/giveaways",
            json=_giveaway_body(winner_count=0),
            headers=auth_headers,
        )
        assert resp.status_code == 400

    def test_double_submit_is_rejected(self, client, auth_headers):
        guard = get_submission_guard()
        assert guard.acquire("99999", GUILD_ID, QueueFamily.GIVEAWAY)
        resp = client.post(
            f"/api/admin/guilds/{GUILD_ID}/giveaways", json=_giveaway_body(), headers=auth_headers
        )
        assert resp.status_code == 409
        guard.release("99999", GUILD_ID, QueueFamily.GIVEAWAY)

    def test_guard_released_after_request(self, client, auth_headers):
        url = f"/api/admin/guilds/{GUILD_ID}/giveaways"
        assert client.post(url, json=_giveaway_body(), headers=auth_headers).status_code == 201
        assert client.post(url, json=_giveaway_body(), headers=auth_headers).status_code == 201
        assert get_submission_guard().in_flight == 0

    def test_reroll_and_other_guild(self, client, auth_headers):
        created = client.post(
            f"/api/admin/guilds/{GUILD_ID}/giveaways", json=_giveaway_body(), headers=auth_headers
        ).json()
        rerolled = client.post(
            f"/api/admin/guilds/{GUILD_ID}/giveaways/{created['id']}/reroll", headers=auth_headers
        )
        assert rerolled.status_code == 200
        assert rerolled.json()["status"] == "running"

        foreign = client.delete(
            f"/api/admin/guilds/{OTHER_GUILD_ID}/giveaways/{created['id']}", headers=auth_headers
        )
        assert foreign.status_code == 404

        deleted = client.delete(
            f"/api/admin/guilds/{GUILD_ID}/giveaways/{created['id']}", headers=auth_headers
        )
        assert deleted.json() == {"deleted": True}


class TestReactionRoles:
    def test_create(self, client, auth_headers):
        resp = client.post(
            f"/api/admin/guilds/{GUILD_ID}/reaction-roles",
            json={
                "channel_id": "555",
                "embed_title": "Pick roles",
                "roles": [{"emoji": "🔴", "role_id": "r1"}],
            },
            headers=auth_headers,
        )
        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "pending"
        assert data["roles"] == [{"emoji": "🔴", "roleId": "r1"}]

    def test_no_roles_is_400(self, client, auth_headers):
        resp = client.post(
            f"/api/admin/guilds/{GUILD_ID}/reaction-roles",
            json={"channel_id": "555", "embed_title": "Pick roles", "roles": []},
            headers=auth_headers,
        )
        assert resp.status_code == 400


class TestScheduledMessages:
    def test_create_then_edit(self, client, auth_headers):
        url = f"/api/admin/guilds/{GUILD_ID}/scheduled-messages"
        created = client.post(url, json={
            "channel_id": "1", "content": "Weekly reminder",
            "next_run": "2026-04-06T09:00:00Z", "repeat": "weekly",
        }, headers=auth_headers)
        assert created.status_code == 201
        message_id = created.json()["id"]

        edited = client.patch(f"{url}/{message_id}", json={"content": "Updated"},
                              headers=auth_headers)
        assert edited.status_code == 200
        assert edited.json()["content"] == "Updated"
        assert edited.json()["repeat"] == "weekly"

    def test_bad_repeat_is_422(self, client, auth_headers):
        resp = client.post(f"/api/admin/guilds/{GUILD_ID}/scheduled-messages", json={
            "channel_id": "1", "content": "x", "next_run": "2026-04-06T09:00:00Z",
            "repeat": "hourly",
        }, headers=auth_headers)
        assert resp.status_code == 422


class TestYoutube:
    def test_create_and_patch(self, client, auth_headers):
        url = f"/api/admin/guilds/{GUILD_ID}/youtube"
        created = client.post(url, json={
            "youtube_channel_id": "UC123", "discord_channel_id": "42",
        }, headers=auth_headers).json()
        patched = client.patch(f"{url}/{created['id']}", json={"mention_role_id": "r9"},
                               headers=auth_headers)
        assert patched.status_code == 200
        assert patched.json()["mentionRoleId"] == "r9"
        assert patched.json()["youtubeChannelId"] == "UC123"


class TestModerationAndMusic:
    def test_moderation_initiator_is_token_subject(self, client, auth_headers, db_engine):
        resp = client.post(f"/api/admin/guilds/{GUILD_ID}/moderation", json={
            "target_user_id": "42", "target_username": "troll", "action_type": "ban",
            "reason": "spam",
        }, headers=auth_headers)
        assert resp.status_code == 202
        assert resp.json()["actionType"] == "ban"

        (item,) = list_documents(db_engine, ModerationQueueItem)
        assert item.initiator_id == "99999"

    def test_unknown_action_is_422(self, client, auth_headers):
        resp = client.post(f"/api/admin/guilds/{GUILD_ID}/moderation", json={
            "target_user_id": "42", "action_type": "timeout",
        }, headers=auth_headers)
        assert resp.status_code == 422

    def test_song_requester_is_token_subject(self, client, auth_headers):
        url = f"/api/admin/guilds/{GUILD_ID}/music"
        assert client.post(url, json={"song_url": "https://a/b"}, headers=auth_headers).status_code == 201
        (song,) = client.get(url, headers=auth_headers).json()
        assert song["requesterId"] == "99999"


# ===========================================================================
# Read surfaces
# ===========================================================================
class TestReadSurfaces:
    def test_metadata_not_synced(self, client, auth_headers):
        data = client.get(f"/api/admin/guilds/{GUILD_ID}/metadata", headers=auth_headers).json()
        assert data["synced"] is False
        assert data["channels"] == [] and data["roles"] == []

    def test_metadata_with_non_list_fields(self, client, auth_headers, db_engine):
        with Session(db_engine) as session:
            session.add(GuildMetadata(guild_id=GUILD_ID, data='{"channels": 5, "roles": true}'))
            session.commit()
        resp = client.get(f"/api/admin/guilds/{GUILD_ID}/metadata", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["channels"] == []

    def test_stats_created_once(self, client, auth_headers, db_engine):
        url = f"/api/admin/guilds/{GUILD_ID}/stats"
        first = client.get(url, headers=auth_headers)
        second = client.get(url, headers=auth_headers)
        assert first.status_code == 200
        assert first.json()["memberCount"] == 0
        assert first.json()["messagesWeekly"] == []
        assert second.json()["guildId"] == GUILD_ID
        assert len(list_documents(db_engine, ServerStats)) == 1

    def test_leaderboard(self, client, auth_headers, db_engine):
        leveling_service.award_xp(db_engine, GUILD_ID, "u1", "Alice", 180)
        leveling_service.award_xp(db_engine, GUILD_ID, "u2", "Bob", 10)
        board = client.get(f"/api/admin/guilds/{GUILD_ID}/leaderboard", headers=auth_headers).json()
        assert [e["userId"] for e in board] == ["u1", "u2"]
        assert board[0]["rank"] == 1
        assert board[0]["badge"] == "\U0001f947"
        assert (board[0]["xpInLevel"], board[0]["xpNeeded"], board[0]["progressPct"]) == (25, 65, 38)

    def test_user_progress_404(self, client, auth_headers):
        resp = client.get(f"/api/admin/guilds/{GUILD_ID}/users/ghost/progress", headers=auth_headers)
        assert resp.status_code == 404

    def test_members_page(self, client, auth_headers, db_engine, now):
        for i in range(3):
            log_service.upsert_member(db_engine, GUILD_ID, str(i), f"member{i}", joined_at=now)
        data = client.get(
            f"/api/admin/guilds/{GUILD_ID}/members", params={"search": "MEMBER1"},
            headers=auth_headers,
        ).json()
        assert data["total"] == 1
        assert data["members"][0]["username"] == "member1"

    def test_commands_crud(self, client, auth_headers):
        url = f"/api/admin/guilds/{GUILD_ID}/commands"
        created = client.post(url, json={"command": "rules", "response": "Be nice"},
                              headers=auth_headers)
        assert created.status_code == 201
        dup = client.post(url, json={"command": "Rules", "response": "x"}, headers=auth_headers)
        assert dup.status_code == 409
        command_id = created.json()["id"]
        foreign = client.delete(f"/api/admin/guilds/{OTHER_GUILD_ID}/commands/{command_id}",
                                headers=auth_headers)
        assert foreign.status_code == 404
        assert client.delete(f"{url}/{command_id}", headers=auth_headers).json() == {"deleted": True}
