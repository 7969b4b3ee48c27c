"""
guildboard.services.status_service — Servers, Bot Heartbeat & Stats
====================================================================

The bot writes its identity and a ``last_seen`` heartbeat into the
single ``bot_status`` row, one ``servers`` row per guild it has joined,
and a ``server_stats`` document of dashboard counters per guild.  The
dashboard only reads them, except that reading stats for a guild the
bot has not counted yet creates the zeroed document.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from guildboard.constants import BOT_STATUS_KEY, SERVERS_LIMIT
from guildboard.database.models import BotStatus, Server, ServerStats, as_utc
from guildboard.database.store import list_documents, log_store_failure

logger = logging.getLogger(__name__)

DEFAULT_OFFLINE_AFTER_SECONDS = 90


def list_servers(engine, limit: int = SERVERS_LIMIT) -> list[Server]:
    return list_documents(
        engine, Server, order_by=[Server.name.asc()], limit=min(limit, SERVERS_LIMIT),
    )


def upsert_server(engine, guild_id: str, name: str, icon_url: str | None = None) -> None:
    """Bot side: register (or rename) a guild."""
    with Session(engine) as session:
        row = session.scalar(select(Server).where(Server.guild_id == guild_id))
        if row is None:
            row = Server(guild_id=guild_id, name=name)
            session.add(row)
        row.name = name
        row.icon_url = icon_url
        session.commit()


def get_bot_info(engine) -> BotStatus | None:
    with Session(engine, expire_on_commit=False) as session:
        row = session.get(BotStatus, BOT_STATUS_KEY)
        if row is not None:
            session.expunge(row)
        return row


def save_bot_heartbeat(
    engine,
    name: str,
    avatar_url: str | None = None,
    now: datetime | None = None,
) -> None:
    """Bot side: refresh identity and ``last_seen``."""
    with Session(engine) as session:
        row = session.get(BotStatus, BOT_STATUS_KEY)
        if row is None:
            row = BotStatus(id=BOT_STATUS_KEY, name=name)
            session.add(row)
        row.name = name
        row.avatar_url = avatar_url
        row.last_seen = now or datetime.now(UTC)
        session.commit()


def get_bot_heartbeat(
    engine,
    offline_after_seconds: int = DEFAULT_OFFLINE_AFTER_SECONDS,
    now: datetime | None = None,
) -> dict:
    """Heartbeat status for the health endpoint."""
    row = get_bot_info(engine)
    if row is None or row.last_seen is None:
        return {"status": "offline", "last_heartbeat": None}
    last_seen = as_utc(row.last_seen)
    age_seconds = ((now or datetime.now(UTC)) - last_seen).total_seconds()
    return {
        "status": "online" if age_seconds < offline_after_seconds else "offline",
        "last_heartbeat": last_seen.isoformat(),
        "age_seconds": round(age_seconds, 1),
        "name": row.name,
        "avatar_url": row.avatar_url,
    }


# ---------------------------------------------------------------------------
# Server statistics
# ---------------------------------------------------------------------------
_STATS_COUNTERS = (
    "member_count", "online_count", "messages_today", "command_count", "total_warnings",
)


@dataclass
class StatsSnapshot:
    """Dashboard counters for one guild, blobs already decoded."""
    guild_id: str
    member_count: int = 0
    online_count: int = 0
    messages_today: int = 0
    command_count: int = 0
    total_warnings: int = 0
    messages_weekly: list[dict] = field(default_factory=list)
    role_distribution: list[dict] = field(default_factory=list)
    updated_at: datetime | None = None

    def to_wire(self) -> dict:
        return {
            "guildId": self.guild_id,
            "memberCount": self.member_count,
            "onlineCount": self.online_count,
            "messagesToday": self.messages_today,
            "commandCount": self.command_count,
            "totalWarnings": self.total_warnings,
            "messagesWeekly": self.messages_weekly,
            "roleDistribution": self.role_distribution,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }


def _json_list(raw: str | None, guild_id: str, column: str) -> list[dict]:
    """Decode a chart blob; anything but a JSON list of objects reads as empty."""
    if not raw or not raw.strip():
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Unreadable %s blob in server stats for guild %s", column, guild_id)
        return []
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _counter(value) -> int:
    return value if isinstance(value, int) and value >= 0 else 0


def _snapshot(row: ServerStats) -> StatsSnapshot:
    return StatsSnapshot(
        guild_id=row.guild_id,
        **{name: _counter(getattr(row, name)) for name in _STATS_COUNTERS},
        messages_weekly=_json_list(row.messages_weekly, row.guild_id, "messages_weekly"),
        role_distribution=_json_list(row.role_distribution, row.guild_id, "role_distribution"),
        updated_at=as_utc(row.updated_at),
    )


def _find_stats(session: Session, guild_id: str) -> ServerStats | None:
    return session.scalar(select(ServerStats).where(ServerStats.guild_id == guild_id))


def get_server_stats(engine, guild_id: str) -> StatsSnapshot:
    """The guild's counters, creating a zeroed document on first read."""
    try:
        with Session(engine, expire_on_commit=False) as session:
            row = _find_stats(session, guild_id)
            if row is not None:
                return _snapshot(row)
            row = ServerStats(guild_id=guild_id, messages_weekly="[]", role_distribution="[]")
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                row = _find_stats(session, guild_id)
                if row is None:
                    raise
                return _snapshot(row)
            logger.info("Created zeroed server stats for guild %s", guild_id)
            return _snapshot(row)
    except SQLAlchemyError:
        log_store_failure("load", ServerStats.__tablename__, guild_id)
        raise


def save_server_stats(engine, stats: StatsSnapshot) -> None:
    """Bot side: overwrite the guild's counters and chart blobs."""
    with Session(engine) as session:
        row = _find_stats(session, stats.guild_id)
        if row is None:
            row = ServerStats(guild_id=stats.guild_id)
            session.add(row)
        for name in _STATS_COUNTERS:
            setattr(row, name, getattr(stats, name))
        row.messages_weekly = json.dumps(stats.messages_weekly)
        row.role_distribution = json.dumps(stats.role_distribution)
        session.commit()
