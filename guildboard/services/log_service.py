"""
guildboard.services.log_service — Audit Log, Command Log & Members
===================================================================

Read surfaces over bot-owned, append-only collections.  The dashboard
never writes these; the ``append_*`` helpers are for the bot process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from guildboard.constants import LOG_PAGE_LIMIT, MEMBERS_PAGE_SIZE
from guildboard.database.models import AuditLogEntry, CommandLogEntry, GuildMember
from guildboard.database.store import create_document, list_documents

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Logs
# ---------------------------------------------------------------------------
def list_audit_logs(engine, guild_id: str, limit: int = LOG_PAGE_LIMIT) -> list[AuditLogEntry]:
    """Newest first."""
    return list_documents(
        engine, AuditLogEntry,
        where=[AuditLogEntry.guild_id == guild_id],
        order_by=[AuditLogEntry.timestamp.desc(), AuditLogEntry.id.desc()],
        limit=min(limit, LOG_PAGE_LIMIT),
    )


def list_command_logs(engine, guild_id: str, limit: int = LOG_PAGE_LIMIT) -> list[CommandLogEntry]:
    return list_documents(
        engine, CommandLogEntry,
        where=[CommandLogEntry.guild_id == guild_id],
        order_by=[CommandLogEntry.timestamp.desc(), CommandLogEntry.id.desc()],
        limit=min(limit, LOG_PAGE_LIMIT),
    )


def append_audit_log(
    engine,
    guild_id: str,
    log_type: str,
    *,
    user: str,
    user_id: str,
    content: str,
    user_avatar_url: str | None = None,
    timestamp: datetime | None = None,
) -> AuditLogEntry:
    return create_document(engine, AuditLogEntry(
        guild_id=guild_id,
        type=str(log_type),
        user=user,
        user_id=user_id,
        user_avatar_url=user_avatar_url,
        content=content,
        timestamp=timestamp or datetime.now(UTC),
    ))


def append_command_log(
    engine,
    guild_id: str,
    command: str,
    *,
    user: str,
    user_id: str,
    user_avatar_url: str | None = None,
    timestamp: datetime | None = None,
) -> CommandLogEntry:
    return create_document(engine, CommandLogEntry(
        guild_id=guild_id,
        command=command,
        user=user,
        user_id=user_id,
        user_avatar_url=user_avatar_url,
        timestamp=timestamp or datetime.now(UTC),
    ))


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------
@dataclass
class MemberPage:
    members: list[GuildMember]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.page_size))


def list_members(
    engine,
    guild_id: str,
    *,
    page: int = 1,
    search: str | None = None,
    page_size: int = MEMBERS_PAGE_SIZE,
) -> MemberPage:
    """One page of members ordered by username.

    *search* is a case-insensitive substring match on the username.
    Pages are 1-based; a page past the end is empty.
    """
    page = max(1, page)
    conditions = [GuildMember.guild_id == guild_id]
    if search and search.strip():
        conditions.append(func.lower(GuildMember.username).contains(search.strip().lower()))

    with Session(engine, expire_on_commit=False) as session:
        total = session.scalar(
            select(func.count()).select_from(GuildMember).where(*conditions)
        ) or 0
        rows = list(session.scalars(
            select(GuildMember)
            .where(*conditions)
            .order_by(GuildMember.username.asc(), GuildMember.user_id.asc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        ).all())
        session.expunge_all()

    return MemberPage(members=rows, total=total, page=page, page_size=page_size)


def upsert_member(
    engine,
    guild_id: str,
    user_id: str,
    username: str,
    joined_at: datetime,
    user_avatar_url: str | None = None,
) -> None:
    """Bot-side member directory sync."""
    with Session(engine) as session:
        row = session.scalar(
            select(GuildMember).where(
                GuildMember.guild_id == guild_id, GuildMember.user_id == user_id,
            )
        )
        if row is None:
            row = GuildMember(guild_id=guild_id, user_id=user_id, joined_at=joined_at,
                              username=username)
            session.add(row)
        row.username = username
        row.user_avatar_url = user_avatar_url
        session.commit()
