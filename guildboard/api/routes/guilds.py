"""
guildboard.api.routes.guilds — Read surfaces & custom commands
===============================================================
"""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from guildboard.api.deps import get_config, get_current_admin, get_engine
from guildboard.config import GuildboardConfig
from guildboard.constants import RANK_BADGES, UNKNOWN_NAME
from guildboard.database.models import as_utc
from guildboard.engine.leveling import level_progress
from guildboard.services import (
    command_service,
    leveling_service,
    log_service,
    metadata_service,
    status_service,
)
from guildboard.services.command_service import DuplicateCommandError

router = APIRouter(prefix="/admin", tags=["guilds"])
logger = logging.getLogger(__name__)


def _iso(value) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value else None


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class CommandCreate(BaseModel):
    command: str = Field(min_length=1, max_length=64)
    response: str = ""
    is_embed: bool = False
    embed_content: dict | None = None


class CommandUpdate(BaseModel):
    command: str | None = Field(None, min_length=1, max_length=64)
    response: str | None = None
    is_embed: bool | None = None
    embed_content: dict | None = None


def _command_out(row) -> dict:
    try:
        embed = json.loads(row.embed_content or "{}")
    except json.JSONDecodeError:
        embed = {}
    return {
        "id": row.id,
        "guildId": row.guild_id,
        "command": row.command,
        "response": row.response,
        "isEmbed": row.is_embed,
        "embedContent": embed,
    }


# ---------------------------------------------------------------------------
# Servers & bot
# ---------------------------------------------------------------------------
@router.get("/servers")
def list_servers(
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return [
        {"id": s.id, "guildId": s.guild_id, "name": s.name, "iconUrl": s.icon_url}
        for s in status_service.list_servers(engine)
    ]


@router.get("/bot")
def bot_info(
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: GuildboardConfig = Depends(get_config),
):
    return status_service.get_bot_heartbeat(engine, cfg.bot_offline_after_seconds)


@router.get("/guilds/{guild_id}/stats")
def get_server_stats(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    """Dashboard counters; a guild with none yet gets a zeroed document."""
    return status_service.get_server_stats(engine, guild_id).to_wire()


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/metadata")
def get_metadata(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    """Channel/role snapshot.  ``synced`` is false until the bot has written one."""
    snapshot = metadata_service.get_metadata(engine, guild_id)
    if snapshot is None:
        return {"guildId": guild_id, "synced": False, "channels": [], "roles": [],
                "syncedAt": None, "ageSeconds": None}
    return {
        **snapshot.to_wire(),
        "synced": True,
        "ageSeconds": metadata_service.metadata_age_seconds(snapshot),
    }


# ---------------------------------------------------------------------------
# Leveling
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/leaderboard")
def get_leaderboard(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: GuildboardConfig = Depends(get_config),
):
    rows = leveling_service.get_leaderboard(engine, guild_id, cfg.leaderboard_limit)
    out = []
    for rank, row in enumerate(rows, start=1):
        progress = level_progress(row.level, row.xp)
        out.append({
            "rank": rank,
            "badge": RANK_BADGES[rank - 1] if rank <= len(RANK_BADGES) else None,
            "userId": row.user_id,
            "username": row.username or UNKNOWN_NAME,
            "userAvatarUrl": row.user_avatar_url,
            "level": row.level,
            "xp": row.xp,
            "xpInLevel": progress.xp_in_level,
            "xpNeeded": progress.xp_needed,
            "progressPct": progress.progress_pct,
        })
    return out


@router.get("/guilds/{guild_id}/users/{user_id}/progress")
def get_user_progress(
    guild_id: str,
    user_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    progress = leveling_service.get_user_progress(engine, guild_id, user_id)
    if progress is None:
        raise HTTPException(404, "User has no XP in this guild")
    return {
        "userId": user_id,
        "level": progress.level,
        "xp": progress.xp,
        "xpInLevel": progress.xp_in_level,
        "xpNeeded": progress.xp_needed,
        "progressPct": progress.progress_pct,
    }


# ---------------------------------------------------------------------------
# Logs & members
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/audit-logs")
def get_audit_logs(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: GuildboardConfig = Depends(get_config),
):
    return [
        {
            "id": e.id,
            "type": e.type,
            "user": e.user,
            "userId": e.user_id,
            "userAvatarUrl": e.user_avatar_url,
            "content": e.content,
            "timestamp": _iso(e.timestamp),
        }
        for e in log_service.list_audit_logs(engine, guild_id, cfg.log_page_limit)
    ]


@router.get("/guilds/{guild_id}/command-logs")
def get_command_logs(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: GuildboardConfig = Depends(get_config),
):
    return [
        {
            "id": e.id,
            "command": e.command,
            "user": e.user,
            "userId": e.user_id,
            "userAvatarUrl": e.user_avatar_url,
            "timestamp": _iso(e.timestamp),
        }
        for e in log_service.list_command_logs(engine, guild_id, cfg.log_page_limit)
    ]


@router.get("/guilds/{guild_id}/members")
def get_members(
    guild_id: str,
    page: int = Query(1, ge=1),
    search: str | None = Query(None, max_length=100),
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
    cfg: GuildboardConfig = Depends(get_config),
):
    result = log_service.list_members(
        engine, guild_id, page=page, search=search, page_size=cfg.members_page_size,
    )
    return {
        "total": result.total,
        "page": result.page,
        "pages": result.pages,
        "members": [
            {
                "userId": m.user_id,
                "username": m.username,
                "userAvatarUrl": m.user_avatar_url,
                "joinedAt": _iso(m.joined_at),
            }
            for m in result.members
        ],
    }


# ---------------------------------------------------------------------------
# Custom commands
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/commands")
def list_commands(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return [_command_out(c) for c in command_service.list_commands(engine, guild_id)]


@router.post("/guilds/{guild_id}/commands", status_code=201)
def create_command(
    guild_id: str,
    body: CommandCreate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    try:
        row = command_service.create_command(
            engine, guild_id, body.command, body.response,
            is_embed=body.is_embed, embed_content=body.embed_content,
        )
    except DuplicateCommandError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return _command_out(row)


def _owned_command(engine, guild_id: str, command_id: str):
    for row in command_service.list_commands(engine, guild_id):
        if row.id == command_id:
            return row
    raise HTTPException(404, "Command not found")


@router.patch("/guilds/{guild_id}/commands/{command_id}")
def update_command(
    guild_id: str,
    command_id: str,
    body: CommandUpdate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    _owned_command(engine, guild_id, command_id)
    try:
        row = command_service.update_command(
            engine, command_id, **body.model_dump(exclude_none=True),
        )
    except DuplicateCommandError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    if row is None:
        raise HTTPException(404, "Command not found")
    return _command_out(row)


@router.delete("/guilds/{guild_id}/commands/{command_id}")
def delete_command(
    guild_id: str,
    command_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    _owned_command(engine, guild_id, command_id)
    command_service.delete_command(engine, command_id)
    return {"deleted": True}
