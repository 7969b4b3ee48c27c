"""
guildboard.api.routes.settings — Guild settings, role rewards & live logs
==========================================================================
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from guildboard.api.deps import get_current_admin, get_engine
from guildboard.engine.leveling import DuplicateRewardError
from guildboard.engine.sections import GuildSettings
from guildboard.services import leveling_service, settings_service
from guildboard.services.log_buffer import (
    VALID_LEVELS,
    get_current_level,
    get_logs,
    set_capture_level,
)

router = APIRouter(prefix="/admin", tags=["settings"])
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SettingsUpdate(BaseModel):
    """Section blobs in wire format.  Omitted sections keep their stored value."""
    welcome: dict[str, Any] | None = None
    goodbye: dict[str, Any] | None = None
    autoRole: dict[str, Any] | None = None
    leveling: dict[str, Any] | None = None
    autoMod: dict[str, Any] | None = None


class RoleRewardCreate(BaseModel):
    level: int
    role_id: str = Field(min_length=1)


class LogLevelUpdate(BaseModel):
    level: str


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/settings")
def get_settings(
    guild_id: str,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    return settings_service.load_settings(engine, guild_id).to_wire()


@router.put("/guilds/{guild_id}/settings")
def update_settings(
    guild_id: str,
    body: SettingsUpdate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    current = settings_service.load_settings(engine, guild_id)
    payload = {**current.to_wire(), **body.model_dump(exclude_none=True)}
    incoming = GuildSettings.from_wire(guild_id, payload, doc_id=current.id)
    saved = settings_service.save_settings(engine, incoming)
    logger.info("Settings for guild %s updated by %s", guild_id, admin["sub"])
    return saved.to_wire()


# ---------------------------------------------------------------------------
# Role rewards
# ---------------------------------------------------------------------------
@router.post("/guilds/{guild_id}/role-rewards", status_code=201)
def add_role_reward(
    guild_id: str,
    body: RoleRewardCreate,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    try:
        saved = leveling_service.add_role_reward(engine, guild_id, body.level, body.role_id)
    except DuplicateRewardError as exc:
        raise HTTPException(409, str(exc))
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    return {"roleRewards": [r.to_wire() for r in saved.leveling.role_rewards]}


@router.delete("/guilds/{guild_id}/role-rewards/{level}")
def remove_role_reward(
    guild_id: str,
    level: int,
    admin: dict = Depends(get_current_admin),
    engine=Depends(get_engine),
):
    saved = leveling_service.remove_role_reward(engine, guild_id, level)
    return {"roleRewards": [r.to_wire() for r in saved.leveling.role_rewards]}


# ---------------------------------------------------------------------------
# Live logs (in-memory ring buffer)
# ---------------------------------------------------------------------------
@router.get("/logs")
def read_logs(
    tail: int = Query(200, ge=1, le=2000),
    level: str | None = Query(None),
    logger_name: str | None = Query(None, alias="logger"),
    guild_id: str | None = Query(None),
    admin: dict = Depends(get_current_admin),
):
    return {
        "logs": get_logs(tail=tail, level=level, logger_filter=logger_name, guild_id=guild_id),
        "capture_level": get_current_level(),
        "valid_levels": list(VALID_LEVELS),
    }


@router.put("/logs/level")
def update_log_level(
    body: LogLevelUpdate,
    admin: dict = Depends(get_current_admin),
):
    try:
        new_level = set_capture_level(body.level)
    except ValueError as exc:
        raise HTTPException(400, str(exc))
    logger.info("Log capture level set to %s by %s", new_level, admin["sub"])
    return {"capture_level": new_level}
