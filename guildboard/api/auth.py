"""
guildboard.api.auth — Current admin identity
=============================================

Tokens are issued by the OAuth front door, which is not part of this
service.  The API only verifies them (see :func:`get_current_admin`).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from guildboard.api.deps import get_current_admin
from guildboard.constants import UNKNOWN_NAME

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
async def me(admin: dict = Depends(get_current_admin)):
    """Return the current authenticated admin's info."""
    return {
        "id": admin["sub"],
        "username": admin.get("username", UNKNOWN_NAME),
        "avatar": admin.get("avatar"),
        "is_admin": True,
    }
