"""
guildboard.services.leveling_service — Leaderboard, Rewards & XP Awards
========================================================================

Reads ``user_levels`` for the leaderboard and per-user progress, and
edits the role-reward list inside the guild's ``leveling`` settings
section.  :func:`award_xp` is the bot-side writer.
"""

from __future__ import annotations

import dataclasses
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from guildboard.constants import LEADERBOARD_LIMIT
from guildboard.database.models import UserLevel
from guildboard.database.store import list_documents
from guildboard.engine import leveling
from guildboard.engine.leveling import LevelProgress
from guildboard.engine.sections import GuildSettings
from guildboard.services.settings_service import load_settings, save_settings

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------
def get_leaderboard(engine, guild_id: str, limit: int = LEADERBOARD_LIMIT) -> list[UserLevel]:
    """Top users by level, then XP, then user id (stable tie-break)."""
    return list_documents(
        engine, UserLevel,
        where=[UserLevel.guild_id == guild_id],
        order_by=[UserLevel.level.desc(), UserLevel.xp.desc(), UserLevel.user_id.asc()],
        limit=limit,
    )


def get_user_level(engine, guild_id: str, user_id: str) -> UserLevel | None:
    with Session(engine, expire_on_commit=False) as session:
        row = session.scalar(
            select(UserLevel).where(
                UserLevel.guild_id == guild_id, UserLevel.user_id == user_id,
            )
        )
        if row is not None:
            session.expunge(row)
        return row


def get_user_progress(engine, guild_id: str, user_id: str) -> LevelProgress | None:
    row = get_user_level(engine, guild_id, user_id)
    if row is None:
        return None
    return leveling.level_progress(row.level, row.xp)


# ---------------------------------------------------------------------------
# Role rewards (stored inside the leveling section)
# ---------------------------------------------------------------------------
def _with_rewards(settings: GuildSettings, rewards) -> GuildSettings:
    return dataclasses.replace(
        settings, leveling=dataclasses.replace(settings.leveling, role_rewards=rewards),
    )


def add_role_reward(engine, guild_id: str, level: int, role_id: str) -> GuildSettings:
    """Add a reward and save.

    Raises
    ------
    DuplicateRewardError
        A reward already exists at *level*; nothing is written.
    ValueError
        Level below 1 or an empty role id.
    """
    settings = load_settings(engine, guild_id)
    rewards = leveling.add_role_reward(settings.leveling.role_rewards, level, role_id)
    logger.info("Role reward added for guild %s: level %d → %s", guild_id, level, role_id)
    return save_settings(engine, _with_rewards(settings, rewards))


def remove_role_reward(engine, guild_id: str, level: int) -> GuildSettings:
    settings = load_settings(engine, guild_id)
    rewards = leveling.remove_role_reward(settings.leveling.role_rewards, level)
    if rewards == settings.leveling.role_rewards:
        return settings
    logger.info("Role reward removed for guild %s at level %d", guild_id, level)
    return save_settings(engine, _with_rewards(settings, rewards))


# ---------------------------------------------------------------------------
# Bot-side XP award
# ---------------------------------------------------------------------------
def award_xp(
    engine,
    guild_id: str,
    user_id: str,
    username: str,
    amount: int,
    *,
    avatar_url: str | None = None,
) -> tuple[UserLevel, bool]:
    """Add *amount* XP and recompute the level.

    XP never decreases; a negative *amount* is treated as zero.
    Returns ``(row, levelled_up)``.
    """
    amount = max(0, int(amount))

    def _apply(session: Session) -> tuple[UserLevel, bool]:
        row = session.scalar(
            select(UserLevel).where(
                UserLevel.guild_id == guild_id, UserLevel.user_id == user_id,
            )
        )
        if row is None:
            row = UserLevel(guild_id=guild_id, user_id=user_id, username=username,
                            level=0, xp=0)
            session.add(row)
        before = row.level or 0
        row.xp = (row.xp or 0) + amount
        row.level = max(before, leveling.level_for_xp(row.xp))
        row.username = username
        if avatar_url is not None:
            row.user_avatar_url = avatar_url
        session.commit()
        session.refresh(row)
        session.expunge(row)
        return row, row.level > before

    with Session(engine, expire_on_commit=False) as session:
        try:
            row, levelled_up = _apply(session)
        except IntegrityError:
            # First message raced with another worker creating the row.
            session.rollback()
            row, levelled_up = _apply(session)

    if levelled_up:
        logger.info("User %s reached level %d in guild %s", user_id, row.level, guild_id)
    return row, levelled_up
