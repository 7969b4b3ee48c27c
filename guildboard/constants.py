"""
guildboard.constants — Shared Constants & Helpers
==================================================

Single source of truth for presentation placeholders, hand-off sentinels
and the leveling curve.  Import from here instead of duplicating in
services, routes and tests.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Display placeholders (metadata cache may lag behind Discord)
# ---------------------------------------------------------------------------
PENDING_NAME = "(name pending…)"
UNKNOWN_NAME = "Unknown"

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

# ---------------------------------------------------------------------------
# Hand-off sentinels
# ---------------------------------------------------------------------------
# Written into ``message_id`` until the bot has posted the Discord message.
PENDING_MESSAGE_ID = "pending"

# Single-row key for the bot status document.
BOT_STATUS_KEY = "main"

# ---------------------------------------------------------------------------
# Read caps
# ---------------------------------------------------------------------------
LEADERBOARD_LIMIT = 100
LOG_PAGE_LIMIT = 100
MEMBERS_PAGE_SIZE = 25
SERVERS_LIMIT = 100

# Number of announced video ids remembered per YouTube subscription.
ANNOUNCED_VIDEO_HISTORY = 50


# ---------------------------------------------------------------------------
# Leveling formula — THE single canonical implementation
# ---------------------------------------------------------------------------
def total_xp_for_level(level: int) -> int:
    """Cumulative XP required to have *reached* ``level``.

    Uses the quadratic curve the bot assigns levels with::

        required = 5 * level**2 + 50 * level + 100      (level >= 1)

    Level 0 (and anything below) starts at 0 XP, so reaching level 1
    takes 155 XP and level 2 takes 220.
    """
    if level <= 0:
        return 0
    return 5 * level**2 + 50 * level + 100
