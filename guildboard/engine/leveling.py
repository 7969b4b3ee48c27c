"""
guildboard.engine.leveling — XP Progress, Leaderboard Order, Role Rewards
==========================================================================

Pure functions over the canonical curve in
:func:`guildboard.constants.total_xp_for_level`.  No database access.

The dashboard only *displays* levels; the bot assigns them.  Both sides
must agree on the curve, which is why :func:`level_for_xp` lives here
next to the display math instead of in the bot.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Protocol

from guildboard.constants import LEADERBOARD_LIMIT, total_xp_for_level


class DuplicateRewardError(ValueError):
    """A role reward already exists at this level."""


# ---------------------------------------------------------------------------
# Level curve
# ---------------------------------------------------------------------------
def level_for_xp(xp: int) -> int:
    """Largest level ``L`` with ``total_xp_for_level(L) <= xp``."""
    if xp < total_xp_for_level(1):
        return 0
    # Invert 5L² + 50L + 100 = xp, then correct for float error.
    level = int((-50 + math.sqrt(2500 - 20 * (100 - xp))) / 10)
    while total_xp_for_level(level + 1) <= xp:
        level += 1
    while level > 0 and total_xp_for_level(level) > xp:
        level -= 1
    return level


@dataclass(frozen=True, slots=True)
class LevelProgress:
    level: int
    xp: int
    xp_in_level: int
    xp_needed: int
    progress_pct: int


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def level_progress(level: int, xp: int) -> LevelProgress:
    """Progress of a stored ``(level, xp)`` pair towards the next level.

    ``progress_pct`` is clamped to ``[0, 100]`` and is ``100`` when the
    level span is empty.  Stored XP may already exceed the next threshold
    if the bot has not re-levelled the user yet.
    """
    floor_xp = total_xp_for_level(level)
    xp_in_level = xp - floor_xp
    xp_needed = total_xp_for_level(level + 1) - floor_xp
    if xp_needed <= 0:
        pct = 100
    else:
        pct = max(0, min(100, _round_half_up(xp_in_level / xp_needed * 100)))
    return LevelProgress(
        level=level,
        xp=xp,
        xp_in_level=xp_in_level,
        xp_needed=xp_needed,
        progress_pct=pct,
    )


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------
class Ranked(Protocol):
    user_id: str
    level: int
    xp: int


def rank_leaderboard(entries: Iterable[Ranked], limit: int = LEADERBOARD_LIMIT) -> list:
    """Order by level desc, xp desc, user id asc; keep the first *limit*."""
    ordered = sorted(entries, key=lambda e: (-e.level, -e.xp, e.user_id))
    return ordered[:limit]


# ---------------------------------------------------------------------------
# Role rewards
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True, order=True)
class RoleReward:
    """Grant ``role_id`` on reaching ``level``.  Sorts by level."""
    level: int
    role_id: str

    def to_wire(self) -> dict:
        return {"level": self.level, "roleId": self.role_id}


def add_role_reward(
    rewards: Sequence[RoleReward], level: int, role_id: str
) -> tuple[RoleReward, ...]:
    """Return a new sorted reward tuple with ``(level, role_id)`` added.

    Raises
    ------
    ValueError
        If ``level < 1`` or ``role_id`` is empty.
    DuplicateRewardError
        If a reward already exists at ``level``.  *rewards* is untouched.
    """
    if level < 1:
        raise ValueError("Reward level must be at least 1")
    if not role_id:
        raise ValueError("A role is required")
    if any(r.level == level for r in rewards):
        raise DuplicateRewardError("A reward for this level already exists")
    return tuple(sorted([*rewards, RoleReward(level=level, role_id=role_id)]))


def remove_role_reward(rewards: Sequence[RoleReward], level: int) -> tuple[RoleReward, ...]:
    """Drop the reward at *level* (if any)."""
    return tuple(sorted(r for r in rewards if r.level != level))
