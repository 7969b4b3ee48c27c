"""
guildboard.config — YAML Configuration Loader
==============================================

**Why this file exists:**
This module reads ``config.yaml`` for **infrastructure-only** settings
(dashboard port, polling tolerances, page sizes).  Per-guild behaviour
(welcome messages, leveling, auto-mod) lives in the ``guild_settings``
table, editable from the dashboard.

Usage::

    from guildboard.config import load_config

    cfg = load_config()              # reads ./config.yaml by default
    print(cfg.poll_grace_seconds)    # 120
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object — infrastructure only.
# Per-guild behaviour lives in the DB ``guild_settings`` table.
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class GuildboardConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every field has a default so a missing file section never stops the
    dashboard from starting.
    """

    # Dashboard
    dashboard_port: int = 8000

    # Hand-off protocol
    poll_grace_seconds: int = 120  # Non-terminal resources older than this are "stuck"
    bot_offline_after_seconds: int = 90  # Heartbeat age after which the bot is offline

    # Read surfaces
    leaderboard_limit: int = 100
    members_page_size: int = 25
    log_page_limit: int = 100


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> GuildboardConfig:
    """Read *path* and return a :class:`GuildboardConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a value cannot be converted to an integer.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    values = {}
    for field in fields(GuildboardConfig):
        if field.name in raw:
            try:
                values[field.name] = int(raw[field.name])
            except (TypeError, ValueError) as exc:
                raise ValueError(
                    f"{config_path}: {field.name} must be an integer, got {raw[field.name]!r}"
                ) from exc
    return GuildboardConfig(**values)
