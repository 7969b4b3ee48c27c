"""
Guildboard — Configuration Dashboard Back-end for a Discord Community Bot
=========================================================================
Reads and writes the documents a separate bot process polls: per-guild
settings, moderation and giveaway intents, reaction-role messages,
scheduled messages, YouTube alerts, leveling data.  The dashboard never
talks to Discord itself; every side effect is handed off through the
shared database and picked up by the bot on its next poll.

Package layout::

    guildboard/
    ├── __main__.py        # `python -m guildboard` → Uvicorn
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Placeholders + the canonical XP curve
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + schema init
    │   ├── models.py      # One table per document collection
    │   └── store.py       # Generic list/get/create/update/delete helpers
    ├── engine/
    │   ├── sections.py    # Settings sections + merge-over-defaults
    │   ├── leveling.py    # XP progress, leaderboard order, role rewards
    │   ├── lifecycle.py   # Resource status state machine
    │   └── queue.py       # Queue-item tagged union
    ├── services/
    │   ├── settings_service.py   # Config resolver (load / save)
    │   ├── queue_service.py      # Producer side of the hand-off protocol
    │   ├── consumer_service.py   # What the bot must do with a queue item
    │   ├── moderation_service.py # Kick / ban hand-off
    │   ├── metadata_service.py   # Channel / role snapshot reader
    │   ├── leveling_service.py   # Leaderboard, rewards, XP awards
    │   ├── log_service.py        # Audit / command logs, member directory
    │   ├── command_service.py    # Custom command CRUD
    │   ├── status_service.py     # Servers, bot heartbeat, server stats
    │   └── log_buffer.py         # In-memory ring buffer for live logs
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # Engine, config and JWT identity dependencies
        ├── auth.py        # /auth/me
        ├── submit_guard.py # Rejects double-submitted creates
        └── routes/        # Settings, queue and guild endpoints
"""

__version__ = "0.1.0"
