"""
guildboard.__main__ — Entry point for ``python -m guildboard``
===============================================================

Wiring:
1. Load .env (secrets, DATABASE_URL).
2. Load config.yaml (infrastructure knobs).
3. Create the SQLAlchemy engine and ensure tables exist.
4. Serve the dashboard API with Uvicorn (blocking).

Run with::

    python -m guildboard
"""

from __future__ import annotations

import logging
import sys

import uvicorn
from dotenv import load_dotenv

from guildboard.config import load_config
from guildboard.database.engine import create_db_engine, init_db

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("guildboard")


def main() -> None:
    """Bootstrap and serve the Guildboard API."""
    load_dotenv()

    try:
        cfg = load_config()
    except FileNotFoundError as exc:
        logger.critical("%s", exc)
        sys.exit(1)

    engine = create_db_engine()
    init_db(engine)
    engine.dispose()

    logger.info("Starting Guildboard API on port %d…", cfg.dashboard_port)
    uvicorn.run(
        "guildboard.api.main:app",
        host="0.0.0.0",
        port=cfg.dashboard_port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
