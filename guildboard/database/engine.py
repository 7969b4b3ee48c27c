"""
guildboard.database.engine — Database Connection
=================================================

Services are plain synchronous functions that take an ``engine`` first
and open their own short-lived sessions.  FastAPI runs the sync route
handlers that call them in its worker threadpool, so the pool below is
sized for that, not for one connection per request coroutine.

Usage::

    engine = create_db_engine()          # DATABASE_URL from .env
    init_db(engine)
    settings = load_settings(engine, guild_id)
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url

from guildboard.database.models import Base

logger = logging.getLogger(__name__)

# Applied to server databases only; SQLite picks its own pool class.
_SERVER_POOL_OPTIONS = {
    "pool_size": 5,
    "max_overflow": 10,
    "pool_timeout": 10,
    "pool_recycle": 3600,
}


def create_db_engine(url: str | None = None) -> Engine:
    """Build the process-wide :class:`Engine`.

    ``url`` defaults to the ``DATABASE_URL`` env var.  A missing URL is a
    :class:`RuntimeError` since nothing in the dashboard works without
    the document store.
    """
    url = url or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example to .env and point it at the dashboard database."
        )

    parsed = make_url(url)
    options = {} if parsed.get_backend_name() == "sqlite" else dict(_SERVER_POOL_OPTIONS)
    engine = create_engine(parsed, pool_pre_ping=True, **options)
    logger.info(
        "Database engine created (%s @ %s)",
        parsed.get_backend_name(), parsed.host or parsed.database,
    )
    return engine


def init_db(engine: Engine) -> None:
    """Create any missing collection tables.

    Settings documents are created lazily per guild on first read, so
    nothing is seeded.  Production schemas are owned by Alembic
    (``alembic upgrade head``); this is for dev and tests.
    """
    Base.metadata.create_all(engine)
    logger.info("Collection tables verified")
