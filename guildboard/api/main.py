"""
guildboard.api.main — FastAPI application entry point
======================================================

Run with::

    uvicorn guildboard.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

load_dotenv()

from guildboard.api.auth import router as auth_router  # noqa: E402
from guildboard.api.deps import get_config, get_engine  # noqa: E402
from guildboard.api.routes.guilds import router as guilds_router  # noqa: E402
from guildboard.api.routes.queues import router as queues_router  # noqa: E402
from guildboard.api.routes.settings import router as settings_router  # noqa: E402
from guildboard.config import GuildboardConfig  # noqa: E402
from guildboard.services.log_buffer import install_handler  # noqa: E402
from guildboard.services.status_service import get_bot_heartbeat  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Origins the dashboard front-end is served from.

    ``CORS_ALLOW_ORIGINS`` (comma-separated) wins over ``FRONTEND_URL``.
    With neither set, no cross-origin requests are allowed.
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip() or os.getenv("FRONTEND_URL", "").strip()
    return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Uvicorn reconfigures logging on start; attach the buffer afterwards.
    install_handler()
    engine = get_engine()
    logger.info("Guildboard API ready (database: %s)", engine.url.database)
    yield
    logger.info("Guildboard API shutting down")


app = FastAPI(title="Guildboard Dashboard API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def database_unavailable(request: Request, exc: SQLAlchemyError):
    """The document store is down or rejected the write; surface a retryable 503."""
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Document store unavailable"})


for router in (auth_router, settings_router, queues_router, guilds_router):
    app.include_router(router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}


@app.get("/api/health/bot")
def bot_health(
    engine=Depends(get_engine),
    cfg: GuildboardConfig = Depends(get_config),
):
    """Bot heartbeat, judged against ``bot_offline_after_seconds``."""
    return get_bot_heartbeat(engine, cfg.bot_offline_after_seconds)
