"""
guildboard.services.settings_service — Config Resolver
=======================================================

Typed read/write access to the ``guild_settings`` table.

* :func:`load_settings` is get-or-create: a guild that has never been
  configured gets a document with every section defaulted, and the
  caller never sees a not-found error.
* :func:`save_settings` overwrites the whole document (all five
  sections, last write wins) and returns a fresh read.

Loading then saving then loading again yields identical sections.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from guildboard.database.models import SettingsDocument
from guildboard.database.store import log_store_failure
from guildboard.engine.sections import DEFAULT_SECTIONS, SECTIONS, GuildSettings

logger = logging.getLogger(__name__)

CURRENT_SCHEMA_GENERATION = 2

_COLLECTION = SettingsDocument.__tablename__


def _default_columns(defaults: Mapping[str, Mapping[str, Any]]) -> dict[str, str]:
    blank = GuildSettings.from_wire("", {}, defaults)
    return blank.columns()


def _find(session: Session, guild_id: str) -> SettingsDocument | None:
    return session.scalar(
        select(SettingsDocument).where(SettingsDocument.guild_id == guild_id)
    )


def _resolve(doc: SettingsDocument, defaults) -> GuildSettings:
    if (doc.schema_generation or 0) < CURRENT_SCHEMA_GENERATION:
        logger.warning(
            "Settings for guild %s are schema generation %s; resolving from section columns",
            doc.guild_id, doc.schema_generation,
        )
    return GuildSettings.from_document(doc, defaults)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def load_settings(
    engine,
    guild_id: str,
    *,
    defaults: Mapping[str, Mapping[str, Any]] = DEFAULT_SECTIONS,
) -> GuildSettings:
    """Return the guild's settings, creating a defaulted document if absent."""
    try:
        with Session(engine, expire_on_commit=False) as session:
            doc = _find(session, guild_id)
            if doc is not None:
                return _resolve(doc, defaults)

            doc = SettingsDocument(
                guild_id=guild_id,
                schema_generation=CURRENT_SCHEMA_GENERATION,
                **_default_columns(defaults),
            )
            session.add(doc)
            try:
                session.commit()
            except IntegrityError:
                # Another request created it first; use theirs.
                session.rollback()
                doc = _find(session, guild_id)
                if doc is None:
                    raise
                return _resolve(doc, defaults)
            logger.info("Created default settings for guild %s", guild_id)
            return _resolve(doc, defaults)
    except SQLAlchemyError:
        log_store_failure("load", _COLLECTION, guild_id)
        raise


def get_settings_document(engine, guild_id: str) -> SettingsDocument | None:
    """Raw stored document (no defaulting).  ``None`` if never created."""
    with Session(engine, expire_on_commit=False) as session:
        doc = _find(session, guild_id)
        if doc is not None:
            session.expunge(doc)
        return doc


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def save_settings(
    engine,
    settings: GuildSettings,
    *,
    defaults: Mapping[str, Mapping[str, Any]] = DEFAULT_SECTIONS,
) -> GuildSettings:
    """Overwrite every section of the guild's document, then re-read it.

    The whole document is written even if only one section changed;
    concurrent saves resolve last-write-wins.
    """
    columns = settings.columns()
    try:
        with Session(engine, expire_on_commit=False) as session:
            doc = _find(session, settings.guild_id)
            if doc is None:
                doc = SettingsDocument(guild_id=settings.guild_id)
                session.add(doc)
            for column, blob in columns.items():
                setattr(doc, column, blob)
            doc.schema_generation = CURRENT_SCHEMA_GENERATION
            session.commit()
    except SQLAlchemyError:
        log_store_failure("save", _COLLECTION, settings.guild_id)
        raise

    logger.info(
        "Saved settings for guild %s (%s)",
        settings.guild_id, ", ".join(SECTIONS),
    )
    return load_settings(engine, settings.guild_id, defaults=defaults)
