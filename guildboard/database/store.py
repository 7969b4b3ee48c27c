"""
guildboard.database.store — Generic Document Helpers
=====================================================

Thin CRUD wrappers shared by every service.  Each helper opens its own
session, returns expunged objects, and on failure logs the guild,
collection and operation before re-raising.  Unique-index conflicts
(:class:`~sqlalchemy.exc.IntegrityError`) are re-raised unlogged; the
calling service decides whether they are a duplicate or a race.  Nothing
here retries.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# Columns a generic update may never touch.
FROZEN_KEYS: tuple[str, ...] = ("id", "guild_id", "created_at")


def row_to_dict(obj: Any) -> dict[str, Any] | None:
    """Serialize an ORM row's columns to a plain dict."""
    if obj is None:
        return None
    return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}


def log_store_failure(operation: str, collection: str, guild_id: str | None) -> None:
    """Log the in-flight exception with its routing context.

    Must be called from inside an ``except`` block.
    """
    logger.exception(
        "Store %s failed on %s (guild=%s)",
        operation, collection, guild_id,
        extra={"guild_id": guild_id, "collection": collection, "operation": operation},
    )


def _collection(model_cls: type) -> str:
    return model_cls.__tablename__


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_document(engine, model_cls: type, doc_id: str) -> Any | None:
    with Session(engine, expire_on_commit=False) as session:
        obj = session.get(model_cls, doc_id)
        if obj is not None:
            session.expunge(obj)
        return obj


def list_documents(
    engine,
    model_cls: type,
    *,
    where: Iterable[Any] = (),
    order_by: Iterable[Any] = (),
    limit: int | None = None,
    offset: int = 0,
) -> list[Any]:
    """Filtered, ordered, optionally paginated list of documents."""
    stmt = select(model_cls)
    for clause in where:
        stmt = stmt.where(clause)
    stmt = stmt.order_by(*order_by)
    if offset:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit)
    with Session(engine, expire_on_commit=False) as session:
        rows = list(session.scalars(stmt).all())
        session.expunge_all()
        return rows


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------
def create_document(engine, row: Any) -> Any:
    """Insert *row* and return it (refreshed, expunged)."""
    collection = _collection(type(row))
    try:
        with Session(engine, expire_on_commit=False) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            session.expunge(row)
            return row
    except IntegrityError:
        # Constraint conflicts are the caller's to translate.
        raise
    except SQLAlchemyError:
        log_store_failure("create", collection, getattr(row, "guild_id", None))
        raise


def update_document(engine, model_cls: type, doc_id: str, **changes: Any) -> Any | None:
    """Apply *changes* to one document.

    Returns the updated (expunged) object, or ``None`` if not found.
    Unknown keys and :data:`FROZEN_KEYS` are ignored.
    """
    guild_id = None
    try:
        with Session(engine, expire_on_commit=False) as session:
            obj = session.get(model_cls, doc_id)
            if obj is None:
                return None
            guild_id = getattr(obj, "guild_id", None)
            for key, value in changes.items():
                if hasattr(obj, key) and key not in FROZEN_KEYS:
                    setattr(obj, key, value)
            session.commit()
            session.refresh(obj)
            session.expunge(obj)
            return obj
    except IntegrityError:
        raise
    except SQLAlchemyError:
        log_store_failure("update", _collection(model_cls), guild_id)
        raise


def delete_document(engine, model_cls: type, doc_id: str) -> bool:
    """Delete one document.  Returns ``True`` if it existed."""
    guild_id = None
    try:
        with Session(engine) as session:
            obj = session.get(model_cls, doc_id)
            if obj is None:
                return False
            guild_id = getattr(obj, "guild_id", None)
            session.delete(obj)
            session.commit()
            return True
    except SQLAlchemyError:
        log_store_failure("delete", _collection(model_cls), guild_id)
        raise
