"""
guildboard.api.submit_guard — In-flight Submission Guard
=========================================================

A double-clicked "Create giveaway" button would otherwise produce two
giveaways and two queue items.  While one create for a given
``(admin, guild, family)`` is in flight, a second one is rejected with
HTTP 409.  The slot is released when the first request finishes,
successful or not.

Usage::

    @router.post("/guilds/{guild_id}/giveaways")
    def create(..., admin: dict = Depends(guard_submission(QueueFamily.GIVEAWAY))):
        ...

The guard is per-process; it stops accidental duplicates, not a
determined client talking to several API workers.
"""

from __future__ import annotations

import logging
import threading

from fastapi import Depends, HTTPException, status

from guildboard.api.deps import get_current_admin
from guildboard.database.models import QueueFamily

logger = logging.getLogger(__name__)


class SubmissionGuard:
    """Set of in-flight ``(admin_id, guild_id, family)`` keys."""

    def __init__(self) -> None:
        self._in_flight: set[tuple[str, str, str]] = set()
        self._lock = threading.Lock()

    def acquire(self, admin_id: str, guild_id: str, family: QueueFamily) -> bool:
        key = (admin_id, guild_id, str(family))
        with self._lock:
            if key in self._in_flight:
                return False
            self._in_flight.add(key)
            return True

    def release(self, admin_id: str, guild_id: str, family: QueueFamily) -> None:
        with self._lock:
            self._in_flight.discard((admin_id, guild_id, str(family)))

    def reset(self) -> None:
        with self._lock:
            self._in_flight.clear()

    @property
    def in_flight(self) -> int:
        with self._lock:
            return len(self._in_flight)


_guard = SubmissionGuard()


def get_submission_guard() -> SubmissionGuard:
    return _guard


def guard_submission(family: QueueFamily):
    """Build a dependency that validates the admin and holds the slot
    for *family* until the request completes."""

    def dependency(
        guild_id: str,
        admin: dict = Depends(get_current_admin),
        guard: SubmissionGuard = Depends(get_submission_guard),
    ):
        admin_id = str(admin["sub"])
        if not guard.acquire(admin_id, guild_id, family):
            logger.info(
                "Rejected duplicate %s submission from %s in guild %s",
                family, admin_id, guild_id,
                extra={"guild_id": guild_id, "collection": str(family),
                       "operation": "submit"},
            )
            raise HTTPException(
                status.HTTP_409_CONFLICT,
                "A submission of this kind is already in progress",
            )
        try:
            yield admin
        finally:
            guard.release(admin_id, guild_id, family)

    return dependency
