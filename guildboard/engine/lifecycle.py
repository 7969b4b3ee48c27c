"""
guildboard.engine.lifecycle — Resource Status State Machine
============================================================

Every status-bearing resource (reaction role, giveaway, scheduled
message, YouTube subscription) moves through one transition function::

    pending ──posted──▶ sent        (reaction role, scheduled message)
    running ──posted──▶ running     (giveaway, YouTube: stays live)
    running ──ended───▶ ended       (giveaway only)
    any     ──failed──▶ error
    sent|ended|error ──rearm──▶ initial status of the family

Re-applying an event whose effect already happened returns the same
status, so a consumer that sees a queue item twice converges.
"""

from __future__ import annotations

import calendar
import enum
from datetime import datetime, timedelta
from types import MappingProxyType

from guildboard.database.models import QueueFamily, RepeatInterval, ResourceStatus


class InvalidTransitionError(ValueError):
    """The event is not allowed from the current status."""


class ResourceEvent(enum.StrEnum):
    POSTED = "posted"
    ENDED = "ended"
    FAILED = "failed"
    REARM = "rearm"


TERMINAL: frozenset[ResourceStatus] = frozenset(
    {ResourceStatus.SENT, ResourceStatus.ENDED, ResourceStatus.ERROR}
)

# Families that carry a status.  Moderation and music intents are
# fire-and-forget queue documents.
INITIAL_STATUS = MappingProxyType({
    QueueFamily.REACTION_ROLE: ResourceStatus.PENDING,
    QueueFamily.GIVEAWAY: ResourceStatus.RUNNING,
    QueueFamily.SCHEDULED_MESSAGE: ResourceStatus.PENDING,
    QueueFamily.YOUTUBE: ResourceStatus.RUNNING,
})

_ON_POSTED = MappingProxyType({
    QueueFamily.REACTION_ROLE: ResourceStatus.SENT,
    QueueFamily.GIVEAWAY: ResourceStatus.RUNNING,
    QueueFamily.SCHEDULED_MESSAGE: ResourceStatus.SENT,
    QueueFamily.YOUTUBE: ResourceStatus.RUNNING,
})


def is_terminal(status: str) -> bool:
    return ResourceStatus(status) in TERMINAL


def is_actionable(status: str) -> bool:
    """Non-terminal statuses are the ones the bot still has to act on."""
    return not is_terminal(status)


def initial_status(family: QueueFamily) -> ResourceStatus:
    try:
        return INITIAL_STATUS[QueueFamily(family)]
    except KeyError:
        raise InvalidTransitionError(f"{family} resources carry no status") from None


def transition(family: QueueFamily, status: str, event: ResourceEvent) -> ResourceStatus:
    """Return the status after *event*.

    Raises
    ------
    InvalidTransitionError
        If *family* carries no status, or *event* is not allowed from
        *status*.
    """
    family = QueueFamily(family)
    current = ResourceStatus(status)
    event = ResourceEvent(event)
    start = initial_status(family)

    if event is ResourceEvent.REARM:
        return start if current in TERMINAL else current

    if event is ResourceEvent.FAILED:
        return ResourceStatus.ERROR

    if event is ResourceEvent.POSTED:
        target = _ON_POSTED[family]
        if current in (start, target):
            return target
        raise InvalidTransitionError(f"Cannot post a {family} resource in status {current}")

    if event is ResourceEvent.ENDED:
        if family is not QueueFamily.GIVEAWAY:
            raise InvalidTransitionError(f"{family} resources cannot end")
        if current in (ResourceStatus.RUNNING, ResourceStatus.ENDED):
            return ResourceStatus.ENDED
        raise InvalidTransitionError(f"Cannot end a giveaway in status {current}")

    raise InvalidTransitionError(f"Unknown event {event}")


# ---------------------------------------------------------------------------
# Scheduled-message repetition
# ---------------------------------------------------------------------------
def _add_month(moment: datetime, anchor_day: int | None = None) -> datetime:
    """*anchor_day* (default: *moment*'s day) of next month, clamped to the
    month's last day."""
    year = moment.year + moment.month // 12
    month = moment.month % 12 + 1
    day = min(anchor_day or moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def next_run_after(
    run_at: datetime,
    repeat: str,
    *,
    now: datetime | None = None,
    anchor_day: int | None = None,
) -> datetime | None:
    """Next occurrence of a repeating message, or ``None`` for one-shots.

    When *now* is given, occurrences at or before it are skipped so a bot
    that was offline for several periods does not replay each one.

    Monthly repeats land on *anchor_day*, the day of month the schedule
    was set for.  *run_at* may already be clamped (Jan 31 ran on Feb 28),
    so without the anchor a clamped run would pin every later month to
    the 28th.
    """
    interval = RepeatInterval(repeat)
    if interval is RepeatInterval.NONE:
        return None

    def step(moment: datetime) -> datetime:
        if interval is RepeatInterval.DAILY:
            return moment + timedelta(days=1)
        if interval is RepeatInterval.WEEKLY:
            return moment + timedelta(weeks=1)
        return _add_month(moment, anchor_day)

    nxt = step(run_at)
    if now is not None:
        while nxt <= now:
            nxt = step(nxt)
    return nxt
