"""
guildboard.services.log_buffer — In-Memory Ring Buffer for Live Log Viewing
============================================================================

A thread-safe ring buffer plugged into Python's ``logging`` framework.
Store failures and queue hand-off warnings carry ``guild_id``,
``collection`` and ``operation`` in ``extra``; the buffer keeps those so
an admin can see what went wrong for one guild without grepping the
process log.

Each process keeps its own buffer.  Nothing is persisted; entries are
lost on restart.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

DEFAULT_CAPACITY = 2000
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# ``extra`` keys copied from a record onto its entry.
ROUTING_FIELDS = ("guild_id", "collection", "operation")


@dataclass(slots=True)
class LogEntry:
    """One captured log record."""
    timestamp: str
    level: str
    logger: str
    message: str
    guild_id: str | None = None
    collection: str | None = None
    operation: str | None = None

    def matches(self, min_level: int, logger_prefix: str | None, guild_id: str | None) -> bool:
        if min_level and logging.getLevelName(self.level) < min_level:
            return False
        if logger_prefix and not self.logger.startswith(logger_prefix):
            return False
        return not guild_id or self.guild_id == guild_id


class LogBuffer:
    """Bounded, lock-protected :class:`collections.deque` of entries."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def size(self) -> int:
        return len(self._entries)

    def get_entries(
        self,
        tail: int = 200,
        level: str | None = None,
        logger_filter: str | None = None,
        guild_id: str | None = None,
    ) -> list[dict[str, str | None]]:
        """Most recent *tail* entries, oldest first.

        ``level`` is a minimum; ``logger_filter`` is a name prefix;
        ``guild_id`` must match exactly.
        """
        min_level = logging.getLevelName(level.upper()) if level else 0
        if not isinstance(min_level, int):
            min_level = 0
        with self._lock:
            snapshot = tuple(self._entries)
        kept = [e for e in snapshot if e.matches(min_level, logger_filter, guild_id)]
        if tail:
            kept = kept[-tail:]
        return [asdict(e) for e in kept]


class RingBufferHandler(logging.Handler):
    """Logging handler that feeds a :class:`LogBuffer`."""

    def __init__(self, buffer: LogBuffer, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            routing = {}
            for field in ROUTING_FIELDS:
                value = getattr(record, field, None)
                routing[field] = None if value is None else str(value)
            self.buffer.append(LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                level=record.levelname,
                logger=record.name,
                message=self.format(record),
                **routing,
            ))
        except Exception:
            self.handleError(record)


# One buffer per process.
_buffer = LogBuffer()


def get_buffer() -> LogBuffer:
    return _buffer


def _installed_handler() -> RingBufferHandler | None:
    return next(
        (h for h in logging.getLogger().handlers if isinstance(h, RingBufferHandler)),
        None,
    )


def install_handler(level: int = logging.DEBUG) -> RingBufferHandler:
    """Attach the ring-buffer handler to the root logger, or re-level the
    one already attached.

    Uvicorn's loggers are set to propagate so request logs land in the
    buffer too.
    """
    handler = _installed_handler()
    if handler is None:
        handler = RingBufferHandler(_buffer)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(handler)
        for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
            uvicorn_logger = logging.getLogger(name)
            uvicorn_logger.propagate = True
            uvicorn_logger.setLevel(logging.INFO)
    handler.setLevel(level)
    return handler


def get_logs(
    tail: int = 200,
    level: str | None = None,
    logger_filter: str | None = None,
    guild_id: str | None = None,
) -> list[dict[str, str | None]]:
    return _buffer.get_entries(
        tail=tail, level=level, logger_filter=logger_filter, guild_id=guild_id,
    )


def get_current_level() -> str:
    """Effective minimum level being captured to the buffer."""
    handler = _installed_handler()
    target = handler if handler is not None else logging.getLogger()
    return logging.getLevelName(target.level)


def set_capture_level(level_name: str) -> str:
    """Change the ring-buffer handler's minimum level on the fly.

    Raises
    ------
    ValueError
        If *level_name* is not a standard level name.
    """
    level_name = level_name.upper()
    if level_name not in VALID_LEVELS:
        raise ValueError(f"Invalid level: {level_name}. Must be one of {VALID_LEVELS}")
    install_handler(level=getattr(logging, level_name))
    return level_name
