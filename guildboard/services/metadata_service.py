"""
guildboard.services.metadata_service — Channel / Role Snapshot
===============================================================

The bot writes one ``guild_metadata`` document per guild holding every
channel and role it can see; the dashboard only reads it to turn ids
into names.  The snapshot may be missing, empty or stale at any time
(the bot has not synced yet, or a channel was created a minute ago).
None of those are errors:

* no snapshot, or empty lists  → ``"(name pending…)"``
* synced, id not in snapshot   → ``"Unknown"``
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from guildboard.constants import PENDING_NAME, UNKNOWN_NAME
from guildboard.database.models import GuildMetadata, as_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChannelInfo:
    id: str
    name: str


@dataclass(frozen=True, slots=True)
class RoleInfo:
    id: str
    name: str
    color: int = 0


@dataclass
class GuildMetadataSnapshot:
    """What the bot writes after each sync."""
    guild_id: str
    channels: list[ChannelInfo] = field(default_factory=list)
    roles: list[RoleInfo] = field(default_factory=list)
    synced_at: datetime | None = None

    def to_json(self) -> str:
        return json.dumps({
            "channels": [{"id": c.id, "name": c.name} for c in self.channels],
            "roles": [{"id": r.id, "name": r.name, "color": r.color} for r in self.roles],
        })

    @classmethod
    def from_json(cls, guild_id: str, raw: str | None, synced_at: datetime | None = None):
        """Parse a stored snapshot.  Anything unreadable becomes empty lists."""
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError:
            logger.warning("Unreadable metadata snapshot for guild %s", guild_id)
            data = {}
        if not isinstance(data, dict):
            data = {}

        def entries(key: str) -> list:
            value = data.get(key)
            return value if isinstance(value, list) else []

        channels = [
            ChannelInfo(id=str(ch["id"]), name=str(ch.get("name", "")))
            for ch in entries("channels")
            if isinstance(ch, dict) and ch.get("id") is not None
        ]
        roles = []
        for r in entries("roles"):
            if not isinstance(r, dict) or r.get("id") is None:
                continue
            color = r.get("color", 0)
            roles.append(RoleInfo(
                id=str(r["id"]),
                name=str(r.get("name", "")),
                color=color if isinstance(color, int) and not isinstance(color, bool) else 0,
            ))
        return cls(guild_id=guild_id, channels=channels, roles=roles, synced_at=synced_at)

    def to_wire(self) -> dict:
        return {
            "guildId": self.guild_id,
            "channels": [{"id": c.id, "name": c.name} for c in self.channels],
            "roles": [{"id": r.id, "name": r.name, "color": r.color} for r in self.roles],
            "syncedAt": self.synced_at.isoformat() if self.synced_at else None,
        }


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------
def get_metadata(engine, guild_id: str) -> GuildMetadataSnapshot | None:
    """The guild's snapshot, or ``None`` if the bot has never synced it."""
    with Session(engine) as session:
        row = session.scalar(select(GuildMetadata).where(GuildMetadata.guild_id == guild_id))
        if row is None:
            return None
        return GuildMetadataSnapshot.from_json(guild_id, row.data, as_utc(row.synced_at))


def metadata_age_seconds(snapshot: GuildMetadataSnapshot | None, now: datetime | None = None) -> float | None:
    """Seconds since the last sync, or ``None`` if never synced."""
    if snapshot is None or snapshot.synced_at is None:
        return None
    now = now or datetime.now(UTC)
    return round((now - as_utc(snapshot.synced_at)).total_seconds(), 1)


class MetadataView:
    """Id → display-name resolution over a possibly-absent snapshot."""

    def __init__(self, snapshot: GuildMetadataSnapshot | None) -> None:
        self._channels: dict[str, ChannelInfo] = {}
        self._roles: dict[str, RoleInfo] = {}
        if snapshot is not None:
            self._channels = {c.id: c for c in snapshot.channels}
            self._roles = {r.id: r for r in snapshot.roles}

    @property
    def has_channels(self) -> bool:
        return bool(self._channels)

    @property
    def has_roles(self) -> bool:
        return bool(self._roles)

    def channel_name(self, channel_id: str | None) -> str:
        if not self._channels:
            return PENDING_NAME
        channel = self._channels.get(str(channel_id)) if channel_id else None
        return channel.name if channel else UNKNOWN_NAME

    def role_name(self, role_id: str | None) -> str:
        if not self._roles:
            return PENDING_NAME
        role = self._roles.get(str(role_id)) if role_id else None
        return role.name if role else UNKNOWN_NAME

    def role_color(self, role_id: str | None) -> str | None:
        """``#rrggbb`` for a known role with a colour, else ``None``."""
        role = self._roles.get(str(role_id)) if role_id else None
        if role is None or not role.color:
            return None
        return f"#{role.color:06x}"


# ---------------------------------------------------------------------------
# Writes (bot side)
# ---------------------------------------------------------------------------
def save_metadata_snapshot(engine, snapshot: GuildMetadataSnapshot) -> GuildMetadataSnapshot:
    """Overwrite the guild's snapshot wholesale."""
    synced_at = snapshot.synced_at or datetime.now(UTC)
    with Session(engine) as session:
        row = session.scalar(
            select(GuildMetadata).where(GuildMetadata.guild_id == snapshot.guild_id)
        )
        if row is None:
            row = GuildMetadata(guild_id=snapshot.guild_id)
            session.add(row)
        row.data = snapshot.to_json()
        row.synced_at = synced_at
        session.commit()
    logger.info(
        "Metadata for guild %s synced: %d channels, %d roles",
        snapshot.guild_id, len(snapshot.channels), len(snapshot.roles),
    )
    return GuildMetadataSnapshot(
        guild_id=snapshot.guild_id,
        channels=list(snapshot.channels),
        roles=list(snapshot.roles),
        synced_at=synced_at,
    )
