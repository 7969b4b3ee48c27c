"""
guildboard.engine.sections — Settings Sections & Merge-over-Defaults
=====================================================================

A guild's settings document holds five independent sections, each
stored as a JSON object string.  Any section may be absent, empty,
malformed, or written by an older or newer dashboard.  Reading one
always succeeds::

    merged = {**DEFAULT_SECTIONS[name], **parsed_blob}

followed by per-field coercion back to the declared type.  Keys this
version does not know are kept in ``extras`` and written back on save.

Wire format is camelCase (``channelId``, ``xpPerMessageMin``); Python
attributes are snake_case.  The mapping is declared once per field via
``field(metadata={"key": ..., "coerce": ...})``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import MISSING, dataclass, field, fields
from types import MappingProxyType
from typing import Any

from guildboard.engine.leveling import RoleReward

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Compiled defaults (wire format)
# ---------------------------------------------------------------------------
DEFAULT_SECTIONS: Mapping[str, Mapping[str, Any]] = MappingProxyType({
    "welcome": MappingProxyType({
        "enabled": True,
        "message": "Welcome to the server, {user}! Enjoy your stay.",
        "channelId": "",
    }),
    "goodbye": MappingProxyType({
        "enabled": False,
        "message": "{user} has left the server.",
        "channelId": "",
    }),
    "autoRole": MappingProxyType({
        "enabled": False,
        "roleId": "",
    }),
    "leveling": MappingProxyType({
        "enabled": True,
        "channelId": "",
        "message": "\U0001f389 GG {user}, you just reached level **{level}**!",
        "roleRewards": (),
        "xpPerMessageMin": 15,
        "xpPerMessageMax": 25,
        "cooldownSeconds": 60,
        "blacklistedChannels": (),
    }),
    "autoMod": MappingProxyType({
        "aiEnabled": False,
        "wordFilterEnabled": False,
        "wordBlacklist": (),
        "linkFilterEnabled": False,
        "linkWhitelist": (),
        "inviteFilterEnabled": False,
        "mentionSpamEnabled": False,
        "mentionSpamLimit": 5,
        "ignoreAdmins": True,
    }),
})


# ---------------------------------------------------------------------------
# Field coercion — (value, fallback) -> value of the declared type
# ---------------------------------------------------------------------------
def _as_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return fallback


def _as_str(value: Any, fallback: str) -> str:
    if isinstance(value, str):
        return value
    # Snowflakes sometimes arrive as JSON numbers.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return fallback


def _as_int(value: Any, fallback: int) -> int:
    if isinstance(value, bool):
        return fallback
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return fallback
        if number.is_integer():
            return int(number)
    return fallback


def _as_str_list(value: Any, fallback: tuple[str, ...]) -> tuple[str, ...]:
    if isinstance(value, (list, tuple)):
        return tuple(v for v in value if isinstance(v, str))
    return tuple(fallback)


def _as_role_rewards(value: Any, fallback: tuple[RoleReward, ...]) -> tuple[RoleReward, ...]:
    """Sorted, level-unique rewards.  The first entry for a level wins."""
    if not isinstance(value, (list, tuple)):
        return tuple(fallback)
    seen: dict[int, RoleReward] = {}
    for item in value:
        if isinstance(item, RoleReward):
            reward = item
        elif isinstance(item, Mapping):
            level = _as_int(item.get("level"), 0)
            role_id = _as_str(item.get("roleId"), "")
            if level < 1 or not role_id:
                continue
            reward = RoleReward(level=level, role_id=role_id)
        else:
            continue
        seen.setdefault(reward.level, reward)
    return tuple(sorted(seen.values()))


def _wire(key: str, coerce: Callable[[Any, Any], Any], default: Any):
    """Declare a section field with its camelCase key and coercer."""
    return field(default=default, metadata={"key": key, "coerce": coerce})


def _to_wire_value(value: Any) -> Any:
    if isinstance(value, RoleReward):
        return value.to_wire()
    if isinstance(value, (list, tuple)):
        return [_to_wire_value(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Section base
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Section:
    """Base for typed sections.  Subclasses declare fields via :func:`_wire`."""

    extras: dict[str, Any] = field(default_factory=dict, kw_only=True)

    @classmethod
    def wire_fields(cls):
        return [f for f in fields(cls) if "key" in f.metadata]

    @classmethod
    def from_wire(cls, data: Mapping[str, Any], defaults: Mapping[str, Any]):
        """Build from an already-merged wire dict.

        Each field falls back to ``defaults[key]`` and then to the
        compiled class default when a value cannot be coerced.
        """
        kwargs: dict[str, Any] = {}
        known: set[str] = set()
        for f in cls.wire_fields():
            key = f.metadata["key"]
            coerce = f.metadata["coerce"]
            known.add(key)
            class_default = f.default if f.default is not MISSING else None
            fallback = coerce(defaults.get(key), class_default)
            kwargs[f.name] = coerce(data.get(key), fallback)
        extras = {k: v for k, v in data.items() if k not in known}
        return cls(**kwargs, extras=extras)

    def to_wire(self) -> dict[str, Any]:
        out = {
            f.metadata["key"]: _to_wire_value(getattr(self, f.name))
            for f in self.wire_fields()
        }
        for key, value in self.extras.items():
            out.setdefault(key, value)
        return out


@dataclass(frozen=True)
class WelcomeSection(Section):
    enabled: bool = _wire("enabled", _as_bool, True)
    message: str = _wire("message", _as_str, "")
    channel_id: str = _wire("channelId", _as_str, "")


@dataclass(frozen=True)
class GoodbyeSection(Section):
    enabled: bool = _wire("enabled", _as_bool, False)
    message: str = _wire("message", _as_str, "")
    channel_id: str = _wire("channelId", _as_str, "")


@dataclass(frozen=True)
class AutoRoleSection(Section):
    enabled: bool = _wire("enabled", _as_bool, False)
    role_id: str = _wire("roleId", _as_str, "")


@dataclass(frozen=True)
class LevelingSection(Section):
    enabled: bool = _wire("enabled", _as_bool, True)
    channel_id: str = _wire("channelId", _as_str, "")
    message: str = _wire("message", _as_str, "")
    role_rewards: tuple[RoleReward, ...] = _wire("roleRewards", _as_role_rewards, ())
    xp_per_message_min: int = _wire("xpPerMessageMin", _as_int, 15)
    xp_per_message_max: int = _wire("xpPerMessageMax", _as_int, 25)
    cooldown_seconds: int = _wire("cooldownSeconds", _as_int, 60)
    blacklisted_channels: tuple[str, ...] = _wire("blacklistedChannels", _as_str_list, ())


@dataclass(frozen=True)
class AutoModSection(Section):
    ai_enabled: bool = _wire("aiEnabled", _as_bool, False)
    word_filter_enabled: bool = _wire("wordFilterEnabled", _as_bool, False)
    word_blacklist: tuple[str, ...] = _wire("wordBlacklist", _as_str_list, ())
    link_filter_enabled: bool = _wire("linkFilterEnabled", _as_bool, False)
    link_whitelist: tuple[str, ...] = _wire("linkWhitelist", _as_str_list, ())
    invite_filter_enabled: bool = _wire("inviteFilterEnabled", _as_bool, False)
    mention_spam_enabled: bool = _wire("mentionSpamEnabled", _as_bool, False)
    mention_spam_limit: int = _wire("mentionSpamLimit", _as_int, 5)
    ignore_admins: bool = _wire("ignoreAdmins", _as_bool, True)


# Wire name -> (aggregate attribute, document column, section class)
SECTIONS: Mapping[str, tuple[str, str, type[Section]]] = MappingProxyType({
    "welcome": ("welcome", "welcome_settings", WelcomeSection),
    "goodbye": ("goodbye", "goodbye_settings", GoodbyeSection),
    "autoRole": ("auto_role", "auto_role_settings", AutoRoleSection),
    "leveling": ("leveling", "leveling_settings", LevelingSection),
    "autoMod": ("auto_mod", "auto_mod_settings", AutoModSection),
})


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------
def parse_blob(raw: Any) -> dict[str, Any]:
    """Decode a stored section.  Anything but a JSON object becomes ``{}``."""
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return dict(raw)
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.debug("Discarding malformed settings blob (%d bytes)", len(raw))
            return {}
        return parsed if isinstance(parsed, dict) else {}
    return {}


def merge_section(
    name: str,
    raw: Any,
    defaults: Mapping[str, Mapping[str, Any]] = DEFAULT_SECTIONS,
) -> Section:
    """Parse *raw* and shallow-merge it over ``defaults[name]``.

    Total for any input: the worst case is the default section.

    Raises
    ------
    KeyError
        If *name* is not a known section.
    """
    _, _, cls = SECTIONS[name]
    section_defaults = defaults.get(name, {})
    merged = {**section_defaults, **parse_blob(raw)}
    return cls.from_wire(merged, section_defaults)


def serialize_section(section: Section) -> str:
    return json.dumps(section.to_wire(), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Aggregate
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class GuildSettings:
    """Typed view of one guild's settings document."""

    id: str
    guild_id: str
    welcome: WelcomeSection
    goodbye: GoodbyeSection
    auto_role: AutoRoleSection
    leveling: LevelingSection
    auto_mod: AutoModSection
    schema_generation: int = 2

    @classmethod
    def from_document(
        cls,
        doc: Any,
        defaults: Mapping[str, Mapping[str, Any]] = DEFAULT_SECTIONS,
    ) -> GuildSettings:
        kwargs = {
            attr: merge_section(name, getattr(doc, column), defaults)
            for name, (attr, column, _) in SECTIONS.items()
        }
        return cls(
            id=doc.id,
            guild_id=doc.guild_id,
            schema_generation=doc.schema_generation or 0,
            **kwargs,
        )

    @classmethod
    def from_wire(
        cls,
        guild_id: str,
        data: Mapping[str, Any],
        defaults: Mapping[str, Mapping[str, Any]] = DEFAULT_SECTIONS,
        *,
        doc_id: str = "",
    ) -> GuildSettings:
        """Build from an API payload (``{"welcome": {...}, ...}``)."""
        kwargs = {
            attr: merge_section(name, data.get(name), defaults)
            for name, (attr, _, _) in SECTIONS.items()
        }
        return cls(id=doc_id, guild_id=guild_id, **kwargs)

    def columns(self) -> dict[str, str]:
        """Section column name -> serialized JSON."""
        return {
            column: serialize_section(getattr(self, attr))
            for attr, column, _ in SECTIONS.values()
        }

    def to_wire(self) -> dict[str, Any]:
        out: dict[str, Any] = {"id": self.id, "guildId": self.guild_id}
        for name, (attr, _, _) in SECTIONS.items():
            out[name] = getattr(self, attr).to_wire()
        return out
