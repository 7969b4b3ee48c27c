"""
guildboard.services.command_service — Custom Command CRUD
==========================================================

Guild-defined text commands.  ``(guild_id, command)`` is unique; the
unique index is the guard, not a read-before-write.
"""

from __future__ import annotations

import json
import logging

from sqlalchemy.exc import IntegrityError

from guildboard.database.models import CustomCommand
from guildboard.database.store import (
    create_document,
    delete_document,
    list_documents,
    update_document,
)

logger = logging.getLogger(__name__)


class DuplicateCommandError(ValueError):
    """The guild already has a command with this name."""


def _normalize_name(command: str) -> str:
    name = (command or "").strip().lstrip("!/").lower()
    if not name:
        raise ValueError("Command name is required")
    if any(ch.isspace() for ch in name):
        raise ValueError("Command names cannot contain spaces")
    return name


def _embed_json(embed_content: dict | str | None) -> str:
    if embed_content is None:
        return "{}"
    if isinstance(embed_content, str):
        try:
            parsed = json.loads(embed_content or "{}")
        except json.JSONDecodeError:
            raise ValueError("Embed content must be a JSON object") from None
        embed_content = parsed
    if not isinstance(embed_content, dict):
        raise ValueError("Embed content must be a JSON object")
    return json.dumps(embed_content)


def list_commands(engine, guild_id: str) -> list[CustomCommand]:
    return list_documents(
        engine, CustomCommand,
        where=[CustomCommand.guild_id == guild_id],
        order_by=[CustomCommand.command.asc()],
    )


def create_command(
    engine,
    guild_id: str,
    command: str,
    response: str = "",
    *,
    is_embed: bool = False,
    embed_content: dict | str | None = None,
) -> CustomCommand:
    """Create a command.

    Raises
    ------
    DuplicateCommandError
        A command with this name already exists in the guild.
    ValueError
        Empty name, or a text command with no response.
    """
    name = _normalize_name(command)
    if not is_embed and not (response or "").strip():
        raise ValueError("A text command needs a response")
    try:
        row = create_document(engine, CustomCommand(
            guild_id=guild_id,
            command=name,
            response=response or "",
            is_embed=is_embed,
            embed_content=_embed_json(embed_content),
        ))
    except IntegrityError:
        raise DuplicateCommandError(f"Command '{name}' already exists") from None
    logger.info("Custom command '%s' created for guild %s", name, guild_id)
    return row


def update_command(engine, command_id: str, **changes) -> CustomCommand | None:
    if "command" in changes:
        changes["command"] = _normalize_name(changes["command"])
    if "embed_content" in changes:
        changes["embed_content"] = _embed_json(changes["embed_content"])
    try:
        return update_document(engine, CustomCommand, command_id, **changes)
    except IntegrityError:
        raise DuplicateCommandError(
            f"Command '{changes.get('command')}' already exists"
        ) from None


def delete_command(engine, command_id: str) -> bool:
    return delete_document(engine, CustomCommand, command_id)
