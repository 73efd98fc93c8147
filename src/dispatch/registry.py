"""Static command registry and schema validation."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from jsonschema import Draft7Validator

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[Any]]

COMMAND_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["command", "description"],
    "properties": {
        "command": {"type": "string", "pattern": "^[a-z0-9_]{1,32}$"},
        "description": {"type": "string", "minLength": 1, "maxLength": 256},
    },
    "additionalProperties": False,
}

_validator = Draft7Validator(COMMAND_SCHEMA)


def validate_command_schema(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: e.path)
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"command schema validation failed: {messages}")


@dataclass(frozen=True)
class CommandMeta:
    name: str
    description: str
    handler: Handler
    cacheable: bool = False
    ttl_override_sec: Optional[float] = None

    def to_schema(self) -> Dict[str, Any]:
        payload = {"command": self.name, "description": self.description}
        validate_command_schema(payload)
        return payload


def build_command_table(registry: Iterable[CommandMeta]) -> Dict[str, CommandMeta]:
    """Index the registry by name, skipping entries that fail validation."""
    table: Dict[str, CommandMeta] = {}
    for meta in registry:
        if not callable(getattr(meta, "handler", None)):
            logger.error(f"The command {getattr(meta, 'name', meta)!r} is missing a callable handler.")
            continue
        try:
            meta.to_schema()
        except ValueError as exc:
            logger.error(f"Skipping command {meta.name!r}: {exc}")
            continue
        if meta.name in table:
            logger.warning(f"Duplicate command {meta.name!r}; keeping the later definition")
        table[meta.name] = meta
        logger.debug(f"Loaded command: {meta.name}")
    return table
