"""Dispatch log schema enforcement."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

OUTCOMES = ["cache_hit", "executed", "failed", "unknown_command"]

STATES = [
    "received",
    "cache_lookup",
    "cache_hit",
    "replay",
    "cache_miss",
    "execute",
    "success",
    "maybe_cache",
    "failure",
    "error_reply",
    "done",
]

DISPATCH_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": [
        "invocation_id",
        "received_at",
        "command",
        "options",
        "cacheable",
        "outcome",
        "path",
        "cache_key",
        "cached",
        "replayed_steps",
        "error",
        "latency_ms_total",
    ],
    "properties": {
        "invocation_id": {"type": "string"},
        "received_at": {"type": "string", "format": "date-time"},
        "command": {"type": "string"},
        "options": {
            "type": "array",
            "items": {"type": "array", "minItems": 2, "maxItems": 2},
        },
        "cacheable": {"type": "boolean"},
        "outcome": {"type": "string", "enum": OUTCOMES},
        "path": {"type": "array", "items": {"type": "string", "enum": STATES}},
        "cache_key": {"type": ["string", "null"]},
        "cached": {"type": "boolean"},
        "replayed_steps": {"type": "integer", "minimum": 0},
        "error": {"type": ["string", "null"]},
        "latency_ms_total": {"type": "number", "minimum": 0},
    },
}

_validator = Draft7Validator(DISPATCH_SCHEMA)


def validate_dispatch(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: e.path)
    if errors:
        messages = ", ".join(error.message for error in errors)
        raise ValueError(f"dispatch log validation failed: {messages}")


@dataclass
class DispatchLogRecord:
    invocation_id: str
    command: str
    cacheable: bool
    outcome: str
    path: List[str]
    latency_ms_total: float
    options: List[List[Any]] = field(default_factory=list)
    cache_key: Optional[str] = None
    cached: bool = False
    replayed_steps: int = 0
    error: Optional[str] = None
    received_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "invocation_id": self.invocation_id,
            "received_at": self.received_at,
            "command": self.command,
            "options": [list(pair) for pair in self.options],
            "cacheable": self.cacheable,
            "outcome": self.outcome,
            "path": list(self.path),
            "cache_key": self.cache_key,
            "cached": self.cached,
            "replayed_steps": self.replayed_steps,
            "error": self.error,
            "latency_ms_total": self.latency_ms_total,
        }
        validate_dispatch(payload)
        return payload
