"""
Cache Key Codec

Turns (command name, option list) into a canonical cache key.
Options arrive in whatever order the transport hands them over; they are
sorted by name before serialisation so every ordering of the same set
produces the same key.

    make_cache_key("echo", [("b", 2), ("a", 1)]) == 'echo:[["a",1],["b",2]]'
    make_cache_key("ping", [])                   == "ping:"
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple, Union

logger = logging.getLogger(__name__)

KEY_SEPARATOR = ":"

OptionPairs = Union[Mapping[str, Any], Iterable[Tuple[str, Any]], None]


def _encode(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def normalize_options(options: OptionPairs) -> List[Tuple[str, Any]]:
    """Return the option pairs sorted by name, then by encoded value."""
    if not options:
        return []
    if isinstance(options, Mapping):
        pairs = list(options.items())
    else:
        pairs = [(str(name), value) for name, value in options]
    return sorted(pairs, key=lambda pair: (pair[0], _encode(pair[1])))


def make_cache_key(command_name: str, options: OptionPairs = None) -> str:
    pairs = normalize_options(options)
    if not pairs:
        return f"{command_name}{KEY_SEPARATOR}"

    key = f"{command_name}{KEY_SEPARATOR}{_encode([[name, value] for name, value in pairs])}"
    logger.debug(f"Generated key: {key} (command={command_name}, options={len(pairs)})")
    return key


def split_cache_key(key: str) -> Tuple[str, Optional[str]]:
    """Split a key back into (command name, encoded options or None)."""
    command_name, _, encoded = key.partition(KEY_SEPARATOR)
    return command_name, encoded or None
