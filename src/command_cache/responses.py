"""Cached command responses: a single reply or a recorded multi-step sequence."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

Payload = Union[str, Dict[str, Any]]


class StepKind(str, Enum):
    INITIAL = "initial"
    EDIT = "edit"
    FOLLOW_UP = "followUp"


@dataclass(frozen=True)
class Step:
    kind: StepKind
    payload: Payload

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "payload": self.payload}


@dataclass(frozen=True)
class SingleResponse:
    """Delivered with one terminal reply."""

    payload: Payload

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "single", "payload": self.payload}


@dataclass(frozen=True)
class MultiStepResponse:
    """
    Ordered reply/edit/follow-up sequence recorded during a live execution.

    The first step is always the initial reply; no later step may be one.
    """

    steps: Tuple[Step, ...]

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError("multi-step response needs at least one step")
        if self.steps[0].kind is not StepKind.INITIAL:
            raise ValueError("first step of a multi-step response must be the initial reply")
        for step in self.steps[1:]:
            if step.kind is StepKind.INITIAL:
                raise ValueError("only the first step may be the initial reply")

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "multi_step", "steps": [step.to_dict() for step in self.steps]}


CachedResponse = Union[SingleResponse, MultiStepResponse]


def serialize_response(value: CachedResponse) -> str:
    """Canonical text used by the cache's memory cost model."""
    return json.dumps(
        value.to_dict(),
        separators=(",", ":"),
        sort_keys=True,
        ensure_ascii=False,
        default=str,
    )


# Handler result coercion

_KIND_KEYS = ("kind", "type")


def _step_kind(raw: Mapping[str, Any]) -> Optional[StepKind]:
    for key in _KIND_KEYS:
        if key in raw:
            return StepKind(raw[key])
    return None


def _step_payload(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in raw.items() if key not in _KIND_KEYS}


def _coerce_steps(raw_steps: Sequence[Any], initial_payload: Optional[Payload]) -> Optional[MultiStepResponse]:
    if not raw_steps:
        return None

    steps = []
    for index, raw in enumerate(raw_steps):
        if isinstance(raw, Step):
            steps.append(raw)
            continue
        if not isinstance(raw, Mapping):
            raise TypeError(f"step {index} must be a mapping, got {type(raw).__name__}")
        kind = _step_kind(raw)
        if kind is None:
            if index != 0:
                raise ValueError(f"step {index} is missing its kind")
            kind = StepKind.INITIAL
        steps.append(Step(kind=kind, payload=_step_payload(raw)))

    if steps[0].kind is not StepKind.INITIAL:
        if initial_payload is None:
            logger.warning("Multi-step result has no initial reply to replay; not caching")
            return None
        steps.insert(0, Step(kind=StepKind.INITIAL, payload=initial_payload))

    return MultiStepResponse(steps=tuple(steps))


def coerce_handler_result(result: Any, initial_payload: Optional[Payload] = None) -> Optional[CachedResponse]:
    """
    Map whatever a command handler returned onto the cached response union.

    Args:
        result: The handler's return value.
        initial_payload: Payload of the first live reply made while the
            handler ran; seeds multi-step results that only list their
            edits and follow-ups.

    Returns:
        A SingleResponse / MultiStepResponse, or None when nothing should be
        cached (no result, empty result, or a sequence with no initial reply).
    """
    if result is None:
        return None
    if isinstance(result, (SingleResponse, MultiStepResponse)):
        return result
    if isinstance(result, str):
        return SingleResponse(payload={"content": result}) if result else None
    if isinstance(result, Mapping):
        if not result:
            return None
        if "steps" in result:
            return _coerce_steps(result["steps"], initial_payload)
        return SingleResponse(payload=dict(result))
    raise TypeError(f"unsupported handler result type: {type(result).__name__}")
