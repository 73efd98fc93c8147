"""Replay of cached responses against an invocation handle."""

from __future__ import annotations

import logging
from typing import Any

from command_cache import CachedResponse, MultiStepResponse, SingleResponse, StepKind

logger = logging.getLogger(__name__)

MAX_REPLAY_STEPS = 100


class ReplaySequencer:
    """
    Re-issues a cached response exactly as it was recorded.

    Step 0 goes out through reply(); later steps through edit_reply() or
    follow_up() according to their kind. Sequences longer than max_steps
    are truncated: one error is logged and the remainder dropped.
    """

    def __init__(self, max_steps: int = MAX_REPLAY_STEPS) -> None:
        self.max_steps = max_steps

    async def replay(self, invocation: Any, value: CachedResponse) -> int:
        """Returns the number of transport calls issued."""
        if isinstance(value, SingleResponse):
            await invocation.reply(value.payload)
            return 1

        if not isinstance(value, MultiStepResponse):
            raise TypeError(f"cannot replay {type(value).__name__}")

        steps = value.steps
        if len(steps) > self.max_steps:
            logger.error(
                "Too many steps in cached response for %s: %d (replaying first %d)",
                getattr(invocation, "command_name", "?"),
                len(steps),
                self.max_steps,
            )
            steps = steps[: self.max_steps]

        issued = 0
        for index, step in enumerate(steps):
            if index == 0:
                await invocation.reply(step.payload)
            elif step.kind is StepKind.EDIT:
                await invocation.edit_reply(step.payload)
            else:
                await invocation.follow_up(step.payload)
            issued += 1
        return issued
