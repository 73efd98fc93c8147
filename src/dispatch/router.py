"""Per-invocation dispatch: cache lookup, handler execution, error replies."""

from __future__ import annotations

import json
import logging
import time
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional, Protocol, Sequence

from command_cache import CachedResponse, CacheStore, coerce_handler_result, make_cache_key, normalize_options

from .observability import DispatchLogRecord
from .registration import CommandRegistrar
from .registry import CommandMeta, build_command_table
from .replay import ReplaySequencer

logger = logging.getLogger(__name__)

ERROR_PAYLOAD: Dict[str, Any] = {
    "content": "There was an error executing this command!",
    "ephemeral": True,
}


class DispatchState(str, Enum):
    RECEIVED = "received"
    CACHE_LOOKUP = "cache_lookup"
    CACHE_HIT = "cache_hit"
    REPLAY = "replay"
    CACHE_MISS = "cache_miss"
    EXECUTE = "execute"
    SUCCESS = "success"
    MAYBE_CACHE = "maybe_cache"
    FAILURE = "failure"
    ERROR_REPLY = "error_reply"
    DONE = "done"


class DispatchOutcome(str, Enum):
    CACHE_HIT = "cache_hit"
    EXECUTED = "executed"
    FAILED = "failed"
    UNKNOWN_COMMAND = "unknown_command"


class Invocation(Protocol):
    command_name: str
    options: Any
    replied: bool
    deferred: bool

    async def reply(self, payload: Any) -> Any: ...
    async def edit_reply(self, payload: Any) -> Any: ...
    async def follow_up(self, payload: Any) -> Any: ...


class RecordingInvocation:
    """
    Handle proxy that remembers the payload of the first visible message.

    That is the first successful reply, or the first edit when the handler
    deferred and never replied (the edit is what the user sees first).
    """

    def __init__(self, invocation: Invocation) -> None:
        self._invocation = invocation
        self.initial_payload: Optional[Any] = None

    def __getattr__(self, name: str) -> Any:
        return getattr(self._invocation, name)

    def _record(self, payload: Any) -> None:
        if self.initial_payload is None:
            self.initial_payload = payload

    async def reply(self, payload: Any) -> Any:
        result = await self._invocation.reply(payload)
        self._record(payload)
        return result

    async def edit_reply(self, payload: Any) -> Any:
        result = await self._invocation.edit_reply(payload)
        self._record(payload)
        return result


class DispatchRouter:
    def __init__(
        self,
        store: CacheStore,
        registry: Sequence[CommandMeta],
        registrar: Optional[CommandRegistrar] = None,
        application_id: Optional[str] = None,
        replayer: Optional[ReplaySequencer] = None,
    ) -> None:
        self.store = store
        self.registrar = registrar
        self.application_id = application_id
        self._registry = registry
        self._replayer = replayer or ReplaySequencer()
        self._commands: Dict[str, CommandMeta] = {}

    # ── Command table and registration ──

    def load_commands(self) -> int:
        """Rebuild the command table from the static registry."""
        self._commands = build_command_table(self._registry)
        for meta in self._commands.values():
            if meta.ttl_override_sec is not None and not self.store.has_command_ttl(meta.name):
                self.store.set_command_ttl(meta.name, meta.ttl_override_sec)
        return len(self._commands)

    @property
    def commands(self) -> Dict[str, CommandMeta]:
        return dict(self._commands)

    def command_schemas(self) -> List[Dict[str, Any]]:
        return [meta.to_schema() for meta in self._commands.values()]

    async def register_commands(self) -> Optional[int]:
        """
        Push the full command list as one replace.

        Returns the count the platform reports, or None when registration
        was skipped or failed. Failures are logged and never raised.
        """
        self.load_commands()
        if self.registrar is None:
            logger.warning("No command registrar configured; skipping registration")
            return None

        schemas = self.command_schemas()
        logger.debug(f"Started refreshing {len(schemas)} application commands.")
        try:
            count = await self.registrar.replace_all_commands(self.application_id, schemas)
        except Exception as e:
            logger.error(f"Error registering commands: {e}")
            return None

        logger.info(f"Successfully reloaded {count} application commands.")
        return count

    # ── Per-invocation flow ──

    async def dispatch(self, invocation: Invocation) -> DispatchOutcome:
        started = time.perf_counter()
        name = invocation.command_name
        path = [DispatchState.RECEIVED]
        record = DispatchLogRecord(
            invocation_id=str(getattr(invocation, "invocation_id", None) or uuid.uuid4().hex),
            command=name,
            options=[[option, value] for option, value in normalize_options(invocation.options)],
            cacheable=False,
            outcome=DispatchOutcome.UNKNOWN_COMMAND.value,
            path=[],
            latency_ms_total=0.0,
        )

        meta = self._commands.get(name)
        if meta is None:
            logger.debug(f"Ignoring unregistered command: {name}")
            outcome = DispatchOutcome.UNKNOWN_COMMAND
        else:
            record.cacheable = meta.cacheable
            outcome = await self._run(meta, invocation, path, record)

        path.append(DispatchState.DONE)
        record.outcome = outcome.value
        record.path = [state.value for state in path]
        record.latency_ms_total = round((time.perf_counter() - started) * 1000, 3)
        logger.info(json.dumps(record.to_dict(), ensure_ascii=False, default=str))
        return outcome

    async def _run(
        self,
        meta: CommandMeta,
        invocation: Invocation,
        path: List[DispatchState],
        record: DispatchLogRecord,
    ) -> DispatchOutcome:
        key = None
        if meta.cacheable:
            path.append(DispatchState.CACHE_LOOKUP)
            key = make_cache_key(meta.name, invocation.options)
            record.cache_key = key
            cached = self.store.get(key)
            if cached is not None:
                path.extend([DispatchState.CACHE_HIT, DispatchState.REPLAY])
                record.replayed_steps, record.error = await self._replay(invocation, cached)
                return DispatchOutcome.CACHE_HIT
            path.append(DispatchState.CACHE_MISS)

        path.append(DispatchState.EXECUTE)
        recorder = RecordingInvocation(invocation)
        try:
            result = await meta.handler(recorder)
        except Exception as e:
            path.extend([DispatchState.FAILURE, DispatchState.ERROR_REPLY])
            logger.exception(f"Error executing command {meta.name}")
            record.error = f"{type(e).__name__}: {e}"
            await self._send_error_reply(invocation)
            return DispatchOutcome.FAILED

        path.append(DispatchState.SUCCESS)
        if meta.cacheable:
            path.append(DispatchState.MAYBE_CACHE)
            record.cached = self._maybe_cache(meta, key, result, recorder.initial_payload)
        return DispatchOutcome.EXECUTED

    async def _replay(self, invocation: Invocation, value: CachedResponse):
        try:
            return await self._replayer.replay(invocation, value), None
        except Exception as e:
            logger.exception(f"Error replaying cached response for {invocation.command_name}")
            return 0, f"{type(e).__name__}: {e}"

    def _maybe_cache(self, meta: CommandMeta, key: str, result: Any, initial_payload: Any) -> bool:
        try:
            value = coerce_handler_result(result, initial_payload)
        except (TypeError, ValueError) as e:
            logger.warning(f"Not caching result of {meta.name}: {e}")
            return False
        if value is None:
            return False

        accepted = self.store.put(key, value, self.store.resolve_ttl(meta.name))
        if not accepted:
            logger.debug(f"Cache rejected result of {meta.name} (memory budget)")
        return accepted

    async def _send_error_reply(self, invocation: Invocation) -> None:
        try:
            if invocation.replied or invocation.deferred:
                await invocation.follow_up(ERROR_PAYLOAD)
            else:
                await invocation.reply(ERROR_PAYLOAD)
        except Exception:
            logger.exception("Error replying")
