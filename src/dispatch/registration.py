#!/usr/bin/env python3
"""
Command Schema Registration

Pushes the complete command list to the platform as one idempotent
full replace (never an incremental diff).

Implements:
- TelegramCommandRegistrar.replace_all_commands(app_id, schemas) → count
- RestCommandRegistrar.replace_all_commands(app_id, schemas) → count
"""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional, Protocol

import requests
from telegram import BotCommand

from .errors import RegistrationError

logger = logging.getLogger(__name__)


class CommandRegistrar(Protocol):
    async def replace_all_commands(
        self, application_id: Optional[str], schemas: List[Dict[str, Any]]
    ) -> int:
        ...


class TelegramCommandRegistrar:
    """Full replace through the Bot API's setMyCommands."""

    def __init__(self, bot):
        self.bot = bot

    async def replace_all_commands(
        self, application_id: Optional[str], schemas: List[Dict[str, Any]]
    ) -> int:
        commands = [BotCommand(schema["command"], schema["description"]) for schema in schemas]
        try:
            ok = await self.bot.set_my_commands(commands)
        except Exception as e:
            raise RegistrationError(f"setMyCommands failed: {e}") from e
        if not ok:
            raise RegistrationError("setMyCommands returned False")
        return len(commands)


class RestCommandRegistrar:
    """
    Full replace against an HTTP command directory.

    PUT <endpoint>/applications/<application_id>/commands with the schema
    list as the JSON body; the service answers with the stored list.

    Auth: Bearer token from REGISTRATION_API_TOKEN env var or constructor arg.
    """

    DEFAULT_TIMEOUT = 30

    def __init__(self, endpoint: str, token: str = None, timeout: int = None):
        self.endpoint = endpoint.rstrip("/")
        self.token = token or os.environ.get("REGISTRATION_API_TOKEN")
        self.timeout = timeout or self.DEFAULT_TIMEOUT

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _put(self, application_id: str, schemas: List[Dict[str, Any]]) -> int:
        url = f"{self.endpoint}/applications/{application_id}/commands"
        try:
            resp = requests.put(url, json=schemas, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            raise RegistrationError(f"PUT {url} failed: {e}") from e

        if resp.status_code >= 400:
            raise RegistrationError(
                f"PUT {url} -> {resp.status_code} {resp.text[:300]}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError:
            body = None
        return len(body) if isinstance(body, list) else len(schemas)

    async def replace_all_commands(
        self, application_id: Optional[str], schemas: List[Dict[str, Any]]
    ) -> int:
        if not application_id:
            raise RegistrationError("application_id is required for REST registration")
        return await asyncio.to_thread(self._put, application_id, schemas)
