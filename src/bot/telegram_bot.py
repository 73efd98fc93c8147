#!/usr/bin/env python3
"""
Slash-command Telegram Bot

Every registered /command goes through the cache-aware dispatcher:
  Cacheable + cache hit  → recorded reply/edit/follow-up sequence replayed
  Cache miss             → handler runs live, result cached on success
  Handler failure        → generic error message (exactly one terminal reply)

The command list is pushed to Telegram (setMyCommands) on startup and
whenever the bot is added to a new chat.

Usage:
  TELEGRAM_BOT_TOKEN=your_token python -m bot.telegram_bot
"""

import logging
import os
import sys
from typing import Any, Dict, List, Optional, Tuple

from telegram import Update
from telegram.constants import ChatAction, ChatMemberStatus
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    ChatMemberHandler,
    CommandHandler,
    ContextTypes,
)

from bot.commands import COMMANDS
from command_cache import CacheStore
from dispatch.config import BotConfig, load_config
from dispatch.errors import ReplyTransportError
from dispatch.registration import RestCommandRegistrar, TelegramCommandRegistrar
from dispatch.router import DispatchRouter

logger = logging.getLogger(__name__)

JOINED_STATUSES = {
    ChatMemberStatus.MEMBER,
    ChatMemberStatus.ADMINISTRATOR,
    ChatMemberStatus.OWNER,
}
ABSENT_STATUSES = {
    ChatMemberStatus.LEFT,
    ChatMemberStatus.BANNED,
}


def parse_options(args: List[str]) -> List[Tuple[str, str]]:
    """`name=value` tokens become named options, bare tokens become arg0, arg1, ..."""
    options = []
    position = 0
    for token in args:
        name, sep, value = token.partition("=")
        if sep and name:
            options.append((name.lower(), value))
        else:
            options.append((f"arg{position}", token))
            position += 1
    return options


def parse_command_name(text: Optional[str]) -> str:
    """'/Status@my_bot extra' → 'status'"""
    if not text:
        return ""
    head = text.split(maxsplit=1)[0]
    return head.lstrip("/").split("@", 1)[0].lower()


def render_payload(payload: Any) -> Dict[str, Any]:
    """Turn a reply payload into reply_text/edit_text keyword arguments."""
    if isinstance(payload, str):
        return {"text": payload}
    # Telegram has no ephemeral messages; the flag is dropped.
    kwargs = {"text": payload.get("content") or ""}
    if payload.get("parse_mode"):
        kwargs["parse_mode"] = payload["parse_mode"]
    return kwargs


class TelegramInvocation:
    """Invocation handle over one command message."""

    def __init__(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        self.update = update
        self.context = context
        self.message = update.effective_message
        self.invocation_id = str(update.update_id)
        self.command_name = parse_command_name(self.message.text if self.message else None)
        self.options = parse_options(list(context.args or []))
        self.replied = False
        self.deferred = False
        self._reply_message = None

    @property
    def chat_title(self) -> Optional[str]:
        chat = self.update.effective_chat
        return chat.title if chat else None

    @property
    def chat_type(self) -> Optional[str]:
        chat = self.update.effective_chat
        return chat.type if chat else None

    @property
    def bot_data(self) -> Dict[str, Any]:
        return self.context.bot_data

    async def defer(self) -> None:
        try:
            await self.context.bot.send_chat_action(
                chat_id=self.message.chat_id, action=ChatAction.TYPING
            )
        except TelegramError as e:
            raise ReplyTransportError(f"defer failed: {e}") from e
        self.deferred = True

    async def reply(self, payload: Any):
        try:
            sent = await self.message.reply_text(**render_payload(payload))
        except TelegramError as e:
            raise ReplyTransportError(f"reply failed: {e}") from e
        self._reply_message = sent
        self.replied = True
        return sent

    async def edit_reply(self, payload: Any):
        # A deferred invocation has nothing to edit yet: the edit becomes the reply.
        if self._reply_message is None:
            return await self.reply(payload)
        try:
            return await self._reply_message.edit_text(**render_payload(payload))
        except TelegramError as e:
            raise ReplyTransportError(f"edit failed: {e}") from e

    async def follow_up(self, payload: Any):
        try:
            return await self.message.reply_text(**render_payload(payload))
        except TelegramError as e:
            raise ReplyTransportError(f"follow-up failed: {e}") from e


def joined_new_chat(update: Update) -> bool:
    change = update.my_chat_member
    if change is None:
        return False
    return (
        change.old_chat_member.status in ABSENT_STATUSES
        and change.new_chat_member.status in JOINED_STATUSES
    )


def build_application(config: BotConfig, token: str, store: CacheStore = None) -> Application:
    """Wire the cache, dispatcher and Telegram handlers into one Application."""
    store = store or config.cache.build_store()
    router = DispatchRouter(store, COMMANDS, application_id=config.application_id)
    router.load_commands()

    async def on_ready(app: Application) -> None:
        store.start()
        if router.application_id is None:
            router.application_id = str(app.bot.id)
        logger.debug("Registering commands...")
        await router.register_commands()
        logger.info("Bot is ready as @%s", app.bot.username)

    async def on_shutdown(app: Application) -> None:
        await store.close()

    async def handle_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        invocation = TelegramInvocation(update, context)
        logger.info("Command /%s from chat %s", invocation.command_name, invocation.message.chat_id)
        await router.dispatch(invocation)

    async def handle_my_chat_member(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not joined_new_chat(update):
            return
        chat = update.effective_chat
        logger.debug("Bot joined new chat: %s (%s)", chat.title, chat.id)
        await router.register_commands()

    async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error("Telegram client error: %s", context.error)

    app = (
        Application.builder()
        .token(token)
        .post_init(on_ready)
        .post_shutdown(on_shutdown)
        .build()
    )

    if config.registration.endpoint:
        router.registrar = RestCommandRegistrar(
            config.registration.endpoint, timeout=config.registration.timeout_sec
        )
    else:
        router.registrar = TelegramCommandRegistrar(app.bot)

    app.bot_data["cache_store"] = store
    app.bot_data["router"] = router

    app.add_handler(CommandHandler(list(router.commands), handle_command))
    app.add_handler(ChatMemberHandler(handle_my_chat_member, ChatMemberHandler.MY_CHAT_MEMBER))
    app.add_error_handler(handle_error)
    return app


def main():
    """Start the bot."""
    config = load_config(os.environ.get("BOT_CONFIG", "config/bot.defaults.yml"))
    logging.basicConfig(
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        level=config.log_level,
    )

    token = os.environ.get("TELEGRAM_BOT_TOKEN")
    if not token:
        logger.error("TELEGRAM_BOT_TOKEN not set")
        sys.exit(1)

    logger.info("Starting command bot...")
    app = build_application(config, token)

    logger.info("Bot is running. Polling for updates...")
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
