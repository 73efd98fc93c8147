"""/status — bot and chat status, delivered as reply → edit → follow-up."""

import time

from dispatch.registry import CommandMeta

STARTED_AT = time.monotonic()


def _uptime() -> str:
    return f"{int(time.monotonic() - STARTED_AT)}s"


async def execute(invocation):
    # Initial reply
    await invocation.reply({"content": "📊 Gathering status information..."})

    bot_status = f"🤖 **Bot Status**\nUptime: {_uptime()}"
    await invocation.edit_reply({"content": bot_status})

    chat_status = (
        f"🌐 **Chat Status**\n"
        f"Chat: {invocation.chat_title or 'private'}\n"
        f"Type: {invocation.chat_type}"
    )
    await invocation.follow_up({"content": chat_status})

    # The initial step is taken from the live reply above.
    return {
        "steps": [
            {"kind": "edit", "content": bot_status},
            {"kind": "followUp", "content": chat_status},
        ]
    }


command = CommandMeta(
    name="status",
    description="Check the bot and chat status",
    handler=execute,
    cacheable=True,
    ttl_override_sec=30,
)
