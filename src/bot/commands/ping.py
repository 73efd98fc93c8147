"""/ping — round-trip latency check. Cached briefly."""

import time

from dispatch.registry import CommandMeta


async def execute(invocation):
    started = time.perf_counter()
    await invocation.reply({"content": "Pinging..."})
    latency = round((time.perf_counter() - started) * 1000)
    content = f"Pong! {latency}ms"
    await invocation.edit_reply({"content": content})
    return {"content": content}


command = CommandMeta(
    name="ping",
    description="Replies with Pong",
    handler=execute,
    cacheable=True,
    ttl_override_sec=5,
)
