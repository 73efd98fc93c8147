"""/echo — repeats its input. Never cached."""

from dispatch.registry import CommandMeta


async def execute(invocation):
    options = dict(invocation.options)
    message = options.get("message") or " ".join(
        value for name, value in invocation.options if name.startswith("arg")
    )
    if not message:
        await invocation.reply({"content": "Usage: /echo <text> or /echo message=<text>", "ephemeral": True})
        return None
    await invocation.reply({"content": message})
    return None


command = CommandMeta(
    name="echo",
    description="Echoes your input",
    handler=execute,
)
