"""
/random number [min] [max]
/random pick a, b, c

Results are random by nature, so the command is not cacheable.
"""

import random

from dispatch.registry import CommandMeta

USAGE = "Usage: /random number [min] [max] or /random pick item1, item2, ..."


def _positional(invocation):
    return [value for name, value in invocation.options if name.startswith("arg")]


async def execute(invocation):
    args = _positional(invocation)
    options = dict(invocation.options)
    subcommand = args[0].lower() if args else ""

    if subcommand == "number":
        try:
            low = int(options.get("min", args[1] if len(args) > 1 else 1))
            high = int(options.get("max", args[2] if len(args) > 2 else 100))
        except ValueError:
            await invocation.reply({"content": "❌ min and max must be whole numbers!", "ephemeral": True})
            return None

        if low >= high:
            await invocation.reply(
                {"content": "❌ The minimum number must be less than the maximum number!", "ephemeral": True}
            )
            return None

        value = random.randint(low, high)
        await invocation.reply({"content": f"🎲 Your random number between {low} and {high} is: **{value}**"})
        return None

    if subcommand == "pick":
        raw = options.get("items") or " ".join(args[1:])
        items = [item.strip() for item in raw.split(",") if item.strip()]
        if not items:
            await invocation.reply({"content": "❌ Please provide at least one item to choose from!", "ephemeral": True})
            return None

        choice = random.choice(items)
        await invocation.reply({"content": f"🎯 I randomly picked: **{choice}**\n*(from {len(items)} items)*"})
        return None

    await invocation.reply({"content": USAGE, "ephemeral": True})
    return None


command = CommandMeta(
    name="random",
    description="Generate random numbers or pick random items",
    handler=execute,
    cacheable=False,
)
