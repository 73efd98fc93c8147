"""/cachestats — response cache diagnostics."""

from dispatch.registry import CommandMeta


def format_stats(stats) -> str:
    usage_mb = stats["memory_usage_bytes"] / (1024 * 1024)
    budget_mb = stats["memory_budget_bytes"] / (1024 * 1024)
    total = stats["hits"] + stats["misses"]
    hit_rate = (stats["hits"] / total * 100) if total > 0 else 0
    return (
        "🗄️ **Cache**\n"
        f"Entries: {stats['size']}/{stats['max_size']}\n"
        f"Memory: {usage_mb:.2f}MB / {budget_mb:.2f}MB\n"
        f"Hit rate: {hit_rate:.1f}% ({stats['hits']}/{total})\n"
        f"Evictions: {stats['evictions']} | Expired: {stats['expirations']} | Rejected: {stats['rejections']}"
    )


async def execute(invocation):
    store = invocation.bot_data.get("cache_store")
    if store is None:
        await invocation.reply({"content": "Cache is not enabled.", "ephemeral": True})
        return None
    await invocation.reply({"content": format_stats(store.stats()), "ephemeral": True})
    return None


command = CommandMeta(
    name="cachestats",
    description="Show response cache statistics",
    handler=execute,
)
