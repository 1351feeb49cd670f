import logging

from lunabot.core.context import Context
from lunabot.core.loader import ComponentRegistrar

LOGGER: logging.Logger = logging.getLogger("StatsComponent")

TOP_LIMIT = 5


class StatsComponent:
    async def stats(self, ctx: Context) -> None:
        """Usage: !stats, !stats top"""
        store = ctx.store
        if store is None:
            await ctx.reply("📊 Stats are unavailable: no database is configured.")
            return

        if ctx.args and ctx.args[0].lower() == "top":
            rows = await store.top_commands(TOP_LIMIT)
            if not rows:
                await ctx.reply("📊 No commands have been used yet.")
                return
            lines = ["🏆 *Top commands*"]
            lines.extend(
                f"{i}. {row['command_name']} ({row['usage_count']})"
                for i, row in enumerate(rows, start=1)
            )
            await ctx.reply("\n".join(lines))
            return

        user = await store.user_stats(ctx.actor_id)
        lines = [
            "📊 *Your stats*",
            f"Commands used: {user.get('command_count', 0)}",
        ]
        if user.get("favourite_command"):
            lines.append(f"Favourite command: {user['favourite_command']}")

        if ctx.is_group:
            group = await store.group_stats(ctx.thread_id)
            lines.extend(
                [
                    "",
                    f"👥 *{group.get('name') or 'This group'}*",
                    f"Messages: {group.get('message_count', 0)}",
                    f"Commands: {group.get('command_count', 0)}",
                ]
            )
        await ctx.reply("\n".join(lines))


async def setup(registrar: ComponentRegistrar) -> None:
    """Entry point for the module."""
    component = StatsComponent()
    registrar.add_command(
        name="stats",
        aliases=("stat",),
        category="info",
        description="Show your command usage and this group's activity",
        guide="{p}stats\n{p}stats top",
        cooldown=5,
        on_start=component.stats,
    )
