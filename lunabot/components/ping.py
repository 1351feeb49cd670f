import logging
import time

from lunabot.core.context import Context
from lunabot.core.loader import ComponentRegistrar

LOGGER: logging.Logger = logging.getLogger("PingComponent")


class PingComponent:
    """Latency check, as a command or by typing ``ping``."""

    async def _measure(self, ctx: Context, footer: str = "") -> None:
        start = time.perf_counter()
        await ctx.reply("⚡ Checking connection speed...")
        latency = int((time.perf_counter() - start) * 1000)
        await ctx.send(
            f"🚀 *Pong!*\n⚡ *Response Time:* {latency}ms\n🤖 *Bot Status:* Active & Ready{footer}"
        )

    async def ping(self, ctx: Context) -> None:
        """Usage: !ping, !p"""
        await self._measure(ctx)

    async def ping_chat(self, ctx: Context) -> bool:
        if ctx.text.strip().lower() != "ping":
            return False
        await self._measure(ctx, f"\n\n_You can also use {ctx.prefix}ping_")
        LOGGER.info(f"Ping via chat by {ctx.actor_id}")
        return True


async def setup(registrar: ComponentRegistrar) -> None:
    """Entry point for the module."""
    component = PingComponent()
    registrar.add_command(
        name="ping",
        aliases=("p",),
        category="utility",
        description="Check bot latency and response time",
        guide="{p}ping, or just type 'ping' anywhere in chat",
        cooldown=3,
        on_start=component.ping,
        on_chat=component.ping_chat,
    )
