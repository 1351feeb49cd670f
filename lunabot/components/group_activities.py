import logging

from lunabot.core.context import Context
from lunabot.core.events import MEMBERSHIP_DEMOTED, MEMBERSHIP_PROMOTED
from lunabot.core.identity import normalize_sender_id
from lunabot.core.loader import ComponentRegistrar
from lunabot.core.registry import ROLE_GROUP_ADMIN

LOGGER: logging.Logger = logging.getLogger("GroupActivities")

PROMOTED_SUB = "groupactivities.promoted"
DEMOTED_SUB = "groupactivities.demoted"
SUBSCRIPTIONS = (PROMOTED_SUB, DEMOTED_SUB)

USAGE = "Usage: {p}groupactivities on/off/status"


class GroupActivities:
    """Promote/demote notices, switched on per group."""

    def is_enabled(self, ctx: Context) -> bool:
        return all(ctx.state.scopes.allows(name, ctx.thread_id) for name in SUBSCRIPTIONS)

    async def toggle(self, ctx: Context) -> None:
        if not ctx.is_group:
            await ctx.reply("❌ This command can only be used in groups!")
            return

        action = ctx.args[0].lower() if ctx.args else "status"
        scopes = ctx.state.scopes

        if action in ("on", "enable"):
            for name in SUBSCRIPTIONS:
                scopes.activate(name, ctx.thread_id)
            LOGGER.info(f"Group activities enabled for {ctx.thread_id}")
            await ctx.reply(
                "✅ Group activities notifications have been ENABLED!\n\n"
                "📢 I will now notify about member promotions and demotions."
            )
        elif action in ("off", "disable"):
            for name in SUBSCRIPTIONS:
                scopes.deactivate(name, ctx.thread_id)
            LOGGER.info(f"Group activities disabled for {ctx.thread_id}")
            await ctx.reply("🔇 Group activities notifications have been DISABLED!")
        elif action == "status":
            status = "ON" if self.is_enabled(ctx) else "OFF"
            await ctx.reply(
                f"📊 Group Activities Status: {status}\n\n{USAGE.format(p=ctx.prefix)}"
            )
        else:
            await ctx.reply(f"❌ Invalid option!\n\n{USAGE.format(p=ctx.prefix)}")

    async def _announce(self, ctx: Context, template: str) -> None:
        participants = ctx.event.participants
        if not participants:
            return
        names = ", ".join(f"@{normalize_sender_id(p)}" for p in participants)
        await ctx.send(template.format(users=names), mentions=list(participants))

    async def on_promoted(self, ctx: Context) -> None:
        await self._announce(ctx, "👑 {users} has been promoted to admin.")

    async def on_demoted(self, ctx: Context) -> None:
        await self._announce(ctx, "⬇️ {users} is no longer an admin.")


async def setup(registrar: ComponentRegistrar) -> None:
    """Entry point for the module."""
    component = GroupActivities()
    registrar.add_command(
        name="groupactivities",
        aliases=("ga", "groupactivity"),
        category="admin",
        description="Toggle promote/demote notifications for this group",
        guide=USAGE,
        role=ROLE_GROUP_ADMIN,
        cooldown=3,
        on_start=component.toggle,
    )
    # No initial scope: notices stay off until enabled in a group
    registrar.on_event(MEMBERSHIP_PROMOTED, component.on_promoted, name=PROMOTED_SUB)
    registrar.on_event(MEMBERSHIP_DEMOTED, component.on_demoted, name=DEMOTED_SUB)
