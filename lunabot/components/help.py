import logging

from lunabot.core.context import Context
from lunabot.core.loader import ComponentRegistrar
from lunabot.core.registry import Command, role_name

LOGGER: logging.Logger = logging.getLogger("HelpComponent")

# Replies to the menu are accepted for this long
MENU_REPLY_TTL = 300


class HelpComponent:
    """Command menu and per-command details."""

    def menu(self, ctx: Context) -> str:
        role = ctx.role
        grouped = {
            category: [c.name for c in commands if c.role <= role]
            for category, commands in ctx.state.registry.list_by_category().items()
        }
        grouped = {category: names for category, names in grouped.items() if names}

        lines = [f"*{ctx.state.settings.bot_name.upper()} COMMANDS*"]
        for category in sorted(grouped):
            lines.append(f"\n『 *{category.upper()}* 』")
            lines.extend(f"  ✧ {name}" for name in sorted(grouped[category]))

        total = sum(len(names) for names in grouped.values())
        lines.append(f"\nYou can use *{total}* command(s).")
        lines.append(f"_Type *{ctx.prefix}help <command>* or reply with a command name for details._")
        return "\n".join(lines)

    def details(self, command: Command, prefix: str) -> str:
        guide = (command.guide or f"{{p}}{command.name}").replace("{p}", prefix)
        aliases = ", ".join(command.aliases) if command.aliases else "None"
        chat = "✅ Yes (works without prefix)" if command.on_chat else "❌ No"
        return (
            "*COMMAND INFO*\n"
            f"*Name:* {command.name}\n"
            f"*Description:* {command.description or 'No description available.'}\n"
            f"*Category:* {command.category}\n"
            f"*Aliases:* {aliases}\n"
            f"*Role Required:* {role_name(command.role)}\n"
            f"*Usage:* {guide}\n"
            f"*OnChat:* {chat}"
        )

    async def _send_details(self, ctx: Context, name: str) -> None:
        token = name.strip()
        if token.startswith(ctx.prefix):
            token = token[len(ctx.prefix):]
        command = ctx.state.registry.resolve(token)
        if command is None:
            await ctx.reply(f"⚠️ Command \"*{token}*\" not found.")
            return
        await ctx.reply(self.details(command, ctx.prefix))

    async def help(self, ctx: Context) -> None:
        """Usage: !help [command]"""
        if ctx.args:
            await self._send_details(ctx, ctx.args[0])
            return

        sent_id = await ctx.reply(self.menu(ctx))
        if sent_id and ctx.command and ctx.command.on_reply:
            ctx.expect_reply(sent_id, ctx.command.on_reply, ttl=MENU_REPLY_TTL)

    async def on_reply(self, ctx: Context) -> None:
        if not ctx.args:
            return
        await self._send_details(ctx, ctx.args[0])


async def setup(registrar: ComponentRegistrar) -> None:
    """Entry point for the module."""
    component = HelpComponent()
    registrar.add_command(
        name="help",
        aliases=("h", "menu", "commands"),
        category="info",
        description="View command usage and list all available commands",
        guide="{p}help [command name]\nExample: {p}help ping",
        cooldown=3,
        on_start=component.help,
        on_reply=component.on_reply,
    )
