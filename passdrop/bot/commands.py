"""Chat commands: `!register <name>`, `!unlink`, `!check`.

Replies are transient: they delete themselves after the notice TTL so the
command channel stays clean. The `!register` message itself is deleted
because it ties a Discord account to a Roblox name in public.
"""

import discord

from passdrop.common.logging import log_context, logger
from passdrop.services.fulfillment import FulfillmentService

PREFIX = "!"


class CommandHandler:
    """Parses command messages and runs the matching fulfillment flow."""

    def __init__(
        self,
        fulfillment: FulfillmentService,
        command_channel_id: int | None = None,
        notice_ttl_seconds: float = 10.0,
    ) -> None:
        self.fulfillment = fulfillment
        self.command_channel_id = command_channel_id
        self.notice_ttl_seconds = notice_ttl_seconds
        self._handlers = {
            "register": self.register,
            "unlink": self.unlink,
            "check": self.check,
        }

    async def handle(self, message) -> bool:
        """Dispatch one message; returns True when it was a known command."""

        if message.author.bot:
            return False
        if self.command_channel_id is not None and message.channel.id != self.command_channel_id:
            return False
        content = (message.content or "").strip()
        if not content.startswith(PREFIX):
            return False
        name, _, argument = content[len(PREFIX):].partition(" ")
        handler = self._handlers.get(name.lower())
        if handler is None:
            return False

        with log_context(chat_id=message.author.id):
            logger.info("command received name=%s", name.lower())
            await handler(message, argument.strip())
        return True

    async def _notice(self, message, text: str) -> None:
        try:
            await message.channel.send(text, delete_after=self.notice_ttl_seconds)
        except discord.DiscordException as exc:
            logger.warning("notice send failed error=%s", exc)

    async def _delete(self, message) -> None:
        try:
            await message.delete()
        except discord.DiscordException as exc:
            logger.warning("command message delete failed error=%s", exc)

    async def register(self, message, argument: str) -> None:
        await self._delete(message)
        mention = message.author.mention
        if not argument:
            await self._notice(message, f"{mention} usage: `!register <roblox username>`")
            return
        username = argument.split()[0]
        external_id = await self.fulfillment.register(message.author.id, username)
        if external_id is None:
            await self._notice(message, f"❌ {mention} Roblox user `{username}` was not found.")
            return
        await self._notice(message, f"✅ {mention} linked to Roblox user `{username}` ({external_id}).")

    async def unlink(self, message, argument: str) -> None:
        mention = message.author.mention
        external_id = self.fulfillment.unlink(message.author.id)
        if external_id is None:
            await self._notice(message, f"{mention} you have no linked Roblox account.")
            return
        await self._notice(message, f"✅ {mention} unlinked from Roblox account {external_id}.")

    async def check(self, message, argument: str) -> None:
        mention = message.author.mention
        report = await self.fulfillment.check_ownership(message.author.id)
        if not report.linked:
            await self._notice(message, f"{mention} link your account first with `!register <roblox username>`.")
            return

        def names(status: str) -> str:
            labels = []
            for product_id in report.products_with(status):
                product = self.fulfillment.catalog.get(product_id)
                labels.append(product.name if product else product_id)
            return ", ".join(labels)

        lines = []
        if report.products_with("delivered"):
            lines.append(f"📦 Delivered to your DMs: {names('delivered')}")
        if report.products_with("already"):
            lines.append(f"Already delivered: {names('already')}")
        if report.products_with("failed"):
            lines.append(f"⚠️ Delivery failed, contact support: {names('failed')}")
        if not lines:
            lines.append("No owned products found on your Roblox account.")
        await self._notice(message, f"{mention}\n" + "\n".join(lines))
