"""discord.py client hosting the chat commands."""

import discord

from passdrop.common.logging import logger


class PassdropBot(discord.Client):
    """Gateway connection; command messages are handed to the command handler."""

    def __init__(self, command_handler=None) -> None:
        intents = discord.Intents.default()
        intents.message_content = True
        super().__init__(intents=intents)
        self.command_handler = command_handler

    async def on_ready(self) -> None:
        logger.info("bot connected as %s", self.user)

    async def on_message(self, message: discord.Message) -> None:
        if self.command_handler is None:
            return
        await self.command_handler.handle(message)
