"""Discord-backed chat gateway used by the delivery orchestrator."""

import discord


class DiscordGateway:
    """Thin async facade over the discord.py client for DMs, roles and channels."""

    def __init__(self, client: discord.Client, guild_id: int | None = None) -> None:
        self.client = client
        self.guild_id = guild_id

    def is_ready(self) -> bool:
        return self.client.is_ready()

    async def _user(self, chat_id) -> discord.User:
        user_id = int(chat_id)
        return self.client.get_user(user_id) or await self.client.fetch_user(user_id)

    async def _member(self, chat_id) -> discord.Member:
        if self.guild_id is None:
            raise LookupError("GUILD_ID is not configured")
        guild = self.client.get_guild(self.guild_id) or await self.client.fetch_guild(self.guild_id)
        member_id = int(chat_id)
        return guild.get_member(member_id) or await guild.fetch_member(member_id)

    async def send_dm(self, chat_id, content: str | None = None, file_path: str | None = None) -> None:
        user = await self._user(chat_id)
        if file_path:
            await user.send(content=content, file=discord.File(file_path))
        else:
            await user.send(content=content)

    async def has_role(self, chat_id, role_id: int) -> bool:
        member = await self._member(chat_id)
        return any(role.id == role_id for role in member.roles)

    async def grant_role(self, chat_id, role_id: int) -> None:
        member = await self._member(chat_id)
        role = member.guild.get_role(role_id)
        if role is None:
            raise LookupError(f"role {role_id} not found in guild {member.guild.id}")
        await member.add_roles(role, reason="passdrop purchase delivery")

    async def post_channel(self, channel_id: int, content: str) -> None:
        channel = self.client.get_channel(channel_id) or await self.client.fetch_channel(channel_id)
        await channel.send(content)
