"""Roblox username -> user id lookup used by `!register`."""

import httpx

from passdrop.common.logging import logger


class IdentityLookup:
    """Resolves a Roblox username through the public users API."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = "https://users.roblox.com") -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")

    async def lookup_user_id(self, username: str) -> str | None:
        """Return the user id for `username`, or None when unknown or unreachable."""

        username = username.strip()
        if not username:
            return None
        try:
            resp = await self.client.post(
                f"{self.base_url}/v1/usernames/users",
                json={"usernames": [username], "excludeBannedUsers": True},
            )
            resp.raise_for_status()
            data = resp.json().get("data") or []
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("identity lookup failed username=%s error=%s", username, exc)
            return None
        if not data or not isinstance(data[0], dict) or data[0].get("id") is None:
            return None
        return str(data[0]["id"])
