"""Game-pass ownership checks against the public inventory API.

Every failure reads as "does not own": the manual check flow only ever
delivers on a positive answer.
"""

import httpx

from passdrop.common.logging import logger
from passdrop.common.metrics import ownership_checks_total


class OwnershipPoller:
    """One fresh inventory query per (user, entitlement); no caching."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str = "https://inventory.roblox.com",
        service_name: str = "passdrop",
    ) -> None:
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.service_name = service_name

    async def owns_entitlement(self, external_id, entitlement_id) -> bool:
        url = f"{self.base_url}/v1/users/{external_id}/items/GamePass/{entitlement_id}"
        try:
            resp = await self.client.get(url)
            resp.raise_for_status()
            data = resp.json().get("data")
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning(
                "ownership check failed external_id=%s entitlement_id=%s error=%s",
                external_id,
                entitlement_id,
                exc,
            )
            ownership_checks_total.labels(service=self.service_name, result="error").inc()
            return False
        owned = isinstance(data, list) and len(data) > 0
        ownership_checks_total.labels(service=self.service_name, result="owned" if owned else "not_owned").inc()
        return owned
