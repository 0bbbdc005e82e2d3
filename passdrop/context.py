"""Wiring of store, ledger, services and chat client into one handle.

Route handlers and chat commands receive this context instead of reaching
for module-level state.
"""

import httpx

from passdrop.bot.client import PassdropBot
from passdrop.bot.commands import CommandHandler
from passdrop.bot.gateway import DiscordGateway
from passdrop.common.config import CommonSettings
from passdrop.services.catalog import ProductCatalog
from passdrop.services.delivery import DeliveryOrchestrator
from passdrop.services.fulfillment import FulfillmentService
from passdrop.services.identity import IdentityLookup
from passdrop.services.ledger import DeliveryLedger
from passdrop.services.mapping import IdentityMappingTable
from passdrop.services.ownership import OwnershipPoller
from passdrop.store.cache import RecordCache
from passdrop.store.remote import FileRecordStore, RemoteRecordStore


class AppContext:
    """Everything one process needs to serve webhooks and chat commands."""

    def __init__(
        self,
        cache: RecordCache,
        fulfillment: FulfillmentService,
        gateway,
        bot=None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.cache = cache
        self.fulfillment = fulfillment
        self.gateway = gateway
        self.bot = bot
        self.http_client = http_client

    @property
    def ledger(self) -> DeliveryLedger:
        return self.fulfillment.ledger

    @property
    def mappings(self) -> IdentityMappingTable:
        return self.fulfillment.mappings

    async def close(self) -> None:
        """Flush pending writes and release outbound connections."""

        await self.cache.force_save()
        if self.http_client is not None:
            await self.http_client.aclose()


def build_record_store(cfg: CommonSettings, client: httpx.AsyncClient):
    if cfg.store_url:
        return RemoteRecordStore(client, cfg.store_url, cfg.store_api_key, cfg.store_api_key_header)
    return FileRecordStore(cfg.store_file_path)


def assemble(
    cfg: CommonSettings,
    gateway,
    client: httpx.AsyncClient,
    store=None,
    catalog: ProductCatalog | None = None,
    bot=None,
) -> AppContext:
    """Build a context around an existing gateway and HTTP client."""

    cache = RecordCache(
        store if store is not None else build_record_store(cfg, client),
        service_name=cfg.service_name,
        debounce_seconds=cfg.flush_debounce_seconds,
        max_attempts=cfg.flush_max_attempts,
        retry_backoff_seconds=cfg.flush_retry_backoff_seconds,
        ttl_seconds=cfg.cache_ttl_seconds,
    )
    fulfillment = FulfillmentService(
        mappings=IdentityMappingTable(cache),
        ledger=DeliveryLedger(cache),
        catalog=catalog if catalog is not None else ProductCatalog.load(cfg.catalog_path),
        orchestrator=DeliveryOrchestrator(gateway, cfg.proof_channel_id, cfg.service_name),
        poller=OwnershipPoller(client, cfg.inventory_api_url, cfg.service_name),
        identity=IdentityLookup(client, cfg.users_api_url),
        service_name=cfg.service_name,
    )
    return AppContext(cache, fulfillment, gateway, bot=bot, http_client=client)


def create_context(cfg: CommonSettings) -> AppContext:
    """Production wiring: discord.py client, shared httpx client, configured store."""

    client = httpx.AsyncClient(timeout=cfg.http_timeout_seconds)
    bot = PassdropBot()
    context = assemble(cfg, DiscordGateway(bot, cfg.guild_id), client, bot=bot)
    bot.command_handler = CommandHandler(
        context.fulfillment,
        command_channel_id=cfg.command_channel_id,
        notice_ttl_seconds=cfg.notice_ttl_seconds,
    )
    return context
