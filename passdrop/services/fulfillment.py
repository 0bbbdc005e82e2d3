"""Fulfillment flows tying mappings, ledger, ownership and delivery together.

Two triggers lead to a delivery:

* a payment webhook, keyed by receipt id (`handle_payment`)
* a manual `!check`, keyed by (Roblox id, product id) claims (`check_ownership`)

Both hold the ledger's in-flight lock for their key from the idempotency
check until the outcome is recorded.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from passdrop.common.logging import log_context, logger
from passdrop.common.metrics import duplicate_deliveries_skipped_total, payment_events_total
from passdrop.common.state_machine import DELIVERED, FAILED, PENDING
from passdrop.services.catalog import ProductCatalog
from passdrop.services.delivery import DeliveryContext, DeliveryOrchestrator
from passdrop.services.identity import IdentityLookup
from passdrop.services.ledger import DeliveryLedger
from passdrop.services.mapping import IdentityMappingTable
from passdrop.services.ownership import OwnershipPoller


class PaymentEvent(BaseModel):
    """Payload accepted by `POST /payment`."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="ignore")

    user_id: str = Field(alias="userId", min_length=1)
    product_id: str = Field(alias="productId", min_length=1)
    receipt_id: str = Field(alias="receiptId", min_length=1)
    discord_id: str | None = Field(default=None, alias="discordId")
    username: str | None = None


class PaymentResult(str, Enum):
    DELIVERED = "Delivered"
    DELIVERY_FAILED = "Delivery failed"
    ALREADY_DELIVERED = "Already delivered"
    NO_DISCORD_ID = "No Discord ID found"


class CheckReport(BaseModel):
    """Per-product result of one manual ownership check."""

    linked: bool
    external_id: str | None = None
    results: dict[str, str] = Field(default_factory=dict)

    def products_with(self, status: str) -> list[str]:
        return [product_id for product_id, result in self.results.items() if result == status]


class FulfillmentService:
    """Entry point for every inbound event that can change ledger state."""

    def __init__(
        self,
        mappings: IdentityMappingTable,
        ledger: DeliveryLedger,
        catalog: ProductCatalog,
        orchestrator: DeliveryOrchestrator,
        poller: OwnershipPoller,
        identity: IdentityLookup,
        service_name: str = "passdrop",
    ) -> None:
        self.mappings = mappings
        self.ledger = ledger
        self.catalog = catalog
        self.orchestrator = orchestrator
        self.poller = poller
        self.identity = identity
        self.service_name = service_name

    async def handle_payment(self, event: PaymentEvent) -> PaymentResult:
        """Deliver one paid receipt at most once."""

        with log_context(receipt_id=event.receipt_id):
            async with self.ledger.in_flight(f"receipt:{event.receipt_id}"):
                result = await self._handle_payment_locked(event)
        payment_events_total.labels(service=self.service_name, result=result.name.lower()).inc()
        return result

    async def _handle_payment_locked(self, event: PaymentEvent) -> PaymentResult:
        if self.ledger.has_receipt(event.receipt_id):
            logger.info("duplicate receipt skipped")
            duplicate_deliveries_skipped_total.labels(service=self.service_name, source="payment").inc()
            return PaymentResult.ALREADY_DELIVERED

        payload = event.model_dump(by_alias=True, exclude_none=True)
        chat_id = event.discord_id or self.mappings.resolve(event.user_id)
        if not chat_id:
            # Parked: a later link does not re-trigger this receipt.
            logger.info("no chat identity for user_id=%s, receipt parked", event.user_id)
            self.ledger.record_receipt(event.receipt_id, PENDING, payload)
            return PaymentResult.NO_DISCORD_ID

        outcome = await self.orchestrator.deliver(
            chat_id,
            self.catalog.get(event.product_id),
            DeliveryContext(
                source="payment",
                external_id=event.user_id,
                receipt_id=event.receipt_id,
                product_id=event.product_id,
                username=event.username,
            ),
        )
        self.ledger.record_receipt(
            event.receipt_id,
            DELIVERED if outcome.ok else FAILED,
            payload,
            outcome.steps,
        )
        return PaymentResult.DELIVERED if outcome.ok else PaymentResult.DELIVERY_FAILED

    def link(self, external_id, chat_id) -> None:
        self.mappings.link(external_id, chat_id)

    async def register(self, chat_id, username: str) -> str | None:
        """Resolve `username` to a Roblox id and link it; None when not found."""

        external_id = await self.identity.lookup_user_id(username)
        if external_id is None:
            logger.info("register lookup found no user username=%s", username)
            return None
        self.mappings.link(external_id, chat_id)
        return external_id

    def unlink(self, chat_id) -> str | None:
        return self.mappings.unlink(chat_id)

    async def check_ownership(self, chat_id) -> CheckReport:
        """Poll every entitled product and deliver the owned, unclaimed ones."""

        chat_id = str(chat_id)
        external_id = self.mappings.find_external(chat_id)
        if external_id is None:
            return CheckReport(linked=False)

        report = CheckReport(linked=True, external_id=external_id)
        for product in self.catalog.entitled_products():
            key = self.ledger.claim_key(external_id, product.product_id)
            async with self.ledger.in_flight(f"claim:{key}"):
                report.results[product.product_id] = await self._check_product(external_id, chat_id, product)
        logger.info("ownership check finished external_id=%s results=%s", external_id, report.results)
        return report

    async def _check_product(self, external_id: str, chat_id: str, product) -> str:
        if self.ledger.has_claim(external_id, product.product_id):
            duplicate_deliveries_skipped_total.labels(service=self.service_name, source="check").inc()
            return "already"
        if not await self.poller.owns_entitlement(external_id, product.entitlement_id):
            return "not_owned"
        outcome = await self.orchestrator.deliver(
            chat_id,
            product,
            DeliveryContext(source="check", external_id=external_id, product_id=product.product_id),
        )
        if not outcome.ok:
            return "failed"
        self.ledger.record_claim(external_id, product.product_id, chat_id)
        return "delivered"
