"""Delivery orchestration: the ordered side effects of handing over a product.

Steps run in a fixed order and each one is caught and recorded on its own:

1. `confirm`   DM a purchase confirmation
2. `file`      DM the product file, or a "not configured" notice
3. `role`      grant the product role unless already held
4. `broadcast` post proof of purchase to the operator channel

Nothing is rolled back when a later step fails. The delivery counts as
successful when the `file` step succeeded.
"""

import os
from time import perf_counter

from pydantic import BaseModel, Field

from passdrop.common.logging import logger
from passdrop.common.metrics import deliveries_total, delivery_latency_seconds, delivery_step_failures_total
from passdrop.common.tracing import get_tracer
from passdrop.services.catalog import ProductDescriptor
from passdrop.store.document import StepOutcome

FILE_STEP = "file"


class DeliveryContext(BaseModel):
    """Why a delivery is happening and on whose behalf."""

    source: str
    external_id: str
    receipt_id: str | None = None
    product_id: str | None = None
    username: str | None = None

    model_config = {"frozen": True}


class DeliveryOutcome(BaseModel):
    """Per-step results of one delivery attempt."""

    steps: list[StepOutcome] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return any(step.name == FILE_STEP and step.ok for step in self.steps)

    def step(self, name: str) -> StepOutcome | None:
        return next((step for step in self.steps if step.name == name), None)


class DeliveryOrchestrator:
    """Runs the delivery steps against a chat gateway."""

    def __init__(
        self,
        gateway,
        proof_channel_id: int | None = None,
        service_name: str = "passdrop",
        tracer=None,
    ) -> None:
        self.gateway = gateway
        self.proof_channel_id = proof_channel_id
        self.service_name = service_name
        self.tracer = tracer if tracer is not None else get_tracer(__name__)

    async def deliver(
        self,
        chat_id: str,
        product: ProductDescriptor | None,
        context: DeliveryContext,
    ) -> DeliveryOutcome:
        start = perf_counter()
        steps = []
        for name, step in (
            ("confirm", self._send_confirmation),
            (FILE_STEP, self._send_file),
            ("role", self._grant_role),
            ("broadcast", self._broadcast_proof),
        ):
            steps.append(await self._run_step(name, step, chat_id, product, context))
        outcome = DeliveryOutcome(steps=steps)

        delivery_latency_seconds.labels(service=self.service_name, source=context.source).observe(
            max(0.0, perf_counter() - start)
        )
        deliveries_total.labels(
            service=self.service_name,
            source=context.source,
            outcome="delivered" if outcome.ok else "failed",
        ).inc()
        logger.info(
            "delivery finished source=%s ok=%s steps=%s",
            context.source,
            outcome.ok,
            {step.name: step.ok for step in steps},
        )
        return outcome

    async def _run_step(self, name, step, chat_id, product, context) -> StepOutcome:
        with self.tracer.start_as_current_span(f"delivery.{name}") as span:
            span.set_attribute("delivery.source", context.source)
            span.set_attribute("delivery.external_id", context.external_id)
            if context.product_id:
                span.set_attribute("delivery.product_id", context.product_id)
            try:
                ok, detail = await step(chat_id, product, context)
            except Exception as exc:
                logger.exception("delivery step failed step=%s error=%s", name, exc)
                span.record_exception(exc)
                ok, detail = False, str(exc) or exc.__class__.__name__
            span.set_attribute("delivery.ok", ok)
        if not ok:
            delivery_step_failures_total.labels(service=self.service_name, step=name).inc()
        return StepOutcome(name=name, ok=ok, detail=detail)

    @staticmethod
    def _product_label(product: ProductDescriptor | None, context: DeliveryContext) -> str:
        if product is not None:
            return product.name
        return context.product_id or "unknown product"

    async def _send_confirmation(self, chat_id, product, context) -> tuple[bool, str]:
        lines = ["🎉 **Purchase received**"]
        if context.username:
            lines.append(f"User: {context.username}")
        lines.append(f"Product: {self._product_label(product, context)}")
        if context.receipt_id:
            lines.append(f"Receipt: {context.receipt_id}")
        await self.gateway.send_dm(chat_id, content="\n".join(lines))
        return True, "sent"

    async def _send_file(self, chat_id, product, context) -> tuple[bool, str]:
        if product is None or not os.path.isfile(product.file_path):
            await self.gateway.send_dm(chat_id, content="⚠️ File not configured. Please contact support.")
            missing = product.file_path if product is not None else context.product_id
            logger.warning("deliverable not configured product=%s", missing)
            return False, "file not configured"
        await self.gateway.send_dm(chat_id, file_path=product.file_path)
        return True, os.path.basename(product.file_path)

    async def _grant_role(self, chat_id, product, context) -> tuple[bool, str]:
        if product is None or product.role_id is None:
            return True, "no role configured"
        if await self.gateway.has_role(chat_id, product.role_id):
            return True, "already held"
        await self.gateway.grant_role(chat_id, product.role_id)
        await self.gateway.send_dm(chat_id, content=f"✅ You now have the role for **{product.name}**.")
        return True, "granted"

    async def _broadcast_proof(self, chat_id, product, context) -> tuple[bool, str]:
        if self.proof_channel_id is None:
            return True, "no proof channel"
        await self.gateway.post_channel(
            self.proof_channel_id,
            f"🧾 <@{chat_id}> received **{self._product_label(product, context)}** "
            f"(Roblox {context.external_id}, via {context.source})",
        )
        return True, "posted"
