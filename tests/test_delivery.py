"""Delivery orchestrator: ordered best-effort steps with per-step outcomes."""

import pytest
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from passdrop.services.delivery import DeliveryContext, DeliveryOrchestrator


def _context(**overrides) -> DeliveryContext:
    values = {"source": "payment", "external_id": "111", "receipt_id": "R1", "product_id": "P1", "username": "builderman"}
    values.update(overrides)
    return DeliveryContext(**values)


@pytest.mark.asyncio
async def test_full_delivery_runs_every_step(gateway, catalog, deliverable):
    orchestrator = DeliveryOrchestrator(gateway, proof_channel_id=555)
    outcome = await orchestrator.deliver("D1", catalog.get("P1"), _context())

    assert outcome.ok
    assert [step.name for step in outcome.steps] == ["confirm", "file", "role", "broadcast"]
    assert all(step.ok for step in outcome.steps)
    assert "Receipt: R1" in gateway.dms[0][1]
    assert gateway.files_sent() == [deliverable]
    assert gateway.granted == [("D1", 42)]
    assert gateway.posts and gateway.posts[0][0] == 555


@pytest.mark.asyncio
async def test_missing_file_sends_notice_and_fails(gateway, catalog):
    orchestrator = DeliveryOrchestrator(gateway)
    outcome = await orchestrator.deliver("D1", catalog.get("P2"), _context(product_id="P2"))

    assert not outcome.ok
    assert outcome.step("confirm").ok
    assert outcome.step("file").detail == "file not configured"
    assert gateway.files_sent() == []
    assert "not configured" in gateway.dms[-1][1]


@pytest.mark.asyncio
async def test_unknown_product_still_confirms(gateway):
    orchestrator = DeliveryOrchestrator(gateway)
    outcome = await orchestrator.deliver("D1", None, _context(product_id="P404"))

    assert not outcome.ok
    assert "Product: P404" in gateway.dms[0][1]
    assert outcome.step("role").detail == "no role configured"
    assert outcome.step("broadcast").detail == "no proof channel"


@pytest.mark.asyncio
async def test_role_already_held_is_not_granted_again(gateway, catalog):
    gateway.roles["D1"] = {42}
    orchestrator = DeliveryOrchestrator(gateway)
    outcome = await orchestrator.deliver("D1", catalog.get("P1"), _context())

    assert outcome.step("role").detail == "already held"
    assert gateway.granted == []


@pytest.mark.asyncio
async def test_role_failure_does_not_roll_back_file(gateway, catalog, deliverable):
    """A failed grant is recorded but the delivery still counts as done."""

    gateway.fail_grant = True
    orchestrator = DeliveryOrchestrator(gateway, proof_channel_id=555)
    outcome = await orchestrator.deliver("D1", catalog.get("P1"), _context())

    assert outcome.ok
    assert not outcome.step("role").ok
    assert "missing permissions" in outcome.step("role").detail
    assert outcome.step("broadcast").ok
    assert gateway.files_sent() == [deliverable]


@pytest.mark.asyncio
async def test_dm_failure_fails_delivery(gateway, catalog):
    gateway.fail_dm = True
    orchestrator = DeliveryOrchestrator(gateway)
    outcome = await orchestrator.deliver("D1", catalog.get("P1"), _context())

    assert not outcome.ok
    assert not outcome.step("confirm").ok
    assert not outcome.step("file").ok


@pytest.mark.asyncio
async def test_each_step_is_traced_with_its_result(gateway, catalog):
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    gateway.fail_grant = True
    orchestrator = DeliveryOrchestrator(gateway, tracer=provider.get_tracer("test"))

    await orchestrator.deliver("D1", catalog.get("P1"), _context(source="check"))

    spans = {span.name: span for span in exporter.get_finished_spans()}
    assert list(spans) == ["delivery.confirm", "delivery.file", "delivery.role", "delivery.broadcast"]
    assert spans["delivery.role"].attributes["delivery.ok"] is False
    assert spans["delivery.role"].events[0].name == "exception"
    assert spans["delivery.file"].attributes["delivery.source"] == "check"
    assert spans["delivery.file"].attributes["delivery.product_id"] == "P1"
