"""Delivery ledger: receipt-keyed and claim-keyed delivery records.

Callers must check `has_receipt` / `has_claim` before doing delivery work and
hold `in_flight(key)` around the whole check-deliver-record sequence, so two
triggers for the same key cannot both observe "not delivered".
"""

import asyncio
from collections.abc import Iterable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from passdrop.common.logging import logger
from passdrop.common.state_machine import (
    CLAIM_TRANSITIONS,
    DELIVERED,
    NEW,
    PENDING,
    validate_transition,
)
from passdrop.store.cache import RecordCache
from passdrop.store.document import ClaimRecord, ReceiptRecord, StepOutcome


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class DeliveryLedger:
    """Records delivery outcomes inside the cached record document."""

    def __init__(self, cache: RecordCache) -> None:
        self.cache = cache
        self._locks: dict[str, list] = {}

    @asynccontextmanager
    async def in_flight(self, key: str):
        """Serialize work on one ledger key; the lock entry is dropped when idle."""

        entry = self._locks.get(key)
        if entry is None:
            entry = self._locks[key] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                self._locks.pop(key, None)

    def is_in_flight(self, key: str) -> bool:
        return key in self._locks

    # Receipts

    def has_receipt(self, receipt_id: str) -> bool:
        return receipt_id in self.cache.document.delivered_receipts

    def get_receipt(self, receipt_id: str) -> ReceiptRecord | None:
        return self.cache.document.delivered_receipts.get(receipt_id)

    def record_receipt(
        self,
        receipt_id: str,
        status: str,
        payload: dict[str, Any],
        steps: Iterable[StepOutcome] = (),
    ) -> ReceiptRecord:
        existing = self.get_receipt(receipt_id)
        validate_transition(existing.status if existing else NEW, status)
        record = ReceiptRecord(
            status=status,
            payload=dict(payload),
            delivered_at=None if status == PENDING else _utcnow_iso(),
            steps=list(steps),
        )
        self.cache.document.delivered_receipts[receipt_id] = record
        self.cache.save()
        logger.info("receipt recorded receipt_id=%s status=%s", receipt_id, status)
        return record

    # Claims

    @staticmethod
    def claim_key(external_id, product_id) -> str:
        return f"{external_id}_{product_id}"

    def has_claim(self, external_id, product_id) -> bool:
        return self.claim_key(external_id, product_id) in self.cache.document.delivered_passes

    def get_claim(self, external_id, product_id) -> ClaimRecord | None:
        return self.cache.document.delivered_passes.get(self.claim_key(external_id, product_id))

    def record_claim(self, external_id, product_id, chat_id) -> ClaimRecord:
        """Write the terminal claim for (external_id, product_id); raises if present."""

        key = self.claim_key(external_id, product_id)
        current = DELIVERED if key in self.cache.document.delivered_passes else NEW
        validate_transition(current, DELIVERED, CLAIM_TRANSITIONS)
        record = ClaimRecord(
            product_id=str(product_id),
            external_id=str(external_id),
            chat_id=str(chat_id),
            delivered_at=_utcnow_iso(),
        )
        self.cache.document.delivered_passes[key] = record
        self.cache.save()
        logger.info("claim recorded key=%s", key)
        return record
