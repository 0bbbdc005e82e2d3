"""Shape of the single persisted JSON document.

Field aliases keep the camelCase keys already written by earlier deployments
(`deliveredReceipts`, `deliveredPasses`, ...) while Python code uses
snake_case attributes.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    # Older documents stored ids as JSON numbers.
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True, extra="ignore")


class StepOutcome(_WireModel):
    """Result of one delivery side effect."""

    name: str
    ok: bool
    detail: str = ""


class ReceiptRecord(_WireModel):
    """Ledger entry for one payment event, keyed by receipt id."""

    status: str
    payload: dict[str, Any]
    delivered_at: str | None = Field(default=None, alias="deliveredAt")
    steps: list[StepOutcome] = Field(default_factory=list)


class ClaimRecord(_WireModel):
    """Ledger entry for one (external identity, product) delivery."""

    product_id: str = Field(alias="productId")
    external_id: str = Field(alias="robloxId")
    chat_id: str = Field(alias="discordId")
    delivered_at: str = Field(alias="deliveredAt")


class LedgerDocument(_WireModel):
    """Mappings plus both delivery ledgers, mirrored from the record store."""

    mappings: dict[str, str] = Field(default_factory=dict)
    delivered_receipts: dict[str, ReceiptRecord] = Field(default_factory=dict, alias="deliveredReceipts")
    delivered_passes: dict[str, ClaimRecord] = Field(default_factory=dict, alias="deliveredPasses")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
