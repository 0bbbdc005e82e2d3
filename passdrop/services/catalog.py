"""Static product catalog: what each purchasable product delivers."""

import json
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ProductDescriptor(BaseModel):
    """One purchasable product and the entitlement that proves ownership."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    product_id: str = Field(alias="productId")
    entitlement_id: str | None = Field(default=None, alias="entitlementId")
    file_path: str = Field(alias="filename")
    name: str
    description: str = ""
    role_id: int | None = Field(default=None, alias="roleId")


DEFAULT_PRODUCTS: list[dict] = [
    {
        "productId": "12345678",
        "entitlementId": "12345678",
        "filename": "configs/configPremium.zip",
        "name": "Premium config",
        "description": "Premium configuration pack",
    },
]


class ProductCatalog:
    """Immutable lookup of products by id, loaded once at startup."""

    def __init__(self, products: list[ProductDescriptor]) -> None:
        self._products = {product.product_id: product for product in products}

    @classmethod
    def from_entries(cls, entries: list[dict]) -> "ProductCatalog":
        return cls([ProductDescriptor.model_validate(entry) for entry in entries])

    @classmethod
    def load(cls, path: str = "") -> "ProductCatalog":
        """Read a JSON list of products from `path`, or use the built-in table."""

        if not path:
            return cls.from_entries(DEFAULT_PRODUCTS)
        entries = json.loads(Path(path).read_text(encoding="utf-8"))
        if not isinstance(entries, list):
            raise ValueError(f"catalog file {path} must hold a JSON list")
        return cls.from_entries(entries)

    def get(self, product_id) -> ProductDescriptor | None:
        return self._products.get(str(product_id))

    def entitled_products(self) -> list[ProductDescriptor]:
        """Products whose ownership can be checked against the inventory API."""

        return [product for product in self._products.values() if product.entitlement_id]

    def __iter__(self):
        return iter(self._products.values())

    def __len__(self) -> int:
        return len(self._products)
