"""Catalog item, local stock and pending update data models."""

import math
from dataclasses import dataclass
from typing import Optional, Dict, Any


def _parse_catalog_quantity(value: Any) -> int:
    """Null is 0; numeric strings and fractions are floored, sign kept."""
    if value is None:
        return 0
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"Invalid stock_quantity: {value!r}")
    return int(math.floor(number))


@dataclass(frozen=True)
class CatalogItem:
    """A stock-tracked product as listed by the WooCommerce catalog."""

    id: Any
    sku: str
    stock_quantity: int
    name: str = ""

    def __post_init__(self):
        """Validate data."""
        if not self.sku or not self.sku.strip():
            raise ValueError("SKU cannot be empty")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CatalogItem":
        """Build from a WooCommerce ``products`` record.

        A null ``stock_quantity`` is read as 0. Negative values (backorders)
        are kept so that the diff pushes the local count over them.
        """
        return cls(
            id=data["id"],
            sku=data.get("sku") or "",
            stock_quantity=_parse_catalog_quantity(data.get("stock_quantity")),
            name=data.get("name") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "sku": self.sku,
            "stock_quantity": self.stock_quantity,
            "name": self.name,
        }


@dataclass(frozen=True)
class LocalStockRecord:
    """Normalized result of one local-backend lookup.

    ``quantity`` is only meaningful when ``found`` is True. ``error`` is set
    when the lookup gave up after exhausting its retries.
    """

    key: str
    quantity: int = 0
    found: bool = False
    matched_records: int = 0
    error: Optional[str] = None

    @classmethod
    def not_found(cls, key: str, error: Optional[str] = None) -> "LocalStockRecord":
        return cls(key=key, quantity=0, found=False, error=error)

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class StockUpdate:
    """A pending write of the local quantity to the remote catalog."""

    item_id: Any
    sku: str
    new_quantity: int
    previous_quantity: int
    name: str = ""

    @property
    def stock_status(self) -> str:
        return "instock" if self.new_quantity > 0 else "outofstock"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "item_id": self.item_id,
            "sku": self.sku,
            "name": self.name,
            "new_quantity": self.new_quantity,
            "previous_quantity": self.previous_quantity,
        }
