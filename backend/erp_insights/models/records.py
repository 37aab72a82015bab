"""
Canonical in-memory records produced by ingestion and consumed by the
analytics services. All quantities are metric tons (MT).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from typing import Optional


class Channel(str, enum.Enum):
    """Source table an order came from. Set at import, never inferred."""
    EXPORT = "export"
    LOCAL = "local"


@dataclass(frozen=True, order=True)
class ProductKey:
    """Composite product identity for finished-goods boxes (code + denier)."""
    product_code: str
    denier: str = ""

    def __str__(self) -> str:
        if self.denier:
            return f"{self.product_code}-{self.denier}"
        return self.product_code


@dataclass(frozen=True)
class OrderRecord:
    order_number: str
    product_id: str
    customer: str
    country: str
    quantity: float
    value: float
    date: Optional[date]
    channel: Channel

    def to_dict(self) -> dict:
        return {
            "order_number": self.order_number,
            "product_id": self.product_id,
            "customer": self.customer,
            "country": self.country,
            "quantity": self.quantity,
            "value": self.value,
            "date": self.date.isoformat() if self.date else None,
            "channel": self.channel.value,
        }


@dataclass(frozen=True)
class InventorySnapshot:
    product_id: str
    month: str
    opening_stock: float
    closing_stock: float
    sales: float


@dataclass(frozen=True)
class DemandRecord:
    product_id: str
    month: str
    demand_quantity: float


@dataclass(frozen=True)
class StockBox:
    box_number: str
    product: ProductKey
    grade: str
    location: str
    net_weight: float  # MT

    @property
    def product_id(self) -> str:
        return self.product.product_code
