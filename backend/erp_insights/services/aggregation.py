"""
Aggregation layer: group raw records and accumulate totals.

Every function here is pure: it takes lists of records and returns new
dicts/lists, so callers may run them concurrently on separate datasets.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, TypeVar

from erp_insights.models.records import (
    Channel,
    DemandRecord,
    InventorySnapshot,
    OrderRecord,
    ProductKey,
    StockBox,
)

R = TypeVar("R")
K = TypeVar("K", bound=Hashable)


@dataclass
class Totals:
    """Running quantity / value / count for one group."""
    quantity: float = 0.0
    value: float = 0.0
    count: int = 0

    @property
    def average_price(self) -> float:
        return self.value / self.quantity if self.quantity else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {"quantity": self.quantity, "value": self.value, "count": self.count}


@dataclass
class BoxTotals:
    boxes: int = 0
    weight: float = 0.0

    @property
    def avg_weight(self) -> float:
        return self.weight / self.boxes if self.boxes else 0.0


# ═══════════════════════════════════════════════════════════════════
#  1. GENERIC GROUP-BY
# ═══════════════════════════════════════════════════════════════════

def aggregate(
    records: Iterable[R],
    key: Callable[[R], K],
    quantity: Callable[[R], float],
    value: Callable[[R], float] = lambda r: 0.0,
) -> Dict[K, Totals]:
    """
    Left-fold records into {key: Totals}.

    Sparse: keys with no records never appear. Empty input → {}.
    """
    groups: Dict[K, Totals] = {}
    for rec in records:
        k = key(rec)
        totals = groups.get(k)
        if totals is None:
            totals = groups[k] = Totals()
        totals.quantity += quantity(rec)
        totals.value += value(rec)
        totals.count += 1
    return groups


def sum_by(records: Iterable[R], key: Callable[[R], K], quantity: Callable[[R], float]) -> Dict[K, float]:
    """{key: summed quantity}, the shape the recommendation rules consume."""
    return {k: t.quantity for k, t in aggregate(records, key, quantity).items()}


def aggregate_orders(orders: Iterable[OrderRecord], key: Callable[[OrderRecord], K]) -> Dict[K, Totals]:
    return aggregate(orders, key, lambda o: o.quantity, lambda o: o.value)


def orders_by_product(orders: Iterable[OrderRecord]) -> Dict[str, Totals]:
    return aggregate_orders(orders, lambda o: o.product_id)


def orders_by_customer(orders: Iterable[OrderRecord]) -> Dict[str, Totals]:
    return aggregate_orders(orders, lambda o: o.customer)


def orders_by_country(orders: Iterable[OrderRecord]) -> Dict[str, Totals]:
    return aggregate_orders(orders, lambda o: o.country)


def orders_by_month(orders: Iterable[OrderRecord]) -> Dict[str, Totals]:
    dated = [o for o in orders if o.date is not None]
    return aggregate_orders(dated, lambda o: f"{o.date.year:04d}-{o.date.month:02d}")


# ═══════════════════════════════════════════════════════════════════
#  2. DEMAND / STOCK MAPS
# ═══════════════════════════════════════════════════════════════════

def demand_from_forecasts(demand: Iterable[DemandRecord], month: Optional[str] = None) -> Dict[str, float]:
    rows = [d for d in demand if month is None or d.month == month]
    return sum_by(rows, lambda d: d.product_id, lambda d: d.demand_quantity)


def demand_from_orders(orders: Iterable[OrderRecord]) -> Dict[str, float]:
    """Open-order demand: total ordered quantity per product."""
    return sum_by(orders, lambda o: o.product_id, lambda o: o.quantity)


def stock_from_snapshots(snapshots: Iterable[InventorySnapshot], month: Optional[str] = None) -> Dict[str, float]:
    """Closing stock per product for a month (all months summed when None)."""
    rows = [s for s in snapshots if month is None or s.month == month]
    return sum_by(rows, lambda s: s.product_id, lambda s: s.closing_stock)


def stock_from_boxes(boxes: Iterable[StockBox]) -> Dict[str, float]:
    """Box-in-hand net weight per product code (all deniers pooled)."""
    return sum_by(boxes, lambda b: b.product_id, lambda b: b.net_weight)


# ═══════════════════════════════════════════════════════════════════
#  3. ORDER SUMMARY
# ═══════════════════════════════════════════════════════════════════

def recent_orders(orders: Iterable[OrderRecord], limit: int = 10) -> List[OrderRecord]:
    """Newest first; undated orders sort last."""
    return sorted(orders, key=lambda o: o.date or date.min, reverse=True)[:limit]


def _groups_to_dict(groups: Dict[Any, Totals]) -> Dict[str, Dict[str, Any]]:
    return {str(k): t.to_dict() for k, t in groups.items()}


def summarize_orders(orders: List[OrderRecord], recent: int = 10) -> Dict[str, Any]:
    """Totals, channel split, group-bys and the most recent orders."""
    by_product = orders_by_product(orders)
    return {
        "total_orders": len(orders),
        "total_quantity": sum(o.quantity for o in orders),
        "total_value": sum(o.value for o in orders),
        "export_orders": sum(1 for o in orders if o.channel is Channel.EXPORT),
        "local_orders": sum(1 for o in orders if o.channel is Channel.LOCAL),
        "orders_by_product": _groups_to_dict(by_product),
        "orders_by_customer": _groups_to_dict(orders_by_customer(orders)),
        "orders_by_country": _groups_to_dict(orders_by_country(orders)),
        "orders_by_month": _groups_to_dict(orders_by_month(orders)),
        "average_price_by_product": {k: t.average_price for k, t in by_product.items()},
        "recent_orders": [o.to_dict() for o in recent_orders(orders, recent)],
    }


def demand_vs_sales(
    demand: Dict[str, float],
    sales: Dict[str, float],
    average_price: Dict[str, float],
) -> List[Dict[str, Any]]:
    """
    Per-product demand against realised sales for one period.

    pending_orders = max(0, demand - sales); revenue = sales * average price.
    """
    rows = []
    for product_id in sorted(set(demand) | set(sales)):
        d = demand.get(product_id, 0.0)
        s = sales.get(product_id, 0.0)
        price = average_price.get(product_id, 0.0)
        rows.append({
            "product_id": product_id,
            "total_demand": d,
            "total_sales": s,
            "pending_orders": max(0.0, d - s),
            "average_price": price,
            "revenue": s * price,
        })
    return rows


# ═══════════════════════════════════════════════════════════════════
#  4. BOX STOCK
# ═══════════════════════════════════════════════════════════════════

def _box_group(boxes: Iterable[StockBox], key: Callable[[StockBox], K]) -> Dict[K, BoxTotals]:
    groups: Dict[K, BoxTotals] = {}
    for box in boxes:
        t = groups.setdefault(key(box), BoxTotals())
        t.boxes += 1
        t.weight += box.net_weight
    return groups


def stock_by_product_key(boxes: Iterable[StockBox]) -> Dict[ProductKey, BoxTotals]:
    return _box_group(boxes, lambda b: b.product)


def stock_by_location(boxes: Iterable[StockBox]) -> Dict[str, BoxTotals]:
    return _box_group(boxes, lambda b: b.location or "Unknown")


def stock_by_grade(boxes: Iterable[StockBox]) -> Dict[str, BoxTotals]:
    return _box_group(boxes, lambda b: b.grade or "Unknown")
