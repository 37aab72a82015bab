"""
Recommendation generator.

Combines demand and stock maps into:
  1. Production gaps (what to make, and how urgently)
  2. Sales / liquidation recommendations (what to sell off, and at what price)
  3. Stock status per product (turnover, days of inventory)
  4. Box-stock bands and the dashboard roll-up

Results are new objects on every call; nothing is cached or persisted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from erp_insights.models.records import InventorySnapshot, OrderRecord, ProductKey
from erp_insights.services.aggregation import BoxTotals
from erp_insights.services.classification import (
    PRODUCTION_NOTES,
    SAFETY_STOCK_RATIO,
    PriceAction,
    Priority,
    StockLevel,
    Urgency,
    box_stock_level,
    overall_status,
    price_recommendation,
    production_priority,
    recommended_action,
    sales_urgency,
    stock_level,
    stock_turnover,
)


def _serialize(obj) -> Dict[str, Any]:
    out = asdict(obj)
    for k, v in out.items():
        if hasattr(v, "value"):
            out[k] = v.value
    return out


# ═══════════════════════════════════════════════════════════════════
#  1. PRODUCTION NEEDS
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ProductionGap:
    product_id: str
    demand: float
    current_stock: float
    production_needed: float
    gap_percentage: float
    priority: Priority
    urgency_note: str

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self)


def production_gap(product_id: str, demand: float, stock: float) -> ProductionGap:
    demand, stock = max(0.0, demand), max(0.0, stock)
    production_needed = max(0.0, demand - stock)
    gap_percentage = production_needed / demand * 100 if demand > 0 else 0.0
    priority = production_priority(gap_percentage)
    return ProductionGap(
        product_id=product_id,
        demand=demand,
        current_stock=stock,
        production_needed=production_needed,
        gap_percentage=gap_percentage,
        priority=priority,
        urgency_note=PRODUCTION_NOTES[priority],
    )


def calculate_production_needs(
    demand_by_product: Dict[str, float],
    stock_by_product: Dict[str, float],
) -> List[ProductionGap]:
    """
    One gap per product that has a demand entry, including zero-gap products.

    Products with stock but no demand are not listed. Order follows the
    demand map; callers sort as they need.
    """
    return [
        production_gap(product_id, demand, stock_by_product.get(product_id, 0.0))
        for product_id, demand in demand_by_product.items()
    ]


def summarize_production(gaps: List[ProductionGap]) -> Dict[str, Any]:
    return {
        "total_production_needed": sum(g.production_needed for g in gaps),
        "high_priority_items": sum(1 for g in gaps if g.priority is Priority.HIGH),
        "medium_priority_items": sum(1 for g in gaps if g.priority is Priority.MEDIUM),
        "low_priority_items": sum(1 for g in gaps if g.priority is Priority.LOW),
    }


# ═══════════════════════════════════════════════════════════════════
#  2. SALES RECOMMENDATIONS
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class SalesRecommendation:
    product_id: str
    current_stock: float
    demand: float
    safety_stock: float
    recommended_sales: float
    excess_stock: float
    liquidation_needed: float
    recommended_action: str
    urgency: Urgency
    price_recommendation: PriceAction

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self)


def sales_recommendation(product_id: str, stock: float, demand: float) -> SalesRecommendation:
    # Negative inputs count as zero
    stock, demand = max(0.0, stock), max(0.0, demand)
    safety_stock = demand * SAFETY_STOCK_RATIO
    target = demand + safety_stock
    excess = max(0.0, stock - target)
    urgency = sales_urgency(excess, stock)
    return SalesRecommendation(
        product_id=product_id,
        current_stock=stock,
        demand=demand,
        safety_stock=safety_stock,
        recommended_sales=min(stock, target),
        excess_stock=excess,
        # Liquidation covers exactly the stock above demand + safety buffer
        liquidation_needed=excess,
        recommended_action=recommended_action(excess, urgency),
        urgency=urgency,
        price_recommendation=price_recommendation(stock, demand),
    )


def generate_sales_recommendations(
    stock_by_product: Dict[str, float],
    demand_by_product: Dict[str, float],
) -> List[SalesRecommendation]:
    """
    One recommendation per stocked product, excess or not.

    Narrowing to products with excess is left to the caller
    (see ``only_with_excess``).
    """
    return [
        sales_recommendation(product_id, stock, demand_by_product.get(product_id, 0.0))
        for product_id, stock in stock_by_product.items()
    ]


def only_with_excess(recommendations: Iterable[SalesRecommendation]) -> List[SalesRecommendation]:
    return [r for r in recommendations if r.excess_stock > 0]


def summarize_sales(recommendations: List[SalesRecommendation]) -> Dict[str, Any]:
    return {
        "total_excess_stock": sum(r.excess_stock for r in recommendations),
        "total_liquidation_needed": sum(r.liquidation_needed for r in recommendations),
        "high_urgency_items": sum(1 for r in recommendations if r.urgency is Urgency.HIGH),
    }


def sales_opportunities(
    recommendations: Iterable[SalesRecommendation],
    orders: Iterable[OrderRecord],
    average_price: Dict[str, float],
    max_customers: int = 5,
) -> List[Dict[str, Any]]:
    """
    For each product with excess: past buyers of that product and what the
    excess would fetch at the product's average order price.
    """
    customers: Dict[str, List[str]] = {}
    for order in orders:
        seen = customers.setdefault(order.product_id, [])
        if order.customer not in seen:
            seen.append(order.customer)

    opportunities = []
    for rec in recommendations:
        if rec.excess_stock <= 0:
            continue
        opportunities.append({
            "product_id": rec.product_id,
            "stock": rec.excess_stock,
            "potential_customers": customers.get(rec.product_id, [])[:max_customers],
            "estimated_value": rec.excess_stock * average_price.get(rec.product_id, 0.0),
        })
    return opportunities


# ═══════════════════════════════════════════════════════════════════
#  3. STOCK STATUS
# ═══════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class StockStatus:
    product_id: str
    month: str
    opening_stock: float
    closing_stock: float
    current_stock: float
    sales: float
    stock_turnover: float
    days_of_inventory: float
    status: StockLevel

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self)


def classify_stock(snapshot: InventorySnapshot) -> StockStatus:
    turnover, days = stock_turnover(snapshot.sales, snapshot.opening_stock, snapshot.closing_stock)
    return StockStatus(
        product_id=snapshot.product_id,
        month=snapshot.month,
        opening_stock=snapshot.opening_stock,
        closing_stock=snapshot.closing_stock,
        current_stock=snapshot.closing_stock,
        sales=snapshot.sales,
        stock_turnover=turnover,
        days_of_inventory=days,
        status=stock_level(days),
    )


def analyze_stock(snapshots: Iterable[InventorySnapshot], month: Optional[str] = None) -> List[StockStatus]:
    return [classify_stock(s) for s in snapshots if month is None or s.month == month]


def box_stock_bands(
    by_product: Dict[ProductKey, BoxTotals], threshold_multiplier: float = 10.0
) -> List[Dict[str, Any]]:
    """Low / normal / high per product key against N average boxes of stock."""
    items = []
    for key in sorted(by_product):
        totals = by_product[key]
        threshold = totals.avg_weight * threshold_multiplier
        items.append({
            "product": str(key),
            "product_code": key.product_code,
            "denier": key.denier,
            "current_stock": totals.weight,
            "threshold": threshold,
            "status": box_stock_level(totals.weight, threshold).value,
        })
    return items


# ═══════════════════════════════════════════════════════════════════
#  4. DASHBOARD ROLL-UP
# ═══════════════════════════════════════════════════════════════════

def dashboard_summary(
    demand_rows: List[Dict[str, Any]],
    stock: List[StockStatus],
    gaps: List[ProductionGap],
    recommendations: List[SalesRecommendation],
) -> Dict[str, Any]:
    total_revenue = sum(r["revenue"] for r in demand_rows)
    total_pending = sum(r["pending_orders"] for r in demand_rows)
    low_stock = sum(1 for s in stock if s.status is StockLevel.LOW)
    high_priority = sum(1 for g in gaps if g.priority is Priority.HIGH)
    urgent_sales = sum(1 for r in recommendations if r.urgency is Urgency.HIGH)
    return {
        "total_revenue": total_revenue,
        "total_pending_orders": total_pending,
        "low_stock_items": low_stock,
        "high_priority_production": high_priority,
        "urgent_sales": urgent_sales,
        "overall_status": overall_status(low_stock + high_priority + urgent_sales),
    }
