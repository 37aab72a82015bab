"""
ERP analytics service.

Provides, per request and scoped to a reporting month where relevant:
  1. Orders analysis (totals, group-bys, recent orders)
  2. Demand vs. realised sales per product
  3. Stock status (turnover, days of inventory) and box-in-hand stock
  4. Production needs (demand − stock gaps)
  5. Sales / liquidation recommendations
  6. Dashboard roll-up of all of the above
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from erp_insights.core.config import settings
from erp_insights.services import repository
from erp_insights.services.aggregation import (
    demand_from_forecasts,
    demand_from_orders,
    demand_vs_sales,
    orders_by_product,
    stock_by_grade,
    stock_by_location,
    stock_by_product_key,
    stock_from_boxes,
    stock_from_snapshots,
    sum_by,
    summarize_orders,
)
from erp_insights.services.ingestion import parse_month
from erp_insights.services.recommendations import (
    analyze_stock,
    box_stock_bands,
    calculate_production_needs,
    dashboard_summary,
    generate_sales_recommendations,
    only_with_excess,
    sales_opportunities,
    summarize_production,
    summarize_sales,
)

logger = logging.getLogger("erp_insights.analytics")

DEMAND_SOURCES = ("forecast", "orders")
STOCK_SOURCES = ("snapshot", "boxes")


# ═══════════════════════════════════════════════════════════════════
#  1. MONTH SCOPING
# ═══════════════════════════════════════════════════════════════════

def resolve_month(db: Session, month: Optional[str]) -> Optional[str]:
    """Validate an explicit month, or fall back to the latest one with data."""
    if month:
        return parse_month(month)
    months = repository.available_months(db)
    return months[-1] if months else None


def month_overview(db: Session) -> Dict[str, Any]:
    months = repository.available_months(db)
    return {"months": months, "latest": months[-1] if months else None}


# ═══════════════════════════════════════════════════════════════════
#  2. ORDERS
# ═══════════════════════════════════════════════════════════════════

def orders_analysis(db: Session, month: Optional[str] = None, recent: Optional[int] = None) -> Dict[str, Any]:
    """Order totals and group-bys; all months when ``month`` is omitted."""
    month = parse_month(month) if month else None
    orders = repository.load_orders(db, month=month)
    result = summarize_orders(orders, recent or settings.recent_orders_limit)
    result["month"] = month
    return result


def demand_analysis(db: Session, month: Optional[str] = None) -> Dict[str, Any]:
    """Forecast demand vs. realised sales for one month, priced at average order price."""
    month = resolve_month(db, month)
    demand = demand_from_forecasts(repository.load_demand(db, month), month)
    sales = sum_by(repository.load_inventory(db, month), lambda s: s.product_id, lambda s: s.sales)
    prices = {k: t.average_price for k, t in orders_by_product(repository.load_orders(db)).items()}
    rows = demand_vs_sales(demand, sales, prices)
    return {
        "month": month,
        "products": rows,
        "total_revenue": sum(r["revenue"] for r in rows),
        "total_pending_orders": sum(r["pending_orders"] for r in rows),
    }


# ═══════════════════════════════════════════════════════════════════
#  3. STOCK
# ═══════════════════════════════════════════════════════════════════

def stock_analysis(db: Session, month: Optional[str] = None) -> Dict[str, Any]:
    month = resolve_month(db, month)
    statuses = analyze_stock(repository.load_inventory(db, month), month)
    counts = {level: 0 for level in ("low", "normal", "high")}
    for s in statuses:
        counts[s.status.value] += 1
    return {
        "month": month,
        "products": [s.to_dict() for s in statuses],
        "total_stock": sum(s.current_stock for s in statuses),
        "status_counts": counts,
    }


def box_stock_analysis(db: Session) -> Dict[str, Any]:
    """Box-in-hand snapshot grouped by product key, location and grade."""
    boxes = repository.load_boxes(db)
    by_key = stock_by_product_key(boxes)
    return {
        "total_boxes": len(boxes),
        "total_weight": sum(b.net_weight for b in boxes),
        "stock_by_product": {
            str(k): {"boxes": t.boxes, "weight": t.weight, "avg_weight": t.avg_weight}
            for k, t in sorted(by_key.items())
        },
        "stock_by_location": {
            k: {"boxes": t.boxes, "weight": t.weight} for k, t in stock_by_location(boxes).items()
        },
        "stock_by_grade": {
            k: {"boxes": t.boxes, "weight": t.weight} for k, t in stock_by_grade(boxes).items()
        },
        "stock_levels": box_stock_bands(by_key, settings.box_threshold_multiplier),
    }


# ═══════════════════════════════════════════════════════════════════
#  4. DEMAND / STOCK MAPS
# ═══════════════════════════════════════════════════════════════════

def _check_source(value: str, allowed: tuple, name: str):
    if value not in allowed:
        raise ValueError(f"{name} must be one of {allowed}, got {value!r}")


def _demand_map(db: Session, source: str, month: Optional[str]) -> Dict[str, float]:
    if source == "orders":
        return demand_from_orders(repository.load_orders(db, month=month))
    return demand_from_forecasts(repository.load_demand(db, month), month)


def _stock_map(db: Session, source: str, month: Optional[str]) -> Dict[str, float]:
    if source == "boxes":
        return stock_from_boxes(repository.load_boxes(db))
    return stock_from_snapshots(repository.load_inventory(db, month), month)


def _scope_month(db: Session, month: Optional[str], demand_source: str, stock_source: str) -> Optional[str]:
    # Open orders and box-in-hand are not monthly; only fall back to the
    # latest month when a monthly source is involved.
    if month or demand_source == "forecast" or stock_source == "snapshot":
        return resolve_month(db, month)
    return None


# ═══════════════════════════════════════════════════════════════════
#  5. PRODUCTION NEEDS
# ═══════════════════════════════════════════════════════════════════

def production_needs_analysis(
    db: Session,
    month: Optional[str] = None,
    demand_source: str = "forecast",
    stock_source: str = "snapshot",
) -> Dict[str, Any]:
    _check_source(demand_source, DEMAND_SOURCES, "demand_source")
    _check_source(stock_source, STOCK_SOURCES, "stock_source")
    month = _scope_month(db, month, demand_source, stock_source)

    gaps = calculate_production_needs(
        _demand_map(db, demand_source, month),
        _stock_map(db, stock_source, month),
    )
    gaps.sort(key=lambda g: g.gap_percentage, reverse=True)
    logger.debug("Production needs for %s: %d products", month, len(gaps))
    return {
        "month": month,
        "demand_source": demand_source,
        "stock_source": stock_source,
        **summarize_production(gaps),
        "production_gaps": [g.to_dict() for g in gaps],
    }


# ═══════════════════════════════════════════════════════════════════
#  6. SALES RECOMMENDATIONS
# ═══════════════════════════════════════════════════════════════════

def sales_recommendations_analysis(
    db: Session,
    month: Optional[str] = None,
    demand_source: str = "forecast",
    stock_source: str = "snapshot",
    only_excess: bool = False,
) -> Dict[str, Any]:
    _check_source(demand_source, DEMAND_SOURCES, "demand_source")
    _check_source(stock_source, STOCK_SOURCES, "stock_source")
    month = _scope_month(db, month, demand_source, stock_source)

    recs = generate_sales_recommendations(
        _stock_map(db, stock_source, month),
        _demand_map(db, demand_source, month),
    )
    recs.sort(key=lambda r: r.excess_stock, reverse=True)
    summary = summarize_sales(recs)
    if only_excess:
        recs = only_with_excess(recs)

    orders = repository.load_orders(db)
    prices = {k: t.average_price for k, t in orders_by_product(orders).items()}
    return {
        "month": month,
        "demand_source": demand_source,
        "stock_source": stock_source,
        **summary,
        "recommendations": [r.to_dict() for r in recs],
        "sales_opportunities": sales_opportunities(
            recs, orders, prices, settings.max_potential_customers
        ),
    }


# ═══════════════════════════════════════════════════════════════════
#  7. DASHBOARD
# ═══════════════════════════════════════════════════════════════════

def analytics_dashboard(db: Session, month: Optional[str] = None) -> Dict[str, Any]:
    """
    Headline KPIs for one month, computed from forecast demand and
    snapshot stock.
    """
    month = resolve_month(db, month)
    inventory = repository.load_inventory(db, month)
    demand = demand_from_forecasts(repository.load_demand(db, month), month)
    stock = stock_from_snapshots(inventory, month)
    orders = repository.load_orders(db)
    prices = {k: t.average_price for k, t in orders_by_product(orders).items()}

    demand_rows = demand_vs_sales(
        demand, sum_by(inventory, lambda s: s.product_id, lambda s: s.sales), prices
    )
    statuses = analyze_stock(inventory, month)
    gaps = calculate_production_needs(demand, stock)
    recs = generate_sales_recommendations(stock, demand)

    return {
        "month": month,
        "summary": dashboard_summary(demand_rows, statuses, gaps, recs),
        "orders": {
            "total_orders": len(orders),
            "total_value": sum(o.value for o in orders),
        },
        "production": summarize_production(gaps),
        "sales": summarize_sales(recs),
    }
