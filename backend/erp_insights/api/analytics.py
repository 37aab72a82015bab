"""
ERP Analytics API
─────────────────
Endpoints:
  GET  /api/analytics/months                  Reporting months with data
  GET  /api/analytics/dashboard               Headline KPIs + traffic light
  GET  /api/analytics/orders                  Order totals and group-bys
  GET  /api/analytics/orders/demand           Demand vs. realised sales
  GET  /api/analytics/stock                   Stock status per product
  GET  /api/analytics/stock/boxes             Box-in-hand stock
  GET  /api/analytics/production-needs        Production gaps
  GET  /api/analytics/sales-recommendations   Liquidation / pricing advice
"""

from fastapi import APIRouter, Depends, Query, HTTPException
from sqlalchemy.orm import Session
from typing import Optional
import logging

from erp_insights.core.database import get_db
from erp_insights.core.errors import DataFetchError, InvalidMonthError
from erp_insights.schemas.imports import MonthList
from erp_insights.services.analytics import (
    analytics_dashboard,
    box_stock_analysis,
    demand_analysis,
    month_overview,
    orders_analysis,
    production_needs_analysis,
    sales_recommendations_analysis,
    stock_analysis,
)

logger = logging.getLogger("erp_insights.api.analytics")
router = APIRouter(prefix="/api/analytics", tags=["analytics"])

MONTH_QUERY = Query(None, description="Reporting month, YYYY-MM. Defaults to the latest month with data.")
DEMAND_SOURCE_QUERY = Query("forecast", pattern="^(forecast|orders)$")
STOCK_SOURCE_QUERY = Query("snapshot", pattern="^(snapshot|boxes)$")


def _run(label: str, fn, *args, **kwargs):
    """Call an analytics function and map its failures to HTTP errors."""
    try:
        return fn(*args, **kwargs)
    except InvalidMonthError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DataFetchError as e:
        logger.warning("%s: %s", label, e)
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error("%s error: %s", label, e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to process {label.lower()}")


# ── Months ────────────────────────────────────────────────────────

@router.get("/months", response_model=MonthList)
def get_months(db: Session = Depends(get_db)):
    """Reporting months available across inventory, demand and orders."""
    return _run("Months", month_overview, db)


# ── Dashboard ─────────────────────────────────────────────────────

@router.get("/dashboard")
def get_dashboard(month: Optional[str] = MONTH_QUERY, db: Session = Depends(get_db)):
    """Revenue, pending orders, issue counts and overall status."""
    return _run("Dashboard", analytics_dashboard, db, month)


# ── Orders ────────────────────────────────────────────────────────

@router.get("/orders")
def get_orders(
    month: Optional[str] = Query(None, description="YYYY-MM; all orders when omitted"),
    recent: Optional[int] = Query(None, ge=1, le=100, description="Defaults to settings.recent_orders_limit"),
    db: Session = Depends(get_db),
):
    """Order totals, export/local split, by product / customer / country."""
    return _run("Orders analysis", orders_analysis, db, month, recent)


@router.get("/orders/demand")
def get_demand_vs_sales(month: Optional[str] = MONTH_QUERY, db: Session = Depends(get_db)):
    """Forecast demand against realised sales, with pending orders and revenue."""
    return _run("Demand analysis", demand_analysis, db, month)


# ── Stock ─────────────────────────────────────────────────────────

@router.get("/stock")
def get_stock(month: Optional[str] = MONTH_QUERY, db: Session = Depends(get_db)):
    """Turnover, days of inventory and low/normal/high status per product."""
    return _run("Stock analysis", stock_analysis, db, month)


@router.get("/stock/boxes")
def get_box_stock(db: Session = Depends(get_db)):
    """Finished-goods boxes by product, location and grade."""
    return _run("Box stock analysis", box_stock_analysis, db)


# ── Production Needs ──────────────────────────────────────────────

@router.get("/production-needs")
def get_production_needs(
    month: Optional[str] = MONTH_QUERY,
    demand_source: str = DEMAND_SOURCE_QUERY,
    stock_source: str = STOCK_SOURCE_QUERY,
    db: Session = Depends(get_db),
):
    """Production gaps per product, largest gap first."""
    return _run(
        "Production needs", production_needs_analysis, db, month, demand_source, stock_source
    )


# ── Sales Recommendations ─────────────────────────────────────────

@router.get("/sales-recommendations")
def get_sales_recommendations(
    month: Optional[str] = MONTH_QUERY,
    demand_source: str = DEMAND_SOURCE_QUERY,
    stock_source: str = STOCK_SOURCE_QUERY,
    only_excess: bool = Query(False, description="Drop products without excess stock"),
    db: Session = Depends(get_db),
):
    """
    Liquidation, urgency and price advice per stocked product.

    Totals always cover every product; ``only_excess`` narrows the list only.
    """
    return _run(
        "Sales recommendations",
        sales_recommendations_analysis,
        db,
        month,
        demand_source,
        stock_source,
        only_excess,
    )
