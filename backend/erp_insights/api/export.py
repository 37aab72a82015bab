"""CSV export endpoints. Download production and sales plans for spreadsheets."""

import csv
import io
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from erp_insights.core.database import get_db
from erp_insights.core.errors import DataFetchError, InvalidMonthError
from erp_insights.services.analytics import (
    production_needs_analysis,
    sales_recommendations_analysis,
)

logger = logging.getLogger("erp_insights.api.export")
router = APIRouter(prefix="/api/export", tags=["export"])

PRODUCTION_HEADERS = [
    "product_id", "demand", "current_stock", "production_needed",
    "gap_percentage", "priority", "urgency_note",
]
SALES_HEADERS = [
    "product_id", "current_stock", "demand", "safety_stock", "recommended_sales",
    "excess_stock", "liquidation_needed", "recommended_action", "urgency",
    "price_recommendation",
]


def _csv_response(rows: list[list], headers: list[str], filename: str) -> StreamingResponse:
    """Build a streaming CSV response."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(headers)
    writer.writerows(rows)
    buf.seek(0)
    return StreamingResponse(
        iter([buf.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _analysis(fn, **kwargs) -> dict:
    try:
        return fn(**kwargs)
    except InvalidMonthError as e:
        raise HTTPException(status_code=422, detail=str(e))
    except DataFetchError as e:
        raise HTTPException(status_code=503, detail=str(e))


# ─── Production Needs CSV ───


@router.get("/production-needs.csv")
def export_production_needs(
    month: Optional[str] = Query(None),
    demand_source: str = Query("forecast", pattern="^(forecast|orders)$"),
    stock_source: str = Query("snapshot", pattern="^(snapshot|boxes)$"),
    db: Session = Depends(get_db),
):
    """Export production gaps as CSV."""
    result = _analysis(
        production_needs_analysis,
        db=db, month=month, demand_source=demand_source, stock_source=stock_source,
    )
    rows = [[g[h] for h in PRODUCTION_HEADERS] for g in result["production_gaps"]]
    suffix = result["month"] or "all"
    return _csv_response(rows, PRODUCTION_HEADERS, f"production_needs_{suffix}.csv")


# ─── Sales Recommendations CSV ───


@router.get("/sales-recommendations.csv")
def export_sales_recommendations(
    month: Optional[str] = Query(None),
    demand_source: str = Query("forecast", pattern="^(forecast|orders)$"),
    stock_source: str = Query("snapshot", pattern="^(snapshot|boxes)$"),
    only_excess: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Export sales / liquidation recommendations as CSV."""
    result = _analysis(
        sales_recommendations_analysis,
        db=db, month=month, demand_source=demand_source, stock_source=stock_source,
        only_excess=only_excess,
    )
    rows = [[r[h] for h in SALES_HEADERS] for r in result["recommendations"]]
    suffix = result["month"] or "all"
    return _csv_response(rows, SALES_HEADERS, f"sales_recommendations_{suffix}.csv")
