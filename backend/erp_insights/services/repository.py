"""
Read raw records out of the database as canonical in-memory records.

This is the fetch boundary of the analytics core: any database failure is
re-raised as ``DataFetchError`` so routers can report it uniformly.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy import union
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from erp_insights.core.errors import DataFetchError
from erp_insights.models.inventory import DemandForecast, InventorySnapshot, StockBox
from erp_insights.models.order import Order
from erp_insights.models.records import (
    Channel,
    DemandRecord,
    InventorySnapshot as InventorySnapshotRecord,
    OrderRecord,
    StockBox as StockBoxRecord,
)

logger = logging.getLogger("erp_insights.repository")


def _fetch(dataset: str, query) -> list:
    try:
        return query.all()
    except SQLAlchemyError as e:
        logger.error("Fetching %s failed: %s", dataset, e)
        raise DataFetchError(dataset, str(e.__class__.__name__)) from e


def load_orders(
    db: Session, month: Optional[str] = None, channel: Optional[Channel] = None
) -> List[OrderRecord]:
    q = db.query(Order)
    if month:
        q = q.filter(Order.month == month)
    if channel:
        q = q.filter(Order.channel == channel)
    return [o.to_record() for o in _fetch("orders", q.order_by(Order.id))]


def load_inventory(db: Session, month: Optional[str] = None) -> List[InventorySnapshotRecord]:
    q = db.query(InventorySnapshot)
    if month:
        q = q.filter(InventorySnapshot.month == month)
    q = q.order_by(InventorySnapshot.product_id, InventorySnapshot.month)
    return [s.to_record() for s in _fetch("inventory", q)]


def load_demand(db: Session, month: Optional[str] = None) -> List[DemandRecord]:
    q = db.query(DemandForecast)
    if month:
        q = q.filter(DemandForecast.month == month)
    q = q.order_by(DemandForecast.product_id, DemandForecast.id)
    return [d.to_record() for d in _fetch("demand", q)]


def load_boxes(db: Session) -> List[StockBoxRecord]:
    q = db.query(StockBox).order_by(StockBox.id)
    return [b.to_record() for b in _fetch("stock_boxes", q)]


def available_months(db: Session) -> List[str]:
    """Every YYYY-MM with inventory, demand or dated orders, ascending."""
    months = union(
        db.query(InventorySnapshot.month).statement,
        db.query(DemandForecast.month).statement,
        db.query(Order.month).filter(Order.month.isnot(None)).statement,
    )
    try:
        rows = db.execute(months).all()
    except SQLAlchemyError as e:
        logger.error("Listing months failed: %s", e)
        raise DataFetchError("months", str(e.__class__.__name__)) from e
    return sorted(r[0] for r in rows if r[0])
