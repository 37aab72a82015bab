"""
Threshold rules that turn aggregated metrics into labels.

All thresholds are strict ("greater than"): a value sitting exactly on a
boundary falls into the lower band.
"""

from __future__ import annotations

import enum
from typing import Tuple


class Priority(str, enum.Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Urgency shares the high/medium/low scale
Urgency = Priority


class StockLevel(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class PriceAction(str, enum.Enum):
    INCREASE = "increase"
    MAINTAIN = "maintain"
    DECREASE = "decrease"


# ─── Production gap ───
GAP_HIGH_PCT = 50.0
GAP_MEDIUM_PCT = 20.0

# ─── Sales / liquidation ───
SAFETY_STOCK_RATIO = 0.2          # safety buffer = 20% of demand
EXCESS_HIGH_SHARE = 0.5           # excess above 50% of stock → high urgency
EXCESS_MEDIUM_SHARE = 0.2
PRICE_DECREASE_COVER = 1.5        # stock above 1.5x demand → cut price
PRICE_INCREASE_COVER = 0.8        # stock below 0.8x demand → raise price

# ─── Stock turnover ───
DAYS_LOW = 30.0
DAYS_HIGH = 90.0
DAYS_UNLIMITED = 999.0            # sentinel for zero turnover
MONTHS_PER_YEAR = 12
DAYS_PER_YEAR = 365.0

# ─── Box stock band ───
BOX_LOW_SHARE = 0.5
BOX_HIGH_MULTIPLE = 2.0

PRODUCTION_NOTES = {
    Priority.HIGH: "Immediate production required",
    Priority.MEDIUM: "Moderate production increase needed",
    Priority.LOW: "Monitor and adjust as needed",
}

SALES_ACTIONS = {
    Urgency.HIGH: "Immediate liquidation required",
    Urgency.MEDIUM: "Promote sales with incentives",
    Urgency.LOW: "Monitor and adjust pricing",
}
NO_EXCESS_ACTION = "Maintain current stock levels"


def production_priority(gap_percentage: float) -> Priority:
    if gap_percentage > GAP_HIGH_PCT:
        return Priority.HIGH
    if gap_percentage > GAP_MEDIUM_PCT:
        return Priority.MEDIUM
    return Priority.LOW


def sales_urgency(excess_stock: float, stock: float) -> Urgency:
    """Urgency of clearing excess, measured against the stock on hand."""
    if excess_stock > stock * EXCESS_HIGH_SHARE:
        return Urgency.HIGH
    if excess_stock > stock * EXCESS_MEDIUM_SHARE:
        return Urgency.MEDIUM
    return Urgency.LOW


def price_recommendation(stock: float, demand: float) -> PriceAction:
    if stock > demand * PRICE_DECREASE_COVER:
        return PriceAction.DECREASE
    if stock < demand * PRICE_INCREASE_COVER:
        return PriceAction.INCREASE
    return PriceAction.MAINTAIN


def recommended_action(excess_stock: float, urgency: Urgency) -> str:
    if excess_stock <= 0:
        return NO_EXCESS_ACTION
    return SALES_ACTIONS[urgency]


def stock_turnover(sales: float, opening_stock: float, closing_stock: float) -> Tuple[float, float]:
    """
    Annualized turnover and days of inventory.

    Turnover is 0 when nothing sold or the average stock is 0; days of
    inventory is then the 999 sentinel.
    """
    average_stock = (opening_stock + closing_stock) / 2
    if sales <= 0 or average_stock <= 0:
        return 0.0, DAYS_UNLIMITED
    turnover = (sales / average_stock) * MONTHS_PER_YEAR
    return turnover, DAYS_PER_YEAR / turnover


def stock_level(days_of_inventory: float) -> StockLevel:
    if days_of_inventory < DAYS_LOW:
        return StockLevel.LOW
    if days_of_inventory > DAYS_HIGH:
        return StockLevel.HIGH
    return StockLevel.NORMAL


def box_stock_level(weight: float, threshold: float) -> StockLevel:
    if weight < threshold * BOX_LOW_SHARE:
        return StockLevel.LOW
    if weight > threshold * BOX_HIGH_MULTIPLE:
        return StockLevel.HIGH
    return StockLevel.NORMAL


def overall_status(issue_count: int) -> str:
    """Traffic light for the dashboard header."""
    if issue_count == 0:
        return "green"
    if issue_count <= 3:
        return "orange"
    return "red"
