"""
Ingestion & normalization service.

Turns raw rows (spreadsheet headers, CSV headers or JSON keys) into the
canonical records in ``erp_insights.models.records``:

  1. Dataset schemas: canonical fields + types + aliases
  2. Auto column mapping (exact match, then alias match)
  3. Explicit numeric coercion policy ("zero" or "reject")
  4. Unit conversion to metric tons
  5. Product-type extraction and ERP date parsing
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from erp_insights.core.config import settings
from erp_insights.core.errors import InvalidMonthError, MalformedValueError, NegativeValueError
from erp_insights.models.records import (
    Channel,
    DemandRecord,
    InventorySnapshot,
    OrderRecord,
    ProductKey,
    StockBox,
)

logger = logging.getLogger("erp_insights.ingestion")

NUMERIC_POLICIES = ("zero", "reject")

# ═══════════════════════════════════════════════════════════════════
#  Dataset schemas
# ═══════════════════════════════════════════════════════════════════

_ORDER_FIELDS: Dict[str, Dict[str, Any]] = {
    "order_number": {"type": "str"},
    "product_id": {"type": "str"},
    "product_description": {"type": "str"},
    "customer": {"type": "str", "default": "Unknown"},
    "country": {"type": "str", "default": "Unknown"},
    "quantity": {"type": "float", "required": True, "unit_field": "unit", "non_negative": True},
    "unit": {"type": "str"},
    "value": {"type": "float"},
    "date": {"type": "date"},
}

DATASETS: Dict[str, Dict[str, Dict[str, Any]]] = {
    "export_orders": _ORDER_FIELDS,
    "local_orders": _ORDER_FIELDS,
    "inventory": {
        "product_id": {"type": "str", "required": True},
        "month": {"type": "month", "required": True},
        "opening_stock": {"type": "float", "unit_field": "unit", "non_negative": True},
        "closing_stock": {"type": "float", "required": True, "unit_field": "unit", "non_negative": True},
        "sales": {"type": "float", "unit_field": "unit", "non_negative": True},
        "unit": {"type": "str"},
    },
    "demand": {
        "product_id": {"type": "str", "required": True},
        "month": {"type": "month", "required": True},
        "demand_quantity": {"type": "float", "required": True, "unit_field": "unit", "non_negative": True},
        "unit": {"type": "str"},
    },
    "stock_boxes": {
        "box_number": {"type": "str"},
        "product_code": {"type": "str", "required": True},
        "denier": {"type": "str"},
        "grade": {"type": "str", "default": "Unknown"},
        "location": {"type": "str", "default": "Unknown"},
        # Box-in-hand exports always weigh in kilograms
        "net_weight": {"type": "float", "required": True, "unit": "KG", "non_negative": True},
    },
}

ORDER_CHANNELS = {
    "export_orders": Channel.EXPORT,
    "local_orders": Channel.LOCAL,
}

COLUMN_ALIASES: Dict[str, List[str]] = {
    "order_number": ["soe_pinumber", "sol_number", "order_no", "orderno", "pi_number", "so_number"],
    "product_id": ["product", "product_code", "productcode", "sku", "item_code"],
    "product_description": [
        "soe_productdesc", "sol_productdescription", "description", "product_desc", "product_name",
    ],
    "customer": ["soe_consignee", "sol_customername", "customer_name", "consignee", "client"],
    "country": ["soe_country", "sol_customercountry", "customer_country", "destination"],
    "quantity": ["soe_qty", "sol_qty", "qty", "quantity_mt", "order_qty"],
    "unit": ["soe_wunit", "sol_wunit", "uom", "weight_unit", "wunit"],
    "value": ["soe_totalamount", "sol_totalamount", "total_amount", "amount", "order_value"],
    "date": ["soe_pidate", "sol_date", "order_date", "pi_date"],
    "month": ["period", "period_month", "yyyymm"],
    "opening_stock": ["opening_stock_mt", "opening", "open_stock"],
    "closing_stock": ["closing_stock_mt", "closing", "close_stock", "stock", "current_stock"],
    "sales": ["sales_mt", "sold", "sales_qty"],
    "demand_quantity": [
        "market_demand_mt", "forecast_demand_mt", "demand_mt", "demand", "forecast", "demand_forecast",
    ],
    "box_number": ["boxnumber", "box_no", "box"],
    "product_code": ["productcode", "product", "product_id"],
    "denier": ["soe_denier"],
    "grade": ["gradecode", "grade_code", "quality"],
    "location": ["fgwlocation", "warehouse", "wh_location"],
    "net_weight": ["netwt", "net_wt", "net_weight_kg", "weight"],
}

_MONTH_ABBR = {
    "JAN": 1, "FEB": 2, "MAR": 3, "APR": 4, "MAY": 5, "JUN": 6,
    "JUL": 7, "AUG": 8, "SEP": 9, "OCT": 10, "NOV": 11, "DEC": 12,
}
_ERP_DATE_RE = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2}|\d{4})$")
_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})(?:-\d{1,2})?$")

_KG_UNITS = {"kg", "kgs", "kilogram", "kilograms"}


def _normalize(s: str) -> str:
    return re.sub(r"[^a-z0-9]", "", str(s).lower())


# ═══════════════════════════════════════════════════════════════════
#  Column mapping
# ═══════════════════════════════════════════════════════════════════

def auto_map_columns(file_columns: List[str], dataset: str) -> Dict[str, str]:
    """
    Auto-detect column mapping from file headers to canonical fields.

    Returns {file_column: field} for matched columns.
    """
    schema = DATASETS.get(dataset, {})
    mapping: Dict[str, str] = {}
    remaining = set(schema.keys())

    # Pass 1: exact match (normalized)
    for fc in file_columns:
        fc_norm = _normalize(fc)
        for fname in sorted(remaining):
            if fc_norm == _normalize(fname):
                mapping[fc] = fname
                remaining.discard(fname)
                break

    # Pass 2: alias match
    for fc in file_columns:
        if fc in mapping:
            continue
        fc_norm = _normalize(fc)
        for fname in sorted(remaining):
            if any(fc_norm == _normalize(alias) for alias in COLUMN_ALIASES.get(fname, [])):
                mapping[fc] = fname
                remaining.discard(fname)
                break

    return mapping


def missing_required(mapping: Dict[str, str], dataset: str) -> List[str]:
    schema = DATASETS.get(dataset, {})
    mapped = set(mapping.values())
    missing = [f for f, s in schema.items() if s.get("required") and f not in mapped]
    # Orders can be keyed by an explicit id or by a free-text description
    if dataset in ORDER_CHANNELS and "product_id" not in mapped and "product_description" not in mapped:
        missing.append("product_id")
    return missing


# ═══════════════════════════════════════════════════════════════════
#  Field parsers
# ═══════════════════════════════════════════════════════════════════

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def parse_number(raw: Any, field_name: str = "value") -> Optional[float]:
    """
    Parse a numeric cell. Blank → None; unparseable → MalformedValueError.

    Accepts thousands separators ("1,250.5") since ERP exports use them.
    """
    if _is_blank(raw):
        return None
    if isinstance(raw, bool):
        raise MalformedValueError(field_name, raw)
    if isinstance(raw, (int, float)):
        val = float(raw)
    else:
        text = str(raw).strip().replace(",", "")
        try:
            val = float(text)
        except ValueError:
            raise MalformedValueError(field_name, raw)
    if math.isnan(val) or math.isinf(val):
        raise MalformedValueError(field_name, raw)
    return val


def coerce_number(
    raw: Any,
    field_name: str,
    required: bool = False,
    policy: Optional[str] = None,
    non_negative: bool = False,
) -> Tuple[float, bool]:
    """
    Apply the numeric coercion policy to one cell.

    Returns (value, was_coerced). Under "zero" a blank or malformed cell
    becomes 0.0 and is reported as coerced. Under "reject" a malformed or
    missing required cell raises MalformedValueError; a blank optional cell
    is still 0.0.

    ``non_negative`` fields (stock, sales, demand, quantities, weights) treat
    a value below zero the same way: clamped to 0.0 and reported as coerced
    under "zero", NegativeValueError under "reject".
    """
    policy = policy or settings.malformed_numeric_policy
    if policy not in NUMERIC_POLICIES:
        raise ValueError(f"Unknown numeric policy {policy!r}; use one of {NUMERIC_POLICIES}")

    try:
        val = parse_number(raw, field_name)
    except MalformedValueError:
        if policy == "reject":
            raise
        return 0.0, True

    if val is None:
        if required and policy == "reject":
            raise MalformedValueError(field_name, raw)
        return 0.0, required
    if non_negative and val < 0:
        if policy == "reject":
            raise NegativeValueError(field_name, raw)
        return 0.0, True
    return val, False


def to_metric_tons(value: float, unit: Optional[str]) -> float:
    if unit and unit.strip().lower() in _KG_UNITS:
        return value / 1000.0
    return value


def extract_product_type(description: Optional[str]) -> str:
    """Map a free-text product description to its yarn/fibre family."""
    if not description:
        return "Unknown"
    upper = str(description).upper()
    if "PSF" in upper or "STAPLE FIBER" in upper:
        return "PSF"
    if "DTY" in upper or "TEXTURED YARN" in upper:
        return "DTY"
    if "FDY" in upper or "FULLY DRAWN" in upper:
        return "FDY"
    if "POY" in upper or "PARTIALLY ORIENTED" in upper:
        return "POY"
    return "Other"


def parse_date(raw: Any) -> Optional[date]:
    """ISO dates, datetime objects and the ERP's DD-MON-YY form; else None."""
    if _is_blank(raw):
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    m = _ERP_DATE_RE.match(text)
    if m:
        day, mon, year = m.groups()
        month = _MONTH_ABBR.get(mon.upper())
        if month is None:
            return None
        full_year = int(year) + 2000 if len(year) == 2 else int(year)
        try:
            return date(full_year, month, int(day))
        except ValueError:
            return None
    try:
        return datetime.fromisoformat(text[:19]).date()
    except ValueError:
        return None


def parse_month(raw: Any) -> str:
    """Normalize to "YYYY-MM"; raises InvalidMonthError."""
    if isinstance(raw, (date, datetime)):
        return f"{raw.year:04d}-{raw.month:02d}"
    text = "" if raw is None else str(raw).strip()
    m = _MONTH_RE.match(text)
    if not m:
        raise InvalidMonthError(text)
    year, month = int(m.group(1)), int(m.group(2))
    if not 1 <= month <= 12:
        raise InvalidMonthError(text)
    return f"{year:04d}-{month:02d}"


def month_of(d: Optional[date]) -> Optional[str]:
    return f"{d.year:04d}-{d.month:02d}" if d else None


def _clean_str(value: Any, default: str = "") -> str:
    if _is_blank(value):
        return default
    if isinstance(value, float) and value.is_integer():
        # Spreadsheet readers turn numeric codes like 150 into 150.0
        return str(int(value))
    return str(value).strip()


# ═══════════════════════════════════════════════════════════════════
#  Row normalization
# ═══════════════════════════════════════════════════════════════════

@dataclass
class NormalizationResult:
    records: List[Any] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    coerced_fields: int = 0

    @property
    def error_rows(self) -> int:
        return len({e["row"] for e in self.errors})


def _canonical_row(row: Dict[str, Any], mapping: Dict[str, str]) -> Dict[str, Any]:
    return {fname: row.get(fc) for fc, fname in mapping.items()}


def _numbers(
    values: Dict[str, Any], schema: Dict[str, Dict[str, Any]], policy: str
) -> Tuple[Dict[str, float], int]:
    out: Dict[str, float] = {}
    coerced = 0
    for fname, spec in schema.items():
        if spec["type"] != "float":
            continue
        val, was_coerced = coerce_number(
            values.get(fname), fname, required=spec.get("required", False), policy=policy,
            non_negative=spec.get("non_negative", False),
        )
        coerced += int(was_coerced)
        unit = spec.get("unit")
        if unit is None and spec.get("unit_field"):
            unit = _clean_str(values.get(spec["unit_field"])) or settings.default_quantity_unit
        out[fname] = to_metric_tons(val, unit)
    return out, coerced


def _build_order(values: Dict[str, Any], nums: Dict[str, float], channel: Channel) -> OrderRecord:
    product_id = _clean_str(values.get("product_id"))
    if not product_id:
        product_id = extract_product_type(values.get("product_description"))
    return OrderRecord(
        order_number=_clean_str(values.get("order_number")),
        product_id=product_id,
        customer=_clean_str(values.get("customer"), "Unknown"),
        country=_clean_str(values.get("country"), "Unknown"),
        quantity=nums["quantity"],
        value=nums["value"],
        date=parse_date(values.get("date")),
        channel=channel,
    )


def _build_inventory(values: Dict[str, Any], nums: Dict[str, float]) -> InventorySnapshot:
    return InventorySnapshot(
        product_id=_require_str(values, "product_id"),
        month=parse_month(values.get("month")),
        opening_stock=nums["opening_stock"],
        closing_stock=nums["closing_stock"],
        sales=nums["sales"],
    )


def _build_demand(values: Dict[str, Any], nums: Dict[str, float]) -> DemandRecord:
    return DemandRecord(
        product_id=_require_str(values, "product_id"),
        month=parse_month(values.get("month")),
        demand_quantity=nums["demand_quantity"],
    )


def _build_box(values: Dict[str, Any], nums: Dict[str, float]) -> StockBox:
    return StockBox(
        box_number=_clean_str(values.get("box_number")),
        product=ProductKey(_require_str(values, "product_code"), _clean_str(values.get("denier"))),
        grade=_clean_str(values.get("grade"), "Unknown"),
        location=_clean_str(values.get("location"), "Unknown"),
        net_weight=nums["net_weight"],
    )


def _require_str(values: Dict[str, Any], fname: str) -> str:
    val = _clean_str(values.get(fname))
    if not val:
        raise ValueError(f"{fname} is required")
    return val


_BUILDERS: Dict[str, Callable[..., Any]] = {
    "inventory": _build_inventory,
    "demand": _build_demand,
    "stock_boxes": _build_box,
}


def normalize_rows(
    rows: List[Dict[str, Any]],
    dataset: str,
    column_mapping: Optional[Dict[str, str]] = None,
    policy: Optional[str] = None,
) -> NormalizationResult:
    """
    Normalize raw rows into canonical records.

    Args:
        rows: list of dicts keyed by file column names
        dataset: one of DATASETS
        column_mapping: {file_col: field}; auto-detected from the first row when omitted
        policy: numeric coercion policy, defaults to settings.malformed_numeric_policy

    Rows that fail are reported in ``errors`` as {row, field, error} with
    1-based row numbers and are left out of ``records``.
    """
    schema = DATASETS.get(dataset)
    if schema is None:
        raise ValueError(f"Unknown dataset: {dataset}")
    policy = policy or settings.malformed_numeric_policy

    if column_mapping is None:
        columns = list(rows[0].keys()) if rows else []
        column_mapping = auto_map_columns(columns, dataset)

    result = NormalizationResult()
    channel = ORDER_CHANNELS.get(dataset)

    for idx, row in enumerate(rows, start=1):
        values = _canonical_row(row, column_mapping)
        try:
            nums, coerced = _numbers(values, schema, policy)
            if channel is not None:
                record = _build_order(values, nums, channel)
            else:
                record = _BUILDERS[dataset](values, nums)
        except MalformedValueError as e:
            result.errors.append({"row": idx, "field": e.field, "error": str(e)})
            continue
        except InvalidMonthError as e:
            result.errors.append({"row": idx, "field": "month", "error": str(e)})
            continue
        except ValueError as e:
            result.errors.append({"row": idx, "field": "", "error": str(e)})
            continue
        result.records.append(record)
        result.coerced_fields += coerced

    if result.coerced_fields:
        logger.info(
            "%s: %d numeric field(s) defaulted to 0 under the '%s' policy",
            dataset, result.coerced_fields, policy,
        )
    return result


def get_dataset_schemas() -> Dict[str, Dict]:
    """Return all importable dataset schemas for the frontend."""
    result = {}
    for name, cols in DATASETS.items():
        result[name] = {
            "columns": {
                col: {
                    "type": spec["type"],
                    "required": spec.get("required", False),
                    "non_negative": spec.get("non_negative", False),
                }
                for col, spec in cols.items()
            },
            "required_columns": [c for c, s in cols.items() if s.get("required")],
        }
    return result
