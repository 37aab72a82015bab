"""Pydantic schemas for the import endpoints."""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional


class RowImport(BaseModel):
    """Raw rows pushed as JSON (e.g. from an ERP REST export)."""
    dataset: str = Field(..., pattern="^(export_orders|local_orders|inventory|demand|stock_boxes)$")
    rows: List[Dict[str, Any]] = Field(..., min_length=1)
    column_mapping: Optional[Dict[str, str]] = None
    import_mode: str = Field("append", pattern="^(append|replace)$")
    numeric_policy: Optional[str] = Field(None, pattern="^(zero|reject)$")


class ImportResult(BaseModel):
    status: str
    job_id: int
    dataset: str
    total_rows: int
    imported_rows: int
    error_rows: int
    coerced_fields: int
    errors: List[Dict[str, Any]] = []


class MonthList(BaseModel):
    months: List[str]
    latest: Optional[str] = None
