"""
Import engine service.

Handles:
  1. CSV / Excel / JSON file parsing (with encoding detection)
  2. Preview generation (first N rows + auto column mapping)
  3. Normalized bulk import into the raw-record tables
  4. Import job tracking (counts, errors, status)
"""

from __future__ import annotations

import csv
import io
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import chardet
import pandas as pd
from sqlalchemy import func as sqlfunc
from sqlalchemy.orm import Session

from erp_insights.models.import_job import ImportJob
from erp_insights.models.inventory import DemandForecast, InventorySnapshot, StockBox
from erp_insights.models.order import Order
from erp_insights.models.records import Channel
from erp_insights.services.ingestion import (
    DATASETS,
    ORDER_CHANNELS,
    auto_map_columns,
    missing_required,
    month_of,
    normalize_rows,
)

logger = logging.getLogger("erp_insights.import_engine")

TABLE_MODELS = {
    "export_orders": Order,
    "local_orders": Order,
    "inventory": InventorySnapshot,
    "demand": DemandForecast,
    "stock_boxes": StockBox,
}

IMPORT_MODES = ("append", "replace")
SUPPORTED_EXTENSIONS = (".csv", ".tsv", ".txt", ".xlsx", ".xls", ".json")

BATCH_SIZE = 500  # rows per bulk insert batch


# ═══════════════════════════════════════════════════════════════════
#  1. FILE PARSING
# ═══════════════════════════════════════════════════════════════════

def _detect_encoding(file_bytes: bytes) -> str:
    """Detect file encoding using chardet."""
    result = chardet.detect(file_bytes[:50000])
    return result.get("encoding", "utf-8") or "utf-8"


def parse_csv(file_bytes: bytes) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Parse CSV bytes into column headers and row dicts."""
    encoding = _detect_encoding(file_bytes)
    text = file_bytes.decode(encoding, errors="replace")

    sample = text[:5000]
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
        delimiter = dialect.delimiter
    except csv.Error:
        delimiter = ","

    reader = csv.DictReader(io.StringIO(text), delimiter=delimiter)
    columns = [c.strip() for c in (reader.fieldnames or [])]
    rows = [
        {(k or "").strip(): v for k, v in row.items()}
        for row in reader
    ]
    return columns, rows


def parse_excel(file_bytes: bytes, filename: str, sheet_name: Optional[str] = None) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Parse Excel bytes; the ERP exports legacy .xls, newer tools .xlsx."""
    engine = "xlrd" if filename.lower().endswith(".xls") else "openpyxl"
    df = pd.read_excel(io.BytesIO(file_bytes), sheet_name=sheet_name or 0, engine=engine)
    df = df.astype(object).where(pd.notna(df), None)
    columns = [str(c).strip() for c in df.columns]
    df.columns = columns
    rows = df.to_dict(orient="records")
    return columns, rows


def parse_file(
    file_bytes: bytes, filename: str, sheet_name: Optional[str] = None
) -> Tuple[List[str], List[Dict[str, Any]]]:
    """Auto-detect format and parse file."""
    ext = os.path.splitext(filename)[1].lower()
    if ext in (".xlsx", ".xls"):
        return parse_excel(file_bytes, filename, sheet_name)
    elif ext == ".json":
        data = json.loads(file_bytes.decode(_detect_encoding(file_bytes)))
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return list(data[0].keys()), data
        return [], []
    else:  # csv, tsv, txt
        return parse_csv(file_bytes)


def source_type_for(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    if ext in (".xlsx", ".xls"):
        return "excel"
    if ext == ".json":
        return "json"
    return "csv"


# ═══════════════════════════════════════════════════════════════════
#  2. PREVIEW
# ═══════════════════════════════════════════════════════════════════

def generate_preview(
    file_bytes: bytes,
    filename: str,
    dataset: str,
    preview_rows: int = 10,
) -> Dict[str, Any]:
    """Parse file, auto-map columns, return preview for user confirmation."""
    try:
        columns, rows = parse_file(file_bytes, filename)
    except Exception as e:
        return {"error": f"Failed to parse file: {e}"}

    if not columns:
        return {"error": "No columns detected in file"}
    if not rows:
        return {"error": "No data rows found in file"}

    mapping = auto_map_columns(columns, dataset)
    return {
        "filename": filename,
        "dataset": dataset,
        "total_rows": len(rows),
        "file_columns": columns,
        "auto_mapping": mapping,
        "missing_required": missing_required(mapping, dataset),
        "preview_rows": [
            {col: _jsonable(row.get(col)) for col in columns}
            for row in rows[:preview_rows]
        ],
    }


def _jsonable(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


# ═══════════════════════════════════════════════════════════════════
#  3. IMPORT EXECUTION
# ═══════════════════════════════════════════════════════════════════

def _to_model(dataset: str, record: Any, job_id: int):
    if dataset in ORDER_CHANNELS:
        return Order(
            order_number=record.order_number,
            product_id=record.product_id,
            customer=record.customer,
            country=record.country,
            quantity=record.quantity,
            value=record.value,
            order_date=record.date,
            month=month_of(record.date),
            channel=record.channel,
            import_job_id=job_id,
        )
    if dataset == "inventory":
        return InventorySnapshot(
            product_id=record.product_id,
            month=record.month,
            opening_stock=record.opening_stock,
            closing_stock=record.closing_stock,
            sales=record.sales,
            import_job_id=job_id,
        )
    if dataset == "demand":
        return DemandForecast(
            product_id=record.product_id,
            month=record.month,
            demand_quantity=record.demand_quantity,
            import_job_id=job_id,
        )
    return StockBox(
        box_number=record.box_number,
        product_code=record.product.product_code,
        denier=record.product.denier,
        grade=record.grade,
        location=record.location,
        net_weight=record.net_weight,
        import_job_id=job_id,
    )


def _clear_for_replace(db: Session, dataset: str, records: List[Any]) -> int:
    """
    Delete the rows a replace-mode import supersedes.

    Orders are replaced per channel, monthly tables only for the months
    present in the new file, and the box-in-hand table wholesale (it is a
    point-in-time snapshot).
    """
    if dataset in ORDER_CHANNELS:
        q = db.query(Order).filter(Order.channel == ORDER_CHANNELS[dataset])
    elif dataset in ("inventory", "demand"):
        model = TABLE_MODELS[dataset]
        months = sorted({r.month for r in records})
        q = db.query(model).filter(model.month.in_(months))
    else:
        q = db.query(StockBox)
    return q.delete(synchronize_session=False)


def _upsert_snapshots(db: Session, records: List[Any], job_id: int) -> None:
    """Inventory snapshots are unique per (product, month); later rows win."""
    latest = {(r.product_id, r.month): r for r in records}
    existing = {
        (s.product_id, s.month): s
        for s in db.query(InventorySnapshot)
        .filter(InventorySnapshot.month.in_(sorted({k[1] for k in latest})))
        .all()
    }
    for key, rec in latest.items():
        row = existing.get(key)
        if row is None:
            db.add(_to_model("inventory", rec, job_id))
        else:
            row.opening_stock = rec.opening_stock
            row.closing_stock = rec.closing_stock
            row.sales = rec.sales
            row.import_job_id = job_id


def run_import(
    db: Session,
    dataset: str,
    rows: List[Dict[str, Any]],
    source_type: str = "json",
    source_name: str = "api",
    column_mapping: Optional[Dict[str, str]] = None,
    import_mode: str = "append",
    policy: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Execute the full import pipeline:
      1. Create job record
      2. Normalize all rows
      3. Bulk insert (or replace)
      4. Update job record
    """
    if dataset not in DATASETS:
        raise ValueError(f"Unknown dataset: {dataset}")
    if import_mode not in IMPORT_MODES:
        raise ValueError(f"import_mode must be one of {IMPORT_MODES}")

    if column_mapping is None and rows:
        column_mapping = auto_map_columns(list(rows[0].keys()), dataset)

    job = create_import_job(db, source_type, source_name, dataset, column_mapping, import_mode)
    job.total_rows = len(rows)
    db.commit()

    if not rows:
        _fail_job(db, job, "No data rows found")
        return {"error": "No data rows found", "job_id": job.id}

    missing = missing_required(column_mapping or {}, dataset)
    if missing:
        _fail_job(db, job, f"Missing required columns: {missing}")
        return {"error": f"Missing required columns: {missing}", "job_id": job.id}

    result = normalize_rows(rows, dataset, column_mapping, policy)
    job.error_rows = result.error_rows
    job.coerced_fields = result.coerced_fields
    job.error_log = result.errors[:500]  # cap error log at 500 entries
    db.commit()

    if not result.records:
        _fail_job(db, job, f"No valid rows. {len(result.errors)} errors.")
        return {
            "error": "All rows failed normalization",
            "job_id": job.id,
            "errors": result.errors[:50],
            "total_errors": len(result.errors),
        }

    job.status = "importing"
    db.commit()

    try:
        if import_mode == "replace":
            removed = _clear_for_replace(db, dataset, result.records)
            logger.info("Replace import for %s removed %d rows", dataset, removed)

        if dataset == "inventory":
            _upsert_snapshots(db, result.records, job.id)
        else:
            for i in range(0, len(result.records), BATCH_SIZE):
                batch = result.records[i : i + BATCH_SIZE]
                db.add_all([_to_model(dataset, rec, job.id) for rec in batch])
                db.flush()

        job.status = "completed"
        job.imported_rows = len(result.records)
        job.completed_at = datetime.now(timezone.utc)
        db.commit()
    except Exception as e:
        db.rollback()
        _fail_job(db, job, f"Import error: {e}")
        logger.error("Import failed for job %d: %s", job.id, e, exc_info=True)
        return {"error": f"Import failed: {e}", "job_id": job.id}

    logger.info(
        "Imported %d/%d %s rows (job %d, %d coerced fields)",
        job.imported_rows, job.total_rows, dataset, job.id, job.coerced_fields,
    )
    return {
        "status": "completed",
        "job_id": job.id,
        "dataset": dataset,
        "total_rows": job.total_rows,
        "imported_rows": job.imported_rows,
        "error_rows": job.error_rows,
        "coerced_fields": job.coerced_fields,
        "errors": result.errors[:20],
    }


def _fail_job(db: Session, job: ImportJob, message: str):
    """Mark job as failed."""
    job.status = "failed"
    job.error_summary = message
    job.completed_at = datetime.now(timezone.utc)
    db.commit()


# ═══════════════════════════════════════════════════════════════════
#  4. JOB MANAGEMENT
# ═══════════════════════════════════════════════════════════════════

def create_import_job(
    db: Session,
    source_type: str,
    source_name: str,
    dataset: str,
    column_mapping: Optional[Dict] = None,
    import_mode: str = "append",
) -> ImportJob:
    """Create a new import job record."""
    job = ImportJob(
        source_type=source_type,
        source_name=source_name,
        dataset=dataset,
        column_mapping=column_mapping,
        import_mode=import_mode,
        status="pending",
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


def get_import_jobs(
    db: Session, limit: int = 20, status: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Get recent import jobs."""
    q = db.query(ImportJob).order_by(ImportJob.id.desc())
    if status:
        q = q.filter(ImportJob.status == status)
    return [j.to_dict() for j in q.limit(limit).all()]


def get_import_job_detail(db: Session, job_id: int) -> Optional[Dict[str, Any]]:
    """Get full detail of a single import job including error log."""
    job = db.get(ImportJob, job_id)
    if not job:
        return None
    detail = job.to_dict()
    detail["column_mapping"] = job.column_mapping
    detail["error_log"] = job.error_log
    return detail


def get_table_stats(db: Session) -> Dict[str, Any]:
    """Row counts and month ranges for the raw-record tables."""
    stats: Dict[str, Any] = {}
    for channel in Channel:
        count = db.query(Order).filter(Order.channel == channel).count()
        stats[f"{channel.value}_orders"] = {"row_count": count}
    for name, model in (("inventory", InventorySnapshot), ("demand", DemandForecast)):
        lo, hi = db.query(sqlfunc.min(model.month), sqlfunc.max(model.month)).first()
        stats[name] = {
            "row_count": db.query(model).count(),
            "month_range": {"min": lo, "max": hi} if lo else None,
        }
    stats["stock_boxes"] = {"row_count": db.query(StockBox).count()}
    return stats
