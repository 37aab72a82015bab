"""
Data Import API
───────────────
Endpoints:
  POST /api/import/preview         Upload file + get preview with auto mapping
  POST /api/import/upload          Upload file and import it
  POST /api/import/rows            Import rows sent as JSON
  GET  /api/import/jobs            List import jobs
  GET  /api/import/jobs/{id}       Get job detail + error log
  GET  /api/import/schemas         Get dataset schemas
  GET  /api/import/stats           Get table row counts
"""

import json
import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, Query, HTTPException, UploadFile, File, Form
from sqlalchemy.orm import Session

from erp_insights.core.config import settings
from erp_insights.core.database import get_db
from erp_insights.schemas.imports import ImportResult, RowImport
from erp_insights.services.import_engine import (
    SUPPORTED_EXTENSIONS,
    generate_preview,
    get_import_job_detail,
    get_import_jobs,
    get_table_stats,
    parse_file,
    run_import,
    source_type_for,
)
from erp_insights.services.ingestion import DATASETS, get_dataset_schemas

logger = logging.getLogger("erp_insights.api.import")
router = APIRouter(prefix="/api/import", tags=["import"])


def _read_upload(file: UploadFile, dataset: str) -> bytes:
    # Callers are plain `def` endpoints, so parsing and the DB import run on the threadpool
    if dataset not in DATASETS:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid dataset. Must be one of: {list(DATASETS.keys())}",
        )

    filename = file.filename or "unknown.csv"
    ext = os.path.splitext(filename)[1].lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {ext}. Use CSV, Excel, JSON, or TSV.",
        )

    content = file.file.read()
    if len(content) > settings.max_upload_size:
        raise HTTPException(
            status_code=413,
            detail=f"File too large. Maximum: {settings.max_upload_mb} MB",
        )
    if not content:
        raise HTTPException(status_code=400, detail="Empty file")
    return content


def _finish(result: dict) -> dict:
    if "error" in result:
        raise HTTPException(status_code=400, detail=result)
    return result


# ── Preview ───────────────────────────────────────────────────────

@router.post("/preview")
def preview_file(
    file: UploadFile = File(...),
    dataset: str = Form(...),
):
    """Parse an uploaded file and show the detected column mapping."""
    content = _read_upload(file, dataset)
    preview = generate_preview(content, file.filename or "unknown.csv", dataset)
    if "error" in preview:
        raise HTTPException(status_code=400, detail=preview["error"])
    return preview


# ── Upload & Import ───────────────────────────────────────────────

@router.post("/upload", response_model=ImportResult)
def upload_file(
    file: UploadFile = File(...),
    dataset: str = Form(...),
    column_mapping: Optional[str] = Form(None),   # JSON string; auto-detected when omitted
    import_mode: str = Form("append"),
    numeric_policy: Optional[str] = Form(None),
    db: Session = Depends(get_db),
):
    """Upload a CSV/Excel/JSON file and import it into ``dataset``."""
    content = _read_upload(file, dataset)
    filename = file.filename or "unknown.csv"

    mapping = None
    if column_mapping:
        try:
            mapping = json.loads(column_mapping)
        except json.JSONDecodeError:
            raise HTTPException(status_code=400, detail="Invalid column_mapping JSON")
        if not isinstance(mapping, dict):
            raise HTTPException(status_code=400, detail="column_mapping must be a JSON object")

    if import_mode not in ("append", "replace"):
        raise HTTPException(status_code=400, detail="import_mode must be append or replace")
    if numeric_policy not in (None, "zero", "reject"):
        raise HTTPException(status_code=400, detail="numeric_policy must be zero or reject")

    try:
        _, rows = parse_file(content, filename)
    except Exception as e:
        raise HTTPException(status_code=400, detail=f"Failed to parse file: {e}")

    result = run_import(
        db,
        dataset,
        rows,
        source_type=source_type_for(filename),
        source_name=filename,
        column_mapping=mapping,
        import_mode=import_mode,
        policy=numeric_policy,
    )
    return _finish(result)


@router.post("/rows", response_model=ImportResult)
def import_rows(body: RowImport, db: Session = Depends(get_db)):
    """Import rows posted as JSON objects (one object per row)."""
    result = run_import(
        db,
        body.dataset,
        body.rows,
        source_type="json",
        source_name="api",
        column_mapping=body.column_mapping,
        import_mode=body.import_mode,
        policy=body.numeric_policy,
    )
    return _finish(result)


# ── Job Management ────────────────────────────────────────────────

@router.get("/jobs")
def list_import_jobs(
    limit: int = Query(20, ge=1, le=100),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    """List recent import jobs."""
    return get_import_jobs(db, limit, status)


@router.get("/jobs/{job_id}")
def get_job_detail(job_id: int, db: Session = Depends(get_db)):
    """Get detailed import job info including error log."""
    detail = get_import_job_detail(db, job_id)
    if not detail:
        raise HTTPException(status_code=404, detail="Job not found")
    return detail


# ── Schema & Stats ────────────────────────────────────────────────

@router.get("/schemas")
def list_schemas():
    """Get all importable dataset schemas (columns, types, required fields)."""
    return get_dataset_schemas()


@router.get("/stats")
def table_stats(db: Session = Depends(get_db)):
    """Get row counts and month ranges for the raw-record tables."""
    return get_table_stats(db)
