"""Import job log: one row per file upload or JSON row push."""

from sqlalchemy import Column, Integer, String, DateTime, Text, JSON
from sqlalchemy.sql import func

from erp_insights.core.database import Base


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(Integer, primary_key=True, index=True)

    source_type = Column(String(20), nullable=False)   # 'csv', 'excel', 'json'
    source_name = Column(String(500), nullable=False)  # filename, or "api" for row pushes
    dataset = Column(String(50), nullable=False)       # key of DATASETS in services.ingestion

    status = Column(String(20), nullable=False, default="pending")
    # pending → importing → completed / failed

    total_rows = Column(Integer, default=0)
    imported_rows = Column(Integer, default=0)
    error_rows = Column(Integer, default=0)
    coerced_fields = Column(Integer, default=0)  # numbers defaulted to 0 under the "zero" policy

    import_mode = Column(String(20), default="append")  # 'append' or 'replace'
    column_mapping = Column(JSON, nullable=True)

    error_log = Column(JSON, nullable=True)
    # [{row: 5, field: "quantity", error: "'abc' is not a valid number"}, ...]
    error_summary = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "source_type": self.source_type,
            "source_name": self.source_name,
            "dataset": self.dataset,
            "status": self.status,
            "total_rows": self.total_rows,
            "imported_rows": self.imported_rows,
            "error_rows": self.error_rows,
            "coerced_fields": self.coerced_fields,
            "import_mode": self.import_mode,
            "error_summary": self.error_summary,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }
