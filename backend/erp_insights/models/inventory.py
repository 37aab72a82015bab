"""Inventory tables: monthly product snapshots, demand forecasts and finished-goods boxes."""

from sqlalchemy import Column, Integer, String, Float, UniqueConstraint

from erp_insights.core.database import Base
from erp_insights.models.records import (
    DemandRecord,
    InventorySnapshot as InventorySnapshotRecord,
    ProductKey,
    StockBox as StockBoxRecord,
)


class InventorySnapshot(Base):
    __tablename__ = "inventory_snapshots"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(String(64), nullable=False, index=True)
    month = Column(String(7), nullable=False, index=True)
    opening_stock = Column(Float, nullable=False, default=0.0)
    closing_stock = Column(Float, nullable=False, default=0.0)
    sales = Column(Float, nullable=False, default=0.0)
    import_job_id = Column(Integer, nullable=True)

    __table_args__ = (
        UniqueConstraint("product_id", "month", name="uq_inventory_product_month"),
    )

    def to_record(self) -> InventorySnapshotRecord:
        return InventorySnapshotRecord(
            product_id=self.product_id,
            month=self.month,
            opening_stock=self.opening_stock or 0.0,
            closing_stock=self.closing_stock or 0.0,
            sales=self.sales or 0.0,
        )

    def __repr__(self):
        return f"<InventorySnapshot({self.product_id} {self.month} close={self.closing_stock})>"


class DemandForecast(Base):
    __tablename__ = "demand_forecasts"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(String(64), nullable=False, index=True)
    month = Column(String(7), nullable=False, index=True)
    demand_quantity = Column(Float, nullable=False, default=0.0)
    import_job_id = Column(Integer, nullable=True)

    def to_record(self) -> DemandRecord:
        return DemandRecord(
            product_id=self.product_id,
            month=self.month,
            demand_quantity=self.demand_quantity or 0.0,
        )


class StockBox(Base):
    __tablename__ = "stock_boxes"

    id = Column(Integer, primary_key=True, index=True)
    box_number = Column(String(64), nullable=False, default="")
    product_code = Column(String(64), nullable=False, index=True)
    denier = Column(String(32), nullable=False, default="")
    grade = Column(String(32), nullable=False, default="Unknown")
    location = Column(String(64), nullable=False, default="Unknown")
    net_weight = Column(Float, nullable=False, default=0.0)  # MT
    import_job_id = Column(Integer, nullable=True)

    def to_record(self) -> StockBoxRecord:
        return StockBoxRecord(
            box_number=self.box_number or "",
            product=ProductKey(self.product_code, self.denier or ""),
            grade=self.grade,
            location=self.location,
            net_weight=self.net_weight or 0.0,
        )
