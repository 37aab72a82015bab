import os
import sys
from pathlib import Path

import pytest

# Ensure backend/ is on sys.path to allow `import erp_insights` without installing
BACKEND_ROOT = Path(__file__).resolve().parent.parent / "backend"
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

# Keep the module-level engine off the on-disk default database
os.environ.setdefault("DATABASE_URL", "sqlite://")

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from erp_insights.core.database import Base, get_db  # noqa: E402
from erp_insights.ingestion import init_db as _models  # noqa: E402,F401  registers tables
from erp_insights.main import app  # noqa: E402


@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    # Not entered as a context manager: lifespan would create tables on the app engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def seeded(db):
    """Two products over two months, orders on both channels, a few boxes."""
    from erp_insights.services.import_engine import run_import

    run_import(db, "inventory", [
        {"product_id": "P001", "month": "2024-05", "opening_stock": 500, "closing_stock": 400, "sales": 300},
        {"product_id": "P002", "month": "2024-05", "opening_stock": 900, "closing_stock": 1000, "sales": 10},
        {"product_id": "P001", "month": "2024-06", "opening_stock": 400, "closing_stock": 400, "sales": 100},
        {"product_id": "P002", "month": "2024-06", "opening_stock": 1000, "closing_stock": 1000, "sales": 50},
    ])
    run_import(db, "demand", [
        {"product_id": "P001", "month": "2024-06", "demand_quantity": 1000},
        {"product_id": "P002", "month": "2024-06", "demand_quantity": 500},
        {"product_id": "P001", "month": "2024-05", "demand_quantity": 200},
    ])
    run_import(db, "export_orders", [
        {"order_number": "E1", "product_id": "P001", "customer": "Acme", "country": "Turkey",
         "quantity": 10, "value": 1000, "date": "2024-06-03"},
        {"order_number": "E2", "product_id": "P002", "customer": "Borealis", "country": "Portugal",
         "quantity": 20, "value": 3000, "date": "15-JUN-24"},
    ])
    run_import(db, "local_orders", [
        {"order_number": "L1", "product_id": "P002", "customer": "Coastline", "country": "Pakistan",
         "quantity": 10, "value": 1000, "date": "2024-05-20"},
    ])
    run_import(db, "stock_boxes", [
        {"box_number": "B1", "product_code": "P001", "denier": "150", "grade": "A",
         "location": "FGW-1", "net_weight": 1000},
        {"box_number": "B2", "product_code": "P001", "denier": "150", "grade": "A",
         "location": "FGW-1", "net_weight": 1000},
        {"box_number": "B3", "product_code": "P002", "denier": "", "grade": "B",
         "location": "FGW-2", "net_weight": 500},
    ])
    return db
