"""
Database initialization and table creation script.
Run this once to set up the database schema (the API also does it on start-up).
"""
import logging

from erp_insights.core.database import engine, Base
from erp_insights.models.import_job import ImportJob  # noqa: F401
from erp_insights.models.inventory import DemandForecast, InventorySnapshot, StockBox  # noqa: F401
from erp_insights.models.order import Order  # noqa: F401

logger = logging.getLogger(__name__)


def init_db():
    """Create all tables."""
    Base.metadata.create_all(bind=engine)
    logger.info("All tables created successfully")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
    print("Database initialized successfully!")
