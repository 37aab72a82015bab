"""
Demo Data Seed Script
Loads a small polyester-yarn data set (five products, two months) through
the regular import pipeline so the dashboard has something to show.

If ``settings.demo_data_dir`` contains files named after a dataset
(``inventory.csv``, ``demand.xlsx``, ``export_orders.json`` ...) those are
imported instead of the built-in rows.
"""
import logging
import os
from typing import Dict, List, Tuple

from erp_insights.core.config import settings
from erp_insights.core.database import SessionLocal
from erp_insights.ingestion.init_db import init_db
from erp_insights.services.import_engine import (
    SUPPORTED_EXTENSIONS,
    parse_file,
    run_import,
    source_type_for,
)
from erp_insights.services.ingestion import DATASETS

logger = logging.getLogger(__name__)

# (product_id, opening, closing, sales, demand) per month, all MT
MONTHLY_POSITIONS = {
    "2024-05": [
        ("P001", 620.0, 540.0, 410.0, 900.0),
        ("P002", 300.0, 1000.0, 60.0, 500.0),
        ("P003", 150.0, 120.0, 140.0, 130.0),
        ("P004", 800.0, 780.0, 15.0, 0.0),
        ("P005", 90.0, 40.0, 85.0, 260.0),
    ],
    "2024-06": [
        ("P001", 540.0, 400.0, 520.0, 1000.0),
        ("P002", 1000.0, 1000.0, 45.0, 500.0),
        ("P003", 120.0, 110.0, 125.0, 100.0),
        ("P004", 780.0, 760.0, 20.0, 50.0),
        ("P005", 40.0, 25.0, 60.0, 300.0),
    ],
}

# (order_number, product_id, customer, country, qty, unit, value, date)
EXPORT_ORDERS = [
    ("PI-24-0117", "P001", "Anatolia Textiles", "Turkey", 120.0, "MT", 138000.0, "14-MAY-24"),
    ("PI-24-0121", "P002", "Lisbon Knit Co", "Portugal", 60.0, "MT", 64800.0, "22-MAY-24"),
    ("PI-24-0130", "P001", "Rio Fios", "Brazil", 95000.0, "KG", 109250.0, "03-JUN-24"),
    ("PI-24-0134", "P005", "Anatolia Textiles", "Turkey", 40.0, "MT", 52000.0, "18-JUN-24"),
]
LOCAL_ORDERS = [
    ("SO-24-0561", "P003", "Faisal Weaving", "Pakistan", 35.0, "MT", 36750.0, "2024-05-09"),
    ("SO-24-0577", "P001", "Faisal Weaving", "Pakistan", 80.0, "MT", 90400.0, "2024-06-02"),
    ("SO-24-0590", "P004", "Indus Denim", "Pakistan", 12.0, "MT", 11640.0, "2024-06-21"),
]

# (product_code, denier, grade, location, boxes, kg per box)
BOX_LOTS = [
    ("P001", "150/48", "A", "FGW-1", 40, 1200.0),
    ("P001", "75/36", "A", "FGW-1", 6, 1100.0),
    ("P002", "150/48", "B", "FGW-2", 90, 1250.0),
    ("P003", "300/96", "A", "FGW-2", 12, 1180.0),
]


def _order_rows(orders) -> List[Dict]:
    return [
        {
            "order_number": num, "product_id": pid, "customer": cust, "country": country,
            "quantity": qty, "unit": unit, "value": value, "date": when,
        }
        for (num, pid, cust, country, qty, unit, value, when) in orders
    ]


def demo_rows() -> Dict[str, List[Dict]]:
    """Built-in demo rows keyed by dataset."""
    inventory, demand = [], []
    for month, positions in MONTHLY_POSITIONS.items():
        for (pid, opening, closing, sales, forecast) in positions:
            inventory.append({
                "product_id": pid, "month": month, "opening_stock": opening,
                "closing_stock": closing, "sales": sales,
            })
            demand.append({"product_id": pid, "month": month, "demand_quantity": forecast})

    boxes = []
    for (code, denier, grade, location, count, kg) in BOX_LOTS:
        for i in range(count):
            boxes.append({
                "box_number": f"{code}-{denier.replace('/', '')}-{i + 1:04d}",
                "product_code": code, "denier": denier, "grade": grade,
                "location": location, "net_weight": kg,
            })

    return {
        "inventory": inventory,
        "demand": demand,
        "export_orders": _order_rows(EXPORT_ORDERS),
        "local_orders": _order_rows(LOCAL_ORDERS),
        "stock_boxes": boxes,
    }


def _directory_rows(directory: str) -> Dict[str, Tuple[str, List[Dict]]]:
    found: Dict[str, Tuple[str, List[Dict]]] = {}
    if not os.path.isdir(directory):
        return found
    for filename in sorted(os.listdir(directory)):
        name, ext = os.path.splitext(filename)
        if name not in DATASETS or ext.lower() not in SUPPORTED_EXTENSIONS:
            continue
        with open(os.path.join(directory, filename), "rb") as fh:
            _, rows = parse_file(fh.read(), filename)
        found[name] = (filename, rows)
        logger.info(f"Found {len(rows)} {name} rows in {filename}")
    return found


def seed_demo(directory: str = None) -> Dict[str, int]:
    """Replace-import every dataset; returns imported row counts."""
    init_db()
    sources = _directory_rows(directory or settings.demo_data_dir)
    if not sources:
        sources = {name: ("demo", rows) for name, rows in demo_rows().items()}

    db = SessionLocal()
    counts = {}
    try:
        for dataset, (source_name, rows) in sources.items():
            result = run_import(
                db,
                dataset,
                rows,
                source_type=source_type_for(source_name) if source_name != "demo" else "json",
                source_name=f"seed:{source_name}",
                import_mode="replace",
            )
            if "error" in result:
                logger.warning(f"Seeding {dataset} failed: {result['error']}")
                counts[dataset] = 0
                continue
            counts[dataset] = result["imported_rows"]
            logger.info(f"Seeded {result['imported_rows']} {dataset} rows (job {result['job_id']})")
    finally:
        db.close()

    return counts


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed_demo()
