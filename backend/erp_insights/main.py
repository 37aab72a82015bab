from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from erp_insights.core.config import settings
from erp_insights.api import analytics, export, import_data
from erp_insights.ingestion.init_db import init_db

# ─── Logging ───
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)-20s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("erp_insights.main")

VERSION = "0.3.0"


# ─── Lifecycle ───

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown lifecycle."""
    logger.info("ERP Insights API starting up…")
    init_db()
    yield
    logger.info("ERP Insights API shutting down…")


app = FastAPI(
    title="ERP Insights API",
    description="Orders, stock, production-needs and sales-recommendation analytics for the ERP dashboard",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(analytics.router)
app.include_router(import_data.router)
app.include_router(export.router)


@app.get("/")
def root():
    return {
        "name": "ERP Insights API",
        "version": VERSION,
        "description": "Orders, stock, production-needs and sales-recommendation analytics",
        "endpoints": {
            "analytics": "/api/analytics",
            "import": "/api/import",
            "export": "/api/export",
            "docs": "/docs",
        },
    }


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("erp_insights.main:app", host=settings.api_host, port=settings.api_port)
