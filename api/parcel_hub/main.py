# parcel_hub/main.py
# Parcel Hub - package creation + inventory reconciliation API
from __future__ import annotations
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from parcel_hub.settings import settings
from parcel_hub.database import init_db, close_db, check_db_health, create_all, get_database_url
from parcel_hub.routers.packages import router as packages_router

APP_VERSION = "1.0.0"

# ---------------------------------------------------------
# Logging setup
# ---------------------------------------------------------
from parcel_hub.logging_setup import setup_logging
setup_logging(settings)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------
# Lifespan: Database init/cleanup
# ---------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        await init_db()
        logger.info("Database engine initialized")
        if get_database_url().startswith("sqlite"):
            # local runs: no migrations, create tables in place
            await create_all()
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
    yield
    await close_db()
    logger.info("Database engine disposed")

# ---------------------------------------------------------
# FastAPI app + CORS
# ---------------------------------------------------------
app = FastAPI(
    title="Parcel Hub API",
    version=APP_VERSION,
    description="Bulk package creation with inventory reconciliation",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://127.0.0.1:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(packages_router)

# ---------------------------------------------------------
# Endpoints
# ---------------------------------------------------------
@app.get("/health")
async def health():
    """Health check endpoint with database status."""
    result = {"status": "ok", "version": APP_VERSION}
    db_health = await check_db_health()
    result["database"] = db_health
    if db_health.get("status") != "healthy":
        result["status"] = "degraded"
    return result
