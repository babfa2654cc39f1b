import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from gatepass.api.v1.api import api_router
from gatepass.core.config import settings
from gatepass.core.database import engine
from gatepass.core.exceptions import BaseAppException, app_exception_handler
from gatepass.core.logging_config import setup_logging
from gatepass.middleware.logging import LoggingMiddleware
from gatepass.models import Base
from gatepass.utils.date_time import utcnow

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.ENVIRONMENT == "development":
        # Migrations own the schema everywhere else
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    logger.info(f"🚀 Gate pass service started ({settings.ENVIRONMENT}, alerts: {settings.ALERT_BACKEND})")
    yield
    await engine.dispose()


# Create FastAPI app
app_config = {
    "title": "Gate Pass Service",
    "description": "Gate pass requests, approvals and security gate check-out/check-in",
    "version": "1.0.0",
    "lifespan": lifespan,
}

app = FastAPI(**app_config)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)
app.add_middleware(LoggingMiddleware)

app.add_exception_handler(BaseAppException, app_exception_handler)

# Include routers
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "message": "Gate Pass Service",
        "status": "active",
        "version": "1.0.0",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    database = "connected"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database failure: {e}")
        database = "unavailable"

    return {
        "status": "healthy" if database == "connected" else "degraded",
        "timestamp": utcnow().isoformat(),
        "components": {
            "database": database,
            "alerts": settings.ALERT_BACKEND,
        },
    }
