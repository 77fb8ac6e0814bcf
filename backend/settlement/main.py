# backend/settlement/main.py
"""
FastAPI application for the settlement engine.

Exposes the scheduler endpoints under /api/v1/cron, the manual triggers
under /api/v1/dev, a health probe, and the Prometheus scrape endpoint.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

from .core.config import settings
from .core.exceptions import DomainException
from .monitoring.sentry import init_sentry
from .routes import cron, dev, health, prometheus

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

API_TITLE = "Settlement API"
API_VERSION = "1.0.0"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown."""
    logger.info(f"Settlement API starting up (environment: {settings.environment})")
    init_sentry()
    yield
    logger.info("Settlement API shutting down")


app = FastAPI(
    title=API_TITLE,
    version=API_VERSION,
    lifespan=app_lifespan,
)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


api_v1 = APIRouter(prefix="/api/v1")
api_v1.include_router(cron.router, prefix="/cron")
api_v1.include_router(dev.router, prefix="/dev")
api_v1.include_router(health.router)

app.include_router(api_v1)
# Prometheus metrics - Standard /metrics/prometheus path for Prometheus scraping
app.include_router(prometheus.router)
