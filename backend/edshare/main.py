# backend/edshare/main.py
"""
EdShare API application.

Mounts the v1 routers under ``/api/v1``, the health check and the
Prometheus scrape endpoint, and registers the problem-document error
handlers.
"""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware

from .core.config import settings
from .errors import register_error_handlers
from .monitoring.prometheus_metrics import prometheus_metrics
from .routes import health
from .routes.v1 import (
    bookings as bookings_v1,
    location as location_v1,
    payments as payments_v1,
    search as search_v1,
)
from .services.notification_service import shutdown_notifications

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

API_TITLE = f"{settings.brand_name} API"
API_DESCRIPTION = "Tutor discovery, bookings and payments for the EdShare marketplace"


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Drain queued notifications on shutdown."""
    yield
    logger.info(f"{API_TITLE} shutting down...")
    shutdown_notifications(wait=True)


def create_app() -> FastAPI:
    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=health.API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=app_lifespan,
    )
    register_error_handlers(app)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_url],
        allow_credentials=True,
        allow_methods=["GET", "HEAD", "OPTIONS", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    api_v1 = APIRouter(prefix="/api/v1")
    api_v1.include_router(search_v1.router, prefix="/tutors")
    api_v1.include_router(bookings_v1.router, prefix="/bookings")
    api_v1.include_router(payments_v1.router, prefix="/payments")
    api_v1.include_router(location_v1.router, prefix="/location")
    app.include_router(api_v1)
    app.include_router(health.router)

    @app.get("/metrics", include_in_schema=False)
    def metrics() -> Response:
        return Response(
            content=prometheus_metrics.get_metrics(),
            media_type=prometheus_metrics.get_content_type(),
        )

    logger.info(f"{API_TITLE} initialized (environment={settings.environment})")
    return app


app = create_app()
