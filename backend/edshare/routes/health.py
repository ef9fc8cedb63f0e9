"""
Health check endpoints for monitoring and load balancers.
"""

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..api.dependencies import get_db
from ..core.config import settings

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    environment: str
    database: str
    timestamp: str


@router.get("/health", response_model=HealthResponse)
def health_check(db: Session = Depends(get_db)) -> HealthResponse:
    """
    Health check endpoint.

    Reports ``degraded`` instead of failing when the database is unreachable.
    """
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as exc:
        logger.warning(f"Health check database query failed: {exc}")
        database = "unavailable"

    return HealthResponse(
        status="healthy" if database == "ok" else "degraded",
        service=f"{settings.brand_name.lower()}-api",
        version=API_VERSION,
        environment=settings.environment,
        database=database,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )
