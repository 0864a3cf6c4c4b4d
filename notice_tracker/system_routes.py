"""
System Routes - health checks
"""

import logging
from datetime import datetime
from typing import Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel

from notice_tracker import __version__

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/system", tags=["system"])


class HealthResponse(BaseModel):
    status: str
    timestamp: str
    version: str
    environment: str
    services: Dict[str, str]


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request):
    """
    Basic health check endpoint.
    Reports "degraded" when the store was never configured.
    """
    settings = getattr(request.app.state, "settings", None)
    store_ready = getattr(request.app.state, "services", None) is not None

    services = {"store": "configured" if store_ready else "not configured"}
    status = "healthy" if store_ready else "degraded"

    return HealthResponse(
        status=status,
        timestamp=datetime.utcnow().isoformat(),
        version=__version__,
        environment=settings.environment if settings else "development",
        services=services,
    )
