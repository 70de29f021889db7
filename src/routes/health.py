"""Health check endpoint.

Provides health status information for load balancers,
monitoring systems, and orchestration platforms.
"""

from typing import Literal

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from src.database import utc_timestamp
from src.routes.shared import ENVELOPE_RESPONSES, respond

router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    """Content of the health check envelope.

    Attributes:
        status: Current health status of the application.
        version: Application version string.
        api_versions: API versions currently served.
        timestamp: UTC ISO 8601 timestamp of the health check, ending in Z.
    """

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    api_versions: list[str]
    timestamp: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "status": "healthy",
                "version": "0.1.0",
                "api_versions": ["v1"],
                "timestamp": "2026-01-14T12:00:00Z",
            }
        }
    )


@router.get(
    "/health",
    summary="Health Check",
    description="Returns the current health status of the application.",
    responses=ENVELOPE_RESPONSES,
)
def health_check(request: Request) -> JSONResponse:
    """Check application health status.

    Returns:
        Envelope whose content is a HealthResponse.
    """
    settings = request.app.state.settings

    return respond(
        HealthResponse(
            status="healthy",
            version=settings.app_version,
            api_versions=settings.api_versions,
            timestamp=utc_timestamp(),
        )
    )
