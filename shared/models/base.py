"""Common API models.

Error and health shapes shared by service APIs.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """The ``detail`` object of an error response.

    Extra keys carry error-specific context such as the attempted
    providers or a retry delay.
    """

    model_config = ConfigDict(extra="allow")

    error: str = Field(description="Error code for programmatic handling")
    message: str = Field(description="Human-readable error message")


class ErrorResponse(BaseModel):
    """Error body as produced by FastAPI for an ``HTTPException``."""

    detail: ErrorDetail


class HealthStatus(str, Enum):
    """Health check status values."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
