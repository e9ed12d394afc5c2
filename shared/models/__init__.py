"""Shared API models."""

from shared.models.base import (
    ErrorDetail,
    ErrorResponse,
    HealthStatus,
)

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "HealthStatus",
]
