"""HTTP API for the model router."""

from model_router.api.routes import router
from model_router.api.middleware import setup_middleware

__all__ = ["router", "setup_middleware"]
