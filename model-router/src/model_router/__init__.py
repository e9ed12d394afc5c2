"""Model Router - provider-agnostic routing for AI model backends.

Selects a healthy provider for each generation request by capability
score, calls it in its own wire format, and falls back to the next best
provider when a call fails.
"""

__version__ = "0.1.0"

from model_router.config import RouterSettings, get_router_settings
from model_router.router import ModelRouter

__all__ = ["ModelRouter", "RouterSettings", "get_router_settings", "__version__"]
