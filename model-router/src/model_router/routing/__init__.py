"""Routing layer for the model router."""

from model_router.routing.registry import ProviderRegistry
from model_router.routing.selector import ScoredProvider, Selector
from model_router.routing.health import HealthMonitor
from model_router.routing.dispatcher import Dispatcher

__all__ = [
    "ProviderRegistry",
    "ScoredProvider",
    "Selector",
    "HealthMonitor",
    "Dispatcher",
]
