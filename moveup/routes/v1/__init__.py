"""Versioned API routers."""

from .bookings import router as bookings_router
from .health import router as health_router
from .prometheus import router as prometheus_router
from .wallet import router as wallet_router

__all__ = ["bookings_router", "health_router", "prometheus_router", "wallet_router"]
