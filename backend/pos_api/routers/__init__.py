"""
HTTP routers. Thin controllers over the domain services.
"""

from .orders import router as orders_router
from .sessions import router as sessions_router
from .tickets import router as tickets_router

__all__ = ["orders_router", "sessions_router", "tickets_router"]
