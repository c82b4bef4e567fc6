"""
Core application setup: lifespan, middlewares, error handlers.
"""

from .errors import error_response, register_exception_handlers
from .lifespan import lifespan
from .middlewares import ContentTypeValidationMiddleware, register_middlewares

__all__ = [
    "error_response",
    "register_exception_handlers",
    "lifespan",
    "ContentTypeValidationMiddleware",
    "register_middlewares",
]
