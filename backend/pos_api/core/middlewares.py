"""
Request middlewares: correlation ids, JSON-only bodies, CORS for the
terminal and station displays.
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config.settings import settings
from shared.infrastructure.correlation import REQUEST_ID_HEADER, CorrelationIdMiddleware
from pos_api.core.errors import error_response

# POS terminal and kitchen/bar display dev servers
DEV_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:3001",
]


class ContentTypeValidationMiddleware(BaseHTTPMiddleware):
    """
    POST/PUT/PATCH requests that declare a body type must declare JSON.
    Anything else gets 415 in the normal error shape.
    """

    METHODS_WITH_BODY = {"POST", "PUT", "PATCH"}

    async def dispatch(self, request: Request, call_next):
        if request.method in self.METHODS_WITH_BODY:
            content_type = request.headers.get("content-type", "")
            if content_type and not content_type.startswith("application/json"):
                return error_response(
                    415,
                    "UNSUPPORTED_MEDIA_TYPE",
                    "Unsupported Media Type. Use application/json",
                )
        return await call_next(request)


def cors_origins() -> list[str]:
    """ALLOWED_ORIGINS (comma-separated) when set, else the dev servers."""
    configured = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    return configured or DEV_ORIGINS


def register_middlewares(app: FastAPI) -> None:
    # Last added runs first: the request id is set before anything logs
    app.add_middleware(ContentTypeValidationMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(CorrelationIdMiddleware)
