"""
Common utilities shared across routers.
"""

from typing import Any

from fastapi import Depends

from shared.security.auth import current_user_context
from pos_api.services.identity import RequestIdentity
from pos_api.services.results import OperationResult


def get_user_id(ctx: dict[str, Any]) -> int:
    """Extract user ID from JWT context."""
    return int(ctx["sub"])


def get_identity(ctx: dict[str, Any] = Depends(current_user_context)) -> RequestIdentity:
    """Identity collaborator for the authenticated caller."""
    return RequestIdentity(ctx)


def result_extras(result: OperationResult) -> dict[str, Any]:
    """side_effects and warnings of an operation result, ready for a response model."""
    return {
        "side_effects": result.side_effects_as_dicts(),
        "warnings": list(result.warnings),
    }
