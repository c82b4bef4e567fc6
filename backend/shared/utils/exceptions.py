"""
Centralized HTTP exceptions for consistent error handling.
Standardized HTTP status codes, error codes and messages.

Usage:
    from shared.utils.exceptions import NotFoundError, ForbiddenError, ValidationError

    raise NotFoundError("Order", order_id)
    raise ForbiddenError("void orders")
    raise ValidationError("Quantity must be positive")

Every exception carries a stable ``code`` that the API boundary uses when
normalizing the error body (see pos_api.core.errors).
"""

from fastapi import HTTPException, status
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class AppException(HTTPException):
    """
    Base exception with automatic logging.

    All custom exceptions should inherit from this class
    to ensure consistent logging and response format.
    """

    code: str = "ERROR"

    def __init__(
        self,
        status_code: int,
        detail: str,
        log_level: str = "warning",
        headers: dict[str, str] | None = None,
        **log_context: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, error_code=self.code, **log_context)

        super().__init__(status_code=status_code, detail=detail, headers=headers)


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("Product", 123)
        raise NotFoundError("Order item", item_id, order_id=order_id)
    """

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: int | str | None = None, **log_context: Any):
        if entity_id is not None:
            detail = f"{entity} with ID {entity_id} not found"
        else:
            detail = f"{entity} not found"

        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **log_context,
        )


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id: int | None = None, **log_context: Any):
        super().__init__("Order", order_id, **log_context)


class OrderItemNotFoundError(NotFoundError):
    def __init__(self, item_id: int | None = None, **log_context: Any):
        super().__init__("Order item", item_id, **log_context)


class SessionNotFoundError(NotFoundError):
    """Tab session not found."""

    def __init__(self, session_id: int | None = None, **log_context: Any):
        super().__init__("Order session", session_id, **log_context)


class TableNotFoundError(NotFoundError):
    def __init__(self, table_id: int | None = None, **log_context: Any):
        super().__init__("Table", table_id, **log_context)


class TicketNotFoundError(NotFoundError):
    def __init__(self, ticket_id: int | None = None, **log_context: Any):
        super().__init__("Preparation ticket", ticket_id, **log_context)


# =============================================================================
# 403 Forbidden Errors
# =============================================================================


class ForbiddenError(AppException):
    """
    Authorization/permission error (403).

    Usage:
        raise ForbiddenError("void orders")
        raise ForbiddenError("void orders", user_id=user_id)
    """

    code = "FORBIDDEN"

    def __init__(self, action: str | None = None, **log_context: Any):
        if action:
            detail = f"Not authorized to {action}"
        else:
            detail = "Access denied"

        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            log_level="warning",
            action=action,
            **log_context,
        )


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Input validation error (400).

    Usage:
        raise ValidationError("Price must be positive")
        raise ValidationError("Invalid quantity", field="quantity", value=-1)
    """

    code = "VALIDATION_ERROR"

    def __init__(self, detail: str, **log_context: Any):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            log_level="warning",
            **log_context,
        )


class InvalidStateError(ValidationError):
    """Entity is in an invalid state for the operation."""

    code = "INVALID_STATE"

    def __init__(self, entity: str, current_state: str, expected_states: list[str] | None = None, **log_context: Any):
        if expected_states:
            states_str = ", ".join(expected_states)
            detail = f"{entity} is in state '{current_state}', expected: {states_str}"
        else:
            detail = f"{entity} cannot be in state '{current_state}' for this operation"

        super().__init__(detail, entity=entity, current_state=current_state, **log_context)


class InvalidTransitionError(InvalidStateError):
    """Invalid status transition."""

    def __init__(self, entity: str, from_status: str, to_status: str, **log_context: Any):
        ValidationError.__init__(
            self,
            f"Invalid transition from '{from_status}' to '{to_status}' for {entity}",
            entity=entity,
            from_status=from_status,
            to_status=to_status,
            **log_context,
        )


class PaymentAmountError(ValidationError):
    """Payment amount validation error."""

    def __init__(self, amount: int, reason: str, **log_context: Any):
        detail = f"Invalid payment amount ({amount}): {reason}"
        super().__init__(detail, amount=amount, **log_context)


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal server error (500).

    Usage:
        raise InternalError("Failed to build receipt", session_id=123)
    """

    code = "INTERNAL"

    def __init__(self, detail: str = "Internal server error", **log_context: Any):
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=detail,
            log_level="error",
            **log_context,
        )


class DependencyFailureError(InternalError):
    """
    A collaborator (persistence, stock ledger, preparation routing) failed.

    Raised when a primary write cannot be committed. Collaborators also raise
    it internally so callers can record the failure as a side-effect outcome.
    """

    code = "DEPENDENCY_FAILURE"

    def __init__(self, dependency: str, operation: str, **log_context: Any):
        self.dependency = dependency
        detail = f"{dependency} failed during {operation}. Please try again."
        super().__init__(detail, dependency=dependency, operation=operation, **log_context)
