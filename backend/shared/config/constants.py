"""
Centralized constants for the backend application.
Avoid magic strings and repeated constants.

Usage:
    from shared.config.constants import Roles, MANAGEMENT_ROLES, OrderStatus

    if role in MANAGEMENT_ROLES:
        ...

    if order.status == OrderStatus.CONFIRMED:
        ...
"""

from typing import Final


# =============================================================================
# User Roles
# =============================================================================


class Roles:
    """User role constants."""

    ADMIN: Final[str] = "ADMIN"
    MANAGER: Final[str] = "MANAGER"
    CASHIER: Final[str] = "CASHIER"
    WAITER: Final[str] = "WAITER"
    KITCHEN: Final[str] = "KITCHEN"
    BARTENDER: Final[str] = "BARTENDER"

    ALL: Final[list[str]] = [ADMIN, MANAGER, CASHIER, WAITER, KITCHEN, BARTENDER]


# Role groups for common access patterns
MANAGEMENT_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER})
CASHIER_ROLES: Final[frozenset[str]] = frozenset({Roles.ADMIN, Roles.MANAGER, Roles.CASHIER})
FLOOR_ROLES: Final[frozenset[str]] = frozenset(
    {Roles.ADMIN, Roles.MANAGER, Roles.CASHIER, Roles.WAITER}
)
STATION_ROLES: Final[frozenset[str]] = frozenset(
    {Roles.ADMIN, Roles.MANAGER, Roles.KITCHEN, Roles.BARTENDER}
)


# =============================================================================
# Entity Status Constants
# =============================================================================


class OrderStatus:
    """Order lifecycle status constants."""

    DRAFT: Final[str] = "DRAFT"
    PENDING: Final[str] = "PENDING"
    ON_HOLD: Final[str] = "ON_HOLD"
    CONFIRMED: Final[str] = "CONFIRMED"
    PREPARING: Final[str] = "PREPARING"  # Informational, driven by tickets
    READY: Final[str] = "READY"
    SERVED: Final[str] = "SERVED"
    COMPLETED: Final[str] = "COMPLETED"
    VOIDED: Final[str] = "VOIDED"

    ALL: Final[list[str]] = [
        DRAFT, PENDING, ON_HOLD, CONFIRMED, PREPARING, READY, SERVED, COMPLETED, VOIDED
    ]
    CONFIRMABLE: Final[list[str]] = [DRAFT, PENDING]
    # Orders still owed payment when a tab closes
    UNSETTLED: Final[list[str]] = [DRAFT, PENDING, ON_HOLD, CONFIRMED, PREPARING, READY, SERVED]
    TERMINAL: Final[list[str]] = [COMPLETED, VOIDED]


class SessionStatus:
    """Tab (order session) status constants."""

    OPEN: Final[str] = "OPEN"
    CLOSED: Final[str] = "CLOSED"
    ABANDONED: Final[str] = "ABANDONED"

    ALL: Final[list[str]] = [OPEN, CLOSED, ABANDONED]
    # Sessions a bill preview may be rendered for (live or reprint)
    BILLABLE: Final[list[str]] = [OPEN, CLOSED]


class TicketStatus:
    """Preparation ticket status constants."""

    PENDING: Final[str] = "PENDING"
    PREPARING: Final[str] = "PREPARING"
    READY: Final[str] = "READY"
    COMPLETED: Final[str] = "COMPLETED"
    CANCELLED: Final[str] = "CANCELLED"

    ALL: Final[list[str]] = [PENDING, PREPARING, READY, COMPLETED, CANCELLED]
    ACTIVE: Final[list[str]] = [PENDING, PREPARING, READY]
    # Work already started at the station
    IN_FLIGHT: Final[list[str]] = [PREPARING, READY]


class TicketDestination:
    """Preparation station constants."""

    KITCHEN: Final[str] = "KITCHEN"
    BARTENDER: Final[str] = "BARTENDER"
    BOTH: Final[str] = "BOTH"

    ALL: Final[list[str]] = [KITCHEN, BARTENDER, BOTH]


class TableStatus:
    """Restaurant table status constants."""

    AVAILABLE: Final[str] = "AVAILABLE"
    OCCUPIED: Final[str] = "OCCUPIED"
    OUT_OF_SERVICE: Final[str] = "OUT_OF_SERVICE"


class DiscountType:
    """Discount kinds accepted when closing a tab."""

    PERCENTAGE: Final[str] = "percentage"
    FIXED_AMOUNT: Final[str] = "fixed_amount"

    ALL: Final[list[str]] = [PERCENTAGE, FIXED_AMOUNT]


class MovementType:
    """Inventory movement type constants."""

    SALE: Final[str] = "sale"
    VOID_RETURN: Final[str] = "void_return"
    MODIFICATION_RETURN: Final[str] = "modification_return"

    ALL: Final[list[str]] = [SALE, VOID_RETURN, MODIFICATION_RETURN]


class ModificationType:
    """Order item modification audit types."""

    QUANTITY_REDUCED: Final[str] = "quantity_reduced"
    ITEM_REMOVED: Final[str] = "item_removed"


class VoidReason:
    """Canonical void reason codes."""

    CUSTOMER_REQUEST: Final[str] = "customer_request"
    ORDER_ERROR: Final[str] = "order_error"
    KITCHEN_ERROR: Final[str] = "kitchen_error"
    DUPLICATE_ORDER: Final[str] = "duplicate_order"
    PAYMENT_FAILED: Final[str] = "payment_failed"
    OTHER: Final[str] = "other"

    ALL: Final[list[str]] = [
        CUSTOMER_REQUEST, ORDER_ERROR, KITCHEN_ERROR, DUPLICATE_ORDER, PAYMENT_FAILED, OTHER
    ]


# =============================================================================
# Status Transitions
# =============================================================================

# Valid order status transitions (from -> [allowed to states]).
# PREPARING/READY/SERVED are informational and follow the preparation tickets.
ORDER_TRANSITIONS: Final[dict[str, list[str]]] = {
    OrderStatus.DRAFT: [OrderStatus.CONFIRMED, OrderStatus.COMPLETED, OrderStatus.VOIDED],
    OrderStatus.PENDING: [
        OrderStatus.CONFIRMED, OrderStatus.ON_HOLD, OrderStatus.COMPLETED, OrderStatus.VOIDED,
    ],
    OrderStatus.ON_HOLD: [OrderStatus.PENDING, OrderStatus.COMPLETED, OrderStatus.VOIDED],
    OrderStatus.CONFIRMED: [
        OrderStatus.PREPARING, OrderStatus.READY, OrderStatus.SERVED,
        OrderStatus.COMPLETED, OrderStatus.VOIDED,
    ],
    OrderStatus.PREPARING: [
        OrderStatus.READY, OrderStatus.SERVED, OrderStatus.COMPLETED, OrderStatus.VOIDED,
    ],
    OrderStatus.READY: [OrderStatus.SERVED, OrderStatus.COMPLETED, OrderStatus.VOIDED],
    OrderStatus.SERVED: [OrderStatus.COMPLETED, OrderStatus.VOIDED],
    # A paid order can still be voided by a manager (refund path)
    OrderStatus.COMPLETED: [OrderStatus.VOIDED],
    OrderStatus.VOIDED: [],  # Terminal state
}

SESSION_TRANSITIONS: Final[dict[str, list[str]]] = {
    SessionStatus.OPEN: [SessionStatus.CLOSED, SessionStatus.ABANDONED],
    SessionStatus.CLOSED: [],
    SessionStatus.ABANDONED: [],
}

TICKET_TRANSITIONS: Final[dict[str, list[str]]] = {
    TicketStatus.PENDING: [TicketStatus.PREPARING, TicketStatus.CANCELLED],
    TicketStatus.PREPARING: [TicketStatus.READY, TicketStatus.CANCELLED],
    TicketStatus.READY: [TicketStatus.COMPLETED, TicketStatus.CANCELLED],
    TicketStatus.COMPLETED: [],
    TicketStatus.CANCELLED: [],
}


# =============================================================================
# Validation Constants
# =============================================================================


class Limits:
    """Validation limits."""

    # Free-text void reasons must carry at least this many characters
    MIN_VOID_REASON_LENGTH: Final[int] = 10


# =============================================================================
# Error Messages
# =============================================================================


class ErrorMessages:
    """Standardized error messages."""

    # Auth errors
    INVALID_TOKEN: Final[str] = "Invalid token"
    TOKEN_EXPIRED: Final[str] = "Token expired"
    INSUFFICIENT_PERMISSIONS: Final[str] = "Insufficient permissions"

    # Validation errors
    LAST_ITEM: Final[str] = "Cannot remove the last item from an order. Void the order instead."
    INSUFFICIENT_PAYMENT: Final[str] = "Amount tendered is less than the total due"
    MISSING_CLOSER: Final[str] = "A closing cashier is required"


# =============================================================================
# Status Validation Functions
# =============================================================================


def validate_order_transition(current_status: str, new_status: str) -> bool:
    """
    Validate that an order status transition is allowed.

    Returns True if transition is valid, False otherwise.
    """
    return new_status in ORDER_TRANSITIONS.get(current_status, [])


def validate_session_transition(current_status: str, new_status: str) -> bool:
    """Validate that a tab session status transition is allowed."""
    return new_status in SESSION_TRANSITIONS.get(current_status, [])


def validate_ticket_transition(current_status: str, new_status: str) -> bool:
    """Validate that a preparation ticket status transition is allowed."""
    return new_status in TICKET_TRANSITIONS.get(current_status, [])
