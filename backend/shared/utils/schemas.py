"""
Shared Pydantic schemas used across the application.

Money is always integer cents.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Common Types
# =============================================================================

OrderStatus = Literal[
    "DRAFT", "PENDING", "ON_HOLD", "CONFIRMED", "PREPARING", "READY", "SERVED", "COMPLETED", "VOIDED"
]
SessionStatus = Literal["OPEN", "CLOSED", "ABANDONED"]
TicketStatus = Literal["PENDING", "PREPARING", "READY", "COMPLETED", "CANCELLED"]
PaymentMethod = Literal["CASH", "CARD", "TRANSFER", "MIXED"]
DiscountType = Literal["percentage", "fixed_amount"]


# =============================================================================
# Errors
# =============================================================================


class ErrorBody(BaseModel):
    code: str  # NOT_FOUND, INVALID_STATE, VALIDATION_ERROR, FORBIDDEN, ...
    message: str
    status: int


class ErrorResponse(BaseModel):
    """Shape of every error leaving the API."""

    error: ErrorBody


class SideEffectOutput(BaseModel):
    name: str
    status: Literal["applied", "skipped", "failed"]
    detail: str | None = None


# =============================================================================
# Order Schemas
# =============================================================================


class OrderItemDraft(BaseModel):
    """
    Item of an order payload to validate. Deliberately unconstrained so
    the validator can report every problem at once.
    """

    product_id: int | None = None
    package_id: int | None = None
    quantity: int | None = None
    unit_price_cents: int | None = None


class ValidateOrderRequest(BaseModel):
    items: list[OrderItemDraft] = Field(default_factory=list)
    total_cents: int | None = None
    amount_tendered_cents: int | None = None


class ValidateOrderResponse(BaseModel):
    valid: bool
    errors: list[str]


class OrderItemOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int | None = None
    package_id: int | None = None
    item_name: str
    quantity: int
    unit_price_cents: int
    discount_cents: int
    subtotal_cents: int
    total_cents: int
    is_complimentary: bool
    notes: str | None = None


class OrderOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    status: OrderStatus
    session_id: int | None = None
    table_id: int | None = None
    cashier_id: int | None = None
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    payment_method: str | None = None
    amount_tendered_cents: int | None = None
    change_cents: int | None = None
    completed_at: datetime | None = None
    voided_by: int | None = None
    voided_reason: str | None = None
    stock_deducted: bool
    items: list[OrderItemOutput] = Field(default_factory=list)


class OrderOperationResponse(BaseModel):
    """Committed order plus the outcome of each side effect."""

    order: OrderOutput
    side_effects: list[SideEffectOutput] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class OrderSummaryOutput(BaseModel):
    order_id: int
    order_number: str
    status: OrderStatus
    item_count: int
    unit_count: int
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    session_id: int | None = None


class CompleteOrderRequest(BaseModel):
    payment_method: PaymentMethod | None = None
    amount_tendered_cents: int | None = Field(default=None, ge=0)


class VoidOrderRequest(BaseModel):
    manager_id: int
    reason: str = Field(min_length=1, max_length=500)
    return_inventory: bool = True


class ReduceQuantityRequest(BaseModel):
    new_quantity: int
    reason: str | None = Field(default=None, max_length=500)


class ItemModificationResponse(BaseModel):
    order: OrderOutput
    item_id: int
    modification_type: str
    old_quantity: int
    new_quantity: int
    refund_cents: int
    side_effects: list[SideEffectOutput] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# Preparation Ticket Schemas
# =============================================================================


class UpdateTicketStatusRequest(BaseModel):
    status: TicketStatus


class TicketOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    order_item_id: int | None = None
    product_name: str
    quantity: int
    destination: str
    status: TicketStatus
    is_urgent: bool
    special_instructions: str | None = None


# =============================================================================
# Tab (Order Session) Schemas
# =============================================================================


class OpenTabRequest(BaseModel):
    table_id: int | None = None
    customer_id: int | None = None
    notes: str | None = Field(default=None, max_length=1000)


class SessionOutput(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    session_number: str
    status: SessionStatus
    table_id: int | None = None
    customer_id: int | None = None
    opened_at: datetime
    closed_at: datetime | None = None
    opened_by: int | None = None
    closed_by: int | None = None
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    payment_method: str | None = None
    amount_tendered_cents: int | None = None
    change_cents: int | None = None


class OpenTabResponse(BaseModel):
    session: SessionOutput
    is_new: bool


class CloseTabRequest(BaseModel):
    """
    Final payment for a tab. A new discount is either type + value
    (percent or cents) or a flat discount_amount_cents.
    """

    payment_method: PaymentMethod
    amount_tendered_cents: int = Field(ge=0)
    discount_type: DiscountType | None = None
    discount_value: int | None = Field(default=None, ge=0)
    discount_amount_cents: int | None = Field(default=None, ge=0)
    discount_reason: str | None = Field(default=None, max_length=500)
    notes: str | None = Field(default=None, max_length=1000)


class CloseTabResponse(BaseModel):
    session: SessionOutput
    receipt: dict[str, Any]
    side_effects: list[SideEffectOutput] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class AddOrderToSessionRequest(BaseModel):
    order_id: int


class ChangeTableRequest(BaseModel):
    table_id: int


class SessionStatsOutput(BaseModel):
    active_sessions: int
    total_revenue_cents: int
    average_ticket_cents: int
