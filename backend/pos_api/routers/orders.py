"""
Orders router.
Order lifecycle transitions, post-confirmation item edits and voids.
Business logic lives in the domain services; handlers only map HTTP.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from shared.config.constants import CASHIER_ROLES, FLOOR_ROLES
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, require_roles
from shared.utils.schemas import (
    CompleteOrderRequest,
    ItemModificationResponse,
    OrderOperationResponse,
    OrderOutput,
    OrderSummaryOutput,
    ReduceQuantityRequest,
    ValidateOrderRequest,
    ValidateOrderResponse,
    VoidOrderRequest,
)
from pos_api.routers._common import get_identity, get_user_id, result_extras
from pos_api.services.domain import (
    OrderModificationService,
    OrderService,
    VoidService,
)
from pos_api.services.identity import RequestIdentity


router = APIRouter(prefix="/api/orders", tags=["orders"])


def _modification_response(result) -> ItemModificationResponse:
    change = result.entity
    return ItemModificationResponse(
        order=OrderOutput.model_validate(change.order),
        item_id=change.item_id,
        modification_type=change.modification_type,
        old_quantity=change.old_quantity,
        new_quantity=change.new_quantity,
        refund_cents=change.refund_cents,
        **result_extras(result),
    )


@router.post("/validate", response_model=ValidateOrderResponse)
def validate_order(
    body: ValidateOrderRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ValidateOrderResponse:
    """Report every problem in an order payload at once. Never fails on content."""
    errors = OrderService(db).validate(body)
    return ValidateOrderResponse(valid=not errors, errors=errors)


@router.post("/{order_id}/confirm", response_model=OrderOperationResponse)
def confirm_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOperationResponse:
    """
    Confirm an order and send it to the stations.

    The confirmation stands even when stock or routing fail; check
    side_effects and warnings in the response.
    """
    require_roles(ctx, list(FLOOR_ROLES))
    result = OrderService(db).confirm(order_id, actor_id=get_user_id(ctx))
    return OrderOperationResponse(order=OrderOutput.model_validate(result.entity), **result_extras(result))


@router.post("/{order_id}/complete", response_model=OrderOperationResponse)
def complete_order(
    order_id: int,
    body: CompleteOrderRequest | None = None,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOperationResponse:
    require_roles(ctx, list(CASHIER_ROLES))
    body = body or CompleteOrderRequest()
    result = OrderService(db).complete(
        order_id,
        actor_id=get_user_id(ctx),
        payment_method=body.payment_method,
        amount_tendered_cents=body.amount_tendered_cents,
    )
    return OrderOperationResponse(order=OrderOutput.model_validate(result.entity), **result_extras(result))


@router.post("/{order_id}/hold", response_model=OrderOutput)
def hold_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    require_roles(ctx, list(FLOOR_ROLES))
    return OrderOutput.model_validate(OrderService(db).hold(order_id, actor_id=get_user_id(ctx)))


@router.post("/{order_id}/resume", response_model=OrderOutput)
def resume_order(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    require_roles(ctx, list(FLOOR_ROLES))
    return OrderOutput.model_validate(OrderService(db).resume(order_id, actor_id=get_user_id(ctx)))


@router.get("/{order_id}/summary", response_model=OrderSummaryOutput)
def order_summary(
    order_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderSummaryOutput:
    return OrderSummaryOutput(**OrderService(db).get_summary(order_id))


@router.patch("/{order_id}/items/{item_id}/reduce", response_model=ItemModificationResponse)
def reduce_item_quantity(
    order_id: int,
    item_id: int,
    body: ReduceQuantityRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ItemModificationResponse:
    """Lower an item's quantity on a confirmed order. Station warnings come back in warnings."""
    require_roles(ctx, list(FLOOR_ROLES))
    result = OrderModificationService(db).reduce_quantity(
        order_id, item_id, body.new_quantity, actor_id=get_user_id(ctx), reason=body.reason
    )
    return _modification_response(result)


@router.delete("/{order_id}/items/{item_id}", response_model=ItemModificationResponse)
def remove_item(
    order_id: int,
    item_id: int,
    reason: str | None = Query(default=None, max_length=500),
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> ItemModificationResponse:
    require_roles(ctx, list(FLOOR_ROLES))
    result = OrderModificationService(db).remove_item(
        order_id, item_id, actor_id=get_user_id(ctx), reason=reason
    )
    return _modification_response(result)


@router.post("/{order_id}/void", response_model=OrderOperationResponse)
def void_order(
    order_id: int,
    body: VoidOrderRequest,
    db: Session = Depends(get_db),
    identity: RequestIdentity = Depends(get_identity),
) -> OrderOperationResponse:
    """
    Void an order. The caller's own token must carry MANAGER or ADMIN;
    the caller is recorded as voided_by, and manager_id from the body is
    kept only as an audit note.
    """
    result = VoidService(db, identity).void_order(
        order_id, body.manager_id, body.reason, return_inventory=body.return_inventory
    )
    return OrderOperationResponse(order=OrderOutput.model_validate(result.entity), **result_extras(result))
