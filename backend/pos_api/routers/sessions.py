"""
Order sessions (tabs) router.
Open, preview, close and abandon tabs, and move them between tables.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.config.constants import CASHIER_ROLES, FLOOR_ROLES, MANAGEMENT_ROLES
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, require_roles
from shared.utils.schemas import (
    AddOrderToSessionRequest,
    ChangeTableRequest,
    CloseTabRequest,
    CloseTabResponse,
    OpenTabRequest,
    OpenTabResponse,
    OrderOutput,
    SessionOutput,
    SessionStatsOutput,
)
from pos_api.routers._common import get_user_id, result_extras
from pos_api.services.domain import TabService


router = APIRouter(prefix="/api/order-sessions", tags=["order-sessions"])


@router.post("", response_model=OpenTabResponse)
def open_tab(
    body: OpenTabRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OpenTabResponse:
    """
    Open a tab. Retrying for a table that already has an open tab returns
    that tab with is_new=false.
    """
    require_roles(ctx, list(FLOOR_ROLES))
    session, is_new = TabService(db).open_tab(
        table_id=body.table_id,
        customer_id=body.customer_id,
        opened_by=get_user_id(ctx),
        notes=body.notes,
    )
    return OpenTabResponse(session=SessionOutput.model_validate(session), is_new=is_new)


@router.get("/active", response_model=list[SessionOutput])
def list_active_tabs(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> list[SessionOutput]:
    return [SessionOutput.model_validate(s) for s in TabService(db).get_all_active_tabs()]


@router.get("/stats", response_model=SessionStatsOutput)
def tab_stats(
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SessionStatsOutput:
    require_roles(ctx, list(CASHIER_ROLES))
    return SessionStatsOutput(**TabService(db).get_session_stats())


@router.get("/{session_id}", response_model=SessionOutput)
def get_tab(
    session_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SessionOutput:
    return SessionOutput.model_validate(TabService(db).get_session(session_id))


@router.get("/{session_id}/bill-preview")
def bill_preview(
    session_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> dict[str, Any]:
    """Live bill for an open tab, reprint for a closed one."""
    return TabService(db).get_bill_preview(session_id)


@router.post("/{session_id}/close", response_model=CloseTabResponse)
def close_tab(
    session_id: int,
    body: CloseTabRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> CloseTabResponse:
    """
    Settle a tab. The caller is recorded as the cashier of every order
    completed by the close.
    """
    require_roles(ctx, list(CASHIER_ROLES))
    result = TabService(db).close_tab(
        session_id,
        payment_method=body.payment_method,
        amount_tendered_cents=body.amount_tendered_cents,
        closed_by=get_user_id(ctx),
        discount_type=body.discount_type,
        discount_value=body.discount_value,
        discount_amount_cents=body.discount_amount_cents,
        discount_reason=body.discount_reason,
        notes=body.notes,
    )
    return CloseTabResponse(
        session=SessionOutput.model_validate(result.entity.session),
        receipt=result.entity.receipt,
        **result_extras(result),
    )


@router.post("/{session_id}/abandon", response_model=SessionOutput)
def abandon_tab(
    session_id: int,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SessionOutput:
    require_roles(ctx, list(MANAGEMENT_ROLES))
    return SessionOutput.model_validate(TabService(db).abandon_session(session_id, actor_id=get_user_id(ctx)))


@router.post("/{session_id}/orders", response_model=OrderOutput)
def add_order_to_tab(
    session_id: int,
    body: AddOrderToSessionRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> OrderOutput:
    require_roles(ctx, list(FLOOR_ROLES))
    order = TabService(db).add_order_to_session(session_id, body.order_id, actor_id=get_user_id(ctx))
    return OrderOutput.model_validate(order)


@router.post("/{session_id}/change-table", response_model=SessionOutput)
def change_table(
    session_id: int,
    body: ChangeTableRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> SessionOutput:
    require_roles(ctx, list(FLOOR_ROLES))
    session = TabService(db).change_table(session_id, body.table_id, actor_id=get_user_id(ctx))
    return SessionOutput.model_validate(session)
