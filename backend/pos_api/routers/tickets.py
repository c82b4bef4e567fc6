"""
Preparation tickets router.
Stations advance their tickets; the order itself stays CONFIRMED.
"""

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from shared.config.constants import STATION_ROLES
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, require_roles
from shared.utils.schemas import TicketOutput, UpdateTicketStatusRequest
from pos_api.services.domain import OrderService


router = APIRouter(prefix="/api/tickets", tags=["tickets"])


@router.patch("/{ticket_id}", response_model=TicketOutput)
def update_ticket_status(
    ticket_id: int,
    body: UpdateTicketStatusRequest,
    db: Session = Depends(get_db),
    ctx: dict[str, Any] = Depends(current_user_context),
) -> TicketOutput:
    require_roles(ctx, list(STATION_ROLES))
    ticket = OrderService(db).update_ticket_status(ticket_id, body.status)
    return TicketOutput.model_validate(ticket)
