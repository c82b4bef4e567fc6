"""
Void Domain Service.

Reverses a committed order under manager authorization. The void itself is
the primary fact; returning inventory and the audit entry follow as
independent side effects.
"""

from __future__ import annotations

import re

from sqlalchemy.orm import Session

from shared.config.constants import (
    Limits,
    OrderStatus,
    SessionStatus,
    VoidReason,
)
from shared.config.logging import audit_authorization_event, orders_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import ForbiddenError, InvalidStateError, ValidationError
from pos_api.models import Order, OrderSession
from pos_api.services.adapters.stock_ledger import StockLedger, StockRequest
from pos_api.services.audit import AuditLogService
from pos_api.services.clock import utcnow
from pos_api.services.domain.order_service import OrderService
from pos_api.services.identity import IdentityProvider
from pos_api.services.results import OperationResult

INVENTORY_RETURN = "inventory_return"
VOID_AUDIT = "void_audit"

_WHITESPACE = re.compile(r"\s+")


def validate_void_reason(reason: str | None) -> bool:
    """
    A canonical reason code ("Customer request" -> customer_request), or
    any free text of at least Limits.MIN_VOID_REASON_LENGTH characters.
    """
    if not reason:
        return False
    if _WHITESPACE.sub("_", reason.strip().lower()) in VoidReason.ALL:
        return True
    return len(reason.strip()) >= Limits.MIN_VOID_REASON_LENGTH


class VoidService:
    """Manager voids, with inventory return for non-complimentary items."""

    def __init__(
        self,
        db: Session,
        identity: IdentityProvider,
        stock_ledger: StockLedger | None = None,
        audit: AuditLogService | None = None,
    ):
        self._db = db
        self._identity = identity
        self._stock = stock_ledger or StockLedger(db)
        self._audit = audit or AuditLogService(db)
        self._order_service = OrderService(db, stock_ledger=self._stock)

    def void_order(
        self,
        order_id: int,
        manager_id: int,
        reason: str,
        return_inventory: bool = True,
    ) -> OperationResult[Order]:
        """
        Void an order.

        Authorization is checked against the authenticated caller, who is
        also recorded as voided_by. manager_id comes from the request body
        and is kept only as a note in the log and the audit entry.

        Raises:
            OrderNotFoundError: unknown order
            InvalidStateError: order already VOIDED
            ForbiddenError: caller is not a manager or admin
            ValidationError: void reason rejected
        """
        order = self._order_service.get_order(order_id)
        if order.status == OrderStatus.VOIDED:
            raise InvalidStateError(
                "Order", order.status, [s for s in OrderStatus.ALL if s != OrderStatus.VOIDED],
                order_id=order_id,
            )

        user = self._identity.get_current_user()
        allowed = user is not None and self._identity.is_manager_or_above(user)
        audit_authorization_event(
            "VOID_ORDER",
            user.id if user else None,
            user.primary_role if user else None,
            allowed,
            reason=None if allowed else "manager or admin role required",
            order_id=order_id,
            manager_id=manager_id,
        )
        if not allowed:
            raise ForbiddenError("void orders", order_id=order_id, user_id=user.id if user else None)

        if not validate_void_reason(reason):
            raise ValidationError(
                f"Void reason must be a known reason code or at least {Limits.MIN_VOID_REASON_LENGTH} characters",
                order_id=order_id,
            )

        old_status = order.status
        items = [StockRequest.from_item(item) for item in order.items if not item.is_complimentary]

        self._order_service.transition(order, OrderStatus.VOIDED)
        order.voided_by = user.id
        order.voided_reason = reason
        order.voided_at = utcnow()
        order.set_updated_by(user.id)
        self._order_service.commit_primary("order void", order_id=order_id)
        logger.info(
            "Order voided",
            order_id=order_id,
            previous_status=old_status,
            voided_by=user.id,
            requested_manager_id=manager_id,
        )

        if order.session_id is not None:
            tab = self._db.get(OrderSession, order.session_id)
            if tab is not None and tab.status == SessionStatus.CLOSED:
                # Closed tabs are frozen; their totals keep the voided order
                logger.warning(
                    "Voided order belongs to a closed tab; tab totals left unchanged",
                    order_id=order_id,
                    session_id=tab.id,
                )

        result: OperationResult[Order] = OperationResult(order)
        self._return_inventory(order, items, user.id, return_inventory, result)

        try:
            self._audit.log_voided(
                user.id, order_id, reason, requested_manager_id=manager_id, old_status=old_status
            )
            safe_commit(self._db)
            result.applied(VOID_AUDIT)
        except Exception as exc:
            self._db.rollback()
            logger.error("Failed to write void audit entry", order_id=order_id, error=str(exc))
            result.failed(VOID_AUDIT, str(exc))

        return result

    def _return_inventory(
        self,
        order: Order,
        items: list[StockRequest],
        actor_id: int,
        requested: bool,
        result: OperationResult,
    ) -> None:
        if not requested:
            result.skipped(INVENTORY_RETURN, "inventory return suppressed")
            return
        if not order.stock_deducted:
            result.skipped(INVENTORY_RETURN, "stock was never deducted for this order")
            return
        if not items:
            result.skipped(INVENTORY_RETURN, "only complimentary items")
            return

        order_id = order.id
        try:
            self._stock.return_stock(order_id, items, actor_id, notes="Order voided")
            order.stock_deducted = False
            safe_commit(self._db)
            result.applied(INVENTORY_RETURN)
        except Exception as exc:
            self._db.rollback()
            logger.error(
                "Inventory return failed for voided order - manual reconciliation required",
                order_id=order_id,
                error=str(exc),
            )
            result.failed(INVENTORY_RETURN, str(exc))
