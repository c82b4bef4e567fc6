"""
Order Domain Service.

The order state machine: confirm, complete, hold and resume, plus station
ticket progress (which changes tickets only, never the order status).

Every operation commits the status change first. Stock deduction and
ticket routing run afterwards as independent side effects; their failures
are logged and reported in the OperationResult, never raised, and never
revert the committed status.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.config.constants import (
    OrderStatus,
    validate_order_transition,
)
from shared.config.logging import orders_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    DependencyFailureError,
    InvalidStateError,
    InvalidTransitionError,
    OrderNotFoundError,
)
from pos_api.models import Order, PreparationTicket
from pos_api.repositories import OrderRepository
from pos_api.services.adapters.preparation_routing import PreparationRouter
from pos_api.services.adapters.stock_ledger import StockLedger, StockRequest
from pos_api.services.clock import utcnow
from pos_api.services.domain.order_calculation import (
    OrderTotals,
    apply_item_totals,
    calculate_change,
    order_totals,
    validate_order_payload,
)
from pos_api.services.results import OperationResult

STOCK_DEDUCTION = "stock_deduction"
PREPARATION_ROUTING = "preparation_routing"


class OrderService:
    """Domain service for order lifecycle transitions."""

    def __init__(
        self,
        db: Session,
        stock_ledger: StockLedger | None = None,
        router: PreparationRouter | None = None,
    ):
        self._db = db
        self._orders = OrderRepository(db)
        self._stock = stock_ledger or StockLedger(db)
        self._router = router or PreparationRouter(db)

    # ------------------------------------------------------------------
    # Helpers shared with the other lifecycle services
    # ------------------------------------------------------------------

    def get_order(self, order_id: int) -> Order:
        order = self._orders.find_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def transition(self, order: Order, new_status: str) -> None:
        """Apply a status change allowed by ORDER_TRANSITIONS or raise."""
        if not validate_order_transition(order.status, new_status):
            raise InvalidTransitionError("order", order.status, new_status, order_id=order.id)
        order.status = new_status

    def commit_primary(self, operation: str, **context: Any) -> None:
        """Commit the primary fact; a store failure aborts the operation."""
        try:
            safe_commit(self._db)
        except SQLAlchemyError as exc:
            raise DependencyFailureError("persistence", operation, error=str(exc), **context) from exc

    def deduct_stock(
        self,
        order: Order,
        actor_id: int | None,
        result: OperationResult,
        effect_name: str = STOCK_DEDUCTION,
    ) -> None:
        """
        Deduct stock for every item of the order, once.

        Runs as a side effect: on failure the session is rolled back (the
        primary fact is already committed), the failure is logged and
        recorded on the result.
        """
        if order.stock_deducted:
            result.skipped(effect_name, "stock already deducted for this order")
            return

        order_id = order.id
        try:
            requests = [StockRequest.from_item(item) for item in order.items]
            self._stock.deduct(order_id, requests, actor_id)
            order.stock_deducted = True
            safe_commit(self._db)
            result.applied(effect_name)
        except Exception as exc:
            self._db.rollback()
            logger.error(
                "Stock deduction failed - manual inventory reconciliation required",
                order_id=order_id,
                error=str(exc),
            )
            result.failed(effect_name, str(exc))

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def confirm(self, order_id: int, actor_id: int | None = None) -> OperationResult[Order]:
        """
        DRAFT/PENDING -> CONFIRMED, then deduct stock and route to stations.

        Raises:
            OrderNotFoundError: unknown order
            InvalidStateError: order not in DRAFT or PENDING
        """
        order = self.get_order(order_id)
        if order.status not in OrderStatus.CONFIRMABLE:
            raise InvalidStateError("Order", order.status, OrderStatus.CONFIRMABLE, order_id=order_id)

        self.transition(order, OrderStatus.CONFIRMED)
        order.set_updated_by(actor_id)
        self.commit_primary("order confirmation", order_id=order_id)
        logger.info("Order confirmed", order_id=order_id, actor_id=actor_id)

        result: OperationResult[Order] = OperationResult(order)
        self.deduct_stock(order, actor_id, result)

        try:
            tickets = self._router.route_items(order.id, order.items)
            safe_commit(self._db)
            result.applied(PREPARATION_ROUTING, f"{len(tickets)} tickets")
        except Exception as exc:
            self._db.rollback()
            logger.error(
                "Preparation routing failed - kitchen may not have received items",
                order_id=order_id,
                error=str(exc),
            )
            result.failed(PREPARATION_ROUTING, str(exc))
            result.warnings.append("Kitchen may not have received items")

        return result

    def complete(
        self,
        order_id: int,
        actor_id: int,
        payment_method: str | None = None,
        amount_tendered_cents: int | None = None,
    ) -> OperationResult[Order]:
        """
        Any open status -> COMPLETED, then deduct stock unless already deducted.

        Deduction failures never revert the completion: payment has already
        been collected when this runs.
        """
        order = self.get_order(order_id)
        if order.status in OrderStatus.TERMINAL:
            raise InvalidStateError("Order", order.status, OrderStatus.UNSETTLED, order_id=order_id)

        self.transition(order, OrderStatus.COMPLETED)
        order.completed_at = utcnow()
        order.cashier_id = actor_id
        if payment_method:
            order.payment_method = payment_method
        if amount_tendered_cents is not None:
            order.amount_tendered_cents = amount_tendered_cents
            order.change_cents = calculate_change(amount_tendered_cents, order.total_cents)
        order.set_updated_by(actor_id)
        self.commit_primary("order completion", order_id=order_id)
        logger.info("Order completed", order_id=order_id, actor_id=actor_id, total_cents=order.total_cents)

        result: OperationResult[Order] = OperationResult(order)
        self.deduct_stock(order, actor_id, result)
        return result

    def hold(self, order_id: int, actor_id: int | None = None) -> Order:
        """PENDING -> ON_HOLD."""
        order = self.get_order(order_id)
        if order.status != OrderStatus.PENDING:
            raise InvalidStateError("Order", order.status, [OrderStatus.PENDING], order_id=order_id)
        self.transition(order, OrderStatus.ON_HOLD)
        order.set_updated_by(actor_id)
        self.commit_primary("order hold", order_id=order_id)
        logger.info("Order put on hold", order_id=order_id)
        return order

    def resume(self, order_id: int, actor_id: int | None = None) -> Order:
        """ON_HOLD -> PENDING."""
        order = self.get_order(order_id)
        if order.status != OrderStatus.ON_HOLD:
            raise InvalidStateError("Order", order.status, [OrderStatus.ON_HOLD], order_id=order_id)
        self.transition(order, OrderStatus.PENDING)
        order.set_updated_by(actor_id)
        self.commit_primary("order resume", order_id=order_id)
        logger.info("Order resumed", order_id=order_id)
        return order

    def validate(self, payload: Any) -> list[str]:
        """Every violation in an order payload; empty when valid."""
        return validate_order_payload(payload)

    # ------------------------------------------------------------------
    # Totals and summaries
    # ------------------------------------------------------------------

    def recalculate_totals(self, order: Order) -> OrderTotals:
        """Recompute item and order totals from the live items (no commit)."""
        for item in order.items:
            apply_item_totals(item)
        totals = order_totals(order.items)
        totals.apply_to(order)
        return totals

    def get_summary(self, order_id: int) -> dict[str, Any]:
        order = self.get_order(order_id)
        return {
            "order_id": order.id,
            "order_number": order.order_number,
            "status": order.status,
            "item_count": len(order.items),
            "unit_count": sum(item.quantity for item in order.items),
            "subtotal_cents": order.subtotal_cents,
            "discount_cents": order.discount_cents,
            "tax_cents": order.tax_cents,
            "total_cents": order.total_cents,
            "session_id": order.session_id,
        }

    # ------------------------------------------------------------------
    # Station progress
    # ------------------------------------------------------------------

    def update_ticket_status(self, ticket_id: int, new_status: str) -> PreparationTicket:
        """
        Advance a station ticket. Only the ticket row changes: the order
        stays CONFIRMED, so its items can still be reduced or removed
        while the stations work.
        """
        ticket = self._router.update_ticket_status(ticket_id, new_status)
        self.commit_primary("ticket status update", ticket_id=ticket_id)
        logger.info("Ticket status updated", ticket_id=ticket_id, status=new_status, order_id=ticket.order_id)
        return ticket
