"""
Order Item Modification Service.

Reduces or removes items of a CONFIRMED order after it went to the
stations. The customer-visible change (quantity, removal) is committed
first; stock return, ticket reconciliation, order totals and the audit
row follow as independent steps, each caught and reported on its own.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Sequence

from sqlalchemy.orm import Session

from shared.config.constants import (
    ErrorMessages,
    ModificationType,
    MovementType,
    OrderStatus,
    TicketStatus,
)
from shared.config.logging import orders_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    InvalidStateError,
    OrderItemNotFoundError,
    ValidationError,
)
from pos_api.models import Order, OrderItem, OrderModification, PreparationTicket
from pos_api.repositories import OrderRepository
from pos_api.services.adapters.preparation_routing import PreparationRouter
from pos_api.services.adapters.stock_ledger import StockLedger, StockRequest
from pos_api.services.audit import AuditLogService
from pos_api.services.domain.order_calculation import apply_item_totals
from pos_api.services.domain.order_service import OrderService
from pos_api.services.results import OperationResult

STOCK_RETURN = "stock_return"
TICKET_RECONCILIATION = "ticket_reconciliation"
ORDER_TOTALS = "order_totals"
MODIFICATION_AUDIT = "modification_audit"

# Station warnings, keyed by ticket status
KITCHEN_WARNINGS: dict[str, str] = {
    TicketStatus.COMPLETED: "Item already completed at station - may have been served",
    TicketStatus.READY: "Item is ready - already prepared at station",
    TicketStatus.PREPARING: "Item is currently being prepared at station",
}


@dataclass
class ItemModification:
    """What changed on the order; the entity of a modification result."""

    order: Order
    item_id: int
    modification_type: str
    old_quantity: int
    new_quantity: int
    refund_cents: int


def kitchen_snapshot(tickets: Sequence[PreparationTicket]) -> list[dict[str, Any]]:
    return [
        {
            "ticket_id": t.id,
            "status": t.status,
            "destination": t.destination,
            "quantity": t.quantity,
        }
        for t in tickets
    ]


def kitchen_warnings(tickets: Sequence[PreparationTicket]) -> list[str]:
    """One warning per distinct station status that means work already started."""
    warnings = []
    for status in (TicketStatus.COMPLETED, TicketStatus.READY, TicketStatus.PREPARING):
        if any(t.status == status for t in tickets):
            warnings.append(KITCHEN_WARNINGS[status])
    return warnings


class OrderModificationService:
    """Post-confirmation quantity reductions and item removals."""

    def __init__(
        self,
        db: Session,
        stock_ledger: StockLedger | None = None,
        router: PreparationRouter | None = None,
        audit: AuditLogService | None = None,
    ):
        self._db = db
        self._orders = OrderRepository(db)
        self._stock = stock_ledger or StockLedger(db)
        self._router = router or PreparationRouter(db)
        self._audit = audit or AuditLogService(db)
        self._order_service = OrderService(db, stock_ledger=self._stock, router=self._router)

    def _load(self, order_id: int, item_id: int) -> tuple[Order, OrderItem]:
        order = self._order_service.get_order(order_id)
        if order.status != OrderStatus.CONFIRMED:
            raise InvalidStateError(
                "Order", order.status, [OrderStatus.CONFIRMED], order_id=order_id
            )
        item = self._orders.find_item(order_id, item_id)
        if item is None:
            raise OrderItemNotFoundError(item_id, order_id=order_id)
        return order, item

    # ------------------------------------------------------------------
    # Reduce
    # ------------------------------------------------------------------

    def reduce_quantity(
        self,
        order_id: int,
        item_id: int,
        new_quantity: int,
        actor_id: int,
        reason: str | None = None,
    ) -> OperationResult[ItemModification]:
        """
        Lower an item's quantity on a confirmed order.

        Raises:
            OrderNotFoundError / OrderItemNotFoundError: unknown ids
            InvalidStateError: order not CONFIRMED
            ValidationError: new quantity not in (0, current)
        """
        order, item = self._load(order_id, item_id)
        old_quantity = item.quantity
        if new_quantity is None or new_quantity <= 0:
            raise ValidationError(
                "New quantity must be greater than zero. Remove the item instead.",
                order_id=order_id,
                item_id=item_id,
            )
        if new_quantity >= old_quantity:
            raise ValidationError(
                f"New quantity must be less than the current quantity ({old_quantity})",
                order_id=order_id,
                item_id=item_id,
                new_quantity=new_quantity,
            )

        tickets = list(self._router.tickets_for_item(item_id))
        units = self._router.component_units(item)
        snapshot = kitchen_snapshot(tickets)
        warnings = kitchen_warnings(tickets)
        old_total = item.total_cents
        delta = old_quantity - new_quantity
        stock_request = StockRequest.from_item(item, quantity=delta)

        item.quantity = new_quantity
        apply_item_totals(item)
        refund_cents = old_total - item.total_cents
        self._order_service.commit_primary("item quantity reduction", order_id=order_id, item_id=item_id)
        logger.info(
            "Item quantity reduced",
            order_id=order_id,
            item_id=item_id,
            old_quantity=old_quantity,
            new_quantity=new_quantity,
            refund_cents=refund_cents,
        )

        result: OperationResult[ItemModification] = OperationResult(
            ItemModification(
                order=order,
                item_id=item_id,
                modification_type=ModificationType.QUANTITY_REDUCED,
                old_quantity=old_quantity,
                new_quantity=new_quantity,
                refund_cents=refund_cents,
            ),
            warnings=warnings,
        )

        self._return_stock(order, [stock_request], actor_id, result, f"Quantity reduced from {old_quantity} to {new_quantity}")
        self._reconcile_reduced_tickets(order_id, tickets, units, old_quantity, new_quantity, result)
        self._recalculate(order, result)
        self._write_audit(
            OrderModification(
                order_id=order_id,
                order_item_id=item_id,
                modification_type=ModificationType.QUANTITY_REDUCED,
                old_value=old_quantity,
                new_value=new_quantity,
                amount_adjusted_cents=refund_cents,
                modified_by=actor_id,
                reason=reason,
                kitchen_status=json.dumps(snapshot),
                created_by_id=actor_id,
            ),
            result,
        )
        return result

    def _reconcile_reduced_tickets(
        self,
        order_id: int,
        tickets: list[PreparationTicket],
        units: dict[int | None, int],
        old_quantity: int,
        new_quantity: int,
        result: OperationResult,
    ) -> None:
        """
        Cancel pending tickets, then send one urgent MODIFIED ticket per
        product and station that already started work. A package item has
        one ticket per component, so each component station gets its own
        notice in component units.
        """
        pending = [t.id for t in tickets if t.status == TicketStatus.PENDING]
        in_flight: dict[tuple[int | None, str], PreparationTicket] = {}
        for ticket in tickets:
            if ticket.status in TicketStatus.IN_FLIGHT:
                in_flight.setdefault((ticket.product_id, ticket.destination), ticket)
        if not pending and not in_flight:
            result.skipped(TICKET_RECONCILIATION, "no active tickets for item")
            return

        try:
            cancelled = self._router.cancel_tickets(
                pending, f"CANCELLED - Quantity reduced from {old_quantity} to {new_quantity}"
            )
            modified = []
            for (product_id, _destination), source in in_flight.items():
                per_item = units.get(product_id, 1)
                modified.append(
                    self._router.create_modified_ticket(
                        source, per_item * old_quantity, per_item * new_quantity
                    )
                )
            safe_commit(self._db)
            detail = f"{len(cancelled)} cancelled"
            if modified:
                detail += f", {len(modified)} modified ticket(s) sent"
            result.applied(TICKET_RECONCILIATION, detail)
        except Exception as exc:
            self._db.rollback()
            logger.error(
                "Ticket reconciliation failed after quantity reduction",
                order_id=order_id,
                error=str(exc),
            )
            result.failed(TICKET_RECONCILIATION, str(exc))

    # ------------------------------------------------------------------
    # Remove
    # ------------------------------------------------------------------

    def remove_item(
        self,
        order_id: int,
        item_id: int,
        actor_id: int,
        reason: str | None = None,
    ) -> OperationResult[ItemModification]:
        """
        Delete an item from a confirmed order. The last item cannot be
        removed; the order has to be voided instead.
        """
        order, item = self._load(order_id, item_id)
        if self._orders.count_items(order_id) <= 1:
            raise ValidationError(ErrorMessages.LAST_ITEM, order_id=order_id, item_id=item_id)

        tickets = list(self._router.tickets_for_item(item_id))
        snapshot = kitchen_snapshot(tickets)
        warnings = kitchen_warnings(tickets)
        old_quantity = item.quantity
        refund_cents = item.total_cents
        stock_request = StockRequest.from_item(item)

        result: OperationResult[ItemModification] = OperationResult(
            ItemModification(
                order=order,
                item_id=item_id,
                modification_type=ModificationType.ITEM_REMOVED,
                old_quantity=old_quantity,
                new_quantity=0,
                refund_cents=refund_cents,
            ),
            warnings=warnings,
        )

        # Tickets go first so no station keeps working on a deleted item
        active = [t.id for t in tickets if t.status in TicketStatus.ACTIVE]
        if active:
            try:
                cancelled = self._router.cancel_tickets(active, "CANCELLED - Item removed from order")
                safe_commit(self._db)
                result.applied(TICKET_RECONCILIATION, f"{len(cancelled)} cancelled")
            except Exception as exc:
                self._db.rollback()
                logger.error(
                    "Ticket cancellation failed before item removal",
                    order_id=order_id,
                    item_id=item_id,
                    error=str(exc),
                )
                result.failed(TICKET_RECONCILIATION, str(exc))
        else:
            result.skipped(TICKET_RECONCILIATION, "no active tickets for item")

        order.items.remove(item)
        self._order_service.commit_primary("item removal", order_id=order_id, item_id=item_id)
        logger.info(
            "Item removed from order",
            order_id=order_id,
            item_id=item_id,
            quantity=old_quantity,
            refund_cents=refund_cents,
        )

        self._return_stock(order, [stock_request], actor_id, result, "Item removed from order")
        self._recalculate(order, result)
        self._write_audit(
            OrderModification(
                order_id=order_id,
                order_item_id=item_id,
                modification_type=ModificationType.ITEM_REMOVED,
                old_value=old_quantity,
                new_value=0,
                amount_adjusted_cents=refund_cents,
                modified_by=actor_id,
                reason=reason,
                kitchen_status=json.dumps(snapshot),
                created_by_id=actor_id,
            ),
            result,
        )
        return result

    # ------------------------------------------------------------------
    # Shared best-effort steps
    # ------------------------------------------------------------------

    def _return_stock(
        self,
        order: Order,
        requests: list[StockRequest],
        actor_id: int,
        result: OperationResult,
        notes: str,
    ) -> None:
        if not order.stock_deducted:
            result.skipped(STOCK_RETURN, "stock was never deducted for this order")
            return

        order_id = order.id
        try:
            self._stock.return_stock(
                order_id,
                requests,
                actor_id,
                movement_type=MovementType.MODIFICATION_RETURN,
                notes=notes,
            )
            safe_commit(self._db)
            result.applied(STOCK_RETURN)
        except Exception as exc:
            self._db.rollback()
            logger.error(
                "Stock return failed - manual inventory reconciliation required",
                order_id=order_id,
                error=str(exc),
            )
            result.failed(STOCK_RETURN, str(exc))

    def _recalculate(self, order: Order, result: OperationResult) -> None:
        order_id = order.id
        try:
            totals = self._order_service.recalculate_totals(order)
            safe_commit(self._db)
            result.applied(ORDER_TOTALS, f"total_cents={totals.total_cents}")
        except Exception as exc:
            self._db.rollback()
            logger.error("Order totals recalculation failed", order_id=order_id, error=str(exc))
            result.failed(ORDER_TOTALS, str(exc))

    def _write_audit(self, record: OrderModification, result: OperationResult) -> None:
        try:
            self._audit.log_modification(record)
            safe_commit(self._db)
            result.applied(MODIFICATION_AUDIT)
        except Exception as exc:
            self._db.rollback()
            logger.error(
                "Failed to write modification audit record",
                order_id=record.order_id,
                error=str(exc),
            )
            result.failed(MODIFICATION_AUDIT, str(exc))
