"""
Tab Domain Service.

Groups orders under an OrderSession (a tab) and settles them at once.

Write ordering matters here. The store recomputes an OPEN session's totals
every time one of its orders is written (see models/session_totals.py),
so close_tab completes the member orders, closes the session, and only
then writes the checkout discount onto the now-frozen session row.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Sequence

from sqlalchemy.orm import Session

from shared.config.constants import (
    DiscountType,
    ErrorMessages,
    OrderStatus,
    SessionStatus,
    TableStatus,
    validate_session_transition,
)
from shared.config.logging import tabs_logger as logger
from shared.infrastructure.db import safe_commit
from shared.utils.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    PaymentAmountError,
    SessionNotFoundError,
    TableNotFoundError,
    ValidationError,
)
from pos_api.models import DiscountRecord, Order, OrderSession, RestaurantTable
from pos_api.repositories import OrderRepository, SessionRepository
from pos_api.services.adapters.preparation_routing import PreparationRouter
from pos_api.services.adapters.stock_ledger import StockLedger
from pos_api.services.audit import AuditLogService
from pos_api.services.clock import Clock, ensure_utc, utcnow
from pos_api.services.domain.order_calculation import calculate_discount
from pos_api.services.domain.order_service import STOCK_DEDUCTION, OrderService
from pos_api.services.results import OperationResult

DISCOUNT_RECORD = "discount_record"
TABLE_RELEASE = "table_release"


@dataclass
class TabClosure:
    """Closed session plus the receipt handed to the customer."""

    session: OrderSession
    receipt: dict[str, Any]


@dataclass(frozen=True)
class CloseAmounts:
    subtotal_cents: int
    existing_discount_cents: int
    additional_discount_cents: int
    tax_cents: int
    final_discount_cents: int
    final_total_cents: int
    discount_type: str | None = None
    discount_value: int | None = None


def compute_close_amounts(
    subtotal_cents: int,
    existing_discount_cents: int,
    tax_cents: int,
    discount_type: str | None = None,
    discount_value: int | None = None,
    discount_amount_cents: int | None = None,
) -> CloseAmounts:
    """
    Final discount and total for a tab close.

    The new discount is computed against what is still owed after the
    discounts already on the tab, and never exceeds it.
    """
    net = max(0, subtotal_cents - existing_discount_cents)
    additional = 0
    if discount_type and discount_value:
        try:
            additional = calculate_discount(net, discount_type, discount_value)
        except ValueError as exc:
            raise ValidationError(str(exc), discount_type=discount_type, discount_value=discount_value)
    elif discount_amount_cents:
        if discount_amount_cents < 0:
            raise ValidationError("Discount amount cannot be negative", discount_amount_cents=discount_amount_cents)
        additional = min(discount_amount_cents, net)
        discount_type, discount_value = DiscountType.FIXED_AMOUNT, discount_amount_cents

    final_discount = existing_discount_cents + additional
    return CloseAmounts(
        subtotal_cents=subtotal_cents,
        existing_discount_cents=existing_discount_cents,
        additional_discount_cents=additional,
        tax_cents=tax_cents,
        final_discount_cents=final_discount,
        final_total_cents=max(0, subtotal_cents - final_discount + tax_cents),
        discount_type=discount_type if additional else None,
        discount_value=discount_value if additional else None,
    )


class TabService:
    """Domain service for tabs: open, preview, close, abandon."""

    def __init__(
        self,
        db: Session,
        stock_ledger: StockLedger | None = None,
        router: PreparationRouter | None = None,
        audit: AuditLogService | None = None,
        clock: Clock = utcnow,
    ):
        self._db = db
        self._sessions = SessionRepository(db)
        self._orders = OrderRepository(db)
        self._audit = audit or AuditLogService(db)
        self._clock = clock
        self._order_service = OrderService(db, stock_ledger=stock_ledger, router=router)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_session(self, session_id: int) -> OrderSession:
        session = self._sessions.find_by_id(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def get_active_session_for_table(self, table_id: int) -> OrderSession | None:
        return self._sessions.find_open_for_table(table_id)

    def get_all_active_tabs(self) -> Sequence[OrderSession]:
        return self._sessions.find_open()

    def get_session_stats(self) -> dict[str, int]:
        count, total = self._sessions.open_totals()
        average = 0
        if count:
            average = int((Decimal(total) / Decimal(count)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return {
            "active_sessions": count,
            "total_revenue_cents": total,
            "average_ticket_cents": average,
        }

    def _get_table(self, table_id: int) -> RestaurantTable:
        table = self._db.get(RestaurantTable, table_id)
        if table is None:
            raise TableNotFoundError(table_id)
        return table

    def _require_open(self, session: OrderSession) -> None:
        if session.status != SessionStatus.OPEN:
            raise InvalidStateError(
                "Order session", session.status, [SessionStatus.OPEN], session_id=session.id
            )

    def _transition(self, session: OrderSession, new_status: str) -> None:
        if not validate_session_transition(session.status, new_status):
            raise InvalidTransitionError("order session", session.status, new_status, session_id=session.id)
        session.status = new_status

    # ------------------------------------------------------------------
    # Open
    # ------------------------------------------------------------------

    def open_tab(
        self,
        table_id: int | None = None,
        customer_id: int | None = None,
        opened_by: int | None = None,
        notes: str | None = None,
    ) -> tuple[OrderSession, bool]:
        """
        Open a tab, or return the one already open on the table.

        Returns (session, is_new) tuple. A retried request never creates a
        second OPEN session for the same table.
        """
        table = None
        if table_id is not None:
            table = self._get_table(table_id)
            existing = self._sessions.find_open_for_table(table_id)
            if existing is not None:
                logger.info(
                    "Tab already open for table, returning existing session",
                    table_id=table_id,
                    session_id=existing.id,
                )
                return existing, False
            if table.status == TableStatus.OUT_OF_SERVICE:
                raise ValidationError("Table is out of service", table_id=table_id)

        now = self._clock()
        session = OrderSession(
            session_number=self._sessions.next_session_number(now.date()),
            status=SessionStatus.OPEN,
            table_id=table_id,
            customer_id=customer_id,
            opened_at=now,
            opened_by=opened_by,
            notes=notes,
            created_by_id=opened_by,
        )
        self._db.add(session)
        self._db.flush()

        if table is not None:
            table.status = TableStatus.OCCUPIED
            table.current_session_id = session.id

        self._order_service.commit_primary("tab open", table_id=table_id)
        self._db.refresh(session)

        logger.info(
            "Tab opened",
            session_id=session.id,
            session_number=session.session_number,
            table_id=table_id,
        )
        return session, True

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def add_order_to_session(self, session_id: int, order_id: int, actor_id: int | None = None) -> Order:
        session = self.get_session(session_id)
        if session.status != SessionStatus.OPEN:
            raise InvalidStateError(
                "Order session", session.status, [SessionStatus.OPEN], session_id=session_id
            )
        order = self._order_service.get_order(order_id)
        order.session_id = session.id
        if order.table_id is None:
            order.table_id = session.table_id
        order.set_updated_by(actor_id)
        self._order_service.commit_primary("add order to tab", session_id=session_id, order_id=order_id)
        logger.info("Order added to tab", session_id=session_id, order_id=order_id)
        return order

    def change_table(self, session_id: int, new_table_id: int, actor_id: int | None = None) -> OrderSession:
        """Move an open tab, and its unsettled orders, to another table."""
        session = self.get_session(session_id)
        self._require_open(session)
        new_table = self._get_table(new_table_id)
        if session.table_id == new_table.id:
            return session

        occupant = self._sessions.find_open_for_table(new_table.id)
        if occupant is not None:
            raise ValidationError(
                "Table already has an open tab",
                table_id=new_table.id,
                occupied_by_session_id=occupant.id,
            )
        if new_table.status == TableStatus.OUT_OF_SERVICE:
            raise ValidationError("Table is out of service", table_id=new_table.id)

        old_table_id = session.table_id
        if old_table_id is not None:
            self._release(self._get_table(old_table_id))

        new_table.status = TableStatus.OCCUPIED
        new_table.current_session_id = session.id
        session.table_id = new_table.id
        session.set_updated_by(actor_id)
        for order in self._orders.find_by_session(session.id):
            if order.status not in OrderStatus.TERMINAL:
                order.table_id = new_table.id

        self._order_service.commit_primary("tab table change", session_id=session_id)
        logger.info(
            "Tab moved to another table",
            session_id=session_id,
            from_table_id=old_table_id,
            to_table_id=new_table.id,
        )
        return session

    # ------------------------------------------------------------------
    # Bill preview
    # ------------------------------------------------------------------

    def get_bill_preview(self, session_id: int) -> dict[str, Any]:
        """
        Live bill for an open tab, or a reprint for a closed one. Read-only.
        """
        session = self.get_session(session_id)
        if session.status not in SessionStatus.BILLABLE:
            raise InvalidStateError(
                "Order session", session.status, SessionStatus.BILLABLE, session_id=session_id
            )

        orders = self._orders.find_by_session(session.id)
        end = ensure_utc(session.closed_at) if session.closed_at else self._clock()
        elapsed = end - ensure_utc(session.opened_at)
        duration_minutes = max(0, int(elapsed.total_seconds() // 60))

        item_status = {status.lower(): 0 for status in OrderStatus.ALL}
        for order in orders:
            item_status[order.status.lower()] += len(order.items)

        return {
            "session": {
                "id": session.id,
                "session_number": session.session_number,
                "status": session.status,
                "opened_at": session.opened_at,
                "closed_at": session.closed_at,
                "duration_minutes": duration_minutes,
                "table_number": session.table.table_number if session.table else None,
                "customer_name": session.customer.full_name if session.customer else None,
            },
            "orders": [self._order_projection(order) for order in orders],
            "totals": {
                "subtotal_cents": session.subtotal_cents,
                "discount_cents": session.discount_cents,
                "tax_cents": session.tax_cents,
                "total_cents": session.total_cents,
            },
            "item_status": item_status,
        }

    @staticmethod
    def _order_projection(order: Order) -> dict[str, Any]:
        return {
            "id": order.id,
            "order_number": order.order_number,
            "status": order.status,
            "created_at": order.created_at,
            "items": [
                {
                    "id": item.id,
                    "item_name": item.item_name,
                    "quantity": item.quantity,
                    "unit_price_cents": item.unit_price_cents,
                    "discount_cents": item.discount_cents,
                    "total_cents": item.total_cents,
                    "is_complimentary": item.is_complimentary,
                }
                for item in order.items
            ],
            "subtotal_cents": order.subtotal_cents,
            "discount_cents": order.discount_cents,
            "tax_cents": order.tax_cents,
            "total_cents": order.total_cents,
        }

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def close_tab(
        self,
        session_id: int,
        *,
        payment_method: str,
        amount_tendered_cents: int,
        closed_by: int | None,
        discount_type: str | None = None,
        discount_value: int | None = None,
        discount_amount_cents: int | None = None,
        discount_reason: str | None = None,
        notes: str | None = None,
    ) -> OperationResult[TabClosure]:
        """
        Settle a tab.

        Raises:
            SessionNotFoundError: unknown session
            InvalidStateError: session not OPEN
            ValidationError: no closing cashier, bad discount
            PaymentAmountError: amount tendered below the final total
        """
        session = self.get_session(session_id)
        self._require_open(session)

        amounts = compute_close_amounts(
            session.subtotal_cents,
            session.discount_cents,
            session.tax_cents,
            discount_type=discount_type,
            discount_value=discount_value,
            discount_amount_cents=discount_amount_cents,
        )
        if closed_by is None:
            raise ValidationError(ErrorMessages.MISSING_CLOSER, session_id=session_id)
        if amount_tendered_cents is None or amount_tendered_cents < amounts.final_total_cents:
            raise PaymentAmountError(
                amount_tendered_cents or 0,
                ErrorMessages.INSUFFICIENT_PAYMENT,
                session_id=session_id,
                final_total_cents=amounts.final_total_cents,
            )
        change_cents = amount_tendered_cents - amounts.final_total_cents

        result: OperationResult[TabClosure] = OperationResult(TabClosure(session=session, receipt={}))

        orders = self._orders.find_by_session(session.id)
        settled = self._settle_orders(orders, closed_by, payment_method, result)

        self._transition(session, SessionStatus.CLOSED)
        session.closed_at = self._clock()
        session.closed_by = closed_by
        session.payment_method = payment_method
        session.amount_tendered_cents = amount_tendered_cents
        session.change_cents = change_cents
        if notes:
            session.notes = notes
        session.set_updated_by(closed_by)
        self._order_service.commit_primary("tab close", session_id=session_id)

        self.write_discount_after_close(session, amounts)

        if amounts.additional_discount_cents > 0:
            self._record_discount(session, amounts, closed_by, discount_reason, result)

        self._release_table(session, result)

        result.entity.receipt = self._build_receipt(session, orders, amounts, payment_method, amount_tendered_cents, change_cents)
        logger.info(
            "Tab closed",
            session_id=session_id,
            session_number=session.session_number,
            orders_completed=settled,
            final_total_cents=amounts.final_total_cents,
            additional_discount_cents=amounts.additional_discount_cents,
            closed_by=closed_by,
        )
        return result

    def _settle_orders(
        self,
        orders: Sequence[Order],
        closed_by: int,
        payment_method: str,
        result: OperationResult,
    ) -> int:
        """
        Complete every unsettled member order.

        Orders that never had stock deducted (still DRAFT/PENDING at close)
        get it deducted now. Payment amounts stay on the session: copying
        them onto each order would count the same payment once per order.
        """
        unsettled = [order for order in orders if order.status not in OrderStatus.TERMINAL]

        # Deductions commit or roll back on their own, so they all run
        # before any order is marked completed
        for order in unsettled:
            self._order_service.deduct_stock(
                order, closed_by, result, effect_name=f"{STOCK_DEDUCTION}:{order.order_number}"
            )

        settled = 0
        for order in unsettled:
            self._order_service.transition(order, OrderStatus.COMPLETED)
            order.cashier_id = closed_by
            order.payment_method = payment_method
            order.completed_at = self._clock()
            order.set_updated_by(closed_by)
            settled += 1
        return settled

    def write_discount_after_close(self, session: OrderSession, amounts: CloseAmounts) -> OrderSession:
        """
        Persist the final discount and total on a CLOSED session.

        Must run after the session is closed: while it is OPEN any order
        write recomputes its totals from the orders and would erase the
        checkout discount.
        """
        if session.status != SessionStatus.CLOSED:
            raise InvalidStateError(
                "Order session", session.status, [SessionStatus.CLOSED], session_id=session.id
            )
        session.discount_cents = amounts.final_discount_cents
        session.total_cents = amounts.final_total_cents
        self._order_service.commit_primary("tab discount write", session_id=session.id)
        return session

    def _record_discount(
        self,
        session: OrderSession,
        amounts: CloseAmounts,
        cashier_id: int,
        reason: str | None,
        result: OperationResult,
    ) -> None:
        session_id = session.id
        context = [f"Tab {session.session_number}"]
        if session.customer:
            context.append(f"customer {session.customer.full_name}")
        if session.table:
            context.append(f"table {session.table.table_number}")
        try:
            self._audit.record_discount(
                DiscountRecord(
                    session_id=session_id,
                    discount_type=amounts.discount_type,
                    discount_value=amounts.discount_value,
                    discount_cents=amounts.additional_discount_cents,
                    reason=reason,
                    cashier_id=cashier_id,
                    notes=", ".join(context),
                    created_by_id=cashier_id,
                )
            )
            safe_commit(self._db)
            result.applied(DISCOUNT_RECORD)
        except Exception as exc:
            self._db.rollback()
            logger.error(
                "Failed to write discount record for closed tab",
                session_id=session_id,
                discount_cents=amounts.additional_discount_cents,
                error=str(exc),
            )
            result.failed(DISCOUNT_RECORD, str(exc))

    def _release(self, table: RestaurantTable) -> None:
        table.current_session_id = None
        if table.status == TableStatus.OCCUPIED:
            table.status = TableStatus.AVAILABLE

    def _release_table(self, session: OrderSession, result: OperationResult) -> None:
        if session.table_id is None:
            result.skipped(TABLE_RELEASE, "tab has no table")
            return
        table_id = session.table_id
        try:
            self._release(self._get_table(table_id))
            safe_commit(self._db)
            result.applied(TABLE_RELEASE)
        except Exception as exc:
            self._db.rollback()
            logger.error("Failed to release table after tab close", table_id=table_id, error=str(exc))
            result.failed(TABLE_RELEASE, str(exc))

    def _build_receipt(
        self,
        session: OrderSession,
        orders: Sequence[Order],
        amounts: CloseAmounts,
        payment_method: str,
        amount_tendered_cents: int,
        change_cents: int,
    ) -> dict[str, Any]:
        return {
            "session_number": session.session_number,
            "orders": [
                {
                    "order_number": order.order_number,
                    "items": [
                        {
                            "item_name": item.item_name,
                            "quantity": item.quantity,
                            "unit_price_cents": item.unit_price_cents,
                            "total_cents": item.total_cents,
                        }
                        for item in order.items
                    ],
                    "total_cents": order.total_cents,
                }
                for order in orders
            ],
            "totals": {
                "subtotal_cents": amounts.subtotal_cents,
                "discount_cents": amounts.final_discount_cents,
                "tax_cents": amounts.tax_cents,
                "total_cents": amounts.final_total_cents,
            },
            "payment": {
                "method": payment_method,
                "amount_tendered_cents": amount_tendered_cents,
                "change_cents": change_cents,
            },
            "table_number": session.table.table_number if session.table else None,
            "customer_name": session.customer.full_name if session.customer else None,
            "closed_at": session.closed_at,
        }

    # ------------------------------------------------------------------
    # Abandon
    # ------------------------------------------------------------------

    def abandon_session(self, session_id: int, actor_id: int | None = None) -> OrderSession:
        """OPEN -> ABANDONED. Member orders are left untouched."""
        session = self.get_session(session_id)
        self._require_open(session)
        self._transition(session, SessionStatus.ABANDONED)
        session.closed_at = self._clock()
        session.closed_by = actor_id
        session.set_updated_by(actor_id)
        if session.table_id is not None:
            self._release(self._get_table(session.table_id))
        self._order_service.commit_primary("tab abandon", session_id=session_id)
        logger.warning("Tab abandoned", session_id=session_id, session_number=session.session_number)
        return session
