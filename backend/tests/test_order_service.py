"""
Tests for OrderService: the order state machine and its side effects.
"""

import pytest
from sqlalchemy import func, select

from pos_api.models import InventoryMovement, Order, PreparationTicket, Product
from pos_api.services.adapters.preparation_routing import PreparationRouter
from pos_api.services.adapters.stock_ledger import StockLedger
from pos_api.services.domain import OrderService
from shared.utils.exceptions import (
    DependencyFailureError,
    InvalidStateError,
    InvalidTransitionError,
    OrderNotFoundError,
)
from tests.conftest import make_order, reload


class FailingRouter(PreparationRouter):
    def route_items(self, order_id, items):
        raise RuntimeError("kitchen printer offline")


class FailingLedger(StockLedger):
    def deduct(self, order_id, requests, actor_id=None):
        raise DependencyFailureError("stock_ledger", "deduction", order_id=order_id)


def _movement_count(db_session, order_id):
    return db_session.scalar(
        select(func.count(InventoryMovement.id)).where(InventoryMovement.order_id == order_id)
    )


class TestConfirm:
    """DRAFT/PENDING -> CONFIRMED with stock and routing side effects."""

    def test_confirm_deducts_and_routes(self, db_session, seed_waiter, product_a, product_b):
        order = make_order(db_session, [(product_a, 2, 100), (product_b, 1, 20)])

        result = OrderService(db_session).confirm(order.id, actor_id=seed_waiter.id)

        assert result.entity.status == "CONFIRMED"
        assert result.all_applied
        assert result.warnings == []
        order = reload(db_session, order)
        assert order.stock_deducted is True
        assert db_session.get(Product, product_a.id).current_stock == 98
        assert len(db_session.scalars(select(PreparationTicket)).all()) == 2

    def test_confirm_from_pending(self, db_session, product_a):
        order = make_order(db_session, [(product_a, 1, 100)], status="PENDING")
        assert OrderService(db_session).confirm(order.id).entity.status == "CONFIRMED"

    def test_routing_failure_keeps_confirmation(self, db_session, product_a):
        order = make_order(db_session, [(product_a, 1, 100)])

        result = OrderService(db_session, router=FailingRouter(db_session)).confirm(order.id)

        assert reload(db_session, order).status == "CONFIRMED"
        assert result.outcome("preparation_routing").status == "failed"
        assert "kitchen printer offline" in result.outcome("preparation_routing").detail
        assert result.warnings == ["Kitchen may not have received items"]
        assert result.outcome("stock_deduction").status == "applied"

    def test_stock_failure_keeps_confirmation_and_still_routes(self, db_session, product_a):
        order = make_order(db_session, [(product_a, 1, 100)])

        result = OrderService(db_session, stock_ledger=FailingLedger(db_session)).confirm(order.id)

        order = reload(db_session, order)
        assert order.status == "CONFIRMED"
        assert order.stock_deducted is False
        assert result.outcome("stock_deduction").status == "failed"
        assert result.outcome("preparation_routing").status == "applied"

    @pytest.mark.parametrize("status", ["CONFIRMED", "ON_HOLD", "COMPLETED", "VOIDED"])
    def test_confirm_requires_draft_or_pending(self, db_session, product_a, status):
        order = make_order(db_session, [(product_a, 1, 100)], status=status)
        with pytest.raises(InvalidStateError):
            OrderService(db_session).confirm(order.id)

    def test_unknown_order(self, db_session):
        with pytest.raises(OrderNotFoundError):
            OrderService(db_session).confirm(12345)


class TestComplete:
    """Completion and the once-only stock deduction."""

    def test_complete_after_confirm_does_not_deduct_twice(self, db_session, seed_cashier, product_a):
        order = make_order(db_session, [(product_a, 2, 100)])
        service = OrderService(db_session)
        service.confirm(order.id)

        result = service.complete(order.id, actor_id=seed_cashier.id)

        assert result.entity.status == "COMPLETED"
        assert result.outcome("stock_deduction").status == "skipped"
        assert _movement_count(db_session, order.id) == 1
        assert db_session.get(Product, product_a.id).current_stock == 98

    def test_complete_draft_deducts(self, db_session, seed_cashier, product_a):
        order = make_order(db_session, [(product_a, 2, 100)])

        result = OrderService(db_session).complete(
            order.id, actor_id=seed_cashier.id, payment_method="CASH", amount_tendered_cents=500
        )

        order = reload(db_session, order)
        assert order.status == "COMPLETED"
        assert order.cashier_id == seed_cashier.id
        assert order.completed_at is not None
        assert order.change_cents == 300
        assert order.stock_deducted is True
        assert result.outcome("stock_deduction").status == "applied"

    def test_complete_survives_stock_failure(self, db_session, seed_cashier, product_a):
        order = make_order(db_session, [(product_a, 1, 100)], status="CONFIRMED")

        result = OrderService(db_session, stock_ledger=FailingLedger(db_session)).complete(
            order.id, actor_id=seed_cashier.id
        )

        assert reload(db_session, order).status == "COMPLETED"
        assert result.outcome("stock_deduction").status == "failed"

    @pytest.mark.parametrize("status", ["COMPLETED", "VOIDED"])
    def test_terminal_orders_cannot_complete(self, db_session, seed_cashier, product_a, status):
        order = make_order(db_session, [(product_a, 1, 100)], status=status)
        with pytest.raises(InvalidStateError):
            OrderService(db_session).complete(order.id, actor_id=seed_cashier.id)


class TestHoldResume:
    def test_hold_and_resume(self, db_session, product_a):
        order = make_order(db_session, [(product_a, 1, 100)], status="PENDING")
        service = OrderService(db_session)

        assert service.hold(order.id).status == "ON_HOLD"
        assert service.resume(order.id).status == "PENDING"

    def test_hold_requires_pending(self, db_session, product_a):
        order = make_order(db_session, [(product_a, 1, 100)])
        with pytest.raises(InvalidStateError):
            OrderService(db_session).hold(order.id)

    def test_resume_requires_on_hold(self, db_session, product_a):
        order = make_order(db_session, [(product_a, 1, 100)], status="PENDING")
        with pytest.raises(InvalidStateError):
            OrderService(db_session).resume(order.id)


class TestSummaryAndTotals:
    def test_summary(self, db_session, product_a, product_b):
        order = make_order(db_session, [(product_a, 3, 50), (product_b, 1, 20)])

        summary = OrderService(db_session).get_summary(order.id)

        assert summary["item_count"] == 2
        assert summary["unit_count"] == 4
        assert summary["subtotal_cents"] == 170
        assert summary["total_cents"] == 170

    def test_recalculate_from_live_items(self, db_session, product_a):
        order = make_order(db_session, [(product_a, 3, 50)])
        order.items[0].quantity = 1

        totals = OrderService(db_session).recalculate_totals(order)

        assert totals.total_cents == 50
        assert order.items[0].total_cents == 50
        assert order.total_cents == 50


class TestTicketProgress:
    """Station tickets advance on their own; the order status does not move."""

    def _confirmed(self, db_session, *products):
        order = make_order(db_session, [(p, 1, 10) for p in products])
        service = OrderService(db_session)
        service.confirm(order.id)
        tickets = db_session.scalars(select(PreparationTicket).order_by(PreparationTicket.id)).all()
        return service, order, tickets

    def test_order_stays_confirmed_through_ticket_lifecycle(self, db_session, product_a, product_drink):
        service, order, (food, drink) = self._confirmed(db_session, product_a, product_drink)

        for status in ("PREPARING", "READY", "COMPLETED"):
            service.update_ticket_status(food.id, status)
            service.update_ticket_status(drink.id, status)
            assert reload(db_session, order).status == "CONFIRMED"

        assert db_session.get(PreparationTicket, food.id).completed_at is not None

    def test_ticket_update_is_committed(self, db_session, product_a):
        service, order, (ticket,) = self._confirmed(db_session, product_a)

        service.update_ticket_status(ticket.id, "PREPARING")
        db_session.rollback()

        assert reload(db_session, ticket).status == "PREPARING"
        assert reload(db_session, order).status == "CONFIRMED"

    def test_completed_order_is_left_alone(self, db_session, seed_cashier, product_a):
        service, order, (ticket,) = self._confirmed(db_session, product_a)
        service.complete(order.id, actor_id=seed_cashier.id)

        service.update_ticket_status(ticket.id, "PREPARING")

        assert reload(db_session, order).status == "COMPLETED"

    def test_invalid_transition_is_rejected(self, db_session, product_a):
        service, order, (ticket,) = self._confirmed(db_session, product_a)

        with pytest.raises(InvalidTransitionError):
            service.update_ticket_status(ticket.id, "COMPLETED")

        assert reload(db_session, ticket).status == "PENDING"
