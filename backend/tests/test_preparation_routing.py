"""
Tests for the preparation routing adapter (station tickets).
"""

import pytest

from pos_api.services.adapters.preparation_routing import PreparationRouter
from shared.utils.exceptions import InvalidTransitionError, TicketNotFoundError
from tests.conftest import make_order


class TestRouteItems:
    """One ticket per item, per component for packages."""

    def test_routes_by_category(self, db_session, product_a, product_drink):
        order = make_order(db_session, [(product_a, 2, 100), (product_drink, 1, 30)])
        router = PreparationRouter(db_session)

        tickets = router.route_items(order.id, order.items)
        db_session.commit()

        by_name = {t.product_name: t for t in tickets}
        assert by_name["Burger"].destination == "KITCHEN"
        assert by_name["Burger"].quantity == 2
        # "Cold Drinks" has no explicit destination
        assert by_name["Lemonade"].destination == "BARTENDER"
        assert all(t.status == "PENDING" for t in tickets)
        assert all(t.sent_at is not None for t in tickets)

    def test_package_components_are_annotated(self, db_session, combo_package):
        order = make_order(db_session, [(combo_package, 2, 150)])
        tickets = PreparationRouter(db_session).route_items(order.id, order.items)

        assert len(tickets) == 3
        assert {t.product_name: t.quantity for t in tickets} == {"Burger": 2, "Fries": 4, "Lemonade": 2}
        assert all(t.special_instructions == "Package: Combo (x2)" for t in tickets)
        assert all(t.order_item_id == order.items[0].id for t in tickets)

    def test_uncategorized_product_goes_to_default(self, db_session, product_a):
        router = PreparationRouter(db_session)
        assert router.resolve_destination(None) == "KITCHEN"
        assert router.get_station_for_category("Craft Beer") == "BARTENDER"
        assert router.get_station_for_category(None) == "KITCHEN"


class TestTicketLifecycle:
    """Tests for cancellation, modified tickets and status updates."""

    def _routed(self, db_session, product):
        order = make_order(db_session, [(product, 3, 50)], status="CONFIRMED")
        router = PreparationRouter(db_session)
        tickets = router.route_items(order.id, order.items)
        db_session.commit()
        return router, order, tickets[0]

    def test_cancel_only_touches_active_tickets(self, db_session, product_a):
        router, order, ticket = self._routed(db_session, product_a)
        for status in ("PREPARING", "READY", "COMPLETED"):
            router.update_ticket_status(ticket.id, status)

        cancelled = router.cancel_tickets([ticket.id], "CANCELLED - Item removed from order")
        assert cancelled == []
        assert ticket.status == "COMPLETED"

    def test_cancel_pending(self, db_session, product_a):
        router, order, ticket = self._routed(db_session, product_a)
        cancelled = router.cancel_tickets([ticket.id], "CANCELLED - Quantity reduced from 3 to 1")

        assert cancelled == [ticket]
        assert ticket.status == "CANCELLED"
        assert ticket.cancelled_at is not None
        assert ticket.special_instructions == "CANCELLED - Quantity reduced from 3 to 1"

    def test_modified_ticket_is_urgent(self, db_session, product_a):
        router, order, ticket = self._routed(db_session, product_a)
        modified = router.create_modified_ticket(ticket, 3, 1)

        assert modified.id != ticket.id
        assert modified.is_urgent is True
        assert modified.quantity == 1
        assert modified.destination == ticket.destination
        assert modified.special_instructions == "MODIFIED: changed from 3 to 1 units"
        assert len(router.tickets_for_item(ticket.order_item_id)) == 2

    def test_status_timestamps(self, db_session, product_a):
        router, order, ticket = self._routed(db_session, product_a)
        router.update_ticket_status(ticket.id, "PREPARING")
        router.update_ticket_status(ticket.id, "READY")

        assert ticket.started_at is not None
        assert ticket.ready_at is not None
        assert [t.id for t in router.tickets_for_order(order.id, ["READY"])] == [ticket.id]

    def test_invalid_transition(self, db_session, product_a):
        router, order, ticket = self._routed(db_session, product_a)
        with pytest.raises(InvalidTransitionError):
            router.update_ticket_status(ticket.id, "COMPLETED")

    def test_unknown_ticket(self, db_session):
        with pytest.raises(TicketNotFoundError):
            PreparationRouter(db_session).update_ticket_status(999, "PREPARING")
