"""
Tests for the store-side session totals aggregation.
"""

from pos_api.models import OrderSession, SessionTotalsTrigger
from pos_api.services.clock import utcnow
from tests.conftest import make_order, reload, session_row


class TestSessionTotalsTrigger:
    """OPEN tab totals always equal the sum of their non-voided orders."""

    def test_insert_updates_totals(self, db_session, open_session, product_a, product_b):
        make_order(db_session, [(product_a, 2, 100)], session=open_session)
        make_order(db_session, [(product_b, 1, 20, {"discount_cents": 5})], session=open_session)

        session = session_row(db_session, open_session.id)
        assert session.subtotal_cents == 220
        assert session.discount_cents == 5
        assert session.total_cents == 215

    def test_voided_orders_are_excluded(self, db_session, open_session, product_a, product_b):
        make_order(db_session, [(product_a, 2, 100)], session=open_session)
        other = make_order(db_session, [(product_b, 1, 20)], session=open_session)

        other = reload(db_session, other)
        other.status = "VOIDED"
        db_session.commit()

        assert session_row(db_session, open_session.id).total_cents == 200

    def test_moving_an_order_updates_both_tabs(self, db_session, open_session, second_table, product_a):
        from pos_api.services.domain import TabService

        target, _ = TabService(db_session).open_tab(table_id=second_table.id)
        order = make_order(db_session, [(product_a, 1, 100)], session=open_session)

        order = reload(db_session, order)
        order.session_id = target.id
        db_session.commit()

        assert session_row(db_session, open_session.id).total_cents == 0
        assert session_row(db_session, target.id).total_cents == 100

    def test_deleting_an_order_updates_totals(self, db_session, open_session, product_a):
        order = make_order(db_session, [(product_a, 1, 100)], session=open_session)
        db_session.delete(reload(db_session, order))
        db_session.commit()

        assert session_row(db_session, open_session.id).total_cents == 0

    def test_closed_sessions_are_frozen(self, db_session, product_a):
        closed = OrderSession(
            session_number="TAB-20240101-001",
            status="CLOSED",
            opened_at=utcnow(),
            closed_at=utcnow(),
            subtotal_cents=999,
            total_cents=999,
        )
        db_session.add(closed)
        db_session.commit()

        make_order(db_session, [(product_a, 1, 100)], session=closed)

        session = session_row(db_session, closed.id)
        assert session.subtotal_cents == 999
        assert session.total_cents == 999

    def test_loaded_session_sees_new_totals(self, db_session, open_session, product_a):
        session = session_row(db_session, open_session.id)
        assert session.total_cents == 0

        make_order(db_session, [(product_a, 1, 100)], session=open_session)

        # Same object, refreshed because the cached totals were expired
        assert session.total_cents == 100

    def test_register_is_idempotent(self, db_session):
        SessionTotalsTrigger.register()
        SessionTotalsTrigger.register()
        assert SessionTotalsTrigger.is_registered()

        # Listeners were attached once, so a single unregister detaches them
        SessionTotalsTrigger.unregister()
        assert not SessionTotalsTrigger.is_registered()

    def test_unregistered_trigger_leaves_totals(self, db_session, open_session, product_a):
        SessionTotalsTrigger.unregister()
        try:
            make_order(db_session, [(product_a, 1, 100)], session=open_session)
            assert session_row(db_session, open_session.id).total_cents == 0
        finally:
            SessionTotalsTrigger.register()

    def test_blind_write_on_expired_order(self, db_session, open_session, product_a):
        order = make_order(db_session, [(product_a, 2, 100)], session=open_session)

        # The commit expired the order; nothing is read before writing
        order.subtotal_cents = 150
        order.total_cents = 150
        db_session.commit()

        assert session_row(db_session, open_session.id).total_cents == 150
