"""
Tests for the stock ledger adapter and the low-stock alert throttle.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from pos_api.models import InventoryMovement, Product
from pos_api.services.adapters.stock_ledger import StockLedger, StockRequest
from pos_api.services.throttle import NotificationThrottle
from shared.utils.exceptions import DependencyFailureError


class _FakeClock:
    def __init__(self, start):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


def _stock(db_session, product):
    db_session.expire_all()
    return db_session.get(Product, product.id).current_stock


class TestPackageExpansion:
    """Packages never carry stock themselves."""

    def test_expands_package_into_components(self, db_session, combo_package, product_a, product_b, product_drink):
        units = StockLedger(db_session).expand([StockRequest(None, combo_package.id, 2)])
        assert dict(units) == {product_a.id: 2, product_b.id: 4, product_drink.id: 2}

    def test_merges_direct_and_package_lines(self, db_session, combo_package, product_a):
        units = StockLedger(db_session).expand([
            StockRequest(product_a.id, None, 3),
            StockRequest(None, combo_package.id, 1),
        ])
        assert units[product_a.id] == 4

    def test_unknown_package_is_a_dependency_failure(self, db_session):
        with pytest.raises(DependencyFailureError):
            StockLedger(db_session).expand([StockRequest(None, 999, 1)])


class TestDeduct:
    """Tests for sale deductions."""

    def test_deducts_and_writes_movements(self, db_session, combo_package, product_a, product_b):
        ledger = StockLedger(db_session)
        movements = ledger.deduct(1, [StockRequest(None, combo_package.id, 2)], actor_id=None)
        db_session.commit()

        assert len(movements) == 3
        assert _stock(db_session, product_a) == 98
        assert _stock(db_session, product_b) == 96
        sale = db_session.scalars(
            select(InventoryMovement).where(InventoryMovement.product_id == product_b.id)
        ).one()
        assert sale.movement_type == "sale"
        assert sale.quantity_change == -4
        assert sale.quantity_before == 100
        assert sale.quantity_after == 96

    def test_all_or_nothing(self, db_session, product_a, product_b):
        product_b.current_stock = 1
        db_session.commit()

        with pytest.raises(DependencyFailureError):
            StockLedger(db_session).deduct(1, [
                StockRequest(product_a.id, None, 2),
                StockRequest(product_b.id, None, 2),
            ])
        db_session.rollback()

        assert _stock(db_session, product_a) == 100
        assert _stock(db_session, product_b) == 1
        assert db_session.scalars(select(InventoryMovement)).all() == []

    def test_zero_quantity_lines_are_ignored(self, db_session, product_a):
        movements = StockLedger(db_session).deduct(1, [StockRequest(product_a.id, None, 0)])
        assert movements == []


class TestReturnAndAvailability:
    """Tests for stock returns and availability checks."""

    def test_return_restores_stock(self, db_session, product_a):
        ledger = StockLedger(db_session)
        ledger.deduct(1, [StockRequest(product_a.id, None, 5)])
        ledger.return_stock(1, [StockRequest(product_a.id, None, 2)], movement_type="modification_return")
        db_session.commit()

        assert _stock(db_session, product_a) == 97
        types = [m.movement_type for m in db_session.scalars(select(InventoryMovement).order_by(InventoryMovement.id))]
        assert types == ["sale", "modification_return"]

    def test_availability_lists_shortages(self, db_session, product_a, product_b):
        product_b.current_stock = 3
        db_session.commit()

        result = StockLedger(db_session).check_availability([
            StockRequest(product_a.id, None, 10),
            StockRequest(product_b.id, None, 4),
        ])
        assert result.available is False
        assert len(result.insufficient_items) == 1
        shortage = result.insufficient_items[0]
        assert shortage.product_id == product_b.id
        assert shortage.requested == 4
        assert shortage.available == 3

    def test_availability_ok(self, db_session, product_a):
        result = StockLedger(db_session).check_availability([StockRequest(product_a.id, None, 100)])
        assert result.available is True
        assert result.insufficient_items == []


class TestLowStockThrottle:
    """One low-stock alert per product per cooldown window."""

    def test_should_notify_once_per_window(self):
        clock = _FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
        throttle = NotificationThrottle(cooldown=timedelta(hours=1), clock=clock)

        assert throttle.should_notify("low_stock", 7) is True
        assert throttle.should_notify("low_stock", 7) is False
        assert throttle.should_notify("low_stock", 8) is True

        clock.advance(minutes=59)
        assert throttle.should_notify("low_stock", 7) is False
        clock.advance(minutes=1)
        assert throttle.should_notify("low_stock", 7) is True

    def test_reset_allows_immediate_alert(self):
        throttle = NotificationThrottle(cooldown=timedelta(hours=1))
        assert throttle.should_notify("low_stock", 1) is True
        throttle.reset("low_stock", 1)
        assert throttle.should_notify("low_stock", 1) is True

    def test_key_format(self):
        assert NotificationThrottle.key("low_stock", 42) == "low_stock_42"

    def test_deduction_below_reorder_level_alerts_once(self, db_session, product_a):
        store = {}
        clock = _FakeClock(datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc))
        ledger = StockLedger(db_session, throttle=NotificationThrottle(timedelta(hours=1), clock, store))
        product_a.current_stock = 7
        db_session.commit()

        ledger.deduct(1, [StockRequest(product_a.id, None, 3)])
        assert store == {f"low_stock_{product_a.id}": clock.now}

        clock.advance(minutes=10)
        ledger.deduct(2, [StockRequest(product_a.id, None, 1)])
        assert store[f"low_stock_{product_a.id}"] == clock.now - timedelta(minutes=10)

    def test_replenishment_clears_throttle(self, db_session, product_a):
        store = {}
        ledger = StockLedger(db_session, throttle=NotificationThrottle(timedelta(hours=1), store=store))
        product_a.current_stock = 6
        db_session.commit()

        ledger.deduct(1, [StockRequest(product_a.id, None, 2)])
        assert f"low_stock_{product_a.id}" in store
        ledger.return_stock(1, [StockRequest(product_a.id, None, 2)])
        assert store == {}
