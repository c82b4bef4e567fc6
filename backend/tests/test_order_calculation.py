"""
Tests for the order money math.

Pure functions: no database involved.
"""

from types import SimpleNamespace

import pytest
from hypothesis import given, settings, strategies as st

from pos_api.services.domain.order_calculation import (
    apply_item_totals,
    calculate_change,
    calculate_discount,
    calculate_tax,
    item_total,
    order_totals,
    validate_order_payload,
)


def _item(quantity, unit_price_cents, discount_cents=0):
    item = SimpleNamespace(
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        discount_cents=discount_cents,
        subtotal_cents=0,
        total_cents=0,
    )
    apply_item_totals(item)
    return item


class TestItemTotals:
    """Tests for per-item subtotal and total."""

    def test_total_is_quantity_times_price_minus_discount(self):
        item = _item(3, 50, discount_cents=10)
        assert item.subtotal_cents == 150
        assert item.total_cents == 140

    def test_total_never_negative(self):
        assert item_total(1, 100, 250) == 0

    def test_quantity_change_is_reflected(self):
        item = _item(3, 50)
        item.quantity = 1
        apply_item_totals(item)
        assert item.total_cents == 50


class TestOrderTotals:
    """Tests for order aggregation and tax."""

    def test_sums_items(self):
        totals = order_totals([_item(1, 50), _item(1, 20)], rate_bps=0)
        assert totals.subtotal_cents == 70
        assert totals.discount_cents == 0
        assert totals.tax_cents == 0
        assert totals.total_cents == 70

    def test_tax_applies_after_discount(self):
        totals = order_totals([_item(2, 100, discount_cents=5), _item(1, 5)], rate_bps=1000)
        assert totals.subtotal_cents == 205
        assert totals.discount_cents == 5
        assert totals.tax_cents == 20
        assert totals.total_cents == 220

    def test_tax_rounds_half_up(self):
        assert calculate_tax(5, 1000) == 1
        assert calculate_tax(4, 1000) == 0

    def test_apply_to_copies_columns(self):
        target = SimpleNamespace()
        order_totals([_item(2, 100)], rate_bps=0).apply_to(target)
        assert target.total_cents == 200
        assert target.subtotal_cents == 200

    @given(
        lines=st.lists(
            st.tuples(
                st.integers(min_value=1, max_value=50),
                st.integers(min_value=0, max_value=10_000),
                st.integers(min_value=0, max_value=500),
            ),
            min_size=1,
            max_size=10,
        ),
        rate_bps=st.integers(min_value=0, max_value=3000),
    )
    @settings(max_examples=50)
    def test_order_invariant_holds(self, lines, rate_bps):
        """Property: total == subtotal - discount + tax, whatever the items."""
        items = [_item(q, p, min(d, q * p)) for q, p, d in lines]
        totals = order_totals(items, rate_bps=rate_bps)
        assert totals.total_cents == totals.subtotal_cents - totals.discount_cents + totals.tax_cents
        assert all(item.total_cents == item.quantity * item.unit_price_cents - item.discount_cents for item in items)


class TestDiscounts:
    """Tests for checkout discount calculation."""

    def test_percentage(self):
        assert calculate_discount(200, "percentage", 10) == 20

    def test_percentage_rounds_half_up(self):
        assert calculate_discount(205, "percentage", 10) == 21

    def test_fixed_amount_is_clamped_to_net(self):
        assert calculate_discount(200, "fixed_amount", 500) == 200

    def test_nothing_owed_means_no_discount(self):
        assert calculate_discount(0, "percentage", 50) == 0

    @pytest.mark.parametrize("value", [-1, 101])
    def test_percentage_out_of_range(self, value):
        with pytest.raises(ValueError):
            calculate_discount(200, "percentage", value)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            calculate_discount(200, "bogo", 1)

    def test_change(self):
        assert calculate_change(200, 180) == 20
        assert calculate_change(100, 180) == 0


class TestValidateOrderPayload:
    """Validation collects every problem instead of stopping at the first."""

    def test_empty_order(self):
        assert validate_order_payload(SimpleNamespace(items=[])) == [
            "Order must contain at least one item"
        ]

    def test_valid_order(self):
        payload = SimpleNamespace(
            items=[SimpleNamespace(product_id=1, package_id=None, quantity=2, unit_price_cents=100)],
            total_cents=200,
            amount_tendered_cents=200,
        )
        assert validate_order_payload(payload) == []

    def test_reports_all_errors(self):
        payload = SimpleNamespace(
            items=[
                SimpleNamespace(product_id=None, package_id=None, quantity=0, unit_price_cents=-1),
                SimpleNamespace(product_id=1, package_id=2, quantity=1, unit_price_cents=10),
            ],
            total_cents=100,
            amount_tendered_cents=50,
        )
        errors = validate_order_payload(payload)
        assert "Item 1: must reference a product or a package" in errors
        assert "Item 1: quantity must be greater than zero" in errors
        assert "Item 1: unit price cannot be negative" in errors
        assert "Item 2: cannot reference both a product and a package" in errors
        assert "Amount tendered is less than the order total" in errors
        assert len(errors) == 5
