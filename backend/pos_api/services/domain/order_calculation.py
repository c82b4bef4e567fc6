"""
Order money math.

All amounts are integer cents. Percentages round half up to the cent.
These helpers are pure: they never touch the database.

Item invariant:   total = quantity * unit_price - discount
Order invariant:  total = subtotal - discount + tax
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Protocol

from shared.config.constants import DiscountType
from shared.config.settings import settings


class _ItemLike(Protocol):
    quantity: int
    unit_price_cents: int
    discount_cents: int
    subtotal_cents: int
    total_cents: int


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int

    def apply_to(self, target: Any) -> None:
        target.subtotal_cents = self.subtotal_cents
        target.discount_cents = self.discount_cents
        target.tax_cents = self.tax_cents
        target.total_cents = self.total_cents


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def item_subtotal(quantity: int, unit_price_cents: int) -> int:
    return quantity * unit_price_cents


def item_total(quantity: int, unit_price_cents: int, discount_cents: int = 0) -> int:
    return max(0, item_subtotal(quantity, unit_price_cents) - (discount_cents or 0))


def apply_item_totals(item: _ItemLike) -> None:
    """Recompute an item's stored subtotal/total from its quantity and price."""
    item.subtotal_cents = item_subtotal(item.quantity, item.unit_price_cents)
    item.total_cents = item_total(item.quantity, item.unit_price_cents, item.discount_cents)


def calculate_tax(taxable_cents: int, rate_bps: int | None = None) -> int:
    """Tax on (subtotal - discount). rate_bps defaults to settings.tax_rate_bps."""
    if rate_bps is None:
        rate_bps = settings.tax_rate_bps
    if rate_bps <= 0 or taxable_cents <= 0:
        return 0
    return _round_cents(Decimal(taxable_cents) * Decimal(rate_bps) / Decimal(10000))


def order_totals(items: Iterable[_ItemLike], rate_bps: int | None = None) -> OrderTotals:
    """
    Totals from the live item rows. Uses each item's stored subtotal,
    discount and total, so callers must apply_item_totals() first when an
    item changed.
    """
    items = list(items)
    subtotal = sum(item.subtotal_cents or 0 for item in items)
    discount = sum(item.discount_cents or 0 for item in items)
    tax = calculate_tax(subtotal - discount, rate_bps)
    return OrderTotals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax,
        total_cents=subtotal - discount + tax,
    )


def calculate_discount(net_cents: int, discount_type: str, discount_value: int) -> int:
    """
    Discount amount against a net amount, clamped to [0, net].

    percentage: discount_value is a whole percent in [0, 100]
    fixed_amount: discount_value is cents, non-negative
    """
    if net_cents <= 0:
        return 0
    if discount_type == DiscountType.PERCENTAGE:
        if discount_value < 0 or discount_value > 100:
            raise ValueError("Percentage discount must be between 0 and 100")
        amount = _round_cents(Decimal(net_cents) * Decimal(discount_value) / Decimal(100))
    elif discount_type == DiscountType.FIXED_AMOUNT:
        if discount_value < 0:
            raise ValueError("Fixed discount cannot be negative")
        amount = discount_value
    else:
        raise ValueError(f"Unknown discount type: {discount_type}")
    return min(amount, net_cents)


def calculate_change(amount_tendered_cents: int, total_cents: int) -> int:
    return max(0, amount_tendered_cents - total_cents)


def validate_order_payload(payload: Any) -> list[str]:
    """
    Collect every violation in an order payload. Never raises.

    The payload is any object with ``items`` (each carrying product_id,
    package_id, quantity, unit_price_cents) and optional ``total_cents``
    and ``amount_tendered_cents``.
    """
    errors: list[str] = []
    items = getattr(payload, "items", None) or []

    if not items:
        errors.append("Order must contain at least one item")

    for index, item in enumerate(items, start=1):
        product_id = getattr(item, "product_id", None)
        package_id = getattr(item, "package_id", None)
        if product_id is None and package_id is None:
            errors.append(f"Item {index}: must reference a product or a package")
        elif product_id is not None and package_id is not None:
            errors.append(f"Item {index}: cannot reference both a product and a package")

        quantity = getattr(item, "quantity", None)
        if quantity is None or quantity <= 0:
            errors.append(f"Item {index}: quantity must be greater than zero")

        unit_price = getattr(item, "unit_price_cents", None)
        if unit_price is None or unit_price < 0:
            errors.append(f"Item {index}: unit price cannot be negative")

    total = getattr(payload, "total_cents", None)
    if total is not None and total < 0:
        errors.append("Order total cannot be negative")

    tendered = getattr(payload, "amount_tendered_cents", None)
    if tendered is not None and total is not None and tendered < total:
        errors.append("Amount tendered is less than the order total")

    return errors
