"""
Stock Ledger Adapter.

Moves stock in and out of inventory for order items. Package lines are
expanded into their component products; callers never deal with packages.

Every movement writes an InventoryMovement row. The adapter flushes but
never commits: callers run it as a secondary effect inside their own
commit/rollback block, so a failed deduction leaves no partial movements.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from shared.config.constants import MovementType
from shared.config.logging import inventory_logger as logger
from shared.utils.exceptions import DependencyFailureError
from pos_api.models import InventoryMovement, OrderItem, Package, Product
from pos_api.services.throttle import NotificationThrottle, low_stock_throttle


@dataclass(frozen=True)
class StockRequest:
    """A quantity of one order line to move (product or package)."""

    product_id: int | None
    package_id: int | None
    quantity: int
    label: str | None = None

    @classmethod
    def from_item(cls, item: OrderItem, quantity: int | None = None) -> "StockRequest":
        return cls(
            product_id=item.product_id,
            package_id=item.package_id,
            quantity=item.quantity if quantity is None else quantity,
            label=item.item_name,
        )


@dataclass(frozen=True)
class Shortage:
    product_id: int
    product_name: str
    requested: int
    available: int


@dataclass(frozen=True)
class Availability:
    available: bool
    insufficient_items: list[Shortage]


class StockLedger:
    """Inventory collaborator: deduct, return, availability."""

    def __init__(self, db: Session, throttle: NotificationThrottle | None = None):
        self._db = db
        self._throttle = throttle or low_stock_throttle

    # ------------------------------------------------------------------
    # Expansion
    # ------------------------------------------------------------------

    def expand(self, requests: Iterable[StockRequest]) -> "OrderedDict[int, int]":
        """Product id -> units, with package lines expanded to components."""
        units: OrderedDict[int, int] = OrderedDict()
        for request in requests:
            if request.quantity <= 0:
                continue
            if request.package_id is not None:
                package = self._db.get(Package, request.package_id)
                if package is None:
                    raise DependencyFailureError(
                        "stock_ledger", "package expansion", package_id=request.package_id
                    )
                for component in package.items:
                    units[component.product_id] = (
                        units.get(component.product_id, 0) + component.quantity * request.quantity
                    )
            elif request.product_id is not None:
                units[request.product_id] = units.get(request.product_id, 0) + request.quantity
        return units

    def _load_products(self, product_ids: Sequence[int]) -> dict[int, Product]:
        if not product_ids:
            return {}
        rows = self._db.execute(
            select(Product).where(Product.id.in_(product_ids)).with_for_update()
        ).scalars().all()
        products = {product.id: product for product in rows}
        missing = [pid for pid in product_ids if pid not in products]
        if missing:
            raise DependencyFailureError("stock_ledger", "product lookup", product_ids=missing)
        return products

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def check_availability(self, requests: Iterable[StockRequest]) -> Availability:
        """Whether every product can cover the requested units, and which cannot."""
        units = self.expand(requests)
        products = self._load_products(list(units))
        shortages = [
            Shortage(pid, products[pid].name, qty, products[pid].current_stock)
            for pid, qty in units.items()
            if products[pid].current_stock < qty
        ]
        return Availability(available=not shortages, insufficient_items=shortages)

    def deduct(
        self,
        order_id: int,
        requests: Iterable[StockRequest],
        actor_id: int | None = None,
    ) -> list[InventoryMovement]:
        """
        Take stock out of inventory for a sale.

        All-or-nothing: when any product would go negative nothing moves
        and DependencyFailureError is raised.
        """
        units = self.expand(requests)
        products = self._load_products(list(units))

        shortages = [pid for pid, qty in units.items() if products[pid].current_stock < qty]
        if shortages:
            raise DependencyFailureError(
                "stock_ledger",
                "deduction",
                order_id=order_id,
                insufficient_product_ids=shortages,
            )

        movements = [
            self._move(products[pid], -qty, MovementType.SALE, order_id, actor_id)
            for pid, qty in units.items()
        ]
        self._db.flush()

        logger.info(
            "Stock deducted",
            order_id=order_id,
            products=len(movements),
            units=sum(units.values()),
        )
        self._alert_low_stock(products[pid] for pid in units)
        return movements

    def return_stock(
        self,
        order_id: int,
        requests: Iterable[StockRequest],
        actor_id: int | None = None,
        movement_type: str = MovementType.VOID_RETURN,
        notes: str | None = None,
    ) -> list[InventoryMovement]:
        """Put stock back into inventory (void, quantity reduction, removal)."""
        units = self.expand(requests)
        products = self._load_products(list(units))

        movements = [
            self._move(products[pid], qty, movement_type, order_id, actor_id, notes)
            for pid, qty in units.items()
        ]
        self._db.flush()

        for pid in units:
            if products[pid].current_stock > products[pid].reorder_level:
                self._throttle.reset("low_stock", pid)

        logger.info(
            "Stock returned",
            order_id=order_id,
            movement_type=movement_type,
            products=len(movements),
            units=sum(units.values()),
        )
        return movements

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _move(
        self,
        product: Product,
        change: int,
        movement_type: str,
        order_id: int,
        actor_id: int | None,
        notes: str | None = None,
    ) -> InventoryMovement:
        before = product.current_stock
        product.current_stock = before + change
        movement = InventoryMovement(
            product_id=product.id,
            order_id=order_id,
            movement_type=movement_type,
            quantity_change=change,
            quantity_before=before,
            quantity_after=product.current_stock,
            performed_by=actor_id,
            notes=notes,
            created_by_id=actor_id,
        )
        self._db.add(movement)
        return movement

    def _alert_low_stock(self, products: Iterable[Product]) -> None:
        for product in products:
            if product.current_stock > product.reorder_level:
                continue
            if self._throttle.should_notify("low_stock", product.id):
                logger.warning(
                    "Low stock",
                    product_id=product.id,
                    product_name=product.name,
                    current_stock=product.current_stock,
                    reorder_level=product.reorder_level,
                )
