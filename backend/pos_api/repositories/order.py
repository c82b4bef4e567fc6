"""
Order Repository - Data access for orders and their items.
"""

from datetime import date
from typing import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.orm import selectinload

from pos_api.models import Order, OrderItem
from .base import BaseRepository


class OrderRepository(BaseRepository[Order]):
    """
    Repository for Order entities.

    Always loads items (with product and package) so totals, stock and
    routing work without lazy loads per item.
    """

    @property
    def model(self) -> type[Order]:
        return Order

    def _base_query(self) -> Select:
        return select(Order).options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.items).selectinload(OrderItem.package),
        )

    def find_by_session(self, session_id: int) -> Sequence[Order]:
        query = self._base_query().where(Order.session_id == session_id).order_by(Order.id)
        return self._db.execute(query).scalars().unique().all()

    def find_item(self, order_id: int, item_id: int) -> OrderItem | None:
        return self._db.scalar(
            select(OrderItem).where(
                OrderItem.id == item_id,
                OrderItem.order_id == order_id,
            )
        )

    def count_items(self, order_id: int) -> int:
        return self._db.scalar(
            select(func.count()).select_from(OrderItem).where(OrderItem.order_id == order_id)
        ) or 0

    def next_order_number(self, day: date) -> str:
        """ORD-YYYYMMDD-NNNN, sequential per day."""
        prefix = f"ORD-{day:%Y%m%d}-"
        last = self._db.scalar(
            select(func.max(Order.order_number)).where(Order.order_number.like(f"{prefix}%"))
        )
        sequence = int(last.rsplit("-", 1)[1]) + 1 if last else 1
        return f"{prefix}{sequence:04d}"
