"""
Preparation Ticket Repository - Data access for station tickets.
"""

from typing import Sequence

from sqlalchemy import Select, select

from pos_api.models import PreparationTicket
from .base import BaseRepository


class TicketRepository(BaseRepository[PreparationTicket]):
    """Repository for PreparationTicket entities."""

    @property
    def model(self) -> type[PreparationTicket]:
        return PreparationTicket

    def _base_query(self) -> Select:
        return select(PreparationTicket)

    def find_for_item(self, order_item_id: int) -> Sequence[PreparationTicket]:
        query = (
            self._base_query()
            .where(PreparationTicket.order_item_id == order_item_id)
            .order_by(PreparationTicket.id)
        )
        return self._db.execute(query).scalars().all()

    def find_for_order(self, order_id: int, statuses: list[str] | None = None) -> Sequence[PreparationTicket]:
        query = self._base_query().where(PreparationTicket.order_id == order_id)
        if statuses:
            query = query.where(PreparationTicket.status.in_(statuses))
        return self._db.execute(query.order_by(PreparationTicket.id)).scalars().all()
