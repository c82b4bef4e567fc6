"""
Order Session Repository - Data access for tabs.
"""

from datetime import date
from typing import Sequence

from sqlalchemy import Select, func, select
from sqlalchemy.orm import joinedload

from shared.config.constants import SessionStatus
from pos_api.models import OrderSession
from .base import BaseRepository


class SessionRepository(BaseRepository[OrderSession]):
    """Repository for OrderSession (tab) entities."""

    @property
    def model(self) -> type[OrderSession]:
        return OrderSession

    def _base_query(self) -> Select:
        return select(OrderSession).options(
            joinedload(OrderSession.table),
            joinedload(OrderSession.customer),
        )

    def find_open_for_table(self, table_id: int) -> OrderSession | None:
        query = (
            self._base_query()
            .where(
                OrderSession.table_id == table_id,
                OrderSession.status == SessionStatus.OPEN,
            )
            .order_by(OrderSession.opened_at.desc())
            .limit(1)
        )
        return self._db.scalar(query)

    def find_open(self) -> Sequence[OrderSession]:
        query = (
            self._base_query()
            .where(OrderSession.status == SessionStatus.OPEN)
            .order_by(OrderSession.opened_at)
        )
        return self._db.execute(query).scalars().unique().all()

    def open_totals(self) -> tuple[int, int]:
        """(number of open tabs, sum of their totals in cents)."""
        count, total = self._db.execute(
            select(func.count(OrderSession.id), func.coalesce(func.sum(OrderSession.total_cents), 0))
            .where(OrderSession.status == SessionStatus.OPEN)
        ).one()
        return count or 0, total or 0

    def next_session_number(self, day: date) -> str:
        """TAB-YYYYMMDD-NNN, sequential per day."""
        prefix = f"TAB-{day:%Y%m%d}-"
        last = self._db.scalar(
            select(func.max(OrderSession.session_number)).where(
                OrderSession.session_number.like(f"{prefix}%")
            )
        )
        sequence = int(last.rsplit("-", 1)[1]) + 1 if last else 1
        return f"{prefix}{sequence:03d}"
