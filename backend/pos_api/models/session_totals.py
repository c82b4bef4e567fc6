"""
Session totals trigger.

The store keeps an open tab's money columns equal to the sum of its
non-voided member orders. Every flush that inserts, updates or deletes an
Order row recomputes the totals of each OPEN session the row belongs (or
belonged) to, on the same connection and inside the same transaction:

    session.flush()
         |
         v
    [after_flush]          --> collect session ids touched by Order rows
         |
         v
    [after_flush_postexec] --> UPDATE order_session SET <sums> WHERE status = 'OPEN'
                               expire the cached totals on loaded OrderSession rows

Consequence for writers: any discount or total written directly onto an
OPEN session is overwritten by the next order write. Closed and abandoned
sessions are never recomputed, so a value written after closing sticks.
"""

from __future__ import annotations

import itertools

from sqlalchemy import event, func, inspect, select, update
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from shared.config.constants import OrderStatus, SessionStatus
from shared.config.logging import get_logger

from .order import Order
from .table import OrderSession

logger = get_logger(__name__)

_PENDING_KEY = "session_totals_pending"


class SessionTotalsTrigger:
    """Recomputes OPEN session aggregates whenever a member order row changes."""

    TOTAL_COLUMNS = ("subtotal_cents", "discount_cents", "tax_cents", "total_cents")

    @staticmethod
    def recompute(connection: Connection, session_id: int) -> None:
        """Overwrite the session's totals with the live sum of its non-voided orders."""
        orders = Order.__table__
        sessions = OrderSession.__table__

        def _sum(column):
            return (
                select(func.coalesce(func.sum(column), 0))
                .where(orders.c.session_id == session_id)
                .where(orders.c.status != OrderStatus.VOIDED)
                .scalar_subquery()
            )

        connection.execute(
            update(sessions)
            .where(sessions.c.id == session_id)
            .where(sessions.c.status == SessionStatus.OPEN)
            .values(
                subtotal_cents=_sum(orders.c.subtotal_cents),
                discount_cents=_sum(orders.c.discount_cents),
                tax_cents=_sum(orders.c.tax_cents),
                total_cents=_sum(orders.c.total_cents),
            )
        )

    @classmethod
    def register(cls) -> None:
        """Attach the listeners to every ORM session. Safe to call twice."""
        if not event.contains(Session, "after_flush", _collect_touched_sessions):
            event.listen(Session, "after_flush", _collect_touched_sessions)
        if not event.contains(Session, "after_flush_postexec", _apply_session_totals):
            event.listen(Session, "after_flush_postexec", _apply_session_totals)
        logger.debug("Session totals trigger registered")

    @classmethod
    def unregister(cls) -> None:
        if event.contains(Session, "after_flush", _collect_touched_sessions):
            event.remove(Session, "after_flush", _collect_touched_sessions)
        if event.contains(Session, "after_flush_postexec", _apply_session_totals):
            event.remove(Session, "after_flush_postexec", _apply_session_totals)

    @classmethod
    def is_registered(cls) -> bool:
        return event.contains(Session, "after_flush", _collect_touched_sessions)


def _collect_touched_sessions(session: Session, flush_context) -> None:
    # Pre-flush state (new/dirty/deleted and attribute history) is still visible here.
    touched: set[int] = session.info.setdefault(_PENDING_KEY, set())
    for obj in itertools.chain(session.new, session.dirty, session.deleted):
        if not isinstance(obj, Order):
            continue
        state = inspect(obj)
        history = state.attrs.session_id.history
        for value in itertools.chain(history.added, history.unchanged, history.deleted):
            if value is not None:
                touched.add(value)
        current = state.dict.get("session_id")
        if current is not None:
            touched.add(current)
        elif "session_id" in state.unloaded and state.identity is not None and obj not in session.deleted:
            # Blind write on an expired row: read the membership back
            orders = Order.__table__
            stored = session.connection().scalar(
                select(orders.c.session_id).where(orders.c.id == state.identity[0])
            )
            if stored is not None:
                touched.add(stored)


def _apply_session_totals(session: Session, flush_context) -> None:
    touched: set[int] = session.info.pop(_PENDING_KEY, set())
    if not touched:
        return

    connection = session.connection()
    for session_id in sorted(touched):
        SessionTotalsTrigger.recompute(connection, session_id)

    for obj in list(session.identity_map.values()):
        if isinstance(obj, OrderSession) and obj.id in touched:
            session.expire(obj, list(SessionTotalsTrigger.TOTAL_COLUMNS))
