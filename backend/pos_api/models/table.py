"""
Table and Tab Models: RestaurantTable, OrderSession.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, CheckConstraint, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .order import Order
    from .user import Customer


class RestaurantTable(AuditMixin, Base):
    """
    Physical table in the dining room.
    Holds a pointer to the tab currently open on it.
    """

    # "table" is a reserved SQL keyword
    __tablename__ = "restaurant_table"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    table_number: Mapped[str] = mapped_column(Text, nullable=False)  # "T17", "Bar-2"
    capacity: Mapped[int] = mapped_column(Integer, default=4)
    status: Mapped[str] = mapped_column(
        Text, default="AVAILABLE", index=True
    )  # AVAILABLE, OCCUPIED, OUT_OF_SERVICE
    # Plain column: order_session already references restaurant_table
    current_session_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        Index("ix_table_number", "table_number"),
    )

    sessions: Mapped[list["OrderSession"]] = relationship(back_populates="table")

    def __repr__(self) -> str:
        return f"<RestaurantTable(id={self.id}, number='{self.table_number}', status='{self.status}')>"


class OrderSession(AuditMixin, Base):
    """
    A tab: one or more orders billed together and settled at once.

    While OPEN the money columns mirror the sum of the non-voided member
    orders; they are maintained by the session-totals trigger
    (see session_totals.py), not by application code. Once CLOSED the
    totals are frozen.
    """

    __tablename__ = "order_session"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    session_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)  # TAB-YYYYMMDD-NNN
    status: Mapped[str] = mapped_column(Text, default="OPEN", index=True)  # OPEN, CLOSED, ABANDONED
    table_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), index=True
    )
    customer_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("customer.id"), index=True
    )

    opened_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    opened_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))
    closed_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))

    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    payment_method: Mapped[Optional[str]] = mapped_column(Text)
    amount_tendered_cents: Mapped[Optional[int]] = mapped_column(Integer)
    change_cents: Mapped[Optional[int]] = mapped_column(Integer)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_order_session_table_status", "table_id", "status"),
        CheckConstraint("total_cents >= 0", name="chk_order_session_total_non_negative"),
    )

    table: Mapped[Optional["RestaurantTable"]] = relationship(back_populates="sessions")
    customer: Mapped[Optional["Customer"]] = relationship()
    orders: Mapped[list["Order"]] = relationship(back_populates="session", order_by="Order.id")

    def __repr__(self) -> str:
        return f"<OrderSession(id={self.id}, number='{self.session_number}', status='{self.status}')>"
