"""
Kitchen Models: PreparationTicket.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .order import Order


class PreparationTicket(AuditMixin, Base):
    """
    One unit of work for a preparation station (kitchen or bar).

    A ticket is created per order item (per component product for packages)
    when the order is confirmed. The link to the order item is weak: the item
    may be removed later while the ticket stays for the audit trail.
    """

    __tablename__ = "preparation_ticket"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("pos_order.id"), nullable=False, index=True
    )
    order_item_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("order_item.id", ondelete="SET NULL"), index=True
    )
    product_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("product.id"))
    product_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    destination: Mapped[str] = mapped_column(
        Text, nullable=False, index=True
    )  # KITCHEN, BARTENDER, BOTH
    status: Mapped[str] = mapped_column(
        Text, default="PENDING", index=True
    )  # PENDING, PREPARING, READY, COMPLETED, CANCELLED
    is_urgent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    special_instructions: Mapped[Optional[str]] = mapped_column(Text)

    sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    ready_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_preparation_ticket_destination_status", "destination", "status"),
    )

    order: Mapped["Order"] = relationship(back_populates="tickets")

    def __repr__(self) -> str:
        return (
            f"<PreparationTicket(id={self.id}, order_id={self.order_id}, "
            f"item_id={self.order_item_id}, status='{self.status}')>"
        )
