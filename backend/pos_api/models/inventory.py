"""
Inventory Model: InventoryMovement.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, BigIntPK


class InventoryMovement(AuditMixin, Base):
    """
    Append-only ledger row for every stock change.

    quantity_change is negative for deductions, positive for returns.
    """

    __tablename__ = "inventory_movement"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id"), nullable=False, index=True
    )
    order_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("pos_order.id"), index=True
    )
    movement_type: Mapped[str] = mapped_column(Text, nullable=False)  # sale, void_return, modification_return
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_before: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity_after: Mapped[int] = mapped_column(Integer, nullable=False)
    performed_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_inventory_movement_product_type", "product_id", "movement_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryMovement(id={self.id}, product_id={self.product_id}, "
            f"type='{self.movement_type}', change={self.quantity_change})>"
        )
