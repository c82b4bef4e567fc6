"""
Order Models: Order, OrderItem.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK

if TYPE_CHECKING:
    from .catalog import Package, Product
    from .kitchen import PreparationTicket
    from .table import OrderSession


class Order(AuditMixin, Base):
    """
    A customer order.

    Money invariant after every committed mutation:
        total_cents == subtotal_cents - discount_cents + tax_cents

    Orders are never physically deleted; VOIDED is a terminal tombstone.
    stock_deducted records whether inventory has left the ledger for this
    order, so deductions and returns each happen at most once.
    """

    # "order" is a reserved SQL keyword
    __tablename__ = "pos_order"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_number: Mapped[str] = mapped_column(Text, nullable=False, unique=True)  # ORD-YYYYMMDD-NNNN
    status: Mapped[str] = mapped_column(Text, default="DRAFT", index=True)
    session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("order_session.id"), index=True
    )
    table_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("restaurant_table.id"), index=True
    )
    customer_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("customer.id"), index=True
    )
    cashier_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), index=True
    )

    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tax_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Payment (set on standalone completion, never by a tab close)
    payment_method: Mapped[Optional[str]] = mapped_column(Text)
    amount_tendered_cents: Mapped[Optional[int]] = mapped_column(Integer)
    change_cents: Mapped[Optional[int]] = mapped_column(Integer)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Void metadata
    voided_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))
    voided_reason: Mapped[Optional[str]] = mapped_column(Text)
    voided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    stock_deducted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_pos_order_session_status", "session_id", "status"),
        CheckConstraint("subtotal_cents >= 0", name="chk_order_subtotal_non_negative"),
        CheckConstraint("discount_cents >= 0", name="chk_order_discount_non_negative"),
        CheckConstraint("tax_cents >= 0", name="chk_order_tax_non_negative"),
    )

    session: Mapped[Optional["OrderSession"]] = relationship(back_populates="orders")
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.id"
    )
    tickets: Mapped[list["PreparationTicket"]] = relationship(back_populates="order")

    def __repr__(self) -> str:
        return f"<Order(id={self.id}, number='{self.order_number}', status='{self.status}', session_id={self.session_id})>"


class OrderItem(Base):
    """
    A line on an order: either a product or a package, never both.
    Stores the unit price at the time of ordering.

    Invariant: total_cents == quantity * unit_price_cents - discount_cents
    """

    __tablename__ = "order_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("pos_order.id"), nullable=False, index=True
    )
    product_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("product.id"), index=True
    )
    package_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("package.id"), index=True
    )
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_complimentary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_order_item_qty_positive"),
        CheckConstraint("unit_price_cents >= 0", name="chk_order_item_price_non_negative"),
        CheckConstraint(
            "(product_id IS NULL) <> (package_id IS NULL)",
            name="chk_order_item_product_xor_package",
        ),
    )

    order: Mapped["Order"] = relationship(back_populates="items")
    product: Mapped[Optional["Product"]] = relationship()
    package: Mapped[Optional["Package"]] = relationship()

    def __repr__(self) -> str:
        return f"<OrderItem(id={self.id}, order_id={self.order_id}, name='{self.item_name}', qty={self.quantity})>"
