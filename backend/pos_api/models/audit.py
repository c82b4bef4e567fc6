"""
Audit Models: AuditLog, OrderModification, DiscountRecord.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, BigIntPK


class AuditLog(AuditMixin, Base):
    """
    Records significant changes to entities for audit trail.
    Stores who did what, when, and the before/after state.
    """

    __tablename__ = "audit_log"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    # Who made the change
    user_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("app_user.id"), index=True
    )

    # What was changed
    entity_type: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    entity_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action: Mapped[str] = mapped_column(Text, nullable=False)  # VOID, ...

    # Change details (JSON)
    old_values: Mapped[Optional[str]] = mapped_column(Text)
    new_values: Mapped[Optional[str]] = mapped_column(Text)
    reason: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_audit_log_entity", "entity_type", "entity_id"),
    )


class OrderModification(AuditMixin, Base):
    """
    Audit row for a post-confirmation quantity reduction or item removal.
    Snapshots the kitchen state the modification was made against.
    """

    __tablename__ = "order_modification"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("pos_order.id"), nullable=False, index=True
    )
    # No FK: the item may have been deleted by the modification itself
    order_item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    modification_type: Mapped[str] = mapped_column(Text, nullable=False)  # quantity_reduced, item_removed
    old_value: Mapped[int] = mapped_column(Integer, nullable=False)
    new_value: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_adjusted_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    modified_by: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))
    reason: Mapped[Optional[str]] = mapped_column(Text)
    kitchen_status: Mapped[Optional[str]] = mapped_column(Text)  # JSON ticket snapshot


class DiscountRecord(AuditMixin, Base):
    """
    Write-only audit of a discount applied at checkout.
    notes reconstructs the context (tab number, customer, table).
    """

    __tablename__ = "discount_record"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("pos_order.id"), index=True
    )
    session_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("order_session.id"), index=True
    )
    discount_type: Mapped[str] = mapped_column(Text, nullable=False)  # percentage, fixed_amount
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)  # percent or cents
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    cashier_id: Mapped[Optional[int]] = mapped_column(BigInteger, ForeignKey("app_user.id"))
    notes: Mapped[Optional[str]] = mapped_column(Text)
