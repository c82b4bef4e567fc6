"""
People Models: User (staff), Customer.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Index, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import AuditMixin, Base, BigIntPK


class User(AuditMixin, Base):
    """
    A staff member (cashier, waiter, kitchen, bartender, manager, admin).
    Authentication happens elsewhere; this row backs names on receipts
    and foreign keys on orders and tabs.
    """

    __tablename__ = "app_user"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    email: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    full_name: Mapped[Optional[str]] = mapped_column(Text)
    role: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("ix_user_role", "role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class Customer(AuditMixin, Base):
    """Known customer attached to orders and tabs (optional)."""

    __tablename__ = "customer"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(Text)

    def __repr__(self) -> str:
        return f"<Customer(id={self.id}, name='{self.full_name}')>"
