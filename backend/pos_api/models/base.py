"""
Declarative base and the audit columns shared by most tables.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Integer, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# BIGSERIAL on PostgreSQL, INTEGER PRIMARY KEY (rowid alias) on SQLite so
# rows created by the services autoincrement in local and test databases.
BigIntPK = BigInteger().with_variant(Integer, "sqlite")


class Base(DeclarativeBase):
    pass


class AuditMixin:
    """Who created and last touched a row, and when."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # No FK: app_user itself carries these columns
    created_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    updated_by_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    def set_updated_by(self, user_id: int | None) -> None:
        self.updated_by_id = user_id
        self.updated_at = datetime.now(timezone.utc)

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={getattr(self, 'id', None)})>"
