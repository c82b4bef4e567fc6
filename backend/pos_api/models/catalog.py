"""
Catalog Models: Category, Product, Package, PackageItem.
"""

from __future__ import annotations

from typing import Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import AuditMixin, Base, BigIntPK


class Category(AuditMixin, Base):
    """
    Menu category (e.g., "Drinks", "Mains").

    default_destination routes every product of the category to a
    preparation station. When unset the station is inferred from the name.
    """

    __tablename__ = "category"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    default_destination: Mapped[Optional[str]] = mapped_column(Text)  # KITCHEN, BARTENDER, BOTH

    products: Mapped[list["Product"]] = relationship(back_populates="category")

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}')>"


class Product(AuditMixin, Base):
    """
    Sellable product with a tracked stock level.
    Stock is a whole-unit count; it never goes negative.
    """

    __tablename__ = "product"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    category_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("category.id"), index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_stock: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reorder_level: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("price_cents >= 0", name="chk_product_price_non_negative"),
        CheckConstraint("current_stock >= 0", name="chk_product_stock_non_negative"),
        Index("ix_product_category", "category_id"),
    )

    category: Mapped[Optional["Category"]] = relationship(back_populates="products")

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name}', stock={self.current_stock})>"


class Package(AuditMixin, Base):
    """
    A combo sold as a single line item.
    Stock and preparation work are tracked per component product.
    """

    __tablename__ = "package"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    items: Mapped[list["PackageItem"]] = relationship(
        back_populates="package", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Package(id={self.id}, name='{self.name}')>"


class PackageItem(Base):
    """Component product of a package, with the quantity per package unit."""

    __tablename__ = "package_item"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    package_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("package.id"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("product.id"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="chk_package_item_qty_positive"),
    )

    package: Mapped["Package"] = relationship(back_populates="items")
    product: Mapped["Product"] = relationship()
