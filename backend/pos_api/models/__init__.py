"""
SQLAlchemy ORM Models Package.

All models are organized into domain-specific modules:
- base: Base class and AuditMixin
- user: User, Customer
- catalog: Category, Product, Package, PackageItem
- table: RestaurantTable, OrderSession
- order: Order, OrderItem
- kitchen: PreparationTicket
- inventory: InventoryMovement
- audit: AuditLog, OrderModification, DiscountRecord
- session_totals: SessionTotalsTrigger (store-side tab aggregation)
"""

# Base classes
from .base import Base, AuditMixin

# People
from .user import User, Customer

# Catalog
from .catalog import Category, Product, Package, PackageItem

# Tables and tabs
from .table import RestaurantTable, OrderSession

# Orders
from .order import Order, OrderItem

# Stations
from .kitchen import PreparationTicket

# Inventory
from .inventory import InventoryMovement

# Audit
from .audit import AuditLog, OrderModification, DiscountRecord

# Store-side aggregation
from .session_totals import SessionTotalsTrigger

__all__ = [
    "Base",
    "AuditMixin",
    "User",
    "Customer",
    "Category",
    "Product",
    "Package",
    "PackageItem",
    "RestaurantTable",
    "OrderSession",
    "Order",
    "OrderItem",
    "PreparationTicket",
    "InventoryMovement",
    "AuditLog",
    "OrderModification",
    "DiscountRecord",
    "SessionTotalsTrigger",
]
