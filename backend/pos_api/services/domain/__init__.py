"""
Domain Services - Clean Architecture Application Layer.

Structure:
    Router (thin controller)
        ↓
    Service (business logic)  ← YOU ARE HERE
        ↓
    Repository (data access)
        ↓
    Model (entity)

Usage:
    from pos_api.services.domain import OrderService

    # In router
    result = OrderService(db).confirm(order_id, actor_id=user_id)
"""

from .order_service import OrderService
from .order_modification_service import ItemModification, OrderModificationService
from .tab_service import CloseAmounts, TabClosure, TabService, compute_close_amounts
from .void_service import VoidService, validate_void_reason

__all__ = [
    "OrderService",
    "OrderModificationService",
    "ItemModification",
    "TabService",
    "TabClosure",
    "CloseAmounts",
    "compute_close_amounts",
    "VoidService",
    "validate_void_reason",
]
