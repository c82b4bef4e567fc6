"""
Repository Pattern implementation.
Centralizes data access with guaranteed eager loading.

Usage:
    from pos_api.repositories import OrderRepository

    repo = OrderRepository(db)
    order = repo.find_by_id(123)
"""

from .base import BaseRepository
from .order import OrderRepository
from .session import SessionRepository
from .ticket import TicketRepository

__all__ = [
    "BaseRepository",
    "OrderRepository",
    "SessionRepository",
    "TicketRepository",
]
