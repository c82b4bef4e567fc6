"""
Services module for business logic.

CLEAN ARCHITECTURE:
- domain/: Application services (order, modification, tab, void) - USE THESE
- adapters/: Collaborators the domain services drive (stock ledger, stations)
- audit, identity, throttle, results: shared building blocks

Usage:
    from pos_api.services.domain import TabService
    service = TabService(db)
    session, is_new = service.open_tab(table_id=17)
"""

from .audit import AuditLogService, log_change
from .identity import CurrentUser, IdentityProvider, RequestIdentity, StaticIdentity
from .results import OperationResult, SideEffectOutcome, SideEffectStatus
from .throttle import NotificationThrottle, low_stock_throttle

__all__ = [
    "AuditLogService",
    "log_change",
    "CurrentUser",
    "IdentityProvider",
    "RequestIdentity",
    "StaticIdentity",
    "OperationResult",
    "SideEffectOutcome",
    "SideEffectStatus",
    "NotificationThrottle",
    "low_stock_throttle",
]
