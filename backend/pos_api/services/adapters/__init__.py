"""
Collaborator adapters: inventory and preparation stations.

Both flush but never commit; the domain services decide when a side
effect is committed or rolled back.
"""

from .preparation_routing import DEFAULT_STATION_MAPPING, PreparationRouter
from .stock_ledger import Availability, Shortage, StockLedger, StockRequest

__all__ = [
    "DEFAULT_STATION_MAPPING",
    "PreparationRouter",
    "Availability",
    "Shortage",
    "StockLedger",
    "StockRequest",
]
