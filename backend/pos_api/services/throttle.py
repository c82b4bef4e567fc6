"""
Notification throttle.

Suppresses repeated alerts for the same subject inside a cooldown window.
Keys are "{kind}_{reference_id}". The clock and the backing map are
injectable so the window can be tested without sleeping.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import MutableMapping

from shared.config.logging import get_logger
from shared.config.settings import settings
from pos_api.services.clock import Clock, utcnow

logger = get_logger(__name__)


class NotificationThrottle:
    def __init__(
        self,
        cooldown: timedelta | None = None,
        clock: Clock = utcnow,
        store: MutableMapping[str, datetime] | None = None,
    ):
        self._cooldown = cooldown or timedelta(hours=settings.low_stock_alert_cooldown_hours)
        self._clock = clock
        self._sent = store if store is not None else {}

    @staticmethod
    def key(kind: str, reference_id: int | str) -> str:
        return f"{kind}_{reference_id}"

    def should_notify(self, kind: str, reference_id: int | str) -> bool:
        """
        Return True and record the send when no alert for this key went out
        within the cooldown; otherwise return False.
        """
        key = self.key(kind, reference_id)
        now = self._clock()
        last = self._sent.get(key)
        if last is not None and now - last < self._cooldown:
            logger.debug("Notification suppressed", key=key, last_sent=last.isoformat())
            return False
        self._sent[key] = now
        return True

    def reset(self, kind: str, reference_id: int | str) -> None:
        """Forget the last send, e.g. after stock was replenished."""
        self._sent.pop(self.key(kind, reference_id), None)


# Process-wide throttle for low-stock alerts
low_stock_throttle = NotificationThrottle()
