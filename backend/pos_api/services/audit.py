"""
Audit logging service.
Records voids, post-confirmation modifications and checkout discounts.

Helpers here add rows to the session without committing; the caller owns
the transaction.
"""

import json
from typing import Optional

from sqlalchemy.orm import Session

from pos_api.models import AuditLog, DiscountRecord, OrderModification


def log_change(
    db: Session,
    *,
    user_id: Optional[int],
    entity_type: str,
    entity_id: int,
    action: str,
    old_values: Optional[dict] = None,
    new_values: Optional[dict] = None,
    reason: Optional[str] = None,
) -> AuditLog:
    """
    Log a change to an entity.

    Args:
        db: Database session
        user_id: User who made the change
        entity_type: Type of entity (e.g., "order", "order_session")
        entity_id: ID of the entity
        action: Action performed (VOID, ...)
        old_values: Previous state of the entity
        new_values: New state of the entity
        reason: Free-text reason given by the user

    Returns:
        Created AuditLog entry
    """
    audit_entry = AuditLog(
        user_id=user_id,
        entity_type=entity_type,
        entity_id=entity_id,
        action=action,
        old_values=json.dumps(old_values, default=str) if old_values else None,
        new_values=json.dumps(new_values, default=str) if new_values else None,
        reason=reason,
        created_by_id=user_id,
    )

    db.add(audit_entry)
    return audit_entry


class AuditLogService:
    """Audit collaborator used by the lifecycle services."""

    def __init__(self, db: Session):
        self._db = db

    def log_voided(
        self,
        voided_by: int,
        order_id: int,
        reason: str,
        requested_manager_id: int | None = None,
        old_status: str | None = None,
    ) -> AuditLog:
        """
        Record an order void. voided_by is the authenticated manager;
        requested_manager_id is the unverified id the request named.
        """
        new_values = {"status": "VOIDED", "voided_by": voided_by}
        if requested_manager_id is not None and requested_manager_id != voided_by:
            new_values["requested_manager_id"] = requested_manager_id
        return log_change(
            self._db,
            user_id=voided_by,
            entity_type="order",
            entity_id=order_id,
            action="VOID",
            old_values={"status": old_status} if old_status else None,
            new_values=new_values,
            reason=reason,
        )

    def log_modification(self, record: OrderModification) -> OrderModification:
        self._db.add(record)
        return record

    def record_discount(self, record: DiscountRecord) -> DiscountRecord:
        self._db.add(record)
        return record
