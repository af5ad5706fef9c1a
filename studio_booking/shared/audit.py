"""Audit trail for admin actions"""

import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from sqlalchemy.orm import Session

from ..models import AuditLog

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


def booking_snapshot(booking) -> dict:
    """Columns worth keeping in an audit entry"""
    return _jsonable(
        {
            "studio": booking.studio,
            "date": booking.date,
            "start_time": booking.start_time,
            "end_time": booking.end_time,
            "status": booking.status,
            "payment_status": booking.payment_status,
            "phone_number": booking.phone_number,
            "total_amount": booking.total_amount,
            "notes": booking.notes,
        }
    )


def record_audit(
    db: Session,
    action: str,
    entity_type: str,
    entity_id: Optional[str] = None,
    old_data: Optional[dict] = None,
    new_data: Optional[dict] = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction (caller commits)"""
    entry = AuditLog(
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        old_data=_jsonable(old_data) if old_data is not None else None,
        new_data=_jsonable(new_data) if new_data is not None else None,
    )
    db.add(entry)
    logger.debug(f"Audit: {action} {entity_type} {entity_id}")
    return entry
