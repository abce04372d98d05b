import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.models.audit import AuditLog

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(item) for item in value]
    return value


def _write_audit(db: Session, entry: AuditLog) -> None:
    db.add(entry)
    db.commit()


def record_audit(
    db: Session,
    *,
    actor_id: Optional[int],
    action: str,
    resource: str,
    resource_id: Any = None,
    details: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Best-effort audit write, called after the business change is committed.
    This function never raises; a failed write is logged and rolled back.
    """
    try:
        entry = AuditLog(
            actor_id=actor_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=_jsonable(details or {}),
        )
        _write_audit(db, entry)
        return True
    except Exception as exc:
        db.rollback()
        logger.warning(
            "Audit write failed (action=%s, resource=%s, resource_id=%s): %s",
            action,
            resource,
            resource_id,
            exc,
        )
        return False
