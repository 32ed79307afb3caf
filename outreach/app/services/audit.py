"""
Audit log writer. Best-effort: a failed write is logged and never reaches the caller.
"""
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from outreach.app.core.logging_config import get_logger
from outreach.app.models.admin import AuditLog
from outreach.app.utils.request import client_ip, user_agent

logger = get_logger("services.audit")


def create_audit_log(
    db: Session,
    *,
    user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Any = None,
    old_value: Optional[dict] = None,
    new_value: Optional[dict] = None,
    request: Optional[Request] = None,
) -> None:
    try:
        db.add(AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id) if entity_id is not None else None,
            old_value=old_value,
            new_value=new_value,
            ip_address=client_ip(request) if request is not None else None,
            user_agent=user_agent(request) if request is not None else None,
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.warning("Failed to create audit log action=%s entity=%s:%s error=%s", action, entity_type, entity_id, e)
