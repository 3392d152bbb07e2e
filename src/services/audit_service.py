"""
Audit log service.

Every stock-affecting or catalog-changing operation writes its audit
entries inside the same session as the change itself, so an entry exists
if and only if the change was committed.
"""

from contextlib import nullcontext
from typing import Any, Dict, List, Optional, Union

from sqlalchemy.orm import Session

from src.models import AuditAction, AuditEntity, AuditLog
from src.services.database import session_scope


def add_audit_log(
    session: Session,
    action: Union[AuditAction, str],
    entity: Union[AuditEntity, str],
    entity_id: Optional[Any] = None,
    details: Optional[str] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an audit entry to the caller's session.

    Args:
        session: Session the audited change is running in
        action: What happened (AuditAction)
        entity: What kind of record it happened to (AuditEntity)
        entity_id: Id of the affected record
        details: Human-readable summary
        before: State before the change
        after: State after the change

    Returns:
        The pending AuditLog row (flushed with the caller's transaction)
    """
    entry = AuditLog(
        action=AuditAction(action).value,
        entity=AuditEntity(entity).value,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details,
        before=before,
        after=after,
    )
    session.add(entry)
    return entry


def list_audit_logs(
    entity: Optional[Union[AuditEntity, str]] = None,
    entity_id: Optional[Any] = None,
    action: Optional[Union[AuditAction, str]] = None,
    limit: int = 100,
    session: Optional[Session] = None,
) -> List[Dict[str, Any]]:
    """
    List audit entries, newest first.

    Args:
        entity: Optional entity filter
        entity_id: Optional entity id filter
        action: Optional action filter
        limit: Maximum number of entries
        session: Optional database session

    Returns:
        List of audit entry dicts
    """
    cm = nullcontext(session) if session is not None else session_scope()
    with cm as session:
        query = session.query(AuditLog)
        if entity is not None:
            query = query.filter(AuditLog.entity == AuditEntity(entity).value)
        if entity_id is not None:
            query = query.filter(AuditLog.entity_id == str(entity_id))
        if action is not None:
            query = query.filter(AuditLog.action == AuditAction(action).value)
        rows = query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc()).limit(limit).all()
        return [row.to_dict() for row in rows]
