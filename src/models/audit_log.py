"""
AuditLog model for stock-affecting and catalog-changing operations.
"""

from sqlalchemy import Column, DateTime, JSON, String, Text

from src.utils.datetime_utils import utc_now

from .base import BaseModel


class AuditLog(BaseModel):
    """
    One audit entry.

    Attributes:
        action: AuditAction value (e.g. "TRANSACTION", "WASTE")
        entity: AuditEntity value (e.g. "INVENTORY", "SALE")
        entity_id: Id of the affected row, as text
        details: Human-readable summary
        before: JSON state before the change (optional)
        after: JSON state after the change (optional)
        timestamp: When the entry was written
    """

    __tablename__ = "audit_logs"

    updated_at = None

    action = Column(String(30), nullable=False, index=True)
    entity = Column(String(30), nullable=False, index=True)
    entity_id = Column(String(50), nullable=True, index=True)
    details = Column(Text, nullable=True)
    before = Column(JSON, nullable=True)
    after = Column(JSON, nullable=True)
    timestamp = Column(DateTime, nullable=False, default=utc_now, index=True)
