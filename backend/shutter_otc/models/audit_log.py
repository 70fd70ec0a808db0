"""Audit log model — immutable record of every session transition."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text

from shutter_otc.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    entity_type = Column(String(50), nullable=False)  # trade
    entity_id = Column(String, nullable=False, index=True)
    action = Column(String(50), nullable=False)  # created | settled
    old_data = Column(Text, nullable=True)   # JSON string
    new_data = Column(Text, nullable=True)   # JSON string
    created_at = Column(DateTime, nullable=False, default=lambda: datetime.now(timezone.utc))
