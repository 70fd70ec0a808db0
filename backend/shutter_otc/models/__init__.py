"""SQLAlchemy ORM models."""

from shutter_otc.models.trade import Trade
from shutter_otc.models.bid import Bid
from shutter_otc.models.audit_log import AuditLog

__all__ = [
    "Trade",
    "Bid",
    "AuditLog",
]
