"""Deadline registry — lazily fixes the commit deadline of a session."""

import json
import logging
import time
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from shutter_otc.config import settings
from shutter_otc.errors import StorageError
from shutter_otc.models.audit_log import AuditLog
from shutter_otc.models.trade import Trade, PENDING

logger = logging.getLogger(__name__)


def current_timestamp() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


def _insert_trade(db: Session, session_id: str, deadline: int) -> bool:
    """Create the session row. Returns False if a concurrent caller got there first."""
    db.add(Trade(session_id=session_id, deadline=deadline, status=PENDING))
    db.add(AuditLog(
        entity_type="trade",
        entity_id=session_id,
        action="created",
        new_data=json.dumps({"deadline": deadline, "status": PENDING}),
    ))
    try:
        db.commit()
    except IntegrityError:
        # Primary key on sessionId: another writer created the row
        db.rollback()
        return False
    return True


def _fill_missing_deadline(db: Session, session_id: str, deadline: int) -> bool:
    """Set the deadline on an existing row only if it is still unset."""
    updated = (
        db.query(Trade)
        .filter(Trade.session_id == session_id, Trade.deadline.is_(None))
        .update({Trade.deadline: deadline}, synchronize_session=False)
    )
    db.commit()
    return updated == 1


def get_or_set_deadline(db: Session, session_id: str, now: Optional[int] = None) -> int:
    """Return the session's deadline, creating the session if it is new.

    The first caller's deadline wins; every later or concurrent caller reads
    back the stored value instead of its own computed one.
    """
    try:
        trade = db.get(Trade, session_id, populate_existing=True)
        if trade is not None and trade.deadline is not None:
            return trade.deadline

        now = current_timestamp() if now is None else now
        deadline = now + settings.COMMIT_WINDOW_SECONDS

        if trade is None:
            created = _insert_trade(db, session_id, deadline)
        else:
            created = _fill_missing_deadline(db, session_id, deadline)

        stored = db.get(Trade, session_id, populate_existing=True)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Could not establish deadline for session %s: %s", session_id, e)
        raise StorageError(str(e)) from e

    if stored is None or stored.deadline is None:
        raise StorageError(f"deadline for session {session_id} was not persisted")

    if created:
        logger.info("Session %s opened, deadline %s", session_id, stored.deadline)
    else:
        logger.debug("Session %s deadline set concurrently, using %s", session_id, stored.deadline)
    return stored.deadline
