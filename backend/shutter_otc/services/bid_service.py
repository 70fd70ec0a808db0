"""Bid intake — seals a price against the session deadline and stores it."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shutter_otc.errors import StorageError
from shutter_otc.models.bid import Bid
from shutter_otc.services.deadline_service import current_timestamp, get_or_set_deadline
from shutter_otc.services.timelock import TimelockOracle

logger = logging.getLogger(__name__)


def format_price(price: float) -> str:
    """Render a price as the plaintext handed to the oracle."""
    value = float(price)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def role_label(role: str) -> str:
    return role[:1].upper() + role[1:]


def submit_bid(
    db: Session,
    oracle: TimelockOracle,
    session_id: str,
    role: str,
    price: float,
    now: Optional[int] = None,
) -> dict:
    """Encrypt a bid until the session deadline and persist it.

    Steps:
    1. Get (or create) the session deadline
    2. Time-lock encrypt the price against it
    3. Insert the bid row with the ciphertext only

    Encryption failures raise EncryptionFailure before anything is written.
    A storage failure after encryption discards the ciphertext; callers
    retry the whole submission.
    """
    deadline = get_or_set_deadline(db, session_id, now=now)

    encrypted_price = oracle.encrypt(format_price(price), deadline)

    bid = Bid(
        session_id=session_id,
        role=role,
        encrypted_price=encrypted_price,
        decrypted_price=None,
        timestamp=current_timestamp() if now is None else now,
    )
    try:
        db.add(bid)
        db.commit()
        db.refresh(bid)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Could not store %s bid for session %s: %s", role, session_id, e)
        raise StorageError(str(e)) from e

    logger.info("Stored sealed %s bid %s for session %s", role, bid.id, session_id)
    return {
        "bid_id": bid.id,
        "deadline": deadline,
        "message": f"{role_label(role)} bid submitted and encrypted.",
    }
