"""Settlement engine — reveals sealed bids after the deadline and matches them.

A session is settled lazily by the first status query that arrives at or
after deadline + DECRYPT_BUFFER_SECONDS. Settlement is serialized per
session (in-process lock) and the terminal write is a compare-and-swap on
status = 'pending', so at most one result is ever committed.
"""

import json
import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shutter_otc.config import settings
from shutter_otc.errors import DecryptionFailure, SessionNotFound, StorageError
from shutter_otc.locks import session_lock
from shutter_otc.matching import MatchResult, first_fit_match, partition_prices
from shutter_otc.models.audit_log import AuditLog
from shutter_otc.models.bid import Bid
from shutter_otc.models.trade import Trade, PENDING
from shutter_otc.services.deadline_service import current_timestamp
from shutter_otc.services.timelock import TimelockOracle

logger = logging.getLogger(__name__)

MSG_NOT_REACHED = "Deadline not reached yet."
MSG_ALREADY_PROCESSED = "Trade already processed."
MSG_SETTLED = "Trade settled."


def _load_trade(db: Session, session_id: str) -> Trade:
    trade = db.get(Trade, session_id, populate_existing=True)
    if trade is None:
        raise SessionNotFound(session_id)
    return trade


def _load_bids(db: Session, session_id: str) -> list[Bid]:
    return (
        db.query(Bid)
        .populate_existing()
        .filter(Bid.session_id == session_id)
        .order_by(Bid.id)
        .all()
    )


def _bid_view(bid: Bid, reveal: bool) -> dict:
    return {
        "id": bid.id,
        "role": bid.role,
        "encrypted_price": bid.encrypted_price,
        "decrypted_price": bid.decrypted_price if reveal else None,
        "timestamp": bid.timestamp,
    }


def _trade_view(trade: Trade, bids: list[Bid], message: str, reveal: bool) -> dict:
    """Build the status payload. Nothing decrypted leaks unless reveal is set."""
    return {
        "session_id": trade.session_id,
        "status": trade.status if reveal else PENDING,
        "message": message,
        "deadline": trade.deadline,
        "bids": [_bid_view(b, reveal) for b in bids],
        "matched_buyer_price": trade.buyer_price if reveal else None,
        "matched_seller_price": trade.seller_price if reveal else None,
    }


def _reveal_price(oracle: TimelockOracle, ciphertext: str, unlock_time: int) -> float:
    """Decrypt one sealed price. Runs on a worker thread, touches no DB state."""
    plaintext = oracle.decrypt(ciphertext, unlock_time)
    try:
        price = float(plaintext)
    except (TypeError, ValueError) as e:
        raise DecryptionFailure(f"unparseable plaintext {plaintext!r}") from e
    if not math.isfinite(price):
        raise DecryptionFailure(f"non-finite price {plaintext!r}")
    return price


def _store_decrypted_price(db: Session, bid_id: int, price: float) -> None:
    # write-once: a price already revealed by another writer is kept
    (
        db.query(Bid)
        .filter(Bid.id == bid_id, Bid.decrypted_price.is_(None))
        .update({Bid.decrypted_price: price}, synchronize_session=False)
    )


def _decrypt_pending_bids(db: Session, oracle: TimelockOracle, unlock_time: int, bids: list[Bid]) -> int:
    """Reveal every bid that has no decrypted price yet.

    Oracle calls run concurrently and no transaction is open while they are
    in flight. Once every call has finished, the revealed prices are written
    in one short commit, so prices revealed before a failure survive for the
    next attempt.

    Returns:
        Number of bids decrypted by this call.

    Raises:
        DecryptionFailure: If any bid could not be revealed.
    """
    sealed = [(b.id, b.encrypted_price) for b in bids if b.decrypted_price is None]
    if not sealed:
        return 0

    revealed: list[tuple[int, float]] = []
    failures: list[tuple[int, Exception]] = []
    workers = max(1, min(settings.DECRYPT_WORKERS, len(sealed)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="decrypt") as pool:
        futures = {
            pool.submit(_reveal_price, oracle, ciphertext, unlock_time): bid_id
            for bid_id, ciphertext in sealed
        }
        for future in as_completed(futures):
            bid_id = futures[future]
            try:
                revealed.append((bid_id, future.result()))
            except Exception as e:
                failures.append((bid_id, e))

    if revealed:
        for bid_id, price in revealed:
            _store_decrypted_price(db, bid_id, price)
        db.commit()

    if failures:
        failed_ids = sorted(bid_id for bid_id, _ in failures)
        logger.warning("Could not decrypt bids %s (%d of %d)", failed_ids, len(failures), len(sealed))
        raise DecryptionFailure(
            f"{len(failures)} of {len(sealed)} bids could not be decrypted"
        ) from failures[0][1]
    return len(revealed)


def _commit_outcome(db: Session, session_id: str, result: MatchResult, bid_count: int) -> bool:
    """Move the trade out of 'pending'. Returns False if it was no longer pending."""
    updated = (
        db.query(Trade)
        .filter(Trade.session_id == session_id, Trade.status == PENDING)
        .update(
            {
                Trade.status: result.status,
                Trade.buyer_price: result.buyer_price,
                Trade.seller_price: result.seller_price,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        return False

    db.add(AuditLog(
        entity_type="trade",
        entity_id=session_id,
        action="settled",
        old_data=json.dumps({"status": PENDING}),
        new_data=json.dumps({
            "status": result.status,
            "buyer_price": result.buyer_price,
            "seller_price": result.seller_price,
            "bids": bid_count,
        }),
    ))
    db.commit()
    return True


def _settle(db: Session, oracle: TimelockOracle, session_id: str) -> dict:
    with session_lock(session_id):
        trade = _load_trade(db, session_id)
        if trade.is_terminal:
            return _trade_view(trade, _load_bids(db, session_id), MSG_ALREADY_PROCESSED, reveal=True)

        deadline = trade.deadline
        snapshot = _load_bids(db, session_id)
        revealed = _decrypt_pending_bids(db, oracle, deadline, snapshot)

        # Match over the bids that were revealed, in insertion order
        snapshot_ids = {b.id for b in snapshot}
        bids = [b for b in _load_bids(db, session_id) if b.id in snapshot_ids]

        buyer_prices, seller_prices = partition_prices((b.role, b.decrypted_price) for b in bids)
        result = first_fit_match(buyer_prices, seller_prices)

        if not _commit_outcome(db, session_id, result, len(bids)):
            logger.info("Session %s was settled by another writer", session_id)
            trade = _load_trade(db, session_id)
            return _trade_view(trade, _load_bids(db, session_id), MSG_ALREADY_PROCESSED, reveal=True)

        logger.info(
            "Session %s settled: %s (buyer=%s, seller=%s, %d bids, %d decrypted now)",
            session_id, result.status, result.buyer_price, result.seller_price, len(bids), revealed,
        )
        trade = _load_trade(db, session_id)
        return _trade_view(trade, _load_bids(db, session_id), MSG_SETTLED, reveal=True)


def get_status(db: Session, oracle: TimelockOracle, session_id: str, now: Optional[int] = None) -> dict:
    """Report a session's state, settling it first if it is due.

    Before deadline + buffer only ciphertexts are returned. The first query
    after that reveals and matches every bid; later queries return the
    stored result without calling the oracle.
    """
    now = current_timestamp() if now is None else now
    try:
        trade = _load_trade(db, session_id)
        if trade.deadline is None or now < trade.deadline + settings.DECRYPT_BUFFER_SECONDS:
            return _trade_view(trade, _load_bids(db, session_id), MSG_NOT_REACHED, reveal=False)
        if trade.is_terminal:
            return _trade_view(trade, _load_bids(db, session_id), MSG_ALREADY_PROCESSED, reveal=True)
        return _settle(db, oracle, session_id)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Storage failure while reading session %s: %s", session_id, e)
        raise StorageError(str(e)) from e
