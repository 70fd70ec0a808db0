"""Tests for sealed bid intake."""

import pytest
from sqlalchemy.exc import OperationalError

from shutter_otc.config import settings
from shutter_otc.errors import EncryptionFailure, StorageError
from shutter_otc.models import Bid, Trade
from shutter_otc.services.bid_service import format_price, role_label, submit_bid


class TestSubmitBid:

    def test_bid_is_stored_sealed(self, db, oracle):
        result = submit_bid(db, oracle, "s1", "buyer", 10.0, now=1_000)

        deadline = 1_000 + settings.COMMIT_WINDOW_SECONDS
        assert result["deadline"] == deadline
        assert result["message"] == "Buyer bid submitted and encrypted."

        bid = db.query(Bid).one()
        assert result["bid_id"] == bid.id
        assert bid.session_id == "s1"
        assert bid.role == "buyer"
        assert bid.encrypted_price == f"sealed:{deadline}:10"
        assert bid.decrypted_price is None
        assert bid.timestamp == 1_000

    def test_bids_share_first_deadline(self, db, oracle):
        first = submit_bid(db, oracle, "s1", "buyer", 10.0, now=1_000)
        second = submit_bid(db, oracle, "s1", "seller", 8.5, now=1_007)

        assert first["deadline"] == second["deadline"]
        assert db.query(Trade).count() == 1
        sealed = [b.encrypted_price for b in db.query(Bid).order_by(Bid.id)]
        assert sealed == [f"sealed:{first['deadline']}:10", f"sealed:{first['deadline']}:8.5"]

    def test_many_bids_per_role_allowed(self, db, oracle):
        for price in (10.0, 11.0, 12.0):
            submit_bid(db, oracle, "s1", "buyer", price, now=1_000)
        assert db.query(Bid).filter(Bid.role == "buyer").count() == 3

    def test_unknown_role_is_accepted(self, db, oracle):
        result = submit_bid(db, oracle, "s1", "broker", 3.0, now=1_000)
        assert result["message"] == "Broker bid submitted and encrypted."
        assert db.query(Bid).one().role == "broker"

    def test_encryption_failure_stores_no_bid(self, db, oracle):
        oracle.fail_encrypt = True
        with pytest.raises(EncryptionFailure):
            submit_bid(db, oracle, "s1", "buyer", 10.0, now=1_000)
        assert db.query(Bid).count() == 0

    def test_storage_failure_after_encryption(self, db, oracle, monkeypatch):
        def _broken_commit():
            raise OperationalError("INSERT INTO bids", {}, Exception("disk I/O error"))

        # deadline is established first, then the bid insert fails
        submit_bid(db, oracle, "s1", "buyer", 10.0, now=1_000)
        monkeypatch.setattr(db, "commit", _broken_commit)

        with pytest.raises(StorageError):
            submit_bid(db, oracle, "s1", "seller", 9.0, now=1_001)
        monkeypatch.undo()

        assert db.query(Bid).count() == 1
        assert oracle.encrypt_calls == 2


class TestPriceFormatting:

    def test_whole_prices_have_no_fraction(self):
        assert format_price(10.0) == "10"
        assert format_price(7) == "7"

    def test_fractional_prices_round_trip(self):
        assert float(format_price(8.25)) == 8.25
        assert float(format_price(0.1)) == 0.1

    def test_role_label_only_touches_first_letter(self):
        assert role_label("seller") == "Seller"
        assert role_label("mARKET maker") == "MARKET maker"
        assert role_label("") == ""
