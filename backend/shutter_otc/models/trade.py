"""Trade model — one row per OTC session, holding its deadline and outcome."""

from sqlalchemy import Column, String, Float, Integer
from sqlalchemy.orm import relationship

from shutter_otc.database import Base

PENDING = "pending"
MATCHED = "matched"
UNMATCHED = "unmatched"
TERMINAL_STATUSES = (MATCHED, UNMATCHED)


class Trade(Base):
    __tablename__ = "trades"

    # Column names follow the legacy nanoshutter_otc.db schema
    session_id = Column("sessionId", String, primary_key=True)
    deadline = Column("timestamp", Integer, nullable=True)  # unix seconds, set once
    status = Column(String(20), nullable=False, default=PENDING)  # pending | matched | unmatched
    buyer_price = Column("buyerPrice", Float, nullable=True)
    seller_price = Column("sellerPrice", Float, nullable=True)

    # Relationships
    bids = relationship("Bid", back_populates="trade", order_by="Bid.id")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
