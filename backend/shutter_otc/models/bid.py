"""Bid model — a sealed price submitted to a session."""

from sqlalchemy import Column, String, Float, Integer, ForeignKey, Text
from sqlalchemy.orm import relationship

from shutter_otc.database import Base

BUYER = "buyer"
SELLER = "seller"


class Bid(Base):
    __tablename__ = "bids"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column("sessionId", String, ForeignKey("trades.sessionId"), nullable=False, index=True)
    role = Column(String, nullable=False)  # buyer | seller (anything else is stored but never matched)
    encrypted_price = Column("encryptedPrice", Text, nullable=False)
    decrypted_price = Column("decryptedPrice", Float, nullable=True)  # written once, at settlement
    timestamp = Column(Integer, nullable=False)  # submission time, unix seconds

    # Relationships
    trade = relationship("Trade", back_populates="bids")
