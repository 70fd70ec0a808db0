"""Bid submission and trade status request/response schemas.

Wire names are camelCase (sessionId, encryptedPrice, ...) to stay
compatible with the browser client.
"""

from typing import Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True


class BidSubmitRequest(CamelModel):
    session_id: str = Field(min_length=1)
    price: float = Field(allow_inf_nan=False)
    role: str  # buyer | seller; other roles are stored but never matched


class BidSubmitResponse(CamelModel):
    success: bool = True
    message: str
    deadline: int
    bid_id: int


class BidResponse(CamelModel):
    id: int
    role: str
    encrypted_price: str
    decrypted_price: Optional[float] = None  # always null before deadline + buffer
    timestamp: int

    class Config:
        from_attributes = True


class TradeStatusResponse(CamelModel):
    success: bool = True
    message: str
    session_id: str
    status: str  # pending | matched | unmatched
    deadline: Optional[int]
    bids: list[BidResponse]
    matched_buyer_price: Optional[float] = None
    matched_seller_price: Optional[float] = None


class ErrorResponse(BaseModel):
    success: bool = False
    message: str
    retryable: bool
