"""Trades router — sealed bid submission and session status."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from shutter_otc.config import settings
from shutter_otc.database import get_db
from shutter_otc.middleware.rate_limit import limiter
from shutter_otc.schemas.trade import (
    BidSubmitRequest,
    BidSubmitResponse,
    TradeStatusResponse,
    ErrorResponse,
)
from shutter_otc.services import bid_service, settlement_service
from shutter_otc.services.timelock import TimelockOracle, get_oracle

router = APIRouter(tags=["trades"])

_error_responses = {
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


@router.post("/submit/bid", response_model=BidSubmitResponse, responses=_error_responses)
@limiter.limit(settings.BID_RATE_LIMIT)
def submit_bid(
    request: Request,
    req: BidSubmitRequest,
    db: Session = Depends(get_db),
    oracle: TimelockOracle = Depends(get_oracle),
):
    """Seal a buyer or seller price until the session deadline."""
    result = bid_service.submit_bid(db, oracle, req.session_id, req.role, req.price)
    return BidSubmitResponse(message=result["message"], deadline=result["deadline"], bid_id=result["bid_id"])


@router.get("/trade/status/{session_id}", response_model=TradeStatusResponse, responses=_error_responses)
def trade_status(
    session_id: str,
    db: Session = Depends(get_db),
    oracle: TimelockOracle = Depends(get_oracle),
):
    """Get a session's status; the first call after the deadline settles it."""
    result = settlement_service.get_status(db, oracle, session_id)
    return TradeStatusResponse(**result)
