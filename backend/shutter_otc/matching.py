"""
First-fit double-auction matching.

Given the revealed prices of a sealed-bid session, pick the pair that
crosses first in submission order:

    for b in buyers (insertion order):
        for s in sellers (insertion order):
            if b >= s: match (b, s) and stop

The rule is deliberately not price-optimal: it neither looks for the
highest buyer nor the lowest qualifying seller. A session with no crossing
pair is unmatched.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from shutter_otc.models.bid import BUYER, SELLER
from shutter_otc.models.trade import MATCHED, UNMATCHED


@dataclass(frozen=True)
class MatchResult:
    status: str
    buyer_price: Optional[float] = None
    seller_price: Optional[float] = None

    @property
    def matched(self) -> bool:
        return self.status == MATCHED


def partition_prices(bids: Iterable[Tuple[str, float]]) -> Tuple[list[float], list[float]]:
    """Split (role, price) pairs into buyer and seller price lists.

    Order is preserved. Roles other than buyer/seller are dropped.
    """
    buyer_prices: list[float] = []
    seller_prices: list[float] = []
    for role, price in bids:
        if role == BUYER:
            buyer_prices.append(price)
        elif role == SELLER:
            seller_prices.append(price)
    return buyer_prices, seller_prices


def first_fit_match(buyer_prices: list[float], seller_prices: list[float]) -> MatchResult:
    """Return the first crossing buyer/seller pair in submission order.

    Args:
        buyer_prices: Buyer limit prices, in insertion order.
        seller_prices: Seller limit prices, in insertion order.

    Returns:
        A matched MatchResult carrying the pair, or an unmatched one with
        both prices None.
    """
    for buyer_price in buyer_prices:
        for seller_price in seller_prices:
            if buyer_price >= seller_price:
                return MatchResult(MATCHED, buyer_price, seller_price)
    return MatchResult(UNMATCHED)
