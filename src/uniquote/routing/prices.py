"""Optional USD price feed used to estimate price impact."""

import logging
from decimal import Decimal
from typing import Optional, Protocol

from uniquote.routing.base import Token

logger = logging.getLogger(__name__)

# Reference USD prices for well-known symbols (dry-run and tests)
SIMULATED_PRICES: dict[str, Decimal] = {
    "ETH": Decimal("2500"),
    "WETH": Decimal("2500"),
    "BTC": Decimal("65000"),
    "WBTC": Decimal("65000"),
    "BNB": Decimal("580"),
    "MATIC": Decimal("0.70"),
    "AVAX": Decimal("35"),
    "USDC": Decimal("1"),
    "USDT": Decimal("1"),
    "DAI": Decimal("1"),
    "FRAX": Decimal("1"),
    "LUSD": Decimal("1"),
    "LINK": Decimal("15"),
    "UNI": Decimal("8"),
}


class PriceFeed(Protocol):
    async def get_price_usd(self, token: Token) -> Optional[Decimal]:
        ...


class StaticPriceFeed:
    """Price feed backed by a fixed symbol -> USD table."""

    def __init__(self, prices: Optional[dict[str, Decimal]] = None):
        self.prices = {k.upper(): v for k, v in (prices or SIMULATED_PRICES).items()}

    async def get_price_usd(self, token: Token) -> Optional[Decimal]:
        return self.prices.get(token.symbol.upper())


def price_impact_percent(
    from_amount: Decimal,
    to_amount: Decimal,
    from_price: Optional[Decimal],
    to_price: Optional[Decimal],
) -> Decimal:
    """Value lost between input and output, in percent (never negative).

    Returns 0 when either price is unknown.
    """
    if not from_price or not to_price or from_amount <= 0:
        return Decimal("0")
    value_in = from_amount * from_price
    value_out = to_amount * to_price
    if value_in <= 0:
        return Decimal("0")
    impact = (value_in - value_out) / value_in * Decimal("100")
    return max(Decimal("0"), impact)


async def estimate_price_impact(
    feed: Optional[PriceFeed],
    from_token: Token,
    to_token: Token,
    from_amount: Decimal,
    to_amount: Decimal,
) -> Decimal:
    """Price impact from a feed, or 0 when no feed is configured or it fails."""
    if feed is None:
        return Decimal("0")
    try:
        from_price = await feed.get_price_usd(from_token)
        to_price = await feed.get_price_usd(to_token)
    except Exception as e:
        logger.debug(f"Price feed lookup failed: {e}")
        return Decimal("0")
    return price_impact_percent(from_amount, to_amount, from_price, to_price)
