"""Advisory warnings attached to unified quotes."""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from uniquote.engine.types import QuoteWarning, UnifiedQuote


@dataclass(frozen=True)
class WarningThresholds:
    slippage: Decimal = Decimal("2")
    slippage_high: Decimal = Decimal("5")
    price_impact: Decimal = Decimal("5")
    price_impact_high: Decimal = Decimal("10")
    gas: int = 500_000
    gas_high: int = 1_000_000

    @classmethod
    def from_settings(cls, settings: Any) -> "WarningThresholds":
        return cls(
            slippage=Decimal(str(settings.warn_slippage)),
            slippage_high=Decimal(str(settings.warn_slippage_high)),
            price_impact=Decimal(str(settings.warn_price_impact)),
            price_impact_high=Decimal(str(settings.warn_price_impact_high)),
            gas=settings.warn_gas,
            gas_high=settings.warn_gas_high,
        )


def quote_warnings(quote: UnifiedQuote, thresholds: WarningThresholds) -> list[QuoteWarning]:
    """Warnings for slippage, price impact and gas above the thresholds."""
    warnings = []

    if quote.slippage_tolerance_percent > thresholds.slippage:
        warnings.append(
            QuoteWarning(
                type="high_slippage",
                message=f"Slippage tolerance is {quote.slippage_tolerance_percent}%",
                severity="high" if quote.slippage_tolerance_percent > thresholds.slippage_high else "medium",
                recommendation="Consider reducing slippage tolerance",
            )
        )

    if quote.price_impact_percent > thresholds.price_impact:
        warnings.append(
            QuoteWarning(
                type="high_price_impact",
                message=f"Price impact is {quote.price_impact_percent:.2f}%",
                severity="high" if quote.price_impact_percent > thresholds.price_impact_high else "medium",
                recommendation="Consider splitting the trade into smaller amounts",
            )
        )

    if quote.total_gas_estimate > thresholds.gas:
        warnings.append(
            QuoteWarning(
                type="high_gas",
                message=f"Estimated gas is {quote.total_gas_estimate} units",
                severity="high" if quote.total_gas_estimate > thresholds.gas_high else "medium",
                recommendation="Consider executing when network fees are lower",
            )
        )

    return warnings
