"""Multi-criteria quote scoring.

Every criterion is normalized against the candidate set so that scores are
comparable within one aggregation call. Scoring is a pure function of quote
content; ties are broken deterministically.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional, Sequence

ZERO = Decimal("0")
ONE = Decimal("1")


@dataclass(frozen=True)
class ScoreWeights:
    """Relative weight of each scoring criterion."""

    output: Decimal = Decimal("0.4")
    gas: Decimal = Decimal("0.2")
    price_impact: Decimal = Decimal("0.2")
    confidence: Decimal = Decimal("0.2")
    time: Decimal = Decimal("0")

    @classmethod
    def from_settings(cls, settings: Any, include_time: bool = False) -> "ScoreWeights":
        return cls(
            output=Decimal(str(settings.weight_output)),
            gas=Decimal(str(settings.weight_gas)),
            price_impact=Decimal(str(settings.weight_price_impact)),
            confidence=Decimal(str(settings.weight_confidence)),
            time=Decimal(str(settings.weight_time)) if include_time else ZERO,
        )


@dataclass
class ScoredQuote:
    quote: Any
    score: Decimal


def _ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator <= 0:
        return ZERO
    return numerator / denominator


def _clamp(value: Decimal) -> Decimal:
    return max(ZERO, min(ONE, value))


def score_quotes(
    quotes: Sequence[Any],
    weights: ScoreWeights,
    max_price_impact: Decimal,
    gas_optimization: bool = True,
) -> list[ScoredQuote]:
    """Score and rank quotes, best first.

    Quotes need ``to_amount``, ``gas_estimate``, ``price_impact_percent``,
    ``confidence``, ``estimated_time_seconds`` and ``protocol`` attributes.

    - output: ``to_amount / max(to_amount)``
    - gas: ``min(gas) / gas``; contributes 0 when gas optimization is off
    - price impact: ``(ceiling - impact) / ceiling`` clamped to [0, 1]
    - confidence: as reported by the adapter
    - time: ``min(time) / time`` (weight is 0 unless requested)
    """
    if not quotes:
        return []

    max_output = max(Decimal(q.to_amount) for q in quotes)
    positive_gas = [q.gas_estimate for q in quotes if q.gas_estimate > 0]
    min_gas = Decimal(min(positive_gas)) if positive_gas else ZERO
    positive_time = [q.estimated_time_seconds for q in quotes if q.estimated_time_seconds > 0]
    min_time = Decimal(min(positive_time)) if positive_time else ZERO
    ceiling = Decimal(max_price_impact)

    scored = []
    for quote in quotes:
        norm_output = _ratio(Decimal(quote.to_amount), max_output)

        if not gas_optimization:
            norm_gas = ZERO
        elif quote.gas_estimate <= 0:
            norm_gas = ONE
        else:
            norm_gas = _ratio(min_gas, Decimal(quote.gas_estimate))

        if ceiling > 0:
            norm_impact = _clamp((ceiling - Decimal(quote.price_impact_percent)) / ceiling)
        else:
            norm_impact = ONE if quote.price_impact_percent <= 0 else ZERO

        if quote.estimated_time_seconds <= 0:
            norm_time = ONE
        else:
            norm_time = _ratio(min_time, Decimal(quote.estimated_time_seconds))

        score = (
            weights.output * norm_output
            + weights.gas * norm_gas
            + weights.price_impact * norm_impact
            + weights.confidence * _clamp(Decimal(quote.confidence))
            + weights.time * norm_time
        )
        scored.append(ScoredQuote(quote=quote, score=score))

    scored.sort(key=ranking_key)
    return scored


def ranking_key(item: ScoredQuote) -> tuple:
    """Higher score, then higher output, then lower gas, then protocol id."""
    q = item.quote
    return (-item.score, -Decimal(q.to_amount), q.gas_estimate, q.protocol)


def lowest_impact(quotes: Iterable[Any]) -> Optional[Any]:
    """The minimum price-impact quote, ties broken by higher output then protocol id."""
    candidates = list(quotes)
    if not candidates:
        return None
    return min(
        candidates,
        key=lambda q: (Decimal(q.price_impact_percent), -Decimal(q.to_amount), q.protocol),
    )
