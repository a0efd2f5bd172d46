"""Post-aggregation filtering and ordering of unified quotes."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from uniquote.engine.types import OptimizeFor, QuoteOptimization, UnifiedQuote
from uniquote.routing.scoring import ScoreWeights, lowest_impact, score_quotes

logger = logging.getLogger(__name__)


@dataclass
class OptimizationOutcome:
    quotes: list[UnifiedQuote]
    relaxed: bool = False  # constraints emptied the set; lowest-impact quote kept


class QuoteOptimizer:
    """Applies caller constraints, then orders by the requested target.

    When the constraints would reject every quote, the single lowest-impact
    quote is kept and the outcome is flagged as relaxed, mirroring the
    aggregators' price-impact fallback.
    """

    def __init__(
        self,
        weights: Optional[ScoreWeights] = None,
        default_max_price_impact: Decimal = Decimal("15"),
    ):
        self.weights = weights or ScoreWeights(time=Decimal("0.2"))
        self.default_max_price_impact = default_max_price_impact

    def _passes(self, quote: UnifiedQuote, opt: QuoteOptimization, ceiling: Decimal) -> bool:
        if quote.price_impact_percent > ceiling:
            return False
        if opt.max_slippage is not None and quote.slippage_tolerance_percent > opt.max_slippage:
            return False
        if opt.max_gas_cost is not None and quote.total_gas_estimate > opt.max_gas_cost:
            return False
        if opt.max_time is not None and quote.estimated_time_seconds > opt.max_time:
            return False
        return True

    def optimize(self, quotes: list[UnifiedQuote], opt: QuoteOptimization) -> OptimizationOutcome:
        if not quotes:
            return OptimizationOutcome(quotes=[])

        ceiling = Decimal(opt.max_price_impact) if opt.max_price_impact is not None else self.default_max_price_impact
        candidates = [q for q in quotes if self._passes(q, opt, ceiling)]
        relaxed = False
        if not candidates:
            candidates = [lowest_impact(quotes)]
            relaxed = True
            logger.info(
                f"Optimization constraints rejected all {len(quotes)} quote(s); "
                f"keeping lowest impact ({candidates[0].protocol})"
            )

        return OptimizationOutcome(quotes=self.order(candidates, opt, ceiling), relaxed=relaxed)

    def order(self, quotes: list[UnifiedQuote], opt: QuoteOptimization, ceiling: Decimal) -> list[UnifiedQuote]:
        target = opt.optimize_for
        if target == OptimizeFor.OUTPUT:
            return sorted(quotes, key=lambda q: (-q.to_amount, q.total_gas_estimate, q.protocol))
        if target == OptimizeFor.GAS:
            return sorted(quotes, key=lambda q: (q.total_gas_estimate, -q.to_amount, q.protocol))
        if target == OptimizeFor.TIME:
            return sorted(quotes, key=lambda q: (q.estimated_time_seconds, -q.to_amount, q.protocol))
        if target == OptimizeFor.SECURITY:
            return sorted(
                quotes,
                key=lambda q: (-q.confidence, -q.risk_assessment.score, q.price_impact_percent, -q.to_amount, q.protocol),
            )
        scored = score_quotes(quotes, self.weights, ceiling, gas_optimization=opt.gas_optimization)
        return [s.quote for s in scored]
