"""Request, response and quote types exposed by the quote engine."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from uniquote.errors import ErrorKind
from uniquote.routing.base import ProtocolQuote, QuoteKind, RouteStep, Token
from uniquote.security.types import RiskLevel, SecurityValidationResult
from uniquote.utils.clock import now_ms


class QuoteState(str, Enum):
    """Quote request state machine states."""

    RECEIVED = "received"
    VALIDATED = "validated"
    ROUTED = "routed"
    AGGREGATED = "aggregated"
    OPTIMIZED = "optimized"
    DELIVERED = "delivered"
    REJECTED = "rejected"
    FAILED = "failed"


class OptimizeFor(str, Enum):
    OUTPUT = "output"
    GAS = "gas"
    TIME = "time"
    SECURITY = "security"
    BALANCED = "balanced"


@dataclass
class QuoteOptimization:
    """Caller preferences applied after aggregation."""

    optimize_for: OptimizeFor = OptimizeFor.BALANCED
    max_slippage: Optional[Decimal] = None
    max_price_impact: Optional[Decimal] = None
    max_gas_cost: Optional[int] = None  # gas units
    max_time: Optional[int] = None  # seconds
    mev_protection: bool = True
    gas_optimization: bool = True


@dataclass
class QuoteWarning:
    type: str
    message: str
    severity: str  # low | medium | high
    recommendation: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "severity": self.severity,
            "recommendation": self.recommendation,
        }


@dataclass
class RiskAssessment:
    overall: RiskLevel
    factors: list[str] = field(default_factory=list)
    score: int = 100

    @classmethod
    def from_security_result(cls, result: SecurityValidationResult) -> "RiskAssessment":
        return cls(overall=result.overall, factors=result.factors, score=result.score)

    @classmethod
    def from_quote(cls, quote: ProtocolQuote) -> "RiskAssessment":
        """Heuristic assessment used until a security validation replaces it."""
        factors: list[str] = []
        penalty = 0
        level = RiskLevel.LOW

        def raise_to(new_level: RiskLevel) -> None:
            nonlocal level
            order = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]
            if order.index(new_level) > order.index(level):
                level = new_level

        if quote.price_impact_percent > 10:
            factors.append("Very high price impact")
            penalty += 35
            raise_to(RiskLevel.HIGH)
        elif quote.price_impact_percent > 5:
            factors.append("High price impact")
            penalty += 15
            raise_to(RiskLevel.MEDIUM)
        if quote.confidence < Decimal("0.8"):
            factors.append("Low quote confidence")
            penalty += 15
            raise_to(RiskLevel.MEDIUM)
        for token in (quote.from_token, quote.to_token):
            if not token.verified:
                factors.append(f"Unverified token {token.symbol}")
                penalty += 15
                raise_to(RiskLevel.MEDIUM)
        if quote.kind == QuoteKind.BRIDGE:
            factors.append("Cross-chain transfer")
            penalty += 5
        return cls(overall=level, factors=factors, score=max(0, 100 - penalty))

    def to_dict(self) -> dict:
        return {"overall": self.overall.value, "factors": self.factors, "score": self.score}


@dataclass
class UnifiedQuoteRequest:
    """Public request shape. ``amount`` and ``slippage`` may be strings."""

    from_token: Token
    to_token: Token
    amount: Any
    slippage: Any = Decimal("0.5")
    user_address: Optional[str] = None
    cross_chain: bool = False
    protocols: Optional[list[str]] = None
    optimization: Optional[QuoteOptimization] = None
    deadline: Optional[int] = None  # unix seconds


@dataclass
class UnifiedQuote:
    """Normalized quote for both swaps and bridges."""

    id: str
    kind: QuoteKind
    from_token: Token
    to_token: Token
    from_amount: Decimal
    to_amount: Decimal
    to_amount_minimum: Decimal
    route: list[RouteStep]
    total_gas_estimate: int
    total_fee: Decimal
    price_impact_percent: Decimal
    slippage_tolerance_percent: Decimal
    estimated_time_seconds: int
    confidence: Decimal
    valid_until: int
    risk_assessment: RiskAssessment
    warnings: list[QuoteWarning] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    mev_protected: bool = False
    gas_optimized: bool = False
    source_quote: Optional[ProtocolQuote] = field(default=None, repr=False, compare=False)

    @property
    def protocol(self) -> str:
        return self.metadata.get("protocol", "")

    @property
    def gas_estimate(self) -> int:
        return self.total_gas_estimate

    @property
    def is_expired(self) -> bool:
        return now_ms() > self.valid_until

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "from_token": self.from_token.to_dict(),
            "to_token": self.to_token.to_dict(),
            "from_amount": str(self.from_amount),
            "to_amount": str(self.to_amount),
            "to_amount_minimum": str(self.to_amount_minimum),
            "route": [step.to_dict() for step in self.route],
            "total_gas_estimate": self.total_gas_estimate,
            "total_fee": str(self.total_fee),
            "price_impact_percent": str(self.price_impact_percent),
            "slippage_tolerance_percent": str(self.slippage_tolerance_percent),
            "estimated_time_seconds": self.estimated_time_seconds,
            "confidence": str(self.confidence),
            "valid_until": self.valid_until,
            "warnings": [w.to_dict() for w in self.warnings],
            "risk_assessment": self.risk_assessment.to_dict(),
            "metadata": self.metadata,
            "mev_protected": self.mev_protected,
            "gas_optimized": self.gas_optimized,
        }


@dataclass
class UnifiedQuoteResponse:
    request_id: str
    timestamp: int
    state: QuoteState
    quotes: list[UnifiedQuote] = field(default_factory=list)
    best_quote: Optional[UnifiedQuote] = None
    warnings: list[QuoteWarning] = field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    failures: dict[str, str] = field(default_factory=dict)
    security: Optional[SecurityValidationResult] = None
    cached: bool = False
    processing_time_ms: int = 0

    @property
    def success(self) -> bool:
        return self.best_quote is not None and self.error is None

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "timestamp": self.timestamp,
            "state": self.state.value,
            "quotes": [q.to_dict() for q in self.quotes],
            "best_quote": self.best_quote.to_dict() if self.best_quote else None,
            "warnings": [w.to_dict() for w in self.warnings],
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "failures": self.failures,
            "security": self.security.to_dict() if self.security else None,
            "cached": self.cached,
            "processing_time_ms": self.processing_time_ms,
        }
