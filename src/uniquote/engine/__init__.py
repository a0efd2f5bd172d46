"""Unified quote engine: routing, normalization and optimization."""

from uniquote.engine.events import EventChannel, QuoteDelivered, QuoteEvent, QuoteFailed
from uniquote.engine.optimizer import OptimizationOutcome, QuoteOptimizer
from uniquote.engine.quote_engine import QuoteEngine, transaction_for_quote
from uniquote.engine.types import (
    OptimizeFor,
    QuoteOptimization,
    QuoteState,
    QuoteWarning,
    RiskAssessment,
    UnifiedQuote,
    UnifiedQuoteRequest,
    UnifiedQuoteResponse,
)
from uniquote.engine.warnings import WarningThresholds, quote_warnings

__all__ = [
    "QuoteEngine",
    "QuoteState",
    "OptimizeFor",
    "QuoteOptimization",
    "QuoteWarning",
    "RiskAssessment",
    "UnifiedQuote",
    "UnifiedQuoteRequest",
    "UnifiedQuoteResponse",
    "QuoteOptimizer",
    "OptimizationOutcome",
    "WarningThresholds",
    "quote_warnings",
    "EventChannel",
    "QuoteDelivered",
    "QuoteFailed",
    "QuoteEvent",
    "transaction_for_quote",
]
