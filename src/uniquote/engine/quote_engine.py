"""
Unified quote engine.

Routes a request to the DEX or bridge aggregator, normalizes the result into
UnifiedQuotes, applies the caller's optimization preferences and attaches
warnings and a risk assessment.

Request lifecycle:
    received -> validated -> routed -> aggregated -> optimized -> delivered
    received -> rejected (invalid request or security block)
    any stage -> failed
"""

import asyncio
import logging
import time
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from eth_utils import is_address

from uniquote.cache import QuoteCache
from uniquote.engine.events import EventChannel, QuoteDelivered, QuoteEvent, QuoteFailed
from uniquote.engine.optimizer import QuoteOptimizer
from uniquote.engine.types import (
    QuoteOptimization,
    QuoteState,
    QuoteWarning,
    RiskAssessment,
    UnifiedQuote,
    UnifiedQuoteRequest,
    UnifiedQuoteResponse,
)
from uniquote.engine.warnings import WarningThresholds, quote_warnings
from uniquote.errors import (
    ErrorKind,
    InvalidRequestError,
    QuoteEngineError,
    QuoteExpiredError,
)
from uniquote.routing.aggregator import AggregationResult, QuoteAggregator
from uniquote.routing.base import (
    ProtocolQuote,
    QuoteKind,
    QuoteRequest,
    Token,
    TransactionParams,
)
from uniquote.routing.scoring import ScoreWeights
from uniquote.security.types import SecurityValidationResult, Transaction
from uniquote.security.validator import SecurityValidator
from uniquote.utils.clock import new_id, now_ms

logger = logging.getLogger(__name__)

MAX_SLIPPAGE_PERCENT = Decimal("50")


def _parse_decimal(value: Any, field_name: str) -> Decimal:
    try:
        parsed = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidRequestError(f"{field_name} is not a number: {value!r}") from None
    if not parsed.is_finite():
        raise InvalidRequestError(f"{field_name} must be finite, got {value!r}")
    return parsed


def _check_address(address: str, field_name: str) -> None:
    if not isinstance(address, str) or not is_address(address.lower()):
        raise InvalidRequestError(f"{field_name} is not a valid address: {address!r}")


class QuoteEngine:
    """Single entry point for swap and bridge quotes."""

    def __init__(
        self,
        dex_aggregator: QuoteAggregator,
        bridge_aggregator: QuoteAggregator,
        settings: Optional[Any] = None,
        validator: Optional[SecurityValidator] = None,
        cache: Optional[QuoteCache] = None,
        events: Optional[EventChannel[QuoteEvent]] = None,
        optimizer: Optional[QuoteOptimizer] = None,
        thresholds: Optional[WarningThresholds] = None,
    ):
        """
        Initialize engine.

        Args:
            dex_aggregator: Aggregator for same-chain swaps
            bridge_aggregator: Aggregator for cross-chain transfers
            settings: Settings instance; defaults are used when omitted
            validator: Optional security gate for the best quote
            cache: Engine-level response cache
            events: Channel receiving QuoteDelivered / QuoteFailed events
            optimizer: Post-aggregation optimizer
            thresholds: Warning thresholds
        """
        self.dex_aggregator = dex_aggregator
        self.bridge_aggregator = bridge_aggregator
        self.settings = settings
        self.validator = validator
        self.events = events

        cache_ttl = getattr(settings, "engine_cache_ttl", 30)
        self.cache_ttl = cache_ttl
        self.cache: QuoteCache[UnifiedQuoteResponse] = (
            cache if cache is not None else QuoteCache(cache_ttl, name="engine")
        )

        if optimizer is None:
            if settings is not None:
                optimizer = QuoteOptimizer(
                    weights=ScoreWeights.from_settings(settings, include_time=True),
                    default_max_price_impact=Decimal(str(settings.max_price_impact)),
                )
            else:
                optimizer = QuoteOptimizer()
        self.optimizer = optimizer

        if thresholds is None:
            thresholds = WarningThresholds.from_settings(settings) if settings is not None else WarningThresholds()
        self.thresholds = thresholds

        self.validate_best_quote = getattr(settings, "validate_best_quote", True)
        self.mev_protection = getattr(settings, "mev_protection", True)
        self.gas_optimization = getattr(settings, "gas_optimization", True)
        self.total_requests = 0
        self.failed_requests = 0

    # ======================
    # Public API
    # ======================

    async def get_quote(self, request: UnifiedQuoteRequest) -> UnifiedQuoteResponse:
        """
        Get unified quotes for a swap or bridge.

        Args:
            request: Public quote request

        Returns:
            UnifiedQuoteResponse; failures are reported in the response
        """
        started = time.perf_counter()
        request_id = new_id("req")
        self.total_requests += 1
        state = QuoteState.RECEIVED

        try:
            quote_request, optimization = self._validate(request)
        except InvalidRequestError as e:
            logger.info(f"Rejected quote request {request_id}: {e.message}")
            response = self._error_response(
                request_id, QuoteState.REJECTED, e.message, e.kind, started
            )
            self._publish_failure(response)
            return response
        state = QuoteState.VALIDATED

        cross_chain = quote_request.is_cross_chain or quote_request.force_bridge
        key = self.cache.key_for(
            quote_request,
            from_chain=quote_request.from_token.chain_id,
            to_chain=quote_request.to_token.chain_id,
            cross_chain=cross_chain,
            target=optimization.optimize_for.value,
            constraints={
                "max_slippage": optimization.max_slippage,
                "max_price_impact": optimization.max_price_impact,
                "max_gas_cost": optimization.max_gas_cost,
                "max_time": optimization.max_time,
                "gas_optimization": optimization.gas_optimization,
                "mev_protection": optimization.mev_protection,
            },
            protocols=quote_request.allowed_protocols,
            user=quote_request.user_address.lower() if quote_request.user_address else None,
        )
        cached = await self.cache.get(key)
        if cached is not None:
            logger.debug(f"Engine cache hit for {request_id}")
            response = replace(
                cached,
                request_id=request_id,
                timestamp=now_ms(),
                cached=True,
                processing_time_ms=self._elapsed_ms(started),
            )
            self._publish_delivery(response)
            return response

        try:
            aggregator = self.bridge_aggregator if cross_chain else self.dex_aggregator
            state = QuoteState.ROUTED
            logger.debug(f"{request_id} routed to {aggregator.name} aggregator")

            result = await aggregator.get_quote(quote_request)
            state = QuoteState.AGGREGATED

            if not result.quotes:
                rejected = result.error_kind == ErrorKind.INVALID_REQUEST
                response = self._error_response(
                    request_id,
                    QuoteState.REJECTED if rejected else QuoteState.FAILED,
                    result.error or "No quotes available",
                    result.error_kind or ErrorKind.NO_QUOTES_AVAILABLE,
                    started,
                )
                response.failures = dict(result.failures)
                if rejected:
                    logger.info(f"Rejected quote request {request_id}: {response.error}")
                else:
                    self.failed_requests += 1
                self._publish_failure(response)
                return response

            unified = [
                self._to_unified(quote, result, optimization, request_id)
                for quote in result.quotes
            ]
            outcome = self.optimizer.optimize(unified, optimization)
            state = QuoteState.OPTIMIZED

            response = UnifiedQuoteResponse(
                request_id=request_id,
                timestamp=now_ms(),
                state=state,
                quotes=outcome.quotes,
                best_quote=outcome.quotes[0],
                failures=dict(result.failures),
            )
            # an aggregator fallback already explains why the constraints could not hold
            relaxed = outcome.relaxed and not result.price_impact_fallback
            response.warnings = self._response_warnings(response.best_quote, result, relaxed)

            if self._should_validate(request):
                security = await self._validate_best(response.best_quote, request)
                response.security = security
                response.best_quote.risk_assessment = RiskAssessment.from_security_result(security)
                if not security.passed:
                    reasons = "; ".join(b.message for b in security.blockers)
                    response.state = QuoteState.REJECTED
                    response.error = f"Best quote blocked by security validation: {reasons}"
                    response.error_kind = ErrorKind.SECURITY_BLOCKED
                    response.best_quote = None
                    response.processing_time_ms = self._elapsed_ms(started)
                    logger.warning(f"{request_id}: {response.error}")
                    self._publish_failure(response)
                    return response

            response.state = QuoteState.DELIVERED
            response.processing_time_ms = self._elapsed_ms(started)
            await self.cache.set(key, response, ttl=self.cache_ttl)

            best = response.best_quote
            logger.info(
                f"{request_id} delivered {len(response.quotes)} quote(s); best {best.protocol}: "
                f"{best.to_amount} {best.to_token.symbol} in {response.processing_time_ms}ms"
            )
            self._publish_delivery(response)
            return response

        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Quote request {request_id} failed in state {state.value}")
            self.failed_requests += 1
            kind = e.kind if isinstance(e, QuoteEngineError) else ErrorKind.UNKNOWN
            response = self._error_response(request_id, QuoteState.FAILED, str(e), kind, started)
            self._publish_failure(response)
            return response

    async def build_transaction(
        self,
        quote: UnifiedQuote,
        user_address: str,
        deadline: Optional[int] = None,
    ) -> TransactionParams:
        """
        Build transaction parameters for a delivered quote.

        Raises:
            QuoteExpiredError: the quote is no longer valid
            InvalidRequestError: the quote was not produced by this engine
        """
        if quote.is_expired:
            raise QuoteExpiredError(
                "Quote expired, request a new one", protocol=quote.protocol
            )
        if quote.source_quote is None:
            raise InvalidRequestError("Quote has no source protocol quote")
        _check_address(user_address, "user_address")

        aggregator = self.bridge_aggregator if quote.kind == QuoteKind.BRIDGE else self.dex_aggregator
        return await aggregator.build_transaction(quote.source_quote, user_address, deadline)

    def start(self, sweep_interval: float) -> None:
        """Start background cache sweepers on the running loop."""
        for cache in (self.cache, self.dex_aggregator.cache, self.bridge_aggregator.cache):
            cache.start_sweeper(sweep_interval)

    async def close(self) -> None:
        await self.cache.stop_sweeper()
        await self.dex_aggregator.close()
        await self.bridge_aggregator.close()

    def get_stats(self) -> dict:
        return {
            "total_requests": self.total_requests,
            "failed_requests": self.failed_requests,
            "cache": self.cache.stats(),
            "dex": self.dex_aggregator.get_stats(),
            "bridge": self.bridge_aggregator.get_stats(),
            "security_validation": self.validator is not None and self.validate_best_quote,
        }

    # ======================
    # Pipeline stages
    # ======================

    def _validate(self, request: UnifiedQuoteRequest) -> tuple[QuoteRequest, QuoteOptimization]:
        if not isinstance(request.from_token, Token) or not isinstance(request.to_token, Token):
            raise InvalidRequestError("from_token and to_token are required")

        amount = _parse_decimal(request.amount, "amount")
        if amount <= 0:
            raise InvalidRequestError(f"Amount must be positive, got {request.amount}")

        slippage = _parse_decimal(request.slippage, "slippage")
        if slippage < 0 or slippage > MAX_SLIPPAGE_PERCENT:
            raise InvalidRequestError(
                f"Slippage must be between 0 and {MAX_SLIPPAGE_PERCENT}, got {request.slippage}"
            )

        if request.from_token.identity == request.to_token.identity:
            raise InvalidRequestError("from_token and to_token must differ")

        _check_address(request.from_token.address, "from_token.address")
        _check_address(request.to_token.address, "to_token.address")
        if request.user_address is not None:
            _check_address(request.user_address, "user_address")

        optimization = request.optimization or QuoteOptimization()
        if not self.gas_optimization and optimization.gas_optimization:
            # configuration switches the gas term off for every caller
            optimization = replace(optimization, gas_optimization=False)
        for name in ("max_slippage", "max_price_impact", "max_gas_cost", "max_time"):
            value = getattr(optimization, name)
            if value is not None and value < 0:
                raise InvalidRequestError(f"optimization.{name} must not be negative")

        protocols = [p.lower() for p in request.protocols] if request.protocols else None
        return (
            QuoteRequest(
                from_token=request.from_token,
                to_token=request.to_token,
                amount=amount,
                slippage_tolerance_percent=slippage,
                user_address=request.user_address,
                allowed_protocols=protocols,
                force_bridge=bool(request.cross_chain),
            ),
            optimization,
        )

    def _to_unified(
        self,
        quote: ProtocolQuote,
        result: AggregationResult,
        optimization: QuoteOptimization,
        request_id: str,
    ) -> UnifiedQuote:
        unified = UnifiedQuote(
            id=new_id("quote"),
            kind=quote.kind,
            from_token=quote.from_token,
            to_token=quote.to_token,
            from_amount=quote.from_amount,
            to_amount=quote.to_amount,
            to_amount_minimum=quote.to_amount_minimum,
            route=list(quote.route),
            total_gas_estimate=quote.gas_estimate,
            total_fee=quote.fee_amount,
            price_impact_percent=quote.price_impact_percent,
            slippage_tolerance_percent=quote.slippage_tolerance_percent,
            estimated_time_seconds=quote.estimated_time_seconds,
            confidence=quote.confidence,
            valid_until=quote.valid_until,
            risk_assessment=RiskAssessment.from_quote(quote),
            metadata={
                "protocol": quote.protocol,
                "request_id": request_id,
                "aggregation_id": result.request_id,
                "score": str(result.scores[quote.protocol]) if quote.protocol in result.scores else None,
                "price_impact_fallback": result.price_impact_fallback,
                "aggregator_cached": result.cached,
            },
            mev_protected=optimization.mev_protection and self.mev_protection,
            gas_optimized=optimization.gas_optimization,
            source_quote=quote,
        )
        unified.warnings = quote_warnings(unified, self.thresholds)
        return unified

    def _response_warnings(
        self,
        best: UnifiedQuote,
        result: AggregationResult,
        relaxed: bool,
    ) -> list[QuoteWarning]:
        warnings = list(best.warnings)
        if result.price_impact_fallback:
            warnings.append(
                QuoteWarning(
                    type="price_impact_fallback",
                    message="Every quote exceeds the price impact ceiling; showing the lowest impact route",
                    severity="high",
                    recommendation="Reduce the trade size",
                )
            )
        if relaxed:
            warnings.append(
                QuoteWarning(
                    type="constraints_relaxed",
                    message="No quote satisfies the optimization constraints; showing the lowest impact route",
                    severity="high",
                    recommendation="Review the quote before executing or loosen the constraints",
                )
            )
        if result.failures:
            warnings.append(
                QuoteWarning(
                    type="partial_failure",
                    message=f"{len(result.failures)} protocol(s) failed to quote: "
                    + ", ".join(sorted(result.failures)),
                    severity="low",
                )
            )
        return warnings

    def _should_validate(self, request: UnifiedQuoteRequest) -> bool:
        return self.validator is not None and self.validate_best_quote and bool(request.user_address)

    async def _validate_best(
        self, quote: UnifiedQuote, request: UnifiedQuoteRequest
    ) -> SecurityValidationResult:
        transaction = transaction_for_quote(quote, request.user_address, request.deadline)
        return await self.validator.validate_transaction(transaction)

    # ======================
    # Helpers
    # ======================

    @staticmethod
    def _elapsed_ms(started: float) -> int:
        return int((time.perf_counter() - started) * 1000)

    def _error_response(
        self,
        request_id: str,
        state: QuoteState,
        message: str,
        kind: ErrorKind,
        started: float,
    ) -> UnifiedQuoteResponse:
        return UnifiedQuoteResponse(
            request_id=request_id,
            timestamp=now_ms(),
            state=state,
            error=message,
            error_kind=kind,
            processing_time_ms=self._elapsed_ms(started),
        )

    def _publish_delivery(self, response: UnifiedQuoteResponse) -> None:
        if self.events is None or response.best_quote is None:
            return
        best = response.best_quote
        self.events.publish(
            QuoteDelivered(
                request_id=response.request_id,
                quote_id=best.id,
                kind=best.kind.value,
                protocol=best.protocol,
                to_amount=str(best.to_amount),
                cached=response.cached,
                processing_time_ms=response.processing_time_ms,
            )
        )

    def _publish_failure(self, response: UnifiedQuoteResponse) -> None:
        if self.events is None:
            return
        self.events.publish(
            QuoteFailed(
                request_id=response.request_id,
                state=response.state.value,
                error_kind=response.error_kind.value if response.error_kind else None,
                message=response.error or "",
            )
        )


def transaction_for_quote(
    quote: UnifiedQuote, user_address: str, deadline: Optional[int] = None
) -> Transaction:
    """The transaction a quote implies, for security validation before building it."""
    target = (quote.source_quote.route_details.get("router") or None) if quote.source_quote else None
    if target is None:
        target = next(
            (step.pool_or_contract_address for step in quote.route if step.pool_or_contract_address),
            None,
        )
    if target is None:
        target = quote.to_token.address

    value = quote.from_token.to_base_units(quote.from_amount) if quote.from_token.is_native else 0
    return Transaction(
        to=target,
        from_address=user_address,
        chain_id=quote.from_token.chain_id,
        value=value,
        gas_limit=quote.total_gas_estimate,
        tokens=[quote.from_token, quote.to_token],
        amount=quote.from_amount,
        slippage=quote.slippage_tolerance_percent,
        deadline=deadline,
    )
