"""Quote aggregation core shared by the DEX and bridge aggregators.

Fans a request out to every eligible adapter under a per-adapter timeout and
an overall deadline, absorbs adapter failures, applies the price-impact
ceiling, scores the survivors and caches the result.
"""

import asyncio
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional

from uniquote.cache import QuoteCache
from uniquote.errors import (
    ApiError,
    ErrorKind,
    InvalidRequestError,
    QuoteEngineError,
    QuoteTimeoutError,
)
from uniquote.routing.base import (
    ProtocolAdapter,
    ProtocolQuote,
    QuoteKind,
    QuoteRequest,
    Token,
    TransactionParams,
    route_percentages_valid,
)
from uniquote.routing.registry import AdapterRegistry
from uniquote.routing.scoring import ScoreWeights, lowest_impact, score_quotes
from uniquote.utils.clock import new_id, now_ms

logger = logging.getLogger(__name__)


@dataclass
class AggregatorConfig:
    """Tunable behaviour of one aggregator."""

    enabled_protocols: Optional[list[str]] = None  # None = every registered adapter
    parallel: bool = True
    adapter_timeout: float = 10.0
    aggregate_deadline: float = 12.0
    max_price_impact: Decimal = Decimal("15")
    gas_optimization: bool = True
    cache_ttl: float = 30.0
    weights: ScoreWeights = field(default_factory=ScoreWeights)


@dataclass
class AggregationResult:
    """Outcome of one aggregation call.

    ``quotes`` is ranked best first. Adapter failures are reported per
    protocol in ``failures`` rather than raised.
    """

    request_id: str
    timestamp: int
    quotes: list[ProtocolQuote] = field(default_factory=list)
    best_quote: Optional[ProtocolQuote] = None
    scores: dict[str, Decimal] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
    failure_kinds: dict[str, ErrorKind] = field(default_factory=dict)
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    cached: bool = False
    price_impact_fallback: bool = False

    @property
    def success(self) -> bool:
        return self.best_quote is not None

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "timestamp": self.timestamp,
            "quotes": [q.to_dict() for q in self.quotes],
            "best_quote": self.best_quote.to_dict() if self.best_quote else None,
            "scores": {k: str(v) for k, v in self.scores.items()},
            "failures": self.failures,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "cached": self.cached,
            "price_impact_fallback": self.price_impact_fallback,
        }


def validate_quote_request(request: QuoteRequest) -> None:
    """Fail fast on requests no adapter could satisfy.

    Raises:
        InvalidRequestError
    """
    if request.from_token.identity == request.to_token.identity:
        raise InvalidRequestError("from_token and to_token must differ")
    if request.amount is None or request.amount <= 0:
        raise InvalidRequestError(f"Amount must be positive, got {request.amount}")
    slippage = request.slippage_tolerance_percent
    if slippage is None or slippage < 0 or slippage > 50:
        raise InvalidRequestError(f"Slippage must be between 0 and 50, got {slippage}")


class QuoteAggregator:
    """Aggregates quotes from a registry of adapters of one kind."""

    kind: QuoteKind = QuoteKind.SWAP
    name: str = "aggregator"

    def __init__(
        self,
        registry: AdapterRegistry,
        cache: Optional[QuoteCache] = None,
        config: Optional[AggregatorConfig] = None,
    ):
        self.registry = registry
        self.config = config or AggregatorConfig()
        self.cache = cache if cache is not None else QuoteCache(self.config.cache_ttl, name=self.name)
        self.total_requests = 0
        self.cache_hits = 0
        self.adapter_failures = 0

    def _check_request(self, request: QuoteRequest) -> None:
        validate_quote_request(request)

    def cache_key(self, request: QuoteRequest) -> str:
        return self.cache.key_for(
            request, kind=self.kind.value, protocols=request.allowed_protocols
        )

    def select_adapters(self, request: QuoteRequest) -> list[ProtocolAdapter]:
        return self.registry.select(
            request.from_token,
            request.to_token,
            enabled=self.config.enabled_protocols,
            allowed=request.allowed_protocols,
        )

    def is_pair_supported(self, from_token: Token, to_token: Token) -> bool:
        return bool(
            self.registry.select(from_token, to_token, enabled=self.config.enabled_protocols)
        )

    async def get_quote(self, request: QuoteRequest) -> AggregationResult:
        """
        Get the best quote across all eligible adapters.

        Args:
            request: Quote request

        Returns:
            AggregationResult; never raises for adapter failures
        """
        request_id = new_id(self.name)
        self.total_requests += 1

        try:
            self._check_request(request)
        except InvalidRequestError as e:
            return AggregationResult(
                request_id=request_id,
                timestamp=now_ms(),
                error=e.message,
                error_kind=e.kind,
            )

        key = self.cache_key(request)
        cached = await self.cache.get(key)
        if cached is not None:
            self.cache_hits += 1
            logger.debug(f"[{self.name}] cache hit for {request.from_token.symbol}->{request.to_token.symbol}")
            return replace(cached, request_id=request_id, timestamp=now_ms(), cached=True)

        adapters = self.select_adapters(request)
        if not adapters:
            logger.warning(
                f"[{self.name}] no enabled adapter supports "
                f"{request.from_token.symbol}@{request.from_token.chain_id} -> "
                f"{request.to_token.symbol}@{request.to_token.chain_id}"
            )
            return AggregationResult(
                request_id=request_id,
                timestamp=now_ms(),
                error="No enabled protocol supports this pair",
                error_kind=ErrorKind.NO_QUOTES_AVAILABLE,
            )

        logger.info(
            f"[{self.name}] quoting {request.amount} {request.from_token.symbol} -> "
            f"{request.to_token.symbol} via {', '.join(a.protocol for a in adapters)}"
        )
        if self.config.parallel:
            quotes, failures = await self._collect_parallel(adapters, request)
        else:
            quotes, failures = await self._collect_sequential(adapters, request)

        result = AggregationResult(request_id=request_id, timestamp=now_ms())
        for protocol, error in failures.items():
            result.failures[protocol] = str(error)
            result.failure_kinds[protocol] = (
                error.kind if isinstance(error, QuoteEngineError) else ErrorKind.UNKNOWN
            )
        self.adapter_failures += len(failures)

        if not quotes:
            result.error = "No quotes available"
            if failures:
                result.error += ": " + "; ".join(f"{p}: {e}" for p, e in sorted(result.failures.items()))
            result.error_kind = ErrorKind.NO_QUOTES_AVAILABLE
            logger.warning(f"[{self.name}] {result.error}")
            return result

        scored, fallback = self.rank(quotes)
        result.quotes = [s.quote for s in scored]
        result.scores = {s.quote.protocol: s.score for s in scored}
        result.best_quote = result.quotes[0]
        result.price_impact_fallback = fallback

        best = result.best_quote
        logger.info(
            f"[{self.name}] {len(quotes)}/{len(adapters)} quote(s); best {best.protocol}: "
            f"{best.to_amount} {best.to_token.symbol} (impact {best.price_impact_percent}%)"
            + (" [price impact fallback]" if fallback else "")
        )

        await self.cache.set(key, result, ttl=self.config.cache_ttl)
        return result

    def rank(self, quotes: list[ProtocolQuote]):
        """Apply the price-impact ceiling and score.

        Returns:
            (scored quotes best first, whether the lowest-impact fallback was used)
        """
        ceiling = Decimal(self.config.max_price_impact)
        within = [q for q in quotes if q.price_impact_percent <= ceiling]
        fallback = False
        if not within:
            within = [lowest_impact(quotes)]
            fallback = True
            logger.warning(
                f"[{self.name}] every quote exceeds {ceiling}% price impact; "
                f"falling back to lowest impact ({within[0].protocol})"
            )
        scored = score_quotes(
            within,
            self.config.weights,
            ceiling,
            gas_optimization=self.config.gas_optimization,
        )
        return scored, fallback

    async def _call_adapter(
        self, adapter: ProtocolAdapter, request: QuoteRequest, timeout: float
    ) -> ProtocolQuote:
        try:
            quote = await asyncio.wait_for(adapter.get_quote(request), timeout=timeout)
        except asyncio.TimeoutError:
            raise QuoteTimeoutError(
                f"No response within {timeout:.2f}s", protocol=adapter.protocol
            ) from None
        if quote.to_amount <= 0:
            raise ApiError("Quote has non-positive output", protocol=adapter.protocol)
        if not route_percentages_valid(quote.route):
            raise ApiError("Quote route percentages do not sum to 100", protocol=adapter.protocol)
        return quote

    def _record_failure(self, failures: dict, adapter: ProtocolAdapter, error: BaseException) -> None:
        failures[adapter.protocol] = error
        if isinstance(error, QuoteEngineError):
            logger.warning(f"[{self.name}] {adapter.protocol} failed: {error}")
        else:
            logger.warning(
                f"[{self.name}] {adapter.protocol} failed: {type(error).__name__}: {error}"
            )

    async def _collect_parallel(
        self, adapters: list[ProtocolAdapter], request: QuoteRequest
    ) -> tuple[list[ProtocolQuote], dict[str, BaseException]]:
        tasks = {
            asyncio.create_task(
                self._call_adapter(adapter, request, self.config.adapter_timeout)
            ): adapter
            for adapter in adapters
        }
        try:
            done, pending = await asyncio.wait(tasks, timeout=self.config.aggregate_deadline)
        finally:
            # Also reached when the caller cancels us
            for task in tasks:
                if not task.done():
                    task.cancel()

        quotes: list[ProtocolQuote] = []
        failures: dict[str, BaseException] = {}
        for task, adapter in tasks.items():
            if task in pending:
                self._record_failure(
                    failures,
                    adapter,
                    QuoteTimeoutError(
                        f"Aggregate deadline of {self.config.aggregate_deadline}s exceeded",
                        protocol=adapter.protocol,
                    ),
                )
                continue
            error = task.exception()
            if error is not None:
                self._record_failure(failures, adapter, error)
            else:
                quotes.append(task.result())
        return quotes, failures

    async def _collect_sequential(
        self, adapters: list[ProtocolAdapter], request: QuoteRequest
    ) -> tuple[list[ProtocolQuote], dict[str, BaseException]]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.aggregate_deadline
        quotes: list[ProtocolQuote] = []
        failures: dict[str, BaseException] = {}

        for adapter in adapters:
            remaining = deadline - loop.time()
            if remaining <= 0:
                self._record_failure(
                    failures,
                    adapter,
                    QuoteTimeoutError("Aggregate deadline exceeded", protocol=adapter.protocol),
                )
                continue
            try:
                quotes.append(
                    await self._call_adapter(
                        adapter, request, min(self.config.adapter_timeout, remaining)
                    )
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._record_failure(failures, adapter, e)
        return quotes, failures

    async def build_transaction(
        self,
        quote: ProtocolQuote,
        user_address: str,
        deadline: Optional[int] = None,
    ) -> TransactionParams:
        """Build transaction parameters through the adapter that produced the quote.

        Raises:
            InvalidRequestError: no adapter registered for the quote's protocol
            QuoteExpiredError: the quote is stale
        """
        adapter = self.registry.get(quote.protocol)
        if adapter is None:
            raise InvalidRequestError(f"No adapter registered for {quote.protocol}")
        return await adapter.build_transaction(quote, user_address, deadline)

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "protocols": self.registry.protocols,
            "enabled_protocols": self.config.enabled_protocols,
            "parallel": self.config.parallel,
            "total_requests": self.total_requests,
            "cache_hits": self.cache_hits,
            "adapter_failures": self.adapter_failures,
            "cache": self.cache.stats(),
        }

    async def close(self) -> None:
        await self.cache.stop_sweeper()
        await self.registry.close()
