"""Dry-run adapters producing simulated quotes without network access."""

import asyncio
import logging
import random
from decimal import Decimal
from typing import Optional

from uniquote.routing.base import (
    BridgeStatus,
    BridgeTransferState,
    ProtocolAdapter,
    ProtocolQuote,
    QuoteKind,
    QuoteRequest,
    RouteStep,
    Token,
    TransactionParams,
    minimum_output,
)
from uniquote.routing.prices import SIMULATED_PRICES
from uniquote.utils.clock import now_ms

logger = logging.getLogger(__name__)

SIMULATED_ROUTER = "0x" + "00" * 19 + "01"


class SimulatedAdapter(ProtocolAdapter):
    """
    Simulated adapter for dry runs and tests.

    Quotes are derived from SIMULATED_PRICES (or a fixed ``rate`` / ``to_amount``)
    with a configurable fee, so runs are reproducible unless
    ``add_random_variance`` is set.
    """

    def __init__(
        self,
        protocol: str = "simulated",
        kind: QuoteKind = QuoteKind.SWAP,
        fee_percent: Decimal = Decimal("0.3"),
        price_impact_percent: Decimal = Decimal("0.1"),
        gas_estimate: int = 150_000,
        confidence: Decimal = Decimal("0.9"),
        estimated_time_seconds: Optional[int] = None,
        rate: Optional[Decimal] = None,
        to_amount: Optional[Decimal] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        validity_ms: int = 30_000,
        add_random_variance: bool = False,
        same_chain: bool = False,
    ):
        self._protocol = protocol
        self._kind = kind
        self.fee_percent = fee_percent
        self.price_impact_percent = price_impact_percent
        self.gas_estimate = gas_estimate
        self.confidence = confidence
        if estimated_time_seconds is None:
            estimated_time_seconds = 300 if kind == QuoteKind.BRIDGE else 60
        self.estimated_time_seconds = estimated_time_seconds
        self.rate = rate
        self.to_amount = to_amount
        self.delay = delay
        self.error = error
        self.validity_ms = validity_ms
        self.add_random_variance = add_random_variance
        # bridges only: also quote two tokens of one chain
        self.same_chain = same_chain
        self.calls = 0
        self.statuses: dict[str, BridgeStatus] = {}

    @property
    def protocol(self) -> str:
        return self._protocol

    @property
    def kind(self) -> QuoteKind:
        return self._kind

    @property
    def supported_chains(self) -> list[int]:
        return [1, 10, 56, 137, 8453, 42161, 43114]

    def _rate(self, from_token: Token, to_token: Token) -> Optional[Decimal]:
        if self.rate is not None:
            return self.rate
        from_price = SIMULATED_PRICES.get(from_token.symbol.upper())
        to_price = SIMULATED_PRICES.get(to_token.symbol.upper())
        if not from_price or not to_price:
            return None
        return from_price / to_price

    def supports_pair(self, from_token: Token, to_token: Token) -> bool:
        cross_chain = from_token.chain_id != to_token.chain_id
        if self._kind == QuoteKind.BRIDGE:
            if not cross_chain and not self.same_chain:
                return False
        elif cross_chain:
            return False
        return self.to_amount is not None or self._rate(from_token, to_token) is not None

    async def get_quote(self, request: QuoteRequest) -> ProtocolQuote:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

        if self.to_amount is not None:
            to_amount = self.to_amount
        else:
            rate = self._rate(request.from_token, request.to_token) or Decimal("0")
            if self.add_random_variance:
                rate *= Decimal(str(1 + random.uniform(-0.005, 0.005)))
            gross = request.amount * rate
            to_amount = gross - gross * self.fee_percent / Decimal("100")

        step_action = "bridge" if self._kind == QuoteKind.BRIDGE else "swap"
        return ProtocolQuote(
            protocol=self.protocol,
            kind=self._kind,
            from_token=request.from_token,
            to_token=request.to_token,
            from_amount=request.amount,
            to_amount=to_amount,
            to_amount_minimum=minimum_output(to_amount, request.slippage_tolerance_percent),
            slippage_tolerance_percent=request.slippage_tolerance_percent,
            price_impact_percent=self.price_impact_percent,
            gas_estimate=self.gas_estimate,
            route=[
                RouteStep(
                    protocol=self.protocol,
                    from_token=request.from_token,
                    to_token=request.to_token,
                    percentage_of_total=Decimal("100"),
                    pool_or_contract_address=SIMULATED_ROUTER,
                    action=step_action,
                )
            ],
            valid_until=now_ms() + self.validity_ms,
            confidence=self.confidence,
            fee_amount=request.amount * self.fee_percent / Decimal("100"),
            estimated_time_seconds=self.estimated_time_seconds,
            route_details={"simulated": True},
        )

    async def _build_transaction(
        self,
        quote: ProtocolQuote,
        user_address: str,
        deadline: Optional[int],
    ) -> TransactionParams:
        value = quote.from_token.to_base_units(quote.from_amount) if quote.from_token.is_native else 0
        return TransactionParams(
            chain_id=quote.from_token.chain_id,
            to=SIMULATED_ROUTER,
            data="0x",
            value=value,
            gas_limit=quote.gas_estimate,
        )

    async def get_status(self, tx_hash: str) -> BridgeStatus:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.statuses.get(
            tx_hash,
            BridgeStatus(id=tx_hash, protocol=self.protocol, status=BridgeTransferState.COMPLETED),
        )


def create_simulated_dex_adapters(protocols: list[str]) -> list[SimulatedAdapter]:
    """Simulated swap adapters with slightly different economics per protocol."""
    adapters = []
    for index, protocol in enumerate(protocols):
        adapters.append(
            SimulatedAdapter(
                protocol=protocol,
                kind=QuoteKind.SWAP,
                fee_percent=Decimal("0.3") + Decimal("0.05") * index,
                gas_estimate=150_000 + 20_000 * index,
                confidence=Decimal("0.95") - Decimal("0.02") * index,
            )
        )
    return adapters


def create_simulated_bridge_adapters(protocols: list[str]) -> list[SimulatedAdapter]:
    """Simulated bridge adapters."""
    adapters = []
    for index, protocol in enumerate(protocols):
        adapters.append(
            SimulatedAdapter(
                protocol=protocol,
                kind=QuoteKind.BRIDGE,
                fee_percent=Decimal("0.06") + Decimal("0.1") * index,
                gas_estimate=260_000,
                confidence=Decimal("0.95") - Decimal("0.05") * index,
                estimated_time_seconds=300 + 300 * index,
                validity_ms=60_000,
                same_chain=protocol == "thorchain",
            )
        )
    return adapters
