"""Abstract protocol adapter interface and the quote data model."""

import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Optional

from uniquote.errors import QuoteExpiredError
from uniquote.utils.clock import now_ms

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
NATIVE_TOKEN_ADDRESS = "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE"

HUNDRED = Decimal("100")


class QuoteKind(str, Enum):
    SWAP = "swap"
    BRIDGE = "bridge"


@dataclass(frozen=True)
class Token:
    """A token on a specific chain."""

    address: str
    symbol: str
    decimals: int
    chain_id: int
    verified: bool = True
    risk_level: Optional[str] = None

    @property
    def identity(self) -> tuple[int, str]:
        """Tokens are equal by chain and case-insensitive address."""
        return (self.chain_id, self.address.lower())

    @property
    def is_native(self) -> bool:
        return self.address.lower() in (ZERO_ADDRESS, NATIVE_TOKEN_ADDRESS.lower())

    def to_base_units(self, amount: Decimal) -> int:
        """Convert a human amount to integer base units (wei-style)."""
        scaled = (amount * (Decimal(10) ** self.decimals)).quantize(Decimal(1), rounding=ROUND_DOWN)
        return int(scaled)

    def from_base_units(self, raw: int | str) -> Decimal:
        """Convert integer base units back to a human amount."""
        return Decimal(str(raw)) / (Decimal(10) ** self.decimals)

    def to_dict(self) -> dict:
        return {
            "address": self.address,
            "symbol": self.symbol,
            "decimals": self.decimals,
            "chain_id": self.chain_id,
            "verified": self.verified,
            "risk_level": self.risk_level,
        }


@dataclass
class QuoteRequest:
    """Request handed to aggregators and adapters."""

    from_token: Token
    to_token: Token
    amount: Decimal
    slippage_tolerance_percent: Decimal = Decimal("0.5")
    user_address: Optional[str] = None
    allowed_protocols: Optional[list[str]] = None
    force_bridge: bool = False  # route through bridges even on one chain

    @property
    def chain_id(self) -> int:
        return self.from_token.chain_id

    @property
    def is_cross_chain(self) -> bool:
        return self.from_token.chain_id != self.to_token.chain_id


@dataclass
class RouteStep:
    """One leg of a route.

    ``hop`` orders sequential steps; steps sharing a hop split the amount and
    their ``percentage_of_total`` values sum to 100.
    """

    protocol: str
    from_token: Token
    to_token: Token
    percentage_of_total: Decimal
    pool_or_contract_address: Optional[str] = None
    fee_basis_points: Optional[int] = None
    hop: int = 0
    action: str = "swap"

    def to_dict(self) -> dict:
        return {
            "protocol": self.protocol,
            "from_token": self.from_token.to_dict(),
            "to_token": self.to_token.to_dict(),
            "percentage_of_total": str(self.percentage_of_total),
            "pool_or_contract_address": self.pool_or_contract_address,
            "fee_basis_points": self.fee_basis_points,
            "hop": self.hop,
            "action": self.action,
        }


@dataclass
class ProtocolQuote:
    """A quote from a single protocol adapter."""

    protocol: str
    kind: QuoteKind
    from_token: Token
    to_token: Token
    from_amount: Decimal
    to_amount: Decimal
    to_amount_minimum: Decimal
    slippage_tolerance_percent: Decimal
    price_impact_percent: Decimal
    gas_estimate: int
    route: list[RouteStep]
    valid_until: int  # epoch ms
    confidence: Decimal = Decimal("0.95")
    fee_amount: Decimal = Decimal("0")
    estimated_time_seconds: int = 60
    route_details: dict = field(default_factory=dict)

    @property
    def effective_rate(self) -> Decimal:
        """Output per unit of input."""
        if self.from_amount == 0:
            return Decimal("0")
        return self.to_amount / self.from_amount

    @property
    def is_expired(self) -> bool:
        return now_ms() > self.valid_until

    def to_dict(self) -> dict:
        return {
            "protocol": self.protocol,
            "kind": self.kind.value,
            "from_token": self.from_token.to_dict(),
            "to_token": self.to_token.to_dict(),
            "from_amount": str(self.from_amount),
            "to_amount": str(self.to_amount),
            "to_amount_minimum": str(self.to_amount_minimum),
            "slippage_tolerance_percent": str(self.slippage_tolerance_percent),
            "price_impact_percent": str(self.price_impact_percent),
            "gas_estimate": self.gas_estimate,
            "route": [step.to_dict() for step in self.route],
            "valid_until": self.valid_until,
            "confidence": str(self.confidence),
            "fee_amount": str(self.fee_amount),
            "estimated_time_seconds": self.estimated_time_seconds,
        }


@dataclass
class TransactionParams:
    """Unsigned transaction parameters ready for a wallet."""

    chain_id: int
    to: str
    data: str
    value: int = 0
    gas_limit: int = 0
    gas_price: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "chain_id": self.chain_id,
            "to": self.to,
            "data": self.data,
            "value": str(self.value),
            "gas_limit": self.gas_limit,
            "gas_price": str(self.gas_price) if self.gas_price is not None else None,
        }


def minimum_output(to_amount: Decimal, slippage_percent: Decimal) -> Decimal:
    """Minimum acceptable output: ``to_amount * (1 - slippage / 100)``."""
    return to_amount * (Decimal("1") - Decimal(slippage_percent) / HUNDRED)


def route_percentages_valid(route: list[RouteStep]) -> bool:
    """Check that every hop of a route accounts for 100% of the amount."""
    if not route:
        return False
    totals: dict[int, Decimal] = defaultdict(Decimal)
    for step in route:
        totals[step.hop] += step.percentage_of_total
    return all(abs(total - HUNDRED) <= Decimal("0.0001") for total in totals.values())


def normalize_percentages(route: list[RouteStep]) -> list[RouteStep]:
    """Rescale each hop's step percentages so they sum to exactly 100."""
    by_hop: dict[int, list[RouteStep]] = defaultdict(list)
    for step in route:
        by_hop[step.hop].append(step)

    for steps in by_hop.values():
        total = sum((s.percentage_of_total for s in steps), Decimal("0"))
        for s in steps:
            if total <= 0:
                s.percentage_of_total = HUNDRED / len(steps)
            else:
                s.percentage_of_total = s.percentage_of_total * HUNDRED / total
        # Absorb rounding residue in the largest leg
        residue = HUNDRED - sum((s.percentage_of_total for s in steps), Decimal("0"))
        if residue:
            largest = max(steps, key=lambda s: s.percentage_of_total)
            largest.percentage_of_total += residue
    return route


class ProtocolAdapter(ABC):
    """Abstract base class for protocol adapters.

    An adapter wraps one external pricing service and translates between its
    wire format and :class:`ProtocolQuote`. Adapters raise typed
    :mod:`uniquote.errors` exceptions; they never return partial quotes.
    """

    @property
    @abstractmethod
    def protocol(self) -> str:
        """Protocol identifier, e.g. ``"1inch"``."""
        pass

    @property
    @abstractmethod
    def kind(self) -> QuoteKind:
        pass

    @abstractmethod
    async def get_quote(self, request: QuoteRequest) -> ProtocolQuote:
        """
        Get a quote for the request.

        Args:
            request: Validated quote request

        Returns:
            ProtocolQuote with ``to_amount_minimum`` derived from the slippage

        Raises:
            AdapterError subclass on any failure
        """
        pass

    @abstractmethod
    async def _build_transaction(
        self,
        quote: ProtocolQuote,
        user_address: str,
        deadline: Optional[int],
    ) -> TransactionParams:
        pass

    @abstractmethod
    def supports_pair(self, from_token: Token, to_token: Token) -> bool:
        """Check if this adapter can quote the token pair."""
        pass

    async def build_transaction(
        self,
        quote: ProtocolQuote,
        user_address: str,
        deadline: Optional[int] = None,
    ) -> TransactionParams:
        """
        Build transaction parameters for a previously returned quote.

        Args:
            quote: Quote produced by this adapter
            user_address: Sender address
            deadline: Optional unix deadline in seconds

        Raises:
            QuoteExpiredError: if the quote's validity window has passed
        """
        if quote.is_expired:
            raise QuoteExpiredError(
                f"Quote expired at {quote.valid_until}", protocol=self.protocol
            )
        return await self._build_transaction(quote, user_address, deadline)

    async def close(self) -> None:
        """Release any held resources."""
        return None


class BridgeTransferState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    BRIDGING = "bridging"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


@dataclass
class BridgeStatus:
    """Progress of a cross-chain transfer."""

    id: str
    protocol: str
    status: BridgeTransferState
    from_tx_hash: Optional[str] = None
    to_tx_hash: Optional[str] = None
    from_chain: Optional[int] = None
    to_chain: Optional[int] = None
    updated_at: int = field(default_factory=now_ms)

    @property
    def is_final(self) -> bool:
        return self.status in (
            BridgeTransferState.COMPLETED,
            BridgeTransferState.FAILED,
            BridgeTransferState.REFUNDED,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "protocol": self.protocol,
            "status": self.status.value,
            "from_tx_hash": self.from_tx_hash,
            "to_tx_hash": self.to_tx_hash,
            "from_chain": self.from_chain,
            "to_chain": self.to_chain,
            "updated_at": self.updated_at,
        }


class BridgeAdapter(ProtocolAdapter):
    """Adapter for cross-chain protocols, which can also report transfer status."""

    @property
    def kind(self) -> QuoteKind:
        return QuoteKind.BRIDGE

    @property
    @abstractmethod
    def supported_chains(self) -> list[int]:
        pass

    @abstractmethod
    async def get_status(self, tx_hash: str) -> BridgeStatus:
        """Look up the state of a transfer by its source transaction hash."""
        pass
