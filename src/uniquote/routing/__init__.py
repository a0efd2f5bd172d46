"""Routing module for protocol quote aggregation.

Adapters:
- 1inch: EVM DEX aggregator
- 0x: EVM DEX aggregator
- LayerZero / Stargate: stablecoin bridging
- THORChain: native cross-chain swaps between EVM chains
- Simulated: dry-run adapter
"""

from uniquote.routing.aggregator import AggregationResult, AggregatorConfig, QuoteAggregator
from uniquote.routing.base import (
    BridgeAdapter,
    BridgeStatus,
    BridgeTransferState,
    ProtocolAdapter,
    ProtocolQuote,
    QuoteKind,
    QuoteRequest,
    RouteStep,
    Token,
    TransactionParams,
)
from uniquote.routing.bridge_aggregator import BridgeAggregator
from uniquote.routing.dex_aggregator import DexAggregator
from uniquote.routing.dry_run import SimulatedAdapter
from uniquote.routing.registry import AdapterRegistry
from uniquote.routing.scoring import ScoreWeights

__all__ = [
    # Data model
    "Token",
    "QuoteKind",
    "QuoteRequest",
    "RouteStep",
    "ProtocolQuote",
    "TransactionParams",
    "BridgeStatus",
    "BridgeTransferState",
    # Adapters
    "ProtocolAdapter",
    "BridgeAdapter",
    "SimulatedAdapter",
    "AdapterRegistry",
    # Aggregation
    "AggregatorConfig",
    "AggregationResult",
    "QuoteAggregator",
    "DexAggregator",
    "BridgeAggregator",
    "ScoreWeights",
]
