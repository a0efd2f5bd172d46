"""Factory for creating protocol adapters and aggregators.

Creates live adapters for the enabled protocols, or simulated adapters when
dry-run mode is on.
"""

import logging
from decimal import Decimal
from typing import Callable, Optional

import httpx

from uniquote.config import Settings, get_settings
from uniquote.routing.base import ProtocolAdapter
from uniquote.routing.bridge_aggregator import BridgeAggregator
from uniquote.routing.aggregator import AggregatorConfig
from uniquote.routing.dex_aggregator import DexAggregator
from uniquote.routing.dry_run import (
    create_simulated_bridge_adapters,
    create_simulated_dex_adapters,
)
from uniquote.routing.http import AdapterHttpClient
from uniquote.routing.layerzero import StargateAdapter
from uniquote.routing.oneinch import OneInchAdapter
from uniquote.routing.prices import PriceFeed
from uniquote.routing.ratelimit import SlidingWindowRateLimiter
from uniquote.routing.registry import AdapterRegistry
from uniquote.routing.scoring import ScoreWeights
from uniquote.routing.thorchain import THORChainAdapter
from uniquote.routing.zerox import ZeroXAdapter

logger = logging.getLogger(__name__)


def create_http_client(
    settings: Settings,
    protocol: str,
    base_url: str = "",
    timeout: Optional[float] = None,
    headers: Optional[dict[str, str]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AdapterHttpClient:
    """HTTP client with retry and rate-limit policy taken from settings."""
    return AdapterHttpClient(
        protocol=protocol,
        base_url=base_url,
        timeout=timeout or settings.adapter_timeout,
        retry_attempts=settings.retry_attempts,
        retry_base_delay=settings.retry_base_delay,
        rate_limiter=SlidingWindowRateLimiter(
            max_requests=settings.rate_limit_requests,
            window_seconds=settings.rate_limit_window,
            name=protocol,
        ),
        headers=headers,
        transport=transport,
    )


def create_oneinch_adapter(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    price_feed: Optional[PriceFeed] = None,
) -> OneInchAdapter:
    headers = {"Authorization": f"Bearer {settings.oneinch_api_key}"} if settings.oneinch_api_key else None
    return OneInchAdapter(
        http=create_http_client(settings, "1inch", settings.oneinch_api_url, headers=headers, transport=transport),
        version=settings.oneinch_api_version,
        referrer_address=settings.oneinch_referrer_address,
        fee_percent=Decimal(str(settings.oneinch_fee_percent)) if settings.oneinch_fee_percent else None,
        price_feed=price_feed,
    )


def create_zerox_adapter(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ZeroXAdapter:
    headers = {"0x-api-key": settings.zerox_api_key} if settings.zerox_api_key else None
    return ZeroXAdapter(
        http=create_http_client(settings, "0x", headers=headers, transport=transport),
    )


def create_stargate_adapter(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StargateAdapter:
    timeout = settings.bridge_adapter_timeout
    return StargateAdapter(
        http=create_http_client(settings, "layerzero", settings.stargate_api_url, timeout, transport=transport),
        scan_http=create_http_client(
            settings, "layerzero-scan", settings.layerzero_scan_url, timeout, transport=transport
        ),
    )


def create_thorchain_adapter(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> THORChainAdapter:
    return THORChainAdapter(
        http=create_http_client(
            settings,
            "thorchain",
            settings.thorchain_api_url,
            settings.bridge_adapter_timeout,
            transport=transport,
        ),
    )


DEX_ADAPTERS: dict[str, Callable[..., ProtocolAdapter]] = {
    "1inch": create_oneinch_adapter,
    "0x": create_zerox_adapter,
}

BRIDGE_ADAPTERS: dict[str, Callable[..., ProtocolAdapter]] = {
    "layerzero": create_stargate_adapter,
    "thorchain": create_thorchain_adapter,
}


def _build_registry(
    settings: Settings,
    protocols: list[str],
    factories: dict[str, Callable[..., ProtocolAdapter]],
    transport: Optional[httpx.AsyncBaseTransport],
) -> AdapterRegistry:
    registry = AdapterRegistry()
    for protocol in protocols:
        factory = factories.get(protocol)
        if factory is None:
            logger.warning(f"Unknown protocol '{protocol}' in configuration, skipping")
            continue
        registry.register(factory(settings, transport=transport))
    return registry


def create_dex_registry(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AdapterRegistry:
    """Registry of the enabled DEX adapters (simulated in dry-run mode)."""
    settings = settings or get_settings()
    if settings.dry_run:
        logger.info("Dry-run mode: using simulated DEX adapters")
        return AdapterRegistry(create_simulated_dex_adapters(settings.dex_protocols))
    return _build_registry(settings, settings.dex_protocols, DEX_ADAPTERS, transport)


def create_bridge_registry(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> AdapterRegistry:
    """Registry of the enabled bridge adapters (simulated in dry-run mode)."""
    settings = settings or get_settings()
    if settings.dry_run:
        logger.info("Dry-run mode: using simulated bridge adapters")
        return AdapterRegistry(create_simulated_bridge_adapters(settings.bridge_protocols))
    return _build_registry(settings, settings.bridge_protocols, BRIDGE_ADAPTERS, transport)


def create_dex_aggregator(
    settings: Optional[Settings] = None,
    registry: Optional[AdapterRegistry] = None,
) -> DexAggregator:
    settings = settings or get_settings()
    config = AggregatorConfig(
        enabled_protocols=settings.dex_protocols,
        parallel=settings.parallel_quotes,
        adapter_timeout=settings.adapter_timeout,
        aggregate_deadline=settings.aggregate_deadline,
        max_price_impact=Decimal(str(settings.max_price_impact)),
        gas_optimization=settings.gas_optimization,
        cache_ttl=settings.quote_cache_ttl,
        weights=ScoreWeights.from_settings(settings),
    )
    return DexAggregator(registry or create_dex_registry(settings), config=config)


def create_bridge_aggregator(
    settings: Optional[Settings] = None,
    registry: Optional[AdapterRegistry] = None,
) -> BridgeAggregator:
    settings = settings or get_settings()
    config = AggregatorConfig(
        enabled_protocols=settings.bridge_protocols,
        parallel=settings.parallel_quotes,
        adapter_timeout=settings.bridge_adapter_timeout,
        aggregate_deadline=settings.bridge_aggregate_deadline,
        max_price_impact=Decimal(str(settings.max_price_impact)),
        gas_optimization=settings.gas_optimization,
        cache_ttl=settings.bridge_quote_cache_ttl,
        weights=ScoreWeights.from_settings(settings),
    )
    return BridgeAggregator(
        registry or create_bridge_registry(settings),
        config=config,
        status_cache_ttl=settings.bridge_status_cache_ttl,
    )
