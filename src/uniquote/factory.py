"""Composition root: builds the validator and the quote engine from settings."""

import logging
from typing import Optional

import httpx

from uniquote.config import Settings, get_settings
from uniquote.engine.events import EventChannel, QuoteEvent
from uniquote.engine.quote_engine import QuoteEngine
from uniquote.routing.factory import (
    create_bridge_aggregator,
    create_bridge_registry,
    create_dex_aggregator,
    create_dex_registry,
)
from uniquote.security.sources import (
    ChainedContractSource,
    ChainedTokenSource,
    EtherscanContractSource,
    HoneypotIsTokenSource,
    KnownContractSource,
    TokenFlagsSource,
)
from uniquote.security.validator import SecurityConfig, SecurityValidator

logger = logging.getLogger(__name__)


def create_security_validator(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> SecurityValidator:
    """Validator with known routers, plus Etherscan and honeypot.is lookups when live."""
    settings = settings or get_settings()

    contract_sources = [KnownContractSource()]
    if settings.etherscan_api_key and not settings.dry_run:
        contract_sources.append(
            EtherscanContractSource(
                api_key=settings.etherscan_api_key,
                timeout=settings.adapter_timeout,
                transport=transport,
            )
        )

    token_sources = [TokenFlagsSource()]
    if not settings.dry_run and settings.honeypot_api_url:
        token_sources.append(
            HoneypotIsTokenSource(
                base_url=settings.honeypot_api_url,
                timeout=settings.adapter_timeout,
                transport=transport,
            )
        )

    logger.info(
        f"Security validator: {len(contract_sources)} contract source(s), "
        f"{len(token_sources)} token source(s), strict_mode={settings.strict_mode}"
    )
    return SecurityValidator(
        config=SecurityConfig.from_settings(settings),
        contract_source=ChainedContractSource(contract_sources),
        token_source=ChainedTokenSource(token_sources),
    )


def create_quote_engine(
    settings: Optional[Settings] = None,
    validator: Optional[SecurityValidator] = None,
    events: Optional[EventChannel[QuoteEvent]] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> QuoteEngine:
    """
    Build a fully wired quote engine.

    Args:
        settings: Settings (get_settings() when omitted)
        validator: Security gate; built from settings when omitted
        events: Optional event channel
        transport: httpx transport shared by every adapter (tests)

    Returns:
        QuoteEngine
    """
    settings = settings or get_settings()
    dex = create_dex_aggregator(settings, create_dex_registry(settings, transport=transport))
    bridge = create_bridge_aggregator(settings, create_bridge_registry(settings, transport=transport))
    if validator is None:
        validator = create_security_validator(settings, transport=transport)

    logger.info(
        f"Quote engine ready: DEX {dex.registry.protocols}, bridges {bridge.registry.protocols}"
        + (" (dry run)" if settings.dry_run else "")
    )
    return QuoteEngine(
        dex_aggregator=dex,
        bridge_aggregator=bridge,
        settings=settings,
        validator=validator,
        events=events,
    )
