"""Pytest configuration and fixtures."""

import os
from decimal import Decimal

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DRY_RUN"] = "true"
os.environ["DEBUG"] = "true"
os.environ["ETHERSCAN_API_KEY"] = ""

from uniquote.config import Settings
from uniquote.routing.base import NATIVE_TOKEN_ADDRESS, QuoteRequest, Token

USER = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


@pytest.fixture
def settings() -> Settings:
    """Fresh settings in dry-run mode with fast timeouts."""
    return Settings(
        environment="test",
        dry_run=True,
        adapter_timeout=1.0,
        aggregate_deadline=2.0,
        bridge_adapter_timeout=1.0,
        bridge_aggregate_deadline=2.0,
        retry_attempts=1,
        retry_base_delay=0.0,
        etherscan_api_key="",
    )


@pytest.fixture
def eth() -> Token:
    return Token(address=NATIVE_TOKEN_ADDRESS, symbol="ETH", decimals=18, chain_id=1)


@pytest.fixture
def usdc() -> Token:
    return Token(
        address="0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        symbol="USDC",
        decimals=6,
        chain_id=1,
    )


@pytest.fixture
def usdt() -> Token:
    return Token(
        address="0xdAC17F958D2ee523a2206206994597C13D831ec7",
        symbol="USDT",
        decimals=6,
        chain_id=1,
    )


@pytest.fixture
def usdc_polygon() -> Token:
    return Token(
        address="0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
        symbol="USDC",
        decimals=6,
        chain_id=137,
    )


@pytest.fixture
def usdt_bsc() -> Token:
    return Token(
        address="0x55d398326f99059fF775485246999027B3197955",
        symbol="USDT",
        decimals=18,
        chain_id=56,
    )


@pytest.fixture
def user_address() -> str:
    return USER


@pytest.fixture
def swap_request(eth, usdc) -> QuoteRequest:
    return QuoteRequest(
        from_token=eth,
        to_token=usdc,
        amount=Decimal("1"),
        slippage_tolerance_percent=Decimal("0.5"),
    )


@pytest.fixture
def bridge_request(usdc, usdc_polygon) -> QuoteRequest:
    return QuoteRequest(
        from_token=usdc,
        to_token=usdc_polygon,
        amount=Decimal("1000"),
        slippage_tolerance_percent=Decimal("0.5"),
    )
