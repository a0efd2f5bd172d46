"""Application configuration using pydantic-settings.

Every timeout, TTL, threshold and scoring weight used by the quote engine is
read from here so that deployments can tune them without code changes.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")
    dry_run: bool = Field(
        default=False, description="Use simulated adapters instead of live protocol APIs"
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Protocols
    # ======================
    enabled_dex_protocols: str = Field(
        default="1inch,0x", description="Comma-separated DEX protocol ids"
    )
    enabled_bridge_protocols: str = Field(
        default="layerzero,thorchain", description="Comma-separated bridge protocol ids"
    )

    # ======================
    # Fan-out and timeouts (seconds)
    # ======================
    parallel_quotes: bool = Field(default=True, description="Query adapters concurrently")
    adapter_timeout: float = Field(default=10.0, description="Per-adapter DEX quote timeout")
    aggregate_deadline: float = Field(default=12.0, description="Whole DEX fan-out deadline")
    bridge_adapter_timeout: float = Field(
        default=15.0, description="Per-adapter bridge quote timeout"
    )
    bridge_aggregate_deadline: float = Field(
        default=18.0, description="Whole bridge fan-out deadline"
    )

    # ======================
    # Caching (seconds)
    # ======================
    quote_cache_ttl: float = Field(default=30.0, description="DEX winner cache TTL")
    bridge_quote_cache_ttl: float = Field(default=60.0, description="Bridge winner cache TTL")
    bridge_status_cache_ttl: float = Field(default=30.0, description="Bridge status cache TTL")
    engine_cache_ttl: float = Field(default=30.0, description="Unified response cache TTL")
    cache_sweep_interval: float = Field(
        default=60.0, description="Background eviction interval (0 = disabled)"
    )

    # ======================
    # Quote policy
    # ======================
    max_price_impact: float = Field(default=15.0, description="Price impact ceiling in percent")
    max_slippage: float = Field(default=5.0, description="Slippage considered acceptable")
    gas_optimization: bool = Field(default=True, description="Include gas in scoring")
    mev_protection: bool = Field(default=True, description="Flag quotes as MEV-protected")

    # Scoring weights
    weight_output: float = Field(default=0.4, description="Weight of normalized output")
    weight_gas: float = Field(default=0.2, description="Weight of gas efficiency")
    weight_price_impact: float = Field(default=0.2, description="Weight of price impact margin")
    weight_confidence: float = Field(default=0.2, description="Weight of adapter confidence")
    weight_time: float = Field(default=0.2, description="Weight of time efficiency (balanced)")

    # Warning thresholds
    warn_slippage: float = Field(default=2.0, description="Slippage warning threshold")
    warn_slippage_high: float = Field(default=5.0, description="Slippage high-severity threshold")
    warn_price_impact: float = Field(default=5.0, description="Price impact warning threshold")
    warn_price_impact_high: float = Field(
        default=10.0, description="Price impact high-severity threshold"
    )
    warn_gas: int = Field(default=500_000, description="Gas units warning threshold")
    warn_gas_high: int = Field(default=1_000_000, description="Gas units high-severity threshold")

    # ======================
    # Adapter HTTP behaviour
    # ======================
    retry_attempts: int = Field(default=3, description="Attempts per outbound request")
    retry_base_delay: float = Field(default=1.0, description="Backoff base delay in seconds")
    rate_limit_requests: int = Field(default=10, description="Requests allowed per window")
    rate_limit_window: float = Field(default=60.0, description="Rate limit window in seconds")

    # ======================
    # Protocol APIs
    # ======================
    oneinch_api_url: str = Field(default="https://api.1inch.io", description="1inch API base URL")
    oneinch_api_version: str = Field(default="v5.0", description="1inch API version")
    oneinch_api_key: Optional[str] = Field(default=None, description="1inch API key")
    oneinch_referrer_address: Optional[str] = Field(default=None, description="Referrer address")
    oneinch_fee_percent: Optional[float] = Field(default=None, description="Referrer fee percent")
    zerox_api_key: Optional[str] = Field(default=None, description="0x API key")
    stargate_api_url: str = Field(
        default="https://api.stargate.finance", description="Stargate quote API"
    )
    layerzero_scan_url: str = Field(
        default="https://api.layerzeroscan.com", description="LayerZero Scan API"
    )
    thorchain_api_url: str = Field(
        default="https://thornode.ninerealms.com", description="THORChain API URL"
    )

    # ======================
    # Security
    # ======================
    etherscan_api_key: str = Field(default="", description="Etherscan API key")
    honeypot_api_url: str = Field(
        default="https://api.honeypot.is", description="Honeypot simulation API"
    )
    strict_mode: bool = Field(default=False, description="Treat high-risk findings as blockers")
    allow_unverified_contracts: bool = Field(default=False)
    allow_unverified_tokens: bool = Field(default=True)
    max_gas_price_gwei: float = Field(default=100.0, description="Gas price ceiling in gwei")
    blacklisted_addresses: str = Field(default="", description="Comma-separated addresses")
    security_cache_ttl: float = Field(default=300.0, description="Contract/token lookup cache")
    validate_best_quote: bool = Field(
        default=True, description="Run the security validator on the best quote"
    )

    @property
    def dex_protocols(self) -> list[str]:
        """Enabled DEX protocol ids."""
        return _split_csv(self.enabled_dex_protocols)

    @property
    def bridge_protocols(self) -> list[str]:
        """Enabled bridge protocol ids."""
        return _split_csv(self.enabled_bridge_protocols)

    @property
    def blacklist(self) -> set[str]:
        """Blacklisted addresses, lower-cased."""
        return {addr.lower() for addr in _split_csv(self.blacklisted_addresses)}

    @property
    def max_gas_price_wei(self) -> int:
        return int(self.max_gas_price_gwei * 10**9)

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "protocols": {
                "dex": self.dex_protocols,
                "bridge": self.bridge_protocols,
                "oneinch": self.oneinch_api_url,
                "oneinch_api_key": "***" if self.oneinch_api_key else "(not set)",
                "zerox_api_key": "***" if self.zerox_api_key else "(not set)",
                "stargate": self.stargate_api_url,
                "thorchain": self.thorchain_api_url,
            },
            "fan_out": {
                "parallel": self.parallel_quotes,
                "adapter_timeout": self.adapter_timeout,
                "aggregate_deadline": self.aggregate_deadline,
            },
            "cache": {
                "quote_ttl": self.quote_cache_ttl,
                "bridge_quote_ttl": self.bridge_quote_cache_ttl,
                "engine_ttl": self.engine_cache_ttl,
            },
            "security": {
                "strict_mode": self.strict_mode,
                "etherscan_api_key": "***" if self.etherscan_api_key else "(not set)",
                "blacklist_size": len(self.blacklist),
                "validate_best_quote": self.validate_best_quote,
            },
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
