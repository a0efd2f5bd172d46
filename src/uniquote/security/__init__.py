"""Transaction security validation."""

from uniquote.security.sources import (
    ChainedContractSource,
    ChainedTokenSource,
    EtherscanContractSource,
    HoneypotIsTokenSource,
    KnownContractSource,
    TokenFlagsSource,
)
from uniquote.security.types import (
    CheckType,
    RiskLevel,
    SecurityFinding,
    SecurityValidationResult,
    TokenRisk,
    Transaction,
)
from uniquote.security.validator import SecurityConfig, SecurityValidator

__all__ = [
    "CheckType",
    "RiskLevel",
    "Transaction",
    "SecurityFinding",
    "SecurityValidationResult",
    "TokenRisk",
    "SecurityConfig",
    "SecurityValidator",
    "KnownContractSource",
    "EtherscanContractSource",
    "ChainedContractSource",
    "TokenFlagsSource",
    "HoneypotIsTokenSource",
    "ChainedTokenSource",
]
