"""Data types for transaction security validation."""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from uniquote.routing.base import Token
from uniquote.utils.clock import now_ms


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class CheckType(str, Enum):
    CONTRACT_VERIFICATION = "contract_verification"
    TOKEN_VALIDATION = "token_validation"
    AMOUNT_VALIDATION = "amount_validation"
    SLIPPAGE_VALIDATION = "slippage_validation"
    GAS_VALIDATION = "gas_validation"
    MEV_PROTECTION = "mev_protection"
    DEADLINE_VALIDATION = "deadline_validation"
    BLACKLIST_CHECK = "blacklist_check"
    VALIDATION_ERROR = "validation_error"


@dataclass
class Transaction:
    """A transaction about to be signed, as seen by the validator.

    ``deadline`` is a unix timestamp in seconds.
    """

    to: str
    from_address: str
    chain_id: int = 1
    data: str = "0x"
    value: int = 0
    gas_limit: Optional[int] = None
    gas_price: Optional[int] = None
    tokens: list[Token] = field(default_factory=list)
    amount: Optional[Decimal] = None
    slippage: Optional[Decimal] = None
    deadline: Optional[int] = None

    def addresses(self) -> list[str]:
        """Every address the transaction references, lower-cased."""
        found = [self.to, self.from_address] + [t.address for t in self.tokens]
        return [a.lower() for a in found if a]


@dataclass
class SecurityFinding:
    """Result of one security check."""

    check_type: CheckType
    passed: bool
    risk_level: RiskLevel
    message: str
    recommendation: Optional[str] = None
    details: Optional[dict[str, Any]] = None
    timestamp: int = field(default_factory=now_ms)

    def to_dict(self) -> dict:
        return {
            "type": self.check_type.value,
            "passed": self.passed,
            "risk_level": self.risk_level.value,
            "message": self.message,
            "recommendation": self.recommendation,
            "details": self.details,
            "timestamp": self.timestamp,
        }


@dataclass
class SecurityWarning:
    type: str
    message: str
    severity: str
    recommendation: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "severity": self.severity,
            "recommendation": self.recommendation,
        }


@dataclass
class SecurityBlocker:
    type: str
    message: str
    reason: str
    can_override: bool = False

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "reason": self.reason,
            "can_override": self.can_override,
        }


@dataclass
class SecurityValidationResult:
    """Full validator verdict. No finding is ever dropped from ``checks``."""

    overall: RiskLevel
    passed: bool
    score: int
    checks: list[SecurityFinding] = field(default_factory=list)
    warnings: list[SecurityWarning] = field(default_factory=list)
    blockers: list[SecurityBlocker] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    timestamp: int = field(default_factory=now_ms)

    @property
    def factors(self) -> list[str]:
        return [c.message for c in self.checks if not c.passed]

    def to_dict(self) -> dict:
        return {
            "overall": self.overall.value,
            "passed": self.passed,
            "score": self.score,
            "checks": [c.to_dict() for c in self.checks],
            "warnings": [w.to_dict() for w in self.warnings],
            "blockers": [b.to_dict() for b in self.blockers],
            "recommendations": self.recommendations,
            "timestamp": self.timestamp,
        }


@dataclass
class ContractInfo:
    address: str
    verified: bool
    name: Optional[str] = None
    is_proxy: bool = False
    source: str = "unknown"


@dataclass
class TokenRisk:
    address: str
    verified: bool = True
    is_honeypot: bool = False
    honeypot_reason: Optional[str] = None
    buy_tax: Optional[float] = None
    sell_tax: Optional[float] = None
    source: str = "unknown"
