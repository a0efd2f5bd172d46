"""Transaction security validation.

The validator runs a pipeline of independent checks over a transaction and
folds their findings into a single verdict. Checks can be added at runtime
with :meth:`SecurityValidator.add_check`.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

from uniquote.cache import TTLCache
from uniquote.errors import SecurityBlockedError
from uniquote.routing.base import Token
from uniquote.security.sources import (
    ContractSource,
    KnownContractSource,
    TokenSource,
)
from uniquote.security.types import (
    CheckType,
    ContractInfo,
    RiskLevel,
    SecurityBlocker,
    SecurityFinding,
    SecurityValidationResult,
    SecurityWarning,
    TokenRisk,
    Transaction,
)

logger = logging.getLogger(__name__)

SecurityCheck = Callable[[Transaction], Awaitable[list[SecurityFinding]]]

LARGE_AMOUNT = Decimal("1000000")
MEV_AMOUNT_THRESHOLD = Decimal("10000")
MEV_SLIPPAGE_THRESHOLD = Decimal("2")
SLIPPAGE_HARD_LIMIT = Decimal("10")
MAX_GAS_LIMIT = 10_000_000
MIN_DEADLINE_SECONDS = 60
MAX_DEADLINE_SECONDS = 3600
HIGH_TRANSFER_TAX = 10.0


@dataclass
class SecurityConfig:
    """Validator thresholds and toggles."""

    max_slippage: Decimal = Decimal("5")
    max_gas_price_wei: int = 100 * 10**9
    mev_protection: bool = True
    blacklist_check: bool = True
    strict_mode: bool = False
    allow_unverified_contracts: bool = False
    allow_unverified_tokens: bool = True
    blacklist: set[str] = field(default_factory=set)
    cache_ttl: float = 300.0

    @classmethod
    def from_settings(cls, settings: Any) -> "SecurityConfig":
        return cls(
            max_slippage=Decimal(str(settings.max_slippage)),
            max_gas_price_wei=settings.max_gas_price_wei,
            mev_protection=settings.mev_protection,
            strict_mode=settings.strict_mode,
            allow_unverified_contracts=settings.allow_unverified_contracts,
            allow_unverified_tokens=settings.allow_unverified_tokens,
            blacklist=settings.blacklist,
            cache_ttl=settings.security_cache_ttl,
        )


class SecurityValidator:
    """Composable transaction security check pipeline."""

    def __init__(
        self,
        config: Optional[SecurityConfig] = None,
        contract_source: Optional[ContractSource] = None,
        token_source: Optional[TokenSource] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        """Initialize validator.

        Args:
            config: Thresholds and toggles
            contract_source: Contract verification lookup (known routers by default)
            token_source: Token risk lookup (token flags only when omitted)
            clock: Unix-seconds clock used for deadline checks
        """
        self.config = config or SecurityConfig()
        self.contract_source = contract_source or KnownContractSource()
        self.token_source = token_source
        self._clock = clock or time.time
        self._blacklist = {addr.lower() for addr in self.config.blacklist}
        self._contract_cache: TTLCache[ContractInfo] = TTLCache(self.config.cache_ttl, name="contracts")
        self._token_cache: TTLCache[TokenRisk] = TTLCache(self.config.cache_ttl, name="tokens")

        self.checks: list[SecurityCheck] = [
            self.check_contract,
            self.check_tokens,
            self.check_amount,
            self.check_slippage,
            self.check_gas,
            self.check_mev,
            self.check_deadline,
            self.check_blacklist,
        ]

    def add_check(self, check: SecurityCheck) -> None:
        """Append a custom check to the pipeline."""
        self.checks.append(check)

    def add_to_blacklist(self, address: str) -> None:
        self._blacklist.add(address.lower())

    def remove_from_blacklist(self, address: str) -> None:
        self._blacklist.discard(address.lower())

    def is_blacklisted(self, address: str) -> bool:
        return address.lower() in self._blacklist

    async def validate_transaction(self, transaction: Transaction) -> SecurityValidationResult:
        """
        Run every check and fold the findings into a verdict.

        Args:
            transaction: Transaction to inspect

        Returns:
            SecurityValidationResult carrying every finding
        """
        outcomes = await asyncio.gather(
            *(check(transaction) for check in self.checks), return_exceptions=True
        )

        findings: list[SecurityFinding] = []
        for check, outcome in zip(self.checks, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                name = getattr(check, "__name__", repr(check))
                logger.error(f"Security check {name} raised: {outcome}")
                findings.append(
                    SecurityFinding(
                        check_type=CheckType.VALIDATION_ERROR,
                        passed=False,
                        risk_level=RiskLevel.CRITICAL,
                        message=f"Security check {name} could not be completed",
                        details={"reason": str(outcome)},
                        recommendation="Retry later or contact support",
                    )
                )
            else:
                findings.extend(outcome)

        result = self._verdict(findings)
        log = logger.warning if not result.passed else logger.debug
        log(
            f"Security validation for {transaction.to}: {result.overall.value} "
            f"(score {result.score}, {len(result.blockers)} blocker(s))"
        )
        return result

    async def enforce(self, transaction: Transaction) -> SecurityValidationResult:
        """Validate and raise if the transaction must not proceed.

        Raises:
            SecurityBlockedError: carrying the full result
        """
        result = await self.validate_transaction(transaction)
        if not result.passed:
            reasons = "; ".join(b.message for b in result.blockers)
            raise SecurityBlockedError(f"Transaction blocked: {reasons}", result=result)
        return result

    def _verdict(self, findings: list[SecurityFinding]) -> SecurityValidationResult:
        levels = [f.risk_level for f in findings]
        if RiskLevel.CRITICAL in levels:
            overall, score = RiskLevel.CRITICAL, 0
        elif RiskLevel.HIGH in levels:
            overall, score = RiskLevel.HIGH, 25
        elif levels.count(RiskLevel.MEDIUM) > 2:
            overall, score = RiskLevel.MEDIUM, 50
        else:
            passed_count = sum(1 for f in findings if f.passed)
            score = int(passed_count * 100 / len(findings)) if findings else 100
            overall = RiskLevel.LOW if score > 80 else RiskLevel.MEDIUM

        warnings: list[SecurityWarning] = []
        blockers: list[SecurityBlocker] = []
        recommendations: list[str] = []
        for finding in findings:
            if not finding.passed:
                reason = (finding.details or {}).get("reason", "Critical security risk detected")
                if finding.risk_level == RiskLevel.CRITICAL:
                    blockers.append(
                        SecurityBlocker(
                            type=finding.check_type.value,
                            message=finding.message,
                            reason=reason,
                            can_override=False,
                        )
                    )
                elif finding.risk_level == RiskLevel.HIGH and self.config.strict_mode:
                    blockers.append(
                        SecurityBlocker(
                            type=finding.check_type.value,
                            message=finding.message,
                            reason=(finding.details or {}).get("reason", "High risk in strict mode"),
                            can_override=True,
                        )
                    )
                else:
                    warnings.append(
                        SecurityWarning(
                            type=finding.check_type.value,
                            message=finding.message,
                            severity=finding.risk_level.value,
                            recommendation=finding.recommendation,
                        )
                    )
            if finding.recommendation and finding.recommendation not in recommendations:
                recommendations.append(finding.recommendation)

        return SecurityValidationResult(
            overall=overall,
            passed=not blockers,
            score=score,
            checks=findings,
            warnings=warnings,
            blockers=blockers,
            recommendations=recommendations,
        )

    # ======================
    # Checks
    # ======================

    async def _contract_info(self, address: str, chain_id: int) -> ContractInfo:
        key = f"{chain_id}:{address.lower()}"
        info = await self._contract_cache.get(key)
        if info is None:
            info = await self.contract_source.get_contract_info(address, chain_id)
            if info is None:
                info = ContractInfo(address=address, verified=False, source="none")
            await self._contract_cache.set(key, info)
        return info

    async def check_contract(self, tx: Transaction) -> list[SecurityFinding]:
        try:
            info = await self._contract_info(tx.to, tx.chain_id)
        except Exception as e:
            logger.warning(f"Contract lookup for {tx.to} failed: {e}")
            return [
                SecurityFinding(
                    check_type=CheckType.CONTRACT_VERIFICATION,
                    passed=False,
                    risk_level=RiskLevel.CRITICAL,
                    message="Unable to verify contract security",
                    details={"reason": str(e), "address": tx.to},
                    recommendation="Do not proceed until the contract can be verified",
                )
            ]

        if info.verified:
            return [
                SecurityFinding(
                    check_type=CheckType.CONTRACT_VERIFICATION,
                    passed=True,
                    risk_level=RiskLevel.LOW,
                    message=f"Contract is verified ({info.name or info.source})",
                    details={"address": tx.to, "proxy": info.is_proxy},
                )
            ]
        if self.config.allow_unverified_contracts:
            return [
                SecurityFinding(
                    check_type=CheckType.CONTRACT_VERIFICATION,
                    passed=True,
                    risk_level=RiskLevel.MEDIUM,
                    message="Contract is not verified (allowed by configuration)",
                    details={"address": tx.to},
                )
            ]
        return [
            SecurityFinding(
                check_type=CheckType.CONTRACT_VERIFICATION,
                passed=False,
                risk_level=RiskLevel.HIGH,
                message="Contract is not verified",
                details={"address": tx.to},
                recommendation="Only interact with verified contracts",
            )
        ]

    async def _token_risk(self, token: Token) -> Optional[TokenRisk]:
        if self.token_source is None:
            return None
        key = f"{token.chain_id}:{token.address.lower()}"
        risk = await self._token_cache.get(key)
        if risk is None:
            risk = await self.token_source.get_token_risk(token)
            if risk is None:
                risk = TokenRisk(address=token.address, verified=token.verified, source="none")
            await self._token_cache.set(key, risk)
        return risk

    async def check_tokens(self, tx: Transaction) -> list[SecurityFinding]:
        findings = []
        for token in tx.tokens:
            if token.is_native:
                continue
            try:
                risk = await self._token_risk(token)
            except Exception as e:
                logger.warning(f"Token lookup for {token.symbol} failed: {e}")
                findings.append(
                    SecurityFinding(
                        check_type=CheckType.TOKEN_VALIDATION,
                        passed=False,
                        risk_level=RiskLevel.MEDIUM,
                        message=f"Unable to validate token {token.symbol}",
                        details={"reason": str(e), "address": token.address},
                        recommendation="Verify the token independently before trading",
                    )
                )
                continue
            findings.append(self._token_finding(token, risk))
        return findings

    def _token_finding(self, token: Token, risk: Optional[TokenRisk]) -> SecurityFinding:
        details = {"address": token.address, "symbol": token.symbol}
        if risk is not None and risk.is_honeypot:
            return SecurityFinding(
                check_type=CheckType.TOKEN_VALIDATION,
                passed=False,
                risk_level=RiskLevel.CRITICAL,
                message=f"Token {token.symbol} is a honeypot",
                details={**details, "reason": risk.honeypot_reason or "Token cannot be sold"},
                recommendation="Do not trade this token",
            )

        verified = token.verified and (risk is None or risk.verified)
        if not verified:
            if self.config.allow_unverified_tokens:
                return SecurityFinding(
                    check_type=CheckType.TOKEN_VALIDATION,
                    passed=True,
                    risk_level=RiskLevel.LOW,
                    message=f"Token {token.symbol} is not verified (allowed by configuration)",
                    details=details,
                    recommendation="Double-check the token contract address",
                )
            return SecurityFinding(
                check_type=CheckType.TOKEN_VALIDATION,
                passed=False,
                risk_level=RiskLevel.HIGH,
                message=f"Token {token.symbol} is not verified",
                details=details,
                recommendation="Only trade verified tokens",
            )

        taxes = [t for t in (risk.buy_tax, risk.sell_tax) if t is not None] if risk else []
        if taxes and max(taxes) > HIGH_TRANSFER_TAX:
            return SecurityFinding(
                check_type=CheckType.TOKEN_VALIDATION,
                passed=False,
                risk_level=RiskLevel.MEDIUM,
                message=f"Token {token.symbol} has a {max(taxes):.1f}% transfer tax",
                details={**details, "buy_tax": risk.buy_tax, "sell_tax": risk.sell_tax},
                recommendation="Account for the transfer tax in the expected output",
            )

        return SecurityFinding(
            check_type=CheckType.TOKEN_VALIDATION,
            passed=True,
            risk_level=RiskLevel.LOW,
            message=f"Token {token.symbol} passed validation",
            details=details,
        )

    async def check_amount(self, tx: Transaction) -> list[SecurityFinding]:
        if tx.amount is None:
            return []
        if tx.amount <= 0:
            return [
                SecurityFinding(
                    check_type=CheckType.AMOUNT_VALIDATION,
                    passed=False,
                    risk_level=RiskLevel.HIGH,
                    message="Amount must be positive",
                    details={"amount": str(tx.amount)},
                )
            ]
        if tx.amount > LARGE_AMOUNT:
            return [
                SecurityFinding(
                    check_type=CheckType.AMOUNT_VALIDATION,
                    passed=False,
                    risk_level=RiskLevel.MEDIUM,
                    message="Large transaction amount",
                    details={"amount": str(tx.amount)},
                    recommendation="Consider splitting the trade into smaller transactions",
                )
            ]
        return [
            SecurityFinding(
                check_type=CheckType.AMOUNT_VALIDATION,
                passed=True,
                risk_level=RiskLevel.LOW,
                message="Amount is within normal range",
            )
        ]

    async def check_slippage(self, tx: Transaction) -> list[SecurityFinding]:
        if tx.slippage is None:
            return []
        details = {"slippage": str(tx.slippage), "max": str(self.config.max_slippage)}
        if tx.slippage > SLIPPAGE_HARD_LIMIT:
            return [
                SecurityFinding(
                    check_type=CheckType.SLIPPAGE_VALIDATION,
                    passed=False,
                    risk_level=RiskLevel.HIGH,
                    message=f"Extremely high slippage tolerance ({tx.slippage}%)",
                    details=details,
                    recommendation="Lower slippage tolerance to limit sandwich losses",
                )
            ]
        if tx.slippage > self.config.max_slippage:
            return [
                SecurityFinding(
                    check_type=CheckType.SLIPPAGE_VALIDATION,
                    passed=False,
                    risk_level=RiskLevel.MEDIUM,
                    message=f"Slippage tolerance {tx.slippage}% exceeds {self.config.max_slippage}%",
                    details=details,
                    recommendation="Consider a lower slippage tolerance",
                )
            ]
        return [
            SecurityFinding(
                check_type=CheckType.SLIPPAGE_VALIDATION,
                passed=True,
                risk_level=RiskLevel.LOW,
                message="Slippage tolerance is acceptable",
                details=details,
            )
        ]

    async def check_gas(self, tx: Transaction) -> list[SecurityFinding]:
        findings = []
        if tx.gas_limit is not None and tx.gas_limit > MAX_GAS_LIMIT:
            findings.append(
                SecurityFinding(
                    check_type=CheckType.GAS_VALIDATION,
                    passed=False,
                    risk_level=RiskLevel.MEDIUM,
                    message=f"Unusually high gas limit ({tx.gas_limit})",
                    details={"gas_limit": tx.gas_limit},
                    recommendation="Review the transaction before signing",
                )
            )
        if tx.gas_price is not None and tx.gas_price > self.config.max_gas_price_wei:
            findings.append(
                SecurityFinding(
                    check_type=CheckType.GAS_VALIDATION,
                    passed=False,
                    risk_level=RiskLevel.MEDIUM,
                    message="Gas price above configured maximum",
                    details={"gas_price": tx.gas_price, "max": self.config.max_gas_price_wei},
                    recommendation="Wait for lower network fees",
                )
            )
        if not findings:
            findings.append(
                SecurityFinding(
                    check_type=CheckType.GAS_VALIDATION,
                    passed=True,
                    risk_level=RiskLevel.LOW,
                    message="Gas parameters are reasonable",
                )
            )
        return findings

    async def check_mev(self, tx: Transaction) -> list[SecurityFinding]:
        if not self.config.mev_protection:
            return [
                SecurityFinding(
                    check_type=CheckType.MEV_PROTECTION,
                    passed=True,
                    risk_level=RiskLevel.MEDIUM,
                    message="MEV protection is disabled",
                    recommendation="Enable MEV protection for large trades",
                )
            ]
        amount = tx.amount or Decimal("0")
        slippage = tx.slippage or Decimal("0")
        if amount > MEV_AMOUNT_THRESHOLD or slippage > MEV_SLIPPAGE_THRESHOLD:
            return [
                SecurityFinding(
                    check_type=CheckType.MEV_PROTECTION,
                    passed=False,
                    risk_level=RiskLevel.MEDIUM,
                    message="Transaction may be vulnerable to MEV attacks",
                    details={"amount": str(amount), "slippage": str(slippage)},
                    recommendation="Submit through a private mempool such as Flashbots Protect",
                )
            ]
        return [
            SecurityFinding(
                check_type=CheckType.MEV_PROTECTION,
                passed=True,
                risk_level=RiskLevel.LOW,
                message="Low MEV exposure",
            )
        ]

    async def check_deadline(self, tx: Transaction) -> list[SecurityFinding]:
        if tx.deadline is None:
            return []
        remaining = tx.deadline - int(self._clock())
        details = {"deadline": tx.deadline, "seconds_remaining": remaining}
        if remaining < MIN_DEADLINE_SECONDS:
            return [
                SecurityFinding(
                    check_type=CheckType.DEADLINE_VALIDATION,
                    passed=False,
                    risk_level=RiskLevel.MEDIUM,
                    message="Deadline is too short",
                    details=details,
                    recommendation="Allow at least one minute for inclusion",
                )
            ]
        if remaining > MAX_DEADLINE_SECONDS:
            return [
                SecurityFinding(
                    check_type=CheckType.DEADLINE_VALIDATION,
                    passed=False,
                    risk_level=RiskLevel.LOW,
                    message="Deadline is far in the future",
                    details=details,
                    recommendation="Use a deadline under one hour to limit stale execution",
                )
            ]
        return [
            SecurityFinding(
                check_type=CheckType.DEADLINE_VALIDATION,
                passed=True,
                risk_level=RiskLevel.LOW,
                message="Deadline is reasonable",
                details=details,
            )
        ]

    async def check_blacklist(self, tx: Transaction) -> list[SecurityFinding]:
        if not self.config.blacklist_check:
            return []
        hits = sorted({addr for addr in tx.addresses() if addr in self._blacklist})
        if hits:
            return [
                SecurityFinding(
                    check_type=CheckType.BLACKLIST_CHECK,
                    passed=False,
                    risk_level=RiskLevel.CRITICAL,
                    message="Transaction involves a blacklisted address",
                    details={"reason": "Address is blacklisted", "addresses": hits},
                    recommendation="Do not interact with blacklisted addresses",
                )
            ]
        return [
            SecurityFinding(
                check_type=CheckType.BLACKLIST_CHECK,
                passed=True,
                risk_level=RiskLevel.LOW,
                message="No blacklisted addresses",
            )
        ]
