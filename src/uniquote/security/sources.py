"""Lookup sources for contract verification and token risk.

Sources return ``None`` when they have no opinion about an address and raise
when the lookup itself fails; the validator turns both into findings.
"""

import logging
from typing import Iterable, Optional, Protocol

import httpx

from uniquote.routing.base import Token
from uniquote.routing.dry_run import SIMULATED_ROUTER
from uniquote.routing.layerzero import LAYERZERO_ENDPOINTS
from uniquote.routing.oneinch import ONEINCH_ROUTER_V5
from uniquote.security.types import ContractInfo, TokenRisk

logger = logging.getLogger(__name__)

ETHERSCAN_V2_API = "https://api.etherscan.io/v2/api"
ZEROX_EXCHANGE_PROXY = "0xDef1C0ded9bec7F1a1670819833240f027b25EfF"


class ContractSource(Protocol):
    async def get_contract_info(self, address: str, chain_id: int) -> Optional[ContractInfo]:
        ...


class TokenSource(Protocol):
    async def get_token_risk(self, token: Token) -> Optional[TokenRisk]:
        ...


def default_known_contracts() -> dict[str, str]:
    """Router contracts used by the built-in adapters, address -> name."""
    known = {
        ONEINCH_ROUTER_V5.lower(): "1inch Aggregation Router V5",
        ZEROX_EXCHANGE_PROXY.lower(): "0x Exchange Proxy",
        SIMULATED_ROUTER: "Simulated Router",
    }
    for endpoint in LAYERZERO_ENDPOINTS.values():
        known[endpoint.stargate_router.lower()] = "Stargate Router"
    return known


class KnownContractSource:
    """Static list of contracts considered verified."""

    def __init__(self, contracts: Optional[dict[str, str]] = None):
        source = default_known_contracts() if contracts is None else contracts
        self.contracts = {addr.lower(): name for addr, name in source.items()}

    async def get_contract_info(self, address: str, chain_id: int) -> Optional[ContractInfo]:
        name = self.contracts.get(address.lower())
        if name is None:
            return None
        return ContractInfo(address=address, verified=True, name=name, source="known")


class EtherscanContractSource:
    """Contract verification via Etherscan's ``getsourcecode`` endpoint.

    API Docs: https://docs.etherscan.io/
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = ETHERSCAN_V2_API,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self._transport = transport

    async def get_contract_info(self, address: str, chain_id: int) -> Optional[ContractInfo]:
        params = {
            "chainid": chain_id,
            "module": "contract",
            "action": "getsourcecode",
            "address": address,
            "apikey": self.api_key,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(self.base_url, params=params)
        response.raise_for_status()
        data = response.json()

        if str(data.get("status")) != "1" or not data.get("result"):
            raise RuntimeError(f"Etherscan error: {data.get('result') or data.get('message')}")

        entry = data["result"][0]
        return ContractInfo(
            address=address,
            verified=bool(entry.get("SourceCode")),
            name=entry.get("ContractName") or None,
            is_proxy=str(entry.get("Proxy", "0")) == "1",
            source="etherscan",
        )


class ChainedContractSource:
    """Ask each source in order; the first with an opinion wins."""

    def __init__(self, sources: Iterable[ContractSource]):
        self.sources = list(sources)

    async def get_contract_info(self, address: str, chain_id: int) -> Optional[ContractInfo]:
        for source in self.sources:
            info = await source.get_contract_info(address, chain_id)
            if info is not None:
                return info
        return None


class TokenFlagsSource:
    """Static token risk flags, e.g. from an internal allow/deny list."""

    def __init__(self, flags: Optional[dict[str, TokenRisk]] = None):
        self.flags = {addr.lower(): risk for addr, risk in (flags or {}).items()}

    async def get_token_risk(self, token: Token) -> Optional[TokenRisk]:
        return self.flags.get(token.address.lower())


class HoneypotIsTokenSource:
    """Buy/sell simulation from honeypot.is."""

    def __init__(
        self,
        base_url: str = "https://api.honeypot.is",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def get_token_risk(self, token: Token) -> Optional[TokenRisk]:
        if token.is_native:
            return None
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.get(
                f"{self.base_url}/v2/IsHoneypot",
                params={"address": token.address, "chainID": token.chain_id},
            )
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = response.json()

        hp_result = data.get("honeypotResult") or {}
        simulation = data.get("simulationResult") or {}
        return TokenRisk(
            address=token.address,
            verified=True,
            is_honeypot=bool(hp_result.get("isHoneypot")),
            honeypot_reason=hp_result.get("honeypotReason"),
            buy_tax=_as_float(simulation.get("buyTax")),
            sell_tax=_as_float(simulation.get("sellTax")),
            source="honeypot.is",
        )


class ChainedTokenSource:
    """Ask each token source in order; the first with an opinion wins."""

    def __init__(self, sources: Iterable[TokenSource]):
        self.sources = list(sources)

    async def get_token_risk(self, token: Token) -> Optional[TokenRisk]:
        for source in self.sources:
            risk = await source.get_token_risk(token)
            if risk is not None:
                return risk
        return None


def _as_float(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
