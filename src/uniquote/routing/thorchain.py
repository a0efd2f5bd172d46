"""THORChain cross-chain swap integration.

THORChain swaps native assets across blockchains without wrapping: funds are
sent to a vault with a memo and paid out on the destination chain. Two
pooled assets of the same chain can be swapped the same way. Only the
EVM chains THORChain observes are handled here.
API docs: https://dev.thorchain.org/
"""

import logging
import time
from decimal import Decimal, InvalidOperation
from typing import Optional

from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from uniquote.errors import AmountTooSmallError, ApiError, TokenNotSupportedError
from uniquote.routing.base import (
    BridgeAdapter,
    BridgeStatus,
    BridgeTransferState,
    ProtocolQuote,
    QuoteRequest,
    RouteStep,
    Token,
    TransactionParams,
    minimum_output,
)
from uniquote.routing.http import AdapterHttpClient
from uniquote.utils.clock import now_ms

logger = logging.getLogger(__name__)

THORNODE_MAINNET = "https://thornode.ninerealms.com"

# EVM chain id -> (THORChain chain prefix, native symbol)
THORCHAIN_EVM_CHAINS = {
    1: ("ETH", "ETH"),
    56: ("BSC", "BNB"),
    43114: ("AVAX", "AVAX"),
    8453: ("BASE", "ETH"),
}

RUNE = "THOR.RUNE"
THORCHAIN_DECIMALS = 8

DEPOSIT_SIGNATURE = "depositWithExpiry(address,address,uint256,string,uint256)"
NATIVE_DEPOSIT_GAS = 80_000
TOKEN_DEPOSIT_GAS = 150_000
QUOTE_VALIDITY_MS = 60_000


def thorchain_asset(token: Token) -> Optional[str]:
    """Convert a token to THORChain notation, e.g. ``ETH.USDT-0XDAC1...``."""
    chain = THORCHAIN_EVM_CHAINS.get(token.chain_id)
    if chain is None:
        return None
    prefix, native_symbol = chain
    if token.is_native:
        return f"{prefix}.{native_symbol}"
    return f"{prefix}.{token.symbol.upper()}-{token.address.upper()}"


def encode_deposit_with_expiry(vault: str, asset: str, amount: int, memo: str, expiry: int) -> str:
    """ABI-encode a THORChain router ``depositWithExpiry`` call."""
    selector = function_signature_to_4byte_selector(DEPOSIT_SIGNATURE)
    args = encode(
        ["address", "address", "uint256", "string", "uint256"],
        [to_checksum_address(vault), to_checksum_address(asset), amount, memo, expiry],
    )
    return "0x" + (selector + args).hex()


class THORChainAdapter(BridgeAdapter):
    """THORChain cross-chain swap adapter.

    Every swap is two hops: the source asset is swapped into RUNE in its
    pool, then RUNE is swapped out of the destination pool.
    """

    def __init__(self, http: AdapterHttpClient, confidence: Decimal = Decimal("0.9")):
        self.http = http
        self.confidence = confidence

    @property
    def protocol(self) -> str:
        return "thorchain"

    @property
    def supported_chains(self) -> list[int]:
        return list(THORCHAIN_EVM_CHAINS)

    def supports_pair(self, from_token: Token, to_token: Token) -> bool:
        # pools also swap two assets of one chain
        return (
            from_token.identity != to_token.identity
            and from_token.chain_id in THORCHAIN_EVM_CHAINS
            and to_token.chain_id in THORCHAIN_EVM_CHAINS
        )

    @staticmethod
    def _to_thor_units(amount: Decimal) -> int:
        return int(amount * Decimal(10**THORCHAIN_DECIMALS))

    @staticmethod
    def _from_thor_units(raw) -> Decimal:
        return Decimal(str(raw)) / Decimal(10**THORCHAIN_DECIMALS)

    async def _fetch_quote(
        self,
        from_token: Token,
        to_token: Token,
        amount: Decimal,
        slippage: Decimal,
        destination: Optional[str],
    ) -> dict:
        from_asset = thorchain_asset(from_token)
        to_asset = thorchain_asset(to_token)
        if not from_asset or not to_asset:
            raise TokenNotSupportedError(
                f"No THORChain asset for {from_token.symbol} or {to_token.symbol}",
                protocol=self.protocol,
            )
        amount_base = self._to_thor_units(amount)
        if amount_base <= 0:
            raise AmountTooSmallError("Amount rounds to zero THORChain units", protocol=self.protocol)

        data = await self.http.get_json(
            "/thorchain/quote/swap",
            {
                "from_asset": from_asset,
                "to_asset": to_asset,
                "amount": str(amount_base),
                "destination": destination,
                "tolerance_bps": int(slippage * 100),
            },
        )
        if not isinstance(data, dict):
            raise ApiError("Unexpected quote response", protocol=self.protocol)
        if "error" in data:
            message = str(data["error"])
            if "not enough asset to pay for fees" in message.lower():
                raise AmountTooSmallError(message, protocol=self.protocol)
            raise ApiError(message, protocol=self.protocol)
        return data

    async def get_quote(self, request: QuoteRequest) -> ProtocolQuote:
        if not self.supports_pair(request.from_token, request.to_token):
            raise TokenNotSupportedError(
                f"THORChain does not route chain {request.from_token.chain_id} -> "
                f"{request.to_token.chain_id}",
                protocol=self.protocol,
            )

        data = await self._fetch_quote(
            request.from_token,
            request.to_token,
            request.amount,
            request.slippage_tolerance_percent,
            request.user_address,
        )

        try:
            to_amount = self._from_thor_units(data["expected_amount_out"])
            fees = data.get("fees") or {}
            fee_amount = self._from_thor_units(fees.get("total", "0"))
            slippage_bps = int(fees.get("slippage_bps", data.get("slippage_bps", 0)) or 0)
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ApiError(f"Unexpected quote response: {e}", protocol=self.protocol) from e

        total_time = int(
            data.get("total_swap_seconds")
            or (data.get("inbound_confirmation_seconds") or 600) + (data.get("outbound_delay_seconds") or 0)
        )
        rune = Token(address="thor.rune", symbol="RUNE", decimals=8, chain_id=0)
        vault = data.get("router") or data.get("inbound_address")

        return ProtocolQuote(
            protocol=self.protocol,
            kind=self.kind,
            from_token=request.from_token,
            to_token=request.to_token,
            from_amount=request.amount,
            to_amount=to_amount,
            to_amount_minimum=minimum_output(to_amount, request.slippage_tolerance_percent),
            slippage_tolerance_percent=request.slippage_tolerance_percent,
            price_impact_percent=Decimal(slippage_bps) / Decimal("100"),
            gas_estimate=NATIVE_DEPOSIT_GAS if request.from_token.is_native else TOKEN_DEPOSIT_GAS,
            route=[
                RouteStep(
                    protocol=self.protocol,
                    from_token=request.from_token,
                    to_token=rune,
                    percentage_of_total=Decimal("100"),
                    pool_or_contract_address=vault,
                    hop=0,
                    action="swap",
                ),
                RouteStep(
                    protocol=self.protocol,
                    from_token=rune,
                    to_token=request.to_token,
                    percentage_of_total=Decimal("100"),
                    pool_or_contract_address=vault,
                    hop=1,
                    action="bridge",
                ),
            ],
            valid_until=now_ms() + QUOTE_VALIDITY_MS,
            confidence=self.confidence,
            fee_amount=fee_amount,
            estimated_time_seconds=total_time,
            route_details={
                "memo": data.get("memo", ""),
                "inbound_address": data.get("inbound_address", ""),
                "router": data.get("router", ""),
                "expiry": data.get("expiry", 0),
                "warning": data.get("warning", ""),
                "destination": request.user_address,
                "slippage_bps": slippage_bps,
            },
        )

    async def _build_transaction(
        self,
        quote: ProtocolQuote,
        user_address: str,
        deadline: Optional[int],
    ) -> TransactionParams:
        details = quote.route_details
        destination = details.get("destination")
        if not details.get("memo") or not destination or destination.lower() != user_address.lower():
            # The memo embeds the destination, so re-quote for this user
            details = await self._fetch_quote(
                quote.from_token,
                quote.to_token,
                quote.from_amount,
                quote.slippage_tolerance_percent,
                user_address,
            )

        memo = details.get("memo")
        inbound = details.get("inbound_address")
        if not memo or not inbound:
            raise ApiError("THORChain quote has no memo or inbound address", protocol=self.protocol)

        amount = quote.from_token.to_base_units(quote.from_amount)
        if quote.from_token.is_native:
            return TransactionParams(
                chain_id=quote.from_token.chain_id,
                to=inbound,
                data="0x" + memo.encode().hex(),
                value=amount,
                gas_limit=NATIVE_DEPOSIT_GAS,
            )

        router = details.get("router")
        if not router:
            raise ApiError("THORChain quote has no router for token deposit", protocol=self.protocol)
        expiry = deadline or int(details.get("expiry") or 0) or int(time.time()) + 3600
        return TransactionParams(
            chain_id=quote.from_token.chain_id,
            to=router,
            data=encode_deposit_with_expiry(inbound, quote.from_token.address, amount, memo, expiry),
            value=0,
            gas_limit=TOKEN_DEPOSIT_GAS,
        )

    async def get_status(self, tx_hash: str) -> BridgeStatus:
        thor_hash = tx_hash[2:] if tx_hash.lower().startswith("0x") else tx_hash
        data = await self.http.get_json(f"/thorchain/tx/status/{thor_hash.upper()}")
        if not isinstance(data, dict):
            raise ApiError("Unexpected status response", protocol=self.protocol)

        stages = data.get("stages") or {}
        out_txs = data.get("out_txs") or []
        status = BridgeTransferState.PENDING
        if (stages.get("inbound_finalised") or {}).get("completed"):
            status = BridgeTransferState.CONFIRMED
        if (stages.get("swap_status") or {}).get("pending"):
            status = BridgeTransferState.BRIDGING
        if (stages.get("outbound_signed") or {}).get("completed") and out_txs:
            status = BridgeTransferState.COMPLETED
            if str(out_txs[0].get("memo", "")).upper().startswith("REFUND"):
                status = BridgeTransferState.REFUNDED

        to_hash = out_txs[0].get("id") if out_txs else None
        return BridgeStatus(
            id=tx_hash,
            protocol=self.protocol,
            status=status,
            from_tx_hash=tx_hash,
            to_tx_hash=f"0x{to_hash.lower()}" if to_hash else None,
        )
