"""LayerZero / Stargate bridge adapter.

Stablecoins move between LayerZero-connected chains through Stargate pools.
Quotes come from the Stargate API; transfer status from LayerZero Scan.
"""

import logging
from dataclasses import dataclass
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


@dataclass(frozen=True)
class LayerZeroEndpoint:
    """LayerZero deployment on an EVM chain."""

    endpoint: str
    lz_chain_id: int
    confirmations: int
    stargate_router: str


LAYERZERO_ENDPOINTS: dict[int, LayerZeroEndpoint] = {
    1: LayerZeroEndpoint(
        endpoint="0x66A71Dcef29A0fFBDBE3c6a460a3B5BC225Cd675",
        lz_chain_id=101,
        confirmations=15,
        stargate_router="0x8731d54E9D02c286767d56ac03e8037C07e01e98",
    ),
    137: LayerZeroEndpoint(
        endpoint="0x3c2269811836af69497E5F486A85D7316753cf62",
        lz_chain_id=109,
        confirmations=512,
        stargate_router="0x45A01E4e04F14f7A4a6702c74187c5F6222033cd",
    ),
    42161: LayerZeroEndpoint(
        endpoint="0x3c2269811836af69497E5F486A85D7316753cf62",
        lz_chain_id=110,
        confirmations=20,
        stargate_router="0x53Bf833A5d6c4ddA888F69c22C88C9f356a41614",
    ),
    10: LayerZeroEndpoint(
        endpoint="0x3c2269811836af69497E5F486A85D7316753cf62",
        lz_chain_id=111,
        confirmations=20,
        stargate_router="0xB0D502E938ed5f4df2E681fE6E419ff29631d62b",
    ),
    43114: LayerZeroEndpoint(
        endpoint="0x3c2269811836af69497E5F486A85D7316753cf62",
        lz_chain_id=106,
        confirmations=12,
        stargate_router="0x45A01E4e04F14f7A4a6702c74187c5F6222033cd",
    ),
}

# Stargate pool ids by token symbol
STARGATE_POOL_IDS = {
    "USDC": 1,
    "USDT": 2,
    "DAI": 3,
    "FRAX": 7,
    "LUSD": 15,
}

LAYERZERO_STATUS_MAP = {
    "PENDING": BridgeTransferState.PENDING,
    "INFLIGHT": BridgeTransferState.BRIDGING,
    "CONFIRMED": BridgeTransferState.CONFIRMED,
    "DELIVERED": BridgeTransferState.COMPLETED,
    "FAILED": BridgeTransferState.FAILED,
    "BLOCKED": BridgeTransferState.FAILED,
}

STARGATE_SWAP_SIGNATURE = (
    "swap(uint16,uint256,uint256,address,uint256,uint256,(uint256,uint256,bytes),bytes,bytes)"
)

BASE_GAS = 200_000
ESTIMATED_TIME_SECONDS = 300
QUOTE_VALIDITY_MS = 60_000


def encode_stargate_swap(
    dst_lz_chain_id: int,
    src_pool_id: int,
    dst_pool_id: int,
    refund_address: str,
    amount: int,
    min_amount: int,
    recipient: str,
) -> str:
    """ABI-encode a Stargate router ``swap`` call as 0x-prefixed calldata."""
    selector = function_signature_to_4byte_selector(STARGATE_SWAP_SIGNATURE)
    args = encode(
        [
            "uint16",
            "uint256",
            "uint256",
            "address",
            "uint256",
            "uint256",
            "(uint256,uint256,bytes)",
            "bytes",
            "bytes",
        ],
        [
            dst_lz_chain_id,
            src_pool_id,
            dst_pool_id,
            to_checksum_address(refund_address),
            amount,
            min_amount,
            (0, 0, b""),
            bytes.fromhex(recipient[2:] if recipient.startswith("0x") else recipient),
            b"",
        ],
    )
    return "0x" + (selector + args).hex()


class StargateAdapter(BridgeAdapter):
    """Stargate stablecoin bridge over LayerZero."""

    def __init__(
        self,
        http: AdapterHttpClient,
        scan_http: Optional[AdapterHttpClient] = None,
        gas_multiplier: Decimal = Decimal("1.3"),
        confidence: Decimal = Decimal("0.95"),
    ):
        """Initialize Stargate adapter.

        Args:
            http: Client bound to the Stargate API
            scan_http: Client bound to LayerZero Scan (status lookups)
            gas_multiplier: Safety margin on the base gas estimate
            confidence: Confidence reported on quotes
        """
        self.http = http
        self.scan_http = scan_http or http
        self.gas_multiplier = gas_multiplier
        self.confidence = confidence

    @property
    def protocol(self) -> str:
        return "layerzero"

    @property
    def supported_chains(self) -> list[int]:
        return list(LAYERZERO_ENDPOINTS)

    def supports_pair(self, from_token: Token, to_token: Token) -> bool:
        return (
            from_token.chain_id != to_token.chain_id
            and from_token.chain_id in LAYERZERO_ENDPOINTS
            and to_token.chain_id in LAYERZERO_ENDPOINTS
            and from_token.symbol.upper() in STARGATE_POOL_IDS
            and to_token.symbol.upper() in STARGATE_POOL_IDS
        )

    @property
    def gas_estimate(self) -> int:
        return int(Decimal(BASE_GAS) * self.gas_multiplier)

    async def get_quote(self, request: QuoteRequest) -> ProtocolQuote:
        if not self.supports_pair(request.from_token, request.to_token):
            raise TokenNotSupportedError(
                f"Route {request.from_token.symbol}@{request.from_token.chain_id} -> "
                f"{request.to_token.symbol}@{request.to_token.chain_id} not supported by Stargate",
                protocol=self.protocol,
            )
        amount_raw = request.from_token.to_base_units(request.amount)
        if amount_raw <= 0:
            raise AmountTooSmallError("Amount rounds to zero base units", protocol=self.protocol)

        src_pool = STARGATE_POOL_IDS[request.from_token.symbol.upper()]
        dst_pool = STARGATE_POOL_IDS[request.to_token.symbol.upper()]
        params = {
            "srcChainId": request.from_token.chain_id,
            "dstChainId": request.to_token.chain_id,
            "srcPoolId": src_pool,
            "dstPoolId": dst_pool,
            "amount": str(amount_raw),
        }
        data = await self.http.get_json("/v1/quote", params)

        try:
            amount_ld = Decimal(str(data["amountLD"]))
            eq_fee = Decimal(str(data.get("eqFee") or 0))
            lp_fee = Decimal(str(data.get("lpFee") or 0))
            protocol_fee = Decimal(str(data.get("protocolFee") or 0))
        except (KeyError, TypeError, InvalidOperation) as e:
            raise ApiError(f"Unexpected quote response: {e}", protocol=self.protocol) from e
        if amount_ld <= 0:
            raise ApiError("Stargate returned a non-positive amount", protocol=self.protocol)

        to_amount = request.to_token.from_base_units(int(amount_ld))
        fee_amount = request.from_token.from_base_units(int(eq_fee + lp_fee + protocol_fee))
        price_impact = max(Decimal("0"), (eq_fee + lp_fee) / amount_ld * Decimal("100"))
        router = LAYERZERO_ENDPOINTS[request.from_token.chain_id].stargate_router

        return ProtocolQuote(
            protocol=self.protocol,
            kind=self.kind,
            from_token=request.from_token,
            to_token=request.to_token,
            from_amount=request.amount,
            to_amount=to_amount,
            to_amount_minimum=minimum_output(to_amount, request.slippage_tolerance_percent),
            slippage_tolerance_percent=request.slippage_tolerance_percent,
            price_impact_percent=price_impact,
            gas_estimate=self.gas_estimate,
            route=[
                RouteStep(
                    protocol=self.protocol,
                    from_token=request.from_token,
                    to_token=request.to_token,
                    percentage_of_total=Decimal("100"),
                    pool_or_contract_address=router,
                    action="bridge",
                )
            ],
            valid_until=now_ms() + QUOTE_VALIDITY_MS,
            confidence=self.confidence,
            fee_amount=fee_amount,
            estimated_time_seconds=ESTIMATED_TIME_SECONDS,
            route_details={
                "src_pool_id": src_pool,
                "dst_pool_id": dst_pool,
                "min_amount_ld": str(data.get("minAmountLD") or ""),
                "eq_reward": str(data.get("eqReward") or "0"),
                "native_fee": str(data.get("nativeFee") or "0"),
            },
        )

    async def _build_transaction(
        self,
        quote: ProtocolQuote,
        user_address: str,
        deadline: Optional[int],
    ) -> TransactionParams:
        src = LAYERZERO_ENDPOINTS[quote.from_token.chain_id]
        dst = LAYERZERO_ENDPOINTS[quote.to_token.chain_id]
        details = quote.route_details

        calldata = encode_stargate_swap(
            dst_lz_chain_id=dst.lz_chain_id,
            src_pool_id=int(details.get("src_pool_id", STARGATE_POOL_IDS[quote.from_token.symbol.upper()])),
            dst_pool_id=int(details.get("dst_pool_id", STARGATE_POOL_IDS[quote.to_token.symbol.upper()])),
            refund_address=user_address,
            amount=quote.from_token.to_base_units(quote.from_amount),
            min_amount=quote.to_token.to_base_units(quote.to_amount_minimum),
            recipient=user_address,
        )
        return TransactionParams(
            chain_id=quote.from_token.chain_id,
            to=src.stargate_router,
            data=calldata,
            value=int(details.get("native_fee") or 0),
            gas_limit=quote.gas_estimate,
        )

    async def get_status(self, tx_hash: str) -> BridgeStatus:
        data = await self.scan_http.get_json(f"/api/tx/{tx_hash}")
        if isinstance(data, dict) and isinstance(data.get("messages"), list):
            if not data["messages"]:
                return BridgeStatus(id=tx_hash, protocol=self.protocol, status=BridgeTransferState.PENDING)
            data = data["messages"][0]
        if not isinstance(data, dict):
            raise ApiError("Unexpected status response", protocol=self.protocol)

        raw_status = str(data.get("status") or "PENDING").upper()
        return BridgeStatus(
            id=tx_hash,
            protocol=self.protocol,
            status=LAYERZERO_STATUS_MAP.get(raw_status, BridgeTransferState.PENDING),
            from_tx_hash=data.get("srcTxHash") or tx_hash,
            to_tx_hash=data.get("dstTxHash"),
            from_chain=data.get("srcChainId"),
            to_chain=data.get("dstChainId"),
        )
