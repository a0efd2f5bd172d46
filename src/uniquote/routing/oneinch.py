"""1inch DEX aggregator adapter.

Uses the 1inch aggregation API (``/{version}/{chainId}/quote`` and ``/swap``)
on Ethereum and other EVM chains.
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from uniquote.errors import (
    AmountTooLargeError,
    AmountTooSmallError,
    ApiError,
    TokenNotSupportedError,
)
from uniquote.routing.base import (
    NATIVE_TOKEN_ADDRESS,
    ProtocolAdapter,
    ProtocolQuote,
    QuoteKind,
    QuoteRequest,
    RouteStep,
    Token,
    TransactionParams,
    minimum_output,
    normalize_percentages,
)
from uniquote.routing.http import AdapterHttpClient
from uniquote.routing.prices import PriceFeed, estimate_price_impact
from uniquote.utils.clock import now_ms

logger = logging.getLogger(__name__)

ONEINCH_API_BASE = "https://api.1inch.io"
ONEINCH_ROUTER_V5 = "0x1111111254EEB25477B68fb85Ed929f73A960582"

SUPPORTED_CHAIN_IDS = {1, 10, 56, 100, 137, 250, 8453, 42161, 43114}

MIN_AMOUNT = Decimal("0.000001")
MAX_AMOUNT = Decimal("1000000000")
QUOTE_VALIDITY_MS = 30_000


class OneInchAdapter(ProtocolAdapter):
    """1inch swap adapter.

    Quotes and swap calldata come from the 1inch API. Routes are read from the
    nested ``protocols`` field (routes -> hops -> parts) and each hop's parts
    are normalized to 100%.
    """

    def __init__(
        self,
        http: AdapterHttpClient,
        version: str = "v5.0",
        gas_multiplier: Decimal = Decimal("1.2"),
        referrer_address: Optional[str] = None,
        fee_percent: Optional[Decimal] = None,
        price_feed: Optional[PriceFeed] = None,
        confidence: Decimal = Decimal("0.95"),
    ):
        """Initialize 1inch adapter.

        Args:
            http: Client bound to the 1inch API base URL
            version: API version path segment
            gas_multiplier: Safety margin applied to ``estimatedGas``
            referrer_address: Optional referrer for fee sharing
            fee_percent: Optional referrer fee
            price_feed: Optional USD price source for price impact
            confidence: Confidence reported on quotes
        """
        self.http = http
        self.version = version
        self.gas_multiplier = gas_multiplier
        self.referrer_address = referrer_address
        self.fee_percent = fee_percent
        self.price_feed = price_feed
        self.confidence = confidence
        # chain_id -> lower-cased address -> token, populated by load_supported_tokens
        self._token_lists: dict[int, dict[str, Token]] = {}

    @property
    def protocol(self) -> str:
        return "1inch"

    @property
    def kind(self) -> QuoteKind:
        return QuoteKind.SWAP

    def _path(self, chain_id: int, endpoint: str) -> str:
        return f"/{self.version}/{chain_id}/{endpoint}"

    @staticmethod
    def _api_address(token: Token) -> str:
        return NATIVE_TOKEN_ADDRESS if token.is_native else token.address

    def supports_pair(self, from_token: Token, to_token: Token) -> bool:
        if from_token.chain_id != to_token.chain_id:
            return False
        if from_token.chain_id not in SUPPORTED_CHAIN_IDS:
            return False
        known = self._token_lists.get(from_token.chain_id)
        if known is None:
            return True
        return (
            self._api_address(from_token).lower() in known
            and self._api_address(to_token).lower() in known
        )

    async def load_supported_tokens(self, chain_id: int) -> list[Token]:
        """Fetch and remember the token list for a chain."""
        data = await self.http.get_json(self._path(chain_id, "tokens"))
        raw_tokens = (data or {}).get("tokens") or {}
        tokens = []
        for item in raw_tokens.values():
            try:
                tokens.append(
                    Token(
                        address=item["address"],
                        symbol=item.get("symbol", ""),
                        decimals=int(item.get("decimals", 18)),
                        chain_id=chain_id,
                        verified=True,
                        risk_level="low",
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.debug(f"Skipping malformed 1inch token entry: {item}")
        self._token_lists[chain_id] = {t.address.lower(): t for t in tokens}
        logger.info(f"Loaded {len(tokens)} 1inch tokens for chain {chain_id}")
        return tokens

    def _validate(self, request: QuoteRequest) -> None:
        if not self.supports_pair(request.from_token, request.to_token):
            raise TokenNotSupportedError(
                f"Pair {request.from_token.symbol}->{request.to_token.symbol} "
                f"not supported on chain {request.chain_id}",
                protocol=self.protocol,
            )
        if request.amount < MIN_AMOUNT:
            raise AmountTooSmallError(
                f"Amount {request.amount} below minimum {MIN_AMOUNT}", protocol=self.protocol
            )
        if request.amount > MAX_AMOUNT:
            raise AmountTooLargeError(
                f"Amount {request.amount} above maximum {MAX_AMOUNT}", protocol=self.protocol
            )

    def _common_params(self, token_in: Token, token_out: Token, amount: Decimal, slippage: Decimal) -> dict:
        params: dict[str, Any] = {
            "fromTokenAddress": self._api_address(token_in),
            "toTokenAddress": self._api_address(token_out),
            "amount": str(token_in.to_base_units(amount)),
            "slippage": str(slippage),
        }
        if self.fee_percent:
            params["fee"] = str(self.fee_percent)
        if self.referrer_address:
            params["referrerAddress"] = self.referrer_address
        return params

    async def get_quote(self, request: QuoteRequest) -> ProtocolQuote:
        self._validate(request)

        params = self._common_params(
            request.from_token,
            request.to_token,
            request.amount,
            request.slippage_tolerance_percent,
        )
        logger.debug(f"1inch quote: {request.amount} {request.from_token.symbol} -> {request.to_token.symbol}")
        data = await self.http.get_json(self._path(request.chain_id, "quote"), params)

        try:
            to_amount = request.to_token.from_base_units(data["toTokenAmount"])
            estimated_gas = int(data.get("estimatedGas") or data.get("gas") or 0)
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ApiError(f"Unexpected quote response: {e}", protocol=self.protocol) from e

        route = self._parse_route(data.get("protocols") or [], request.from_token, request.to_token)
        price_impact = await estimate_price_impact(
            self.price_feed, request.from_token, request.to_token, request.amount, to_amount
        )

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
            gas_estimate=int(Decimal(estimated_gas) * self.gas_multiplier),
            route=route,
            valid_until=now_ms() + QUOTE_VALIDITY_MS,
            confidence=self.confidence,
            estimated_time_seconds=60,
            route_details={"router": ONEINCH_ROUTER_V5},
        )

    def _resolve_token(self, address: Any, fallback: Token, from_token: Token, to_token: Token) -> Token:
        """Map a part's token address to a Token, keeping unknown intermediates by address."""
        if not isinstance(address, str) or not address:
            return fallback
        key = address.lower()
        for token in (from_token, to_token):
            if key in (token.address.lower(), self._api_address(token).lower()):
                return token
        known = self._token_lists.get(from_token.chain_id, {})
        if key in known:
            return known[key]
        return Token(
            address=address,
            symbol="UNKNOWN",
            decimals=18,
            chain_id=from_token.chain_id,
            verified=False,
        )

    def _parse_route(self, protocols: list, from_token: Token, to_token: Token) -> list[RouteStep]:
        steps: list[RouteStep] = []
        for top_route in protocols:
            if not isinstance(top_route, list):
                continue
            last_hop = len(top_route) - 1
            for hop_index, hop in enumerate(top_route):
                parts = hop if isinstance(hop, list) else [hop]
                for part in parts:
                    if not isinstance(part, dict):
                        continue
                    steps.append(
                        RouteStep(
                            protocol=str(part.get("name", "unknown")),
                            from_token=self._resolve_token(
                                part.get("fromTokenAddress"),
                                from_token if hop_index == 0 else to_token,
                                from_token,
                                to_token,
                            ),
                            to_token=self._resolve_token(
                                part.get("toTokenAddress"),
                                to_token if hop_index == last_hop else from_token,
                                from_token,
                                to_token,
                            ),
                            percentage_of_total=Decimal(str(part.get("part", 0))),
                            pool_or_contract_address=ONEINCH_ROUTER_V5,
                            fee_basis_points=None,
                            hop=hop_index,
                        )
                    )

        if not steps:
            return [
                RouteStep(
                    protocol=self.protocol,
                    from_token=from_token,
                    to_token=to_token,
                    percentage_of_total=Decimal("100"),
                    pool_or_contract_address=ONEINCH_ROUTER_V5,
                )
            ]
        return normalize_percentages(steps)

    async def _build_transaction(
        self,
        quote: ProtocolQuote,
        user_address: str,
        deadline: Optional[int],
    ) -> TransactionParams:
        params = self._common_params(
            quote.from_token, quote.to_token, quote.from_amount, quote.slippage_tolerance_percent
        )
        params["fromAddress"] = user_address
        if deadline:
            params["deadline"] = str(deadline)

        data = await self.http.get_json(self._path(quote.from_token.chain_id, "swap"), params)
        try:
            tx = data["tx"]
            return TransactionParams(
                chain_id=quote.from_token.chain_id,
                to=tx["to"],
                data=tx["data"],
                value=int(tx.get("value") or 0),
                gas_limit=int(tx.get("gas") or quote.gas_estimate),
                gas_price=int(tx["gasPrice"]) if tx.get("gasPrice") else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ApiError(f"Unexpected swap response: {e}", protocol=self.protocol) from e
