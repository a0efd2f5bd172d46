"""0x swap API adapter."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Optional

from uniquote.errors import AmountTooSmallError, ApiError, TokenNotSupportedError
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
from uniquote.utils.clock import now_ms

logger = logging.getLogger(__name__)

# 0x serves each chain from its own host
ZEROX_API_URLS = {
    1: "https://api.0x.org",
    10: "https://optimism.api.0x.org",
    56: "https://bsc.api.0x.org",
    137: "https://polygon.api.0x.org",
    8453: "https://base.api.0x.org",
    42161: "https://arbitrum.api.0x.org",
    43114: "https://avalanche.api.0x.org",
}

QUOTE_VALIDITY_MS = 30_000


class ZeroXAdapter(ProtocolAdapter):
    """0x swap adapter.

    ``/swap/v1/quote`` returns price, sources and calldata in one response, so
    the calldata is kept on the quote and reused by ``build_transaction`` when
    the sender matches.
    """

    def __init__(self, http: AdapterHttpClient, confidence: Decimal = Decimal("0.93")):
        self.http = http
        self.confidence = confidence

    @property
    def protocol(self) -> str:
        return "0x"

    @property
    def kind(self) -> QuoteKind:
        return QuoteKind.SWAP

    def supports_pair(self, from_token: Token, to_token: Token) -> bool:
        return from_token.chain_id == to_token.chain_id and from_token.chain_id in ZEROX_API_URLS

    @staticmethod
    def _api_address(token: Token) -> str:
        return NATIVE_TOKEN_ADDRESS if token.is_native else token.address

    def _params(self, request_from: Token, request_to: Token, amount: Decimal, slippage: Decimal, taker: Optional[str]) -> dict:
        return {
            "sellToken": self._api_address(request_from),
            "buyToken": self._api_address(request_to),
            "sellAmount": str(request_from.to_base_units(amount)),
            "slippagePercentage": str(slippage / Decimal("100")),
            "takerAddress": taker,
        }

    async def _fetch(self, chain_id: int, params: dict) -> dict:
        url = f"{ZEROX_API_URLS[chain_id]}/swap/v1/quote"
        return await self.http.get_json(url, params)

    async def get_quote(self, request: QuoteRequest) -> ProtocolQuote:
        if not self.supports_pair(request.from_token, request.to_token):
            raise TokenNotSupportedError(
                f"Chain {request.chain_id} not served by 0x", protocol=self.protocol
            )
        if request.from_token.to_base_units(request.amount) <= 0:
            raise AmountTooSmallError("Amount rounds to zero base units", protocol=self.protocol)

        params = self._params(
            request.from_token,
            request.to_token,
            request.amount,
            request.slippage_tolerance_percent,
            request.user_address,
        )
        data = await self._fetch(request.chain_id, params)

        try:
            to_amount = request.to_token.from_base_units(data["buyAmount"])
            gas = int(data.get("estimatedGas") or data.get("gas") or 0)
            impact_raw = data.get("estimatedPriceImpact")
            price_impact = Decimal(str(impact_raw)) if impact_raw not in (None, "") else Decimal("0")
        except (KeyError, TypeError, ValueError, InvalidOperation) as e:
            raise ApiError(f"Unexpected quote response: {e}", protocol=self.protocol) from e

        route = [
            RouteStep(
                protocol=str(source.get("name")),
                from_token=request.from_token,
                to_token=request.to_token,
                percentage_of_total=Decimal(str(source.get("proportion", 0))) * 100,
                pool_or_contract_address=data.get("to"),
            )
            for source in data.get("sources") or []
            if Decimal(str(source.get("proportion", 0))) > 0
        ]
        if not route:
            route = [
                RouteStep(
                    protocol=self.protocol,
                    from_token=request.from_token,
                    to_token=request.to_token,
                    percentage_of_total=Decimal("100"),
                    pool_or_contract_address=data.get("to"),
                )
            ]

        return ProtocolQuote(
            protocol=self.protocol,
            kind=self.kind,
            from_token=request.from_token,
            to_token=request.to_token,
            from_amount=request.amount,
            to_amount=to_amount,
            to_amount_minimum=minimum_output(to_amount, request.slippage_tolerance_percent),
            slippage_tolerance_percent=request.slippage_tolerance_percent,
            price_impact_percent=max(Decimal("0"), price_impact),
            gas_estimate=gas,
            route=normalize_percentages(route),
            valid_until=now_ms() + QUOTE_VALIDITY_MS,
            confidence=self.confidence,
            estimated_time_seconds=60,
            route_details={
                "taker": request.user_address,
                "to": data.get("to"),
                "data": data.get("data"),
                "value": data.get("value"),
                "gas_price": data.get("gasPrice"),
            },
        )

    async def _build_transaction(
        self,
        quote: ProtocolQuote,
        user_address: str,
        deadline: Optional[int],
    ) -> TransactionParams:
        details = quote.route_details
        taker = details.get("taker")
        if not (taker and taker.lower() == user_address.lower() and details.get("data")):
            params = self._params(
                quote.from_token,
                quote.to_token,
                quote.from_amount,
                quote.slippage_tolerance_percent,
                user_address,
            )
            details = await self._fetch(quote.from_token.chain_id, params)
            details = {
                "to": details.get("to"),
                "data": details.get("data"),
                "value": details.get("value"),
                "gas_price": details.get("gasPrice"),
            }

        if not details.get("to") or not details.get("data"):
            raise ApiError("0x response has no transaction data", protocol=self.protocol)
        return TransactionParams(
            chain_id=quote.from_token.chain_id,
            to=details["to"],
            data=details["data"],
            value=int(details.get("value") or 0),
            gas_limit=quote.gas_estimate,
            gas_price=int(details["gas_price"]) if details.get("gas_price") else None,
        )
