"""Tests for protocol adapters against mocked HTTP APIs."""

import json
from dataclasses import replace
from decimal import Decimal

import httpx
import pytest
from eth_abi import decode
from eth_utils import function_signature_to_4byte_selector

from uniquote.errors import (
    AmountTooSmallError,
    ApiError,
    NetworkError,
    QuoteExpiredError,
    QuoteTimeoutError,
    RateLimitExceededError,
    TokenNotSupportedError,
)
from uniquote.routing.base import (
    BridgeTransferState,
    QuoteKind,
    QuoteRequest,
    Token,
    route_percentages_valid,
)
from uniquote.routing.http import AdapterHttpClient
from uniquote.routing.layerzero import (
    LAYERZERO_ENDPOINTS,
    STARGATE_SWAP_SIGNATURE,
    StargateAdapter,
)
from uniquote.routing.oneinch import ONEINCH_ROUTER_V5, OneInchAdapter
from uniquote.routing.prices import StaticPriceFeed
from uniquote.routing.ratelimit import SlidingWindowRateLimiter
from uniquote.routing.thorchain import DEPOSIT_SIGNATURE, THORChainAdapter, thorchain_asset
from uniquote.routing.zerox import ZeroXAdapter
from uniquote.security.sources import ZEROX_EXCHANGE_PROXY

USER = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"


def make_http(handler, protocol="test", base_url="https://api.test", **kwargs) -> AdapterHttpClient:
    kwargs.setdefault("retry_attempts", 1)
    kwargs.setdefault("retry_base_delay", 0.0)
    return AdapterHttpClient(
        protocol=protocol,
        base_url=base_url,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def json_response(payload, status_code=200) -> httpx.Response:
    return httpx.Response(status_code, json=payload)


ETH_ADDRESS = "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee"
USDC_ADDRESS = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"
WETH_ADDRESS = "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2"

ONEINCH_QUOTE = {
    "toTokenAmount": "2510000000",
    "estimatedGas": 150000,
    "protocols": [
        [
            [
                {"name": "UNISWAP_V3", "part": 60, "fromTokenAddress": ETH_ADDRESS, "toTokenAddress": USDC_ADDRESS},
                {"name": "SUSHI", "part": 40, "fromTokenAddress": ETH_ADDRESS, "toTokenAddress": USDC_ADDRESS},
            ]
        ]
    ],
}


class TestAdapterHttpClient:
    """Tests for retry, rate limit and error mapping."""

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self):
        """A 400 maps to ApiError with its status and is not retried."""
        calls = []

        def handler(request):
            calls.append(request)
            return json_response({"description": "bad token"}, 400)

        http = make_http(handler, retry_attempts=3)

        with pytest.raises(ApiError) as exc_info:
            await http.get_json("/quote")

        assert exc_info.value.status_code == 400
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_server_error_is_retried(self):
        """5xx responses are retried until one succeeds."""
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return json_response({}, 503)
            return json_response({"ok": True})

        http = make_http(handler, retry_attempts=3)

        assert await http.get_json("/quote") == {"ok": True}
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_transport_failure_maps_to_network_error(self):
        """Connection errors surface as NetworkError after retries."""

        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        http = make_http(handler, retry_attempts=2)

        with pytest.raises(NetworkError):
            await http.get_json("/quote")

    @pytest.mark.asyncio
    async def test_timeout_maps_to_quote_timeout(self):
        """httpx timeouts surface as QuoteTimeoutError."""

        def handler(request):
            raise httpx.ReadTimeout("read timed out", request=request)

        http = make_http(handler)

        with pytest.raises(QuoteTimeoutError):
            await http.get_json("/quote")

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        """Non-JSON bodies surface as ApiError."""

        def handler(request):
            return httpx.Response(200, content=b"<html>oops</html>")

        http = make_http(handler)

        with pytest.raises(ApiError):
            await http.get_json("/quote")

    @pytest.mark.asyncio
    async def test_rate_limit_fails_fast(self):
        """An exhausted limiter raises without calling the API."""
        calls = []

        def handler(request):
            calls.append(request)
            return json_response({})

        http = make_http(
            handler,
            rate_limiter=SlidingWindowRateLimiter(max_requests=1, window_seconds=60),
        )

        await http.get_json("/quote")
        with pytest.raises(RateLimitExceededError):
            await http.get_json("/quote")
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_none_params_are_dropped(self):
        """Optional parameters left as None are not sent."""
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return json_response({})

        http = make_http(handler)
        await http.get_json("/quote", {"a": "1", "b": None})

        assert seen == {"a": "1"}


class TestOneInchAdapter:
    """Tests for the 1inch adapter."""

    @pytest.mark.asyncio
    async def test_quote_mapping(self, swap_request):
        """Quote fields, gas margin and split route are mapped."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return json_response(ONEINCH_QUOTE)

        adapter = OneInchAdapter(make_http(handler, "1inch"))
        quote = await adapter.get_quote(swap_request)

        assert seen["path"] == "/v5.0/1/quote"
        assert seen["params"]["amount"] == "1000000000000000000"
        assert seen["params"]["slippage"] == "0.5"
        assert quote.protocol == "1inch"
        assert quote.kind == QuoteKind.SWAP
        assert quote.to_amount == Decimal("2510")
        assert quote.to_amount_minimum == Decimal("2497.45")
        assert quote.gas_estimate == 180000
        assert [s.protocol for s in quote.route] == ["UNISWAP_V3", "SUSHI"]
        assert [s.percentage_of_total for s in quote.route] == [Decimal("60"), Decimal("40")]
        assert route_percentages_valid(quote.route)
        assert quote.route_details["router"] == ONEINCH_ROUTER_V5

    @pytest.mark.asyncio
    async def test_multi_hop_route(self, swap_request):
        """Each hop of a sequential route sums to 100%."""
        payload = dict(ONEINCH_QUOTE)
        payload["protocols"] = [
            [
                [{"name": "UNISWAP_V3", "part": 100}],
                [{"name": "CURVE", "part": 33}, {"name": "BALANCER", "part": 33}],
            ]
        ]

        adapter = OneInchAdapter(make_http(lambda r: json_response(payload), "1inch"))
        quote = await adapter.get_quote(swap_request)

        assert [s.hop for s in quote.route] == [0, 1, 1]
        assert route_percentages_valid(quote.route)
        assert sum(s.percentage_of_total for s in quote.route if s.hop == 1) == Decimal("100")

    @pytest.mark.asyncio
    async def test_price_impact_from_feed(self, swap_request):
        """With a price feed, impact is the value lost versus reference prices."""
        payload = dict(ONEINCH_QUOTE, toTokenAmount="2450000000")
        adapter = OneInchAdapter(
            make_http(lambda r: json_response(payload), "1inch"),
            price_feed=StaticPriceFeed(),
        )

        quote = await adapter.get_quote(swap_request)

        assert quote.price_impact_percent == Decimal("2")

    @pytest.mark.asyncio
    async def test_cross_chain_not_supported(self, usdc, usdc_polygon):
        """1inch only quotes same-chain pairs."""
        adapter = OneInchAdapter(make_http(lambda r: json_response({}), "1inch"))
        request = QuoteRequest(from_token=usdc, to_token=usdc_polygon, amount=Decimal("1"))

        assert not adapter.supports_pair(usdc, usdc_polygon)
        with pytest.raises(TokenNotSupportedError):
            await adapter.get_quote(request)

    @pytest.mark.asyncio
    async def test_amount_below_minimum(self, eth, usdc):
        """Dust amounts are rejected before any request."""
        adapter = OneInchAdapter(make_http(lambda r: json_response({}), "1inch"))
        request = QuoteRequest(from_token=eth, to_token=usdc, amount=Decimal("0.0000001"))

        with pytest.raises(AmountTooSmallError):
            await adapter.get_quote(request)

    @pytest.mark.asyncio
    async def test_malformed_quote(self, swap_request):
        """A response without toTokenAmount is an ApiError."""
        adapter = OneInchAdapter(make_http(lambda r: json_response({"estimatedGas": 1}), "1inch"))

        with pytest.raises(ApiError):
            await adapter.get_quote(swap_request)

    @pytest.mark.asyncio
    async def test_token_list_restricts_pairs(self, eth, usdc, usdt):
        """After loading the token list, unknown tokens are unsupported."""
        tokens = {
            "tokens": {
                "0xeee": {"address": "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE", "symbol": "ETH", "decimals": 18},
                "0xa0b": {"address": usdc.address, "symbol": "USDC", "decimals": 6},
            }
        }
        adapter = OneInchAdapter(make_http(lambda r: json_response(tokens), "1inch"))

        loaded = await adapter.load_supported_tokens(1)

        assert len(loaded) == 2
        assert adapter.supports_pair(eth, usdc)
        assert not adapter.supports_pair(eth, usdt)

    @pytest.mark.asyncio
    async def test_multi_hop_route_keeps_intermediate_tokens(self, swap_request, eth, usdc):
        """Each hop carries the tokens it actually swaps between."""
        payload = dict(ONEINCH_QUOTE)
        payload["protocols"] = [
            [
                [{"name": "WETH", "part": 100, "fromTokenAddress": ETH_ADDRESS, "toTokenAddress": WETH_ADDRESS}],
                [{"name": "UNISWAP_V3", "part": 100, "fromTokenAddress": WETH_ADDRESS, "toTokenAddress": USDC_ADDRESS}],
            ]
        ]
        tokens = {
            "tokens": {
                ETH_ADDRESS: {"address": ETH_ADDRESS, "symbol": "ETH", "decimals": 18},
                WETH_ADDRESS: {"address": WETH_ADDRESS, "symbol": "WETH", "decimals": 18},
                USDC_ADDRESS: {"address": USDC_ADDRESS, "symbol": "USDC", "decimals": 6},
            }
        }

        def handler(request):
            if request.url.path.endswith("/tokens"):
                return json_response(tokens)
            return json_response(payload)

        adapter = OneInchAdapter(make_http(handler, "1inch"))
        await adapter.load_supported_tokens(1)
        quote = await adapter.get_quote(swap_request)

        first, second = quote.route
        assert first.from_token == eth
        assert first.to_token.symbol == "WETH"
        assert second.from_token.address == WETH_ADDRESS
        assert second.to_token == usdc

    @pytest.mark.asyncio
    async def test_unknown_intermediate_token_kept_by_address(self, swap_request):
        payload = dict(ONEINCH_QUOTE)
        payload["protocols"] = [
            [
                [{"name": "CURVE", "part": 100, "fromTokenAddress": ETH_ADDRESS, "toTokenAddress": WETH_ADDRESS}],
                [{"name": "CURVE", "part": 100, "fromTokenAddress": WETH_ADDRESS, "toTokenAddress": USDC_ADDRESS}],
            ]
        ]
        adapter = OneInchAdapter(make_http(lambda r: json_response(payload), "1inch"))

        quote = await adapter.get_quote(swap_request)

        intermediate = quote.route[0].to_token
        assert intermediate.address == WETH_ADDRESS
        assert not intermediate.verified
        assert quote.route[1].from_token == intermediate

    @pytest.mark.asyncio
    async def test_build_transaction(self, swap_request):
        """Swap calldata is fetched from /swap for the user."""
        seen = {}

        def handler(request):
            if request.url.path.endswith("/quote"):
                return json_response(ONEINCH_QUOTE)
            seen["params"] = dict(request.url.params)
            return json_response(
                {
                    "tx": {
                        "to": ONEINCH_ROUTER_V5,
                        "data": "0x12aa3caf",
                        "value": "1000000000000000000",
                        "gas": 210000,
                        "gasPrice": "25000000000",
                    }
                }
            )

        adapter = OneInchAdapter(make_http(handler, "1inch"))
        quote = await adapter.get_quote(swap_request)
        tx = await adapter.build_transaction(quote, USER)

        assert seen["params"]["fromAddress"] == USER
        assert tx.to == ONEINCH_ROUTER_V5
        assert tx.data == "0x12aa3caf"
        assert tx.value == 10**18
        assert tx.gas_limit == 210000
        assert tx.gas_price == 25 * 10**9

    @pytest.mark.asyncio
    async def test_expired_quote_is_rejected(self, swap_request):
        """Building a transaction for a stale quote raises QuoteExpiredError."""
        adapter = OneInchAdapter(make_http(lambda r: json_response(ONEINCH_QUOTE), "1inch"))
        quote = await adapter.get_quote(swap_request)
        stale = replace(quote, valid_until=quote.valid_until - 10 * 60 * 1000)

        with pytest.raises(QuoteExpiredError):
            await adapter.build_transaction(stale, USER)


ZEROX_QUOTE = {
    "buyAmount": "2505000000",
    "estimatedGas": "140000",
    "estimatedPriceImpact": "0.12",
    "sources": [
        {"name": "Uniswap_V3", "proportion": "0.7"},
        {"name": "Curve", "proportion": "0.3"},
        {"name": "Balancer", "proportion": "0"},
    ],
    "to": ZEROX_EXCHANGE_PROXY,
    "data": "0xd9627aa4",
    "value": "1000000000000000000",
    "gasPrice": "20000000000",
}


class TestZeroXAdapter:
    """Tests for the 0x adapter."""

    @pytest.mark.asyncio
    async def test_quote_mapping(self, swap_request):
        """Amounts, impact and active sources are mapped."""
        seen = {}

        def handler(request):
            seen["host"] = request.url.host
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return json_response(ZEROX_QUOTE)

        adapter = ZeroXAdapter(make_http(handler, "0x", base_url=""))
        quote = await adapter.get_quote(swap_request)

        assert seen["host"] == "api.0x.org"
        assert seen["path"] == "/swap/v1/quote"
        assert seen["params"]["sellAmount"] == "1000000000000000000"
        assert Decimal(seen["params"]["slippagePercentage"]) == Decimal("0.005")
        assert "takerAddress" not in seen["params"]
        assert quote.to_amount == Decimal("2505")
        assert quote.price_impact_percent == Decimal("0.12")
        assert quote.gas_estimate == 140000
        assert [s.protocol for s in quote.route] == ["Uniswap_V3", "Curve"]
        assert route_percentages_valid(quote.route)

    @pytest.mark.asyncio
    async def test_reuses_calldata_for_same_taker(self, eth, usdc):
        """build_transaction reuses quote calldata when the taker matches."""
        calls = []

        def handler(request):
            calls.append(request)
            return json_response(ZEROX_QUOTE)

        adapter = ZeroXAdapter(make_http(handler, "0x", base_url=""))
        request = QuoteRequest(from_token=eth, to_token=usdc, amount=Decimal("1"), user_address=USER)
        quote = await adapter.get_quote(request)
        tx = await adapter.build_transaction(quote, USER)

        assert len(calls) == 1
        assert tx.to == ZEROX_EXCHANGE_PROXY
        assert tx.data == "0xd9627aa4"
        assert tx.value == 10**18
        assert tx.gas_price == 20 * 10**9

    @pytest.mark.asyncio
    async def test_refetches_for_other_taker(self, swap_request):
        """A quote fetched without a taker is re-quoted for the user."""
        calls = []

        def handler(request):
            calls.append(dict(request.url.params))
            return json_response(ZEROX_QUOTE)

        adapter = ZeroXAdapter(make_http(handler, "0x", base_url=""))
        quote = await adapter.get_quote(swap_request)
        await adapter.build_transaction(quote, USER)

        assert len(calls) == 2
        assert calls[1]["takerAddress"] == USER

    def test_unsupported_chain(self, eth):
        """Chains without a 0x host are not supported."""
        ftm = Token(address=eth.address, symbol="FTM", decimals=18, chain_id=250)
        usdc_ftm = Token(address="0x04068DA6C83AFCFA0e13ba15A6696662335D5B75", symbol="USDC", decimals=6, chain_id=250)
        adapter = ZeroXAdapter(make_http(lambda r: json_response({}), "0x", base_url=""))

        assert not adapter.supports_pair(ftm, usdc_ftm)


STARGATE_QUOTE = {
    "amountLD": "999400000",
    "minAmountLD": "994403000",
    "eqFee": "100000",
    "eqReward": "0",
    "lpFee": "450000",
    "protocolFee": "50000",
    "nativeFee": "1234567",
}


class TestStargateAdapter:
    """Tests for the LayerZero / Stargate adapter."""

    @pytest.mark.asyncio
    async def test_quote_mapping(self, bridge_request):
        """Fees, impact and the single bridge step are mapped."""
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return json_response(STARGATE_QUOTE)

        adapter = StargateAdapter(make_http(handler, "layerzero"))
        quote = await adapter.get_quote(bridge_request)

        assert seen["params"]["srcPoolId"] == "1"
        assert seen["params"]["dstPoolId"] == "1"
        assert seen["params"]["amount"] == "1000000000"
        assert quote.kind == QuoteKind.BRIDGE
        assert quote.to_amount == Decimal("999.4")
        assert quote.fee_amount == Decimal("0.6")
        assert quote.price_impact_percent == Decimal("550000") / Decimal("999400000") * 100
        assert quote.estimated_time_seconds == 300
        assert len(quote.route) == 1
        assert quote.route[0].action == "bridge"
        assert quote.route[0].pool_or_contract_address == LAYERZERO_ENDPOINTS[1].stargate_router

    @pytest.mark.asyncio
    async def test_unsupported_token(self, eth, usdc_polygon):
        """Only Stargate pool tokens are bridged."""
        adapter = StargateAdapter(make_http(lambda r: json_response(STARGATE_QUOTE), "layerzero"))
        request = QuoteRequest(from_token=eth, to_token=usdc_polygon, amount=Decimal("1"))

        with pytest.raises(TokenNotSupportedError):
            await adapter.get_quote(request)

    def test_same_chain_not_supported(self, usdc, usdt):
        adapter = StargateAdapter(make_http(lambda r: json_response({}), "layerzero"))

        assert not adapter.supports_pair(usdc, usdt)

    @pytest.mark.asyncio
    async def test_build_transaction_calldata(self, bridge_request):
        """The router swap call is ABI-encoded with the quote's amounts."""
        adapter = StargateAdapter(make_http(lambda r: json_response(STARGATE_QUOTE), "layerzero"))
        quote = await adapter.get_quote(bridge_request)

        tx = await adapter.build_transaction(quote, USER)

        selector = function_signature_to_4byte_selector(STARGATE_SWAP_SIGNATURE)
        assert tx.to == LAYERZERO_ENDPOINTS[1].stargate_router
        assert tx.data.startswith("0x" + selector.hex())
        assert tx.value == 1234567

        args = decode(
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
            bytes.fromhex(tx.data[10:]),
        )
        assert args[0] == LAYERZERO_ENDPOINTS[137].lz_chain_id
        assert args[1] == 1 and args[2] == 1
        assert args[3].lower() == USER.lower()
        assert args[4] == 1_000_000_000
        assert args[5] == 994_403_000
        assert args[7] == bytes.fromhex(USER[2:])

    @pytest.mark.asyncio
    async def test_status_from_scan(self):
        """LayerZero Scan message status maps to BridgeStatus."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return json_response(
                {
                    "messages": [
                        {
                            "status": "DELIVERED",
                            "srcTxHash": "0xabc",
                            "dstTxHash": "0xdef",
                            "srcChainId": 101,
                            "dstChainId": 109,
                        }
                    ]
                }
            )

        adapter = StargateAdapter(
            make_http(lambda r: json_response({}), "layerzero"),
            scan_http=make_http(handler, "layerzero-scan"),
        )
        status = await adapter.get_status("0xabc")

        assert seen["path"] == "/api/tx/0xabc"
        assert status.status == BridgeTransferState.COMPLETED
        assert status.to_tx_hash == "0xdef"
        assert status.is_final

    @pytest.mark.asyncio
    async def test_status_without_messages_is_pending(self):
        adapter = StargateAdapter(make_http(lambda r: json_response({"messages": []}), "layerzero"))

        status = await adapter.get_status("0xabc")

        assert status.status == BridgeTransferState.PENDING
        assert not status.is_final


THOR_INBOUND = "0x1234567890abcdef1234567890abcdef12345678"
THOR_ROUTER = "0xD37BbE5744D730a1d98d8DC97c42F0Ca46aD7146"


def thor_quote(memo: str) -> dict:
    return {
        "expected_amount_out": "250000000000",
        "fees": {"total": "150000000", "slippage_bps": 12},
        "memo": memo,
        "inbound_address": THOR_INBOUND,
        "router": THOR_ROUTER,
        "expiry": 1700000000,
        "total_swap_seconds": 720,
    }


class TestTHORChainAdapter:
    """Tests for the THORChain adapter."""

    def test_asset_notation(self, eth, usdt_bsc):
        assert thorchain_asset(eth) == "ETH.ETH"
        assert thorchain_asset(usdt_bsc) == "BSC.USDT-0X55D398326F99059FF775485246999027B3197955"

    @pytest.mark.asyncio
    async def test_quote_is_two_hops(self, eth, usdt_bsc):
        """Quotes route through RUNE in two hops, each summing to 100%."""
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return json_response(thor_quote(f"=:BSC.USDT:{USER}"))

        adapter = THORChainAdapter(make_http(handler, "thorchain"))
        request = QuoteRequest(
            from_token=eth, to_token=usdt_bsc, amount=Decimal("1"), user_address=USER
        )
        quote = await adapter.get_quote(request)

        assert seen["path"] == "/thorchain/quote/swap"
        assert seen["params"]["from_asset"] == "ETH.ETH"
        assert seen["params"]["amount"] == "100000000"
        assert seen["params"]["tolerance_bps"] == "50"
        assert quote.to_amount == Decimal("2500")
        assert quote.fee_amount == Decimal("1.5")
        assert quote.price_impact_percent == Decimal("0.12")
        assert quote.estimated_time_seconds == 720
        assert [s.hop for s in quote.route] == [0, 1]
        assert quote.route[0].to_token.symbol == "RUNE"
        assert route_percentages_valid(quote.route)

    @pytest.mark.asyncio
    async def test_build_native_deposit(self, eth, usdt_bsc):
        """Native deposits send value to the vault with the memo as data."""
        memo = f"=:BSC.USDT:{USER}"
        calls = []

        def handler(request):
            calls.append(request)
            return json_response(thor_quote(memo))

        adapter = THORChainAdapter(make_http(handler, "thorchain"))
        request = QuoteRequest(
            from_token=eth, to_token=usdt_bsc, amount=Decimal("1"), user_address=USER
        )
        quote = await adapter.get_quote(request)
        tx = await adapter.build_transaction(quote, USER)

        assert len(calls) == 1
        assert tx.to == THOR_INBOUND
        assert tx.value == 10**18
        assert bytes.fromhex(tx.data[2:]).decode() == memo

    @pytest.mark.asyncio
    async def test_build_token_deposit_requotes_for_new_destination(self, usdt, usdt_bsc):
        """Token deposits call the router; a different user triggers a re-quote."""
        calls = []

        def handler(request):
            calls.append(dict(request.url.params))
            return json_response(thor_quote(f"=:BSC.USDT:{USER}"))

        adapter = THORChainAdapter(make_http(handler, "thorchain"))
        request = QuoteRequest(from_token=usdt, to_token=usdt_bsc, amount=Decimal("100"))
        quote = await adapter.get_quote(request)
        tx = await adapter.build_transaction(quote, USER, deadline=1800000000)

        selector = function_signature_to_4byte_selector(DEPOSIT_SIGNATURE)
        assert len(calls) == 2
        assert calls[1]["destination"] == USER
        assert tx.to == THOR_ROUTER
        assert tx.value == 0
        assert tx.data.startswith("0x" + selector.hex())

        vault, asset, amount, memo, expiry = decode(
            ["address", "address", "uint256", "string", "uint256"], bytes.fromhex(tx.data[10:])
        )
        assert vault.lower() == THOR_INBOUND
        assert asset.lower() == usdt.address.lower()
        assert amount == 100_000_000
        assert expiry == 1800000000

    @pytest.mark.asyncio
    async def test_fee_error_maps_to_amount_too_small(self, eth, usdt_bsc):
        payload = {"error": "not enough asset to pay for fees"}
        adapter = THORChainAdapter(make_http(lambda r: json_response(payload), "thorchain"))
        request = QuoteRequest(from_token=eth, to_token=usdt_bsc, amount=Decimal("0.0001"))

        with pytest.raises(AmountTooSmallError):
            await adapter.get_quote(request)

    def test_unsupported_chain(self, usdc, usdc_polygon):
        """Polygon is not a THORChain chain."""
        adapter = THORChainAdapter(make_http(lambda r: json_response({}), "thorchain"))

        assert not adapter.supports_pair(usdc, usdc_polygon)

    def test_same_chain_pool_swap_supported(self, eth, usdc):
        """Two pooled assets on one chain swap through RUNE too."""
        adapter = THORChainAdapter(make_http(lambda r: json_response({}), "thorchain"))

        assert adapter.supports_pair(eth, usdc)
        assert not adapter.supports_pair(eth, eth)

    @pytest.mark.asyncio
    async def test_status_stages(self):
        """Completed outbound maps to COMPLETED, refund memos to REFUNDED."""
        payload = {
            "stages": {
                "inbound_finalised": {"completed": True},
                "swap_status": {"pending": False},
                "outbound_signed": {"completed": True},
            },
            "out_txs": [{"id": "ABCDEF", "memo": "OUT:1234"}],
        }
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            return httpx.Response(200, content=json.dumps(payload).encode())

        adapter = THORChainAdapter(make_http(handler, "thorchain"))
        status = await adapter.get_status("0xabc123")

        assert seen["path"] == "/thorchain/tx/status/ABC123"
        assert status.status == BridgeTransferState.COMPLETED
        assert status.to_tx_hash == "0xabcdef"

        payload["out_txs"][0]["memo"] = "REFUND:1234"
        refunded = await adapter.get_status("0xabc124")
        assert refunded.status == BridgeTransferState.REFUNDED
