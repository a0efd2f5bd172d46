"""Tests for the FastAPI endpoints."""

import pytest
from httpx import ASGITransport, AsyncClient

from uniquote.api.app import create_app
from uniquote.routing.dry_run import SIMULATED_ROUTER

USER = "0x742d35Cc6634C0532925a3b844Bc454e4438f44e"

ETH = {
    "address": "0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE",
    "symbol": "ETH",
    "decimals": 18,
    "chain_id": 1,
}
USDC = {
    "address": "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
    "symbol": "USDC",
    "decimals": 6,
    "chain_id": 1,
}
USDC_POLYGON = {
    "address": "0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359",
    "symbol": "USDC",
    "decimals": 6,
    "chain_id": 137,
}


@pytest.fixture
async def test_app(settings):
    """Create test application with simulated adapters."""
    app = create_app(settings)

    yield app

    await app.state.engine.close()


@pytest.fixture
async def client(test_app):
    """Create async test client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        """Test basic health check."""
        response = await client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "uniquote"

    @pytest.mark.asyncio
    async def test_detailed_health(self, client):
        """Test detailed health check."""
        response = await client.get("/health/detailed")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["config"]["dry_run"] is True
        assert data["config"]["security"]["etherscan_api_key"] == "(not set)"
        assert data["engine"]["total_requests"] == 0


class TestQuoteEndpoints:
    """Tests for the quote endpoint."""

    @pytest.mark.asyncio
    async def test_swap_quote(self, client):
        """Test a same-chain swap quote."""
        response = await client.post(
            "/api/v1/quotes",
            json={"from_token": ETH, "to_token": USDC, "amount": "1", "slippage": "0.5"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "delivered"
        assert data["best_quote"]["kind"] == "swap"
        assert data["best_quote"]["metadata"]["protocol"] in ("1inch", "0x")
        assert len(data["quotes"]) == 2

    @pytest.mark.asyncio
    async def test_bridge_quote_with_security(self, client):
        """Test a cross-chain quote validated for the user."""
        response = await client.post(
            "/api/v1/quotes",
            json={
                "from_token": USDC,
                "to_token": USDC_POLYGON,
                "amount": "1000",
                "user_address": USER,
                "optimization": {"optimize_for": "output"},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["best_quote"]["kind"] == "bridge"
        assert data["security"]["passed"] is True

    @pytest.mark.asyncio
    async def test_forced_bridge_quote(self, client):
        """Test cross_chain routes a same-chain pair through a bridge."""
        response = await client.post(
            "/api/v1/quotes",
            json={"from_token": ETH, "to_token": USDC, "amount": "1", "cross_chain": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "delivered"
        assert data["best_quote"]["kind"] == "bridge"
        assert data["best_quote"]["metadata"]["protocol"] == "thorchain"

    @pytest.mark.asyncio
    async def test_invalid_amount(self, client):
        """Test a non-numeric amount is rejected with 400."""
        response = await client.post(
            "/api/v1/quotes",
            json={"from_token": ETH, "to_token": USDC, "amount": "lots"},
        )

        assert response.status_code == 400
        data = response.json()
        assert data["state"] == "rejected"
        assert data["error_kind"] == "invalid_request"

    @pytest.mark.asyncio
    async def test_malformed_body(self, client):
        """Test a body missing required fields."""
        response = await client.post("/api/v1/quotes", json={"from_token": ETH})

        assert response.status_code == 400
        data = response.json()
        assert data["error"]["kind"] == "invalid_request"
        assert data["error"]["details"]["errors"]

    @pytest.mark.asyncio
    async def test_unsupported_pair(self, client):
        """Test a pair no adapter can quote."""
        unknown = {**USDC, "address": "0x" + "ab" * 20, "symbol": "XYZ"}
        response = await client.post(
            "/api/v1/quotes",
            json={"from_token": ETH, "to_token": unknown, "amount": "1"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["state"] == "failed"
        assert data["error_kind"] == "no_quotes_available"


class TestSecurityEndpoints:
    """Tests for transaction validation."""

    @pytest.mark.asyncio
    async def test_validate_transaction(self, client):
        response = await client.post(
            "/api/v1/security/validate",
            json={
                "to": SIMULATED_ROUTER,
                "from_address": USER,
                "tokens": [ETH, USDC],
                "amount": "1",
                "slippage": "0.5",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["passed"] is True
        assert data["overall"] == "low"

    @pytest.mark.asyncio
    async def test_validate_unknown_contract(self, client):
        response = await client.post(
            "/api/v1/security/validate",
            json={"to": "0x" + "12" * 20, "from_address": USER},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["overall"] == "high"
        assert any(c["type"] == "contract_verification" and not c["passed"] for c in data["checks"])

    @pytest.mark.asyncio
    async def test_validate_bad_address(self, client):
        response = await client.post(
            "/api/v1/security/validate",
            json={"to": "0xnope", "from_address": USER},
        )

        assert response.status_code == 400
        assert response.json()["error"]["kind"] == "invalid_request"
