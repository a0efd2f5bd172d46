"""Quote request contracts."""

from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field

from uniquote.engine.types import OptimizeFor, QuoteOptimization, UnifiedQuoteRequest
from uniquote.routing.base import Token


class TokenModel(BaseModel):
    """Token as sent by API clients."""

    address: str = Field(..., description="Token contract address (0xEeee... for native coins)")
    symbol: str = Field(..., description="Token symbol (e.g., USDC)")
    decimals: int = Field(..., ge=0, le=36, description="Token decimals")
    chain_id: int = Field(..., gt=0, description="EVM chain id")
    verified: bool = Field(default=True, description="Whether the token is on a verified list")
    risk_level: Optional[str] = Field(None, description="Optional external risk label")

    def to_domain(self) -> Token:
        return Token(
            address=self.address,
            symbol=self.symbol,
            decimals=self.decimals,
            chain_id=self.chain_id,
            verified=self.verified,
            risk_level=self.risk_level,
        )


class OptimizationModel(BaseModel):
    """Caller optimization preferences."""

    optimize_for: OptimizeFor = Field(default=OptimizeFor.BALANCED, description="Ranking target")
    max_slippage: Optional[Decimal] = Field(None, description="Reject quotes above this slippage (%)")
    max_price_impact: Optional[Decimal] = Field(None, description="Price impact ceiling (%)")
    max_gas_cost: Optional[int] = Field(None, description="Gas unit ceiling")
    max_time: Optional[int] = Field(None, description="Completion time ceiling (seconds)")
    mev_protection: bool = True
    gas_optimization: bool = True

    def to_domain(self) -> QuoteOptimization:
        return QuoteOptimization(**self.model_dump())


class UnifiedQuoteRequestModel(BaseModel):
    """Request for swap or bridge quotes.

    ``amount`` and ``slippage`` are validated by the engine so that malformed
    values produce the same typed error as any other invalid request.
    """

    from_token: TokenModel
    to_token: TokenModel
    amount: Union[str, Decimal] = Field(..., description="Amount in token units (e.g., '1.5')")
    slippage: Union[str, Decimal] = Field(default=Decimal("0.5"), description="Slippage tolerance in percent")
    user_address: Optional[str] = Field(None, description="Wallet that will execute the quote")
    cross_chain: bool = Field(default=False, description="Force routing through the bridge aggregator")
    protocols: Optional[list[str]] = Field(None, description="Restrict to these protocol ids (None = all)")
    optimization: Optional[OptimizationModel] = None
    deadline: Optional[int] = Field(None, description="Execution deadline (unix seconds)")

    def to_domain(self) -> UnifiedQuoteRequest:
        return UnifiedQuoteRequest(
            from_token=self.from_token.to_domain(),
            to_token=self.to_token.to_domain(),
            amount=self.amount,
            slippage=self.slippage,
            user_address=self.user_address,
            cross_chain=self.cross_chain,
            protocols=self.protocols,
            optimization=self.optimization.to_domain() if self.optimization else None,
            deadline=self.deadline,
        )
