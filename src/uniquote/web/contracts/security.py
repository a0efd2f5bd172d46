"""Security validation request contract."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from uniquote.security.types import Transaction
from uniquote.web.contracts.quotes import TokenModel


class TransactionModel(BaseModel):
    """Transaction to validate before signing."""

    to: str = Field(..., description="Contract or recipient address")
    from_address: str = Field(..., description="Sender address")
    chain_id: int = Field(default=1, gt=0)
    data: str = Field(default="0x", description="Calldata")
    value: int = Field(default=0, ge=0, description="Native value in wei")
    gas_limit: Optional[int] = Field(None, ge=0)
    gas_price: Optional[int] = Field(None, ge=0, description="Gas price in wei")
    tokens: list[TokenModel] = Field(default_factory=list)
    amount: Optional[Decimal] = Field(None, description="Amount in token units")
    slippage: Optional[Decimal] = Field(None, description="Slippage tolerance in percent")
    deadline: Optional[int] = Field(None, description="Unix seconds")

    def to_domain(self) -> Transaction:
        return Transaction(
            to=self.to,
            from_address=self.from_address,
            chain_id=self.chain_id,
            data=self.data,
            value=self.value,
            gas_limit=self.gas_limit,
            gas_price=self.gas_price,
            tokens=[t.to_domain() for t in self.tokens],
            amount=self.amount,
            slippage=self.slippage,
            deadline=self.deadline,
        )
