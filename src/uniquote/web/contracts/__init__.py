"""Request contracts for the HTTP layer.

These Pydantic models define the API interface and convert to engine types.
"""

from uniquote.web.contracts.quotes import (
    OptimizationModel,
    TokenModel,
    UnifiedQuoteRequestModel,
)
from uniquote.web.contracts.security import TransactionModel

__all__ = [
    "TokenModel",
    "OptimizationModel",
    "UnifiedQuoteRequestModel",
    "TransactionModel",
]
