"""Security validation endpoints."""

from eth_utils import is_address
from fastapi import APIRouter, Depends, Request

from uniquote.errors import InvalidRequestError
from uniquote.security.validator import SecurityValidator
from uniquote.web.contracts.security import TransactionModel

router = APIRouter(prefix="/security", tags=["security"])


def get_validator(request: Request) -> SecurityValidator:
    return request.app.state.validator


@router.post("/validate")
async def validate_transaction(
    body: TransactionModel, validator: SecurityValidator = Depends(get_validator)
) -> dict:
    """Run every security check over a transaction and return the verdict."""
    for name in ("to", "from_address"):
        address = getattr(body, name)
        if not is_address(address.lower()):
            raise InvalidRequestError(f"{name} is not a valid address: {address!r}")

    result = await validator.validate_transaction(body.to_domain())
    return result.to_dict()
