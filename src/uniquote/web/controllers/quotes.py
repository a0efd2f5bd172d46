"""Quote API endpoints."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from uniquote.engine.quote_engine import QuoteEngine
from uniquote.errors import ErrorKind
from uniquote.web.contracts.quotes import UnifiedQuoteRequestModel

router = APIRouter(prefix="/quotes", tags=["quotes"])


def get_engine(request: Request) -> QuoteEngine:
    return request.app.state.engine


@router.post("")
async def get_quotes(body: UnifiedQuoteRequestModel, engine: QuoteEngine = Depends(get_engine)):
    """Get ranked swap or bridge quotes.

    Same-chain requests are quoted by DEX aggregators, cross-chain requests
    by bridges. This is a READ-ONLY operation - nothing is executed.
    Invalid requests return 400; no-quote and security-blocked outcomes are
    reported in the body with ``error_kind`` set.
    """
    response = await engine.get_quote(body.to_domain())
    if response.error_kind == ErrorKind.INVALID_REQUEST:
        return JSONResponse(status_code=400, content=response.to_dict())
    return response.to_dict()
