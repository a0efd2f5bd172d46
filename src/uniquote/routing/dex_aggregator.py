"""Same-chain swap aggregation across DEX aggregator protocols."""

import logging

from uniquote.errors import InvalidRequestError
from uniquote.routing.aggregator import QuoteAggregator, validate_quote_request
from uniquote.routing.base import QuoteKind, QuoteRequest

logger = logging.getLogger(__name__)


class DexAggregator(QuoteAggregator):
    """Finds the best single-chain swap quote across DEX protocols."""

    kind = QuoteKind.SWAP
    name = "dex"

    def _check_request(self, request: QuoteRequest) -> None:
        validate_quote_request(request)
        if request.is_cross_chain:
            raise InvalidRequestError(
                f"Swap requires tokens on one chain, got {request.from_token.chain_id} "
                f"and {request.to_token.chain_id}"
            )
