"""Cross-chain bridge aggregation and transfer status tracking."""

import logging
from typing import Optional

from uniquote.cache import TTLCache
from uniquote.errors import AdapterError, InvalidRequestError
from uniquote.routing.aggregator import QuoteAggregator, validate_quote_request
from uniquote.routing.base import BridgeStatus, QuoteKind, QuoteRequest

logger = logging.getLogger(__name__)


class BridgeAggregator(QuoteAggregator):
    """Finds the best cross-chain route across bridge protocols.

    Besides quoting, it reports the progress of submitted transfers. Status
    lookups are cached briefly so polling clients do not hammer the
    protocol explorers.
    """

    kind = QuoteKind.BRIDGE
    name = "bridge"

    def __init__(self, *args, status_cache_ttl: float = 30.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.status_cache: TTLCache[BridgeStatus] = TTLCache(status_cache_ttl, name="bridge-status")

    def _check_request(self, request: QuoteRequest) -> None:
        validate_quote_request(request)
        if not request.is_cross_chain and not request.force_bridge:
            raise InvalidRequestError(
                f"Bridge requires tokens on different chains, got chain {request.from_token.chain_id} twice"
            )

    def get_supported_chains(self) -> list[int]:
        chains: set[int] = set()
        for protocol in self.registry.protocols:
            adapter = self.registry.get(protocol)
            chains.update(getattr(adapter, "supported_chains", []))
        return sorted(chains)

    async def get_status(self, tx_hash: str, protocol: Optional[str] = None) -> BridgeStatus:
        """
        Get the status of a bridge transfer.

        Args:
            tx_hash: Source-chain transaction hash
            protocol: Protocol that carried the transfer; every bridge is
                tried in turn when omitted

        Returns:
            BridgeStatus

        Raises:
            InvalidRequestError: unknown protocol or no bridge adapters
            AdapterError: every lookup failed
        """
        cache_key = f"{protocol or '*'}:{tx_hash.lower()}"
        cached = await self.status_cache.get(cache_key)
        if cached is not None:
            return cached

        if protocol is not None:
            adapter = self.registry.get(protocol)
            if adapter is None or not hasattr(adapter, "get_status"):
                raise InvalidRequestError(f"Unknown bridge protocol: {protocol}")
            candidates = [adapter]
        else:
            candidates = [
                self.registry.get(p)
                for p in self.registry.protocols
                if hasattr(self.registry.get(p), "get_status")
            ]
        if not candidates:
            raise InvalidRequestError("No bridge adapters registered")

        last_error: Optional[AdapterError] = None
        for adapter in candidates:
            try:
                status = await adapter.get_status(tx_hash)
            except AdapterError as e:
                logger.debug(f"[bridge] status lookup via {adapter.protocol} failed: {e}")
                last_error = e
                continue
            await self.status_cache.set(cache_key, status)
            return status

        raise last_error

    async def close(self) -> None:
        await self.status_cache.stop_sweeper()
        await super().close()
