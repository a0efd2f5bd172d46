"""Registry mapping protocol ids to adapter instances."""

import logging
from typing import Iterable, Optional

from uniquote.routing.base import ProtocolAdapter, Token

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """Protocol id -> adapter map used by the aggregators."""

    def __init__(self, adapters: Optional[Iterable[ProtocolAdapter]] = None):
        self._adapters: dict[str, ProtocolAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def register(self, adapter: ProtocolAdapter) -> None:
        if adapter.protocol in self._adapters:
            logger.warning(f"Replacing registered adapter for {adapter.protocol}")
        self._adapters[adapter.protocol] = adapter

    def unregister(self, protocol: str) -> Optional[ProtocolAdapter]:
        return self._adapters.pop(protocol, None)

    def get(self, protocol: str) -> Optional[ProtocolAdapter]:
        return self._adapters.get(protocol)

    @property
    def protocols(self) -> list[str]:
        return sorted(self._adapters)

    def __contains__(self, protocol: str) -> bool:
        return protocol in self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    def select(
        self,
        from_token: Token,
        to_token: Token,
        enabled: Optional[Iterable[str]] = None,
        allowed: Optional[Iterable[str]] = None,
    ) -> list[ProtocolAdapter]:
        """Adapters that are enabled, allowed for this request and support the pair.

        Results are ordered by protocol id so fan-out order is stable.
        """
        enabled_set = set(enabled) if enabled is not None else None
        allowed_set = set(allowed) if allowed else None
        selected = []
        for protocol in self.protocols:
            if enabled_set is not None and protocol not in enabled_set:
                continue
            if allowed_set is not None and protocol not in allowed_set:
                continue
            adapter = self._adapters[protocol]
            if adapter.supports_pair(from_token, to_token):
                selected.append(adapter)
        return selected

    async def close(self) -> None:
        for adapter in self._adapters.values():
            await adapter.close()
