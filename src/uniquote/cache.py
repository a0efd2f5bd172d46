"""Short-lived TTL caches keyed by request fingerprints."""

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Generic, Optional, TypeVar

from uniquote.utils.clock import now_ms

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    """A cached value with its insertion time and lifetime (both ms)."""

    fingerprint: str
    value: V
    inserted_at: int
    ttl_ms: int

    def is_expired(self, now: int) -> bool:
        return now >= self.inserted_at + self.ttl_ms


class TTLCache(Generic[V]):
    """Async-safe in-memory cache with per-entry TTL.

    Expired entries are evicted lazily on lookup; ``start_sweeper`` runs a
    background task that also removes entries nobody asks for again.
    """

    def __init__(
        self,
        default_ttl: float = 30.0,
        clock: Optional[Callable[[], int]] = None,
        name: str = "cache",
    ):
        """Initialize cache.

        Args:
            default_ttl: Entry lifetime in seconds
            clock: Millisecond clock, injectable for tests
            name: Label used in logs
        """
        self.default_ttl = default_ttl
        self.name = name
        self._clock = clock or now_ms
        self._entries: dict[str, CacheEntry[V]] = {}
        self._lock = asyncio.Lock()
        self._sweeper: Optional[asyncio.Task] = None
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[V]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    async def set(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        ttl_seconds = self.default_ttl if ttl is None else ttl
        async with self._lock:
            self._entries[key] = CacheEntry(
                fingerprint=key,
                value=value,
                inserted_at=self._clock(),
                ttl_ms=int(ttl_seconds * 1000),
            )

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    async def sweep(self) -> int:
        """Remove all expired entries. Returns the number removed."""
        async with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug(f"[{self.name}] swept {len(expired)} expired entries")
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def start_sweeper(self, interval: float) -> None:
        """Start periodic eviction on the running loop (no-op if interval <= 0)."""
        if interval <= 0 or self._sweeper is not None:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop(interval))

    async def stop_sweeper(self) -> None:
        if self._sweeper is None:
            return
        self._sweeper.cancel()
        try:
            await self._sweeper
        except asyncio.CancelledError:
            pass
        self._sweeper = None

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.sweep()
            except Exception as e:
                logger.error(f"[{self.name}] sweep failed: {e}")

    def stats(self) -> dict:
        return {
            "name": self.name,
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "ttl_seconds": self.default_ttl,
        }


def _normalize_decimal(value: Any) -> str:
    d = Decimal(str(value))
    if d == 0:
        return "0"
    return format(d.normalize(), "f")


def quote_fingerprint(
    from_chain_id: int,
    from_address: str,
    to_chain_id: int,
    to_address: str,
    amount: Any,
    slippage: Any,
    **scope: Any,
) -> str:
    """SHA-256 fingerprint of the fields that determine a quote.

    Addresses are lower-cased and numbers normalized so that ``"1.0"`` and
    ``"1"`` map to the same key. Extra keyword arguments scope the key (for
    example the optimization target).
    """
    payload = {
        "from": [from_chain_id, from_address.lower()],
        "to": [to_chain_id, to_address.lower()],
        "amount": _normalize_decimal(amount),
        "slippage": _normalize_decimal(slippage),
    }
    for key, value in scope.items():
        if value is None:
            continue
        payload[key] = sorted(value) if isinstance(value, (list, set, tuple)) else value
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


class QuoteCache(TTLCache[V]):
    """TTL cache keyed by quote request fingerprints."""

    def key_for(self, request: Any, **scope: Any) -> str:
        """Fingerprint any request with ``from_token``/``to_token``/``amount`` fields."""
        slippage = getattr(request, "slippage_tolerance_percent", None)
        if slippage is None:
            slippage = getattr(request, "slippage", 0)
        return quote_fingerprint(
            request.from_token.chain_id,
            request.from_token.address,
            request.to_token.chain_id,
            request.to_token.address,
            request.amount,
            slippage,
            **scope,
        )
