"""HTTP client composed into every protocol adapter.

Handles rate limiting, per-request timeouts and retry with exponential
backoff, and maps transport failures to typed adapter errors.
"""

import asyncio
import logging
from typing import Any, Optional

import httpx

from uniquote.errors import ApiError, NetworkError, QuoteTimeoutError, RateLimitExceededError
from uniquote.routing.ratelimit import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class AdapterHttpClient:
    """Rate-limited, retrying JSON client for one protocol API."""

    def __init__(
        self,
        protocol: str,
        base_url: str = "",
        timeout: float = 10.0,
        retry_attempts: int = 3,
        retry_base_delay: float = 1.0,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        headers: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the client.

        Args:
            protocol: Protocol id used in log lines and errors
            base_url: Prefix for relative request paths
            timeout: Seconds before a single attempt is aborted
            retry_attempts: Total attempts per request (1 = no retry)
            retry_base_delay: Backoff delay, doubled after each failed attempt
            rate_limiter: Limiter consulted before every attempt
            headers: Extra headers (API keys)
            transport: Optional httpx transport, e.g. ``httpx.MockTransport``
        """
        self.protocol = protocol
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_attempts = max(1, retry_attempts)
        self.retry_base_delay = retry_base_delay
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter(name=protocol)
        self.headers = headers or {}
        self._transport = transport

    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises:
            RateLimitExceededError: limiter window is full
            QuoteTimeoutError: every attempt timed out
            NetworkError: every attempt failed at the transport level
            ApiError: non-success status or malformed JSON
        """
        url = self._url(path)
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}
        last_error: Exception = NetworkError("no attempt made", protocol=self.protocol)

        for attempt in range(self.retry_attempts):
            if not await self.rate_limiter.try_acquire():
                raise RateLimitExceededError(
                    "Local rate limit exceeded", protocol=self.protocol
                )

            try:
                return await asyncio.wait_for(
                    self._send(url, clean_params), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                last_error = QuoteTimeoutError(
                    f"Request timed out after {self.timeout}s", protocol=self.protocol
                )
            except httpx.TimeoutException as e:
                last_error = QuoteTimeoutError(f"Request timed out: {e}", protocol=self.protocol)
            except httpx.TransportError as e:
                last_error = NetworkError(f"{type(e).__name__}: {e}", protocol=self.protocol)
            except ApiError as e:
                if e.status_code not in RETRYABLE_STATUS:
                    raise
                last_error = e

            if attempt + 1 < self.retry_attempts:
                delay = self.retry_base_delay * (2**attempt)
                logger.debug(
                    f"[{self.protocol}] attempt {attempt + 1}/{self.retry_attempts} failed "
                    f"({last_error}), retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

        logger.warning(f"[{self.protocol}] giving up on {url}: {last_error}")
        raise last_error

    async def _send(self, url: str, params: dict[str, Any]) -> Any:
        async with httpx.AsyncClient(
            timeout=self.timeout, headers=self.headers, transport=self._transport
        ) as client:
            response = await client.get(url, params=params)

        if response.status_code == 429:
            raise ApiError(
                "Upstream rate limit", protocol=self.protocol, status_code=429
            )
        if response.status_code >= 400:
            raise ApiError(
                f"HTTP {response.status_code}: {response.text[:200]}",
                protocol=self.protocol,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                f"Malformed JSON response: {e}",
                protocol=self.protocol,
                status_code=response.status_code,
            ) from e
