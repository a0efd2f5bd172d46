"""Typed errors raised by adapters, aggregators and the quote engine."""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Machine-readable error categories reported to callers."""

    INVALID_REQUEST = "invalid_request"
    NO_QUOTES_AVAILABLE = "no_quotes_available"
    TOKEN_NOT_SUPPORTED = "token_not_supported"
    AMOUNT_TOO_SMALL = "amount_too_small"
    AMOUNT_TOO_LARGE = "amount_too_large"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    NETWORK_ERROR = "network_error"
    TIMEOUT = "timeout"
    API_ERROR = "api_error"
    QUOTE_EXPIRED = "quote_expired"
    SECURITY_BLOCKED = "security_blocked"
    UNKNOWN = "unknown"


class QuoteEngineError(Exception):
    """Base class for all quote engine errors."""

    kind = ErrorKind.UNKNOWN

    def __init__(
        self,
        message: str,
        protocol: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.message = message
        self.protocol = protocol
        self.details = details or {}
        prefix = f"[{protocol}] " if protocol else ""
        super().__init__(f"{prefix}{message}")

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "protocol": self.protocol,
            "details": self.details,
        }


class InvalidRequestError(QuoteEngineError):
    kind = ErrorKind.INVALID_REQUEST


class AdapterError(QuoteEngineError):
    """Failure of a single protocol adapter. Aggregators absorb these."""


class TokenNotSupportedError(AdapterError):
    kind = ErrorKind.TOKEN_NOT_SUPPORTED


class AmountTooSmallError(AdapterError):
    kind = ErrorKind.AMOUNT_TOO_SMALL


class AmountTooLargeError(AdapterError):
    kind = ErrorKind.AMOUNT_TOO_LARGE


class RateLimitExceededError(AdapterError):
    kind = ErrorKind.RATE_LIMIT_EXCEEDED


class NetworkError(AdapterError):
    kind = ErrorKind.NETWORK_ERROR


class QuoteTimeoutError(AdapterError):
    kind = ErrorKind.TIMEOUT


class ApiError(AdapterError):
    """Non-success or malformed response from a protocol API."""

    kind = ErrorKind.API_ERROR

    def __init__(
        self,
        message: str,
        protocol: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.status_code = status_code
        super().__init__(message, protocol=protocol, details=details)


class QuoteExpiredError(QuoteEngineError):
    kind = ErrorKind.QUOTE_EXPIRED


class SecurityBlockedError(QuoteEngineError):
    """Raised when a transaction fails security validation."""

    kind = ErrorKind.SECURITY_BLOCKED

    def __init__(self, message: str, result: Any = None):
        self.result = result
        super().__init__(message)
