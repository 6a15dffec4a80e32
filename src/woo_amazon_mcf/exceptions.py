"""Common exceptions for the woo-amazon-mcf package."""

from typing import Any, Optional


class MCFError(Exception):
    """Base class for all errors raised by the fulfillment bridge."""

    error_code = "unexpected_error"

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}


class AuthError(MCFError):
    """Raised when no LWA access token can be obtained."""

    error_code = "auth_failed"


class TransportError(MCFError):
    """Raised on network-level failures (connection errors, timeouts)."""

    error_code = "network_error"


class ApiError(MCFError):
    """Raised when SP-API answers with HTTP status >= 400."""

    error_code = "api_error"

    def __init__(self, message: str, http_code: int, raw_response: Any = None) -> None:
        super().__init__(message, details={"http_code": http_code})
        self.http_code = http_code
        self.raw_response = raw_response


class RateLimitError(ApiError):
    """Raised when rate limit is exceeded."""

    error_code = "rate_limit_exceeded"

    def __init__(self, message: str, retry_after: int = 60, raw_response: Any = None) -> None:
        super().__init__(message, http_code=429, raw_response=raw_response)
        self.retry_after = retry_after


class ValidationError(MCFError):
    """Raised for malformed or missing input."""

    error_code = "invalid_input"


class ConfigurationError(ValidationError):
    """Raised when settings are invalid or incomplete."""


class AlreadySubmittedError(MCFError):
    """Raised when an order already carries an MCF order id."""

    error_code = "already_submitted"


class NotLinkedError(MCFError):
    """Raised when an order has no MCF order id to act on."""

    error_code = "not_linked"


class StoreError(MCFError):
    """Raised when the store collaborator fails."""

    error_code = "store_error"

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message, details={"status_code": status_code} if status_code else None)
        self.status_code = status_code
