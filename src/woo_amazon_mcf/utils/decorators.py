"""Decorators for tool error handling and a caller-side retry helper."""

import functools
import json
import logging
import random
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar

from ..exceptions import ApiError, MCFError, RateLimitError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _metadata(request_id: str) -> dict[str, str]:
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "request_id": request_id,
    }


def success_response(data: Any, request_id: Optional[str] = None, **metadata: Any) -> str:
    """Format a successful tool response."""
    response: dict[str, Any] = {
        "success": True,
        "data": data,
        "metadata": _metadata(request_id or str(uuid.uuid4())),
    }
    response["metadata"].update(metadata)
    return json.dumps(response, indent=2, default=str)


def error_response(
    error_code: str,
    message: str,
    request_id: Optional[str] = None,
    details: Optional[Any] = None,
    retry_after: Optional[int] = None,
) -> str:
    """Format an error tool response."""
    response: dict[str, Any] = {
        "success": False,
        "error": error_code,
        "message": message,
        "metadata": _metadata(request_id or str(uuid.uuid4())),
    }
    if details:
        response["details"] = details
    if retry_after:
        response["retry_after"] = retry_after
    return json.dumps(response, indent=2, default=str)


def handle_tool_errors(func: Callable[..., str]) -> Callable[..., str]:
    """Turn exceptions escaping a tool into the standard JSON error envelope.

    Args:
        func: The function to decorate

    Returns:
        Decorated function that handles errors consistently
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> str:
        request_id = str(uuid.uuid4())
        start_time = datetime.now()

        try:
            logger.info(f"Request {request_id}: Starting {func.__name__}")
            result = func(*args, **kwargs)

            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.info(f"Request {request_id}: Completed {func.__name__} in {duration_ms}ms")

            return result

        except RateLimitError as e:
            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.warning(f"Request {request_id}: Rate limit exceeded in {duration_ms}ms")
            return error_response(
                e.error_code,
                "Rate limit exceeded. Please wait before making another request.",
                request_id=request_id,
                retry_after=e.retry_after,
            )

        except ApiError as e:
            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.error(f"Request {request_id}: SP-API error {e.http_code} in {duration_ms}ms: {e.message}")
            details = e.raw_response.get("errors", []) if isinstance(e.raw_response, dict) else None
            return error_response(e.error_code, e.message, request_id=request_id, details=details)

        except MCFError as e:
            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.error(f"Request {request_id}: {e.error_code} in {duration_ms}ms: {e.message}")
            return error_response(e.error_code, e.message, request_id=request_id, details=e.details or None)

        except Exception as e:
            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.exception(f"Request {request_id}: Unexpected error in {duration_ms}ms: {e}")
            return error_response(
                "unexpected_error",
                f"An unexpected error occurred: {e!s}",
                request_id=request_id,
            )

    return wrapper


def is_retryable(error: Exception) -> bool:
    """Transport failures, throttling and provider-side 5xx are worth another try."""
    if isinstance(error, (TransportError, RateLimitError)):
        return True
    return isinstance(error, ApiError) and error.http_code >= 500


def call_with_retry(
    func: Callable[[], T],
    attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` with exponential backoff and full jitter on retryable errors.

    Non-retryable errors and the last failure propagate unchanged.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except MCFError as e:
            if attempt >= attempts or not is_retryable(e):
                raise
            delay = random.uniform(0, min(max_delay, base_delay * 2 ** (attempt - 1)))
            if isinstance(e, RateLimitError):
                delay = max(delay, min(float(e.retry_after), max_delay))
            logger.warning(f"Attempt {attempt}/{attempts} failed ({e.message}), retrying in {delay:.2f}s")
            sleep(delay)
    raise RuntimeError("unreachable")
