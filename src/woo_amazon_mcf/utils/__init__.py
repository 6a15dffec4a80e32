"""Utility modules for SP-API operations."""

from .decorators import call_with_retry, error_response, handle_tool_errors, is_retryable, success_response
from .validators import (
    validate_asin,
    validate_fulfillment_order_id,
    validate_marketplace_id,
    validate_positive_integer,
    validate_seller_sku,
)

__all__ = [
    "call_with_retry",
    "error_response",
    "handle_tool_errors",
    "is_retryable",
    "success_response",
    "validate_asin",
    "validate_fulfillment_order_id",
    "validate_marketplace_id",
    "validate_positive_integer",
    "validate_seller_sku",
]
