"""Input validation utilities for SP-API and store parameters."""

import re
from typing import Any

from ..constants import MAX_FULFILLMENT_ORDER_ID_LENGTH, VALID_MARKETPLACE_IDS

ASIN_PATTERN = re.compile(r"^[A-Z0-9]{10}$")


def validate_marketplace_id(marketplace_id: str) -> bool:
    """Validate marketplace ID format and existence.

    Args:
        marketplace_id: The marketplace ID to validate

    Returns:
        True if marketplace ID is valid
    """
    return marketplace_id in VALID_MARKETPLACE_IDS


def validate_seller_sku(sku: str) -> bool:
    """Validate seller SKU format.

    Args:
        sku: The seller SKU to validate

    Returns:
        True if SKU format is valid
    """
    if not isinstance(sku, str) or len(sku.strip()) == 0:
        return False

    # SKUs must not contain certain special characters
    forbidden_chars = ['<', '>', ':', '"', '|', '?', '*']
    return not any(char in sku for char in forbidden_chars)


def validate_asin(asin: str) -> bool:
    """Validate an ASIN (10 upper-case alphanumerics)."""
    return isinstance(asin, str) and bool(ASIN_PATTERN.match(asin))


def validate_positive_integer(value: Any, min_value: int = 1, max_value: int = 1000) -> bool:
    """Validate positive integer within range.

    Args:
        value: The integer to validate
        min_value: Minimum allowed value
        max_value: Maximum allowed value

    Returns:
        True if value is valid
    """
    return isinstance(value, int) and not isinstance(value, bool) and min_value <= value <= max_value


def validate_fulfillment_order_id(order_id: str) -> bool:
    """Validate a sellerFulfillmentOrderId before it is sent to Amazon."""
    if not order_id or len(order_id) > MAX_FULFILLMENT_ORDER_ID_LENGTH:
        return False
    return bool(re.match(r"^[A-Za-z0-9_-]+$", order_id))
