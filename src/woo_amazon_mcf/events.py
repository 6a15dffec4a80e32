"""Store order events arriving as WooCommerce webhooks."""

import base64
import hashlib
import hmac
import json
import logging
from typing import Any, Dict, Optional, Union

from .exceptions import ValidationError
from .fulfillment import FulfillmentManager
from .models import FulfillmentResult

logger = logging.getLogger(__name__)


def verify_webhook_signature(body: Union[bytes, str], signature: str, secret: str) -> bool:
    """Check the ``X-WC-Webhook-Signature`` header (base64 HMAC-SHA256 of the raw body)."""
    if not secret:
        logger.warning("Webhook signature check failed: no webhook secret configured")
        return False
    if isinstance(body, str):
        body = body.encode("utf-8")
    expected = base64.b64encode(hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()).decode()
    return hmac.compare_digest(expected, signature or "")


def parse_order_payload(payload: Union[bytes, str, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise ValidationError(f"Webhook body is not valid JSON: {e}") from e
    if not isinstance(payload, dict):
        raise ValidationError("Webhook body must be a JSON object")
    return payload


def dispatch_order_event(
    manager: FulfillmentManager,
    payload: Union[bytes, str, Dict[str, Any]],
) -> Optional[FulfillmentResult]:
    """Forward an order created/updated webhook to the lifecycle manager.

    Returns None for deliveries that are not order events (WooCommerce sends
    a ``webhook_id`` ping when a webhook is saved) and for statuses that do
    not trigger fulfillment.
    """
    order = parse_order_payload(payload)
    if "id" not in order:
        if "webhook_id" in order:
            logger.info(f"Ignoring webhook ping for webhook {order['webhook_id']}")
            return None
        raise ValidationError("Order webhook payload has no id")

    try:
        order_id = int(order["id"])
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid order id in webhook: {order['id']!r}") from e

    status = str(order.get("status") or "")
    logger.info(f"Order event for {order_id} with status '{status}'")
    return manager.handle_order_status_changed(order_id, status)
