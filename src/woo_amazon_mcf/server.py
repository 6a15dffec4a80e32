#!/usr/bin/env python3
"""MCP server exposing the WooCommerce / Amazon MCF bridge as tools using FastMCP.

Tools cover the connection check, product import, inventory sync and the
fulfillment lifecycle of store orders. Every tool returns the standard JSON
envelope produced by ``success_response`` / ``error_response``.
"""

import json
import logging
from typing import Annotated, Any, Dict, List, Tuple

from fastmcp import FastMCP

from .app import Application
from .config import load_settings
from .events import dispatch_order_event, verify_webhook_signature
from .exceptions import AuthError, ConfigurationError, ValidationError
from .models import FulfillmentResult
from .utils.decorators import error_response, handle_tool_errors, success_response
from .utils.validators import validate_positive_integer

logger = logging.getLogger(__name__)

SERVER_INSTRUCTIONS = (
    "Tools for a WooCommerce store that ships through Amazon Multi-Channel Fulfillment: "
    "import FBA products, keep store stock in line with FBA inventory, and submit, track "
    "and cancel MCF orders for store orders."
)

TOOL_NAMES = (
    "test_connection",
    "list_importable_products",
    "import_products",
    "run_inventory_sync",
    "get_last_sync",
    "submit_fulfillment",
    "retry_fulfillment",
    "refresh_fulfillment_status",
    "cancel_fulfillment",
    "get_fulfillment_preview",
    "get_fulfillment",
    "process_order_webhook",
)

MAX_ORDER_ID = 2**63 - 1


def _validate_order_id(order_id: int) -> int:
    if not validate_positive_integer(order_id, min_value=1, max_value=MAX_ORDER_ID):
        raise ValidationError(f"Invalid order id: {order_id!r}")
    return order_id


def _parse_import_pairs(products: str) -> List[Tuple[str, str]]:
    try:
        items = json.loads(products)
    except ValueError as e:
        raise ValidationError(f"products must be a JSON array: {e}") from e
    if not isinstance(items, list) or not items:
        raise ValidationError("products must be a non-empty JSON array of {sku, asin} objects")

    pairs = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Each product must be an object with sku and asin")
        pairs.append((str(item.get("sku") or ""), str(item.get("asin") or "")))
    return pairs


def _fulfillment_response(result: FulfillmentResult) -> str:
    """Successful lifecycle results are data; failed ones become error envelopes."""
    if result.success or result.skipped:
        return success_response(result.to_dict())
    error = result.error
    return error_response(
        error.error_code if error is not None else "api_error",
        result.message,
        details=result.to_dict(),
    )


class ToolHandlers:
    """Tool implementations bound to one ``Application``."""

    def __init__(self, app: Application) -> None:
        self.app = app

    @handle_tool_errors
    def test_connection(self) -> str:
        """Check the SP-API credentials and list the marketplaces the seller participates in."""
        result = self.app.sellers_client.test_connection()
        if not result["success"]:
            return error_response(AuthError.error_code, result["message"])
        return success_response(result, database=self.app.database.get_health_check())

    @handle_tool_errors
    def list_importable_products(self) -> str:
        """List FBA products with stock, flagging the ones that already exist in the store."""
        products = self.app.importer.list_importable()
        return success_response(products, count=len(products))

    @handle_tool_errors
    def import_products(
        self,
        products: Annotated[
            str,
            'JSON array of products to import, e.g. [{"sku": "ABC-1", "asin": "B000000001"}]',
        ],
    ) -> str:
        """Create draft WooCommerce products from Amazon catalog data.

        Each SKU/ASIN pair is imported independently; the response reports
        how many succeeded and why the others failed.
        """
        report = self.app.importer.import_products(_parse_import_pairs(products))
        return success_response(report.to_dict())

    @handle_tool_errors
    def run_inventory_sync(self) -> str:
        """Run the FBA -> WooCommerce stock reconciliation now."""
        report = self.app.reconciler.run_sync()
        if report.error:
            return error_response("sync_failed", report.error, details=report.to_dict())
        return success_response(report.to_dict(), summary=report.summary())

    @handle_tool_errors
    def get_last_sync(self) -> str:
        """Return the report of the most recent inventory sync."""
        report = self.app.reconciler.get_last_report()
        if report is None:
            return success_response(None, message="No inventory sync has run yet")
        return success_response(report.to_dict(), summary=report.summary())

    @handle_tool_errors
    def submit_fulfillment(
        self,
        order_id: Annotated[int, "WooCommerce order ID"],
    ) -> str:
        """Submit a paid WooCommerce order to Amazon MCF. Orders are never submitted twice."""
        return _fulfillment_response(self.app.fulfillment.submit(_validate_order_id(order_id)))

    @handle_tool_errors
    def retry_fulfillment(
        self,
        order_id: Annotated[int, "WooCommerce order ID whose submission failed"],
    ) -> str:
        """Clear a failed submission's error and submit the order again."""
        return _fulfillment_response(self.app.fulfillment.retry(_validate_order_id(order_id)))

    @handle_tool_errors
    def refresh_fulfillment_status(
        self,
        order_id: Annotated[int, "WooCommerce order ID"],
    ) -> str:
        """Poll Amazon for the MCF status and tracking of an order.

        Completed fulfillments mark the store order completed; cancelled or
        unfulfillable ones mark it cancelled.
        """
        return _fulfillment_response(self.app.fulfillment.refresh_status(_validate_order_id(order_id)))

    @handle_tool_errors
    def cancel_fulfillment(
        self,
        order_id: Annotated[int, "WooCommerce order ID"],
    ) -> str:
        """Cancel the Amazon MCF order of a store order."""
        return _fulfillment_response(self.app.fulfillment.cancel(_validate_order_id(order_id)))

    @handle_tool_errors
    def get_fulfillment_preview(
        self,
        order_id: Annotated[int, "WooCommerce order ID"],
    ) -> str:
        """Delivery estimates per shipping speed for a store order."""
        return _fulfillment_response(self.app.fulfillment.preview(_validate_order_id(order_id)))

    @handle_tool_errors
    def get_fulfillment(
        self,
        order_id: Annotated[int, "WooCommerce order ID"],
    ) -> str:
        """Return the locally tracked MCF state of an order."""
        record = self.app.fulfillment.get_fulfillment(_validate_order_id(order_id))
        if record is None:
            return success_response(None, message=f"Order {order_id} has no fulfillment record")
        return success_response(record.to_dict())

    @handle_tool_errors
    def process_order_webhook(
        self,
        body: Annotated[str, "Raw JSON body of a WooCommerce order.created / order.updated webhook"],
        signature: Annotated[str, "Value of the X-WC-Webhook-Signature header"] = "",
    ) -> str:
        """Handle a WooCommerce order webhook; paid orders are submitted to MCF."""
        secret = self.app.settings.woocommerce.webhook_secret
        if secret and not verify_webhook_signature(body, signature, secret):
            return error_response(AuthError.error_code, "Webhook signature verification failed")

        result = dispatch_order_event(self.app.fulfillment, body)
        if result is None:
            return success_response(None, message="No fulfillment action for this event")
        return _fulfillment_response(result)


def create_server(app: Application) -> FastMCP:
    """Build the FastMCP server with every tool bound to ``app``."""
    server: FastMCP = FastMCP("woo-amazon-mcf", instructions=SERVER_INSTRUCTIONS)
    handlers = ToolHandlers(app)
    for name in TOOL_NAMES:
        server.tool()(getattr(handlers, name))
    return server


def _summarize_settings(app: Application) -> Dict[str, Any]:
    settings = app.settings
    return {
        "marketplace_id": settings.credentials.marketplace_id,
        "endpoint": settings.endpoint,
        "store": settings.woocommerce.url,
        "credentials_complete": settings.credentials.is_complete,
        "sync_interval_minutes": settings.sync_interval_minutes,
    }


def main() -> None:
    """Entry point for the MCP server."""
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Invalid configuration: {e.message}")
        raise SystemExit(1) from e

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        app = Application.create(settings)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e.message}")
        raise SystemExit(1) from e

    server = create_server(app)
    logger.info(f"Starting woo-amazon-mcf server: {_summarize_settings(app)}")
    app.start()
    try:
        server.run()
    finally:
        app.close()


if __name__ == "__main__":
    main()
