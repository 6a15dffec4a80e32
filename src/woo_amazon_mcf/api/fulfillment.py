"""Fulfillment Outbound (MCF) API client."""

import logging
from typing import Any, Dict, List
from urllib.parse import quote

from ..constants import API_PATHS, SHIPPING_SPEED_CATEGORIES
from ..models import FulfillmentPreview
from .base import BaseAPIClient

logger = logging.getLogger(__name__)


class FulfillmentAPIClient(BaseAPIClient):
    """Client for Amazon SP-API Fulfillment Outbound 2020-07-01 endpoints."""

    def get_api_path(self) -> str:
        return API_PATHS["fulfillment_orders"]

    def _order_path(self, seller_fulfillment_order_id: str) -> str:
        return f"{self.get_api_path()}/{quote(seller_fulfillment_order_id, safe='')}"

    def create_fulfillment_order(self, order_data: Dict[str, Any]) -> None:
        """Create an MCF order. Amazon answers with an empty payload on success."""
        self.request("POST", self.get_api_path(), body=order_data)
        logger.info(f"Created fulfillment order {order_data.get('sellerFulfillmentOrderId')}")

    def get_fulfillment_order(self, seller_fulfillment_order_id: str) -> Dict[str, Any]:
        """Return the order payload (``fulfillmentOrder``, ``fulfillmentShipments``, ...)."""
        result = self.request("GET", self._order_path(seller_fulfillment_order_id))
        return result.get("payload", result)

    def cancel_fulfillment_order(self, seller_fulfillment_order_id: str) -> None:
        self.request("PUT", f"{self._order_path(seller_fulfillment_order_id)}/cancel")
        logger.info(f"Requested cancellation of fulfillment order {seller_fulfillment_order_id}")

    def get_fulfillment_preview(
        self,
        address: Dict[str, Any],
        items: List[Dict[str, Any]],
    ) -> List[FulfillmentPreview]:
        """Get delivery estimates for each shipping speed.

        Args:
            address: Destination address in SP-API shape
            items: Items with ``sellerSku``, ``quantity`` and ``sellerFulfillmentOrderItemId``
        """
        result = self.request(
            "POST",
            API_PATHS["fulfillment_preview"],
            body={
                "marketplaceId": self.marketplace_id,
                "address": address,
                "items": items,
                "shippingSpeedCategories": SHIPPING_SPEED_CATEGORIES,
            },
        )
        payload = result.get("payload", result)

        previews = []
        for preview in payload.get("fulfillmentPreviews", []) or []:
            shipments = preview.get("fulfillmentPreviewShipments") or []
            first_shipment = shipments[0] if shipments else {}
            unfulfillable = tuple(
                item.get("sellerSku", "")
                for item in preview.get("unfulfillablePreviewItems", []) or []
            )
            previews.append(
                FulfillmentPreview(
                    shipping_speed=preview.get("shippingSpeedCategory", ""),
                    is_fulfillable=bool(preview.get("isFulfillable", False)),
                    earliest_arrival=first_shipment.get("earliestArrivalDate"),
                    latest_arrival=first_shipment.get("latestArrivalDate"),
                    unfulfillable_skus=unfulfillable,
                )
            )
        return previews
