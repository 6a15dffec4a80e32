"""Inventory API client for Amazon SP-API interactions."""

import logging
from typing import Any, Dict, List, Optional

from ..constants import API_PATHS
from ..mapping import parse_inventory
from ..models import InventoryItem
from .base import BaseAPIClient

logger = logging.getLogger(__name__)


class InventoryAPIClient(BaseAPIClient):
    """Client for Amazon SP-API FBA Inventory operations."""

    # Guards against a provider that keeps handing back a nextToken
    MAX_PAGES = 200

    def get_api_path(self) -> str:
        """Return the base API path for inventory operations."""
        return API_PATHS["inventory_summaries"]

    def get_inventory(self, include_zero: bool = False) -> List[InventoryItem]:
        """Fetch FBA inventory summaries for the configured marketplace.

        Args:
            include_zero: Keep out-of-stock items (full view) instead of the
                active view with positive quantities only

        Returns:
            Inventory items across all pages
        """
        items: List[InventoryItem] = []
        for payload in self._iter_pages():
            items.extend(parse_inventory(payload, include_zero=include_zero))

        logger.info(
            f"Fetched {len(items)} inventory items "
            f"({'full' if include_zero else 'active'} view) for {self.marketplace_id}"
        )
        return items

    def get_active_inventory(self) -> List[InventoryItem]:
        return self.get_inventory(include_zero=False)

    def get_all_inventory(self) -> List[InventoryItem]:
        return self.get_inventory(include_zero=True)

    def _iter_pages(self):
        params: Dict[str, Any] = {
            "granularityType": "Marketplace",
            "granularityId": self.marketplace_id,
            "marketplaceIds": self.marketplace_id,
        }
        next_token: Optional[str] = None

        for _ in range(self.MAX_PAGES):
            if next_token:
                params["nextToken"] = next_token

            result = self.request("GET", self.get_api_path(), query=dict(params))
            payload = result.get("payload", result)
            yield payload

            pagination = result.get("pagination") or payload.get("pagination") or {}
            next_token = pagination.get("nextToken") or payload.get("nextToken")
            if not next_token:
                return

        logger.warning(f"Stopped inventory pagination after {self.MAX_PAGES} pages")
