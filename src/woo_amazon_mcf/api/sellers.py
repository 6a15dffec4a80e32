"""Sellers API client: connection check against marketplace participations."""

import logging
from typing import Any, Dict

from ..constants import API_PATHS
from ..exceptions import MCFError
from .base import BaseAPIClient

logger = logging.getLogger(__name__)


class SellersAPIClient(BaseAPIClient):
    """Client for the SP-API Sellers endpoints."""

    def get_api_path(self) -> str:
        return API_PATHS["marketplace_participations"]

    def test_connection(self) -> Dict[str, Any]:
        """Check the credentials by listing participating marketplaces.

        Returns:
            Dict with success flag, message and marketplace names
        """
        try:
            result = self.request("GET", self.get_api_path())
        except MCFError as e:
            logger.warning(f"Connection test failed: {e.message}")
            return {"success": False, "message": e.message, "marketplaces": []}

        marketplaces = []
        for participation in result.get("payload", []) or []:
            if (participation.get("participation") or {}).get("isParticipating", False):
                marketplaces.append((participation.get("marketplace") or {}).get("name", "Unknown"))

        return {
            "success": True,
            "message": "Connected successfully",
            "marketplaces": marketplaces,
        }
