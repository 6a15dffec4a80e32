"""Catalog Items API client."""

from urllib.parse import quote

from ..constants import API_PATHS, CATALOG_INCLUDED_DATA
from ..exceptions import ValidationError
from ..mapping import parse_catalog
from ..models import CatalogItem
from ..utils.validators import validate_asin
from .base import BaseAPIClient


class CatalogAPIClient(BaseAPIClient):
    """Client for the Catalog Items 2022-04-01 endpoints."""

    def get_api_path(self) -> str:
        return API_PATHS["catalog_items"]

    def get_catalog_item(self, asin: str) -> CatalogItem:
        """Fetch and map a catalog item by ASIN."""
        if not validate_asin(asin):
            raise ValidationError(f"Invalid ASIN: {asin!r}")

        result = self.request(
            "GET",
            f"{self.get_api_path()}/{quote(asin)}",
            query={
                "marketplaceIds": self.marketplace_id,
                "includedData": CATALOG_INCLUDED_DATA,
            },
        )
        return parse_catalog(result)
