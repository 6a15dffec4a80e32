"""Amazon SP-API client modules."""

from .base import BaseAPIClient
from .catalog import CatalogAPIClient
from .fulfillment import FulfillmentAPIClient
from .inventory import InventoryAPIClient
from .sellers import SellersAPIClient

__all__ = [
    "BaseAPIClient",
    "CatalogAPIClient",
    "FulfillmentAPIClient",
    "InventoryAPIClient",
    "SellersAPIClient",
]
