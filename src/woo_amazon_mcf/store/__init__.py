"""Store collaborator contract and the WooCommerce implementation."""

from .base import OrderLine, ProductDraft, ShippingAddress, StoreBackend, StoreOrder, StoreProduct
from .woocommerce import WooCommerceStore, create_wc_api

__all__ = [
    "OrderLine",
    "ProductDraft",
    "ShippingAddress",
    "StoreBackend",
    "StoreOrder",
    "StoreProduct",
    "WooCommerceStore",
    "create_wc_api",
]
