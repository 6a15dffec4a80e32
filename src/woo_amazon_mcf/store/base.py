"""Contract for the store system that owns products and orders."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class StoreProduct:
    product_id: int
    sku: str = ""
    amazon_sku: str = ""
    amazon_asin: str = ""
    stock_quantity: Optional[int] = None
    stock_status: str = ""
    parent_id: Optional[int] = None

    @property
    def linked_sku(self) -> str:
        """Amazon SKU tag, falling back to the store SKU."""
        return self.amazon_sku or self.sku


@dataclass
class OrderLine:
    product_id: Optional[int]
    quantity: int
    sku: str = ""
    amazon_sku: str = ""
    name: str = ""

    @property
    def fulfillment_sku(self) -> str:
        return self.amazon_sku or self.sku


@dataclass
class ShippingAddress:
    first_name: str = ""
    last_name: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = ""
    phone: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def to_sp_api(self) -> Dict[str, str]:
        """Destination address in Fulfillment Outbound shape."""
        address = {
            "name": self.full_name,
            "addressLine1": self.address_1,
            "city": self.city,
            "stateOrRegion": self.state,
            "postalCode": self.postcode,
            "countryCode": self.country,
        }
        if self.address_2:
            address["addressLine2"] = self.address_2
        if self.phone:
            address["phone"] = self.phone
        return address


@dataclass
class StoreOrder:
    order_id: int
    number: str
    status: str
    created_at: str
    shipping: ShippingAddress = field(default_factory=ShippingAddress)
    billing_email: str = ""
    lines: List[OrderLine] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ProductDraft:
    """Everything needed to create a store product from a catalog item."""

    name: str
    sku: str
    amazon_sku: str
    amazon_asin: str
    status: str
    description: str = ""
    short_description: str = ""
    regular_price: str = ""
    stock_quantity: int = 0
    stock_status: str = ""
    weight: str = ""
    dimensions: Dict[str, str] = field(default_factory=dict)
    image_urls: List[str] = field(default_factory=list)


class StoreBackend(ABC):
    """Store operations the bridge relies on.

    Implementations raise ``StoreError`` for failures of the store itself.
    """

    @abstractmethod
    def list_linked_products(self) -> Dict[int, str]:
        """Return ``product_id -> linked SKU`` for published products with a non-empty SKU."""

    @abstractmethod
    def get_product(self, product_id: int) -> Optional[StoreProduct]:
        """Load one product (or variation); None when it no longer exists."""

    @abstractmethod
    def update_stock(self, product_id: int, quantity: int, stock_status: str) -> None:
        """Persist managed stock quantity and stock status."""

    @abstractmethod
    def find_product_id_by_sku(self, sku: str) -> Optional[int]:
        """Exact SKU lookup."""

    @abstractmethod
    def create_product(self, draft: ProductDraft) -> int:
        """Create a product and return its id."""

    @abstractmethod
    def get_order(self, order_id: int) -> Optional[StoreOrder]:
        """Load an order with its lines; None when it does not exist."""

    @abstractmethod
    def update_order_status(self, order_id: int, status: str, note: str = "") -> None:
        """Transition the order status, optionally recording a note."""

    @abstractmethod
    def add_order_note(self, order_id: int, note: str) -> None:
        """Attach a private note to the order."""

    @abstractmethod
    def update_order_meta(self, order_id: int, meta: Dict[str, Any]) -> None:
        """Write order meta; a value of None deletes the key."""
