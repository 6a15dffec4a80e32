"""Domain records shared by the sync, import and fulfillment flows."""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from .constants import PRIMARY_IMAGE_VARIANT, STATUS_UNSUBMITTED, TERMINAL_STATUSES
from .exceptions import MCFError


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float

    def is_valid(self, now: float, margin: int = 0) -> bool:
        return bool(self.value) and now < self.expires_at - margin


@dataclass(frozen=True)
class InventoryItem:
    """One FBA inventory summary row."""

    sku: str
    asin: str
    fnsku: str
    name: str
    quantity: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class CatalogImage:
    url: str
    width: int
    height: int
    variant: str = PRIMARY_IMAGE_VARIANT


@dataclass
class CatalogItem:
    asin: str
    title: str = ""
    brand: str = ""
    description: str = ""
    bullets: list[str] = field(default_factory=list)
    price: str = ""
    images: list[CatalogImage] = field(default_factory=list)
    weight: Optional[dict[str, Any]] = None
    dimensions: Optional[dict[str, Any]] = None
    upc: str = ""
    ean: str = ""

    @property
    def primary_image(self) -> Optional[CatalogImage]:
        return self.images[0] if self.images else None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FulfillmentItem:
    seller_sku: str
    item_id: str
    quantity: int

    def to_payload(self) -> dict[str, Any]:
        return {
            "sellerSku": self.seller_sku,
            "sellerFulfillmentOrderItemId": self.item_id,
            "quantity": self.quantity,
        }


@dataclass
class FulfillmentOrder:
    """Fulfillment state tracked for one store order."""

    store_order_id: int
    mcf_order_id: Optional[str] = None
    status: str = STATUS_UNSUBMITTED
    items: list[dict[str, Any]] = field(default_factory=list)
    destination_address: dict[str, Any] = field(default_factory=dict)
    submitted_at: Optional[str] = None
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    last_error: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_retryable(self) -> bool:
        return self.mcf_order_id is None and bool(self.last_error)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SyncDetail:
    sku: str
    product_id: int
    status: str
    message: str = ""
    old_qty: Optional[int] = None
    new_qty: Optional[int] = None


@dataclass
class SyncReport:
    """Outcome of one reconciliation run."""

    timestamp: str
    updated: int = 0
    skipped: int = 0
    not_found: int = 0
    errors: int = 0
    details: list[SyncDetail] = field(default_factory=list)
    error: Optional[str] = None

    def summary(self) -> str:
        return (
            f"Updated {self.updated}, Skipped {self.skipped}, "
            f"Not Found {self.not_found}, Errors {self.errors}"
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncReport":
        details = [SyncDetail(**detail) for detail in data.get("details", [])]
        return cls(
            timestamp=data["timestamp"],
            updated=data.get("updated", 0),
            skipped=data.get("skipped", 0),
            not_found=data.get("not_found", 0),
            errors=data.get("errors", 0),
            details=details,
            error=data.get("error"),
        )


@dataclass(frozen=True)
class StatusChange:
    store_order_id: int
    mcf_order_id: str
    old_status: str
    new_status: str
    store_status: Optional[str] = None


@dataclass
class FulfillmentResult:
    """Outcome of a lifecycle operation; ``error`` is set when it did not succeed."""

    success: bool
    message: str
    store_order_id: int
    status: Optional[str] = None
    mcf_order_id: Optional[str] = None
    skipped: bool = False
    error: Optional[MCFError] = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "store_order_id": self.store_order_id,
            "status": self.status,
            "mcf_order_id": self.mcf_order_id,
            "skipped": self.skipped,
        }
        if self.error is not None:
            result["error"] = self.error.error_code
        if self.data:
            result["data"] = self.data
        return result


@dataclass(frozen=True)
class FulfillmentPreview:
    shipping_speed: str
    is_fulfillable: bool
    earliest_arrival: Optional[str] = None
    latest_arrival: Optional[str] = None
    unfulfillable_skus: tuple[str, ...] = ()


@dataclass
class ImportResult:
    sku: str
    asin: str
    success: bool
    message: str = ""
    product_id: Optional[int] = None
    error: Optional[MCFError] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "asin": self.asin,
            "success": self.success,
            "message": self.message,
            "product_id": self.product_id,
            "error": self.error.error_code if self.error is not None else None,
        }


@dataclass
class ImportReport:
    results: list[ImportResult] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self) -> int:
        return sum(1 for result in self.results if not result.success)

    def to_dict(self) -> dict[str, Any]:
        return {
            "imported": self.imported,
            "failed": self.failed,
            "results": [result.to_dict() for result in self.results],
        }
