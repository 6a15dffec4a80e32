"""Multi-Channel Fulfillment lifecycle: submit, track, cancel.

Local status moves ``UNSUBMITTED -> RECEIVED/PLANNING -> PROCESSING`` and ends
in one of COMPLETE, COMPLETE_PARTIALLED, CANCELLED or UNFULFILLABLE. A failed
submission stays UNSUBMITTED with ``last_error`` set until it is retried.
"""

import logging
import re
import time
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from .api.fulfillment import FulfillmentAPIClient
from .constants import (
    CANCELLED_STATUSES,
    COMPLETED_STATUSES,
    DEFAULT_ORDER_ID_PREFIX,
    FULFILLMENT_ACTION,
    FULFILLMENT_POLICY,
    ORDER_META_KEYS,
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    PAID_ORDER_STATUSES,
    PROVIDER_STATUS_MAP,
    SHIPPING_SPEED_STANDARD,
    STATUS_CANCELLED,
    STATUS_PLANNING,
    STATUS_PROCESSING,
    STATUS_RECEIVED,
    STATUS_SUBMITTING,
    STATUS_UNKNOWN,
    STATUS_UNSUBMITTED,
)
from .exceptions import (
    AlreadySubmittedError,
    ApiError,
    MCFError,
    NotLinkedError,
    RateLimitError,
    StoreError,
    ValidationError,
)
from .models import FulfillmentItem, FulfillmentOrder, FulfillmentResult, StatusChange
from .storage.database import StateDatabase
from .store.base import StoreBackend, StoreOrder
from .utils.validators import validate_fulfillment_order_id

logger = logging.getLogger(__name__)

StatusListener = Callable[[StatusChange], None]

OPEN_STATUSES = [STATUS_RECEIVED, STATUS_PLANNING, STATUS_PROCESSING]


def map_provider_status(provider_status: str) -> str:
    """Map a ``fulfillmentOrderStatus`` value to the local status name."""
    if not provider_status:
        return STATUS_UNKNOWN
    key = provider_status.replace(" ", "").upper()
    if key in PROVIDER_STATUS_MAP:
        return PROVIDER_STATUS_MAP[key]
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", provider_status.strip()).upper()


def extract_tracking(payload: Dict[str, Any]) -> Tuple[Optional[str], Optional[str]]:
    """First package with a tracking number wins."""
    for shipment in payload.get("fulfillmentShipments") or []:
        for package in shipment.get("fulfillmentShipmentPackage") or []:
            if package.get("trackingNumber"):
                return package["trackingNumber"], package.get("carrierCode") or ""
    return None, None


def build_items(order: StoreOrder) -> List[FulfillmentItem]:
    """Order lines that can be fulfilled from FBA, numbered from 1."""
    items = []
    for line in order.lines:
        if line.product_id is None or not line.fulfillment_sku or line.quantity <= 0:
            continue
        items.append(
            FulfillmentItem(
                seller_sku=line.fulfillment_sku,
                item_id=f"{order.order_id}-{len(items) + 1}",
                quantity=line.quantity,
            )
        )
    return items


def _iso_timestamp(value: str, fallback: datetime) -> str:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00")) if value else fallback
    except ValueError:
        parsed = fallback
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.isoformat()


class FulfillmentManager:
    """Drives store orders through Amazon MCF."""

    def __init__(
        self,
        client: FulfillmentAPIClient,
        store: StoreBackend,
        database: StateDatabase,
        order_id_prefix: str = DEFAULT_ORDER_ID_PREFIX,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.client = client
        self.store = store
        self.database = database
        self.order_id_prefix = order_id_prefix
        self.clock = clock
        self._listeners: List[StatusListener] = []

    def add_listener(self, listener: StatusListener) -> None:
        """Register a callback for MCF status changes."""
        self._listeners.append(listener)

    def _emit(self, change: StatusChange) -> None:
        for listener in self._listeners:
            try:
                listener(change)
            except Exception:
                logger.exception(f"Status listener failed for order {change.store_order_id}")

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc).replace(microsecond=0)

    def _note(self, order_id: int, note: str) -> None:
        try:
            self.store.add_order_note(order_id, note)
        except StoreError as e:
            logger.warning(f"Could not add note to order {order_id}: {e.message}")

    def _mirror_meta(self, order_id: int) -> None:
        """Copy the stored fulfillment state onto the store order's meta."""
        record = self.database.get_fulfillment(order_id)
        if record is None:
            return
        meta = {ORDER_META_KEYS[field]: getattr(record, field) for field in ORDER_META_KEYS}
        try:
            self.store.update_order_meta(order_id, meta)
        except StoreError as e:
            logger.warning(f"Could not update MCF meta on order {order_id}: {e.message}")

    def generate_mcf_order_id(self, order_id: int) -> str:
        parts = [str(order_id), str(int(self.clock()))]
        if self.order_id_prefix:
            parts.insert(0, self.order_id_prefix)
        mcf_order_id = "-".join(parts)
        if not validate_fulfillment_order_id(mcf_order_id):
            raise ValidationError(f"Invalid MCF order id: {mcf_order_id}")
        return mcf_order_id

    def build_fulfillment_request(
        self,
        order: StoreOrder,
        mcf_order_id: str,
        items: List[FulfillmentItem],
    ) -> Dict[str, Any]:
        request: Dict[str, Any] = {
            "sellerFulfillmentOrderId": mcf_order_id,
            "displayableOrderId": order.number,
            "displayableOrderDate": _iso_timestamp(order.created_at, self._now()),
            "displayableOrderComment": f"WooCommerce Order #{order.number}",
            "shippingSpeedCategory": SHIPPING_SPEED_STANDARD,
            "fulfillmentAction": FULFILLMENT_ACTION,
            "fulfillmentPolicy": FULFILLMENT_POLICY,
            "destinationAddress": order.shipping.to_sp_api(),
            "marketplaceId": self.client.marketplace_id,
            "items": [item.to_payload() for item in items],
        }
        if order.billing_email:
            request["notificationEmails"] = [order.billing_email]
        return request

    def get_fulfillment(self, order_id: int) -> Optional[FulfillmentOrder]:
        return self.database.get_fulfillment(order_id)

    def _load_order(self, order_id: int) -> StoreOrder:
        order = self.store.get_order(order_id)
        if order is None:
            raise ValidationError(f"Order {order_id} not found")
        return order

    def submit(self, order_id: int) -> FulfillmentResult:
        """Send a paid order to MCF once.

        Returns a result carrying ``AlreadySubmittedError`` when the order
        already has an MCF order id, and ``skipped=True`` when no line has a
        usable SKU.
        """
        existing = self.database.get_fulfillment(order_id)
        if existing is not None and existing.mcf_order_id:
            self._note(order_id, "MCF: Order already submitted to Amazon MCF.")
            return FulfillmentResult(
                success=False,
                message="Order already submitted to Amazon MCF",
                store_order_id=order_id,
                status=existing.status,
                mcf_order_id=existing.mcf_order_id,
                error=AlreadySubmittedError(f"Order {order_id} already submitted as {existing.mcf_order_id}"),
            )

        try:
            order = self._load_order(order_id)
        except MCFError as e:
            return FulfillmentResult(success=False, message=e.message, store_order_id=order_id, error=e)

        items = build_items(order)
        if not items:
            self._note(order_id, "MCF: No items with Amazon SKUs found. Skipping MCF fulfillment.")
            return FulfillmentResult(
                success=False,
                message="No items with Amazon SKUs found",
                store_order_id=order_id,
                status=STATUS_UNSUBMITTED,
                skipped=True,
            )

        try:
            mcf_order_id = self.generate_mcf_order_id(order_id)
        except ValidationError as e:
            return FulfillmentResult(success=False, message=e.message, store_order_id=order_id, error=e)
        request = self.build_fulfillment_request(order, mcf_order_id, items)

        if not self.database.claim_submission(
            order_id,
            mcf_order_id,
            items=[asdict(item) for item in items],
            destination_address=request["destinationAddress"],
        ):
            current = self.database.get_fulfillment(order_id)
            return FulfillmentResult(
                success=False,
                message="Order already submitted to Amazon MCF",
                store_order_id=order_id,
                status=current.status if current else None,
                mcf_order_id=current.mcf_order_id if current else None,
                error=AlreadySubmittedError(f"Order {order_id} is already being submitted"),
            )

        try:
            self.client.create_fulfillment_order(request)
        except MCFError as e:
            self.database.mark_submission_failed(order_id, e.message)
            self._mirror_meta(order_id)
            self._note(order_id, f"MCF: Failed to submit order - {e.message}")
            logger.error(f"Amazon MCF Error for order {order_id}: {e.message} {e.details}")
            return FulfillmentResult(
                success=False,
                message=e.message,
                store_order_id=order_id,
                status=STATUS_UNSUBMITTED,
                error=e,
            )

        self.database.mark_submitted(order_id, self._now().isoformat())
        self._mirror_meta(order_id)
        self._note(order_id, f"MCF: Order submitted to Amazon MCF. Fulfillment ID: {mcf_order_id}")
        logger.info(f"Order {order_id} submitted to MCF as {mcf_order_id}")
        self._emit(StatusChange(order_id, mcf_order_id, STATUS_UNSUBMITTED, STATUS_RECEIVED))

        return FulfillmentResult(
            success=True,
            message="Order submitted to MCF",
            store_order_id=order_id,
            status=STATUS_RECEIVED,
            mcf_order_id=mcf_order_id,
        )

    def retry(self, order_id: int) -> FulfillmentResult:
        """Manual retry: clear a stored error, then submit.

        A submission interrupted after its claim (status SUBMITTING) is first
        looked up at Amazon: the claimed id is adopted when Amazon knows it,
        otherwise the claim is released and the order submitted again.
        """
        record = self.database.get_fulfillment(order_id)
        if record is not None and record.status == STATUS_SUBMITTING:
            recovered = self._recover_claim(record)
            if recovered is not None:
                return recovered
        elif record is not None and record.last_error and not record.mcf_order_id:
            self.database.clear_error(order_id)
        return self.submit(order_id)

    def _recover_claim(self, record: FulfillmentOrder) -> Optional[FulfillmentResult]:
        order_id = record.store_order_id
        mcf_order_id = record.mcf_order_id
        try:
            self.client.get_fulfillment_order(mcf_order_id)
        except RateLimitError as e:
            return FulfillmentResult(success=False, message=e.message, store_order_id=order_id, error=e)
        except ApiError as e:
            if e.http_code not in (400, 404):
                return FulfillmentResult(success=False, message=e.message, store_order_id=order_id, error=e)
            logger.warning(f"Claimed MCF order {mcf_order_id} unknown to Amazon, releasing claim for order {order_id}")
            self.database.mark_submission_failed(order_id, "Submission interrupted")
            self.database.clear_error(order_id)
            return None
        except MCFError as e:
            return FulfillmentResult(success=False, message=e.message, store_order_id=order_id, error=e)

        self.database.mark_submitted(order_id, self._now().isoformat())
        self._mirror_meta(order_id)
        self._note(order_id, f"MCF: Order submitted to Amazon MCF. Fulfillment ID: {mcf_order_id}")
        logger.info(f"Adopted interrupted MCF submission {mcf_order_id} for order {order_id}")
        self._emit(StatusChange(order_id, mcf_order_id, STATUS_SUBMITTING, STATUS_RECEIVED))
        return FulfillmentResult(
            success=True,
            message="Interrupted submission found at Amazon",
            store_order_id=order_id,
            status=STATUS_RECEIVED,
            mcf_order_id=mcf_order_id,
        )

    def _linked_record(self, order_id: int) -> FulfillmentOrder:
        record = self.database.get_fulfillment(order_id)
        if record is None or not record.mcf_order_id:
            raise NotLinkedError("No MCF order ID found")
        return record

    def refresh_status(self, order_id: int) -> FulfillmentResult:
        """Poll Amazon for the order's status and apply it."""
        try:
            record = self._linked_record(order_id)
            payload = self.client.get_fulfillment_order(record.mcf_order_id)
        except MCFError as e:
            return FulfillmentResult(success=False, message=e.message, store_order_id=order_id, error=e)

        provider_status = (payload.get("fulfillmentOrder") or {}).get("fulfillmentOrderStatus", "")
        status = map_provider_status(provider_status)
        tracking_number, carrier = extract_tracking(payload)

        self.database.update_fulfillment_status(order_id, status, tracking_number, carrier)
        self._mirror_meta(order_id)

        store_status = None
        note = ""
        changed = status != record.status
        # Terminal statuses reach the store on every refresh, not only on change
        if status in COMPLETED_STATUSES:
            store_status = ORDER_STATUS_COMPLETED
            note = "MCF: Order fulfilled by Amazon"
        elif status in CANCELLED_STATUSES:
            store_status = ORDER_STATUS_CANCELLED
            note = f"MCF: Fulfillment {status.lower()}"

        if store_status is not None:
            try:
                self.store.update_order_status(order_id, store_status, note)
            except StoreError as e:
                # Keep the old status so the next refresh retries the transition
                self.database.update_fulfillment_status(order_id, record.status)
                logger.error(f"Could not mark order {order_id} {store_status}: {e.message}")
                return FulfillmentResult(
                    success=False,
                    message=e.message,
                    store_order_id=order_id,
                    status=status,
                    mcf_order_id=record.mcf_order_id,
                    error=e,
                )

        if changed:
            logger.info(f"Order {order_id} MCF status {record.status} -> {status}")
            self._emit(StatusChange(order_id, record.mcf_order_id, record.status, status, store_status))

        return FulfillmentResult(
            success=True,
            message="Status updated",
            store_order_id=order_id,
            status=status,
            mcf_order_id=record.mcf_order_id,
            data={
                "provider_status": provider_status,
                "tracking_number": tracking_number,
                "carrier": carrier,
                "store_status": store_status,
            },
        )

    def cancel(self, order_id: int) -> FulfillmentResult:
        """Cancel the MCF order; local status becomes CANCELLED right away."""
        try:
            record = self._linked_record(order_id)
            self.client.cancel_fulfillment_order(record.mcf_order_id)
        except MCFError as e:
            return FulfillmentResult(success=False, message=e.message, store_order_id=order_id, error=e)

        self.database.update_fulfillment_status(order_id, STATUS_CANCELLED)
        self._mirror_meta(order_id)
        self._note(order_id, "MCF: Fulfillment cancelled")
        if record.status != STATUS_CANCELLED:
            self._emit(StatusChange(order_id, record.mcf_order_id, record.status, STATUS_CANCELLED))

        return FulfillmentResult(
            success=True,
            message="Fulfillment cancelled",
            store_order_id=order_id,
            status=STATUS_CANCELLED,
            mcf_order_id=record.mcf_order_id,
        )

    def preview(self, order_id: int) -> FulfillmentResult:
        """Delivery estimates for an order's fulfillable lines."""
        try:
            order = self._load_order(order_id)
            items = build_items(order)
            if not items:
                raise ValidationError("No items with Amazon SKUs found")
            previews = self.client.get_fulfillment_preview(
                order.shipping.to_sp_api(),
                [item.to_payload() for item in items],
            )
        except MCFError as e:
            return FulfillmentResult(success=False, message=e.message, store_order_id=order_id, error=e)

        return FulfillmentResult(
            success=True,
            message="Preview retrieved",
            store_order_id=order_id,
            data={"previews": [asdict(preview) for preview in previews]},
        )

    def refresh_open_orders(self) -> List[FulfillmentResult]:
        """Poll every order that has not reached a terminal status."""
        results = []
        for record in self.database.list_fulfillments(statuses=OPEN_STATUSES):
            results.append(self.refresh_status(record.store_order_id))
        if results:
            failed = sum(1 for result in results if not result.success)
            logger.info(f"Refreshed {len(results)} open MCF orders, {failed} failed")
        return results

    def handle_order_paid(self, order_id: int) -> FulfillmentResult:
        """Entry point for the store's "payment confirmed" event."""
        result = self.submit(order_id)
        if result.success:
            logger.info(f"Paid order {order_id} sent to MCF")
        elif result.skipped or isinstance(result.error, AlreadySubmittedError):
            logger.info(f"Paid order {order_id} not submitted: {result.message}")
        else:
            logger.warning(f"Paid order {order_id} failed to submit: {result.message}")
        return result

    def handle_order_status_changed(self, order_id: int, new_status: str) -> Optional[FulfillmentResult]:
        if (new_status or "").lower() not in PAID_ORDER_STATUSES:
            return None
        return self.handle_order_paid(order_id)
