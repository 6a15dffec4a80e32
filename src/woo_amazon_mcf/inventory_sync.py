"""Reconcile store stock levels with Amazon FBA inventory."""

import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from .api.inventory import InventoryAPIClient
from .config import Credentials
from .constants import STOCK_STATUS_IN_STOCK, STOCK_STATUS_OUT_OF_STOCK, SYNC_LOCK_NAME
from .exceptions import MCFError
from .models import SyncDetail, SyncReport
from .storage.database import StateDatabase
from .store.base import StoreBackend
from .utils.decorators import call_with_retry

logger = logging.getLogger(__name__)


class InventoryReconciler:
    """Pushes FBA quantities onto store products linked by SKU.

    A product is written only when its quantity differs from FBA. One failing
    product never aborts the run; every run ends with a persisted snapshot.
    """

    def __init__(
        self,
        inventory_client: InventoryAPIClient,
        store: StoreBackend,
        database: StateDatabase,
        credentials: Credentials,
        lock_ttl: int = 0,
        retry_attempts: int = 1,
        retry_base_delay: float = 1.0,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.inventory_client = inventory_client
        self.store = store
        self.database = database
        self.credentials = credentials
        self.lock_ttl = lock_ttl
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.clock = clock
        self.sleep = sleep

    def _timestamp(self) -> str:
        return datetime.fromtimestamp(self.clock(), tz=timezone.utc).replace(microsecond=0).isoformat()

    def run_sync(self) -> SyncReport:
        """Run one reconciliation pass and persist its report."""
        owner = str(uuid.uuid4())
        if self.lock_ttl > 0 and not self.database.acquire_lock(
            SYNC_LOCK_NAME, owner, self.lock_ttl, self.clock()
        ):
            logger.warning("Inventory sync already running, skipping this run")
            return SyncReport(timestamp=self._timestamp(), error="Inventory sync already running")

        try:
            report = self._reconcile()
        finally:
            if self.lock_ttl > 0:
                self.database.release_lock(SYNC_LOCK_NAME, owner)

        self.database.save_sync_report(report)
        return report

    def _fetch_fba_quantities(self) -> Dict[str, int]:
        items = call_with_retry(
            self.inventory_client.get_all_inventory,
            attempts=self.retry_attempts,
            base_delay=self.retry_base_delay,
            sleep=self.sleep,
        )
        return {item.sku: item.quantity for item in items}

    def _reconcile(self) -> SyncReport:
        report = SyncReport(timestamp=self._timestamp())

        if not self.credentials.is_complete:
            report.error = "API credentials not configured"
            logger.error(f"Amazon MCF Inventory Sync: {report.error}")
            return report

        try:
            fba_quantities = self._fetch_fba_quantities()
            linked_products = self.store.list_linked_products()
        except MCFError as e:
            report.error = e.message
            logger.error(f"Amazon MCF Inventory Sync Error: {e.message}")
            return report

        for product_id, sku in linked_products.items():
            self._reconcile_product(report, product_id, sku, fba_quantities)

        logger.info(f"Amazon MCF Inventory Sync: {report.summary()}")
        return report

    def _reconcile_product(
        self,
        report: SyncReport,
        product_id: int,
        sku: str,
        fba_quantities: Dict[str, int],
    ) -> None:
        lookup_error: Optional[str] = None
        try:
            product = self.store.get_product(product_id)
        except MCFError as e:
            product = None
            lookup_error = e.message

        if product is None:
            report.errors += 1
            report.details.append(
                SyncDetail(
                    sku=sku,
                    product_id=product_id,
                    status="error",
                    message=lookup_error or "Store product not found",
                )
            )
            return

        if sku not in fba_quantities:
            report.not_found += 1
            report.details.append(
                SyncDetail(
                    sku=sku,
                    product_id=product_id,
                    status="not_found",
                    message="SKU not found in Amazon FBA inventory",
                )
            )
            return

        fba_qty = fba_quantities[sku]
        store_qty = product.stock_quantity or 0
        if fba_qty == store_qty:
            report.skipped += 1
            return

        stock_status = STOCK_STATUS_IN_STOCK if fba_qty > 0 else STOCK_STATUS_OUT_OF_STOCK
        try:
            self.store.update_stock(product_id, fba_qty, stock_status)
        except MCFError as e:
            report.errors += 1
            report.details.append(
                SyncDetail(sku=sku, product_id=product_id, status="error", message=e.message)
            )
            logger.error(f"Failed to update stock for product {product_id} ({sku}): {e.message}")
            return

        report.updated += 1
        report.details.append(
            SyncDetail(
                sku=sku,
                product_id=product_id,
                status="updated",
                old_qty=store_qty,
                new_qty=fba_qty,
            )
        )
        logger.debug(f"Product {product_id} ({sku}) stock {store_qty} -> {fba_qty}")

    def get_last_report(self) -> Optional[SyncReport]:
        return self.database.get_last_sync_report()
