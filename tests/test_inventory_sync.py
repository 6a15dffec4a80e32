"""Tests for the FBA -> store inventory reconciler."""

from unittest.mock import Mock

import pytest

from woo_amazon_mcf.config import Credentials
from woo_amazon_mcf.constants import SYNC_LOCK_NAME
from woo_amazon_mcf.exceptions import ApiError, TransportError
from woo_amazon_mcf.inventory_sync import InventoryReconciler
from woo_amazon_mcf.models import InventoryItem


def fba(**quantities):
    return [InventoryItem(sku=sku, asin="", fnsku="", name="", quantity=qty) for sku, qty in quantities.items()]


class TestInventoryReconciler:
    @pytest.fixture
    def inventory_client(self):
        return Mock()

    @pytest.fixture
    def reconciler(self, inventory_client, store, database, credentials, clock):
        return InventoryReconciler(inventory_client, store, database, credentials, clock=clock)

    def test_updates_only_changed_products(self, reconciler, inventory_client, store, database):
        inventory_client.get_all_inventory.return_value = fba(A=5, B=0)
        store.add_product(1, sku="A", stock=3)
        store.add_product(2, sku="B", stock=3)

        report = reconciler.run_sync()

        assert (report.updated, report.skipped, report.not_found, report.errors) == (2, 0, 0, 0)
        assert store.stock_updates == [(1, 5, "instock"), (2, 0, "outofstock")]
        assert [(d.sku, d.old_qty, d.new_qty) for d in report.details] == [("A", 3, 5), ("B", 3, 0)]
        assert database.get_last_sync_report().updated == 2

    def test_second_run_is_a_no_op(self, reconciler, inventory_client, store):
        inventory_client.get_all_inventory.return_value = fba(A=5, B=0)
        store.add_product(1, sku="A", stock=3)
        store.add_product(2, sku="B", stock=3)

        reconciler.run_sync()
        store.stock_updates.clear()
        report = reconciler.run_sync()

        assert report.updated == 0
        assert report.skipped == 2
        assert store.stock_updates == []

    def test_unknown_sku_reported_not_found(self, reconciler, inventory_client, store):
        inventory_client.get_all_inventory.return_value = fba(A=5)
        store.add_product(1, sku="A", stock=5)
        store.add_product(2, sku="GONE", stock=7)

        report = reconciler.run_sync()

        assert report.not_found == 1
        assert report.skipped == 1
        (detail,) = report.details
        assert detail.sku == "GONE"
        assert detail.status == "not_found"
        assert detail.message == "SKU not found in Amazon FBA inventory"
        assert store.products[2].stock_quantity == 7

    def test_amazon_sku_tag_takes_precedence(self, reconciler, inventory_client, store):
        inventory_client.get_all_inventory.return_value = fba(**{"AMZ-1": 9})
        store.add_product(1, sku="LOCAL-1", amazon_sku="AMZ-1", stock=0)

        report = reconciler.run_sync()

        assert report.updated == 1
        assert store.stock_updates == [(1, 9, "instock")]

    def test_missing_stock_counts_as_zero(self, reconciler, inventory_client, store):
        inventory_client.get_all_inventory.return_value = fba(A=0)
        store.add_product(1, sku="A", stock=None)

        report = reconciler.run_sync()

        assert report.skipped == 1
        assert store.stock_updates == []

    def test_failing_product_does_not_abort_run(self, reconciler, inventory_client, store):
        inventory_client.get_all_inventory.return_value = fba(A=1, B=2)
        store.add_product(1, sku="A", stock=0)
        store.add_product(2, sku="B", stock=0)
        store.failing_products.add(1)

        report = reconciler.run_sync()

        assert report.errors == 1
        assert report.updated == 1
        assert report.details[0].status == "error"
        assert store.stock_updates == [(2, 2, "instock")]

    def test_fetch_failure_recorded_and_persisted(self, reconciler, inventory_client, store, database):
        inventory_client.get_all_inventory.side_effect = ApiError("Access denied", 403)
        store.add_product(1, sku="A", stock=3)

        report = reconciler.run_sync()

        assert report.error == "Access denied"
        assert store.stock_updates == []
        assert database.get_last_sync_report().error == "Access denied"

    def test_incomplete_credentials_skip_api(self, inventory_client, store, database, clock):
        reconciler = InventoryReconciler(inventory_client, store, database, Credentials(), clock=clock)

        report = reconciler.run_sync()

        assert report.error == "API credentials not configured"
        inventory_client.get_all_inventory.assert_not_called()

    def test_transient_fetch_failure_is_retried(self, inventory_client, store, database, credentials, clock):
        inventory_client.get_all_inventory.side_effect = [TransportError("reset"), fba(A=2)]
        store.add_product(1, sku="A", stock=0)
        sleeps = []
        reconciler = InventoryReconciler(
            inventory_client,
            store,
            database,
            credentials,
            retry_attempts=3,
            retry_base_delay=0.5,
            clock=clock,
            sleep=sleeps.append,
        )

        report = reconciler.run_sync()

        assert report.error is None
        assert report.updated == 1
        assert len(sleeps) == 1

    def test_held_lock_skips_run_and_keeps_snapshot(self, inventory_client, store, database, credentials, clock):
        inventory_client.get_all_inventory.return_value = fba(A=1)
        store.add_product(1, sku="A", stock=0)
        reconciler = InventoryReconciler(inventory_client, store, database, credentials, lock_ttl=900, clock=clock)
        reconciler.run_sync()
        assert database.acquire_lock(SYNC_LOCK_NAME, "someone-else", 900, clock())

        report = reconciler.run_sync()

        assert report.error == "Inventory sync already running"
        assert database.get_last_sync_report().updated == 1

    def test_lock_released_after_run(self, inventory_client, store, database, credentials, clock):
        inventory_client.get_all_inventory.return_value = fba()
        reconciler = InventoryReconciler(inventory_client, store, database, credentials, lock_ttl=900, clock=clock)

        reconciler.run_sync()

        assert database.acquire_lock(SYNC_LOCK_NAME, "next-run", 900, clock())

    def test_summary_line(self, reconciler, inventory_client, store):
        inventory_client.get_all_inventory.return_value = fba(A=1)
        store.add_product(1, sku="A", stock=0)

        assert reconciler.run_sync().summary() == "Updated 1, Skipped 0, Not Found 0, Errors 0"
