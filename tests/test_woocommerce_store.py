"""Tests for the WooCommerce REST store backend."""

from unittest.mock import Mock

import pytest
import requests

from conftest import make_response
from woo_amazon_mcf.exceptions import StoreError
from woo_amazon_mcf.inventory_sync import InventoryReconciler
from woo_amazon_mcf.models import InventoryItem
from woo_amazon_mcf.store import ProductDraft, WooCommerceStore


def product(product_id, sku="", amazon_sku=None, stock=None, product_type="simple"):
    meta = [{"id": 1, "key": "amazon_sku", "value": amazon_sku}] if amazon_sku else []
    return {
        "id": product_id,
        "sku": sku,
        "type": product_type,
        "stock_quantity": stock,
        "stock_status": "instock",
        "meta_data": meta,
    }


class TestWooCommerceStore:
    @pytest.fixture
    def wcapi(self):
        return Mock()

    @pytest.fixture
    def store(self, wcapi):
        return WooCommerceStore(wcapi)

    def test_list_linked_products_includes_variations(self, store, wcapi):
        def get(path, params=None):
            if path == "products":
                return make_response(
                    200,
                    [
                        product(1, sku="A"),
                        product(2, sku="", amazon_sku="AMZ-B"),
                        product(3, sku=""),
                        product(4, sku="PARENT", product_type="variable"),
                    ],
                )
            if path == "products/4/variations":
                return make_response(200, [product(41, sku="VAR-1")])
            raise AssertionError(path)

        wcapi.get.side_effect = get

        linked = store.list_linked_products()

        assert linked == {1: "A", 2: "AMZ-B", 4: "PARENT", 41: "VAR-1"}
        assert wcapi.get.call_args_list[0].kwargs["params"]["status"] == "publish"

    def test_variation_stock_update_uses_variation_path(self, store, wcapi):
        wcapi.get.side_effect = [
            make_response(200, [product(4, sku="PARENT", product_type="variable")]),
            make_response(200, [product(41, sku="VAR-1")]),
        ]
        wcapi.put.return_value = make_response(200, {"id": 41})
        store.list_linked_products()

        store.update_stock(41, 7, "instock")

        path, data = wcapi.put.call_args.args
        assert path == "products/4/variations/41"
        assert data == {"manage_stock": True, "stock_quantity": 7, "stock_status": "instock"}

    def test_get_product_not_found(self, store, wcapi):
        wcapi.get.return_value = make_response(404, {"code": "woocommerce_rest_product_invalid_id"})

        assert store.get_product(99) is None

    def test_get_product_reads_meta(self, store, wcapi):
        wcapi.get.return_value = make_response(200, product(1, sku="A", amazon_sku="AMZ-A", stock=3))

        result = store.get_product(1)

        assert (result.sku, result.amazon_sku, result.stock_quantity) == ("A", "AMZ-A", 3)
        assert result.linked_sku == "AMZ-A"

    def test_error_status_raises_store_error(self, store, wcapi):
        wcapi.put.return_value = make_response(500, {"message": "db down"})

        with pytest.raises(StoreError) as exc_info:
            store.update_stock(1, 1, "instock")

        assert exc_info.value.status_code == 500

    def test_network_error_raises_store_error(self, store, wcapi):
        wcapi.get.side_effect = requests.ConnectionError("refused")

        with pytest.raises(StoreError):
            store.get_product(1)

    def test_find_by_sku_requires_exact_match(self, store, wcapi):
        wcapi.get.return_value = make_response(200, [product(7, sku="ABC-10")])

        assert store.find_product_id_by_sku("ABC-1") is None

    def test_create_product(self, store, wcapi):
        wcapi.post.return_value = make_response(201, {"id": 55})
        draft = ProductDraft(
            name="Widget",
            sku="SKU-1",
            amazon_sku="SKU-1",
            amazon_asin="B000TEST01",
            status="draft",
            regular_price="19.99",
            stock_quantity=4,
            stock_status="instock",
            weight="0.25",
            image_urls=["https://img/main.jpg"],
        )

        assert store.create_product(draft) == 55

        path, data = wcapi.post.call_args.args
        assert path == "products"
        assert data["status"] == "draft"
        assert data["manage_stock"] is True
        assert data["images"] == [{"src": "https://img/main.jpg"}]
        assert {"key": "amazon_asin", "value": "B000TEST01"} in data["meta_data"]

    def test_get_order_maps_lines_and_address(self, store, wcapi):
        order = {
            "id": 42,
            "number": "42",
            "status": "processing",
            "date_created_gmt": "2024-05-01T10:00:00",
            "shipping": {"first_name": "Jane", "last_name": "Doe", "country": "US", "address_2": ""},
            "billing": {"email": "jane@example.com", "phone": "555-0100"},
            "line_items": [
                {"product_id": 1, "variation_id": 0, "quantity": 2, "sku": "A", "name": "Widget"},
                {"product_id": 9, "variation_id": 0, "quantity": 1, "sku": "OLD", "name": "Deleted"},
            ],
            "meta_data": [],
        }

        def get(path, params=None):
            if path == "orders/42":
                return make_response(200, order)
            if path == "products/1":
                return make_response(200, product(1, sku="A", amazon_sku="AMZ-A"))
            return make_response(404, {"code": "not_found"})

        wcapi.get.side_effect = get

        result = store.get_order(42)

        assert result.billing_email == "jane@example.com"
        assert result.shipping.phone == "555-0100"
        assert result.shipping.to_sp_api()["name"] == "Jane Doe"
        assert "addressLine2" not in result.shipping.to_sp_api()
        assert [(line.fulfillment_sku, line.quantity) for line in result.lines] == [("AMZ-A", 2), ("", 1)]

    def test_order_notes_are_prefixed(self, store, wcapi):
        wcapi.post.return_value = make_response(201, {"id": 1})

        store.add_order_note(42, "Order submitted")

        path, data = wcapi.post.call_args.args
        assert path == "orders/42/notes"
        assert data["note"] == "MCF: Order submitted"
        assert data["customer_note"] is False

    def test_non_json_body_raises_store_error(self, store, wcapi):
        response = make_response(200)
        response.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
        response.text = "<html><body>Briefly unavailable for scheduled maintenance.</body></html>"
        wcapi.get.return_value = response

        with pytest.raises(StoreError) as exc_info:
            store.get_product(1)

        assert "Invalid JSON from WooCommerce" in exc_info.value.message

    def test_non_json_listing_still_persists_sync_report(self, store, wcapi, database, credentials, clock):
        response = make_response(200)
        response.json.side_effect = requests.JSONDecodeError("Expecting value", "<html>", 0)
        response.text = "<html>maintenance</html>"
        wcapi.get.return_value = response
        inventory_client = Mock()
        inventory_client.get_all_inventory.return_value = [
            InventoryItem(sku="A", asin="", fnsku="", name="", quantity=5)
        ]
        reconciler = InventoryReconciler(inventory_client, store, database, credentials, clock=clock)

        report = reconciler.run_sync()

        assert "Invalid JSON from WooCommerce" in report.error
        assert database.get_last_sync_report().error == report.error
