"""Shared fixtures: a temporary state database, a fake clock and an in-memory store."""

from typing import Any, Dict, List, Optional
from unittest.mock import Mock

import pytest

from woo_amazon_mcf.config import Credentials
from woo_amazon_mcf.exceptions import StoreError
from woo_amazon_mcf.storage import StateDatabase
from woo_amazon_mcf.store.base import (
    OrderLine,
    ProductDraft,
    ShippingAddress,
    StoreBackend,
    StoreOrder,
    StoreProduct,
)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryStore(StoreBackend):
    """Store fake recording every write."""

    def __init__(self):
        self.products: Dict[int, StoreProduct] = {}
        self.orders: Dict[int, StoreOrder] = {}
        self.notes: Dict[int, List[str]] = {}
        self.order_meta: Dict[int, Dict[str, Any]] = {}
        self.stock_updates: List[tuple] = []
        self.status_updates: List[tuple] = []
        self.created: List[ProductDraft] = []
        self.failing_products: set = set()
        self.fail_status_updates = False
        self._next_id = 1000

    def add_product(self, product_id: int, sku: str = "", amazon_sku: str = "", stock: Optional[int] = 0) -> StoreProduct:
        product = StoreProduct(product_id=product_id, sku=sku, amazon_sku=amazon_sku, stock_quantity=stock)
        self.products[product_id] = product
        return product

    def add_order(self, order_id: int, lines: List[OrderLine], status: str = "processing") -> StoreOrder:
        order = StoreOrder(
            order_id=order_id,
            number=str(order_id),
            status=status,
            created_at="2024-05-01T10:00:00",
            shipping=ShippingAddress(
                first_name="Jane",
                last_name="Doe",
                address_1="1 Main St",
                city="Seattle",
                state="WA",
                postcode="98101",
                country="US",
            ),
            billing_email="jane@example.com",
            lines=lines,
        )
        self.orders[order_id] = order
        return order

    def list_linked_products(self) -> Dict[int, str]:
        return {pid: p.linked_sku for pid, p in self.products.items() if p.linked_sku}

    def get_product(self, product_id: int) -> Optional[StoreProduct]:
        if product_id in self.failing_products:
            raise StoreError("store unavailable", status_code=500)
        return self.products.get(product_id)

    def update_stock(self, product_id: int, quantity: int, stock_status: str) -> None:
        self.stock_updates.append((product_id, quantity, stock_status))
        product = self.products[product_id]
        product.stock_quantity = quantity
        product.stock_status = stock_status

    def find_product_id_by_sku(self, sku: str) -> Optional[int]:
        for product in self.products.values():
            if product.sku == sku:
                return product.product_id
        return None

    def create_product(self, draft: ProductDraft) -> int:
        self._next_id += 1
        self.created.append(draft)
        self.add_product(self._next_id, sku=draft.sku, amazon_sku=draft.amazon_sku, stock=draft.stock_quantity)
        return self._next_id

    def get_order(self, order_id: int) -> Optional[StoreOrder]:
        return self.orders.get(order_id)

    def update_order_status(self, order_id: int, status: str, note: str = "") -> None:
        if self.fail_status_updates:
            raise StoreError("cannot update order", status_code=500)
        self.status_updates.append((order_id, status))
        self.orders[order_id].status = status
        if note:
            self.add_order_note(order_id, note)

    def add_order_note(self, order_id: int, note: str) -> None:
        self.notes.setdefault(order_id, []).append(note)

    def update_order_meta(self, order_id: int, meta: Dict[str, Any]) -> None:
        self.order_meta.setdefault(order_id, {}).update(meta)


def make_response(status_code: int = 200, json_data: Any = None, headers: Optional[Dict[str, str]] = None) -> Mock:
    """Mock of a ``requests.Response``."""
    response = Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.headers = headers or {}
    response.content = b"" if json_data is None else b"{...}"
    response.json.return_value = json_data
    response.text = "" if json_data is None else str(json_data)
    return response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database(tmp_path):
    return StateDatabase(str(tmp_path / "state.db"))


@pytest.fixture
def credentials():
    return Credentials(
        client_id="amzn1.application-oa2-client.test",
        client_secret="secret",
        refresh_token="Atzr|refresh",
    )


@pytest.fixture
def store():
    return InMemoryStore()
