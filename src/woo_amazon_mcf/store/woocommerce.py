"""WooCommerce REST implementation of the store contract."""

import logging
from typing import Any, Dict, Iterator, List, Optional

import requests
from woocommerce import API

from ..config import WooCommerceSettings
from ..constants import META_AMAZON_ASIN, META_AMAZON_SKU, ORDER_NOTE_PREFIX
from ..exceptions import StoreError
from .base import OrderLine, ProductDraft, ShippingAddress, StoreBackend, StoreOrder, StoreProduct

logger = logging.getLogger(__name__)

PER_PAGE = 100


def create_wc_api(settings: WooCommerceSettings) -> API:
    """Create a WooCommerce API client from settings."""
    return API(
        url=settings.url,
        consumer_key=settings.consumer_key,
        consumer_secret=settings.consumer_secret,
        wp_api=True,
        version=settings.api_version,
        timeout=settings.timeout,
        verify_ssl=settings.verify_ssl,
    )


def _meta_value(payload: Dict[str, Any], key: str) -> str:
    for meta in payload.get("meta_data") or []:
        if meta.get("key") == key:
            value = meta.get("value")
            return "" if value is None else str(value)
    return ""


def _to_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class WooCommerceStore(StoreBackend):
    """Store backend talking to the WooCommerce REST API (``wc/v3``)."""

    def __init__(self, wcapi: API) -> None:
        self.wcapi = wcapi
        # variation id -> parent product id, learned while listing
        self._variation_parents: Dict[int, int] = {}

    @classmethod
    def from_settings(cls, settings: WooCommerceSettings) -> "WooCommerceStore":
        return cls(create_wc_api(settings))

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        allow_not_found: bool = False,
    ) -> Any:
        try:
            if method == "GET":
                response = self.wcapi.get(path, params=params) if params else self.wcapi.get(path)
            elif method == "POST":
                response = self.wcapi.post(path, data)
            elif method == "PUT":
                response = self.wcapi.put(path, data)
            else:
                raise ValueError(f"Unsupported method: {method}")
        except requests.RequestException as e:
            logger.error(f"WooCommerce {method} {path} failed: {e}")
            raise StoreError(f"WooCommerce request failed: {e}") from e

        if allow_not_found and response.status_code == 404:
            return None
        if not response.ok:
            logger.error(f"WooCommerce {method} error on {path}: {response.status_code} - {response.text}")
            raise StoreError(
                f"WooCommerce API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            logger.error(f"WooCommerce {method} {path} returned a non-JSON body: {response.text[:200]}")
            raise StoreError(f"Invalid JSON from WooCommerce: {e}", status_code=response.status_code) from e

    def _paginate(self, path: str, params: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        page = 1
        while True:
            batch = self._request("GET", path, params={**params, "per_page": PER_PAGE, "page": page}) or []
            yield from batch
            if len(batch) < PER_PAGE:
                return
            page += 1

    def _product_path(self, product_id: int) -> str:
        parent_id = self._variation_parents.get(product_id)
        if parent_id:
            return f"products/{parent_id}/variations/{product_id}"
        return f"products/{product_id}"

    @staticmethod
    def _to_product(payload: Dict[str, Any], parent_id: Optional[int] = None) -> StoreProduct:
        return StoreProduct(
            product_id=int(payload["id"]),
            sku=payload.get("sku") or "",
            amazon_sku=_meta_value(payload, META_AMAZON_SKU),
            amazon_asin=_meta_value(payload, META_AMAZON_ASIN),
            stock_quantity=_to_optional_int(payload.get("stock_quantity")),
            stock_status=payload.get("stock_status") or "",
            parent_id=parent_id,
        )

    def list_linked_products(self) -> Dict[int, str]:
        linked: Dict[int, str] = {}
        for payload in self._paginate("products", {"status": "publish"}):
            product = self._to_product(payload)
            if product.linked_sku:
                linked[product.product_id] = product.linked_sku

            if payload.get("type") == "variable":
                variations_path = f"products/{product.product_id}/variations"
                for variation in self._paginate(variations_path, {"status": "publish"}):
                    child = self._to_product(variation, parent_id=product.product_id)
                    self._variation_parents[child.product_id] = product.product_id
                    if child.linked_sku:
                        linked[child.product_id] = child.linked_sku

        logger.info(f"Found {len(linked)} store products with a linked SKU")
        return linked

    def get_product(self, product_id: int) -> Optional[StoreProduct]:
        payload = self._request("GET", self._product_path(product_id), allow_not_found=True)
        if payload is None:
            return None
        return self._to_product(payload, parent_id=self._variation_parents.get(product_id))

    def update_stock(self, product_id: int, quantity: int, stock_status: str) -> None:
        self._request(
            "PUT",
            self._product_path(product_id),
            data={"manage_stock": True, "stock_quantity": quantity, "stock_status": stock_status},
        )

    def find_product_id_by_sku(self, sku: str) -> Optional[int]:
        if not sku:
            return None
        products = self._request("GET", "products", params={"sku": sku, "per_page": 1}) or []
        # WooCommerce search can return fuzzy results
        for product in products:
            if product.get("sku") == sku:
                return int(product["id"])
        return None

    def create_product(self, draft: ProductDraft) -> int:
        data: Dict[str, Any] = {
            "name": draft.name,
            "type": "simple",
            "status": draft.status,
            "sku": draft.sku,
            "description": draft.description,
            "short_description": draft.short_description,
            "manage_stock": True,
            "stock_quantity": draft.stock_quantity,
            "stock_status": draft.stock_status,
            "meta_data": [
                {"key": META_AMAZON_SKU, "value": draft.amazon_sku},
                {"key": META_AMAZON_ASIN, "value": draft.amazon_asin},
            ],
        }
        if draft.regular_price:
            data["regular_price"] = draft.regular_price
        if draft.weight:
            data["weight"] = draft.weight
        if draft.dimensions:
            data["dimensions"] = draft.dimensions
        if draft.image_urls:
            # WooCommerce sideloads remote images; the first becomes the featured image
            data["images"] = [{"src": url} for url in draft.image_urls]

        created = self._request("POST", "products", data=data)
        logger.info(f"Created WooCommerce product {created['id']} for SKU {draft.sku}")
        return int(created["id"])

    def _order_line(self, item: Dict[str, Any]) -> OrderLine:
        product_id = _to_optional_int(item.get("product_id")) or None
        variation_id = _to_optional_int(item.get("variation_id")) or None
        line = OrderLine(
            product_id=variation_id or product_id,
            quantity=int(item.get("quantity") or 0),
            sku=item.get("sku") or "",
            name=item.get("name") or "",
        )
        if product_id is None:
            return line

        if variation_id:
            self._variation_parents[variation_id] = product_id
        product = self.get_product(variation_id or product_id)
        if product is None:
            # Deleted product: nothing left to fulfil from
            line.product_id = None
            line.sku = ""
            return line
        line.sku = product.sku or line.sku
        line.amazon_sku = product.amazon_sku
        return line

    def get_order(self, order_id: int) -> Optional[StoreOrder]:
        payload = self._request("GET", f"orders/{order_id}", allow_not_found=True)
        if payload is None:
            return None

        shipping = payload.get("shipping") or {}
        billing = payload.get("billing") or {}
        lines: List[OrderLine] = [self._order_line(item) for item in payload.get("line_items") or []]

        return StoreOrder(
            order_id=int(payload["id"]),
            number=str(payload.get("number") or payload["id"]),
            status=payload.get("status") or "",
            created_at=payload.get("date_created_gmt") or payload.get("date_created") or "",
            shipping=ShippingAddress(
                first_name=shipping.get("first_name", ""),
                last_name=shipping.get("last_name", ""),
                address_1=shipping.get("address_1", ""),
                address_2=shipping.get("address_2", ""),
                city=shipping.get("city", ""),
                state=shipping.get("state", ""),
                postcode=shipping.get("postcode", ""),
                country=shipping.get("country", ""),
                phone=shipping.get("phone") or billing.get("phone", ""),
            ),
            billing_email=billing.get("email", ""),
            lines=lines,
            meta={meta.get("key"): meta.get("value") for meta in payload.get("meta_data") or []},
        )

    def update_order_status(self, order_id: int, status: str, note: str = "") -> None:
        self._request("PUT", f"orders/{order_id}", data={"status": status})
        if note:
            self.add_order_note(order_id, note)

    def add_order_note(self, order_id: int, note: str) -> None:
        if not note.startswith(ORDER_NOTE_PREFIX):
            note = f"{ORDER_NOTE_PREFIX} {note}"
        self._request("POST", f"orders/{order_id}/notes", data={"note": note, "customer_note": False})

    def update_order_meta(self, order_id: int, meta: Dict[str, Any]) -> None:
        meta_data = [{"key": key, "value": "" if value is None else value} for key, value in meta.items()]
        self._request("PUT", f"orders/{order_id}", data={"meta_data": meta_data})
