"""One-time import of FBA catalog items as draft store products."""

import html
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .api.catalog import CatalogAPIClient
from .api.inventory import InventoryAPIClient
from .constants import (
    PRODUCT_STATUS_DRAFT,
    STOCK_STATUS_IN_STOCK,
    STOCK_STATUS_OUT_OF_STOCK,
    WEIGHT_UNITS_TO_KG,
)
from .exceptions import MCFError, ValidationError
from .models import CatalogItem, ImportReport, ImportResult
from .store.base import ProductDraft, StoreBackend
from .utils.validators import validate_seller_sku

logger = logging.getLogger(__name__)

DIMENSION_UNITS_TO_CM = {
    "centimeters": 1.0,
    "millimeters": 0.1,
    "meters": 100.0,
    "inches": 2.54,
}


def _format_number(value: float) -> str:
    return f"{round(value, 3):g}"


def convert_weight(weight: Optional[Dict[str, Any]]) -> str:
    """Catalog weight as a kilogram string; values without a unit are grams."""
    if not weight or weight.get("value") in (None, ""):
        return ""
    try:
        value = float(weight["value"])
    except (TypeError, ValueError):
        return ""
    factor = WEIGHT_UNITS_TO_KG.get(str(weight.get("unit") or "grams").lower(), WEIGHT_UNITS_TO_KG["grams"])
    return _format_number(value * factor)


def convert_dimensions(dimensions: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Package dimensions in centimeters, keyed the way WooCommerce expects."""
    converted: Dict[str, str] = {}
    for key in ("length", "width", "height"):
        measure = (dimensions or {}).get(key)
        if not isinstance(measure, dict) or measure.get("value") in (None, ""):
            continue
        try:
            value = float(measure["value"])
        except (TypeError, ValueError):
            continue
        factor = DIMENSION_UNITS_TO_CM.get(str(measure.get("unit") or "centimeters").lower(), 1.0)
        converted[key] = _format_number(value * factor)
    return converted


def build_description(item: CatalogItem) -> str:
    description = item.description
    if item.bullets:
        bullets = "</li><li>".join(html.escape(bullet) for bullet in item.bullets)
        description = f"{description}\n\n<ul><li>{bullets}</li></ul>".lstrip()
    return description


def build_product_draft(sku: str, item: CatalogItem, stock_quantity: int) -> ProductDraft:
    """Map a catalog item onto a draft store product."""
    return ProductDraft(
        name=item.title or sku,
        sku=sku,
        amazon_sku=sku,
        amazon_asin=item.asin,
        status=PRODUCT_STATUS_DRAFT,
        description=build_description(item),
        short_description=item.bullets[0] if item.bullets else "",
        regular_price=item.price,
        stock_quantity=stock_quantity,
        stock_status=STOCK_STATUS_IN_STOCK if stock_quantity > 0 else STOCK_STATUS_OUT_OF_STOCK,
        weight=convert_weight(item.weight),
        dimensions=convert_dimensions(item.dimensions),
        image_urls=[image.url for image in item.images],
    )


class ProductImporter:
    """Creates store products from FBA inventory and catalog data."""

    def __init__(
        self,
        inventory_client: InventoryAPIClient,
        catalog_client: CatalogAPIClient,
        store: StoreBackend,
    ) -> None:
        self.inventory_client = inventory_client
        self.catalog_client = catalog_client
        self.store = store

    def list_importable(self) -> List[Dict[str, Any]]:
        """Active FBA inventory, each row flagged with any existing store product."""
        products = []
        for item in self.inventory_client.get_active_inventory():
            existing_id = self.store.find_product_id_by_sku(item.sku)
            row = item.to_dict()
            row["exists"] = existing_id is not None
            row["store_product_id"] = existing_id
            products.append(row)
        return products

    def _fba_quantities(self) -> Dict[str, int]:
        return {item.sku: item.quantity for item in self.inventory_client.get_active_inventory()}

    def import_product(
        self,
        sku: str,
        asin: str,
        fba_quantities: Optional[Dict[str, int]] = None,
    ) -> ImportResult:
        """Create a draft product for one SKU/ASIN pair.

        ``fba_quantities`` lets a batch share one inventory fetch; it is
        loaded on demand otherwise.
        """
        sku = (sku or "").strip()
        asin = (asin or "").strip().upper()
        try:
            if not sku or not asin:
                raise ValidationError("Missing SKU or ASIN")
            if not validate_seller_sku(sku):
                raise ValidationError(f"Invalid SKU: {sku}")

            if self.store.find_product_id_by_sku(sku) is not None:
                return ImportResult(
                    sku=sku,
                    asin=asin,
                    success=False,
                    message="Product already exists",
                    error=ValidationError("Product already exists", details={"sku": sku}),
                )

            item = self.catalog_client.get_catalog_item(asin)
            if fba_quantities is None:
                fba_quantities = self._fba_quantities()
            draft = build_product_draft(sku, item, fba_quantities.get(sku, 0))
            product_id = self.store.create_product(draft)
        except MCFError as e:
            logger.error(f"Import of {sku or '?'} ({asin or '?'}) failed: {e.message}")
            return ImportResult(sku=sku, asin=asin, success=False, message=e.message, error=e)

        logger.info(f"Imported {sku} ({asin}) as product {product_id}")
        return ImportResult(
            sku=sku,
            asin=asin,
            success=True,
            message="Product imported as draft",
            product_id=product_id,
        )

    def import_products(self, pairs: Iterable[Tuple[str, str]]) -> ImportReport:
        report = ImportReport()
        fba_quantities: Optional[Dict[str, int]] = None
        for sku, asin in pairs:
            if fba_quantities is None and sku and asin:
                try:
                    fba_quantities = self._fba_quantities()
                except MCFError as e:
                    logger.warning(f"Could not load FBA quantities for import: {e.message}")
                    fba_quantities = {}
            report.results.append(self.import_product(sku, asin, fba_quantities))
        logger.info(f"Product import finished: {report.imported} imported, {report.failed} failed")
        return report
