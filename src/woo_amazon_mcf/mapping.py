"""Transform raw SP-API inventory and catalog payloads into domain records."""

import logging
from typing import Any, Optional

from .constants import PRIMARY_IMAGE_VARIANT
from .exceptions import ValidationError
from .models import CatalogImage, CatalogItem, InventoryItem

logger = logging.getLogger(__name__)


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_inventory(raw: dict[str, Any], include_zero: bool = False) -> list[InventoryItem]:
    """Map an inventory summaries response.

    Args:
        raw: Response body (``payload.inventorySummaries``) or the payload itself
        include_zero: Keep items with no stock (the full view used by the sync)

    Returns:
        Inventory items in response order
    """
    if not isinstance(raw, dict):
        raise ValidationError("Inventory response must be a JSON object")

    payload = raw.get("payload", raw)
    items = []
    for summary in payload.get("inventorySummaries", []) or []:
        sku = summary.get("sellerSku")
        if not sku:
            logger.debug(f"Skipping inventory summary without sellerSku: {summary.get('asin')}")
            continue

        quantity = max(_to_int(summary.get("totalQuantity", 0)), 0)
        if quantity <= 0 and not include_zero:
            continue

        items.append(
            InventoryItem(
                sku=sku,
                asin=summary.get("asin") or "",
                fnsku=summary.get("fnSku") or "",
                name=summary.get("productName") or "",
                quantity=quantity,
            )
        )
    return items


def _first_value(attributes: dict[str, Any], key: str) -> Any:
    entries = attributes.get(key) or []
    if not entries or not isinstance(entries[0], dict):
        return ""
    value = entries[0].get("value")
    return "" if value is None else value


def _first_entry(attributes: dict[str, Any], key: str) -> Optional[dict[str, Any]]:
    entries = attributes.get(key) or []
    if entries and isinstance(entries[0], dict):
        return entries[0]
    return None


def find_identifier(attributes: dict[str, Any], id_type: str) -> str:
    """Return the first externally assigned identifier of ``id_type`` ("upc", "ean", ...)."""
    for identifier in attributes.get("externally_assigned_product_identifier") or []:
        if str(identifier.get("type", "")).lower() == id_type:
            return str(identifier.get("value") or "")
    return ""


def select_images(raw_images: list[dict[str, Any]]) -> list[CatalogImage]:
    """Keep the tallest image per variant, primary variant first."""
    best: dict[str, CatalogImage] = {}
    for image in raw_images:
        link = image.get("link")
        if not link:
            continue
        variant = image.get("variant") or PRIMARY_IMAGE_VARIANT
        height = _to_int(image.get("height"))
        current = best.get(variant)
        if current is None or height > current.height:
            best[variant] = CatalogImage(
                url=link,
                width=_to_int(image.get("width")),
                height=height,
                variant=variant,
            )

    return sorted(best.values(), key=lambda image: image.variant != PRIMARY_IMAGE_VARIANT)


def parse_catalog(raw: dict[str, Any]) -> CatalogItem:
    """Map a catalog item (``includedData=summaries,images,attributes``)."""
    if not isinstance(raw, dict):
        raise ValidationError("Catalog response must be a JSON object")

    attributes = raw.get("attributes") or {}
    summaries = raw.get("summaries") or [{}]
    summary = summaries[0] if summaries else {}
    image_sets = raw.get("images") or [{}]
    raw_images = (image_sets[0] if image_sets else {}).get("images") or []

    bullets = [
        str(bullet.get("value", ""))
        for bullet in attributes.get("bullet_point") or []
        if isinstance(bullet, dict)
    ]

    price = _first_value(attributes, "list_price")

    return CatalogItem(
        asin=raw.get("asin") or "",
        title=str(_first_value(attributes, "item_name") or summary.get("itemName") or ""),
        brand=str(_first_value(attributes, "brand") or summary.get("brand") or ""),
        description=str(_first_value(attributes, "product_description")),
        bullets=bullets,
        price="" if price == "" else str(price),
        images=select_images(raw_images),
        weight=_first_entry(attributes, "item_weight"),
        dimensions=_first_entry(attributes, "item_package_dimensions"),
        upc=find_identifier(attributes, "upc"),
        ean=find_identifier(attributes, "ean"),
    )
