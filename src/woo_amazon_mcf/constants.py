"""Constants and configuration for Amazon SP-API and Multi-Channel Fulfillment."""

# Marketplace configuration
MARKETPLACES = {
    "US": {
        "id": "ATVPDKIKX0DER",
        "name": "United States",
        "endpoint": "https://sellingpartnerapi-na.amazon.com",
        "region": "us-east-1",
        "currency": "USD",
        "country_code": "US",
    },
    "CA": {
        "id": "A2EUQ1WTGCTBG2",
        "name": "Canada",
        "endpoint": "https://sellingpartnerapi-na.amazon.com",
        "region": "us-east-1",
        "currency": "CAD",
        "country_code": "CA",
    },
    "MX": {
        "id": "A1AM78C64UM0Y8",
        "name": "Mexico",
        "endpoint": "https://sellingpartnerapi-na.amazon.com",
        "region": "us-east-1",
        "currency": "MXN",
        "country_code": "MX",
    },
    "UK": {
        "id": "A1F83G8C2ARO7P",
        "name": "United Kingdom",
        "endpoint": "https://sellingpartnerapi-eu.amazon.com",
        "region": "eu-west-1",
        "currency": "GBP",
        "country_code": "GB",
    },
    "DE": {
        "id": "A1PA6795UKMFR9",
        "name": "Germany",
        "endpoint": "https://sellingpartnerapi-eu.amazon.com",
        "region": "eu-west-1",
        "currency": "EUR",
        "country_code": "DE",
    },
    "FR": {
        "id": "A13V1IB3VIYZZH",
        "name": "France",
        "endpoint": "https://sellingpartnerapi-eu.amazon.com",
        "region": "eu-west-1",
        "currency": "EUR",
        "country_code": "FR",
    },
    "IT": {
        "id": "APJ6JRA9NG5V4",
        "name": "Italy",
        "endpoint": "https://sellingpartnerapi-eu.amazon.com",
        "region": "eu-west-1",
        "currency": "EUR",
        "country_code": "IT",
    },
    "ES": {
        "id": "A1RKKUPIHCS9HS",
        "name": "Spain",
        "endpoint": "https://sellingpartnerapi-eu.amazon.com",
        "region": "eu-west-1",
        "currency": "EUR",
        "country_code": "ES",
    },
    "JP": {
        "id": "A1VC38T7YXB528",
        "name": "Japan",
        "endpoint": "https://sellingpartnerapi-fe.amazon.com",
        "region": "us-west-2",
        "currency": "JPY",
        "country_code": "JP",
    },
    "AU": {
        "id": "A39IBJ37TRP1C6",
        "name": "Australia",
        "endpoint": "https://sellingpartnerapi-fe.amazon.com",
        "region": "us-west-2",
        "currency": "AUD",
        "country_code": "AU",
    },
}

DEFAULT_MARKETPLACE_ID = MARKETPLACES["US"]["id"]

# Valid marketplace IDs (extracted from MARKETPLACES)
VALID_MARKETPLACE_IDS = {marketplace["id"] for marketplace in MARKETPLACES.values()}

MARKETPLACES_BY_ID = {marketplace["id"]: marketplace for marketplace in MARKETPLACES.values()}

# Login with Amazon
LWA_TOKEN_ENDPOINT = "https://api.amazon.com/auth/o2/token"

# Access tokens live at most an hour; refresh a minute early
TOKEN_MAX_TTL = 3600
TOKEN_SAFETY_MARGIN = 60
# Remaining lifetime assumed for a token adopted from the durable cache
DURABLE_TOKEN_ASSUMED_TTL = 3000

# API Paths
API_PATHS = {
    "marketplace_participations": "/sellers/v1/marketplaceParticipations",
    "inventory_summaries": "/fba/inventory/v1/summaries",
    "catalog_items": "/catalog/2022-04-01/items",
    "fulfillment_orders": "/fba/outbound/2020-07-01/fulfillmentOrders",
    "fulfillment_preview": "/fba/outbound/2020-07-01/fulfillmentOrders/preview",
}

CATALOG_INCLUDED_DATA = "summaries,images,attributes"

# Default request timeout (seconds)
DEFAULT_TIMEOUT = 30

USER_AGENT = "WooAmazonMCF/1.0 (Language=Python)"

# Fulfillment order defaults
SHIPPING_SPEED_STANDARD = "Standard"
SHIPPING_SPEED_CATEGORIES = ["Standard", "Expedited", "Priority"]
FULFILLMENT_ACTION = "Ship"
FULFILLMENT_POLICY = "FillOrKill"
DEFAULT_ORDER_ID_PREFIX = "WOO"
# SP-API limit for sellerFulfillmentOrderId
MAX_FULFILLMENT_ORDER_ID_LENGTH = 40

# Local fulfillment statuses
STATUS_UNSUBMITTED = "UNSUBMITTED"
STATUS_SUBMITTING = "SUBMITTING"
STATUS_RECEIVED = "RECEIVED"
STATUS_PLANNING = "PLANNING"
STATUS_PROCESSING = "PROCESSING"
STATUS_COMPLETE = "COMPLETE"
STATUS_COMPLETE_PARTIALLED = "COMPLETE_PARTIALLED"
STATUS_CANCELLED = "CANCELLED"
STATUS_UNFULFILLABLE = "UNFULFILLABLE"
STATUS_INVALID = "INVALID"
STATUS_UNKNOWN = "UNKNOWN"

COMPLETED_STATUSES = {STATUS_COMPLETE, STATUS_COMPLETE_PARTIALLED}
CANCELLED_STATUSES = {STATUS_CANCELLED, STATUS_UNFULFILLABLE}
TERMINAL_STATUSES = COMPLETED_STATUSES | CANCELLED_STATUSES

# fulfillmentOrderStatus values returned by FBA Outbound
PROVIDER_STATUS_MAP = {
    "NEW": STATUS_RECEIVED,
    "RECEIVED": STATUS_RECEIVED,
    "PLANNING": STATUS_PLANNING,
    "PROCESSING": STATUS_PROCESSING,
    "COMPLETE": STATUS_COMPLETE,
    "COMPLETEPARTIALLED": STATUS_COMPLETE_PARTIALLED,
    "COMPLETE_PARTIALLED": STATUS_COMPLETE_PARTIALLED,
    "CANCELLED": STATUS_CANCELLED,
    "UNFULFILLABLE": STATUS_UNFULFILLABLE,
    "INVALID": STATUS_INVALID,
}

# Store side (WooCommerce) values
STOCK_STATUS_IN_STOCK = "instock"
STOCK_STATUS_OUT_OF_STOCK = "outofstock"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"
PAID_ORDER_STATUSES = {"processing"}
PRODUCT_STATUS_DRAFT = "draft"

# Product meta keys carrying the Amazon identity
META_AMAZON_SKU = "amazon_sku"
META_AMAZON_ASIN = "amazon_asin"

# Order meta keys mirroring fulfillment state on the store order
ORDER_META_KEYS = {
    "mcf_order_id": "amazon_mcf_order_id",
    "status": "amazon_mcf_status",
    "submitted_at": "amazon_mcf_submitted_at",
    "tracking_number": "amazon_mcf_tracking",
    "carrier": "amazon_mcf_carrier",
    "last_error": "amazon_mcf_error",
}

ORDER_NOTE_PREFIX = "MCF:"

# Inventory sync
SYNC_LOCK_NAME = "inventory_sync"
DEFAULT_SYNC_INTERVAL_MINUTES = 60
DEFAULT_SYNC_LOCK_TTL = 900
DEFAULT_STATUS_POLL_MINUTES = 30

# Catalog image role used as the featured image
PRIMARY_IMAGE_VARIANT = "MAIN"

# Weight units reported by catalog attributes, converted to kilograms
WEIGHT_UNITS_TO_KG = {
    "grams": 0.001,
    "kilograms": 1.0,
    "pounds": 0.45359237,
    "ounces": 0.028349523125,
}
