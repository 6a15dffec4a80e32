"""Process-wide wiring of settings, storage, API clients and the core services."""

import logging
from dataclasses import replace
from typing import Optional

from .api import CatalogAPIClient, FulfillmentAPIClient, InventoryAPIClient, SellersAPIClient
from .auth import AWSSigner, TokenCache
from .config import Credentials, Settings
from .exceptions import ConfigurationError
from .fulfillment import FulfillmentManager
from .importer import ProductImporter
from .inventory_sync import InventoryReconciler
from .scheduler import SyncScheduler
from .storage import StateDatabase
from .store import StoreBackend, WooCommerceStore

logger = logging.getLogger(__name__)


class Application:
    """Holds one instance of every service for the lifetime of the process."""

    def __init__(
        self,
        settings: Settings,
        database: StateDatabase,
        store: StoreBackend,
    ) -> None:
        self.settings = settings
        self.database = database
        self.store = store

        self.token_cache = TokenCache(
            settings.credentials,
            database,
            token_endpoint=settings.token_endpoint,
            timeout=settings.request_timeout,
        )
        signer = AWSSigner(settings.aws) if settings.aws is not None else None
        client_args = (self.token_cache, settings.endpoint, settings.credentials.marketplace_id)
        client_kwargs = {"timeout": settings.request_timeout, "signer": signer}

        self.sellers_client = SellersAPIClient(*client_args, **client_kwargs)
        self.inventory_client = InventoryAPIClient(*client_args, **client_kwargs)
        self.catalog_client = CatalogAPIClient(*client_args, **client_kwargs)
        self.fulfillment_client = FulfillmentAPIClient(*client_args, **client_kwargs)

        self.reconciler = InventoryReconciler(
            self.inventory_client,
            store,
            database,
            settings.credentials,
            lock_ttl=settings.sync_lock_ttl,
            retry_attempts=settings.retry_attempts,
            retry_base_delay=settings.retry_base_delay,
        )
        self.fulfillment = FulfillmentManager(
            self.fulfillment_client,
            store,
            database,
            order_id_prefix=settings.order_id_prefix,
        )
        self.importer = ProductImporter(self.inventory_client, self.catalog_client, store)
        self.scheduler = SyncScheduler(
            self.reconciler.run_sync,
            interval_minutes=settings.sync_interval_minutes,
            status_job=self.fulfillment.refresh_open_orders,
            status_interval_minutes=settings.status_poll_minutes,
        )

    @classmethod
    def create(cls, settings: Settings, store: Optional[StoreBackend] = None) -> "Application":
        """Build the application; the WooCommerce store comes from settings unless given."""
        if store is None:
            if not settings.woocommerce.is_configured:
                raise ConfigurationError(
                    "WooCommerce store is not configured (set WC_URL, WC_CONSUMER_KEY and WC_CONSUMER_SECRET)"
                )
            store = WooCommerceStore.from_settings(settings.woocommerce)
        database = StateDatabase(settings.database_path)
        return cls(settings, database, store)

    @property
    def api_clients(self):
        return (self.sellers_client, self.inventory_client, self.catalog_client, self.fulfillment_client)

    def start(self) -> None:
        self.scheduler.start()
        logger.info("Application started")

    def close(self) -> None:
        self.scheduler.shutdown()
        logger.info("Application stopped")

    def update_credentials(self, credentials: Credentials) -> None:
        """Swap LWA credentials at runtime.

        The durable token slot of the old credentials is dropped so a token
        minted for them is never served again.
        """
        self.token_cache.invalidate()
        self.token_cache.credentials = credentials
        self.reconciler.credentials = credentials
        for client in self.api_clients:
            client.marketplace_id = credentials.marketplace_id
        self.settings = replace(self.settings, credentials=credentials)
        logger.info("SP-API credentials updated")
