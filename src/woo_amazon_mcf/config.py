"""Typed settings loaded once from the environment (and an optional .env file)."""

import hashlib
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from .constants import (
    DEFAULT_MARKETPLACE_ID,
    DEFAULT_ORDER_ID_PREFIX,
    DEFAULT_STATUS_POLL_MINUTES,
    DEFAULT_SYNC_INTERVAL_MINUTES,
    DEFAULT_SYNC_LOCK_TTL,
    DEFAULT_TIMEOUT,
    LWA_TOKEN_ENDPOINT,
    MARKETPLACES_BY_ID,
)
from .exceptions import ConfigurationError
from .utils.validators import validate_marketplace_id, validate_positive_integer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Credentials:
    """LWA application credentials plus the marketplace they act on."""

    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    marketplace_id: str = DEFAULT_MARKETPLACE_ID

    def missing_fields(self) -> list[str]:
        return [
            name
            for name in ("client_id", "client_secret", "refresh_token", "marketplace_id")
            if not getattr(self, name)
        ]

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()

    def fingerprint(self) -> str:
        """Stable key for the durable token slot of this credential generation."""
        raw = "\x1f".join((self.client_id, self.client_secret, self.refresh_token, self.marketplace_id))
        return hashlib.sha256(raw.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class WooCommerceSettings:
    url: str = ""
    consumer_key: str = ""
    consumer_secret: str = ""
    api_version: str = "wc/v3"
    verify_ssl: bool = True
    timeout: int = DEFAULT_TIMEOUT
    webhook_secret: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.consumer_key and self.consumer_secret)


@dataclass(frozen=True)
class AWSSettings:
    """IAM user and role used to SigV4-sign SP-API calls."""

    access_key_id: str
    secret_access_key: str
    role_arn: str
    region: str


@dataclass(frozen=True)
class Settings:
    credentials: Credentials = field(default_factory=Credentials)
    endpoint: str = MARKETPLACES_BY_ID[DEFAULT_MARKETPLACE_ID]["endpoint"]
    token_endpoint: str = LWA_TOKEN_ENDPOINT
    request_timeout: int = DEFAULT_TIMEOUT
    database_path: str = "woo_amazon_mcf.db"
    order_id_prefix: str = DEFAULT_ORDER_ID_PREFIX
    sync_interval_minutes: int = DEFAULT_SYNC_INTERVAL_MINUTES
    sync_lock_ttl: int = DEFAULT_SYNC_LOCK_TTL
    status_poll_minutes: int = DEFAULT_STATUS_POLL_MINUTES
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    log_level: str = "INFO"
    woocommerce: WooCommerceSettings = field(default_factory=WooCommerceSettings)
    aws: Optional[AWSSettings] = None


def _get_int(env: Mapping[str, str], name: str, default: int, min_value: int, max_value: int) -> int:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if not validate_positive_integer(value, min_value=min_value, max_value=max_value):
        raise ConfigurationError(f"{name} must be between {min_value} and {max_value}")
    return value


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigurationError(f"{name} must not be negative")
    return value


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build validated settings.

    When ``environ`` is omitted, a ``.env`` file is loaded first and the
    process environment is used.

    Raises:
        ConfigurationError: If a value is present but invalid
    """
    if environ is None:
        load_dotenv()
        environ = os.environ
    env = {key: value.strip() for key, value in environ.items() if isinstance(value, str)}

    marketplace_id = env.get("SP_API_MARKETPLACE_ID") or DEFAULT_MARKETPLACE_ID
    if not validate_marketplace_id(marketplace_id):
        raise ConfigurationError(f"Unknown marketplace id: {marketplace_id}")
    marketplace = MARKETPLACES_BY_ID[marketplace_id]

    credentials = Credentials(
        client_id=env.get("LWA_CLIENT_ID", ""),
        client_secret=env.get("LWA_CLIENT_SECRET", ""),
        refresh_token=env.get("LWA_REFRESH_TOKEN", ""),
        marketplace_id=marketplace_id,
    )
    if not credentials.is_complete:
        logger.warning(f"SP-API credentials incomplete, missing: {', '.join(credentials.missing_fields())}")

    endpoint = (env.get("SP_API_ENDPOINT") or marketplace["endpoint"]).rstrip("/")
    if not endpoint.startswith("https://"):
        raise ConfigurationError("SP_API_ENDPOINT must be an https URL")

    order_id_prefix = env.get("MCF_ORDER_ID_PREFIX", DEFAULT_ORDER_ID_PREFIX)
    if order_id_prefix and (len(order_id_prefix) > 10 or not order_id_prefix.isalnum()):
        raise ConfigurationError("MCF_ORDER_ID_PREFIX must be up to 10 alphanumeric characters")

    log_level = env.get("MCF_LOG_LEVEL", "INFO").upper()
    if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        raise ConfigurationError(f"Invalid MCF_LOG_LEVEL: {log_level}")

    woocommerce = WooCommerceSettings(
        url=env.get("WC_URL", "").rstrip("/"),
        consumer_key=env.get("WC_CONSUMER_KEY", ""),
        consumer_secret=env.get("WC_CONSUMER_SECRET", ""),
        api_version=env.get("WC_API_VERSION") or "wc/v3",
        verify_ssl=_get_bool(env, "WC_VERIFY_SSL", True),
        timeout=_get_int(env, "WC_TIMEOUT", DEFAULT_TIMEOUT, 1, 300),
        webhook_secret=env.get("WC_WEBHOOK_SECRET", ""),
    )

    aws = None
    if env.get("AWS_ACCESS_KEY_ID") and env.get("AWS_SECRET_ACCESS_KEY") and env.get("AWS_ROLE_ARN"):
        aws = AWSSettings(
            access_key_id=env["AWS_ACCESS_KEY_ID"],
            secret_access_key=env["AWS_SECRET_ACCESS_KEY"],
            role_arn=env["AWS_ROLE_ARN"],
            region=env.get("AWS_REGION") or marketplace["region"],
        )

    return Settings(
        credentials=credentials,
        endpoint=endpoint,
        token_endpoint=env.get("LWA_TOKEN_ENDPOINT") or LWA_TOKEN_ENDPOINT,
        request_timeout=_get_int(env, "SP_API_TIMEOUT", DEFAULT_TIMEOUT, 1, 300),
        database_path=env.get("MCF_DATABASE_PATH") or "woo_amazon_mcf.db",
        order_id_prefix=order_id_prefix,
        sync_interval_minutes=_get_int(
            env, "MCF_SYNC_INTERVAL_MINUTES", DEFAULT_SYNC_INTERVAL_MINUTES, 1, 24 * 60
        ),
        sync_lock_ttl=_get_int(env, "MCF_SYNC_LOCK_TTL", DEFAULT_SYNC_LOCK_TTL, 0, 24 * 3600),
        status_poll_minutes=_get_int(
            env, "MCF_STATUS_POLL_MINUTES", DEFAULT_STATUS_POLL_MINUTES, 0, 24 * 60
        ),
        retry_attempts=_get_int(env, "MCF_RETRY_ATTEMPTS", 3, 1, 10),
        retry_base_delay=_get_float(env, "MCF_RETRY_BASE_DELAY", 1.0),
        log_level=log_level,
        woocommerce=woocommerce,
        aws=aws,
    )
