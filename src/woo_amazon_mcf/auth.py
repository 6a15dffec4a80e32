"""Login with Amazon token exchange and caching, plus optional AWS request signing."""

import logging
import threading
import time
from typing import Callable, Optional

import boto3  # type: ignore[import-untyped]
import requests
from botocore.exceptions import BotoCoreError, ClientError  # type: ignore[import-untyped]
from requests_aws4auth import AWS4Auth  # type: ignore[import-untyped]

from .config import AWSSettings, Credentials
from .constants import (
    DEFAULT_TIMEOUT,
    DURABLE_TOKEN_ASSUMED_TTL,
    LWA_TOKEN_ENDPOINT,
    TOKEN_MAX_TTL,
    TOKEN_SAFETY_MARGIN,
)
from .exceptions import AuthError
from .models import AccessToken
from .storage.database import StateDatabase

logger = logging.getLogger(__name__)


class TokenCache:
    """Exchanges the LWA refresh token for access tokens and caches them.

    Two tiers: an in-process token checked without I/O, and a durable slot in
    the state database keyed by the credential fingerprint so that other
    processes (scheduler, tool server) can reuse a token. Concurrent refreshes
    are tolerated; the last write wins and both tokens are valid.
    """

    def __init__(
        self,
        credentials: Credentials,
        database: StateDatabase,
        token_endpoint: str = LWA_TOKEN_ENDPOINT,
        timeout: int = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.credentials = credentials
        self.database = database
        self.token_endpoint = token_endpoint
        self.timeout = timeout
        self.clock = clock
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    @property
    def cache_key(self) -> str:
        return self.credentials.fingerprint()

    def get_access_token(self) -> str:
        """Return a valid access token.

        Raises:
            AuthError: If credentials are incomplete or the refresh-token grant fails
        """
        if not self.credentials.is_complete:
            raise AuthError(
                f"API credentials not configured (missing: {', '.join(self.credentials.missing_fields())})"
            )

        now = self.clock()
        with self._lock:
            token = self._token
        if token is not None and token.is_valid(now, margin=TOKEN_SAFETY_MARGIN):
            return token.value

        cached = self.database.get_cached_token(self.cache_key, now)
        if cached is not None:
            adopted = AccessToken(
                value=cached.value,
                expires_at=min(now + DURABLE_TOKEN_ASSUMED_TTL, cached.expires_at + TOKEN_SAFETY_MARGIN),
            )
            with self._lock:
                self._token = adopted
            logger.debug("Adopted access token from durable cache")
            return adopted.value

        return self._refresh(now)

    def _refresh(self, now: float) -> str:
        data = {
            "grant_type": "refresh_token",
            "refresh_token": self.credentials.refresh_token,
            "client_id": self.credentials.client_id,
            "client_secret": self.credentials.client_secret,
        }

        try:
            response = requests.post(self.token_endpoint, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"LWA token request failed: {e}")
            raise AuthError(f"Token request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        access_token = body.get("access_token") if isinstance(body, dict) else None
        if response.status_code != 200 or not access_token:
            description = ""
            if isinstance(body, dict):
                description = body.get("error_description") or body.get("error") or ""
            logger.error(f"LWA token response error: {response.status_code} {description}")
            raise AuthError(
                f"Failed to obtain access token ({response.status_code}): {description or 'no access_token'}",
                details={"http_code": response.status_code},
            )

        try:
            expires_in = int(body.get("expires_in", TOKEN_MAX_TTL))
        except (TypeError, ValueError):
            expires_in = TOKEN_MAX_TTL
        lifetime = min(max(expires_in, 0), TOKEN_MAX_TTL)

        token = AccessToken(value=access_token, expires_at=now + lifetime)
        with self._lock:
            self._token = token
        self.database.store_token(
            self.cache_key,
            AccessToken(value=access_token, expires_at=now + lifetime - TOKEN_SAFETY_MARGIN),
        )
        logger.info(f"Obtained new LWA access token, expires in {lifetime}s")
        return access_token

    def invalidate(self) -> None:
        """Forget the in-process token and drop the durable slot."""
        with self._lock:
            self._token = None
        self.database.delete_token(self.cache_key)
        logger.info("Access token cache invalidated")


def get_aws_auth(aws: AWSSettings) -> AWS4Auth:
    """Assume the SP-API IAM role and build a SigV4 signer for ``execute-api``.

    Raises:
        AuthError: If STS refuses the role
    """
    sts_client = boto3.client(
        "sts",
        aws_access_key_id=aws.access_key_id,
        aws_secret_access_key=aws.secret_access_key,
        region_name=aws.region,
    )

    try:
        assume_response = sts_client.assume_role(RoleArn=aws.role_arn, RoleSessionName="woo-amazon-mcf")
    except (BotoCoreError, ClientError) as e:
        logger.error(f"Failed to assume SP-API role {aws.role_arn}: {e}")
        raise AuthError(f"Failed to assume AWS role: {e}") from e

    credentials = assume_response["Credentials"]
    return AWS4Auth(
        credentials["AccessKeyId"],
        credentials["SecretAccessKey"],
        aws.region,
        "execute-api",
        session_token=credentials["SessionToken"],
    )


class AWSSigner:
    """Caches the SigV4 signer until the assumed-role session is about to expire."""

    SESSION_TTL = 3000

    def __init__(self, aws: AWSSettings, clock: Callable[[], float] = time.time) -> None:
        self.aws = aws
        self.clock = clock
        self._auth: Optional[AWS4Auth] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def get_auth(self) -> AWS4Auth:
        now = self.clock()
        with self._lock:
            if self._auth is None or now >= self._expires_at:
                self._auth = get_aws_auth(self.aws)
                self._expires_at = now + self.SESSION_TTL
            return self._auth
