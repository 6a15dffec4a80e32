"""Base API client for Amazon SP-API interactions."""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from ..auth import AWSSigner, TokenCache
from ..constants import DEFAULT_TIMEOUT, USER_AGENT
from ..exceptions import ApiError, RateLimitError, TransportError

logger = logging.getLogger(__name__)

MUTATING_METHODS = {"POST", "PUT", "PATCH"}


class BaseAPIClient(ABC):
    """Base class for all SP-API clients.

    ``request`` is the single authenticated gateway. It never retries;
    callers decide whether a failure is worth another attempt.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        endpoint: str,
        marketplace_id: str,
        timeout: int = DEFAULT_TIMEOUT,
        signer: Optional[AWSSigner] = None,
    ) -> None:
        """Initialize the base API client.

        Args:
            token_cache: Source of LWA access tokens
            endpoint: SP-API endpoint URL
            marketplace_id: Marketplace the calls act on
            timeout: Per-request timeout in seconds
            signer: Optional SigV4 signer for accounts that still require it
        """
        self.token_cache = token_cache
        self.endpoint = endpoint.rstrip("/")
        self.marketplace_id = marketplace_id
        self.timeout = timeout
        self.signer = signer

    @abstractmethod
    def get_api_path(self) -> str:
        """Return the base API path for this client."""

    def _build_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "x-amz-access-token": access_token,
            "user-agent": USER_AGENT,
            "content-type": "application/json",
        }

    def request(
        self,
        method: str,
        path: str,
        query: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make an authenticated request.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path (without base URL)
            query: Query parameters
            body: Request body, sent as JSON for mutating methods only

        Returns:
            Decoded JSON response (empty dict for empty bodies)

        Raises:
            AuthError: When no access token can be obtained
            TransportError: On connection failures and timeouts
            RateLimitError: On HTTP 429
            ApiError: For any other HTTP status >= 400
        """
        method = method.upper()
        access_token = self.token_cache.get_access_token()

        request_id = str(uuid.uuid4())
        start_time = datetime.now()
        logger.info(f"Request {request_id}: Starting {method} {path}")

        url = f"{self.endpoint}{path}"
        kwargs: Dict[str, Any] = {
            "params": query or None,
            "headers": self._build_headers(access_token),
            "timeout": self.timeout,
        }
        if body and method in MUTATING_METHODS:
            kwargs["data"] = json.dumps(body)
        if self.signer is not None:
            kwargs["auth"] = self.signer.get_auth()

        try:
            response = requests.request(method, url, **kwargs)
        except requests.RequestException as e:
            duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
            logger.error(f"Request {request_id}: Transport error in {duration_ms}ms: {e}")
            raise TransportError(f"{method} {path} failed: {e}") from e

        duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)
        data = self._decode(response)

        if response.status_code >= 400:
            message = self._first_error_message(data)
            logger.error(
                f"Request {request_id}: HTTP error in {duration_ms}ms, "
                f"status={response.status_code}, message={message}"
            )
            if response.status_code == 429:
                retry_after = response.headers.get("Retry-After")
                try:
                    retry_seconds = max(int(float(retry_after)), 1) if retry_after else 60
                except ValueError:
                    retry_seconds = 60
                raise RateLimitError(message, retry_after=retry_seconds, raw_response=data)
            raise ApiError(message, http_code=response.status_code, raw_response=data)

        logger.info(
            f"Request {request_id}: Success in {duration_ms}ms, "
            f"status={response.status_code}"
        )
        return data if isinstance(data, dict) else {"payload": data}

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _first_error_message(data: Any) -> str:
        if isinstance(data, dict):
            errors = data.get("errors") or []
            if errors and isinstance(errors[0], dict) and errors[0].get("message"):
                return str(errors[0]["message"])
        return "API request failed"
