"""HTTP transport for the VergeOS REST API.

This module provides an async HTTP client that sends JSON requests to a
VergeOS system and maps failed responses to the package's error kinds.

Example:
    >>> transport = VergeTransport(host="verge.example.com", tls_verify=False)
    >>> transport.set_token("6d3c...")
    >>> try:
    ...     vms = await transport.request("GET", "vms", params={"fields": "$key,name"})
    ... finally:
    ...     await transport.close()

Note:
    VergeOS URL structure:
    - Resource API: /api/v4/{collection}[/{key}]
    - Actions:      /api/v4/{noun}_actions
    - Sessions:     /api/sys/tokens

    Relative endpoints (``vms``, ``vms/12``) are resolved against
    ``/api/v4/``; endpoints starting with ``/`` are used as given.
"""

from __future__ import annotations

import asyncio
import math
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from .error_map import extract_message, root_endpoint, translate
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    RateLimitError,
    TransportError,
)
from .logging_config import LoggerAdapter, get_logger

logger = get_logger(__name__)

API_PREFIX = "/api/v4/"
TOKEN_HEADER = "x-yottabyte-token"

# Methods that are safe to resend after a timeout.
IDEMPOTENT_METHODS = frozenset({"GET", "PUT", "DELETE", "HEAD"})

JSON = Any


def parse_retry_after(value: str | None) -> int | None:
    """Seconds to wait from a ``Retry-After`` header (delta-seconds or HTTP-date).

    Unparseable values give ``None``; a date in the past gives 0.
    """
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0, math.ceil((when - datetime.now(timezone.utc)).total_seconds()))


class VergeTransport:
    """Async JSON-over-HTTPS transport bound to one VergeOS host.

    Attributes:
        host: VergeOS host address.
        base_url: Scheme, host and port, without a path.
    """

    def __init__(
        self,
        host: str,
        port: int = 443,
        tls_verify: bool = False,
        timeout: float = 30,
        max_retries: int = 3,
        retry_delay: float = 0.5,
    ) -> None:
        """Initialize the transport.

        Args:
            host: VergeOS host (e.g., "verge.example.com").
            port: API port (default: 443).
            tls_verify: Whether to verify TLS certificates.
            timeout: Request timeout in seconds.
            max_retries: Maximum retry attempts for transient errors.
            retry_delay: Base delay in seconds for exponential backoff.

        Raises:
            ValueError: If host is empty.
        """
        if not host:
            raise ValueError("host is required")

        self.host = host
        self.port = port
        self.tls_verify = tls_verify
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay

        self.base_url = f"https://{host}" if port == 443 else f"https://{host}:{port}"
        self._token: str | None = None
        self._logger = LoggerAdapter(logger, {"host": host})

        # HTTP client (created lazily)
        self.client: httpx.AsyncClient | None = None

    @property
    def token(self) -> str | None:
        return self._token

    def set_token(self, token: str | None) -> None:
        """Set or clear the session token sent with every request."""
        self._token = token
        if self.client is not None:
            if token:
                self.client.headers[TOKEN_HEADER] = token
            else:
                self.client.headers.pop(TOKEN_HEADER, None)

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client is initialized."""
        if self.client is None:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self._token:
                headers[TOKEN_HEADER] = self._token
            self.client = httpx.AsyncClient(
                base_url=self.base_url,
                verify=self.tls_verify,
                timeout=self.timeout,
                follow_redirects=True,
                headers=headers,
            )
        return self.client

    @staticmethod
    def build_path(endpoint: str) -> str:
        """Resolve an endpoint to an absolute request path."""
        if endpoint.startswith("/"):
            return endpoint
        return API_PREFIX + endpoint.lstrip("/")

    async def request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> JSON:
        """Send one request and return the decoded JSON body.

        Transient failures are retried with exponential backoff: connect
        errors for every method, timeouts only for idempotent methods.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE).
            endpoint: Collection path, e.g. ``vms`` or ``vms/12``.
            params: Query parameters (``filter``, ``fields``, ``sort``...).
            body: JSON request body for POST/PUT.

        Returns:
            Parsed JSON (dict, list) or ``None`` for empty responses.

        Raises:
            AuthenticationError: 401 responses.
            AuthorizationError: 403 responses.
            NotFoundError: 404 responses.
            ConflictError: Rejections recognized by the error table.
            APIResponseError: Other non-2xx responses.
            TransportError: Network failure after retries.
        """
        method = method.upper()
        client = await self._ensure_client()
        path = self.build_path(endpoint)

        self._logger.debug(
            f"Executing {method} {path}",
            extra={"params": params, "has_body": body is not None},
        )

        last_error: Exception | None = None

        for attempt in range(self.max_retries + 1):
            try:
                started = time.monotonic()
                response = await self._make_request(client, method, path, params, body)
                self._logger.debug(
                    f"{method} {path} -> {response.status_code}",
                    extra={"elapsed_ms": round((time.monotonic() - started) * 1000)},
                )
                return self._parse_response(response, endpoint)

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = e
                retryable = isinstance(e, httpx.ConnectError) or method in IDEMPOTENT_METHODS
                if retryable and attempt < self.max_retries:
                    wait_time = (2**attempt) * self.retry_delay
                    self._logger.warning(
                        f"Request failed, retrying in {wait_time}s "
                        f"(attempt {attempt + 1}/{self.max_retries})",
                        extra={"error": str(e)},
                    )
                    await asyncio.sleep(wait_time)
                else:
                    raise TransportError(self.host, e) from e

            except httpx.HTTPError as e:
                raise TransportError(self.host, e) from e

            except RateLimitError as e:
                if e.retry_after and attempt < self.max_retries:
                    self._logger.warning(f"Rate limited, waiting {e.retry_after}s")
                    await asyncio.sleep(e.retry_after)
                else:
                    raise

        raise TransportError(self.host, last_error)

    async def _make_request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        body: dict[str, Any] | None,
    ) -> httpx.Response:
        """Make the actual HTTP request."""
        if method == "GET":
            response = await client.get(path, params=params)
        elif method == "POST":
            response = await client.post(path, params=params, json=body)
        elif method == "PUT":
            response = await client.put(path, params=params, json=body)
        elif method == "DELETE":
            response = await client.delete(path, params=params)
        else:
            raise ValueError(f"Unsupported HTTP method: {method}")

        return response

    def _parse_response(self, response: httpx.Response, endpoint: str = "") -> JSON:
        """Parse and validate an API response.

        Raises:
            AuthenticationError: If authentication failed (401).
            AuthorizationError: If authorization failed (403).
            NotFoundError: If the resource was not found (404).
            RateLimitError: If rate limit exceeded (429).
            VergeError: Translated error for other failures.
        """
        status = response.status_code

        if status == 401:
            raise AuthenticationError(
                "Authentication failed - check credentials or reconnect",
                status_code=401,
            )

        if status == 403:
            raise AuthorizationError(
                "Access denied - insufficient permissions for this operation",
                status_code=403,
            )

        if status == 404:
            raise NotFoundError(root_endpoint(endpoint), identifier=endpoint)

        if status == 429:
            raise RateLimitError(retry_after=parse_retry_after(response.headers.get("Retry-After")))

        if status >= 400:
            try:
                error_message = extract_message(response.json(), response.text)
            except ValueError:
                error_message = response.text or f"HTTP {status}"
            self._logger.debug(
                "Request rejected",
                extra={"status_code": status, "server_message": error_message},
            )
            raise translate(endpoint, status, error_message, response.text)

        if status == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            self._logger.warning(
                f"Response is not JSON: {e}",
                extra={"content_type": response.headers.get("content-type")},
            )
            return {"raw_response": response.text}

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self.client:
            await self.client.aclose()
            self.client = None
            self._logger.debug("HTTP client closed")

    async def __aenter__(self) -> "VergeTransport":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
