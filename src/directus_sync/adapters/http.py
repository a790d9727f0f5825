"""Async HTTP client for a Directus instance.

Provides ``AsyncDirectusAdapter``, an implementation of the
``DirectusClient`` protocol over the Directus REST API using ``httpx``.

The underlying ``httpx.AsyncClient`` is created lazily on first use with an
``asyncio.Lock``. When e-mail/password credentials are configured instead of
a static token, the adapter logs in once during that initialization.

Every request carries a timeout. Transport failures, timeouts and 5xx
responses are retried with exponential backoff and then raised as
``RemoteConnectivityError``; 4xx responses raise ``RemoteValidationError``
immediately.

Usage:
    from directus_sync.adapters.http import AsyncDirectusAdapter

    adapter = AsyncDirectusAdapter("http://localhost:8055", token="secret")
    snapshot = await adapter.fetch_schema_snapshot()
    await adapter.close()
"""

import asyncio
import logging
from typing import Any

import httpx

from directus_sync.errors import RemoteConnectivityError, RemoteValidationError

logger = logging.getLogger(__name__)

# Collections served from their own endpoint instead of /items/<name>
SYSTEM_COLLECTIONS = {
    "activity",
    "dashboards",
    "extensions",
    "files",
    "flows",
    "folders",
    "notifications",
    "operations",
    "panels",
    "permissions",
    "policies",
    "presets",
    "revisions",
    "roles",
    "settings",
    "shares",
    "translations",
    "users",
    "versions",
    "webhooks",
}


def collection_endpoint(collection: str) -> str:
    """Return the REST path for a collection.

    ``directus_roles`` and ``roles`` both map to ``/roles``; user
    collections map to ``/items/<name>``.

    Example:
        >>> collection_endpoint("directus_users")
        '/users'
        >>> collection_endpoint("articles")
        '/items/articles'
    """
    name = collection.removeprefix("directus_")
    if name in SYSTEM_COLLECTIONS:
        return f"/{name}"
    return f"/items/{collection}"


def _error_message(response: httpx.Response) -> str:
    """Extract the first error message from a Directus error payload."""
    try:
        payload = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    errors = payload.get("errors") if isinstance(payload, dict) else None
    if errors:
        return "; ".join(str(e.get("message", e)) for e in errors)
    return response.text or response.reason_phrase


def _data(response: httpx.Response) -> Any:
    """Unwrap the ``data`` member of a successful response.

    Raises:
        RemoteValidationError: If the body is not a JSON object with ``data``.
    """
    request = response.request
    try:
        payload = response.json()
    except ValueError as e:
        raise RemoteValidationError(
            f"{request.method} {request.url.path} returned invalid JSON ({e})",
            status_code=response.status_code,
        ) from e
    if not isinstance(payload, dict) or "data" not in payload:
        raise RemoteValidationError(
            f"{request.method} {request.url.path} returned no 'data' member",
            status_code=response.status_code,
        )
    return payload["data"]


class AsyncDirectusAdapter:
    """Async ``DirectusClient`` implementation over HTTP.

    Args:
        url: Base URL of the instance (e.g. ``http://localhost:8055``).
        token: Static access token. Takes precedence over e-mail/password.
        email: Login e-mail, used when no token is given.
        password: Login password, used when no token is given.
        timeout: Per-request timeout in seconds.
        retries: Extra attempts after a connectivity failure.
        backoff: Base delay in seconds; attempt ``n`` sleeps ``backoff * 2**n``.
        transport: Optional ``httpx`` transport (tests use ``MockTransport``).

    Example:
        adapter = AsyncDirectusAdapter(
            "https://cms.example.com",
            email="admin@example.com",
            password="...",
            timeout=10,
        )
        ids = await adapter.list_ids("roles")
        await adapter.close()
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        email: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        retries: int = 2,
        backoff: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url: str = url.rstrip("/")
        self._token: str | None = token
        self._email: str | None = email
        self._password: str | None = password
        self._timeout: float = timeout
        self._retries: int = max(retries, 0)
        self._backoff: float = backoff
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lock: asyncio.Lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the ``httpx`` client, logging in when needed."""
        if self._client is None:
            async with self._lock:
                # Double-check after acquiring lock
                if self._client is None:
                    client = httpx.AsyncClient(
                        base_url=self._url,
                        timeout=self._timeout,
                        transport=self._transport,
                    )
                    if self._token is None and self._email and self._password:
                        self._token = await self._login(client)
                    if self._token:
                        client.headers["Authorization"] = f"Bearer {self._token}"
                    self._client = client
        return self._client

    async def _login(self, client: httpx.AsyncClient) -> str:
        """Exchange e-mail/password for an access token."""
        response = await self._send(
            client,
            "POST",
            "/auth/login",
            json={"email": self._email, "password": self._password},
        )
        data = _data(response)
        if not isinstance(data, dict) or not data.get("access_token"):
            raise RemoteValidationError("/auth/login returned no access token")
        token = data["access_token"]
        logger.debug("Logged in to %s as %s", self._url, self._email)
        return token

    async def _send(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a request with bounded retry on connectivity failures."""
        last_error = ""
        attempts = self._retries + 1

        for attempt in range(attempts):
            try:
                response = await client.request(method, path, **kwargs)
            except httpx.TimeoutException as e:
                last_error = f"timeout after {self._timeout}s ({e.__class__.__name__})"
            except httpx.TransportError as e:
                last_error = str(e) or e.__class__.__name__
            else:
                if response.status_code < 400:
                    return response
                if response.status_code < 500:
                    raise RemoteValidationError(
                        f"{method} {path} rejected: {_error_message(response)}",
                        status_code=response.status_code,
                    )
                last_error = f"server error {response.status_code}: {_error_message(response)}"

            logger.warning(
                "%s %s attempt %d/%d failed: %s",
                method, path, attempt + 1, attempts, last_error,
            )
            if attempt < attempts - 1:
                await asyncio.sleep(self._backoff * 2**attempt)

        raise RemoteConnectivityError(
            f"{method} {path} failed after {attempts} attempt"
            f"{'s' if attempts > 1 else ''}: {last_error}"
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        return await self._send(client, method, path, **kwargs)

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    async def fetch_schema_snapshot(self) -> dict[str, Any]:
        """``GET /schema/snapshot``."""
        response = await self._request("GET", "/schema/snapshot")
        return _data(response)

    async def compute_schema_diff(self, snapshot: dict[str, Any]) -> dict[str, Any] | None:
        """``POST /schema/diff``. A 204 response means no difference."""
        response = await self._request("POST", "/schema/diff", json=snapshot)
        if response.status_code == 204 or not response.content:
            return None
        return _data(response)

    async def apply_schema_diff(self, diff: dict[str, Any]) -> None:
        """``POST /schema/apply``."""
        await self._request("POST", "/schema/apply", json=diff)

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------

    async def list_items(self, collection: str) -> list[dict]:
        """Fetch every record (``limit=-1``)."""
        response = await self._request(
            "GET", collection_endpoint(collection), params={"limit": -1}
        )
        return _data(response) or []

    async def list_ids(self, collection: str, pk: str = "id") -> set:
        """Fetch only the primary key of every record."""
        response = await self._request(
            "GET",
            collection_endpoint(collection),
            params={"limit": -1, "fields": pk},
        )
        return {row[pk] for row in _data(response) or [] if pk in row}

    async def create_item(self, collection: str, data: dict) -> dict:
        """``POST /<collection>`` and return the created record."""
        response = await self._request("POST", collection_endpoint(collection), json=data)
        if not response.content:
            return dict(data)
        return _data(response) or dict(data)

    async def update_item(self, collection: str, item_id: Any, data: dict) -> dict:
        """``PATCH /<collection>/<id>`` and return the updated record."""
        response = await self._request(
            "PATCH", f"{collection_endpoint(collection)}/{item_id}", json=data
        )
        if not response.content:
            return dict(data)
        return _data(response) or dict(data)

    async def close(self) -> None:
        """Close the ``httpx`` client.

        If the client was never initialized (no request was made), this is a
        no-op.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None
