"""Async JSON client for the remote DevConnect API."""
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], str | None]


class HttpError(Exception):
    """Raised when the API answers with a non-2xx status."""

    def __init__(self, message: str, status: int | None) -> None:
        self.message = message
        self.status = status
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        """True for 4xx responses (never retried)."""
        return self.status is not None and 400 <= self.status < 500


class NetworkError(HttpError):
    """Raised when no response was received at all."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status=None)


@dataclass
class HttpResponse:
    """Parsed response of a successful request."""

    data: Any
    status: int
    status_text: str


class HttpClient:
    """
    Thin wrapper over httpx that speaks JSON with bearer auth.

    No retries, no client-side timeout and no token refresh happen here;
    a 401 surfaces to the caller as an HttpError like any other status.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: TokenProvider | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        # timeout=None leaves timeouts to the platform network stack
        self._client = httpx.AsyncClient(transport=transport, timeout=None)

    @property
    def base_url(self) -> str:
        """Base URL every endpoint path is relative to."""
        return self._base_url

    def set_token_provider(self, token_provider: TokenProvider | None) -> None:
        """Set the callable supplying the current access token."""
        self._token_provider = token_provider

    async def close(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> "HttpClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def build_url(self, endpoint: str) -> str:
        """Join an endpoint path to the base URL."""
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self._base_url}{endpoint}"

    def build_headers(
        self,
        headers: dict[str, str] | None = None,
        token: str | None = None,
    ) -> dict[str, str]:
        """
        Build request headers.

        Args:
            headers:
                Extra headers, applied last so they can override defaults.
            token:
                Explicit access token; falls back to the token provider.

        Returns:
            Headers with JSON content type and, when a token is known,
            the bearer Authorization header.
        """
        result = {"Content-Type": "application/json"}
        if token is None and self._token_provider is not None:
            token = self._token_provider()
        if token:
            result["Authorization"] = f"Bearer {token}"
        if headers:
            result.update(headers)
        return result

    async def get(
        self,
        endpoint: str,
        headers: dict[str, str] | None = None,
        token: str | None = None,
    ) -> HttpResponse:
        """Issue a GET request."""
        return await self.request("GET", endpoint, headers=headers, token=token)

    async def post(
        self,
        endpoint: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        token: str | None = None,
    ) -> HttpResponse:
        """Issue a POST request."""
        return await self.request("POST", endpoint, body, headers=headers, token=token)

    async def put(
        self,
        endpoint: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        token: str | None = None,
    ) -> HttpResponse:
        """Issue a PUT request."""
        return await self.request("PUT", endpoint, body, headers=headers, token=token)

    async def patch(
        self,
        endpoint: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        token: str | None = None,
    ) -> HttpResponse:
        """Issue a PATCH request."""
        return await self.request("PATCH", endpoint, body, headers=headers, token=token)

    async def delete(
        self,
        endpoint: str,
        headers: dict[str, str] | None = None,
        token: str | None = None,
    ) -> HttpResponse:
        """Issue a DELETE request."""
        return await self.request("DELETE", endpoint, headers=headers, token=token)

    async def request(
        self,
        method: str,
        endpoint: str,
        body: Any = None,
        headers: dict[str, str] | None = None,
        token: str | None = None,
    ) -> HttpResponse:
        """
        Send a request and parse the JSON response.

        Raises:
            HttpError: If the response status is not 2xx.
            NetworkError: If the request failed before any response.
        """
        url = self.build_url(endpoint)
        try:
            response = await self._client.request(
                method,
                url,
                headers=self.build_headers(headers, token),
                content=json.dumps(body) if body is not None else None,
            )
        except httpx.RequestError as e:
            logger.warning("http_request_failed", extra={"method": method, "url": url})
            raise NetworkError(f"Request failed: {e}") from e

        data = _parse_body(response)
        if not response.is_success:
            message = None
            if isinstance(data, dict):
                message = data.get("error")
            raise HttpError(
                message or f"HTTP error! status: {response.status_code}",
                response.status_code,
            )

        return HttpResponse(
            data=data,
            status=response.status_code,
            status_text=response.reason_phrase,
        )


def _parse_body(response: httpx.Response) -> Any:
    """Decode a JSON body, returning None for empty or non-JSON bodies."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        logger.warning(
            "http_non_json_body",
            extra={"status": response.status_code, "content_type": response.headers.get("content-type", "")},
        )
        return None


def unwrap_data(data: Any) -> Any:
    """Strip the optional {"success": true, "data": {...}} envelope of a response body."""
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        return data["data"]
    return data


def unwrap_item(data: Any, key: str) -> Any:
    """Extract a single record from a body, bare or under key."""
    payload = unwrap_data(data)
    if isinstance(payload, dict) and isinstance(payload.get(key), dict):
        return payload[key]
    return payload


def unwrap_list(data: Any, key: str) -> tuple[list[Any], int]:
    """
    Extract (items, total) from a listing body.

    Accepts a bare list, {key: [...], "total": n} or the same inside a
    data envelope. A missing total falls back to the number of items.
    """
    payload = unwrap_data(data)
    if isinstance(payload, list):
        return payload, len(payload)
    if not isinstance(payload, dict):
        return [], 0
    items = payload.get(key) or []
    total = payload.get("total")
    return items, total if isinstance(total, int) else len(items)
