"""Shared HTTP plumbing for the TikTok API clients."""

from typing import Any

import httpx

from tiktok_publisher.errors import (
    NetworkError,
    TikTokAPIError,
    parse_error_response,
    provider_error_from_body,
)
from tiktok_publisher.logging import get_logger

logger = get_logger(__name__)

TIKTOK_API_BASE_URL = "https://open.tiktokapis.com/v2"

FORM_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "Cache-Control": "no-cache",
}
JSON_CONTENT_TYPE = "application/json; charset=UTF-8"


def bearer_headers(access_token: str, json_body: bool = False) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {access_token}"}
    if json_body:
        headers["Content-Type"] = JSON_CONTENT_TYPE
    return headers


class TikTokAPIClient:
    """Base class owning (or borrowing) an ``httpx.AsyncClient``.

    An injected client is never closed by this class; one created lazily
    here is closed by :meth:`aclose`.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30,
    ) -> None:
        self._client = http_client
        self._owns_client = http_client is None
        self.timeout = timeout

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, converting transport failures into NetworkError."""
        client = await self._get_client()
        try:
            return await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            logger.warning("tiktok_network_error", endpoint=url, error=str(e))
            raise NetworkError(url, str(e) or type(e).__name__) from e

    async def _call(
        self,
        method: str,
        url: str,
        error_cls: type[TikTokAPIError],
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Send a request and return its JSON body, raising ``error_cls`` on failure.

        A 2xx body carrying an ``error`` object whose code is not ``ok`` (or,
        from the OAuth endpoints, a non-empty ``error`` string) is a failure too.
        """
        response = await self._send(method, url, **kwargs)

        if not response.is_success:
            response_error = parse_error_response(response)
            logger.warning(
                "tiktok_api_error",
                endpoint=url,
                status_code=response.status_code,
                error_code=response_error.error_code,
            )
            raise error_cls(url, response_error) from response_error

        # Revocation may answer with an empty body
        if not response.content:
            return {}

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise error_cls(url, message=f"{error_cls.operation} failed: response is not a JSON object")

        error = data.get("error")
        failed = (isinstance(error, dict) and error.get("code") not in (None, "ok")) or (
            isinstance(error, str) and error != ""
        )
        if failed:
            response_error = provider_error_from_body(response.status_code, data, response.text)
            logger.warning(
                "tiktok_api_error",
                endpoint=url,
                status_code=response.status_code,
                error_code=response_error.error_code,
            )
            raise error_cls(url, response_error) from response_error

        return data

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
