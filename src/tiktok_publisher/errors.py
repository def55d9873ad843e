"""Error taxonomy for TikTok API operations.

Transport failures raise :class:`NetworkError`. A non-2xx response is first
described by a :class:`ResponseError` (:class:`ProviderError` when the body
is structured JSON, :class:`HttpError` otherwise) and then re-raised as the
operation-specific :class:`TikTokAPIError` subclass, chained with ``from``.
"""

from typing import Any

import httpx

from tiktok_publisher.domain.enums import ProviderErrorCode, ValidationReason


class TikTokError(Exception):
    """Base class for every error raised by this package."""

    pass


class ConfigurationError(TikTokError):
    """Raised when required configuration (client key/secret) is missing."""

    pass


class NetworkError(TikTokError):
    """Raised when no response was received (connection, DNS, timeout)."""

    def __init__(self, endpoint: str, message: str):
        self.endpoint = endpoint
        super().__init__(f"Network error calling {endpoint}: {message}")


class ResponseError(TikTokError):
    """A non-2xx (or non-ok) response from TikTok."""

    def __init__(self, status_code: int, body: str, message: str):
        self.status_code = status_code
        self.body = body
        super().__init__(message)

    @property
    def error_code(self) -> ProviderErrorCode:
        return ProviderErrorCode.UNKNOWN

    @property
    def description(self) -> str | None:
        return None


class ProviderError(ResponseError):
    """Error response with a parseable structured body."""

    def __init__(
        self,
        status_code: int,
        body: str,
        raw_code: str | None,
        description: str | None = None,
        log_id: str | None = None,
    ):
        self.raw_code = raw_code
        self._description = description
        self.log_id = log_id
        detail = description or raw_code or "no description"
        super().__init__(status_code, body, f"HTTP {status_code}: {detail}")

    @property
    def error_code(self) -> ProviderErrorCode:
        return ProviderErrorCode.from_raw(self.raw_code)

    @property
    def description(self) -> str | None:
        return self._description


class HttpError(ResponseError):
    """Error response whose body could not be parsed."""

    def __init__(self, status_code: int, body: str):
        super().__init__(status_code, body, f"HTTP error {status_code}")


def _extract_error_fields(data: dict[str, Any]) -> tuple[str | None, str | None, str | None]:
    """Pull (code, description, log_id) out of either TikTok error shape.

    The OAuth endpoints answer ``{"error": "invalid_grant",
    "error_description": "..."}``; the open API answers
    ``{"error": {"code": "...", "message": "...", "log_id": "..."}}``.
    """
    error = data.get("error")
    if isinstance(error, dict):
        return error.get("code"), error.get("message") or None, error.get("log_id")
    if isinstance(error, str):
        return error, data.get("error_description") or None, data.get("log_id")
    return None, data.get("error_description") or data.get("message"), data.get("log_id")


def provider_error_from_body(status_code: int, data: dict[str, Any], body: str = "") -> ProviderError:
    """Build a ProviderError from an already-decoded JSON body."""
    code, description, log_id = _extract_error_fields(data)
    return ProviderError(status_code, body, code, description, log_id)


def parse_error_response(response: httpx.Response) -> ResponseError:
    """Describe an error response, never raising on a malformed body."""
    body = response.text
    try:
        data = response.json()
    except ValueError:
        return HttpError(response.status_code, body)
    if not isinstance(data, dict):
        return HttpError(response.status_code, body)
    return provider_error_from_body(response.status_code, data, body)


class TikTokAPIError(TikTokError):
    """An API operation failed with an error response.

    Attributes:
        endpoint: URL of the endpoint that was called.
        response_error: The ProviderError or HttpError describing the response.
    """

    operation = "TikTok API request"

    def __init__(
        self,
        endpoint: str,
        response_error: ResponseError | None = None,
        message: str | None = None,
    ):
        self.endpoint = endpoint
        self.response_error = response_error
        if message is None:
            detail = str(response_error) if response_error else "unexpected response"
            message = f"{self.operation} failed: {detail}"
        super().__init__(message)

    @property
    def status_code(self) -> int | None:
        return self.response_error.status_code if self.response_error else None

    @property
    def error_code(self) -> ProviderErrorCode:
        if self.response_error is None:
            return ProviderErrorCode.UNKNOWN
        return self.response_error.error_code

    @property
    def description(self) -> str | None:
        return self.response_error.description if self.response_error else None

    @property
    def body(self) -> str | None:
        return self.response_error.body if self.response_error else None


class AuthExchangeError(TikTokAPIError):
    """Raised when exchanging a code or refresh token for tokens fails."""

    operation = "Token exchange"


class RevokeError(TikTokAPIError):
    """Raised when token revocation fails."""

    operation = "Revocation"


class InfoFetchError(TikTokAPIError):
    """Raised when fetching user or creator info fails."""

    operation = "Info fetch"


class PublishInitError(TikTokAPIError):
    """Raised when a publish job cannot be initiated."""

    operation = "Publish init"


class StatusFetchError(TikTokAPIError):
    """Raised when a publish status check fails."""

    operation = "Status fetch"


class AuthorizationDenied(TikTokError):
    """Raised when the OAuth callback carries an error or a bad state."""

    pass


class NotAuthenticatedError(TikTokError):
    """Raised when no valid access token is available."""

    pass


class ValidationError(TikTokError):
    """A local precondition failed; nothing was sent to TikTok."""

    def __init__(self, reason: ValidationReason, message: str):
        self.reason = reason
        super().__init__(message)


class StatusCheckExhausted(TikTokError):
    """Raised when status polling gave up without a terminal status."""

    def __init__(
        self,
        publish_id: str,
        attempts: int,
        last_error: Exception | None = None,
    ):
        self.publish_id = publish_id
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            "Status check failed. Your video may still be processing. "
            "Check the TikTok app later."
        )
