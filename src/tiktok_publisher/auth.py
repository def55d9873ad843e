"""TikTok OAuth 2.0 client (Login Kit).

Builds the authorization URL, exchanges and refreshes tokens, revokes them,
and reads user and creator info. Nothing here persists tokens or retries;
see :mod:`tiktok_publisher.session` for how tokens are stored.
"""

import secrets
import string
from collections.abc import Iterable
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import httpx

from tiktok_publisher.api import (
    FORM_HEADERS,
    TIKTOK_API_BASE_URL,
    TikTokAPIClient,
    bearer_headers,
)
from tiktok_publisher.domain.models import (
    AuthorizationRequest,
    CreatorProfile,
    TokenResponse,
    UserInfo,
)
from tiktok_publisher.errors import (
    AuthExchangeError,
    AuthorizationDenied,
    InfoFetchError,
    RevokeError,
)
from tiktok_publisher.logging import get_logger

logger = get_logger(__name__)

# TikTok OAuth endpoints
TIKTOK_TOKEN_URL = f"{TIKTOK_API_BASE_URL}/oauth/token/"
TIKTOK_REVOKE_URL = f"{TIKTOK_API_BASE_URL}/oauth/revoke/"
TIKTOK_USER_INFO_URL = f"{TIKTOK_API_BASE_URL}/user/info/"
# Limited by TikTok to 20 requests per minute per access token
TIKTOK_CREATOR_INFO_URL = f"{TIKTOK_API_BASE_URL}/post/publish/creator_info/query/"

# Scopes needed to publish by URL
TIKTOK_SCOPES = [
    "user.info.basic",
    "video.publish",
]

USER_INFO_FIELDS = ("open_id", "union_id", "avatar_url", "display_name")

STATE_ALPHABET = string.digits + string.ascii_lowercase
STATE_LENGTH = 26


def generate_state() -> str:
    """Random base-36 nonce for the OAuth ``state`` parameter."""
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(STATE_LENGTH))


class TikTokAuthClient(TikTokAPIClient):
    """Client for TikTok's OAuth, user info and creator info endpoints."""

    def __init__(
        self,
        client_key: str,
        client_secret: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self.client_key = client_key
        self.client_secret = client_secret

    @classmethod
    def from_settings(cls, http_client: httpx.AsyncClient | None = None) -> "TikTokAuthClient":
        from tiktok_publisher.config import get_settings

        settings = get_settings()
        client_key, client_secret = settings.require_client_credentials()
        return cls(
            client_key=client_key,
            client_secret=client_secret,
            http_client=http_client,
            timeout=settings.http_timeout,
        )

    def build_authorization_url(
        self,
        redirect_uri: str,
        scopes: Iterable[str] = TIKTOK_SCOPES,
    ) -> AuthorizationRequest:
        """Build the consent-screen URL for a new login attempt.

        Every call draws a fresh ``state`` nonce; the caller keeps it to
        check the callback.
        """
        return AuthorizationRequest(
            client_key=self.client_key,
            redirect_uri=redirect_uri,
            scopes=tuple(scopes),
            state=generate_state(),
        )

    async def exchange_code_for_token(self, code: str, redirect_uri: str) -> TokenResponse:
        """Exchange an authorization code for access and refresh tokens.

        Args:
            code: The authorization code from the callback.
            redirect_uri: The redirect URI used for the authorization request.

        Returns:
            The token payload. The caller is responsible for storing it.

        Raises:
            AuthExchangeError: If TikTok rejects the exchange.
            NetworkError: If TikTok could not be reached.
        """
        data = await self._call(
            "POST",
            TIKTOK_TOKEN_URL,
            AuthExchangeError,
            data={
                "client_key": self.client_key,
                "client_secret": self.client_secret,
                "code": code,
                "grant_type": "authorization_code",
                "redirect_uri": redirect_uri,
            },
            headers=FORM_HEADERS,
        )
        token = self._token_from_payload(data)
        logger.info("tiktok_code_exchanged", open_id=token.open_id, scope=token.scope)
        return token

    async def refresh(self, refresh_token: str) -> TokenResponse:
        """Refresh an access token.

        TikTok may rotate the refresh token; when the response omits one,
        the returned token carries the refresh token that was passed in.

        Raises:
            AuthExchangeError: If the refresh token is rejected.
            NetworkError: If TikTok could not be reached.
        """
        data = await self._call(
            "POST",
            TIKTOK_TOKEN_URL,
            AuthExchangeError,
            data={
                "client_key": self.client_key,
                "client_secret": self.client_secret,
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
            },
            headers=FORM_HEADERS,
        )
        token = self._token_from_payload(data)
        if not token.refresh_token:
            token.refresh_token = refresh_token
        logger.info("tiktok_token_refreshed", rotated=token.refresh_token != refresh_token)
        return token

    def _token_from_payload(self, data: dict) -> TokenResponse:
        try:
            return TokenResponse.from_payload(data)
        except (KeyError, TypeError, ValueError) as e:
            raise AuthExchangeError(
                TIKTOK_TOKEN_URL,
                message=f"Token exchange failed: malformed token response ({e})",
            ) from e

    async def revoke(self, access_token: str) -> bool:
        """Revoke an access token.

        Returns:
            True once TikTok has accepted the revocation.

        Raises:
            RevokeError: If TikTok rejects the revocation.
        """
        await self._call(
            "POST",
            TIKTOK_REVOKE_URL,
            RevokeError,
            data={
                "client_key": self.client_key,
                "client_secret": self.client_secret,
                "token": access_token,
            },
            headers=FORM_HEADERS,
        )
        logger.info("tiktok_token_revoked")
        return True

    async def get_user_info(
        self,
        access_token: str,
        fields: Iterable[str] = USER_INFO_FIELDS,
    ) -> UserInfo:
        """Get the authenticated user's basic profile."""
        data = await self._call(
            "GET",
            TIKTOK_USER_INFO_URL,
            InfoFetchError,
            params={"fields": ",".join(fields)},
            headers=bearer_headers(access_token),
        )
        return UserInfo.from_payload(data)

    async def get_creator_info(self, access_token: str) -> CreatorProfile:
        """Query the creator's posting capabilities.

        TikTok allows 20 calls per minute per token on this endpoint. No
        throttling happens here, so callers must not call it in a loop.
        """
        data = await self._call(
            "POST",
            TIKTOK_CREATOR_INFO_URL,
            InfoFetchError,
            headers=bearer_headers(access_token, json_body=True),
        )
        creator = CreatorProfile.from_payload(data)
        logger.info(
            "tiktok_creator_info_loaded",
            privacy_level_options=[level.value for level in creator.privacy_level_options],
            max_video_post_duration_sec=creator.max_video_post_duration_sec,
        )
        return creator


def parse_authorization_callback(url: str, expected_state: str | None = None) -> str:
    """Extract the authorization code from the URL TikTok redirected back to.

    Raises:
        AuthorizationDenied: If the user denied access, the state does not
            match, or no code is present.
    """
    params = parse_qs(urlparse(url).query)

    if "error" in params:
        description = params.get("error_description", params["error"])[0]
        raise AuthorizationDenied(f"Authorization failed: {description}")

    if expected_state is not None and params.get("state", [None])[0] != expected_state:
        raise AuthorizationDenied("Authorization failed: state mismatch")

    code = params.get("code", [None])[0]
    if not code:
        raise AuthorizationDenied("No authorization code received")
    return code


def strip_authorization_code(url: str) -> str:
    """Remove the one-time ``code`` and ``state`` parameters from a callback URL."""
    parsed = urlparse(url)
    params = [
        (key, value)
        for key, values in parse_qs(parsed.query, keep_blank_values=True).items()
        if key not in ("code", "state")
        for value in values
    ]
    return urlunparse(parsed._replace(query=urlencode(params)))


def callback_port(redirect_uri: str) -> int:
    """Port the local callback server must listen on for ``redirect_uri``."""
    parsed = urlparse(redirect_uri)
    if parsed.port is not None:
        return parsed.port
    return 443 if parsed.scheme == "https" else 80


def wait_for_callback(expected_state: str, port: int = 8085, timeout: int = 300) -> str:
    """Serve one request on localhost and return the authorization code from it.

    Args:
        expected_state: State nonce of the pending authorization request.
        port: Port to listen on; must match the registered redirect URI.
        timeout: Maximum seconds to wait for the browser.

    Raises:
        AuthorizationDenied: If the callback fails or never arrives.
    """
    received: dict[str, str] = {}

    class CallbackHandler(BaseHTTPRequestHandler):
        def do_GET(self):
            if not urlparse(self.path).path.endswith("/callback"):
                self.send_response(404)
                self.end_headers()
                return

            received["url"] = self.path
            self.send_response(200)
            self.send_header("Content-type", "text/html")
            self.end_headers()
            self.wfile.write(
                b"<html><body><h1>TikTok authorization received</h1>"
                b"<p>You can close this window and return to the terminal.</p></body></html>"
            )

        def log_message(self, format, *args):
            # Suppress HTTP server logs
            pass

    server = HTTPServer(("localhost", port), CallbackHandler)
    server.timeout = timeout
    try:
        server.handle_request()
    finally:
        server.server_close()

    if "url" not in received:
        raise AuthorizationDenied("No authorization callback received")

    return parse_authorization_callback(received["url"], expected_state)
