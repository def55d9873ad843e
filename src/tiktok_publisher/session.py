"""Login session: ties the credential store to the OAuth client."""

from collections.abc import Sequence
from datetime import timedelta

from tiktok_publisher.auth import TIKTOK_SCOPES, TikTokAuthClient
from tiktok_publisher.domain.models import AuthorizationRequest, TokenResponse
from tiktok_publisher.errors import NotAuthenticatedError
from tiktok_publisher.logging import get_logger
from tiktok_publisher.storage import CredentialStore

logger = get_logger(__name__)


class TikTokSession:
    """Acquires, refreshes and revokes the single stored TikTok credential."""

    def __init__(
        self,
        store: CredentialStore,
        auth_client: TikTokAuthClient,
        redirect_uri: str,
        scopes: Sequence[str] = TIKTOK_SCOPES,
        refresh_margin: timedelta = timedelta(hours=1),
    ) -> None:
        self.store = store
        self.auth_client = auth_client
        self.redirect_uri = redirect_uri
        self.scopes = list(scopes)
        self.refresh_margin = refresh_margin

    def begin_login(self) -> AuthorizationRequest:
        return self.auth_client.build_authorization_url(self.redirect_uri, self.scopes)

    async def complete_login(self, code: str) -> TokenResponse:
        """Exchange the callback code and store the resulting tokens."""
        token = await self.auth_client.exchange_code_for_token(code, self.redirect_uri)
        self.store.save(token)
        return token

    @property
    def is_authenticated(self) -> bool:
        return self.store.is_valid()

    async def ensure_access_token(self) -> str:
        """Return a valid access token, refreshing it first if it expires soon.

        Raises:
            NotAuthenticatedError: If there is no valid token to use.
            AuthExchangeError: If a due refresh is rejected.
        """
        credential = self.store.get_credential()
        if credential is None:
            raise NotAuthenticatedError("Not logged in to TikTok. Run 'tiktok-publisher login'.")

        if credential.refresh_token and credential.is_expired(
            self.store.clock() + self.refresh_margin
        ):
            logger.info("tiktok_token_refresh_due", expires_at=credential.expires_at.isoformat())
            token = await self.refresh()
            return token.access_token

        return credential.access_token

    async def refresh(self) -> TokenResponse:
        """Refresh the stored credential unconditionally."""
        refresh_token = self.store.refresh_token
        if not refresh_token or not self.store.is_valid():
            raise NotAuthenticatedError("No refresh token stored. Please log in again.")
        token = await self.auth_client.refresh(refresh_token)
        self.store.save(token)
        return token

    async def logout(self) -> bool:
        """Revoke the stored access token and clear the store.

        The store is cleared even when revocation fails; the error is then
        re-raised.

        Returns:
            True if a token was revoked, False if nobody was logged in.
        """
        access_token = self.store.get_access_token()
        if access_token is None:
            return False
        try:
            await self.auth_client.revoke(access_token)
        finally:
            self.store.clear()
        return True
