"""Credential persistence.

The credential store keeps exactly three named values - the access token,
its expiry (epoch milliseconds, string-encoded) and the refresh token - in
an injectable key/value backend. Every validity check also clears stale
state, so a token is only readable while it is unexpired.
"""

import json
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography.fernet import Fernet, InvalidToken

from tiktok_publisher.domain.models import Credential, TokenResponse
from tiktok_publisher.errors import TikTokError
from tiktok_publisher.logging import get_logger

logger = get_logger(__name__)

ACCESS_TOKEN_KEY = "tiktokAccessToken"
TOKEN_EXPIRY_KEY = "tiktokTokenExpiry"
REFRESH_TOKEN_KEY = "tiktokRefreshToken"

CREDENTIAL_KEYS = (ACCESS_TOKEN_KEY, TOKEN_EXPIRY_KEY, REFRESH_TOKEN_KEY)


class EncryptionError(TikTokError):
    """Raised when a stored value cannot be encrypted or decrypted."""

    pass


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_epoch_millis(moment: datetime) -> str:
    return str(int(moment.timestamp() * 1000))


def _from_epoch_millis(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


class KeyValueStorage(ABC):
    """String key/value backend for the credential store."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...


class MemoryStorage(KeyValueStorage):
    """In-process storage, mainly for tests."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def delete(self, key: str) -> None:
        self.values.pop(key, None)


class FileStorage(KeyValueStorage):
    """JSON file storage with optional Fernet encryption of every value.

    The file is re-read on every access so that a token written by another
    process is picked up (last writer wins).
    """

    def __init__(self, path: Path, encryption_key: str | None = None) -> None:
        self.path = Path(path).expanduser()
        self._fernet: Fernet | None = None
        if encryption_key:
            try:
                self._fernet = Fernet(encryption_key.encode())
            except ValueError as e:
                raise EncryptionError(f"Invalid token encryption key: {e}") from e

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("credential_file_corrupt", path=str(self.path))
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # mkstemp creates the file 0600; readers only ever see a complete file
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _encrypt(self, value: str) -> str:
        if self._fernet is None:
            return value
        return self._fernet.encrypt(value.encode()).decode()

    def _decrypt(self, value: str) -> str:
        if self._fernet is None:
            return value
        try:
            return self._fernet.decrypt(value.encode()).decode()
        except InvalidToken as e:
            raise EncryptionError(
                "Failed to decrypt stored token: invalid key or corrupted data. "
                "This may happen if TOKEN_ENCRYPTION_KEY changed."
            ) from e

    def get(self, key: str) -> str | None:
        value = self._read().get(key)
        if value is None:
            return None
        return self._decrypt(value)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = self._encrypt(value)
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


def generate_encryption_key() -> str:
    """Generate a Fernet key suitable for TOKEN_ENCRYPTION_KEY."""
    return Fernet.generate_key().decode()


class CredentialStore:
    """Owns the persisted access token, its expiry and the refresh token."""

    def __init__(
        self,
        storage: KeyValueStorage,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.storage = storage
        self.clock = clock

    def save(self, token: TokenResponse) -> Credential:
        """Persist a token response, replacing any prior access token.

        The refresh token is only overwritten when the response carries a
        new one; otherwise the stored one is kept.
        """
        expires_at = self.clock() + timedelta(seconds=token.expires_in)
        self.storage.set(ACCESS_TOKEN_KEY, token.access_token)
        self.storage.set(TOKEN_EXPIRY_KEY, _to_epoch_millis(expires_at))
        if token.refresh_token:
            self.storage.set(REFRESH_TOKEN_KEY, token.refresh_token)

        logger.info("credential_saved", expires_at=expires_at.isoformat())
        return Credential(
            access_token=token.access_token,
            expires_at=expires_at,
            refresh_token=self.storage.get(REFRESH_TOKEN_KEY),
        )

    def is_valid(self) -> bool:
        """Check for an unexpired access token; clears everything if there is none."""
        token = self.storage.get(ACCESS_TOKEN_KEY)
        expires_at = _from_epoch_millis(self.storage.get(TOKEN_EXPIRY_KEY))

        if not token or expires_at is None or self.clock() >= expires_at:
            if token or expires_at is not None:
                logger.info("credential_expired_cleared")
            self.clear()
            return False
        return True

    def clear(self) -> None:
        for key in CREDENTIAL_KEYS:
            self.storage.delete(key)

    def get_access_token(self) -> str | None:
        if not self.is_valid():
            return None
        return self.storage.get(ACCESS_TOKEN_KEY)

    def get_credential(self) -> Credential | None:
        if not self.is_valid():
            return None
        return Credential(
            access_token=self.storage.get(ACCESS_TOKEN_KEY) or "",
            expires_at=_from_epoch_millis(self.storage.get(TOKEN_EXPIRY_KEY)),
            refresh_token=self.storage.get(REFRESH_TOKEN_KEY),
        )

    @property
    def refresh_token(self) -> str | None:
        return self.storage.get(REFRESH_TOKEN_KEY)

    @classmethod
    def from_settings(cls) -> "CredentialStore":
        from tiktok_publisher.config import get_settings

        settings = get_settings()
        return cls(FileStorage(settings.credentials_path, settings.token_encryption_key))
