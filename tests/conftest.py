"""Pytest configuration and fixtures."""

import json
import os
from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import pytest

# Set test environment before importing app modules
os.environ["TIKTOK_CLIENT_KEY"] = "test_client_key"
os.environ["TIKTOK_CLIENT_SECRET"] = "test_client_secret"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ.pop("TOKEN_ENCRYPTION_KEY", None)

from tiktok_publisher.domain.enums import PrivacyLevel  # noqa: E402
from tiktok_publisher.domain.models import CreatorProfile, PublishRequest  # noqa: E402
from tiktok_publisher.storage import CredentialStore, MemoryStorage  # noqa: E402

FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Settable clock for credential expiry tests."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def json_response(status_code: int, payload: object) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode())


def mock_http_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """An AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def credential_store(memory_storage: MemoryStorage, clock: FakeClock) -> CredentialStore:
    return CredentialStore(memory_storage, clock=clock)


@pytest.fixture
def creator() -> CreatorProfile:
    """A creator offering every privacy level and allowing all interactions."""
    return CreatorProfile(
        display_name="Test Creator",
        username="testcreator",
        avatar_url="https://p16.example.com/avatar.jpg",
        privacy_level_options=[
            PrivacyLevel.PUBLIC,
            PrivacyLevel.FRIENDS,
            PrivacyLevel.FOLLOWERS,
            PrivacyLevel.PRIVATE,
        ],
        max_video_post_duration_sec=60,
    )


@pytest.fixture
def publish_request() -> PublishRequest:
    return PublishRequest(
        title="My test video #fyp",
        source_video_url="https://videos.example.com/clip.mp4",
        privacy_level=PrivacyLevel.PRIVATE,
    )
