"""Tests for the Content Posting API client."""

import json

import httpx
import pytest

from tiktok_publisher.domain.enums import PrivacyLevel, ProviderErrorCode, PublishStatus
from tiktok_publisher.domain.models import PublishRequest
from tiktok_publisher.errors import NetworkError, PublishInitError, StatusFetchError
from tiktok_publisher.messages import PUBLISH_ERROR_MESSAGES
from tiktok_publisher.publish import (
    TIKTOK_POST_INIT_URL,
    TIKTOK_POST_STATUS_URL,
    TikTokPublishClient,
)

from .conftest import json_response, mock_http_client


def make_client(handler) -> TikTokPublishClient:
    return TikTokPublishClient("act.example", http_client=mock_http_client(handler))


def error_body(code: str, message: str = "") -> dict:
    return {"error": {"code": code, "message": message, "log_id": "202501150000"}}


class TestInitiate:
    @pytest.mark.asyncio
    async def test_initiate_sends_pull_from_url_payload(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["authorization"]
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = json.loads(request.content)
            return json_response(
                200,
                {"data": {"publish_id": "v_pub_url~v2.123"}, **error_body("ok")},
            )

        request = PublishRequest(
            title="Hello #fyp",
            source_video_url="https://videos.example.com/clip.mp4",
            privacy_level=PrivacyLevel.FOLLOWERS,
            disable_duet=True,
            brand_organic=True,
            commercial_disclosure=True,
        )

        async with make_client(handler) as client:
            job = await client.initiate(request)

        assert job.publish_id == "v_pub_url~v2.123"
        assert job.status == PublishStatus.PENDING
        assert seen["url"] == TIKTOK_POST_INIT_URL
        assert seen["auth"] == "Bearer act.example"
        assert seen["content_type"].startswith("application/json")
        assert seen["body"] == {
            "post_info": {
                "title": "Hello #fyp",
                "privacy_level": "FOLLOWER_OF_CREATOR",
                "disable_duet": True,
                "disable_comment": False,
                "disable_stitch": False,
                "video_cover_timestamp_ms": 1000,
                "brand_organic_toggle": True,
                "brand_content_toggle": False,
            },
            "source_info": {
                "source": "PULL_FROM_URL",
                "video_url": "https://videos.example.com/clip.mp4",
            },
        }

    @pytest.mark.asyncio
    async def test_daily_limit_error_uses_specific_message(self, publish_request) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(
                400, error_body("spam_risk_too_many_posts", "The user has posted too much")
            )

        async with make_client(handler) as client:
            with pytest.raises(PublishInitError) as exc_info:
                await client.initiate(publish_request)

        error = exc_info.value
        assert str(error) == PUBLISH_ERROR_MESSAGES[ProviderErrorCode.SPAM_RISK_TOO_MANY_POSTS]
        assert "HTTP error" not in str(error)
        assert error.status_code == 400
        assert error.error_code == ProviderErrorCode.SPAM_RISK_TOO_MANY_POSTS

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "code",
        [
            ProviderErrorCode.RATE_LIMIT_EXCEEDED,
            ProviderErrorCode.SPAM_RISK_USER_BANNED_FROM_POSTING,
            ProviderErrorCode.REACHED_ACTIVE_USER_CAP,
            ProviderErrorCode.UNAUDITED_CLIENT_PRIVATE_ONLY,
        ],
    )
    async def test_known_error_codes(self, publish_request, code) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(403, error_body(code.value))

        async with make_client(handler) as client:
            with pytest.raises(PublishInitError) as exc_info:
                await client.initiate(publish_request)

        assert str(exc_info.value) == PUBLISH_ERROR_MESSAGES[code]

    @pytest.mark.asyncio
    async def test_unknown_error_code_carries_status_and_body(self, publish_request) -> None:
        body = error_body("url_ownership_unverified_v9", "Please verify the domain")

        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(403, body)

        async with make_client(handler) as client:
            with pytest.raises(PublishInitError) as exc_info:
                await client.initiate(publish_request)

        error = exc_info.value
        assert error.error_code == ProviderErrorCode.UNKNOWN
        assert str(error).startswith("HTTP error!(403): ")
        assert "url_ownership_unverified_v9" in str(error)

    @pytest.mark.asyncio
    async def test_unparseable_error_body(self, publish_request) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, content=b"upstream unavailable")

        async with make_client(handler) as client:
            with pytest.raises(PublishInitError, match=r"HTTP error!\(503\): upstream unavailable"):
                await client.initiate(publish_request)

    @pytest.mark.asyncio
    async def test_missing_publish_id(self, publish_request) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(200, {"data": {}, **error_body("ok")})

        async with make_client(handler) as client:
            with pytest.raises(PublishInitError, match="no publish ID"):
                await client.initiate(publish_request)

    @pytest.mark.asyncio
    async def test_network_error(self, publish_request) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        async with make_client(handler) as client:
            with pytest.raises(NetworkError):
                await client.initiate(publish_request)


class TestFetchStatus:
    @pytest.mark.asyncio
    async def test_processing_status(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return json_response(
                200,
                {"data": {"status": "PROCESSING_DOWNLOAD"}, **error_body("ok")},
            )

        async with make_client(handler) as client:
            job = await client.fetch_status("pub-1")

        assert seen["url"] == TIKTOK_POST_STATUS_URL
        assert seen["body"] == {"publish_id": "pub-1"}
        assert job.status == PublishStatus.PROCESSING
        assert job.raw_status == "PROCESSING_DOWNLOAD"
        assert job.fail_reason is None

    @pytest.mark.asyncio
    async def test_failed_status_carries_reason(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(
                200,
                {"data": {"status": "FAILED", "fail_reason": "video_too_long"}, **error_body("ok")},
            )

        async with make_client(handler) as client:
            job = await client.fetch_status("pub-1")

        assert job.status == PublishStatus.FAILED
        assert job.fail_reason == "video_too_long"

    @pytest.mark.asyncio
    async def test_complete_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(200, {"data": {"status": "PUBLISH_COMPLETE"}, **error_body("ok")})

        async with make_client(handler) as client:
            job = await client.fetch_status("pub-1")

        assert job.status == PublishStatus.PUBLISH_COMPLETE

    @pytest.mark.asyncio
    async def test_error_response(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(404, error_body("invalid_publish_id", "Publish id not found"))

        async with make_client(handler) as client:
            with pytest.raises(StatusFetchError) as exc_info:
                await client.fetch_status("pub-missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.description == "Publish id not found"

    @pytest.mark.asyncio
    async def test_response_without_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return json_response(200, {"data": {}, **error_body("ok")})

        async with make_client(handler) as client:
            with pytest.raises(StatusFetchError, match="invalid status response"):
                await client.fetch_status("pub-1")
