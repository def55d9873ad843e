"""TikTok Content Posting API client for pull-by-URL publishing.

Publishing Flow (Direct Post, PULL_FROM_URL):
1. POST /v2/post/publish/video/init/ - TikTok fetches the video from the URL
2. POST /v2/post/publish/status/fetch/ - Poll until PUBLISH_COMPLETE or FAILED
"""

import httpx

from tiktok_publisher.api import TIKTOK_API_BASE_URL, TikTokAPIClient, bearer_headers
from tiktok_publisher.domain.enums import PublishStatus
from tiktok_publisher.domain.models import PublishJob, PublishRequest
from tiktok_publisher.errors import PublishInitError, StatusFetchError
from tiktok_publisher.logging import get_logger
from tiktok_publisher.messages import publish_error_message

logger = get_logger(__name__)

# TikTok Content Posting API endpoints
TIKTOK_POST_INIT_URL = f"{TIKTOK_API_BASE_URL}/post/publish/video/init/"
TIKTOK_POST_STATUS_URL = f"{TIKTOK_API_BASE_URL}/post/publish/status/fetch/"


class TikTokPublishClient(TikTokAPIClient):
    """Initiates publish jobs and reads their status for one access token."""

    def __init__(
        self,
        access_token: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30,
    ) -> None:
        super().__init__(http_client=http_client, timeout=timeout)
        self.access_token = access_token

    async def initiate(self, request: PublishRequest) -> PublishJob:
        """Start a pull-by-URL publish.

        Args:
            request: Post metadata and the public video URL.

        Returns:
            A PENDING job carrying TikTok's publish ID.

        Raises:
            PublishInitError: If TikTok rejects the post. Known error codes
                (daily limit, ban, quota, unaudited app) carry specific text.
            NetworkError: If TikTok could not be reached.
        """
        try:
            data = await self._call(
                "POST",
                TIKTOK_POST_INIT_URL,
                PublishInitError,
                json=request.to_payload(),
                headers=bearer_headers(self.access_token, json_body=True),
            )
        except PublishInitError as e:
            if e.response_error is None:
                raise
            message = publish_error_message(e.status_code, e.error_code, e.body)
            raise PublishInitError(e.endpoint, e.response_error, message) from e.response_error

        publish_id = (data.get("data") or {}).get("publish_id")
        if not publish_id:
            raise PublishInitError(
                TIKTOK_POST_INIT_URL,
                message="Publish init failed: no publish ID in response",
            )

        logger.info(
            "tiktok_publish_initiated",
            publish_id=publish_id,
            privacy_level=request.privacy_level,
        )
        return PublishJob(publish_id=publish_id, status=PublishStatus.PENDING)

    async def fetch_status(self, publish_id: str) -> PublishJob:
        """Get the current status of a publish job.

        Raises:
            StatusFetchError: On an error response or a body without a status.
            NetworkError: If TikTok could not be reached.
        """
        data = await self._call(
            "POST",
            TIKTOK_POST_STATUS_URL,
            StatusFetchError,
            json={"publish_id": publish_id},
            headers=bearer_headers(self.access_token, json_body=True),
        )

        status_data = data.get("data")
        if not isinstance(status_data, dict) or not status_data.get("status"):
            raise StatusFetchError(
                TIKTOK_POST_STATUS_URL,
                message="Status fetch failed: invalid status response",
            )

        return PublishJob.from_status_payload(publish_id, status_data)
