"""Publish orchestration: validate, submit, then poll until a terminal status.

State machine::

    INIT -> SUBMITTED -> POLLING -> PUBLISH_COMPLETE | FAILED | TIMEOUT

Only status polling retries. A FAILED job status is a definitive answer
from TikTok and ends the loop at once; a failed status *request* is treated
as transient until the attempts run out.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import replace

from tiktok_publisher.domain.enums import (
    PrivacyLevel,
    PublishState,
    PublishStatus,
    ValidationReason,
)
from tiktok_publisher.domain.models import (
    CreatorProfile,
    PublishJob,
    PublishRequest,
    PublishResult,
)
from tiktok_publisher.errors import (
    NetworkError,
    StatusCheckExhausted,
    TikTokAPIError,
    ValidationError,
)
from tiktok_publisher.logging import get_logger
from tiktok_publisher.messages import disclosure_notice
from tiktok_publisher.publish import TikTokPublishClient

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 10
DEFAULT_POLL_INTERVAL = 2.0  # seconds
MAX_TITLE_LENGTH = 2200

# Branded content cannot be private; first tier the creator offers wins
BRANDED_CONTENT_UPGRADE_ORDER = (PrivacyLevel.FOLLOWERS, PrivacyLevel.PUBLIC)


class PublishOrchestrator:
    """Drives one publish attempt through TikTok's asynchronous pipeline.

    Only one attempt should be in flight per caller; concurrent submissions
    of the same video are not deduplicated here.
    """

    def __init__(
        self,
        publish_client: TikTokPublishClient,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.publish_client = publish_client
        self.max_attempts = max_attempts
        self.poll_interval = poll_interval
        self._sleep = sleep
        self.state = PublishState.INIT

    def prepare(
        self,
        request: PublishRequest,
        creator: CreatorProfile | None,
        video_duration_seconds: float | None = None,
    ) -> tuple[PublishRequest, list[str]]:
        """Check local preconditions and return the request as it will be sent.

        No network call happens here.

        Returns:
            Tuple of (request to submit, user-visible notices).

        Raises:
            ValidationError: If the post cannot be submitted as requested.
        """
        notices: list[str] = []

        if request.privacy_level is None:
            raise ValidationError(
                ValidationReason.PRIVACY_NOT_SELECTED,
                "Please select a privacy level",
            )

        if creator is None:
            raise ValidationError(
                ValidationReason.CREATOR_INFO_MISSING,
                "Creator information not available. Please refresh and try again.",
            )

        if len(request.title) > MAX_TITLE_LENGTH:
            raise ValidationError(
                ValidationReason.TITLE_TOO_LONG,
                f"Title is too long (max {MAX_TITLE_LENGTH} characters)",
            )

        if video_duration_seconds is not None:
            if video_duration_seconds > creator.max_video_post_duration_sec:
                raise ValidationError(
                    ValidationReason.DURATION_EXCEEDED,
                    "Video exceeds the maximum duration of "
                    f"{creator.max_video_post_duration_sec} seconds allowed for your account.",
                )
        else:
            logger.warning("video_duration_unknown", url=request.source_video_url)

        if request.commercial_disclosure and not (request.brand_organic or request.branded_content):
            raise ValidationError(
                ValidationReason.DISCLOSURE_INCOMPLETE,
                "Please indicate if your content promotes yourself, a third party, or both",
            )

        privacy_level = request.privacy_level
        if request.branded_content and privacy_level == PrivacyLevel.PRIVATE:
            privacy_level = self._upgrade_branded_privacy(creator)
            notices.append(
                f"Privacy level automatically changed to '{privacy_level.label}' "
                "as branded content cannot be private."
            )
            logger.info("privacy_level_upgraded", privacy_level=privacy_level)

        if creator.privacy_level_options and not creator.offers(privacy_level):
            raise ValidationError(
                ValidationReason.PRIVACY_NOT_ALLOWED,
                f"Privacy level '{privacy_level.label}' is not available for your account",
            )

        prepared = replace(
            request,
            privacy_level=privacy_level,
            disable_comment=request.disable_comment or creator.comment_disabled,
            disable_duet=request.disable_duet or creator.duet_disabled,
            disable_stitch=request.disable_stitch or creator.stitch_disabled,
        )

        notice = disclosure_notice(prepared)
        if notice:
            notices.append(notice)

        return prepared, notices

    def _upgrade_branded_privacy(self, creator: CreatorProfile) -> PrivacyLevel:
        # No known options means nothing to rule out; same as the offered-level check
        if not creator.privacy_level_options:
            return PrivacyLevel.PUBLIC
        for level in BRANDED_CONTENT_UPGRADE_ORDER:
            if creator.offers(level):
                return level
        raise ValidationError(
            ValidationReason.BRANDED_CONTENT_PRIVATE,
            "Branded content cannot be private, and your account offers no "
            "Followers or Public privacy level.",
        )

    async def submit(self, request: PublishRequest) -> PublishJob:
        """Initiate the publish. Failures propagate unchanged; nothing is retried."""
        job = await self.publish_client.initiate(request)
        self.state = PublishState.SUBMITTED
        return job

    async def poll(self, publish_id: str) -> tuple[PublishJob, int]:
        """Poll the job status until it is terminal.

        Returns:
            Tuple of (terminal job, number of status requests made).

        Raises:
            StatusCheckExhausted: If no terminal status was seen in time.
        """
        self.state = PublishState.POLLING
        last_error: Exception | None = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                job = await self.publish_client.fetch_status(publish_id)
            except (NetworkError, TikTokAPIError) as e:
                last_error = e
                logger.warning(
                    "publish_status_check_failed",
                    publish_id=publish_id,
                    attempt=attempt,
                    error=str(e),
                )
                if attempt >= self.max_attempts:
                    self.state = PublishState.TIMEOUT
                    raise StatusCheckExhausted(publish_id, attempt, last_error) from e
            else:
                if job.status.is_terminal:
                    self._finish(job)
                    return job, attempt
                logger.info(
                    "publish_processing",
                    publish_id=publish_id,
                    status=job.raw_status,
                    attempt=attempt,
                )

            if attempt < self.max_attempts:
                await self._sleep(self.poll_interval)

        # One last look in case the final scheduled poll was just too early
        attempts = self.max_attempts + 1
        try:
            job = await self.publish_client.fetch_status(publish_id)
        except (NetworkError, TikTokAPIError) as e:
            self.state = PublishState.TIMEOUT
            raise StatusCheckExhausted(publish_id, attempts, e) from e

        if job.status.is_terminal:
            self._finish(job)
            return job, attempts

        self.state = PublishState.TIMEOUT
        logger.warning("publish_status_check_exhausted", publish_id=publish_id, attempts=attempts)
        raise StatusCheckExhausted(publish_id, attempts, last_error)

    def _finish(self, job: PublishJob) -> None:
        if job.status == PublishStatus.PUBLISH_COMPLETE:
            self.state = PublishState.PUBLISH_COMPLETE
            logger.info("publish_complete", publish_id=job.publish_id)
        else:
            self.state = PublishState.FAILED
            logger.warning(
                "publish_failed",
                publish_id=job.publish_id,
                fail_reason=job.fail_reason,
            )

    async def run(
        self,
        request: PublishRequest,
        creator: CreatorProfile | None,
        video_duration_seconds: float | None = None,
    ) -> PublishResult:
        """Validate, submit and poll one publish attempt.

        A FAILED job is returned (``result.succeeded`` is False), not raised.

        Raises:
            ValidationError: A local precondition failed; nothing was sent.
            PublishInitError: TikTok rejected the post.
            NetworkError: TikTok could not be reached while submitting.
            StatusCheckExhausted: Polling gave up without a terminal status.
        """
        self.state = PublishState.INIT
        prepared, notices = self.prepare(request, creator, video_duration_seconds)
        job = await self.submit(prepared)
        job, attempts = await self.poll(job.publish_id)
        return PublishResult(
            job=job,
            state=self.state,
            request=prepared,
            notices=notices,
            attempts=attempts,
        )
