"""User-facing text for errors, notices and results."""

from tiktok_publisher.domain.enums import ProviderErrorCode
from tiktok_publisher.domain.models import PublishRequest, PublishResult
from tiktok_publisher.errors import (
    NetworkError,
    PublishInitError,
    StatusCheckExhausted,
    TikTokAPIError,
)

# Known publish-init failures and what the user can do about them
PUBLISH_ERROR_MESSAGES: dict[ProviderErrorCode, str] = {
    ProviderErrorCode.RATE_LIMIT_EXCEEDED: (
        "Rate limit reached: too many requests were sent to TikTok. "
        "Please wait a minute and try again."
    ),
    ProviderErrorCode.SPAM_RISK_TOO_MANY_POSTS: (
        "You have reached the limit of posts you can make in a day. Please try again tomorrow."
    ),
    ProviderErrorCode.SPAM_RISK_USER_BANNED_FROM_POSTING: (
        "You have been banned from posting. "
        "Please contact TikTok support for more information."
    ),
    ProviderErrorCode.REACHED_ACTIVE_USER_CAP: (
        "Daily publishing quota reached: The maximum number of users allowed to publish "
        "content via this application today has been reached. Please try again tomorrow "
        "when the quota resets."
    ),
    ProviderErrorCode.UNAUDITED_CLIENT_PRIVATE_ONLY: (
        "Unaudited client can only post to private accounts. "
        "Please choose 'Private - Only me' as the privacy level."
    ),
}

PAID_PARTNERSHIP_NOTICE = "Your video will be labeled as 'Paid partnership'."
PROMOTIONAL_CONTENT_NOTICE = "Your video will be labeled as 'Promotional content'."
DISCLOSURE_IS_PERMANENT = "This cannot be changed once your video is posted."


def publish_error_message(status_code: int | None, code: ProviderErrorCode, body: str | None) -> str:
    """Message for a failed publish init: specific text for known codes, raw otherwise."""
    known = PUBLISH_ERROR_MESSAGES.get(code)
    if known:
        return known
    return f"HTTP error!({status_code}): {body or 'No error details available'}"


def disclosure_notice(request: PublishRequest) -> str | None:
    """Label TikTok will attach to a commercially disclosed video, if any."""
    if request.branded_content:
        return f"{PAID_PARTNERSHIP_NOTICE} {DISCLOSURE_IS_PERMANENT}"
    if request.brand_organic:
        return f"{PROMOTIONAL_CONTENT_NOTICE} {DISCLOSURE_IS_PERMANENT}"
    return None


def describe_error(exc: Exception) -> str:
    """One human-readable line for any error raised by this package."""
    if isinstance(exc, PublishInitError):
        return f"Failed to publish video: {exc}"
    if isinstance(exc, NetworkError):
        return f"Could not reach TikTok: {exc}"
    if isinstance(exc, StatusCheckExhausted):
        return str(exc)
    if isinstance(exc, TikTokAPIError):
        detail = exc.description or (f"HTTP error {exc.status_code}" if exc.status_code else str(exc))
        return f"{exc.operation} failed: {detail}"
    return str(exc)


def describe_result(result: PublishResult) -> str:
    if result.succeeded:
        return (
            "Content successfully published to TikTok! "
            "It may take a few minutes to be visible in your profile."
        )
    return f"Publishing failed: {result.job.fail_reason or 'Unknown reason'}"
