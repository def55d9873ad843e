"""Domain enumerations."""

from enum import StrEnum


class PrivacyLevel(StrEnum):
    """Who can view a published video. Values are TikTok's wire values."""

    PUBLIC = "PUBLIC_TO_EVERYONE"
    FRIENDS = "MUTUAL_FOLLOW_FRIENDS"
    FOLLOWERS = "FOLLOWER_OF_CREATOR"
    PRIVATE = "SELF_ONLY"

    @property
    def label(self) -> str:
        """Human-readable label for pickers and tables."""
        return _PRIVACY_LABELS[self]

    @classmethod
    def parse(cls, value: str) -> "PrivacyLevel":
        """Accept either the wire value or the member name (case-insensitive)."""
        normalized = value.strip().upper()
        for level in cls:
            if normalized in (level.value, level.name):
                return level
        raise ValueError(f"Unknown privacy level: {value}")


_PRIVACY_LABELS = {
    PrivacyLevel.PUBLIC: "Public - Everyone",
    PrivacyLevel.FRIENDS: "Friends - Mutual followers only",
    PrivacyLevel.FOLLOWERS: "Followers - Followers only",
    PrivacyLevel.PRIVATE: "Private - Only me",
}


class PublishStatus(StrEnum):
    """Status of a publish job on TikTok's side."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PUBLISH_COMPLETE = "PUBLISH_COMPLETE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (PublishStatus.PUBLISH_COMPLETE, PublishStatus.FAILED)

    @classmethod
    def from_provider(cls, status: str | None) -> "PublishStatus":
        """Map a raw provider status onto the four job states.

        TikTok reports several in-flight statuses (PROCESSING_DOWNLOAD,
        PROCESSING_UPLOAD, SEND_TO_USER_INBOX); all of them are PROCESSING.
        """
        if status == "PUBLISH_COMPLETE":
            return cls.PUBLISH_COMPLETE
        if status == "FAILED":
            return cls.FAILED
        return cls.PROCESSING


class PublishState(StrEnum):
    """State of the publish orchestrator."""

    INIT = "init"
    SUBMITTED = "submitted"
    POLLING = "polling"
    PUBLISH_COMPLETE = "publish_complete"
    FAILED = "failed"
    TIMEOUT = "timeout"


class ProviderErrorCode(StrEnum):
    """Error codes TikTok reports in the ``error.code`` field of a response."""

    OK = "ok"
    ACCESS_TOKEN_INVALID = "access_token_invalid"
    SCOPE_NOT_AUTHORIZED = "scope_not_authorized"
    INVALID_PARAMS = "invalid_params"
    RATE_LIMIT_EXCEEDED = "rate_limit_exceeded"
    SPAM_RISK_TOO_MANY_POSTS = "spam_risk_too_many_posts"
    SPAM_RISK_USER_BANNED_FROM_POSTING = "spam_risk_user_banned_from_posting"
    REACHED_ACTIVE_USER_CAP = "reached_active_user_cap"
    UNAUDITED_CLIENT_PRIVATE_ONLY = "unaudited_client_can_only_post_to_private_accounts"
    PRIVACY_LEVEL_OPTION_MISMATCH = "privacy_level_option_mismatch"
    URL_OWNERSHIP_UNVERIFIED = "url_ownership_unverified"
    # OAuth token endpoint errors
    INVALID_GRANT = "invalid_grant"
    INVALID_REQUEST = "invalid_request"
    INVALID_CLIENT = "invalid_client"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, code: str | None) -> "ProviderErrorCode":
        """Get enum member from a raw error code, UNKNOWN if unrecognized."""
        if not code:
            return cls.UNKNOWN
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN


class ValidationReason(StrEnum):
    """Local precondition failures detected before any network call."""

    PRIVACY_NOT_SELECTED = "privacy_not_selected"
    PRIVACY_NOT_ALLOWED = "privacy_not_allowed"
    CREATOR_INFO_MISSING = "creator_info_missing"
    DURATION_EXCEEDED = "duration_exceeded"
    DISCLOSURE_INCOMPLETE = "disclosure_incomplete"
    BRANDED_CONTENT_PRIVATE = "branded_content_private"
    TITLE_TOO_LONG = "title_too_long"
