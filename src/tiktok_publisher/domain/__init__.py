"""Domain models and enumerations."""

from tiktok_publisher.domain.enums import (
    PrivacyLevel,
    ProviderErrorCode,
    PublishState,
    PublishStatus,
    ValidationReason,
)
from tiktok_publisher.domain.models import (
    AuthorizationRequest,
    Credential,
    CreatorProfile,
    PublishJob,
    PublishRequest,
    PublishResult,
    TokenResponse,
    UserInfo,
)

__all__ = [
    "AuthorizationRequest",
    "Credential",
    "CreatorProfile",
    "PrivacyLevel",
    "ProviderErrorCode",
    "PublishJob",
    "PublishRequest",
    "PublishResult",
    "PublishState",
    "PublishStatus",
    "TokenResponse",
    "UserInfo",
    "ValidationReason",
]
