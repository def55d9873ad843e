"""Domain models - plain dataclasses shared by the clients and the orchestrator."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from urllib.parse import urlencode

from tiktok_publisher.domain.enums import PrivacyLevel, PublishState, PublishStatus

TIKTOK_AUTH_URL = "https://www.tiktok.com/v2/auth/authorize/"

# Frame (in ms) used as the cover image when none is given
DEFAULT_COVER_TIMESTAMP_MS = 1000
DEFAULT_MAX_VIDEO_DURATION_SEC = 600


@dataclass
class Credential:
    """A stored bearer credential."""

    access_token: str
    expires_at: datetime
    refresh_token: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass
class TokenResponse:
    """Token payload returned by the token endpoint (code exchange or refresh)."""

    access_token: str
    expires_in: int
    refresh_token: str | None = None
    refresh_expires_in: int | None = None
    open_id: str | None = None
    scope: str = ""
    token_type: str = "Bearer"

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "TokenResponse":
        """Build from TikTok's token JSON. Raises KeyError without access_token."""
        return cls(
            access_token=data["access_token"],
            expires_in=int(data.get("expires_in", 86400)),  # 24 hours default
            refresh_token=data.get("refresh_token") or None,
            refresh_expires_in=data.get("refresh_expires_in"),
            open_id=data.get("open_id"),
            scope=data.get("scope", ""),
            token_type=data.get("token_type", "Bearer"),
        )


@dataclass(frozen=True)
class AuthorizationRequest:
    """A single login attempt: where to send the user and the state to expect back."""

    client_key: str
    redirect_uri: str
    scopes: tuple[str, ...]
    state: str
    response_type: str = "code"

    @property
    def url(self) -> str:
        params = {
            "client_key": self.client_key,
            "redirect_uri": self.redirect_uri,
            "scope": ",".join(self.scopes),
            "response_type": self.response_type,
            "state": self.state,
        }
        return f"{TIKTOK_AUTH_URL}?{urlencode(params)}"


@dataclass
class UserInfo:
    """Basic profile of the authenticated user."""

    open_id: str | None = None
    union_id: str | None = None
    display_name: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "UserInfo":
        user = (data.get("data") or {}).get("user") or {}
        return cls(
            open_id=user.get("open_id"),
            union_id=user.get("union_id"),
            display_name=user.get("display_name"),
            avatar_url=user.get("avatar_url"),
        )


@dataclass
class CreatorProfile:
    """Posting capabilities of the creator, fetched fresh before each publish."""

    display_name: str | None
    avatar_url: str | None
    privacy_level_options: list[PrivacyLevel]
    comment_disabled: bool = False
    duet_disabled: bool = False
    stitch_disabled: bool = False
    max_video_post_duration_sec: float = DEFAULT_MAX_VIDEO_DURATION_SEC
    username: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "CreatorProfile":
        creator = data.get("data") or {}
        options = []
        for option in creator.get("privacy_level_options") or []:
            try:
                options.append(PrivacyLevel(option))
            except ValueError:
                # Privacy tiers introduced after this client are not offered
                continue
        return cls(
            display_name=creator.get("creator_nickname"),
            username=creator.get("creator_username"),
            avatar_url=creator.get("creator_avatar_url"),
            privacy_level_options=options,
            comment_disabled=bool(creator.get("comment_disabled")),
            duet_disabled=bool(creator.get("duet_disabled")),
            stitch_disabled=bool(creator.get("stitch_disabled")),
            max_video_post_duration_sec=(
                creator.get("max_video_post_duration_sec") or DEFAULT_MAX_VIDEO_DURATION_SEC
            ),
        )

    def offers(self, level: PrivacyLevel) -> bool:
        return level in self.privacy_level_options


@dataclass(frozen=True)
class PublishRequest:
    """Metadata and source for a pull-by-URL publish."""

    title: str
    source_video_url: str
    privacy_level: PrivacyLevel | None = None
    disable_duet: bool = False
    disable_stitch: bool = False
    disable_comment: bool = False
    commercial_disclosure: bool = False
    brand_organic: bool = False
    branded_content: bool = False
    video_cover_timestamp_ms: int = DEFAULT_COVER_TIMESTAMP_MS

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body for the video init endpoint."""
        if self.privacy_level is None:
            raise ValueError("privacy_level must be set before building the payload")
        return {
            "post_info": {
                "title": self.title,
                "privacy_level": self.privacy_level.value,
                "disable_duet": self.disable_duet,
                "disable_comment": self.disable_comment,
                "disable_stitch": self.disable_stitch,
                "video_cover_timestamp_ms": self.video_cover_timestamp_ms,
                "brand_organic_toggle": self.brand_organic,
                "brand_content_toggle": self.branded_content,
            },
            "source_info": {
                "source": "PULL_FROM_URL",
                "video_url": self.source_video_url,
            },
        }


@dataclass
class PublishJob:
    """A publish job on TikTok's side."""

    publish_id: str
    status: PublishStatus = PublishStatus.PENDING
    fail_reason: str | None = None
    raw_status: str | None = None

    @classmethod
    def from_status_payload(cls, publish_id: str, data: dict[str, Any]) -> "PublishJob":
        raw_status = data["status"]
        status = PublishStatus.from_provider(raw_status)
        fail_reason = None
        if status == PublishStatus.FAILED:
            fail_reason = data.get("fail_reason") or "Unknown reason"
        return cls(
            publish_id=publish_id,
            status=status,
            fail_reason=fail_reason,
            raw_status=raw_status,
        )


@dataclass
class PublishResult:
    """Outcome of one orchestrated publish attempt."""

    job: PublishJob
    state: PublishState
    request: PublishRequest
    notices: list[str] = field(default_factory=list)
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state == PublishState.PUBLISH_COMPLETE
