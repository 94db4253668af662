"""
Pydantic models and enums for the article generation pipeline.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ── Pipeline Stage ───────────────────────────────────────────────────────────

class PipelineStage(str, Enum):
    START = "start"
    AUTHENTICATED = "authenticated"
    ENTITLEMENT_CHECKED = "entitlement-checked"
    URL_VALIDATED = "url-validated"
    VIDEO_RESOLVED = "video-resolved"
    TRANSCRIPT_RESOLVED = "transcript-resolved"
    CONTENT_SYNTHESIZED = "content-synthesized"
    USAGE_RECORDED = "usage-recorded"
    DONE = "article_generation_complete"

    # Terminal failure states
    AUTH_FAILED = "auth-failed"
    QUOTA_EXCEEDED = "quota-exceeded"
    MISSING_CREDENTIALS = "missing-credentials"
    URL_INVALID = "url-invalid"
    VIDEO_API_FAILED = "video-api-failed"
    GENERATION_FAILED = "generation-failed"
    INTERNAL_ERROR = "internal-error"

    # Boundary state: throttled after url-validated, before any provider call
    RATE_LIMITED = "rate-limited"


# ── Caller ───────────────────────────────────────────────────────────────────

class UserIdentity(BaseModel):
    id: str
    email: Optional[str] = None


class UserEntitlement(BaseModel):
    """The one-read view of a `users` row the gate decides on."""

    used_count: int = 0
    is_paid: bool = False
    openai_api_key: Optional[str] = Field(default=None, repr=False)
    youtube_api_key: Optional[str] = Field(default=None, repr=False)


# ── Video ────────────────────────────────────────────────────────────────────

class Thumbnails(BaseModel):
    model_config = ConfigDict(frozen=True)

    default: str
    medium: str
    high: str
    maxres: str


class VideoRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    thumbnails: Thumbnails
    duration: str = ""
    published_at: str = ""
    channel_title: str = ""

    def to_video_info(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "channelTitle": self.channel_title,
            "duration": self.duration,
            "publishedAt": self.published_at,
            "thumbnails": self.thumbnails.model_dump(),
        }


class TranscriptSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    start: float = 0.0  # zero for synthetic fallback segments
    duration: float = 0.0


class TranscriptCorpus(BaseModel):
    segments: list[TranscriptSegment] = Field(default_factory=list)

    @classmethod
    def single(cls, text: str) -> "TranscriptCorpus":
        return cls(segments=[TranscriptSegment(text=text)])

    @property
    def text(self) -> str:
        return " ".join(seg.text for seg in self.segments)


# ── Articles ─────────────────────────────────────────────────────────────────

class ArticleVariant(str, Enum):
    BLOG = "blog"
    SHORT_SOCIAL = "short_social"
    MICRO_POST = "micro_post"


class ArticleContent(BaseModel):
    model_config = ConfigDict(frozen=True)

    blog: Optional[str] = None
    short_social: Optional[str] = None
    micro_post: Optional[str] = None


# ── Outcome ──────────────────────────────────────────────────────────────────

def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class PipelineSuccess(BaseModel):
    stage: PipelineStage = PipelineStage.DONE
    user: UserIdentity
    video: VideoRecord
    articles: ArticleContent
    timestamp: str = Field(default_factory=_now_iso)

    @property
    def http_status(self) -> int:
        return 200

    def to_response(self) -> dict:
        return {
            "success": True,
            "message": "Article generation complete",
            "timestamp": self.timestamp,
            "stage": self.stage.value,
            "data": {
                "videoInfo": self.video.to_video_info(),
                "articles": self.articles.model_dump(),
            },
            "user": {"id": self.user.id, "email": self.user.email},
        }


class PipelineFailure(BaseModel):
    stage: PipelineStage
    message: str
    details: Optional[str] = None
    http_status: int = 500
    extra: dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None  # for logs and metrics only, never serialised
    timestamp: str = Field(default_factory=_now_iso)

    def to_response(self) -> dict:
        body: dict[str, Any] = {
            "success": False,
            "error": self.message,
            "stage": self.stage.value,
            "timestamp": self.timestamp,
        }
        if self.details:
            body["details"] = self.details
        body.update(self.extra)
        return body


PipelineOutcome = Union[PipelineSuccess, PipelineFailure]


# ── API Request Models ───────────────────────────────────────────────────────

class GenerateArticlesRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    video_url: Optional[str] = Field(default=None, alias="videoUrl")


class ApiKeysUpdateRequest(BaseModel):
    openai_api_key: Optional[str] = None
    youtube_api_key: Optional[str] = None


class AccountStatusResponse(BaseModel):
    used_count: int
    is_paid: bool
    max_free_count: int
    remaining_free: Optional[int] = None  # None for paid plans
    has_openai_key: bool
    has_youtube_key: bool
