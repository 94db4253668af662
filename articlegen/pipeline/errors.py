"""
Failure taxonomy for the article pipeline.

Each error knows the stage it terminates the pipeline in and the HTTP status
the boundary should answer with. Adapters raise these at the call site; no
raw httpx / PostgREST exception is allowed to leave a component.
"""

from typing import Any, Optional

from .models import PipelineStage


class PipelineError(Exception):
    stage: PipelineStage = PipelineStage.INTERNAL_ERROR
    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        http_status: Optional[int] = None,
        **extra: Any,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        if http_status is not None:
            self.http_status = http_status
        self.extra = extra


class AuthenticationError(PipelineError):
    stage = PipelineStage.AUTH_FAILED
    http_status = 401


class QuotaExceededError(PipelineError):
    stage = PipelineStage.QUOTA_EXCEEDED
    http_status = 403


class MissingCredentialsError(PipelineError):
    stage = PipelineStage.MISSING_CREDENTIALS
    http_status = 400


class InvalidUrlError(PipelineError):
    stage = PipelineStage.URL_INVALID
    http_status = 400


class PlatformApiError(PipelineError):
    """Video platform call failed. `reason` tells the sub-cases apart."""

    stage = PipelineStage.VIDEO_API_FAILED
    http_status = 500

    def __init__(self, message: str, reason: str = "other", **kwargs: Any):
        super().__init__(message, reason=reason, **kwargs)
        self.reason = reason


class VideoNotFoundError(PlatformApiError):
    http_status = 404

    def __init__(self, message: str, **kwargs: Any):
        super().__init__(message, reason="not_found", **kwargs)


class GenerationError(PipelineError):
    stage = PipelineStage.GENERATION_FAILED
    http_status = 500

    def __init__(self, message: str, reason: str = "other", **kwargs: Any):
        super().__init__(message, reason=reason, **kwargs)
        self.reason = reason


class RateLimitedError(PipelineError):
    stage = PipelineStage.RATE_LIMITED
    http_status = 429

    def __init__(self, message: str, retry_after: int, **kwargs: Any):
        super().__init__(message, retry_after=retry_after, **kwargs)
        self.retry_after = retry_after


class InternalError(PipelineError):
    stage = PipelineStage.INTERNAL_ERROR
    http_status = 500


class UserRecordNotFoundError(InternalError):
    http_status = 404
