"""
Video Resolver: YouTube Data API v3.

  1. Extract the video id from a watch / short-link / embed URL
  2. Fetch snippet + contentDetails and map them to a VideoRecord
  3. Build the transcript corpus

Caption text is never downloaded: the captions endpoint needs OAuth, which
this worker does not hold. The captions listing is only used to learn whether
tracks exist; the corpus is always the description (when it is substantial)
or a placeholder naming the title and channel.
"""

import logging
import re
from typing import Optional

import httpx
from pydantic import ValidationError

from .errors import InvalidUrlError, PlatformApiError, VideoNotFoundError
from .models import Thumbnails, TranscriptCorpus, VideoRecord
from .schemas import (
    GoogleErrorResponse,
    YouTubeCaptionListResponse,
    YouTubeVideoItem,
    YouTubeVideoListResponse,
)

logger = logging.getLogger(__name__)

# ── URL parsing ──────────────────────────────────────────────────────────────

VIDEO_ID_PATTERNS = [
    re.compile(r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/embed/)([^&\n?#]+)"),
    re.compile(r"youtube\.com/watch\?.*v=([^&\n?#]+)"),
]

THUMBNAIL_HOST = "https://img.youtube.com/vi"

# Named resolution → platform default file
THUMBNAIL_DEFAULTS = {
    "default": "default.jpg",
    "medium": "mqdefault.jpg",
    "high": "hqdefault.jpg",
    "maxres": "maxresdefault.jpg",
}

MIN_DESCRIPTION_LENGTH = 100

PLACEHOLDER_TEMPLATE = (
    "Automatic transcript retrieval was not possible for this video. "
    "Title: {title}. Channel: {channel}."
)


def extract_video_id(url: Optional[str]) -> Optional[str]:
    if not url:
        return None
    for pattern in VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


def require_video_id(url: Optional[str]) -> str:
    if not url or not url.strip():
        raise InvalidUrlError(
            "videoUrl is required",
            details="Provide the URL of a YouTube video",
            providedUrl=url,
        )
    video_id = extract_video_id(url.strip())
    if not video_id:
        raise InvalidUrlError(
            "Not a valid YouTube URL",
            details="Expected a watch, youtu.be or embed URL",
            providedUrl=url,
        )
    return video_id


def format_timestamp(seconds: int) -> str:
    """Seconds → M:SS."""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


def timestamp_url(video_url: str, seconds: int) -> str:
    """Deep link into the video at `seconds`, replacing any existing t= param."""
    url = httpx.URL(video_url).copy_remove_param("t").copy_add_param("t", f"{int(seconds)}s")
    return str(url)


# ── Metadata mapping ─────────────────────────────────────────────────────────

def default_thumbnail_url(video_id: str, resolution: str) -> str:
    return f"{THUMBNAIL_HOST}/{video_id}/{THUMBNAIL_DEFAULTS[resolution]}"


def map_video_item(video_id: str, item: YouTubeVideoItem) -> VideoRecord:
    """Pure mapping: identical input always yields an identical VideoRecord."""
    snippet = item.snippet
    thumbs = {}
    for resolution in THUMBNAIL_DEFAULTS:
        thumb = snippet.thumbnails.get(resolution)
        thumbs[resolution] = (thumb.url if thumb and thumb.url else None) or default_thumbnail_url(
            video_id, resolution
        )

    return VideoRecord(
        id=video_id,
        title=snippet.title,
        description=snippet.description,
        thumbnails=Thumbnails(**thumbs),
        duration=item.contentDetails.duration,
        published_at=snippet.publishedAt,
        channel_title=snippet.channelTitle,
    )


def fallback_corpus(video: VideoRecord) -> TranscriptCorpus:
    description = video.description or ""
    if len(description.strip()) > MIN_DESCRIPTION_LENGTH:
        return TranscriptCorpus.single(description)
    return TranscriptCorpus.single(
        PLACEHOLDER_TEMPLATE.format(title=video.title, channel=video.channel_title)
    )


# ── API client ───────────────────────────────────────────────────────────────

class YouTubeClient:
    """Thin async client over the two Data API endpoints the pipeline needs."""

    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str):
        self._http = http
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def _get(self, path: str, params: dict) -> dict:
        url = f"{self._base_url}/{path}"
        try:
            resp = await self._http.get(url, params={**params, "key": self._api_key})
        except httpx.TimeoutException as e:
            raise PlatformApiError(
                "YouTube API request timed out", reason="timeout", details=str(e)
            ) from e
        except httpx.HTTPError as e:
            raise PlatformApiError(
                "Could not reach the YouTube API", reason="other", details=str(e)
            ) from e

        if resp.status_code != 200:
            raise _platform_error(resp)

        try:
            return resp.json()
        except ValueError as e:
            raise PlatformApiError(
                "YouTube API returned a malformed response", reason="other", details=str(e)
            ) from e

    async def get_video(self, video_id: str) -> VideoRecord:
        data = await self._get("videos", {"part": "snippet,contentDetails", "id": video_id})
        try:
            listing = YouTubeVideoListResponse.model_validate(data)
        except ValidationError as e:
            raise PlatformApiError(
                "YouTube API returned an unexpected video payload", reason="other", details=str(e)
            ) from e

        if not listing.items:
            raise VideoNotFoundError("Video not found", details=f"No video with id {video_id}")

        return map_video_item(video_id, listing.items[0])

    async def count_caption_tracks(self, video_id: str) -> int:
        data = await self._get("captions", {"part": "snippet", "videoId": video_id})
        try:
            listing = YouTubeCaptionListResponse.model_validate(data)
        except ValidationError as e:
            raise PlatformApiError(
                "YouTube API returned an unexpected captions payload", reason="other", details=str(e)
            ) from e
        return len(listing.items)


def _platform_error(resp: httpx.Response) -> PlatformApiError:
    try:
        detail = GoogleErrorResponse.model_validate(resp.json()).error.message
    except (ValueError, ValidationError):
        detail = resp.text[:300]

    status = resp.status_code
    if status == 401:
        return PlatformApiError("YouTube API key is invalid. Check your settings.", reason="unauthorized", details=detail)
    if status == 403:
        if "quota" in detail.lower():
            return PlatformApiError(
                "YouTube API quota exhausted. Try again later.", reason="rate_limited", details=detail
            )
        return PlatformApiError(
            "YouTube API key was rejected. Check your settings.", reason="unauthorized", details=detail
        )
    if status == 429:
        return PlatformApiError(
            "YouTube API rate limit reached. Try again later.", reason="rate_limited", details=detail
        )
    if status == 400:
        return PlatformApiError(f"YouTube API rejected the request: {detail}", reason="bad_request", details=detail)
    if status >= 500:
        return PlatformApiError(
            "YouTube API server error. Try again later.", reason="server_error", details=detail
        )
    return PlatformApiError(f"YouTube API error ({status})", reason="other", details=detail)


# ── Resolver ─────────────────────────────────────────────────────────────────

class VideoResolver:
    """Stage wrapper used by the orchestrator."""

    def __init__(self, client: YouTubeClient):
        self._client = client

    async def fetch_video(self, video_id: str) -> VideoRecord:
        try:
            return await self._client.get_video(video_id)
        except PlatformApiError as e:
            e.extra.setdefault("videoId", video_id)
            raise

    async def fetch_transcript(self, video: VideoRecord) -> TranscriptCorpus:
        """Never raises: caption lookup failures degrade to the fallback corpus."""
        try:
            tracks = await self._client.count_caption_tracks(video.id)
        except PlatformApiError as e:
            logger.warning(f"Caption listing failed for {video.id} ({e.reason}): {e.message}")
            tracks = 0

        corpus = fallback_corpus(video)
        if tracks == 0:
            logger.warning(f"No caption tracks for {video.id}, using description fallback")
        else:
            logger.info(f"{tracks} caption track(s) listed for {video.id}; using description text")
        return corpus
