"""
Tests for articlegen.pipeline.youtube
"""

import httpx
import pytest

from articlegen.pipeline.errors import InvalidUrlError, PlatformApiError, VideoNotFoundError
from articlegen.pipeline.models import PipelineStage, Thumbnails, VideoRecord
from articlegen.pipeline.schemas import YouTubeVideoListResponse
from articlegen.pipeline.youtube import (
    MIN_DESCRIPTION_LENGTH,
    VideoResolver,
    YouTubeClient,
    extract_video_id,
    fallback_corpus,
    format_timestamp,
    map_video_item,
    require_video_id,
    timestamp_url,
)

BASE_URL = "https://youtube.test/v3"


def _video(description="", title="Espresso at Home", channel="Coffee Lab"):
    return VideoRecord(
        id="ABC123",
        title=title,
        description=description,
        thumbnails=Thumbnails(default="d", medium="m", high="h", maxres="x"),
        channel_title=channel,
    )


def _resolver(apis):
    return VideoResolver(YouTubeClient(apis.client(), "yt-test", BASE_URL))


class TestVideoIdExtraction:
    @pytest.mark.parametrize(
        "url",
        [
            "https://www.youtube.com/watch?v=ABC123",
            "https://youtube.com/watch?v=ABC123&t=42s",
            "https://youtu.be/ABC123",
            "https://youtu.be/ABC123?si=share",
            "https://www.youtube.com/embed/ABC123",
            "https://www.youtube.com/watch?feature=share&v=ABC123",
        ],
    )
    def test_supported_shapes(self, url):
        assert extract_video_id(url) == "ABC123"

    @pytest.mark.parametrize("url", ["https://vimeo.com/123", "not a url", "https://youtube.com/", ""])
    def test_unsupported_shapes(self, url):
        assert extract_video_id(url) is None

    def test_require_rejects_foreign_url(self):
        with pytest.raises(InvalidUrlError) as exc:
            require_video_id("https://vimeo.com/123")
        assert exc.value.stage == PipelineStage.URL_INVALID
        assert exc.value.http_status == 400
        assert exc.value.extra["providedUrl"] == "https://vimeo.com/123"

    @pytest.mark.parametrize("url", [None, "", "   "])
    def test_require_rejects_missing_url(self, url):
        with pytest.raises(InvalidUrlError):
            require_video_id(url)

    def test_require_strips_whitespace(self):
        assert require_video_id("  https://youtu.be/ABC123  ") == "ABC123"


class TestTimestamps:
    def test_format_timestamp(self):
        assert format_timestamp(30) == "0:30"
        assert format_timestamp(125) == "2:05"

    def test_timestamp_url_appends_query(self):
        assert timestamp_url("https://youtu.be/ABC123", 30) == "https://youtu.be/ABC123?t=30s"

    def test_timestamp_url_replaces_existing_offset(self):
        url = "https://www.youtube.com/watch?v=ABC123&t=90s"
        assert timestamp_url(url, 30) == "https://www.youtube.com/watch?v=ABC123&t=30s"

    def test_timestamp_url_offset_first_in_query(self):
        url = "https://www.youtube.com/watch?t=10s&v=ABC123"
        assert timestamp_url(url, 30) == "https://www.youtube.com/watch?v=ABC123&t=30s"

    def test_timestamp_url_keeps_video_id_extractable(self):
        url = timestamp_url("https://www.youtube.com/watch?t=90&v=ABC123&feature=share", 45)
        assert extract_video_id(url) == "ABC123"
        assert url.endswith("t=45s")


class TestMapVideoItem:
    def test_missing_resolutions_fall_back_to_platform_defaults(self, make_video_payload):
        item = YouTubeVideoListResponse.model_validate(make_video_payload()).items[0]

        video = map_video_item("ABC123", item)

        assert video.thumbnails.default == "https://i.ytimg.com/vi/ABC123/default.jpg"
        assert video.thumbnails.high == "https://i.ytimg.com/vi/ABC123/hqdefault.jpg"
        assert video.thumbnails.medium == "https://img.youtube.com/vi/ABC123/mqdefault.jpg"
        assert video.thumbnails.maxres == "https://img.youtube.com/vi/ABC123/maxresdefault.jpg"

    def test_no_thumbnails_at_all(self, make_video_payload):
        item = YouTubeVideoListResponse.model_validate(make_video_payload(thumbnails={})).items[0]

        video = map_video_item("ABC123", item)

        assert video.thumbnails.default == "https://img.youtube.com/vi/ABC123/default.jpg"

    def test_mapping_is_deterministic(self, make_video_payload):
        payload = make_video_payload()
        first = map_video_item("ABC123", YouTubeVideoListResponse.model_validate(payload).items[0])
        second = map_video_item("ABC123", YouTubeVideoListResponse.model_validate(payload).items[0])

        assert first == second
        assert first.model_dump_json() == second.model_dump_json()

    def test_video_info_uses_wire_names(self, make_video_payload):
        item = YouTubeVideoListResponse.model_validate(make_video_payload()).items[0]
        info = map_video_item("ABC123", item).to_video_info()

        assert info["channelTitle"] == "Coffee Lab"
        assert info["publishedAt"] == "2024-05-01T12:00:00Z"
        assert info["duration"] == "PT12M30S"


class TestFallbackCorpus:
    def test_substantial_description_is_used_verbatim(self):
        description = "x" * 150
        assert fallback_corpus(_video(description)).text == description

    def test_description_at_threshold_is_not_enough(self):
        corpus = fallback_corpus(_video("y" * MIN_DESCRIPTION_LENGTH))
        assert "Espresso at Home" in corpus.text

    def test_empty_description_yields_placeholder(self):
        corpus = fallback_corpus(_video(""))
        assert "Espresso at Home" in corpus.text
        assert "Coffee Lab" in corpus.text
        assert len(corpus.segments) == 1


class TestYouTubeClient:
    @pytest.mark.asyncio
    async def test_get_video(self, make_apis):
        apis = make_apis()
        video = await YouTubeClient(apis.client(), "yt-test", BASE_URL).get_video("ABC123")

        assert video.id == "ABC123"
        assert video.title == "Espresso at Home"
        assert apis.calls == ["videos"]

    @pytest.mark.asyncio
    async def test_api_key_and_parts_are_sent(self):
        seen = {}

        def handler(request):
            seen.update(dict(request.url.params))
            return httpx.Response(200, json={"items": []})

        client = YouTubeClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)), "yt-test", BASE_URL)
        with pytest.raises(VideoNotFoundError):
            await client.get_video("ABC123")

        assert seen == {"part": "snippet,contentDetails", "id": "ABC123", "key": "yt-test"}

    @pytest.mark.asyncio
    async def test_empty_listing_is_not_found(self, make_apis):
        apis = make_apis(video_body={"items": []})

        with pytest.raises(VideoNotFoundError) as exc:
            await YouTubeClient(apis.client(), "yt-test", BASE_URL).get_video("ABC123")

        assert exc.value.http_status == 404
        assert exc.value.reason == "not_found"
        assert exc.value.stage == PipelineStage.VIDEO_API_FAILED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,body,reason",
        [
            (401, {"error": {"message": "API key not valid"}}, "unauthorized"),
            (403, {"error": {"message": "The request cannot be completed because you have exceeded your quota."}}, "rate_limited"),
            (403, {"error": {"message": "API key has restrictions"}}, "unauthorized"),
            (429, {"error": {"message": "slow down"}}, "rate_limited"),
            (400, {"error": {"message": "bad id"}}, "bad_request"),
            (503, {"error": {"message": "backend error"}}, "server_error"),
            (418, {}, "other"),
        ],
    )
    async def test_status_codes_map_to_reasons(self, make_apis, status, body, reason):
        apis = make_apis(video_status=status, video_body=body)

        with pytest.raises(PlatformApiError) as exc:
            await YouTubeClient(apis.client(), "yt-test", BASE_URL).get_video("ABC123")

        assert exc.value.reason == reason
        assert exc.value.http_status == 500
        assert exc.value.extra["reason"] == reason

    @pytest.mark.asyncio
    async def test_timeout_maps_to_timeout_reason(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = YouTubeClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)), "yt-test", BASE_URL)
        with pytest.raises(PlatformApiError) as exc:
            await client.get_video("ABC123")

        assert exc.value.reason == "timeout"


class TestVideoResolver:
    @pytest.mark.asyncio
    async def test_failure_carries_video_id(self, make_apis):
        apis = make_apis(video_status=500, video_body={})

        with pytest.raises(PlatformApiError) as exc:
            await _resolver(apis).fetch_video("ABC123")

        assert exc.value.extra["videoId"] == "ABC123"

    @pytest.mark.asyncio
    async def test_no_caption_tracks_uses_description(self, make_apis):
        description = "d" * 150
        apis = make_apis(captions_body={"items": []})

        corpus = await _resolver(apis).fetch_transcript(_video(description))

        assert corpus.text == description
        assert apis.calls == ["captions"]

    @pytest.mark.asyncio
    async def test_listed_tracks_still_use_fallback_text(self, make_apis):
        apis = make_apis(captions_body={"items": [{"id": "track-1", "snippet": {"language": "en"}}]})

        corpus = await _resolver(apis).fetch_transcript(_video(""))

        assert "Coffee Lab" in corpus.text

    @pytest.mark.asyncio
    async def test_caption_listing_failure_is_not_fatal(self, make_apis):
        apis = make_apis(captions_status=403, captions_body={"error": {"message": "forbidden"}})

        corpus = await _resolver(apis).fetch_transcript(_video(""))

        assert "Espresso at Home" in corpus.text
