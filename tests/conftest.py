import json
import threading
from unittest.mock import MagicMock

import httpx
import pytest

from articlegen import fallback_limiter, metrics
from articlegen.config import Settings
from articlegen.pipeline.identity import VerifiedCaller
from articlegen.pipeline.models import UserEntitlement, UserIdentity
from articlegen.pipeline.orchestrator import ArticlePipeline

VIDEO_ID = "ABC123"
VIDEO_URL = f"https://www.youtube.com/watch?v={VIDEO_ID}"
LONG_DESCRIPTION = "In this episode we walk through building a home espresso setup. " * 3


@pytest.fixture(autouse=True)
def reset_process_state():
    fallback_limiter.reset()
    metrics.reset()
    yield


@pytest.fixture
def settings():
    return Settings(
        supabase_url="https://project.supabase.test",
        supabase_anon_key="anon-key",
        youtube_api_base="https://youtube.test/v3",
        openai_api_base="https://llm.test/v1",
        openai_model="gpt-4o-mini",
    )


def video_payload(description=LONG_DESCRIPTION, thumbnails=None, video_id=VIDEO_ID):
    if thumbnails is None:
        thumbnails = {
            "default": {"url": f"https://i.ytimg.com/vi/{video_id}/default.jpg"},
            "high": {"url": f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg"},
        }
    return {
        "items": [
            {
                "id": video_id,
                "snippet": {
                    "title": "Espresso at Home",
                    "description": description,
                    "publishedAt": "2024-05-01T12:00:00Z",
                    "channelTitle": "Coffee Lab",
                    "thumbnails": thumbnails,
                },
                "contentDetails": {"duration": "PT12M30S"},
            }
        ]
    }


class FakeApis:
    """Routes YouTube and chat-completion requests to canned responses."""

    def __init__(
        self,
        video_status=200,
        video_body=None,
        captions_status=200,
        captions_body=None,
        completion_failures=None,
    ):
        self.video_status = video_status
        self.video_body = video_body if video_body is not None else video_payload()
        self.captions_status = captions_status
        self.captions_body = captions_body if captions_body is not None else {"items": []}
        # max_tokens → HTTP status to fail with
        self.completion_failures = completion_failures or {}
        self.calls = []
        self.completion_requests = []

    @property
    def youtube_calls(self):
        return [c for c in self.calls if c in ("videos", "captions")]

    @property
    def completion_calls(self):
        return [c for c in self.calls if c == "chat/completions"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path.endswith("/videos"):
            self.calls.append("videos")
            return httpx.Response(self.video_status, json=self.video_body)
        if path.endswith("/captions"):
            self.calls.append("captions")
            return httpx.Response(self.captions_status, json=self.captions_body)
        if path.endswith("/chat/completions"):
            self.calls.append("chat/completions")
            body = json.loads(request.content)
            self.completion_requests.append(body)
            status = self.completion_failures.get(body["max_tokens"])
            if status:
                return httpx.Response(status, json={"error": {"message": "provider said no"}})
            return httpx.Response(
                200,
                json={
                    "id": "cmpl-1",
                    "choices": [
                        {"index": 0, "message": {"role": "assistant", "content": f"text-{body['max_tokens']}"}}
                    ],
                },
            )
        return httpx.Response(404, json={})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class FakeStore:
    """In-memory users row with an atomic increment, safe across threads."""

    def __init__(self, entitlement=None, fetch_error=None, increment_error=None):
        self.entitlement = entitlement or UserEntitlement(
            used_count=0, is_paid=False, openai_api_key="sk-test", youtube_api_key="yt-test"
        )
        self.fetch_error = fetch_error
        self.increment_error = increment_error
        self.fetch_calls = 0
        self.increment_calls = 0
        self._lock = threading.Lock()

    def fetch(self, user_id):
        self.fetch_calls += 1
        if self.fetch_error:
            raise self.fetch_error
        return self.entitlement

    def increment_usage(self, user_id):
        with self._lock:
            self.increment_calls += 1
            if self.increment_error:
                raise self.increment_error
            self.entitlement = self.entitlement.model_copy(
                update={"used_count": self.entitlement.used_count + 1}
            )


@pytest.fixture
def make_video_payload():
    return video_payload


@pytest.fixture
def make_apis():
    return FakeApis


@pytest.fixture
def make_store():
    return FakeStore


@pytest.fixture
def identity():
    return UserIdentity(id="user-1", email="writer@example.com")


@pytest.fixture
def build_pipeline(settings, identity):
    def _build(apis, store, verify_error=None, admission=None):
        verifier = MagicMock()
        if verify_error is not None:
            verifier.verify.side_effect = verify_error
        else:
            verifier.verify.return_value = VerifiedCaller(
                identity=identity, db=MagicMock(), strategy="service_role"
            )
        return ArticlePipeline(
            settings,
            verifier,
            apis.client(),
            store_factory=lambda db: store,
            admission=admission,
        )

    return _build
