"""
Wire schemas for the external endpoints the pipeline calls.

Responses are validated into these models at the adapter boundary; nothing
past youtube.py / openai_client.py handles raw JSON.
"""

from typing import Optional

from pydantic import BaseModel, Field


# ── YouTube Data API v3 ──────────────────────────────────────────────────────

class YouTubeThumbnail(BaseModel):
    url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None


class YouTubeSnippet(BaseModel):
    title: str = ""
    description: str = ""
    publishedAt: str = ""
    channelTitle: str = ""
    thumbnails: dict[str, YouTubeThumbnail] = Field(default_factory=dict)


class YouTubeContentDetails(BaseModel):
    duration: str = ""


class YouTubeVideoItem(BaseModel):
    id: str = ""
    snippet: YouTubeSnippet = Field(default_factory=YouTubeSnippet)
    contentDetails: YouTubeContentDetails = Field(default_factory=YouTubeContentDetails)


class YouTubeVideoListResponse(BaseModel):
    items: list[YouTubeVideoItem] = Field(default_factory=list)


class YouTubeCaptionSnippet(BaseModel):
    language: str = ""
    trackKind: str = ""


class YouTubeCaptionItem(BaseModel):
    id: str = ""
    snippet: YouTubeCaptionSnippet = Field(default_factory=YouTubeCaptionSnippet)


class YouTubeCaptionListResponse(BaseModel):
    items: list[YouTubeCaptionItem] = Field(default_factory=list)


class GoogleErrorDetail(BaseModel):
    code: int = 0
    message: str = ""


class GoogleErrorResponse(BaseModel):
    error: GoogleErrorDetail = Field(default_factory=GoogleErrorDetail)


# ── Chat completions ─────────────────────────────────────────────────────────

class ChatMessage(BaseModel):
    role: str
    content: Optional[str] = None


class ChatCompletionRequest(BaseModel):
    model: str
    messages: list[ChatMessage]
    max_tokens: int
    temperature: float = 0.7


class ChatChoice(BaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    id: str = ""
    model: str = ""
    choices: list[ChatChoice] = Field(default_factory=list)


class ProviderErrorDetail(BaseModel):
    message: str = ""
    type: Optional[str] = None
    code: Optional[str] = None


class ProviderErrorResponse(BaseModel):
    error: ProviderErrorDetail = Field(default_factory=ProviderErrorDetail)
