"""
Text-generation provider: OpenAI-compatible chat completions over REST.

One call per prompt, no retries. Provider failures are mapped to a
GenerationError whose `reason` and message tell the caller what went wrong
(bad key, rate limit, malformed request, provider outage).
"""

import logging

import httpx
from pydantic import ValidationError

from .errors import GenerationError
from .schemas import (
    ChatCompletionRequest,
    ChatCompletionResponse,
    ChatMessage,
    ProviderErrorResponse,
)

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are a skilled content writer. Using the video information provided, "
    "write engaging, accurate content that is valuable to readers. Follow the "
    "requested structure and format exactly."
)

DEFAULT_TEMPERATURE = 0.7


class TextGenerationClient:
    def __init__(self, http: httpx.AsyncClient, api_key: str, base_url: str, model: str):
        self._http = http
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._model = model

    async def complete(self, prompt: str, max_tokens: int, label: str = "content") -> str:
        """Send one prompt and return the generated text."""
        request = ChatCompletionRequest(
            model=self._model,
            messages=[
                ChatMessage(role="system", content=SYSTEM_PROMPT),
                ChatMessage(role="user", content=prompt),
            ],
            max_tokens=max_tokens,
            temperature=DEFAULT_TEMPERATURE,
        )

        logger.info(f"Calling text-generation provider for {label} (model={self._model}, max_tokens={max_tokens})")

        try:
            resp = await self._http.post(
                f"{self._base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                },
                json=request.model_dump(),
            )
        except httpx.TimeoutException as e:
            raise GenerationError(
                f"Text generation timed out while writing the {label}", reason="timeout", details=str(e)
            ) from e
        except httpx.HTTPError as e:
            raise GenerationError(
                "Could not reach the text-generation provider", reason="other", details=str(e)
            ) from e

        if resp.status_code != 200:
            raise _provider_error(resp, label)

        try:
            completion = ChatCompletionResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise GenerationError(
                "Text-generation provider returned a malformed response", reason="other", details=str(e)
            ) from e

        if not completion.choices or not completion.choices[0].message.content:
            raise GenerationError(f"Text-generation provider returned no text for the {label}", reason="other")

        logger.info(f"{label} generated ({len(completion.choices[0].message.content)} chars)")
        return completion.choices[0].message.content


def _provider_error(resp: httpx.Response, label: str) -> GenerationError:
    try:
        detail = ProviderErrorResponse.model_validate(resp.json()).error.message or "unknown error"
    except (ValueError, ValidationError):
        detail = "could not parse the error response"

    status = resp.status_code
    logger.error(f"Text-generation provider error for {label}: {status} {detail}")

    if status == 401:
        return GenerationError(
            "OpenAI API key is invalid. Check your settings.", reason="unauthorized", details=detail
        )
    if status == 429:
        return GenerationError(
            "OpenAI API rate limit reached. Wait a moment and try again.", reason="rate_limited", details=detail
        )
    if status == 400:
        return GenerationError(f"Invalid request: {detail}", reason="bad_request", details=detail)
    if status >= 500:
        return GenerationError(
            "OpenAI API server error. Wait a moment and try again.", reason="server_error", details=detail
        )
    return GenerationError(f"OpenAI API error ({status}): {detail}", reason="other", details=detail)
