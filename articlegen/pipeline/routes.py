"""
FastAPI routes for the article pipeline.

  POST /generate-articles   run the full pipeline for one video URL
  GET  /account/status      caller's usage counter, plan and key presence
  PUT  /account/api-keys    store the caller's OpenAI / YouTube keys

Every failure body carries `success: false`, `error`, `stage` and any
stage-specific fields; the HTTP status follows the stage.
"""

import asyncio
import logging
import time
import uuid

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .. import metrics
from . import account_service
from .errors import PipelineError
from .identity import IdentityVerifier, extract_bearer_token
from .models import (
    ApiKeysUpdateRequest,
    GenerateArticlesRequest,
    PipelineFailure,
    PipelineStage,
)
from .orchestrator import ArticlePipeline

logger = logging.getLogger(__name__)

pipeline_router = APIRouter(tags=["articles"])
account_router = APIRouter(prefix="/account", tags=["account"])


# ── Dependencies ─────────────────────────────────────────────────────────────

def get_pipeline(request: Request) -> ArticlePipeline:
    return request.app.state.pipeline


def get_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.verifier


def _error_response(error: PipelineError) -> JSONResponse:
    failure = PipelineFailure(
        stage=error.stage,
        message=error.message,
        details=error.details,
        http_status=error.http_status,
        extra=error.extra,
    )
    return JSONResponse(failure.to_response(), status_code=failure.http_status)


async def _read_video_url(request: Request):
    """Lenient body parse: anything unusable becomes a missing URL (→ url-invalid)."""
    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Request body is not valid JSON")
        return None
    if not isinstance(payload, dict):
        return None
    try:
        return GenerateArticlesRequest.model_validate(payload).video_url
    except ValidationError:
        return None


# ═════════════════════════════════════════════════════════════════════════════
# Pipeline Router
# ═════════════════════════════════════════════════════════════════════════════

@pipeline_router.post("/generate-articles")
async def generate_articles(request: Request, pipeline: ArticlePipeline = Depends(get_pipeline)):
    """Authenticate, gate, resolve the video, write three variants, record usage."""
    started = time.time()
    request_id = uuid.uuid4().hex[:12]
    metrics.inc_counter("requests.generate")

    token = extract_bearer_token(request.headers.get("Authorization"))
    video_url = await _read_video_url(request)

    outcome = await pipeline.run(token, video_url, request_id=request_id)

    metrics.record_latency("generate", (time.time() - started) * 1000)
    metrics.inc_counter(f"stage.{outcome.stage.value}")

    headers = {"X-Request-ID": request_id}
    if isinstance(outcome, PipelineFailure):
        metrics.inc_counter(f"errors.{outcome.stage.value}")
        metrics.record_error("generate", outcome.stage.value, outcome.message, user_id=outcome.user_id or "")
        if outcome.stage == PipelineStage.RATE_LIMITED:
            headers["Retry-After"] = str(outcome.extra.get("retry_after", 0))

    return JSONResponse(outcome.to_response(), status_code=outcome.http_status, headers=headers)


# ═════════════════════════════════════════════════════════════════════════════
# Account Router
# ═════════════════════════════════════════════════════════════════════════════

@account_router.get("/status")
async def account_status(request: Request, verifier: IdentityVerifier = Depends(get_verifier)):
    token = extract_bearer_token(request.headers.get("Authorization"))
    try:
        caller = await asyncio.to_thread(verifier.verify, token)
        status = await asyncio.to_thread(account_service.get_account_status, caller)
    except PipelineError as e:
        return _error_response(e)
    return status.model_dump()


@account_router.put("/api-keys")
async def update_api_keys(
    body: ApiKeysUpdateRequest,
    request: Request,
    verifier: IdentityVerifier = Depends(get_verifier),
):
    token = extract_bearer_token(request.headers.get("Authorization"))
    try:
        caller = await asyncio.to_thread(verifier.verify, token)
        updated = await asyncio.to_thread(account_service.save_api_keys, caller, body)
    except PipelineError as e:
        return _error_response(e)
    return {"success": True, "updated": updated}
