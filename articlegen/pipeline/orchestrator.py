"""
ArticlePipeline: request-scoped orchestrator for POST /generate-articles.

Linear state machine, one pass, no retries, no resumption:

  start → authenticated → entitlement-checked → url-validated
        → video-resolved → transcript-resolved → content-synthesized
        → usage-recorded → article_generation_complete

Every run returns a PipelineOutcome stamped with the stage it ended in. A
failure at any stage short-circuits; nothing partial is returned.
"""

import asyncio
import logging
from typing import Callable, Optional

import httpx

from ..config import Settings
from .entitlements import EntitlementGate, EntitlementStore, UsageRecorder
from .errors import InternalError, PipelineError
from .identity import IdentityVerifier
from .models import PipelineFailure, PipelineOutcome, PipelineStage, PipelineSuccess
from .openai_client import TextGenerationClient
from .synthesizer import ContentSynthesizer
from .youtube import VideoResolver, YouTubeClient, require_video_id

logger = logging.getLogger(__name__)


class ArticlePipeline:
    """
    Usage:
        pipeline = ArticlePipeline(settings, verifier, http)
        outcome = await pipeline.run(token, video_url, request_id="abc123")
        return JSONResponse(outcome.to_response(), status_code=outcome.http_status)

    Provider clients are built per request because the API keys belong to
    the caller's user row, not to the worker.
    """

    def __init__(
        self,
        settings: Settings,
        verifier: IdentityVerifier,
        http: httpx.AsyncClient,
        store_factory: Callable = EntitlementStore,
        resolver_factory: Optional[Callable[[str], VideoResolver]] = None,
        synthesizer_factory: Optional[Callable[[str], ContentSynthesizer]] = None,
        admission: Optional[Callable[[str], None]] = None,
    ):
        self._settings = settings
        self._verifier = verifier
        self._http = http
        self._store_factory = store_factory
        self._resolver_factory = resolver_factory or self._default_resolver
        self._synthesizer_factory = synthesizer_factory or self._default_synthesizer
        self._admission = admission

    def _default_resolver(self, api_key: str) -> VideoResolver:
        return VideoResolver(YouTubeClient(self._http, api_key, self._settings.youtube_api_base))

    def _default_synthesizer(self, api_key: str) -> ContentSynthesizer:
        return ContentSynthesizer(
            TextGenerationClient(
                self._http, api_key, self._settings.openai_api_base, self._settings.openai_model
            )
        )

    @staticmethod
    def _advance(request_id: str, user_id: Optional[str], current: PipelineStage, nxt: PipelineStage) -> PipelineStage:
        logger.info(f"[{request_id}] user={user_id or '-'} {current.value} → {nxt.value}")
        return nxt

    async def run(
        self,
        token: Optional[str],
        video_url: Optional[str],
        request_id: str = "-",
    ) -> PipelineOutcome:
        stage = PipelineStage.START
        user_id = None

        try:
            # ── Identity ─────────────────────────────────────────────
            caller = await asyncio.to_thread(self._verifier.verify, token)
            user_id = caller.identity.id
            logger.info(f"[{request_id}] user={user_id} verified via {caller.strategy}")
            stage = self._advance(request_id, user_id, stage, PipelineStage.AUTHENTICATED)

            # ── Entitlement ──────────────────────────────────────────
            store = self._store_factory(caller.db)
            entitlement = await asyncio.to_thread(EntitlementGate(store).check, user_id)
            stage = self._advance(request_id, user_id, stage, PipelineStage.ENTITLEMENT_CHECKED)

            # ── URL ──────────────────────────────────────────────────
            video_id = require_video_id(video_url)
            stage = self._advance(request_id, user_id, stage, PipelineStage.URL_VALIDATED)

            # Throttle only requests that are about to call the providers
            if self._admission is not None:
                await asyncio.to_thread(self._admission, user_id)

            # ── Video + transcript ───────────────────────────────────
            resolver = self._resolver_factory(entitlement.youtube_api_key)
            video = await resolver.fetch_video(video_id)
            stage = self._advance(request_id, user_id, stage, PipelineStage.VIDEO_RESOLVED)

            corpus = await resolver.fetch_transcript(video)
            stage = self._advance(request_id, user_id, stage, PipelineStage.TRANSCRIPT_RESOLVED)

            # ── Synthesis (parallel fan-out) ─────────────────────────
            synthesizer = self._synthesizer_factory(entitlement.openai_api_key)
            articles = await synthesizer.synthesize(video, corpus, video_url.strip())
            stage = self._advance(request_id, user_id, stage, PipelineStage.CONTENT_SYNTHESIZED)

            # ── Usage (non-fatal) ────────────────────────────────────
            await asyncio.to_thread(UsageRecorder(store).record, user_id)
            stage = self._advance(request_id, user_id, stage, PipelineStage.USAGE_RECORDED)

            stage = self._advance(request_id, user_id, stage, PipelineStage.DONE)
            return PipelineSuccess(user=caller.identity, video=video, articles=articles)

        except PipelineError as e:
            return self._failure(request_id, user_id, stage, e)
        except Exception as e:
            logger.error(f"[{request_id}] Unexpected failure after {stage.value}: {e}", exc_info=True)
            return self._failure(
                request_id, user_id, stage, InternalError("Internal server error", details=str(e))
            )

    @staticmethod
    def _failure(
        request_id: str, user_id: Optional[str], reached: PipelineStage, error: PipelineError
    ) -> PipelineFailure:
        logger.error(
            f"[{request_id}] user={user_id or '-'} Pipeline terminated at {error.stage.value} "
            f"(last reached: {reached.value}): {error.message}"
        )
        return PipelineFailure(
            stage=error.stage,
            message=error.message,
            details=error.details,
            http_status=error.http_status,
            extra=error.extra,
            user_id=user_id,
        )
