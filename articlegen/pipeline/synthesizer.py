"""
Content Synthesizer: three variants from one video, all or nothing.

The blog article, social caption and micro-post are requested concurrently.
All three calls are joined before anything is inspected; if any of them
failed the whole synthesis fails and no partial ArticleContent is returned.
"""

import logging

from .errors import GenerationError
from .models import ArticleContent, ArticleVariant, TranscriptCorpus, VideoRecord
from .openai_client import TextGenerationClient
from .prompts import build_prompt, get_variant
from .results import first_failure, join_all

logger = logging.getLogger(__name__)

VARIANT_ORDER = (ArticleVariant.BLOG, ArticleVariant.SHORT_SOCIAL, ArticleVariant.MICRO_POST)


class ContentSynthesizer:
    def __init__(self, client: TextGenerationClient):
        self._client = client

    async def _generate(self, variant: ArticleVariant, video: VideoRecord, text: str, video_url: str) -> str:
        variant_spec = get_variant(variant)
        prompt = build_prompt(variant, video, text, video_url)
        return await self._client.complete(prompt, max_tokens=variant_spec["max_tokens"], label=variant_spec["label"])

    async def synthesize(
        self,
        video: VideoRecord,
        corpus: TranscriptCorpus,
        video_url: str,
    ) -> ArticleContent:
        text = corpus.text
        logger.info(f"Synthesizing {len(VARIANT_ORDER)} variants for {video.id} (corpus {len(text)} chars)")

        results = await join_all(
            *(self._generate(variant, video, text, video_url) for variant in VARIANT_ORDER)
        )

        failed = first_failure(results)
        if failed is not None:
            variant = next(v for v, r in zip(VARIANT_ORDER, results) if r is failed)
            error = failed.error
            reason = getattr(error, "reason", "other")
            logger.error(f"Synthesis failed on {variant.value}: {error.message}")
            raise GenerationError(
                error.message,
                reason=reason,
                details=error.details,
                variant=variant.value,
                videoInfo={"id": video.id, "title": video.title},
            )

        blog, short_social, micro_post = (result.value for result in results)
        return ArticleContent(blog=blog, short_social=short_social, micro_post=micro_post)
