import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI

from . import metrics
from .clients import create_http_client, create_redis, create_service_client
from .config import Settings, get_settings
from .pipeline import ArticlePipeline, account_router, pipeline_router
from .pipeline.identity import IdentityVerifier
from .rate_limiter import Throttle

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Article worker starting up...")
        metrics.set_gauge("start_time", time.time())

        http = create_http_client(settings)
        service_client = create_service_client(settings)
        verifier = IdentityVerifier(settings, service_client=service_client)
        throttle = Throttle(
            create_redis(settings),
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )

        app.state.settings = settings
        app.state.verifier = verifier
        app.state.throttle = throttle
        app.state.pipeline = ArticlePipeline(settings, verifier, http, admission=throttle)

        logger.info(f"Identity strategy: {verifier.strategy}; throttle backend: {throttle.backend}")
        yield
        await http.aclose()
        logger.info("Article worker shutting down...")

    app = FastAPI(title="articlegen", lifespan=lifespan)
    app.include_router(pipeline_router)
    app.include_router(account_router)

    @app.get("/health")
    def health_check():
        """Verify the worker is running and env vars are configured."""
        return {
            "status": "ok",
            "supabase_url_set": bool(settings.supabase_url),
            "anon_key_set": bool(settings.supabase_anon_key),
            "identity_strategy": "service_role" if settings.uses_service_role else "delegated",
            "redis_configured": bool(settings.redis_url),
        }

    @app.get("/metrics")
    def metrics_endpoint():
        return metrics.get_snapshot()

    return app


def run() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
