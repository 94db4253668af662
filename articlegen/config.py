"""
Environment-driven settings for the article worker.

Values come from the process environment; a local `.env` is loaded first so
development setups behave like the deployed container.
"""

import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Fixed policy, not read from the environment
FREE_USAGE_LIMIT = 3


class Settings(BaseModel):
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: Optional[str] = None

    openai_api_base: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    youtube_api_base: str = "https://www.googleapis.com/youtube/v3"
    external_timeout_seconds: float = 60.0

    redis_url: Optional[str] = None
    rate_limit_max_requests: int = 5
    rate_limit_window_seconds: int = 3600

    log_level: str = "INFO"
    port: int = 8080

    @property
    def uses_service_role(self) -> bool:
        return bool(self.supabase_service_role_key)


def load_settings() -> Settings:
    """Build Settings from the environment (after loading `.env`)."""
    load_dotenv()
    env = os.environ
    return Settings(
        supabase_url=env.get("SUPABASE_URL", ""),
        supabase_anon_key=env.get("SUPABASE_ANON_KEY", ""),
        supabase_service_role_key=env.get("SUPABASE_SERVICE_ROLE_KEY") or None,
        openai_api_base=env.get("OPENAI_API_BASE", "https://api.openai.com/v1"),
        openai_model=env.get("OPENAI_MODEL", "gpt-4o-mini"),
        youtube_api_base=env.get("YOUTUBE_API_BASE", "https://www.googleapis.com/youtube/v3"),
        external_timeout_seconds=float(env.get("EXTERNAL_TIMEOUT_SECONDS", "60")),
        redis_url=env.get("REDIS_URL") or None,
        rate_limit_max_requests=int(env.get("RATE_LIMIT_MAX_REQUESTS", "5")),
        rate_limit_window_seconds=int(env.get("RATE_LIMIT_WINDOW_SECONDS", "3600")),
        log_level=env.get("LOG_LEVEL", "INFO"),
        port=int(env.get("PORT", "8080")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
