"""
Constructors for the external clients the worker talks to.

Clients are built explicitly and handed to the pipeline components; the app
keeps the long-lived ones on `app.state` (see main.lifespan) and routes pull
them out through FastAPI dependencies.
"""

import hashlib
import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

import httpx
from supabase import Client, ClientOptions, create_client

from .config import Settings

logger = logging.getLogger(__name__)


def create_service_client(settings: Settings) -> Optional[Client]:
    """Supabase client using the service role key, or None when not configured."""
    if not settings.supabase_url or not settings.supabase_service_role_key:
        return None
    return create_client(settings.supabase_url, settings.supabase_service_role_key)


def create_user_scoped_client(settings: Settings, access_token: str) -> Client:
    """
    Supabase client that acts with the caller's own token.

    Every auth and PostgREST call made through it carries the caller's bearer
    credential, so row-level security applies as it would in the browser.
    """
    if not settings.supabase_url or not settings.supabase_anon_key:
        raise RuntimeError("SUPABASE_URL and SUPABASE_ANON_KEY must be set")
    options = ClientOptions(headers={"Authorization": f"Bearer {access_token}"})
    return create_client(settings.supabase_url, settings.supabase_anon_key, options=options)


SCOPED_CLIENT_TTL_SECONDS = 3600  # Supabase default access-token lifetime
MAX_SCOPED_CLIENTS = 256


class ScopedClientCache:
    """
    Caller-scoped Supabase clients, one per access token, reused until the
    token would have expired. Bounded: the least recently used entry is
    dropped once MAX_SCOPED_CLIENTS is exceeded.
    """

    def __init__(
        self,
        settings: Settings,
        factory: Callable[[Settings, str], Client] = create_user_scoped_client,
        ttl_seconds: float = SCOPED_CLIENT_TTL_SECONDS,
        max_entries: int = MAX_SCOPED_CLIENTS,
    ):
        self._settings = settings
        self._factory = factory
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._clients: OrderedDict = OrderedDict()  # sha256(token) → (client, expires_at)

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)

    def get(self, access_token: str) -> Client:
        key = hashlib.sha256(access_token.encode()).hexdigest()
        now = time.monotonic()

        with self._lock:
            entry = self._clients.get(key)
            if entry is not None and entry[1] > now:
                self._clients.move_to_end(key)
                return entry[0]

        client = self._factory(self._settings, access_token)

        with self._lock:
            self._clients[key] = (client, now + self._ttl)
            self._clients.move_to_end(key)
            while len(self._clients) > self._max_entries:
                self._clients.popitem(last=False)
        return client

    def discard(self, access_token: str) -> None:
        key = hashlib.sha256(access_token.encode()).hexdigest()
        with self._lock:
            self._clients.pop(key, None)


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared async HTTP client with the per-call timeout applied."""
    return httpx.AsyncClient(timeout=settings.external_timeout_seconds)


def create_redis(settings: Settings):
    """Get a Redis client. Returns None if Redis is not configured or unreachable."""
    if not settings.redis_url:
        return None

    import redis

    client = redis.from_url(settings.redis_url, decode_responses=False)
    try:
        client.ping()
        logger.info(f"Redis connected: {settings.redis_url[:30]}...")
    except redis.RedisError as e:
        logger.warning(f"Redis connection failed: {e}; falling back to in-memory limiter")
        return None
    return client
