"""
Entitlement Gate and Usage Recorder, backed by the Supabase `users` table.

Quota is a joint predicate: a caller is denied only when they are on the free
plan AND have already used FREE_USAGE_LIMIT generations. The usage counter is
bumped by a single server-side RPC (`increment_used_count`) so concurrent
requests from the same user cannot lose updates.
"""

import logging

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from ..config import FREE_USAGE_LIMIT
from .errors import InternalError, MissingCredentialsError, QuotaExceededError, UserRecordNotFoundError
from .models import UserEntitlement

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
ENTITLEMENT_COLUMNS = "used_count, is_paid, openai_api_key, youtube_api_key"
INCREMENT_RPC = "increment_used_count"


class EntitlementStore:
    def __init__(self, db: Client):
        self._db = db

    def fetch(self, user_id: str) -> UserEntitlement:
        """Read counter, plan flag and stored keys in one query."""
        try:
            result = (
                self._db.table(USERS_TABLE)
                .select(ENTITLEMENT_COLUMNS)
                .eq("id", user_id)
                .limit(1)
                .execute()
            )
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"User record read failed for {user_id}: {e}")
            raise InternalError("Failed to load user record", details=str(e)) from e

        rows = result.data or []
        if not rows:
            raise UserRecordNotFoundError(
                "User record not found",
                details="No entitlement row is registered for this account",
            )
        return UserEntitlement(**rows[0])

    def increment_usage(self, user_id: str) -> None:
        self._db.rpc(INCREMENT_RPC, {"user_id": user_id}).execute()

    def update_api_keys(self, user_id: str, fields: dict) -> None:
        try:
            self._db.table(USERS_TABLE).update(fields).eq("id", user_id).execute()
        except (APIError, httpx.HTTPError) as e:
            logger.error(f"API key update failed for {user_id}: {e}")
            raise InternalError("Failed to save API keys", details=str(e)) from e


class EntitlementGate:
    """Read-only allow/deny decision. Quota first, then credential presence."""

    def __init__(self, store: EntitlementStore):
        self._store = store

    def check(self, user_id: str) -> UserEntitlement:
        entitlement = self._store.fetch(user_id)
        enforce(entitlement)
        return entitlement


def is_over_quota(entitlement: UserEntitlement) -> bool:
    return not entitlement.is_paid and entitlement.used_count >= FREE_USAGE_LIMIT


def missing_keys(entitlement: UserEntitlement) -> dict[str, bool]:
    return {
        "openai": not entitlement.openai_api_key,
        "youtube": not entitlement.youtube_api_key,
    }


def enforce(entitlement: UserEntitlement) -> None:
    if is_over_quota(entitlement):
        raise QuotaExceededError(
            "Free usage limit reached",
            details="Upgrade to a paid plan to keep generating articles",
            usedCount=entitlement.used_count,
            maxCount=FREE_USAGE_LIMIT,
        )

    missing = missing_keys(entitlement)
    if any(missing.values()):
        names = [name for name, absent in (("OpenAI", missing["openai"]), ("YouTube", missing["youtube"])) if absent]
        raise MissingCredentialsError(
            "API keys are not configured",
            details=f"Set your {' and '.join(names)} API key in settings",
            missingKeys=missing,
        )


class UsageRecorder:
    """Bump used_count after a successful run. Never fails the request."""

    def __init__(self, store: EntitlementStore):
        self._store = store

    def record(self, user_id: str) -> bool:
        try:
            self._store.increment_usage(user_id)
        except Exception as e:
            logger.warning(f"Failed to increment usage count for {user_id}: {e}", exc_info=True)
            return False
        logger.info(f"Usage count incremented for {user_id}")
        return True
