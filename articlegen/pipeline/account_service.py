"""
Account Service: usage status and stored API keys for the caller.

Server-managed credentials: keys live on the caller's `users` row and are
only ever written here and read by the Entitlement Gate. They are never
returned to the client.
"""

import logging

from ..config import FREE_USAGE_LIMIT
from .entitlements import EntitlementStore, missing_keys
from .errors import PipelineError
from .identity import VerifiedCaller
from .models import AccountStatusResponse, ApiKeysUpdateRequest, PipelineStage

logger = logging.getLogger(__name__)


class EmptyUpdateError(PipelineError):
    stage = PipelineStage.MISSING_CREDENTIALS
    http_status = 400


def get_account_status(caller: VerifiedCaller) -> AccountStatusResponse:
    entitlement = EntitlementStore(caller.db).fetch(caller.identity.id)
    missing = missing_keys(entitlement)

    remaining = None
    if not entitlement.is_paid:
        remaining = max(0, FREE_USAGE_LIMIT - entitlement.used_count)

    return AccountStatusResponse(
        used_count=entitlement.used_count,
        is_paid=entitlement.is_paid,
        max_free_count=FREE_USAGE_LIMIT,
        remaining_free=remaining,
        has_openai_key=not missing["openai"],
        has_youtube_key=not missing["youtube"],
    )


def save_api_keys(caller: VerifiedCaller, request: ApiKeysUpdateRequest) -> list[str]:
    """Write only the keys that were supplied. Returns the updated column names."""
    fields = {}
    for column in ("openai_api_key", "youtube_api_key"):
        value = getattr(request, column)
        if value is not None and value.strip():
            fields[column] = value.strip()

    if not fields:
        raise EmptyUpdateError("No API keys provided", details="Send openai_api_key and/or youtube_api_key")

    EntitlementStore(caller.db).update_api_keys(caller.identity.id, fields)
    logger.info(f"Updated {', '.join(sorted(fields))} for user {caller.identity.id}")
    return sorted(fields)
