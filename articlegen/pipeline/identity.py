"""
Identity Verifier: resolve a bearer token to a Supabase user.

Two strategies, picked from configuration:
  - service_role: verify the JWT with the elevated service-role client
  - delegated:    no elevated key available; ask Supabase Auth using only the
                  caller's own token (anon key + caller Authorization header)

The verifier also hands back the database client the rest of the request
should use, since in delegated mode reads must run under the caller's token.
Delegated clients are reused per token (see clients.ScopedClientCache).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from supabase import AuthError, Client

from ..clients import ScopedClientCache, create_user_scoped_client
from ..config import Settings
from .errors import AuthenticationError
from .models import UserIdentity

logger = logging.getLogger(__name__)

AUTH_BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization_header: Optional[str]) -> Optional[str]:
    if not authorization_header:
        return None
    if not authorization_header.startswith(AUTH_BEARER_PREFIX):
        return None
    return authorization_header[len(AUTH_BEARER_PREFIX):].strip() or None


@dataclass
class VerifiedCaller:
    identity: UserIdentity
    db: Client
    strategy: str


class IdentityVerifier:
    def __init__(
        self,
        settings: Settings,
        service_client: Optional[Client] = None,
        client_factory: Callable[[Settings, str], Client] = create_user_scoped_client,
    ):
        self._settings = settings
        self._service_client = service_client
        self._scoped_clients = ScopedClientCache(settings, client_factory)

    @property
    def strategy(self) -> str:
        return "service_role" if self._service_client is not None else "delegated"

    def verify(self, token: Optional[str]) -> VerifiedCaller:
        if not token:
            raise AuthenticationError("Authorization header is required", details="Missing bearer token")

        if self._service_client is not None:
            client = self._service_client
        else:
            try:
                client = self._scoped_clients.get(token)
            except RuntimeError as e:
                raise AuthenticationError("Authentication is not configured", details=str(e)) from e

        try:
            response = client.auth.get_user(token)
        except AuthError as e:
            logger.warning(f"Token rejected by identity provider ({self.strategy}): {e}")
            self._scoped_clients.discard(token)
            raise AuthenticationError("Authentication required", details=str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"Identity provider unreachable ({self.strategy}): {e}")
            raise AuthenticationError("Could not verify credentials", details=str(e)) from e

        user = getattr(response, "user", None)
        if user is None:
            self._scoped_clients.discard(token)
            raise AuthenticationError("Authentication required", details="Could not resolve a user for this token")

        logger.info(f"Authenticated user {user.id} via {self.strategy}")
        return VerifiedCaller(
            identity=UserIdentity(id=str(user.id), email=getattr(user, "email", None)),
            db=client,
            strategy=self.strategy,
        )
