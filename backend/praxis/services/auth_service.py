"""
Praxis OS Backend: Supabase Auth Client
========================================

What:  Resolves an access token to a CallerIdentity by asking the hosted auth
       provider (GET {SUPABASE_URL}/auth/v1/user).
Why:   The provider is the only party that can tell whether a session is
       still valid (revoked sessions, signed-out users), so the token is never
       trusted on its signature alone.
How:   One shared httpx.AsyncClient with connection pooling, created lazily
       and closed in the app lifespan. No retries: a failed resolution is a
       401 and the client (browser) decides whether to try again.
Who:   The Session Resolver, via the get_auth_client() dependency.
"""

import logging
import uuid
from typing import Optional

import httpx

from praxis.config import settings
from praxis.services.auth_base import AuthClient, CallerIdentity

logger = logging.getLogger(__name__)


class SupabaseAuthClient(AuthClient):
    """
    Auth client for the hosted Supabase project.

    Request:
        GET /auth/v1/user
        apikey: <anon key>
        Authorization: Bearer <access token>

    Response (200): {"id": "<uuid>", "email": "...", ...}
    """

    def __init__(self, base_url: Optional[str] = None, anon_key: Optional[str] = None):
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.anon_key = anon_key if anon_key is not None else settings.supabase_anon_key
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(settings.auth_timeout_seconds),
            )
        return self._client

    async def get_user(self, access_token: str) -> Optional[CallerIdentity]:
        try:
            response = await self._get_client().get(
                "/auth/v1/user",
                headers={
                    "apikey": self.anon_key,
                    "Authorization": f"Bearer {access_token}",
                },
            )
        except httpx.HTTPError as e:
            # Token never logged
            logger.warning("Auth provider request failed: %s", type(e).__name__)
            return None

        if response.status_code != 200:
            logger.debug("Auth provider rejected token with status %d", response.status_code)
            return None

        try:
            data = response.json()
        except ValueError:
            logger.warning("Auth provider returned a non-JSON body")
            return None

        if not isinstance(data, dict) or not data.get("id"):
            return None

        try:
            user_id = uuid.UUID(str(data["id"]))
        except ValueError:
            logger.warning("Auth provider returned a malformed user id")
            return None

        return CallerIdentity(id=user_id, email=data.get("email") or None)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


# Singleton instance, shared by all requests
auth_client = SupabaseAuthClient()


def get_auth_client() -> AuthClient:
    """FastAPI dependency; overridden in tests with a fake client."""
    return auth_client
