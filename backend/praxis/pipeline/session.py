"""
Praxis OS Backend: Session Resolver
====================================

What:  Turns the request's credentials into a CallerIdentity, or stops the
       request with 401 before anything else runs.
How:   The access token is taken from the Authorization header or from the
       auth-session cookie and resolved through the injected AuthClient.
       On success the request's session is scoped to the caller.
Who:   Declared in route signatures: `ctx: CallerContext = Depends(authenticated())`.

Cookie formats written by the auth provider's SSR helpers:
    sb-<ref>-auth-token            single cookie
    sb-<ref>-auth-token.0, .1 ...  value split into chunks, joined in order

    Value: raw JSON session ({"access_token": ...}), the same JSON prefixed
    with "base64-" and base64url-encoded, a legacy JSON array whose first
    element is the token, or a bare token.
"""

import base64
import binascii
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.config import settings
from praxis.database import apply_caller_scope, get_db_session
from praxis.exceptions import ConfigurationError, UnauthenticatedError
from praxis.services.auth_base import AuthClient, CallerIdentity
from praxis.services.auth_service import get_auth_client

logger = logging.getLogger(__name__)

BASE64_PREFIX = "base64-"

# Upper bound on cookie chunks; the SSR helpers never write more than a few
MAX_COOKIE_CHUNKS = 20


@dataclass(frozen=True)
class CallerContext:
    """
    What the pipeline hands to a handler: who is calling, and the session
    that row-level security evaluates against that caller.
    """

    caller: CallerIdentity
    db: AsyncSession

    def with_role(self, role) -> "CallerContext":
        return CallerContext(caller=self.caller.with_role(role), db=self.db)


# ── Token extraction ──────────────────────────────────────────────────────
def _read_session_cookie(request: Request, name: str) -> Optional[str]:
    if name in request.cookies:
        return request.cookies[name]

    chunks = []
    for index in range(MAX_COOKIE_CHUNKS):
        chunk = request.cookies.get(f"{name}.{index}")
        if chunk is None:
            break
        chunks.append(chunk)
    return "".join(chunks) or None


def _decode_base64url(value: str) -> Optional[str]:
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8")
    except (binascii.Error, ValueError):
        return None


def _token_from_cookie_value(value: str) -> Optional[str]:
    if value.startswith(BASE64_PREFIX):
        decoded = _decode_base64url(value[len(BASE64_PREFIX):])
        if decoded is None:
            return None
        value = decoded

    if not value.startswith(("{", "[")):
        return value or None

    try:
        session: Any = json.loads(value)
    except ValueError:
        return None

    if isinstance(session, dict):
        token = session.get("access_token")
    elif isinstance(session, list) and session:
        token = session[0]
    else:
        token = None
    return token if isinstance(token, str) and token else None


def extract_access_token(request: Request, cookie_name: Optional[str] = None) -> Optional[str]:
    """
    Returns the caller's access token, or None when the request carries none.

    The Authorization header wins over the cookie.
    """
    header = request.headers.get("authorization", "")
    scheme, _, credentials = header.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    raw = _read_session_cookie(request, cookie_name or settings.resolved_auth_cookie_name)
    if raw is None:
        return None
    return _token_from_cookie_value(raw)


async def resolve_caller(request: Request, auth_client: AuthClient) -> Optional[CallerIdentity]:
    token = extract_access_token(request)
    if token is None:
        return None
    return await auth_client.get_user(token)


# ── Dependencies ──────────────────────────────────────────────────────────
def authenticated(message: str = UnauthenticatedError.default_message, scoped: bool = True) -> Callable:
    """
    Builds the Session Resolver dependency for one operation.

    Args:
        message: The operation's 401 message.
        scoped:  False keeps the session privileged, for operations on rows
                 the caller cannot see yet (invite completion).

    Raises UnauthenticatedError without touching the database when no
    identity resolves; otherwise scopes the request's session to the caller
    and returns a CallerContext.
    """

    async def dependency(
        request: Request,
        db: AsyncSession = Depends(get_db_session),
        auth_client: AuthClient = Depends(get_auth_client),
    ) -> CallerContext:
        caller = await resolve_caller(request, auth_client)
        if caller is None:
            raise UnauthenticatedError(message)

        # Read by the access log middleware
        request.state.caller_id = str(caller.id)

        if scoped:
            await apply_caller_scope(db, caller)
        return CallerContext(caller=caller, db=db)

    return dependency


def require_shared_secret(*, allow_bearer: bool = False) -> Callable:
    """
    Builds the guard for server-to-server endpoints (push dispatch, cron).

    The secret travels in `x-cron-secret`; with allow_bearer the scheduler's
    `Authorization: Bearer <secret>` is accepted too. An unset CRON_SECRET is
    a configuration error (500), never an open endpoint.
    """

    async def dependency(request: Request) -> None:
        secret = settings.cron_secret
        if not secret:
            raise ConfigurationError(context={"setting": "CRON_SECRET"})

        candidates = [request.headers.get("x-cron-secret", "")]
        if allow_bearer:
            scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
            if scheme.lower() == "bearer":
                candidates.append(credentials.strip())

        expected = secret.encode("utf-8")
        if not any(c and hmac.compare_digest(c.encode("utf-8"), expected) for c in candidates):
            raise UnauthenticatedError()

    return dependency
