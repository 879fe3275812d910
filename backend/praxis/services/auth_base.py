"""
Praxis OS Backend: Auth Client Interface
=========================================

What:  The caller identity type and the abstract contract for resolving an
       access token to that identity.
Why:   The Session Resolver must not care which auth provider issued the
       token; tests swap in a fake client through FastAPI's
       dependency_overrides instead of patching HTTP calls.
How:   Concrete implementations inherit from AuthClient and implement
       get_user(). SupabaseAuthClient (auth_service.py) is the default.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from praxis.pipeline.roles import Role


@dataclass(frozen=True)
class CallerIdentity:
    """
    The authenticated subject of one request.

    Resolved once per request and discarded with the response. `role` is
    None until the Role Gate has looked it up; the gate attaches it with
    with_role(), which returns a new identity.
    """

    id: uuid.UUID
    email: Optional[str] = None
    role: Optional["Role"] = None

    def with_role(self, role: "Role") -> "CallerIdentity":
        return replace(self, role=role)


class AuthClient(ABC):
    """
    Contract:
        - get_user() returns the identity behind a token, or None
        - None covers every failure: invalid/expired token, non-200 answer,
          transport error, payload without an id
        - implementations never raise for a bad token
    """

    @abstractmethod
    async def get_user(self, access_token: str) -> Optional[CallerIdentity]:
        ...

    async def close(self) -> None:
        """Releases pooled connections; called from the app lifespan."""
        return None
