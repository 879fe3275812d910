"""
Praxis OS Backend: Role Gate
=============================

What:  Closed Role enumeration plus the dependency that checks a caller's
       stored role against an operation's allow-list.
How:   The role is read from `user_profiles.role` through the caller-scoped
       session. Unknown strings, missing rows and unreadable rows all deny.

Role table (label, staff):

    admin                Administrator        staff
    heilpraktiker        Heilpraktiker        staff
    physiotherapeut      Physiotherapeut      staff
    praeventionstrainer  Präventionstrainer   staff
    personal_trainer     Personal Trainer     staff
    praxismanagement     Praxismanagement     -
    patient              Patient              -

Adding a Role member without a table row fails at import time.
"""

import logging
import uuid
from enum import Enum
from typing import Awaitable, Callable, FrozenSet, Iterable, NamedTuple, Optional

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.exceptions import ForbiddenError, UnauthenticatedError
from praxis.models.patient import UserProfile
from praxis.pipeline.session import CallerContext, authenticated
from praxis.services.auth_base import CallerIdentity

logger = logging.getLogger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    HEILPRAKTIKER = "heilpraktiker"
    PHYSIOTHERAPEUT = "physiotherapeut"
    PRAEVENTIONSTRAINER = "praeventionstrainer"
    PERSONAL_TRAINER = "personal_trainer"
    PRAXISMANAGEMENT = "praxismanagement"
    PATIENT = "patient"

    @classmethod
    def from_value(cls, value: Optional[str]) -> Optional["Role"]:
        """Parses a stored role string; anything unknown means no role."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None

    @property
    def label(self) -> str:
        return ROLE_TABLE[self].label

    @property
    def is_staff(self) -> bool:
        return ROLE_TABLE[self].staff


class RoleInfo(NamedTuple):
    label: str
    staff: bool


ROLE_TABLE = {
    Role.ADMIN: RoleInfo("Administrator", True),
    Role.HEILPRAKTIKER: RoleInfo("Heilpraktiker", True),
    Role.PHYSIOTHERAPEUT: RoleInfo("Physiotherapeut", True),
    Role.PRAEVENTIONSTRAINER: RoleInfo("Präventionstrainer", True),
    Role.PERSONAL_TRAINER: RoleInfo("Personal Trainer", True),
    Role.PRAXISMANAGEMENT: RoleInfo("Praxismanagement", False),
    Role.PATIENT: RoleInfo("Patient", False),
}

_unmapped = set(Role) - set(ROLE_TABLE)
if _unmapped:
    raise RuntimeError(f"Roles missing from ROLE_TABLE: {sorted(r.value for r in _unmapped)}")


# ── Named allow-lists ─────────────────────────────────────────────────────
STAFF_ROLES: FrozenSet[Role] = frozenset(role for role in Role if role.is_staff)
ADMIN_ONLY: FrozenSet[Role] = frozenset({Role.ADMIN})


async def load_role(db: AsyncSession, user_id: uuid.UUID) -> Optional[Role]:
    """Returns the caller's role, or None when it cannot be determined."""
    try:
        result = await db.execute(select(UserProfile.role).where(UserProfile.id == user_id))
        stored = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.warning("Role lookup failed for %s: %s", user_id, type(e).__name__)
        return None

    role = Role.from_value(stored)
    if stored is not None and role is None:
        logger.warning("Unknown role value %r for user %s", stored, user_id)
    return role


def require_roles(
    allowed: Iterable[Role],
    message: str = ForbiddenError.default_message,
    unauthenticated_message: str = UnauthenticatedError.default_message,
) -> Callable:
    """
    Builds the Role Gate dependency for one operation.

    Runs the Session Resolver first, so an anonymous request is a 401 and
    never reaches the role lookup.

    Args:
        allowed:                  Roles that may perform the operation.
        message:                  The operation's 403 message.
        unauthenticated_message:  The operation's 401 message.
    """
    allowed_roles = frozenset(allowed)

    async def dependency(
        ctx: CallerContext = Depends(authenticated(unauthenticated_message)),
    ) -> CallerContext:
        role = await load_role(ctx.db, ctx.caller.id)
        if role is None or role not in allowed_roles:
            logger.info(
                "Role gate denied %s (role=%s)",
                ctx.caller.id,
                role.value if role else None,
            )
            raise ForbiddenError(message)
        return ctx.with_role(role)

    return dependency


OwnershipPredicate = Callable[[AsyncSession, CallerIdentity, uuid.UUID], Awaitable[bool]]


async def ensure_owner(
    ctx: CallerContext,
    predicate: OwnershipPredicate,
    target_id: uuid.UUID,
    message: str = ForbiddenError.default_message,
) -> None:
    """
    Ownership check, evaluated after the coarse role check and after the
    target identifier has been validated. False denies with 403.
    """
    if not await predicate(ctx.db, ctx.caller, target_id):
        logger.info("Ownership denied for %s on %s", ctx.caller.id, target_id)
        raise ForbiddenError(message)
