"""
Praxis OS Backend: Database Session Management
===============================================

What:  Async SQLAlchemy engine, session factory, FastAPI session dependency,
       and the helper that scopes a session to the calling user.
How:   One engine with a connection pool is created at import. Each request
       gets its own session that commits on success and rolls back on error.

Two kinds of sessions are handed to the data operations:

    privileged      get_db_session() as is. Connects with the configured
                    database role, which bypasses row-level security. Used for
                    pre-authentication lookups (invite tokens) and
                    server-to-server operations (push dispatch, cron).

    caller-scoped   the same session after apply_caller_scope(). On PostgreSQL
                    this switches to the `authenticated` role and publishes the
                    caller's claims in `request.jwt.claims`, exactly what the
                    store's RLS policies evaluate via auth.uid().
"""

import json
import logging
from typing import TYPE_CHECKING, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from praxis.config import settings

if TYPE_CHECKING:
    from praxis.services.auth_base import CallerIdentity

logger = logging.getLogger(__name__)


# ── Engine Configuration ──────────────────────────────────────────────────
engine = create_async_engine(
    settings.database_url,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=settings.db_pool_pre_ping,
    pool_recycle=3600,
    echo=settings.log_level == "DEBUG",
)

# expire_on_commit=False: returned ORM objects stay readable after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all ORM models mapped onto the hosted database's tables."""
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides one database session per request.

    Commits when the handler returns normally, rolls back when it raises,
    and always returns the connection to the pool. Opening the session does
    not touch the database; the first statement does.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def _is_postgres(session: AsyncSession) -> bool:
    bind = getattr(session, "bind", None)
    dialect = getattr(bind, "dialect", None)
    return getattr(dialect, "name", None) == "postgresql"


async def apply_caller_scope(session: AsyncSession, caller: "CallerIdentity") -> None:
    """
    Make row-level security evaluate against `caller` for this transaction.

    Both settings are transaction-local (`SET LOCAL`, `set_config(..., true)`)
    and vanish when the request's transaction ends, so a pooled connection
    never leaks one caller's identity into the next request.
    """
    if not settings.db_apply_rls_claims or not _is_postgres(session):
        return

    claims = json.dumps({"sub": str(caller.id), "email": caller.email, "role": "authenticated"})
    await session.execute(
        text("select set_config('request.jwt.claims', :claims, true)"),
        {"claims": claims},
    )
    await session.execute(text("set local role authenticated"))
    logger.debug("Session scoped to caller %s", caller.id)


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """Closes all pooled connections; called from the lifespan on shutdown."""
    await engine.dispose()
