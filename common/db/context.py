"""
Database session context management.

Holds the session of the enclosing ``transaction()`` (if any) in a ContextVar so
that repositories called inside it share one session/connection, while one-off
repository calls outside a transaction acquire and release their own session.

Usage:
    # Explicit transaction - multiple ops share one session
    async with transaction():
        await repo.save(thing1)
        await repo.save(thing2)  # Same session, commits together

    @transactional
    async def create_with_quota(account_id: int):
        ...  # All DB ops share one session
"""

from contextvars import ContextVar
from functools import wraps
from typing import Optional, Callable, TypeVar, ParamSpec

from sqlalchemy.ext.asyncio import AsyncSession

# Holds the current write session (if inside a transaction)
_current_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "db_current_session", default=None
)


def get_current_session() -> Optional[AsyncSession]:
    """Get the session of the enclosing transaction, if any."""
    return _current_session.get()


def set_current_session(session: AsyncSession) -> object:
    """Set session in context. Returns a token for reset_current_session."""
    return _current_session.set(session)


def reset_current_session(token: object) -> None:
    """Reset session context using token from set_current_session."""
    _current_session.reset(token)


def in_transaction() -> bool:
    """Check if we're currently inside a transaction."""
    return get_current_session() is not None


P = ParamSpec("P")
T = TypeVar("T")


def transactional(func: Callable[P, T]) -> Callable[P, T]:
    """
    Decorator that wraps function in an explicit transaction.

    All DB operations within the decorated function share one session/connection.
    The transaction commits on success, rolls back on exception.
    """

    @wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        from common.db.scoped import transaction as tx  # noqa: PLC0415

        async with tx():
            return await func(*args, **kwargs)

    return wrapper
