"""Async SQLAlchemy engine, session factory, and the ``get_db`` dependency."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.config import get_settings

engine = create_async_engine(
    get_settings().database_url,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

POST_COMMIT_HOOKS = "post_commit_hooks"


def on_commit(session: AsyncSession, hook: Callable[[], Awaitable[None]]) -> None:
    """Queue ``hook`` to run after the session's transaction commits; discarded on rollback."""
    session.info.setdefault(POST_COMMIT_HOOKS, []).append(hook)


async def run_post_commit_hooks(session: AsyncSession) -> None:
    hooks = session.info.pop(POST_COMMIT_HOOKS, [])
    for hook in hooks:
        await hook()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield a session per request; commit on success, roll back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            session.info.pop(POST_COMMIT_HOOKS, None)
            await session.rollback()
            raise
        await run_post_commit_hooks(session)
