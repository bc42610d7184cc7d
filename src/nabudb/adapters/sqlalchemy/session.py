"""
Request-scoped storage clients.

A ``SessionManager`` is created once per engine at startup; each request then
takes a client bound to its own session via ``async with manager.client()``.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from sqlalchemy.orm import sessionmaker

from nabudb.adapters.sqlalchemy.client import SQLAlchemyStorageClient


class SessionManager:
    """Opens one session per ``client()`` block, for sync or async engines."""

    def __init__(
        self,
        engine: Engine | AsyncEngine,
        models: list[type],
        session_factory: sessionmaker | async_sessionmaker | None = None,
    ) -> None:
        self.engine = engine
        self.models = models
        self.is_async = isinstance(engine, AsyncEngine)

        # Rows handed back to callers must stay readable after commit.
        factory = async_sessionmaker if self.is_async else sessionmaker
        self._session_factory = session_factory or factory(engine, expire_on_commit=False)

    @asynccontextmanager
    async def client(self) -> AsyncIterator[SQLAlchemyStorageClient]:
        """Yield a client on a fresh session; uncommitted work is discarded on exit."""
        session = self._session_factory()
        try:
            yield SQLAlchemyStorageClient(session, self.models)
        finally:
            if self.is_async:
                await session.close()
            else:
                session.close()
