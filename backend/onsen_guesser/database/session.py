from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Database:
    """Owns the async engine and the session factory for one application."""

    def __init__(self, url: str, timeout: float = 10.0):
        connect_args = {}
        engine_kwargs = {"pool_pre_ping": True}
        if url.startswith("sqlite"):
            # Wait for the SQLite write lock instead of failing immediately
            connect_args["timeout"] = timeout
        else:
            engine_kwargs["pool_timeout"] = timeout

        self.engine: AsyncEngine = create_async_engine(url, connect_args=connect_args, **engine_kwargs)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    async def init_db(self) -> None:
        """Create tables that do not exist yet."""
        # Register models on the metadata before creating tables
        from . import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        """Drop every table. Admin and test use only."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()
