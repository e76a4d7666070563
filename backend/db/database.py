from collections.abc import AsyncGenerator

from fastapi_users_db_sqlalchemy.generics import GUID
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from core.config import settings

DATABASE_URL = settings.database_url

__all__ = ["Base", "GUID", "engine", "async_session_maker", "get_async_session", "create_db_and_tables", "labeled"]


class Base(DeclarativeBase):
    pass


def _engine_kwargs(url: str) -> dict:
    kwargs = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        # single shared connection so an in-memory database survives across sessions
        kwargs.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    return kwargs


engine = create_async_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables():
    import db.all_models  # noqa: F401  (registers every table on Base.metadata)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


def labeled(model, prefix: str = "", only=None):
    """Every mapped column of `model` labeled `<prefix><attr>` for flat row selects."""
    cols = []
    for attr in inspect(model).column_attrs:
        if only is not None and attr.key not in only:
            continue
        cols.append(getattr(model, attr.key).label(f"{prefix}{attr.key}"))
    return cols
