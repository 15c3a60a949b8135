# db/engine.py
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker


def database_url(path_or_url: str) -> str:
    # DATABASE_PATH may be a plain sqlite file path or a full SQLAlchemy url
    if "://" in path_or_url:
        return path_or_url
    return f"sqlite+aiosqlite:///{path_or_url}"


def make_engine(path_or_url: str) -> AsyncEngine:
    return create_async_engine(database_url(path_or_url), echo=False)


def make_sessionmaker(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, expire_on_commit=False)
