# app/core/db.py
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from app.core.config import settings


def make_engine(url: str) -> AsyncEngine:
    if url.startswith("sqlite"):
        # aiosqlite no acepta las opciones de pool
        return create_async_engine(url, echo=False)
    return create_async_engine(url, echo=False, pool_pre_ping=True, pool_recycle=3600)


engine = make_engine(settings.async_database_url)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


class Base(DeclarativeBase):
    pass


async def create_all(bind: AsyncEngine | None = None) -> None:
    """Crea las tablas sin alembic (dev/tests)."""
    import app.models  # noqa: F401  registra los modelos en Base.metadata

    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with SessionLocal() as session:
        yield session
