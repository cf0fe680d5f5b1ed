"""
Configuración de base de datos con SQLAlchemy 2.0 async.

El engine y la fábrica de sesiones viven en un objeto `Database` que se
construye una sola vez al arrancar el proceso y se comparte por referencia.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Request
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import Settings


# ── Base declarativa ─────────────────────────────────
class Base(DeclarativeBase):
    pass


# ── Store ────────────────────────────────────────────
class Database:
    """Engine + session factory del proceso."""

    def __init__(self, url: str, *, echo: bool = False, **engine_kwargs):
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        kwargs = {"pool_pre_ping": True}
        if not settings.DATABASE_URL.startswith("sqlite"):
            kwargs["pool_size"] = settings.DATABASE_POOL_SIZE
            kwargs["max_overflow"] = settings.DATABASE_MAX_OVERFLOW
        return cls(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, **kwargs)

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as session:
            yield session

    async def create_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


# ── Unidad de trabajo atómica ────────────────────────
@asynccontextmanager
async def unit_of_work(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    Agrupa varias escrituras en una sola transacción.
    Commit si el bloque termina bien; rollback y re-raise ante cualquier error.
    """
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise


# ── Dependency: sesión de DB ─────────────────────────
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency de FastAPI que provee una sesión del `Database` de la app.
    """
    database: Database = request.app.state.db
    async with database.session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
