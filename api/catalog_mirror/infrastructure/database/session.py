"""
Engine, fabrica de sesiones y ciclo de vida de la base de datos.

- API: `get_db` como dependencia de FastAPI (una sesion por request)
- Scripts y tareas en segundo plano: `session_scope()`
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Dict

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from catalog_mirror.core.config import settings


Base = declarative_base()


def _engine_kwargs() -> Dict[str, Any]:
    """PostgreSQL con pool y pre-ping; SQLite sin pool y accesible desde varios hilos."""
    kwargs: Dict[str, Any] = {"echo": settings.DEBUG}
    if settings.is_sqlite:
        kwargs["connect_args"] = {"check_same_thread": False}
    else:
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return kwargs


engine = create_async_engine(settings.effective_database_url, **_engine_kwargs())

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """
    Sesion con commit al salir y rollback si algo falla.

    Los casos de uso ya confirman su propio trabajo; el commit final
    cubre lo que el llamador haya hecho directamente sobre repositorios.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependencia de FastAPI: una sesion por request."""
    async with session_scope() as session:
        yield session


async def init_db() -> None:
    """Crea las tablas que falten (Alembic sigue siendo la fuente de migraciones)."""
    # Registra los modelos en Base.metadata
    import catalog_mirror.infrastructure.database  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
