"""
Configuración de fixtures para pytest.

Base SQLite en memoria (aiosqlite) por test y un catalogo remoto falso
en memoria que reemplaza a WooCommerce.
"""
import os

# Las settings y el engine global se crean al importar el paquete
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import catalog_mirror.infrastructure.database  # noqa: F401
from catalog_mirror.application.services.sync_run_registry import SyncRunRegistry
from catalog_mirror.core.config import settings
from catalog_mirror.infrastructure.database.models import OrganizationModel
from catalog_mirror.infrastructure.database.session import Base

from tests.fakes import Clock, FakeRemoteCatalog, ORG_ID, OTHER_ORG_ID


# URL de base de datos de prueba
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(autouse=True)
def clean_run_registry():
    """Limpia el registro de corridas antes y despues de cada test."""
    SyncRunRegistry.clear()
    yield
    SyncRunRegistry.clear()


@pytest.fixture(autouse=True)
def no_sync_delays(monkeypatch):
    """Sin esperas entre lotes ni paginas en tests."""
    monkeypatch.setattr(settings, "SYNC_PULL_CHUNK_DELAY_S", 0.0)
    monkeypatch.setattr(settings, "REMOTE_PAGE_DELAY_S", 0.0)


@pytest.fixture(scope="function")
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Engine en memoria compartido por todas las sesiones del test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sesión de base de datos para el test."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def remote() -> FakeRemoteCatalog:
    return FakeRemoteCatalog()


async def _create_org(db: AsyncSession, org_id: str) -> OrganizationModel:
    org = OrganizationModel(
        id=org_id,
        name=org_id.upper(),
        settings={
            "woocommerce_url": f"https://{org_id}.example.com",
            "woocommerce_consumer_key": "ck_test_1234",
            "woocommerce_consumer_secret": "cs_test",
            "webhook_secret": "whsec",
        },
    )
    db.add(org)
    await db.commit()
    return org


@pytest.fixture
async def organization(db_session) -> OrganizationModel:
    """Organizacion con integracion WooCommerce completa."""
    return await _create_org(db_session, ORG_ID)


@pytest.fixture
async def other_organization(db_session) -> OrganizationModel:
    return await _create_org(db_session, OTHER_ORG_ID)


@pytest.fixture
def clock(monkeypatch) -> Clock:
    """Congela utc_now en la cola (casos de uso y repositorio)."""
    fake = Clock(datetime.now(timezone.utc))
    monkeypatch.setattr("catalog_mirror.application.use_cases.queue_use_cases.utc_now", fake)
    monkeypatch.setattr(
        "catalog_mirror.infrastructure.repositories.sync_queue_repository.utc_now", fake
    )
    return fake
