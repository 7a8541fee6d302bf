"""
Pytest configuration and fixtures for the SAL ledger tests.

Service e API girano su un database SQLite in memoria (aiosqlite),
condiviso tramite StaticPool tra le sessioni di un singolo test.
"""

import os

# Configurazione di test impostata prima di importare i moduli applicativi
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["APP_ENV"] = "testing"

import uuid
from decimal import Decimal
from types import SimpleNamespace
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cantieri.core.database import get_db
from cantieri.main import app
from cantieri.models import (
    Base,
    BaseOrder,
    BaseOrderLine,
    ConstructionSite,
    SubcontractOrder,
    SubcontractOrderLine,
    Subcontractor,
)


# ============================================================
# Fixtures per AsyncSession Mock
# ============================================================


@pytest.fixture
def mock_db():
    """Crea un mock di AsyncSession."""
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.flush = AsyncMock()
    db.delete = AsyncMock()
    return db


# ============================================================
# Fixtures per database SQLite in memoria
# ============================================================


@pytest_asyncio.fixture
async def engine():
    """Engine SQLite in memoria con lo schema completo."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Sessione database per i test dei service."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Client HTTP sull'app FastAPI, con get_db puntato al database di test."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================
# Fixtures per anagrafiche e ordini
# ============================================================


@pytest_asyncio.fixture
async def site_data(db):
    """
    Cantiere con ordine del cliente validato e un subappaltatore con ordine.

    Ordine del cliente:
        1. intestazione "Opere murarie" (codice storico TITRE)
        2. muratura, 10 m² a 100,00
    Ordine di subappalto:
        1. intonaco, 20 m² a 50,00
    """
    site = ConstructionSite(id=uuid.uuid4(), code="CH-2025-001", name="Residenza Le Querce")
    other_site = ConstructionSite(id=uuid.uuid4(), code="CH-2025-002", name="Capannone Nord")
    subcontractor = Subcontractor(id=uuid.uuid4(), name="Intonaci Rossi S.r.l.")
    idle_subcontractor = Subcontractor(id=uuid.uuid4(), name="Scavi Bianchi S.n.c.")

    base_order = BaseOrder(
        id=uuid.uuid4(),
        site_id=site.id,
        status="validated",
        lines=[
            BaseOrderLine(position=1, description="Opere murarie", kind="TITRE"),
            BaseOrderLine(
                position=2,
                article="MUR.01",
                description="Muratura in blocchi",
                kind="QP",
                unit="m²",
                unit_price=Decimal("100"),
                quantity=Decimal("10"),
            ),
        ],
    )

    subcontract_order = SubcontractOrder(
        id=uuid.uuid4(),
        site_id=site.id,
        subcontractor_id=subcontractor.id,
        lines=[
            SubcontractOrderLine(
                position=1,
                article="INT.01",
                description="Intonaco civile",
                unit="m²",
                unit_price=Decimal("50"),
                quantity=Decimal("20"),
            ),
        ],
    )

    db.add_all([site, other_site, subcontractor, idle_subcontractor])
    await db.flush()
    db.add_all([base_order, subcontract_order])
    await db.commit()

    return SimpleNamespace(
        site=site,
        other_site=other_site,
        subcontractor=subcontractor,
        idle_subcontractor=idle_subcontractor,
        base_order=base_order,
        subcontract_order=subcontract_order,
    )
