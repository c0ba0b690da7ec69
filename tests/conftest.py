# tests/conftest.py
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import mandate_engine.domain  # noqa: F401
from mandate_engine.db.base import Base, enable_sqlite_savepoints
from mandate_engine.domain import Agency, Mandate, Profile, Property

CLIENT = "test-client"
TODAY = date(2025, 6, 15)


def fixed_clock() -> datetime:
    return datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(eng)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as s:
        yield s


@pytest.fixture
async def seeded(session):
    """Two owners, two agencies (one suspended), three properties for owner-1."""
    session.add_all([
        Profile(id="owner-1", client_id=CLIENT, display_name="Awa Kone"),
        Profile(id="owner-2", client_id=CLIENT, display_name="Yao Brou"),
        Agency(id="agency-1", client_id=CLIENT, agency_name="Immo Plus", city="Abidjan",
               status="active", commission_rate=Decimal("8")),
        Agency(id="agency-2", client_id=CLIENT, agency_name="Lagune Gestion", city="Abidjan",
               status="suspended", commission_rate=Decimal("12")),
        Property(id="prop-1", client_id=CLIENT, owner_id="owner-1", title="Villa Cocody",
                 city="Abidjan", monthly_rent=Decimal("300000")),
        Property(id="prop-2", client_id=CLIENT, owner_id="owner-1", title="Studio Plateau",
                 city="Abidjan", monthly_rent=Decimal("150000")),
        Property(id="prop-3", client_id=CLIENT, owner_id="owner-1", title="Duplex Bassam",
                 city="Grand-Bassam", monthly_rent=Decimal("450000")),
        Property(id="prop-9", client_id=CLIENT, owner_id="owner-2", title="Appartement Marcory",
                 city="Abidjan", monthly_rent=Decimal("200000")),
    ])
    await session.commit()
    return session


async def count_mandates(session) -> int:
    return (await session.execute(select(func.count()).select_from(Mandate))).scalar_one()
