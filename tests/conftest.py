"""Shared fixtures: a throwaway SQLite database per test."""

from datetime import datetime

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.core.scheduling.calendar import DEFAULT_BUSINESS_HOURS
from app.models.database import Base, BookingMode, Practice


# Monday 19 October 2026, 08:00 practice time
NOW = datetime(2026, 10, 19, 8, 0)


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        # Writers queue on the database lock, like SERIALIZABLE in Postgres
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)


async def create_practice(session_factory, **overrides) -> Practice:
    """Insert a practice and return it (detached)."""
    values = {
        "name": "Smile Dental",
        "timezone": "Australia/Sydney",
        "sms_reply_number": "+61400000000",
        "business_hours": DEFAULT_BUSINESS_HOURS,
        "booking_mode": BookingMode.AUTO,
    }
    values.update(overrides)

    async with session_factory() as db:
        practice = Practice(**values)
        db.add(practice)
        await db.commit()
        return practice


@pytest_asyncio.fixture
async def practice(session_factory):
    return await create_practice(session_factory)
