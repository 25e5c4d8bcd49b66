"""
Shared test fixtures.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PROMETHEUS_ENABLED", "false")

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from compliance_engine.models import tables  # noqa: F401  (register mappers)
from compliance_engine.models.database import Base
from compliance_engine.schemas.audit import ActorContext


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite engine with working SAVEPOINT support."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}")

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN.
    # WAL lets a second session write while another holds a read transaction.
    @event.listens_for(engine.sync_engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def actor():
    return ActorContext(
        user_id="auditor-1",
        role="reviewer",
        ip_address="10.0.0.5",
        user_agent="pytest",
        session_id="sess-1",
    )


@pytest.fixture
def sample_invoice_text():
    """Invoice text that hits all five entity categories."""
    return (
        "Invoice from Acme Holdings Inc dated 15/03/2024 for $150,000.00. "
        "Remit to Account: 123456789012. EIN: 12-3456789."
    )


@pytest.fixture
def sample_weekend_text():
    """Round amount on a Saturday with a description."""
    return "Payment of $5,000 on 16/03/2024 to Globex Corp for consulting services"
