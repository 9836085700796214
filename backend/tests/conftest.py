"""
Test Configuration — Fixtures for async DB, test client, and seeded graph.

Uses per-test transactions with SAVEPOINT/rollback so each test gets a
clean database state while sharing the same session-level schema.
"""

import uuid
from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from api.deps import get_current_user, get_db
from api.main import app
from core import config as config_module
from db.session import Base

# In-memory SQLite for tests; aiosqlite keeps a single shared connection.
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

SUPERADMIN = "auth0|superadmin"
RESELLER = "auth0|reseller"
INTERMEDIARY = "auth0|intermediary"
CLIENT = "auth0|client"
PROSPECT = "auth0|prospect"
OUTSIDER = "auth0|other-reseller"
NO_ROLE = "auth0|no-role"


@pytest.fixture(scope="session")
async def test_engine():
    """Create a test database engine and build all tables once."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; emit it ourselves.
    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_db(test_engine):
    """Create a test session wrapped in a transaction that rolls back after each test."""
    async with test_engine.connect() as conn:
        trans = await conn.begin()
        # App code commits; each commit only releases a SAVEPOINT inside our transaction.
        session = AsyncSession(bind=conn, expire_on_commit=False, join_transaction_mode="create_savepoint")

        yield session

        await session.close()
        await trans.rollback()


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Tests that tweak env-driven settings must not leak them into later tests."""
    config_module.get_settings.cache_clear()
    yield
    config_module.get_settings.cache_clear()


@pytest.fixture
def mock_user():
    """Mock authenticated user; tests switch identity by setting ``mock_user["sub"]``."""
    return {"sub": SUPERADMIN, "email": "admin@formulafinance.test"}


@pytest.fixture
async def client(test_db, mock_user):
    """Create an async test client with dependency overrides."""

    async def override_get_db():
        yield test_db

    def override_get_current_user():
        return mock_user

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def seeded_db(test_db):
    """
    Seed roles, customers and one module.

    Graph after seeding:
        reseller_co ─┬─> intermediary_co ──> prospect_co
                     └─> client_co
    client_co holds a 10-unit license with 4 used.
    """
    from db.models import Customer, CustomerAssociation, License, Module, UserRole

    now = datetime.utcnow()
    today = now.date()

    test_db.add_all(
        [
            UserRole(identity=SUPERADMIN, role="superadmin", created_at=now, updated_at=now),
            UserRole(identity=RESELLER, role="reseller", created_by=SUPERADMIN, created_at=now, updated_at=now),
            UserRole(identity=INTERMEDIARY, role="intermediary", created_by=SUPERADMIN, created_at=now, updated_at=now),
            UserRole(identity=CLIENT, role="client_basic", created_by=SUPERADMIN, created_at=now, updated_at=now),
            UserRole(identity=PROSPECT, role="client_prospect", created_by=SUPERADMIN, created_at=now, updated_at=now),
            UserRole(identity=OUTSIDER, role="reseller", created_by=SUPERADMIN, created_at=now, updated_at=now),
        ]
    )

    reseller_co = Customer(
        id=uuid.uuid4(), name="Alpha Reseller", customer_type="reseller", owner_identity=RESELLER, city="Milano", province="MI"
    )
    intermediary_co = Customer(
        id=uuid.uuid4(), name="Beta Intermediary", customer_type="intermediary", owner_identity=INTERMEDIARY
    )
    client_co = Customer(
        id=uuid.uuid4(), name="Gamma Client", customer_type="client_basic", owner_identity=CLIENT, email="gamma@example.com"
    )
    prospect_co = Customer(
        id=uuid.uuid4(), name="Delta Prospect", customer_type="client_prospect", owner_identity=PROSPECT
    )
    outsider_co = Customer(
        id=uuid.uuid4(), name="Omega Reseller", customer_type="reseller", owner_identity=OUTSIDER
    )
    disabled_co = Customer(
        id=uuid.uuid4(), name="Epsilon Intermediary", customer_type="intermediary", status="disabled"
    )
    test_db.add_all([reseller_co, intermediary_co, client_co, prospect_co, outsider_co, disabled_co])

    module = Module(name="bilancio", display_name="Analisi di Bilancio")
    test_db.add(module)
    await test_db.flush()

    test_db.add_all(
        [
            CustomerAssociation(
                parent_customer_id=reseller_co.id,
                child_customer_id=intermediary_co.id,
                association_type="reseller",
                created_by=SUPERADMIN,
            ),
            CustomerAssociation(
                parent_customer_id=reseller_co.id,
                child_customer_id=client_co.id,
                association_type="reseller",
                created_by=SUPERADMIN,
            ),
            CustomerAssociation(
                parent_customer_id=intermediary_co.id,
                child_customer_id=prospect_co.id,
                association_type="intermediary",
                created_by=SUPERADMIN,
            ),
        ]
    )

    client_license = License(
        customer_id=client_co.id,
        module_id=module.id,
        quantity_total=10,
        quantity_used=4,
        activation_date=today - timedelta(days=30),
        expiration_date=today + timedelta(days=335),
    )
    test_db.add(client_license)
    await test_db.flush()
    await test_db.commit()

    return {
        "reseller": reseller_co,
        "intermediary": intermediary_co,
        "client": client_co,
        "prospect": prospect_co,
        "outsider": outsider_co,
        "disabled": disabled_co,
        "module": module,
        "client_license": client_license,
    }
