"""
Shared test fixtures.

Sets up an isolated test database so tests never touch
the real database. Each test gets a fresh session that
rolls back after the test, so no test data persists.
"""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from treasury_ledger.main import app
from treasury_ledger.context import TenantContext
from treasury_ledger.models.base import Base, get_db
from treasury_ledger.models.enums import AccountKind
from treasury_ledger.schemas.account import AccountCreate
from treasury_ledger.services.account_service import TreasuryAccountService


# SQLite for tests: no external database needed.
TEST_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)

TENANT_ID = "tenant-1"
BRANCH_ID = "branch-1"


@pytest.fixture(autouse=True)
def setup_database():
    """
    Create all tables before each test, drop them after.

    autouse=True means every test gets this automatically.
    """
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def context():
    return TenantContext(tenant_id=TENANT_ID, branch_id=BRANCH_ID)


@pytest.fixture
def make_account(db_session, context):
    """Factory for treasury accounts in the default tenant branch."""
    def _make(
        name="Main Bank",
        initial_balance="0",
        currency="SAR",
        kind=AccountKind.BANK,
        ctx=None,
    ):
        service = TreasuryAccountService(db_session, ctx or context)
        account = service.create_account(AccountCreate(
            name=name,
            kind=kind,
            currency=currency,
            initial_balance=Decimal(initial_balance),
        ))
        db_session.commit()
        return account
    return _make


@pytest.fixture
def headers():
    return {"X-Tenant-ID": TENANT_ID, "X-Branch-ID": BRANCH_ID}


@pytest.fixture
def client(db_session):
    """
    Provide a test client with the test database.

    We override the get_db dependency so the FastAPI app
    uses our test session instead of the real database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
