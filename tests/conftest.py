"""Shared test fixtures for all test modules."""

import contextlib
from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import receivables.models  # noqa: F401
from receivables.core import database as db_module
from receivables.core.database import Base, enable_sqlite_foreign_keys, get_db
from receivables.repositories.customer_repository import CustomerRepository
from receivables.repositories.invoice_repository import InvoiceRepository
from receivables.schemas.customer import CustomerCreate
from receivables.schemas.invoice import InvoiceCreate

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = enable_sqlite_foreign_keys(
    create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.commit()
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def client():
    """Create test client."""
    from receivables.main import app

    return TestClient(app)


@pytest.fixture
def db_session():
    """Create a database session for direct repository testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass


@pytest.fixture
def customer(db_session):
    """Create a test customer."""
    return CustomerRepository(db_session).create(
        CustomerCreate(name="Nile Pharmacy", email="accounts@nile.test")
    )


@pytest.fixture
def other_customer(db_session):
    return CustomerRepository(db_session).create(CustomerCreate(name="Delta Chemicals"))


@pytest.fixture
def make_invoice(db_session, customer):
    """Factory issuing invoices for ``customer`` (or another one)."""

    def _make(
        total: str,
        issue_date: date | None = None,
        due_date: date | None = None,
        customer_id=None,
    ):
        return InvoiceRepository(db_session).create(
            InvoiceCreate(
                customer_id=customer_id or customer.id,
                total=Decimal(total),
                issue_date=issue_date or date.today() - timedelta(days=10),
                due_date=due_date or date.today() + timedelta(days=20),
            )
        )

    return _make
