"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real one. Tables are created before each test and dropped after.
"""

import os
import threading
from contextlib import contextmanager

# Must be set before the application modules build their engine.
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from points_ledger.config import get_settings
from points_ledger.main import app
from points_ledger.models import Base
from points_ledger.models.base import get_db
from points_ledger.models.enums import ShopCategory, SourceKind
from points_ledger.schemas.ledger import TransactionInput
from points_ledger.schemas.shop import ShopItemCreate
from points_ledger.schemas.student import StudentCreate
from points_ledger.services.catalog_service import CatalogService
from points_ledger.services.ledger_service import LedgerService
from points_ledger.services.locks import registry
from points_ledger.services.student_service import StudentService


TEST_DATABASE_URL = "sqlite:///./test.db"

# check_same_thread=False lets the race tests use one
# session per worker thread.
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 15},
)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
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
def session_factory():
    """Sessions for worker threads; each thread must close its own."""
    return TestSessionLocal


@pytest.fixture
def short_lock_timeout(monkeypatch):
    """Give up on a held lock quickly and retry once without delay."""
    settings = get_settings()
    monkeypatch.setattr(settings, "LOCK_TIMEOUT_SECONDS", 0.05)
    monkeypatch.setattr(settings, "BUSY_RETRY_ATTEMPTS", 2)
    monkeypatch.setattr(settings, "BUSY_RETRY_BASE_DELAY", 0)
    return settings


@pytest.fixture
def client(db_session):
    """
    Provide a test client bound to the test database.

    The get_db dependency is overridden so the app uses the
    test session instead of the configured database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- Helpers to reduce repetition ---

def make_student(db, email="student@college.test", name="Test Student"):
    """Enroll a student, commit, and return it."""
    student = StudentService(db).create_student(StudentCreate(
        full_name=name, email=email, group_name="IS-21",
    ))
    db.commit()
    return student


def make_item(db, cost=100, stock=None, name="Hoodie",
              category=ShopCategory.CLOTHING, popularity=50):
    """Add a catalog item, commit, and return it."""
    item = CatalogService(db).create_item(ShopItemCreate(
        name=name,
        cost=cost,
        category=category,
        stock=stock,
        popularity=popularity,
    ))
    db.commit()
    return item


def grant(db, student_id, amount, key="seed"):
    """Credit points to a student through a manual adjustment."""
    return LedgerService(db).record(TransactionInput(
        student_id=student_id,
        source_kind=SourceKind.MANUAL_ADJUSTMENT,
        source_event_id=key,
        amount=amount,
        description="Test credit",
    ))


@contextmanager
def held_by_other_thread(keys):
    """Hold the given lock keys from a background thread."""
    acquired = threading.Event()
    done = threading.Event()

    def holder():
        with registry.hold(keys, timeout=5):
            acquired.set()
            done.wait(timeout=30)

    thread = threading.Thread(target=holder)
    thread.start()
    acquired.wait(timeout=5)
    try:
        yield
    finally:
        done.set()
        thread.join(timeout=5)
