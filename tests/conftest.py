"""
Shared pytest fixtures.

Uses a SQLite database file so no Postgres is required for tests.
Every table is emptied after each test: the ledger and goal settings are
singletons, so tests cannot share rows the way date-partitioned data could.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from stepstreak.db.base import Base, get_db
from stepstreak.main import app
from stepstreak.services.records import InMemoryRecordStore, SqlAlchemyRecordStore
import stepstreak.models  # noqa: F401  (registers tables on Base.metadata)

SQLITE_URL = "sqlite:///./test_stepstreak.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(params=["memory", "sql"])
def make_store(request, db):
    """Factory building a record store preloaded with records/ledger, for both backends."""
    def _make(records=None, ledger=None):
        if request.param == "memory":
            return InMemoryRecordStore(records=records, ledger=ledger)
        store = SqlAlchemyRecordStore(db)
        for record in records or []:
            store.put_record(record)
        if ledger is not None:
            store.put_ledger(ledger)
        store.commit()
        return store
    return _make
