import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SHOPIFY_API_SECRET", "test-secret")
os.environ.setdefault("SHOPIFY_API_KEY", "test-api-key")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from oos_autopilot.database.connection import Base
from oos_autopilot.models import activity_log, shop_settings  # noqa: F401
from oos_autopilot.services.store import RunStateStore

from fakes import FakeCatalogGateway

TEST_DB_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DB_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# pysqlite does not emit BEGIN itself, so the per-test rollback would not
# undo SAVEPOINT-committed writes; take over transaction control explicitly.
@event.listens_for(engine, "connect")
def _disable_pysqlite_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


@pytest.fixture(scope="session", autouse=True)
def create_test_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def store():
    connection = engine.connect()
    trans = connection.begin()
    session_factory = sessionmaker(
        autocommit=False, autoflush=False, bind=connection, join_transaction_mode="create_savepoint"
    )
    try:
        yield RunStateStore(session_factory)
    finally:
        trans.rollback()
        connection.close()


@pytest.fixture()
def gateway():
    return FakeCatalogGateway()
