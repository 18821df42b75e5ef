import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("HISTOGRAM_BACKEND", "memory")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("RUN_STARTUP_DDL", "false")

import itertools

import pytest
from fastapi.testclient import TestClient

from jobworth.core.metrics import metrics_registry
from jobworth.db.database import Base, SessionLocal, engine
from jobworth.dependencies import reset_process_state
from jobworth.main import app

ADMIN_TOKEN = os.environ["ADMIN_TOKEN"]

_ips = itertools.count(1)


@pytest.fixture()
def db_setup():
    # Fresh schema per test; the in-memory database is shared through StaticPool
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    reset_process_state()
    metrics_registry.reset()
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_setup):
    return TestClient(app)


@pytest.fixture()
def session(db_setup):
    with SessionLocal() as db:
        yield db


@pytest.fixture()
def client_ip():
    """A client address no other test has used."""
    n = next(_ips)
    return f"10.{n // 65536 % 256}.{n // 256 % 256}.{n % 256}"


@pytest.fixture()
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}
