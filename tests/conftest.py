"""
Pytest fixtures for the back office tests.

Each test gets its own file-backed SQLite database so that threaded
tests can open independent connections against it.
"""
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from backoffice.config import settings
from backoffice.database import Base, connect_args_for, get_db
from backoffice.main import app
from backoffice.models.product import Product
from backoffice.models.stock import MovementKind
from backoffice.services import ledger
from backoffice.utils.tokenJWT import create_access_token
import backoffice.models  # noqa: F401


@pytest.fixture(autouse=True)
def fast_retries(monkeypatch):
    """Keep retry backoff short and generous enough for threaded tests."""
    monkeypatch.setattr(settings, "RETRY_ATTEMPTS", 25)
    monkeypatch.setattr(settings, "RETRY_BACKOFF_SECONDS", 0.01)


@pytest.fixture(scope='function')
def engine(tmp_path):
    url = f"sqlite:///{tmp_path / 'backoffice_test.db'}"
    engine = create_engine(url, connect_args=connect_args_for(url))
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope='function')
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope='function')
def db(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(scope='function')
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(scope='function')
def products(db):
    """Sample catalog without any stock."""
    rows = [
        Product(sku="s1", name="TMT Bar - Grade 550D", category="steel", price=Decimal("65000"), unit="Ton"),
        Product(sku="s2", name="MS Square Pipes", category="steel", price=Decimal("58"), unit="Kg"),
        Product(sku="c1", name="UltraTech OPC 53 Grade", category="cement", price=Decimal("420"), unit="Bag"),
    ]
    db.add_all(rows)
    db.commit()
    return {p.sku: p for p in rows}


@pytest.fixture(scope='function')
def stocked(db, products):
    """Sample catalog with 20 units of every product."""
    for sku in products:
        ledger.apply_movement(db, sku, MovementKind.STOCK_IN, 20, "tester")
    return products


def auth_headers(role: str, sub: str = "user-1") -> dict:
    token = create_access_token({"sub": sub, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers():
    return auth_headers("admin", sub="admin-1")


@pytest.fixture
def staff_headers():
    return auth_headers("staff", sub="staff-1")


@pytest.fixture
def customer_headers():
    return auth_headers("customer", sub="customer-1")
