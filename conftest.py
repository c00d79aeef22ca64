"""
Shared pytest fixtures.

Each test gets its own file-backed SQLite database so concurrent sessions
behave like separate connections to a real server.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DB_TYPE", "sqlite")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from erp.database.database import build_engine, init_db, get_db
from erp.main import app


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path / 'erp_test.db'}")
    init_db(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def register_user(client):
    """Factory: registers a user (optionally with a company) and returns the token payload."""
    counter = {"n": 0}

    def _register(email=None, company_name=None, password="Secreta123"):
        counter["n"] += 1
        payload = {
            "email": email or f"user{counter['n']}@printsoft.co.ke",
            "password": password,
            "first_name": "Wanjiku",
            "last_name": "Kamau",
        }
        if company_name:
            payload["company_name"] = company_name
        response = client.post("/api/auth/register", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _register


@pytest.fixture
def owner(register_user):
    data = register_user(email="owner@printsoft.co.ke", company_name="PrintSoft Ltd")
    return {
        "token": data["access_token"],
        "user_id": data["user"]["id"],
        "company_id": data["companies"][0]["company_id"],
    }


@pytest.fixture
def auth_headers(owner):
    return {
        "Authorization": f"Bearer {owner['token']}",
        "X-Company-ID": owner["company_id"],
    }


@pytest.fixture
def warehouse(client, auth_headers):
    response = client.post("/api/warehouses", json={"code": "nbo", "name": "Bodega Nairobi", "city": "Nairobi"},
                           headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def product(client, auth_headers):
    response = client.post("/api/products", json={
        "sku": "paper-a4",
        "name": "Resma papel A4",
        "unit_of_measure": "ream",
        "cost_price": "450.00",
        "selling_price": "600.00",
        "tax_rate": "16",
        "reorder_level": "10"
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def stocked_product(client, auth_headers, warehouse, product):
    """Product with 100 units in the default warehouse."""
    response = client.post("/api/stock/movements", json={
        "product_id": product["id"],
        "warehouse_id": warehouse["id"],
        "quantity": "100",
        "movement_type": "IN",
        "reference": "OPENING"
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return product
