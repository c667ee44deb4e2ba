import os

# cheap hashes for the test run; must be set before security is imported
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret")

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import get_db, init_db
from main import app
from repositories import AdminRegistry

PASSWORD = "longenough1"


@pytest.fixture
def db():
    database = mongomock.MongoClient().storefront_test
    init_db(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def register(client):
    def _register(email, password=PASSWORD, **fields):
        body = {"first_name": "Ada", "last_name": "Lovelace", "email": email, "password": password}
        body.update(fields)
        res = client.post("/api/register", json=body)
        assert res.status_code == 201, res.json()
        return res.json()["userId"]
    return _register


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        res = client.post("/api/login", json={"email": email, "password": password})
        assert res.status_code == 200, res.json()
        return {"Authorization": f"Bearer {res.json()['token']}"}
    return _login


@pytest.fixture
def customer(register, login):
    user_id = register("a@x.com")
    return {"id": user_id, "headers": login("a@x.com")}


@pytest.fixture
def admin(db, register, login):
    user_id = register("boss@shop.com", first_name="Grace")
    AdminRegistry(db).grant(user_id)
    return {"id": user_id, "headers": login("boss@shop.com")}
