"""Pytest configuration: in-memory MongoDB and fixed settings for the API."""

import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings, get_settings
from database import ensure_indexes, get_db
from main import app

TEST_SETTINGS = Settings(jwt_secret="test-secret", database_name="storefront_test")


@pytest.fixture
def settings():
    return TEST_SETTINGS


@pytest.fixture
def db():
    """Fresh in-memory database for every test."""
    client = mongomock.MongoClient()
    db = client[TEST_SETTINGS.database_name]
    ensure_indexes(db)
    yield db
    client.close()


@pytest.fixture
def client(db, settings):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def register_and_login(client, email="a@x.com", password="pw", name="A"):
    client.post("/register", json={"email": email, "password": password, "name": name})
    response = client.post("/login", json={"email": email, "password": password})
    return response.json()["token"]


@pytest.fixture
def token(client):
    return register_and_login(client)


@pytest.fixture
def make_product(client, token):
    """Create a product through the API and return its serialized record."""
    def _make(name="Shoe", price=50, **fields):
        body = {
            "name": name,
            "description": fields.get("description", f"A {name.lower()}"),
            "image": fields.get("image", f"https://img.example.com/{name.lower()}.png"),
            "price": price,
            "brand": fields.get("brand", "Acme"),
            "stock": fields.get("stock", 10),
        }
        response = client.post("/add-product", json=body, headers={"token": token})
        assert response.status_code == 201
        return response.json()["product"]
    return _make
