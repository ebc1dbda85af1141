import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import PRODUCTS, create_document
from main import create_app
from schemas import Product
from seed import create_admin

ADMIN_EMAIL = "admin@shop.com"
ADMIN_PASSWORD = "admin-secret"


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        database_name="storefront_test",
        environment="test",
        rate_limit_max_requests=100000,
        log_level="WARNING",
    )


@pytest.fixture
def db():
    return mongomock.MongoClient()["storefront_test"]


@pytest.fixture
def app(settings, db):
    return create_app(settings, db=db)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def register(client, email="shopper@shop.com", password="secret123", first_name="Sam", last_name="Shopper"):
    res = client.post("/api/auth/register", json={
        "email": email,
        "password": password,
        "firstName": first_name,
        "lastName": last_name,
    })
    assert res.status_code == 201, res.text
    body = res.json()
    return body["accessToken"], body["user"]


@pytest.fixture
def customer(client):
    token, user = register(client)
    return {"token": token, "user": user, "headers": auth_header(token)}


@pytest.fixture
def admin(client, app, db):
    create_admin(db, app.state.identity, ADMIN_EMAIL, ADMIN_PASSWORD)
    res = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert res.status_code == 200, res.text
    token = res.json()["accessToken"]
    return {"token": token, "user": res.json()["user"], "headers": auth_header(token)}


def product_payload(**overrides):
    data = {
        "name": "Wireless Earbuds",
        "description": "Noise cancelling earbuds",
        "price": 59.99,
        "category": "electronics",
        "brand": "AudioTech",
        "stock": 10,
        "images": ["earbuds.jpg"],
        "tags": ["audio", "wireless"],
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_product(db):
    def _make(**overrides):
        return create_document(db, PRODUCTS, Product(**product_payload(**overrides)))

    return _make


def address_payload(**overrides):
    data = {
        "type": "home",
        "street": "1 Main St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "country": "US",
        "firstName": "Sam",
        "lastName": "Shopper",
    }
    data.update(overrides)
    return data
