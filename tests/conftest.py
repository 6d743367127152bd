import httpx
import pytest
from fastapi.testclient import TestClient

import database
import main
from api_client import ApiClient
from database import JsonDatabase
from session import LocalStorage, Session

PRODUCTS = [
    {"id": 1, "name": "Cricket Bat", "brand": "SG", "sport": "Cricket", "category": "Bats",
     "price": 1200, "discount": 10, "stock": 5, "rating": 4.5, "image": "bat.png"},
    {"id": 2, "name": "Football", "brand": "Nivia", "sport": "Football", "category": "Balls",
     "price": 500, "discount": 0, "stock": 1, "rating": 4.0, "image": "ball.png"},
]

USERS = [
    {"id": 1, "name": "Asha", "email": "asha@example.com", "password": "secret1", "role": "user",
     "isBlock": False, "cart": [], "wishlist": [], "orders": []},
    {"id": 2, "name": "Bob", "email": "bob@example.com", "password": "secret2", "role": "user",
     "isBlock": True, "cart": [], "wishlist": [], "orders": []},
]

ADMINS = [
    {"id": 1, "name": "Root", "email": "admin@example.com", "password": "admin123", "role": "admin", "isBlock": False},
]

SHIPPING = {"name": "Asha K", "address": "12 Park St", "city": "Pune", "postalCode": "411001", "phone": "9999999999"}


@pytest.fixture
def store(tmp_path, monkeypatch):
    db = JsonDatabase(str(tmp_path / "db.json"))
    monkeypatch.setattr(database, "db", db)
    monkeypatch.setattr(main, "db", db)
    return db


@pytest.fixture
def seeded(store):
    for name, records in (("products", PRODUCTS), ("users", USERS), ("admins", ADMINS)):
        for rec in records:
            store.insert_one(name, rec)
    return store


@pytest.fixture
def http(store):
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def client(http):
    return ApiClient(http=http)


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "session.json"))


@pytest.fixture
def session(client, storage):
    return Session(client, storage)


@pytest.fixture
def logged_in(seeded, session):
    session.login("asha@example.com", "secret1")
    return session


def mock_client(handler) -> ApiClient:
    return ApiClient(http=httpx.Client(base_url="http://test", transport=httpx.MockTransport(handler)))
