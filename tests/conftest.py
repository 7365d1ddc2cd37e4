import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")

import mongomock
import pytest
from fastapi.testclient import TestClient

import database
import main
from database import create_document
from schemas import User as UserSchema

ADMIN_EMAIL = "admin@shop.com"
ADMIN_PASSWORD = "admin123"


@pytest.fixture
def mongo(monkeypatch):
    mdb = mongomock.MongoClient()["storefront_test"]
    monkeypatch.setattr(database, "db", mdb)
    monkeypatch.setattr(main, "db", mdb)
    return mdb


@pytest.fixture
def client(mongo):
    with TestClient(main.app) as c:
        yield c


@pytest.fixture
def admin_session(client):
    create_document(
        "user",
        UserSchema(name="Admin", email=ADMIN_EMAIL, password_hash=main.hash_password(ADMIN_PASSWORD), is_admin=True),
    )
    r = client.post("/api/users/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 200
    return r.json()


@pytest.fixture
def user_session(client):
    r = client.post("/api/users/register", json={"name": "Rahim", "email": "rahim@shop.com", "password": "secret1"})
    assert r.status_code == 201
    return r.json()


def auth(session):
    return {"Authorization": f"Bearer {session['token']}"}


@pytest.fixture
def product_payload():
    return {
        "name": "Classic Cotton Panjabi",
        "price": 500,
        "original_price": 800,
        "image_url": "https://img.example.com/panjabi.jpg",
        "category": "Panjabi",
        "description": "Cotton panjabi",
        "count_in_stock": 10,
        "colors": ["White", "Navy"],
        "sizes": ["M", "L"],
    }


@pytest.fixture
def product(client, admin_session, product_payload):
    r = client.post("/api/products", json=product_payload, headers=auth(admin_session))
    assert r.status_code == 201
    return r.json()
