from datetime import datetime, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app
from security import create_access_token, hash_password

PASSWORD = "secret123"

SHIPPING = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "phone": "555-0100",
    "address": "1 Analytical Way",
    "city": "London",
    "state": "LDN",
    "zipCode": "10001",
}

PRICING = {"subtotal": 100.0, "shipping": 10.0, "tax": 8.0, "total": 118.0}


@pytest.fixture(scope="session")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def db():
    database = mongomock.MongoClient(tz_aware=True)["shoemart_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def client(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(db, password_hash):
    counter = {"n": 0}

    def _make(role="user", name=None):
        counter["n"] += 1
        n = counter["n"]
        user_id = db["user"].insert_one({
            "name": name or f"User {n}",
            "email": f"user{n}@example.com",
            "password_hash": password_hash,
            "role": role,
            "createdAt": datetime.now(timezone.utc),
        }).inserted_id
        token = create_access_token({"sub": str(user_id)})
        return str(user_id), {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def make_product(db):
    def _make(name="Runner", sizes=None, price=50.0, **extra):
        sizes = sizes if sizes is not None else {10: 3}
        doc = {
            "name": name,
            "description": f"{name} shoe",
            "price": price,
            "brand": extra.pop("brand", "Acme"),
            "category": extra.pop("category", "running"),
            "sizes": [{"size": float(s), "stock": n} for s, n in sizes.items()],
            "images": [f"https://img.example.com/{name.lower()}.jpg"],
            "featured": extra.pop("featured", False),
            "averageRating": 0,
            "totalReviews": 0,
            "createdAt": datetime.now(timezone.utc),
        }
        doc.update(extra)
        return db["product"].insert_one(doc).inserted_id

    return _make


def stock_of(db, product_id, size):
    product = db["product"].find_one({"_id": ObjectId(product_id)})
    for entry in product["sizes"]:
        if entry["size"] == size:
            return entry["stock"]
    raise AssertionError(f"size {size} missing")
