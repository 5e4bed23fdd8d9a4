import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from auth import create_access_token, hash_password
from database import create_document
from inventory import determine_status
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient().storefront


@pytest.fixture
def client(db):
    app.dependency_overrides[database.get_db] = lambda: db
    app.state.cache.clear()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def admin(db):
    res = db["admin"].insert_one({
        "username": "admin",
        "password_hash": hash_password("s3cret"),
        "role": "admin",
    })
    return {"id": str(res.inserted_id), "username": "admin", "role": "admin"}


@pytest.fixture
def admin_client(client, admin):
    client.cookies.set("admin_token", create_access_token(admin))
    return client


@pytest.fixture
def make_product(db):
    def _make(name="Basic Tee", sku=None, price=10.0, quantity=20, low_stock_threshold=5,
              status=None, managed=True, **fields):
        doc = {
            "name": name,
            "description": "",
            "price": price,
            "images": [],
            "category": "",
            "tags": [],
            "sku": sku or f"SKU-{name.upper().replace(' ', '-')}",
            "featured": False,
            "inventory": {
                "quantity": quantity,
                "low_stock_threshold": low_stock_threshold,
                "status": status or determine_status(quantity, low_stock_threshold, managed),
                "managed": managed,
            },
            "attributes": {},
            "has_variants": False,
        }
        doc.update(fields)
        return create_document(db, "product", doc)
    return _make


@pytest.fixture
def make_variant(db):
    def _make(product_id, sku, quantity=10, price=None, attributes=None, status=None):
        db["product"].update_one({"_id": database.to_object_id(product_id)}, {"$set": {"has_variants": True}})
        return create_document(db, "product_variant", {
            "product_id": product_id,
            "sku": sku,
            "price": price,
            "inventory": {
                "quantity": quantity,
                "low_stock_threshold": 2,
                "status": status or determine_status(quantity, 2),
                "managed": True,
            },
            "attributes": attributes or {},
            "images": [],
        })
    return _make
