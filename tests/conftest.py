import fakeredis
import mongomock
import pytest
from fastapi.testclient import TestClient

import cache
import database
from main import app
from media import MediaStore, get_media_store
from payments import get_gateway
from errors import MediaStoreError

PASSWORD = "secret123"


class FakeGateway:
    """In-memory stand-in for the payment provider."""

    def __init__(self):
        self.sessions = {}
        self.coupons = []
        self.created = []

    def create_coupon(self, percent_off):
        coupon_id = f"coupon_{len(self.coupons) + 1}"
        self.coupons.append({"id": coupon_id, "percent_off": percent_off})
        return coupon_id

    def create_checkout_session(self, line_items, success_url, cancel_url, metadata, discounts=None):
        session_id = f"cs_test_{len(self.created) + 1}"
        session = {
            "id": session_id,
            "line_items": line_items,
            "metadata": metadata,
            "discounts": discounts or [],
            "payment_status": "unpaid",
            "amount_total": 0,
        }
        self.created.append(session)
        self.sessions[session_id] = session
        return session

    def retrieve_checkout_session(self, session_id):
        return self.sessions[session_id]

    def mark_paid(self, session_id, amount_total):
        self.sessions[session_id]["payment_status"] = "paid"
        self.sessions[session_id]["amount_total"] = amount_total


class FakeMediaStore(MediaStore):
    def __init__(self):
        super().__init__("https://cdn.test", "key", "products")
        self.uploaded = []
        self.destroyed = []
        self.fail_destroy = False

    def upload(self, image):
        self.uploaded.append(image)
        return f"https://cdn.test/products/img{len(self.uploaded)}.jpg"

    def destroy(self, public_id):
        if self.fail_destroy:
            raise MediaStoreError("cdn down")
        self.destroyed.append(public_id)


@pytest.fixture
def mongo(monkeypatch):
    db = mongomock.MongoClient()["storefront_test"]
    monkeypatch.setattr(database, "db", db)
    return db


@pytest.fixture
def redis_cache(monkeypatch):
    fake = fakeredis.FakeRedis(decode_responses=True)
    monkeypatch.setattr(cache, "redis_client", fake)
    return fake


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def media():
    return FakeMediaStore()


@pytest.fixture
def client(mongo, redis_cache, gateway, media):
    app.dependency_overrides[get_gateway] = lambda: gateway
    app.dependency_overrides[get_media_store] = lambda: media
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def signup(client, email="shopper@shop.com", name="Shopper", password=PASSWORD):
    response = client.post("/auth/signup", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()["user"]


@pytest.fixture
def customer(client):
    return signup(client)


@pytest.fixture
def admin(client, mongo):
    user = signup(client, email="admin@shop.com", name="Admin")
    mongo["user"].update_one({"email": "admin@shop.com"}, {"$set": {"role": "admin"}})
    return user


def add_product(mongo, name="Mug", price=10.0, category="kitchen", is_featured=False, image=""):
    result = mongo["product"].insert_one({
        "name": name,
        "description": f"A {name.lower()}",
        "price": price,
        "image": image,
        "category": category,
        "is_featured": is_featured,
    })
    return str(result.inserted_id)
