from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from database import create_document, serialize_doc, to_object_id
from schemas import CartLine, Coupon, Order, OrderItem, Product, User


def test_cart_line_quantity_must_be_positive():
    assert CartLine(product_id="P1").quantity == 1
    with pytest.raises(ValidationError):
        CartLine(product_id="P1", quantity=0)


def test_product_price_not_negative():
    with pytest.raises(ValidationError):
        Product(name="Mug", description="x", price=-0.01, category="kitchen")


def test_order_item_invariants():
    with pytest.raises(ValidationError):
        OrderItem(product_id="P1", quantity=0, price=1)
    with pytest.raises(ValidationError):
        Order(user_id="u1", products=[], total_amount=-1, payment_session_id="cs_1")


def test_user_defaults():
    user = User(name="Shopper", email="shopper@shop.com", password_hash="hash")
    assert user.role == "customer"
    assert user.cart_items == []
    with pytest.raises(ValidationError):
        User(name="Shopper", email="shopper@shop.com", password_hash="hash", role="owner")


def test_coupon_percentage_bounds():
    with pytest.raises(ValidationError):
        Coupon(code="GIFT1234", discount_percentage=120, expiration_date=datetime.now(timezone.utc), user_id="u1")


def test_serialize_doc():
    oid = to_object_id("64b7f0000000000000000000")
    doc = serialize_doc({"_id": oid, "created_at": datetime(2024, 1, 1), "name": "Mug"})
    assert doc == {"id": "64b7f0000000000000000000", "created_at": "2024-01-01T00:00:00+00:00", "name": "Mug"}
    assert to_object_id("nope") is None


def test_create_document_stamps_timestamps(mongo):
    user_id = create_document("user", User(name="Shopper", email="shopper@shop.com", password_hash="hash"))
    stored = mongo["user"].find_one({"_id": to_object_id(user_id)})
    assert stored["created_at"] == stored["updated_at"]
    assert stored["cart_items"] == []
