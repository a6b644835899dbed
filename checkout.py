"""
Coupon lookup and the checkout flow.

Creating a session prices the lines, applies the caller's coupon when it is
still valid, opens a payment-gateway session carrying enough metadata to
rebuild the order, and may award a fresh coupon. Confirming a session turns a
paid gateway session into an Order and retires the coupon it used.
"""
import json
import logging
import secrets
import string
from datetime import timedelta
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

import database
from config import (
    CLIENT_URL,
    COUPON_AWARD_THRESHOLD,
    COUPON_CODE_PREFIX,
    COUPON_CODE_SUFFIX_LENGTH,
    COUPON_DISCOUNT_PERCENTAGE,
    COUPON_VALID_DAYS,
    CURRENCY,
)
from database import as_utc, create_document, serialize_doc, utcnow
from payments import PaymentGateway
from schemas import Coupon, Order, OrderItem

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def _is_expired(coupon: dict) -> bool:
    return as_utc(coupon["expiration_date"]) < utcnow()


def find_active_coupon(user_id: str, code: Optional[str] = None) -> Optional[dict]:
    query = {"user_id": user_id, "is_active": True}
    if code is not None:
        query["code"] = code
    return database.db["coupon"].find_one(query)


def get_active_coupon(user: dict) -> Optional[dict]:
    coupon = find_active_coupon(str(user["_id"]))
    if not coupon or _is_expired(coupon):
        return None
    return serialize_doc(coupon)


def validate_coupon(user: dict, code: str) -> Dict[str, Any]:
    coupon = find_active_coupon(str(user["_id"]), code)
    if not coupon:
        raise HTTPException(status_code=404, detail="Coupon not found")
    if _is_expired(coupon):
        raise HTTPException(status_code=400, detail="Coupon expired")
    return {
        "message": "Coupon valid",
        "code": coupon["code"],
        "discount_percentage": coupon["discount_percentage"],
    }


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def price_lines(products: List[Dict[str, Any]]) -> Tuple[List[Dict[str, Any]], int]:
    line_items = []
    total = 0
    for product in products:
        unit_amount = to_minor_units(product["price"])
        quantity = product.get("quantity") or 1
        total += unit_amount * quantity
        product_data = {"name": product["name"]}
        if product.get("image"):
            product_data["images"] = [product["image"]]
        line_items.append({
            "price_data": {
                "currency": CURRENCY,
                "product_data": product_data,
                "unit_amount": unit_amount,
            },
            "quantity": quantity,
        })
    return line_items, total


def apply_discount(total: int, discount_percentage: int) -> int:
    return total - int(round(total * discount_percentage / 100))


def generate_coupon_code() -> str:
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(COUPON_CODE_SUFFIX_LENGTH))
    return COUPON_CODE_PREFIX + suffix


def award_coupon(user_id: str) -> dict:
    """Replace whatever coupon the user holds with a fresh one.

    Delete and insert are separate writes; a crash in between leaves the
    user without a coupon.
    """
    database.db["coupon"].delete_many({"user_id": user_id})
    coupon = Coupon(
        code=generate_coupon_code(),
        discount_percentage=COUPON_DISCOUNT_PERCENTAGE,
        expiration_date=utcnow() + timedelta(days=COUPON_VALID_DAYS),
        user_id=user_id,
    )
    coupon_id = create_document("coupon", coupon)
    logger.info("Awarded coupon %s to user %s", coupon.code, user_id)
    return {"id": coupon_id, **coupon.model_dump()}


def build_metadata(user_id: str, coupon_code: Optional[str], products: List[Dict[str, Any]]) -> Dict[str, str]:
    return {
        "user_id": user_id,
        "coupon_code": coupon_code or "",
        "products": json.dumps([
            {"id": p["id"], "quantity": p.get("quantity") or 1, "price": p["price"]}
            for p in products
        ]),
    }


def create_checkout_session(gateway: PaymentGateway, user: dict, products: List[Dict[str, Any]], coupon_code: Optional[str] = None) -> Dict[str, Any]:
    if not products:
        raise HTTPException(status_code=400, detail="Invalid or empty products array")

    user_id = str(user["_id"])
    line_items, subtotal = price_lines(products)
    total = subtotal

    coupon = None
    if coupon_code:
        coupon = find_active_coupon(user_id, coupon_code)
        if coupon and _is_expired(coupon):
            coupon = None
        if coupon:
            total = apply_discount(subtotal, coupon["discount_percentage"])

    discounts = []
    if coupon:
        discounts.append({"coupon": gateway.create_coupon(coupon["discount_percentage"])})

    session = gateway.create_checkout_session(
        line_items=line_items,
        success_url=f"{CLIENT_URL}/purchase-success?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{CLIENT_URL}/purchase-cancel",
        metadata=build_metadata(user_id, coupon["code"] if coupon else None, products),
        discounts=discounts,
    )

    # the award threshold is judged on the undiscounted subtotal
    if subtotal >= COUPON_AWARD_THRESHOLD:
        award_coupon(user_id)

    return {"id": session["id"], "total_amount": total / 100}


def confirm_checkout(gateway: PaymentGateway, session_id: str) -> Dict[str, Any]:
    existing = database.db["order"].find_one({"payment_session_id": session_id})
    if existing:
        return {
            "success": True,
            "message": "Order already recorded for this payment",
            "order_id": str(existing["_id"]),
        }

    session = gateway.retrieve_checkout_session(session_id)
    if session.get("payment_status") != "paid":
        raise HTTPException(status_code=400, detail="Payment not completed")

    metadata = session.get("metadata") or {}
    user_id = metadata.get("user_id")
    coupon_code = metadata.get("coupon_code")
    if coupon_code:
        database.db["coupon"].update_one(
            {"code": coupon_code, "user_id": user_id},
            {"$set": {"is_active": False, "updated_at": utcnow()}},
        )
        logger.info("Deactivated coupon %s for user %s", coupon_code, user_id)

    products = json.loads(metadata.get("products") or "[]")
    order = Order(
        user_id=user_id,
        products=[
            OrderItem(product_id=str(p["id"]), quantity=p["quantity"], price=p["price"])
            for p in products
        ],
        total_amount=(session.get("amount_total") or 0) / 100,
        payment_session_id=session_id,
    )
    try:
        order_id = create_document("order", order)
    except DuplicateKeyError:
        # a concurrent confirmation of the same session got there first
        existing = database.db["order"].find_one({"payment_session_id": session_id})
        order_id = str(existing["_id"])
    logger.info("Created order %s for payment session %s", order_id, session_id)

    return {
        "success": True,
        "message": "Payment successful, order created and coupon deactivated if used",
        "order_id": order_id,
    }
