"""
Cart operations on the user's embedded `cart_items` list.

A line never holds quantity 0: setting a line to zero removes it.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import HTTPException

import database
from database import serialize_doc, to_object_id, utcnow
from schemas import CartLine

logger = logging.getLogger(__name__)


def _line_key(product_id: str) -> str:
    # lines are keyed by the canonical lowercase hex so lookups match str(ObjectId)
    oid = to_object_id(product_id)
    return str(oid) if oid is not None else product_id


def cart_lines(user: dict) -> List[CartLine]:
    return [
        CartLine(product_id=_line_key(line["product_id"]), quantity=line["quantity"])
        for line in user.get("cart_items", [])
    ]


def _save(user: dict, lines: List[CartLine]) -> List[Dict[str, Any]]:
    items = [line.model_dump() for line in lines]
    database.db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"cart_items": items, "updated_at": utcnow()}},
    )
    user["cart_items"] = items
    return items


def add(user: dict, product_id: str) -> List[Dict[str, Any]]:
    oid = to_object_id(product_id)
    if oid is None or not database.db["product"].find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="Product not found")
    product_id = str(oid)

    lines = cart_lines(user)
    for line in lines:
        if line.product_id == product_id:
            line.quantity += 1
            break
    else:
        lines.append(CartLine(product_id=product_id, quantity=1))
    return _save(user, lines)


def set_quantity(user: dict, product_id: str, quantity: int) -> List[Dict[str, Any]]:
    if quantity < 0:
        raise HTTPException(status_code=400, detail="Quantity must be zero or greater")
    product_id = _line_key(product_id)

    lines = cart_lines(user)
    if not any(line.product_id == product_id for line in lines):
        raise HTTPException(status_code=404, detail="Product not found in cart")

    if quantity == 0:
        lines = [line for line in lines if line.product_id != product_id]
    else:
        lines = [
            CartLine(product_id=line.product_id, quantity=quantity) if line.product_id == product_id else line
            for line in lines
        ]
    return _save(user, lines)


def clear(user: dict, product_id: Optional[str] = None) -> List[Dict[str, Any]]:
    if not product_id:
        return _save(user, [])
    product_id = _line_key(product_id)
    return _save(user, [line for line in cart_lines(user) if line.product_id != product_id])


def materialize(user: dict) -> List[Dict[str, Any]]:
    """Join the cart against the catalog; each product is annotated with its quantity.

    Lines that point at deleted products are skipped.
    """
    lines = cart_lines(user)
    oids = [oid for oid in (to_object_id(line.product_id) for line in lines) if oid is not None]
    found = {str(p["_id"]): p for p in database.db["product"].find({"_id": {"$in": oids}})}

    items = []
    for line in lines:
        product = found.get(line.product_id)
        if product is None:
            logger.warning("Dropping cart line for missing product %s (user %s)", line.product_id, user.get("_id"))
            continue
        item = serialize_doc(product)
        item["quantity"] = line.quantity
        items.append(item)
    return items
