"""
Database Schemas for the Storefront

Each Pydantic model corresponds to a MongoDB collection. Collection name is the
lowercase class name. Constructing a record validates its invariants, so a
document that reaches `create_document` already satisfies them.
"""
from datetime import datetime
from typing import List, Literal

from pydantic import BaseModel, Field, EmailStr


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(1, ge=1)


class User(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password_hash: str = Field(..., description="BCrypt hash of the password")
    role: Literal["customer", "admin"] = "customer"
    cart_items: List[CartLine] = []


class Product(BaseModel):
    name: str = Field(..., min_length=1)
    description: str
    price: float = Field(..., ge=0)
    image: str = ""
    category: str
    is_featured: bool = False


class Coupon(BaseModel):
    code: str
    discount_percentage: int = Field(..., ge=0, le=100)
    expiration_date: datetime
    user_id: str
    is_active: bool = True


class OrderItem(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)


class Order(BaseModel):
    user_id: str
    products: List[OrderItem]
    total_amount: float = Field(..., ge=0)
    payment_session_id: str
