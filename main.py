import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Depends, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, EmailStr, Field
from pymongo.errors import DuplicateKeyError

import analytics
import cart
import checkout
import database
from auth import get_current_user, get_password_hash, public_user, require_admin, verify_password
from cache import get_cache
from catalog import CatalogStore
from config import ANALYTICS_WINDOW_DAYS, CLIENT_URL, LOG_LEVEL
from database import create_document, ensure_indexes, utcnow
from errors import MediaStoreError, PaymentGatewayError, register_error_handlers
from media import MediaStore, get_media_store
from payments import PaymentGateway, get_gateway
from schemas import User
from tokens import (
    REFRESH_COOKIE,
    clear_auth_cookies,
    issue_token_pair,
    persist_refresh,
    revoke,
    rotate_access,
    set_access_cookie,
    set_auth_cookies,
    user_id_from_refresh,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        ensure_indexes()
    except Exception as e:
        logger.error("Error creating indexes: %s", e)
    yield


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[CLIENT_URL],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)


def get_catalog(media: MediaStore = Depends(get_media_store)) -> CatalogStore:
    return CatalogStore(database.db, get_cache(), media)


# Request models
class SignupIn(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class LoginIn(BaseModel):
    email: EmailStr
    password: str


class ProductIn(BaseModel):
    name: str = Field(..., min_length=1)
    description: str
    price: float = Field(..., ge=0)
    image: Optional[str] = None
    category: str


class CartAddIn(BaseModel):
    product_id: str


class CartRemoveIn(BaseModel):
    product_id: Optional[str] = None


class CartQuantityIn(BaseModel):
    quantity: int


class CouponCodeIn(BaseModel):
    code: str


class CheckoutProductIn(BaseModel):
    id: str
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    image: Optional[str] = None


class CheckoutSessionIn(BaseModel):
    products: List[CheckoutProductIn] = []
    coupon_code: Optional[str] = None


class CheckoutSuccessIn(BaseModel):
    session_id: str


# Routes
@app.get("/")
def root():
    return {"message": "Storefront API is running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "cache": "❌ Not Available",
        "connection_status": "Not Connected",
        "collections": [],
    }

    try:
        if database.db is not None:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
            response["connection_status"] = "Connected"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    try:
        get_cache().ping()
        response["cache"] = "✅ Connected"
    except Exception as e:
        response["cache"] = f"❌ Error: {str(e)[:50]}"

    return response


# Auth endpoints
@app.post("/auth/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: SignupIn, response: Response):
    email = payload.email.lower()
    if database.db["user"].find_one({"email": email}):
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(name=payload.name, email=email, password_hash=get_password_hash(payload.password))
    try:
        user_id = create_document("user", user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="User already exists")

    access_token, refresh_token = issue_token_pair(user_id)
    persist_refresh(get_cache(), user_id, refresh_token)
    set_auth_cookies(response, access_token, refresh_token)
    logger.info("User %s signed up", user_id)
    return {
        "user": public_user({"_id": user_id, **user.model_dump()}),
        "message": "User created successfully",
    }


@app.post("/auth/login")
def login(payload: LoginIn, response: Response):
    user = database.db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    user_id = str(user["_id"])
    access_token, refresh_token = issue_token_pair(user_id)
    persist_refresh(get_cache(), user_id, refresh_token)
    set_auth_cookies(response, access_token, refresh_token)
    return {"user": public_user(user), "message": "Login successful"}


@app.post("/auth/logout")
def logout(request: Request, response: Response):
    refresh_token = request.cookies.get(REFRESH_COOKIE)
    if refresh_token:
        try:
            revoke(get_cache(), user_id_from_refresh(refresh_token))
        except HTTPException:
            logger.info("Logout with an unusable refresh token, clearing cookies only")
    clear_auth_cookies(response)
    return {"message": "Logout successful"}


@app.api_route("/auth/refresh-token", methods=["GET", "POST"])
def refresh_token(request: Request, response: Response):
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail="No refresh token found")
    access_token = rotate_access(get_cache(), token)
    set_access_cookie(response, access_token)
    return {"message": "Token refreshed successfully"}


@app.get("/auth/profile")
def get_profile(user=Depends(get_current_user)):
    return {"user": public_user(user)}


# Product endpoints
@app.get("/products", dependencies=[Depends(require_admin)])
def list_products(catalog: CatalogStore = Depends(get_catalog)):
    return {"products": catalog.list()}


@app.get("/products/featured")
def featured_products(catalog: CatalogStore = Depends(get_catalog)):
    return catalog.get_featured()


@app.get("/products/recommended")
def recommended_products(catalog: CatalogStore = Depends(get_catalog)):
    return catalog.sample_recommended()


@app.get("/products/category/{category}")
def products_by_category(category: str, catalog: CatalogStore = Depends(get_catalog)):
    return {"products": catalog.list_by_category(category)}


@app.post("/products", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def create_product(payload: ProductIn, catalog: CatalogStore = Depends(get_catalog)):
    try:
        product = catalog.create(payload.model_dump())
    except MediaStoreError as e:
        logger.error("Error creating product: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return {"message": "Product created successfully", "product": product}


@app.patch("/products/{product_id}", dependencies=[Depends(require_admin)])
def toggle_featured_product(product_id: str, catalog: CatalogStore = Depends(get_catalog)):
    return catalog.toggle_featured(product_id)


@app.delete("/products/{product_id}", dependencies=[Depends(require_admin)])
def delete_product(product_id: str, catalog: CatalogStore = Depends(get_catalog)):
    catalog.delete(product_id)
    return {"message": "Product deleted successfully"}


# Cart endpoints (per-user)
@app.get("/cart")
def get_cart(user=Depends(get_current_user)):
    return cart.materialize(user)


@app.post("/cart")
def add_to_cart(payload: CartAddIn, user=Depends(get_current_user)):
    return cart.add(user, payload.product_id)


@app.delete("/cart")
def remove_from_cart(payload: Optional[CartRemoveIn] = None, user=Depends(get_current_user)):
    return cart.clear(user, payload.product_id if payload else None)


@app.put("/cart/{product_id}")
def update_quantity(product_id: str, payload: CartQuantityIn, user=Depends(get_current_user)):
    return cart.set_quantity(user, product_id, payload.quantity)


# Coupons
@app.get("/coupon")
def get_coupon(user=Depends(get_current_user)):
    return checkout.get_active_coupon(user)


@app.post("/coupon/validate")
def validate_coupon(payload: CouponCodeIn, user=Depends(get_current_user)):
    return checkout.validate_coupon(user, payload.code)


# Checkout / Payments
@app.post("/payments/checkout-session")
def create_checkout_session(
    payload: CheckoutSessionIn,
    user=Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    try:
        return checkout.create_checkout_session(
            gateway,
            user,
            [p.model_dump() for p in payload.products],
            payload.coupon_code,
        )
    except PaymentGatewayError as e:
        logger.error("Error creating checkout session: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/payments/checkout-success")
def checkout_success(
    payload: CheckoutSuccessIn,
    user=Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_gateway),
):
    try:
        return checkout.confirm_checkout(gateway, payload.session_id)
    except PaymentGatewayError as e:
        logger.error("Error processing checkout session: %s", e)
        raise HTTPException(status_code=500, detail=str(e))


# Analytics
@app.get("/analytics", dependencies=[Depends(require_admin)])
def get_analytics():
    end = utcnow()
    start = end - timedelta(days=ANALYTICS_WINDOW_DAYS)
    return {
        "analytics_data": analytics.summary(database.db),
        "daily_sales_data": analytics.daily_series(database.db, start, end),
    }


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
