"""
Client-side session and cart holders for the storefront API.

Auth state travels in HTTP-only cookies, so the client never sees the tokens;
it only reacts to 401 responses. When several requests are rejected at once
they all wait on a single refresh call, then replay themselves once.
"""
import logging
import threading
from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

REFRESH_PATH = "/auth/refresh-token"
# a 401 from these means bad credentials, not a lapsed session
NO_REFRESH_PATHS = {REFRESH_PATH, "/auth/login", "/auth/signup"}


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class SessionContext:
    """State shared by every store that talks to the API on behalf of one user."""

    def __init__(self):
        self.user: Optional[Dict[str, Any]] = None
        self.loading = False
        self.checking_auth = False
        self._lock = threading.Lock()
        self._refresh_future: Optional[Future] = None

    @property
    def refresh_in_flight(self) -> bool:
        with self._lock:
            return self._refresh_future is not None

    def clear(self) -> None:
        self.user = None

    def run_refresh(self, refresh: Callable[[], Any]) -> Any:
        """Run `refresh` unless another caller already is; either way return its outcome."""
        with self._lock:
            future = self._refresh_future
            owner = future is None
            if owner:
                future = self._refresh_future = Future()

        if owner:
            try:
                future.set_result(refresh())
            except Exception as exc:
                future.set_exception(exc)
            finally:
                with self._lock:
                    self._refresh_future = None
        return future.result()


class ApiClient:
    def __init__(self, base_url: str, session: Optional[SessionContext] = None, http=None):
        self.base_url = base_url.rstrip("/")
        self.session = session or SessionContext()
        self.http = http or requests.Session()

    def _send(self, method: str, path: str, **kwargs):
        return self.http.request(method, f"{self.base_url}{path}", **kwargs)

    @staticmethod
    def _error(response) -> ApiError:
        try:
            message = response.json().get("message")
        except ValueError:
            message = None
        return ApiError(response.status_code, message or "Something went wrong")

    def refresh(self):
        response = self._send("POST", REFRESH_PATH)
        if response.status_code >= 400:
            raise self._error(response)
        return response.json()

    def request(self, method: str, path: str, **kwargs):
        response = self._send(method, path, **kwargs)

        if response.status_code == 401 and path not in NO_REFRESH_PATHS:
            try:
                self.session.run_refresh(self.refresh)
            except ApiError:
                logger.info("Session refresh failed, signing out")
                self.session.clear()
                raise
            response = self._send(method, path, **kwargs)

        if response.status_code >= 400:
            raise self._error(response)
        if not response.content:
            return None
        return response.json()

    def get(self, path: str, **kwargs):
        return self.request("GET", path, **kwargs)

    def post(self, path: str, **kwargs):
        return self.request("POST", path, **kwargs)

    def put(self, path: str, **kwargs):
        return self.request("PUT", path, **kwargs)

    def delete(self, path: str, **kwargs):
        return self.request("DELETE", path, **kwargs)


class UserStore:
    def __init__(self, api: ApiClient):
        self.api = api

    @property
    def session(self) -> SessionContext:
        return self.api.session

    @property
    def user(self):
        return self.session.user

    def signup(self, name: str, email: str, password: str, confirm_password: str):
        if password != confirm_password:
            raise ValueError("Passwords do not match")
        self.session.loading = True
        try:
            data = self.api.post("/auth/signup", json={"name": name, "email": email, "password": password})
            self.session.user = data["user"]
            return self.session.user
        finally:
            self.session.loading = False

    def login(self, email: str, password: str):
        self.session.loading = True
        try:
            data = self.api.post("/auth/login", json={"email": email, "password": password})
            self.session.user = data["user"]
            return self.session.user
        finally:
            self.session.loading = False

    def logout(self) -> None:
        self.api.post("/auth/logout")
        self.session.clear()

    def check_auth(self):
        self.session.checking_auth = True
        try:
            self.session.user = self.api.get("/auth/profile")["user"]
        except ApiError:
            self.session.clear()
        finally:
            self.session.checking_auth = False
        return self.session.user

    def refresh_token(self):
        try:
            return self.session.run_refresh(self.api.refresh)
        except ApiError:
            self.session.clear()
            raise


class CartStore:
    def __init__(self, api: ApiClient):
        self.api = api
        self.cart: List[Dict[str, Any]] = []
        self.coupon: Optional[Dict[str, Any]] = None
        self.is_coupon_applied = False
        self.subtotal = 0.0
        self.total = 0.0

    def get_cart_items(self):
        self.cart = self.api.get("/cart")
        self.calculate_totals()
        return self.cart

    def add_to_cart(self, product: Dict[str, Any]):
        self.api.post("/cart", json={"product_id": product["id"]})
        for item in self.cart:
            if item["id"] == product["id"]:
                item["quantity"] += 1
                break
        else:
            self.cart.append({**product, "quantity": 1})
        self.calculate_totals()

    def remove_from_cart(self, product_id: str):
        self.api.delete("/cart", json={"product_id": product_id})
        self.cart = [item for item in self.cart if item["id"] != product_id]
        self.calculate_totals()

    def update_quantity(self, product_id: str, quantity: int):
        if quantity == 0:
            self.remove_from_cart(product_id)
            return
        self.api.put(f"/cart/{product_id}", json={"quantity": quantity})
        for item in self.cart:
            if item["id"] == product_id:
                item["quantity"] = quantity
        self.calculate_totals()

    def clear_cart(self):
        self.api.delete("/cart", json={})
        self.cart = []
        self.coupon = None
        self.is_coupon_applied = False
        self.calculate_totals()

    def get_my_coupon(self):
        self.coupon = self.api.get("/coupon")
        return self.coupon

    def apply_coupon(self, code: str):
        data = self.api.post("/coupon/validate", json={"code": code})
        self.coupon = {"code": data["code"], "discount_percentage": data["discount_percentage"]}
        self.is_coupon_applied = True
        self.calculate_totals()
        return self.coupon

    def remove_coupon(self):
        self.is_coupon_applied = False
        self.calculate_totals()

    def calculate_totals(self):
        subtotal = sum(item["price"] * item["quantity"] for item in self.cart)
        total = subtotal
        if self.coupon and self.is_coupon_applied:
            total = subtotal - subtotal * self.coupon["discount_percentage"] / 100
        self.subtotal = round(subtotal, 2)
        self.total = round(total, 2)
        return self.subtotal, self.total

    def checkout(self):
        if not self.cart:
            raise ValueError("Cart is empty")
        payload = {
            "products": [
                {"id": item["id"], "name": item["name"], "price": item["price"],
                 "quantity": item["quantity"], "image": item.get("image", "")}
                for item in self.cart
            ],
            "coupon_code": self.coupon["code"] if self.coupon and self.is_coupon_applied else None,
        }
        return self.api.post("/payments/checkout-session", json=payload)
