import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from config import PAYMENT_API_KEY, PAYMENT_API_URL
from errors import PaymentGatewayError

logger = logging.getLogger(__name__)


def encode_form(params: Any, prefix: Optional[str] = None) -> List[Tuple[str, str]]:
    """Flatten nested params into the bracketed form fields the gateway expects.

    {"line_items": [{"quantity": 2}]} -> [("line_items[0][quantity]", "2")]
    """
    pairs: List[Tuple[str, str]] = []
    if isinstance(params, dict):
        for key, value in params.items():
            name = f"{prefix}[{key}]" if prefix else str(key)
            pairs.extend(encode_form(value, name))
    elif isinstance(params, (list, tuple)):
        for i, value in enumerate(params):
            pairs.extend(encode_form(value, f"{prefix}[{i}]"))
    elif isinstance(params, bool):
        pairs.append((prefix, "true" if params else "false"))
    elif params is not None:
        pairs.append((prefix, str(params)))
    return pairs


class PaymentGateway:
    """Checkout sessions and one-off discount coupons at the payment provider."""

    def __init__(self, api_key: str, base_url: str = "https://api.stripe.com/v1"):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise PaymentGatewayError("Payment provider is not configured")
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                data=encode_form(params) if params else None,
                auth=(self.api_key, ""),
                timeout=30,
            )
        except requests.RequestException as exc:
            logger.error("Payment provider unreachable at %s: %s", url, exc)
            raise PaymentGatewayError(f"Payment provider unreachable: {exc}") from exc

        if response.status_code >= 400:
            logger.error("Payment provider error %s on %s: %s", response.status_code, path, response.text)
            try:
                message = response.json().get("error", {}).get("message")
            except ValueError:
                message = None
            raise PaymentGatewayError(message or f"Payment provider returned {response.status_code}")
        return response.json()

    def create_coupon(self, percent_off: int) -> str:
        coupon = self._request("POST", "/coupons", {"percent_off": percent_off, "duration": "once"})
        return coupon["id"]

    def create_checkout_session(
        self,
        line_items: List[Dict[str, Any]],
        success_url: str,
        cancel_url: str,
        metadata: Dict[str, str],
        discounts: Optional[List[Dict[str, str]]] = None,
    ) -> Dict[str, Any]:
        params = {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": line_items,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if discounts:
            params["discounts"] = discounts
        return self._request("POST", "/checkout/sessions", params)

    def retrieve_checkout_session(self, session_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/checkout/sessions/{session_id}")


def get_gateway() -> PaymentGateway:
    return PaymentGateway(PAYMENT_API_KEY, PAYMENT_API_URL)
