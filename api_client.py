"""
HTTP client for the storefront data API.

Every helper returns the decoded JSON body. Failures of any kind (no
response, an error status, a body that is not JSON) are raised as ApiError
so that callers handle a single exception type.
"""

import logging
import os
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)

API_BASE = os.getenv("API_BASE", "http://localhost:3000")
DEFAULT_TIMEOUT = float(os.getenv("API_TIMEOUT", "10"))

NO_RESPONSE_MESSAGE = "No response from server. Check network or server status."


class ApiError(Exception):
    def __init__(self, message: str, status: Optional[int] = None, response: Optional[httpx.Response] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.response = response

    @property
    def is_network_error(self) -> bool:
        return self.response is None

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


def eq_id(a: Any, b: Any) -> bool:
    return a is not None and b is not None and str(a) == str(b)


def _error_message(res: httpx.Response) -> str:
    try:
        data = res.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("message", "error", "msg", "detail"):
            if data.get(key):
                return data[key] if isinstance(data[key], str) else str(data[key])
    return f"Request failed with status {res.status_code}"


def _path(collection: str, item_id: Any = None) -> str:
    if item_id is None:
        return f"/{collection}"
    return f"/{collection}/{quote(str(item_id), safe='')}"


def _require(item_id: Any, name: str) -> None:
    if item_id is None or item_id == "":
        raise ValueError(f"{name}: id is required")


class ApiClient:
    def __init__(self, base_url: str = API_BASE, timeout: float = DEFAULT_TIMEOUT, http: Optional[httpx.Client] = None):
        self.base_url = base_url
        self._http = http or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None, json: Any = None) -> Any:
        try:
            res = self._http.request(method, path, params=params, json=json)
        except httpx.RequestError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise ApiError(NO_RESPONSE_MESSAGE) from e
        if res.is_error:
            raise ApiError(_error_message(res), status=res.status_code, response=res)
        if not res.content:
            return None
        try:
            return res.json()
        except ValueError as e:
            raise ApiError(f"Invalid JSON in response to {method} {path}", status=res.status_code, response=res) from e

    # -------------------- Products --------------------

    def get_products(self, **filters) -> List[dict]:
        return self.request("GET", _path("products"), params=filters or None) or []

    def get_product(self, product_id) -> dict:
        _require(product_id, "get_product")
        return self.request("GET", _path("products", product_id))

    def create_product(self, data: dict) -> dict:
        return self.request("POST", _path("products"), json=data)

    def replace_product(self, product_id, data: dict) -> dict:
        _require(product_id, "replace_product")
        return self.request("PUT", _path("products", product_id), json=data)

    def update_product(self, product_id, changes: dict) -> dict:
        _require(product_id, "update_product")
        return self.request("PATCH", _path("products", product_id), json=changes)

    def delete_product(self, product_id) -> None:
        _require(product_id, "delete_product")
        self.request("DELETE", _path("products", product_id))

    # -------------------- Users --------------------

    def get_users(self, **filters) -> List[dict]:
        return self.request("GET", _path("users"), params=filters or None) or []

    def get_user(self, user_id) -> dict:
        _require(user_id, "get_user")
        return self.request("GET", _path("users", user_id))

    def get_user_by_email(self, email: Optional[str]) -> Optional[dict]:
        if not email:
            return None
        found = self.get_users(email=email)
        return found[0] if found else None

    def register_user(self, data: dict) -> dict:
        if not isinstance(data, dict) or not data:
            raise ValueError("register_user: user data is required")
        return self.request("POST", _path("users"), json=data)

    def update_user(self, user_id, changes: dict) -> dict:
        _require(user_id, "update_user")
        return self.request("PATCH", _path("users", user_id), json=changes)

    # -------------------- Admins --------------------

    def get_admins(self) -> List[dict]:
        return self.request("GET", _path("admins")) or []

    def get_admin(self, admin_id) -> dict:
        _require(admin_id, "get_admin")
        return self.request("GET", _path("admins", admin_id))

    # -------------------- Orders --------------------

    def get_orders(self, user_id=None) -> List[dict]:
        params = {"userId": str(user_id)} if user_id is not None else None
        return self.request("GET", _path("orders"), params=params) or []

    def get_order(self, order_id) -> dict:
        _require(order_id, "get_order")
        return self.request("GET", _path("orders", order_id))

    def create_order(self, order: dict) -> dict:
        return self.request("POST", _path("orders"), json=order)

    def update_order(self, order_id, changes: dict) -> dict:
        _require(order_id, "update_order")
        return self.request("PATCH", _path("orders", order_id), json=changes)

    def delete_order(self, order_id) -> None:
        _require(order_id, "delete_order")
        self.request("DELETE", _path("orders", order_id))

    # -------------------- Wishlist --------------------

    def get_wishlist(self, user_id) -> List[dict]:
        if user_id is None:
            return []
        user = self.get_user(user_id)
        wishlist = user.get("wishlist")
        return wishlist if isinstance(wishlist, list) else []

    def add_to_wishlist(self, user_id, product: dict) -> dict:
        if user_id is None or not product or product.get("id") is None:
            raise ValueError("add_to_wishlist: user_id and product are required")
        wishlist = self.get_wishlist(user_id)
        if any(eq_id(item.get("id"), product["id"]) for item in wishlist):
            return self.get_user(user_id)
        self.update_user(user_id, {"wishlist": wishlist + [product]})
        return self.get_user(user_id)

    def remove_from_wishlist(self, user_id, product_id) -> dict:
        if user_id is None or product_id is None:
            raise ValueError("remove_from_wishlist: user_id and product_id are required")
        wishlist = self.get_wishlist(user_id)
        updated = [item for item in wishlist if not eq_id(item.get("id"), product_id)]
        self.update_user(user_id, {"wishlist": updated})
        return self.get_user(user_id)
