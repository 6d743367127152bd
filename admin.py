import logging
import math
import time
from typing import Any, Dict, List, Optional

from api_client import ApiClient, ApiError, eq_id
from orders import OrderService
from revenue import DEFAULT_DAYS, dashboard_summary, revenue_by_day
from schemas import OrderStatusUpdate, ProductCreate

logger = logging.getLogger(__name__)

PAGE_SIZE = 10


# -------------------- Orders --------------------

class OrdersBoard:
    """Admin orders table: local list with optimistic edits."""

    def __init__(self, client: ApiClient, service: Optional[OrderService] = None):
        self.client = client
        self.service = service or OrderService(client)
        self.orders: List[Dict[str, Any]] = []
        self.users_by_id: Dict[str, Dict[str, Any]] = {}

    def load(self) -> List[Dict[str, Any]]:
        users = self.client.get_users()
        self.users_by_id = {str(u.get("id")): u for u in users}
        self.orders = self.service.load_orders(users)
        return self.orders

    def customer_name(self, order: Dict[str, Any]) -> str:
        shipping = order.get("shippingDetails") or {}
        if shipping.get("name"):
            return shipping["name"]
        owner = self.users_by_id.get(str(order.get("userId")))
        return (owner or {}).get("name") or "—"

    def change_status(self, order_id, status: str) -> List[Dict[str, Any]]:
        status = OrderStatusUpdate(status=status).status
        previous = self.orders
        self.orders = [{**o, "status": status} if eq_id(o.get("id"), order_id) else o for o in self.orders]
        try:
            self.service.update_status(order_id, status)
        except (ApiError, ValueError):
            logger.warning("Status change for order %s failed; restoring list", order_id)
            self.orders = previous
            raise
        return self.load()

    def remove(self, order_id) -> List[Dict[str, Any]]:
        previous = self.orders
        self.orders = [o for o in self.orders if not eq_id(o.get("id"), order_id)]
        try:
            self.service.delete_order(order_id)
        except (ApiError, ValueError):
            logger.warning("Delete of order %s failed; restoring list", order_id)
            self.orders = previous
            raise
        return self.load()


# -------------------- Users --------------------

def toggle_block(client: ApiClient, user: Dict[str, Any]) -> Dict[str, Any]:
    if not user or user.get("id") is None:
        raise ValueError("toggle_block: user with an id is required")
    new_block = not user.get("isBlock")
    updated = client.update_user(user["id"], {"isBlock": new_block})
    logger.info("%s user %s", "Blocked" if new_block else "Unblocked", user["id"])
    return {**user, **(updated or {"isBlock": new_block})}


def _matches(record: Dict[str, Any], fields, term: str) -> bool:
    return any(term in str(record.get(f) if record.get(f) is not None else "").lower() for f in fields)


def search_users(users: List[Dict[str, Any]], term: Optional[str]) -> List[Dict[str, Any]]:
    if not term:
        return list(users)
    term = term.lower()
    return [u for u in users if _matches(u, ("name", "email", "id"), term)]


def search_products(products: List[Dict[str, Any]], term: Optional[str]) -> List[Dict[str, Any]]:
    term = (term or "").strip().lower()
    if not term:
        return list(products)
    return [p for p in products if _matches(p, ("name", "category", "brand"), term)]


def paginate(items: List[Any], page: int = 1, page_size: int = PAGE_SIZE) -> Dict[str, Any]:
    total_pages = max(1, math.ceil(len(items) / page_size))
    page = min(max(int(page), 1), total_pages)
    start = (page - 1) * page_size
    return {
        "items": items[start:start + page_size],
        "page": page,
        "totalPages": total_pages,
        "total": len(items),
    }


# -------------------- Products --------------------

def save_product(client: ApiClient, data: Dict[str, Any], product_id=None,
                 existing: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Create a product, or replace an existing one when product_id is given."""
    fields = ProductCreate(**data).model_dump()
    if product_id is not None:
        base = existing if existing is not None else client.get_product(product_id)
        saved = client.replace_product(product_id, {**base, **fields, "id": base.get("id", product_id)})
        logger.info("Updated product %s", product_id)
        return saved
    saved = client.create_product({"id": str(int(time.time() * 1000)), **fields})
    logger.info("Created product %s", saved.get("id"))
    return saved


def delete_product(client: ApiClient, product_id) -> None:
    client.delete_product(product_id)
    logger.info("Deleted product %s", product_id)


# -------------------- Dashboard --------------------

def load_dashboard(client: ApiClient, days: int = DEFAULT_DAYS, today=None) -> Dict[str, Any]:
    products = client.get_products()
    users = client.get_users()
    orders = OrderService(client).load_orders(users)
    summary = dashboard_summary(products, users, orders)
    summary["days"] = days
    summary["revenueByDay"] = revenue_by_day(orders, days, today=today)
    return summary
