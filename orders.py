"""
Order placement and order-status synchronization.

An order lives in two places: the canonical record in /orders and a copy in
the owning user's "orders" list. The canonical record is written first and
is authoritative. The copy is rewritten only after that write succeeds. The
store offers no transactions, so a failure between the two writes leaves
the copy stale. That is logged, and reconcile_user_orders() rebuilds the
copy from /orders.
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from api_client import ApiClient, ApiError, eq_id
from cart import CartState
from revenue import derive_orders_from_users
from schemas import Order, OrderItem, OrderStatusUpdate, ShippingDetails

logger = logging.getLogger(__name__)

STATUS_PROGRESS = {
    "pending": 10,
    "processing": 45,
    "shipped": 75,
    "delivered": 100,
    "cancelled": 0,
}


_last_order_id = 0
_order_id_lock = threading.Lock()


def new_order_id() -> int:
    """Millisecond timestamp, bumped so that ids handed out here never repeat."""
    global _last_order_id
    with _order_id_lock:
        _last_order_id = max(int(time.time() * 1000), _last_order_id + 1)
        return _last_order_id


class OrderError(Exception):
    pass


class EmptyCartError(OrderError):
    pass


def status_progress(status: Optional[str]) -> int:
    return STATUS_PROGRESS.get((status or "").lower(), 0)


def build_items(product: Optional[Dict[str, Any]] = None, cart_items: Optional[List[Dict[str, Any]]] = None) -> List[OrderItem]:
    if product is not None:
        sources = [product]
    else:
        sources = cart_items or []
    if not sources:
        raise EmptyCartError("Your cart is empty!")
    return [
        OrderItem(
            productId=p["id"],
            name=p.get("name"),
            price=p.get("price") or 0,
            quantity=p.get("quantity") or 1,
        )
        for p in sources
    ]


class OrderService:
    def __init__(self, client: ApiClient):
        self.client = client

    # -------------------- Place --------------------

    def place_order(self, user_id, shipping_details: Dict[str, Any], product: Optional[Dict[str, Any]] = None,
                    cart: Optional[CartState] = None) -> Dict[str, Any]:
        """Create an order from a single "buy now" product or from the cart."""
        if user_id is None:
            raise OrderError("Please log in before placing an order.")
        shipping = ShippingDetails(**shipping_details)
        items = build_items(product, cart.items if (product is None and cart is not None) else None)

        user = self.client.get_user(user_id)
        order = Order(
            id=new_order_id(),
            userId=str(user_id),
            items=items,
            totalAmount=sum(it.price * it.quantity for it in items),
            shippingDetails=shipping,
            orderDate=datetime.now(timezone.utc).isoformat(),
            status="Pending",
        ).model_dump()

        created = self.client.create_order(order)
        logger.info("Placed order %s for user %s (total %.2f)", created["id"], user_id, created["totalAmount"])

        embedded = [o for o in user.get("orders") or [] if isinstance(o, dict)]
        try:
            self.client.update_user(user_id, {"orders": embedded + [created]})
        except ApiError as e:
            logger.warning("Order %s placed but not copied to user %s: %s", created["id"], user_id, e)

        self.decrement_stock(created["items"])

        if product is None and cart is not None:
            cart.clear()
        return created

    def decrement_stock(self, items: List[Dict[str, Any]]) -> None:
        for item in items:
            try:
                current = self.client.get_product(item["productId"])
                new_stock = max(int(current.get("stock") or 0) - int(item.get("quantity") or 1), 0)
                self.client.update_product(item["productId"], {"stock": new_stock})
            except ApiError as e:
                logger.warning("Could not update stock for product %s: %s", item["productId"], e)

    # -------------------- Status & delete --------------------

    def update_status(self, order_id, status: str) -> Dict[str, Any]:
        payload = OrderStatusUpdate(status=status)
        updated = self.client.update_order(order_id, payload.model_dump())
        owner_id = updated.get("userId")
        if owner_id is None:
            return updated

        try:
            user = self.client.get_user(owner_id)
            embedded = user.get("orders") or []
            if not any(eq_id(o.get("id"), order_id) for o in embedded):
                logger.debug("Order %s has no copy in user %s", order_id, owner_id)
                return updated
            embedded = [
                {**o, "status": payload.status} if eq_id(o.get("id"), order_id) else o
                for o in embedded
            ]
            self.client.update_user(owner_id, {"orders": embedded})
        except ApiError as e:
            logger.warning("Order %s set to %s but user %s copy not updated: %s", order_id, payload.status, owner_id, e)
        return updated

    def delete_order(self, order_id) -> None:
        order = self.client.get_order(order_id)
        self.client.delete_order(order_id)
        logger.info("Deleted order %s", order_id)

        owner_id = order.get("userId")
        if owner_id is None:
            return
        try:
            user = self.client.get_user(owner_id)
            embedded = user.get("orders") or []
            remaining = [o for o in embedded if not eq_id(o.get("id"), order_id)]
            if len(remaining) != len(embedded):
                self.client.update_user(owner_id, {"orders": remaining})
        except ApiError as e:
            logger.warning("Order %s deleted but still copied in user %s: %s", order_id, owner_id, e)

    # -------------------- Reads --------------------

    def orders_for_user(self, user_id) -> List[Dict[str, Any]]:
        return self.client.get_orders(user_id=user_id)

    def reconcile_user_orders(self, user_id) -> List[Dict[str, Any]]:
        """Overwrite a user's embedded orders with their canonical orders."""
        canonical = self.orders_for_user(user_id)
        self.client.update_user(user_id, {"orders": canonical})
        return canonical

    def load_orders(self, users: Optional[List[Dict[str, Any]]] = None) -> List[Dict[str, Any]]:
        try:
            return self.client.get_orders()
        except ApiError as e:
            logger.warning("Orders unavailable (%s); deriving them from users", e)
        if users is None:
            users = self.client.get_users()
        return derive_orders_from_users(users)
