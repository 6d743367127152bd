import logging
from typing import Any, Dict, List, Optional

from api_client import ApiClient, ApiError, eq_id
from schemas import CartItem
from session import Session

logger = logging.getLogger(__name__)


class CartState:
    """Shopping cart mirrored to the logged-in user's "cart" field.

    Entries are product snapshots carrying a "quantity". Each mutation is
    applied locally first and then written to the backend; if that write
    fails the previous entries are restored and the ApiError is re-raised.
    Anonymous carts stay local.
    """

    def __init__(self, client: ApiClient, session: Session):
        self.client = client
        self.session = session
        self.items: List[Dict[str, Any]] = []

    def load(self) -> List[Dict[str, Any]]:
        if not self.session.is_authenticated:
            return self.items
        user = self.client.get_user(self.session.user_id)
        cart = user.get("cart")
        self.items = cart if isinstance(cart, list) else []
        return self.items

    def _commit(self, updated: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        previous = self.items
        self.items = updated
        if not self.session.is_authenticated:
            return self.items
        try:
            self.client.update_user(self.session.user_id, {"cart": updated})
        except ApiError:
            logger.warning("Cart sync failed for user %s; restoring previous cart", self.session.user_id)
            self.items = previous
            raise
        return self.items

    def find(self, product_id) -> Optional[Dict[str, Any]]:
        return next((item for item in self.items if eq_id(item.get("id"), product_id)), None)

    def add(self, product: Dict[str, Any], quantity: int = 1) -> List[Dict[str, Any]]:
        if not product or product.get("id") is None:
            raise ValueError("add: product with an id is required")
        if quantity < 1:
            raise ValueError("add: quantity must be at least 1")
        if self.find(product["id"]):
            updated = [
                {**item, "quantity": int(item.get("quantity") or 0) + quantity}
                if eq_id(item.get("id"), product["id"]) else item
                for item in self.items
            ]
        else:
            entry = CartItem(**{**product, "quantity": quantity}).model_dump()
            updated = self.items + [entry]
        return self._commit(updated)

    def remove(self, product_id) -> List[Dict[str, Any]]:
        return self._commit([item for item in self.items if not eq_id(item.get("id"), product_id)])

    def increase(self, product_id) -> List[Dict[str, Any]]:
        return self._commit([
            {**item, "quantity": int(item.get("quantity") or 0) + 1}
            if eq_id(item.get("id"), product_id) else item
            for item in self.items
        ])

    def decrease(self, product_id) -> List[Dict[str, Any]]:
        # never below 1; use remove() to drop an entry
        return self._commit([
            {**item, "quantity": max(int(item.get("quantity") or 1) - 1, 1)}
            if eq_id(item.get("id"), product_id) else item
            for item in self.items
        ])

    def clear(self) -> List[Dict[str, Any]]:
        return self._commit([])

    def total(self) -> float:
        return round(sum(float(item.get("price") or 0) * int(item.get("quantity") or 1) for item in self.items), 2)

    def count(self) -> int:
        return sum(int(item.get("quantity") or 1) for item in self.items)
