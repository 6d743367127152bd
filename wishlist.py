import logging
from typing import Any, Dict, Iterable, List, Optional

from api_client import ApiClient, ApiError, eq_id
from schemas import WishlistItem
from session import Session, NotAuthenticated

logger = logging.getLogger(__name__)


def minimal_product(product: Dict[str, Any]) -> Dict[str, Any]:
    return WishlistItem(
        id=product["id"],
        name=product.get("name"),
        price=product.get("price"),
        image=product.get("image"),
        category=product.get("category"),
    ).model_dump()


class WishlistState:
    """Wishlist of the logged-in (non-admin) user.

    Items added while logged out can be handed in as local_items; refresh()
    merges them into the stored wishlist.
    """

    def __init__(self, client: ApiClient, session: Session, local_items: Optional[Iterable[Dict[str, Any]]] = None):
        self.client = client
        self.session = session
        self.local_items = list(local_items or [])
        self.items: List[Dict[str, Any]] = []

    @property
    def enabled(self) -> bool:
        return self.session.is_authenticated and not self.session.is_admin

    def contains(self, product_id) -> bool:
        return any(eq_id(item.get("id"), product_id) for item in self.items)

    def refresh(self) -> List[Dict[str, Any]]:
        if not self.enabled:
            self.items = []
            return self.items
        user_id = self.session.user_id
        stored = self.client.get_wishlist(user_id)
        for item in self.local_items:
            if any(eq_id(s.get("id"), item.get("id")) for s in stored):
                continue
            try:
                self.client.add_to_wishlist(user_id, minimal_product(item))
            except ApiError as e:
                logger.warning("Failed to merge item %s into wishlist: %s", item.get("id"), e)
        self.items = self.client.get_wishlist(user_id)
        return self.items

    def add(self, product: Dict[str, Any]) -> List[Dict[str, Any]]:
        if not self.enabled:
            raise NotAuthenticated("Please log in to add items to your wishlist!")
        if self.contains(product["id"]):
            return self.items

        entry = minimal_product(product)
        self.items = self.items + [entry]
        try:
            self.client.add_to_wishlist(self.session.user_id, entry)
        except ApiError:
            logger.warning("Failed to add %s to wishlist; rolling back", product["id"])
            self.items = [i for i in self.items if not eq_id(i.get("id"), product["id"])]
            raise
        return self.items

    def remove(self, product_id) -> List[Dict[str, Any]]:
        if not self.session.is_authenticated:
            return self.items
        self.items = [i for i in self.items if not eq_id(i.get("id"), product_id)]
        try:
            self.client.remove_from_wishlist(self.session.user_id, product_id)
        except ApiError:
            logger.warning("Failed to remove %s from wishlist; reloading", product_id)
            try:
                self.refresh()
            except ApiError as e:
                logger.warning("Wishlist reload failed: %s", e)
            raise
        return self.items
