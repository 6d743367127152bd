from concurrent.futures import ThreadPoolExecutor

import httpx
import pytest
from pydantic import ValidationError

from api_client import ApiError
from cart import CartState
from conftest import PRODUCTS, SHIPPING, USERS, mock_client
from orders import EmptyCartError, OrderError, OrderService, new_order_id, status_progress


@pytest.fixture
def service(client):
    return OrderService(client)


@pytest.fixture
def cart(client, logged_in):
    c = CartState(client, logged_in)
    c.load()
    return c


def place_from_cart(service, cart):
    cart.add(PRODUCTS[0], quantity=2)
    cart.add(PRODUCTS[1], quantity=3)
    return service.place_order(1, SHIPPING, cart=cart)


def test_place_order_from_cart_writes_both_copies(service, cart, client):
    order = place_from_cart(service, cart)

    assert order["totalAmount"] == 1200 * 2 + 500 * 3
    assert order["status"] == "Pending"
    assert order["userId"] == "1"
    assert [i["productId"] for i in order["items"]] == [1, 2]

    canonical = client.get_order(order["id"])
    embedded = client.get_user(1)["orders"]
    assert canonical["totalAmount"] == order["totalAmount"]
    assert [o["id"] for o in embedded] == [order["id"]]


def test_place_order_clears_cart_and_decrements_stock(service, cart, client):
    place_from_cart(service, cart)
    assert cart.items == []
    assert client.get_user(1)["cart"] == []
    assert client.get_product(1)["stock"] == 3
    # 3 ordered, 1 in stock
    assert client.get_product(2)["stock"] == 0


def test_buy_now_leaves_cart_alone(service, cart, client):
    cart.add(PRODUCTS[1])
    order = service.place_order(1, SHIPPING, product={**PRODUCTS[0], "quantity": 1}, cart=cart)
    assert order["totalAmount"] == 1200
    assert len(order["items"]) == 1
    assert [i["id"] for i in cart.items] == [2]
    assert client.get_product(1)["stock"] == 4


def test_empty_cart_is_rejected(service, cart, client):
    with pytest.raises(EmptyCartError):
        service.place_order(1, SHIPPING, cart=cart)
    assert client.get_orders() == []


def test_shipping_details_are_required(service, cart):
    cart.add(PRODUCTS[0])
    with pytest.raises(ValidationError):
        service.place_order(1, {**SHIPPING, "city": " "}, cart=cart)


def test_place_order_requires_user(service):
    with pytest.raises(OrderError):
        service.place_order(None, SHIPPING, product=PRODUCTS[0])


def test_delivered_status_matches_on_both_copies(service, cart, client):
    order = place_from_cart(service, cart)
    service.update_status(order["id"], "Delivered")

    assert client.get_order(order["id"])["status"] == "Delivered"
    embedded = {str(o["id"]): o for o in client.get_user(1)["orders"]}
    assert embedded[str(order["id"])]["status"] == "Delivered"


def test_invalid_status_writes_nothing(service, cart, client):
    order = place_from_cart(service, cart)
    with pytest.raises(ValidationError):
        service.update_status(order["id"], "Lost")
    assert client.get_order(order["id"])["status"] == "Pending"


def test_status_change_of_missing_order_raises(seeded, service):
    with pytest.raises(ApiError) as exc:
        service.update_status(12345, "Shipped")
    assert exc.value.status == 404


def test_status_change_leaves_copy_diverged_when_owner_is_gone(service, cart, client, seeded):
    order = place_from_cart(service, cart)
    seeded.delete_one("users", 1)
    updated = service.update_status(order["id"], "Shipped")
    assert updated["status"] == "Shipped"
    assert client.get_order(order["id"])["status"] == "Shipped"


def test_delete_removes_both_copies(service, cart, client):
    first = place_from_cart(service, cart)
    second = service.place_order(1, SHIPPING, product=PRODUCTS[1])
    service.delete_order(first["id"])

    with pytest.raises(ApiError):
        client.get_order(first["id"])
    assert [o["id"] for o in client.get_user(1)["orders"]] == [second["id"]]


def test_reconcile_rebuilds_embedded_copy(service, client, seeded):
    client.create_order({"id": 9, "userId": "1", "status": "Shipped", "totalAmount": 10})
    client.update_user(1, {"orders": [{"id": 9, "status": "Pending"}, {"id": 77, "status": "Pending"}]})
    service.reconcile_user_orders(1)
    embedded = client.get_user(1)["orders"]
    assert [(o["id"], o["status"]) for o in embedded] == [(9, "Shipped")]


def test_load_orders_falls_back_to_user_copies():
    users = [
        {**USERS[0], "orders": [{"id": 1, "orderDate": "2024-01-01T10:00:00Z"}]},
        {**USERS[1], "orders": [{"id": 2, "orderDate": "2024-02-01T10:00:00Z"}, {"id": 3}]},
    ]

    def handler(request):
        if request.url.path == "/orders":
            return httpx.Response(500, json={"error": "boom"})
        return httpx.Response(200, json=users)

    orders = OrderService(mock_client(handler)).load_orders()
    assert [o["id"] for o in orders] == [2, 1, 3]
    assert orders[0]["userName"] == "Bob"
    assert orders[1]["userId"] == 1


@pytest.mark.parametrize("status,expected", [
    ("Pending", 10), ("processing", 45), ("Shipped", 75), ("Delivered", 100), ("Cancelled", 0), (None, 0),
])
def test_status_progress(status, expected):
    assert status_progress(status) == expected


def test_order_ids_are_unique_across_threads():
    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = list(pool.map(lambda _: new_order_id(), range(2000)))
    assert len(set(ids)) == len(ids)
