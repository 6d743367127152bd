"""
Revenue aggregation for the admin dashboard.

Orders come in loosely shaped: they may carry "totalAmount", a legacy
"total", or only their line items, and the date may sit in "orderDate" or
"createdAt" as an ISO string or as epoch milliseconds. The helpers here pick
the first usable field and treat anything unreadable as zero (amounts) or
as missing (dates).
"""

import math
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

RANGE_OPTIONS = (7, 14, 30)
DEFAULT_DAYS = 7
RECENT_ORDERS = 5


def _number(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    try:
        n = float(value)
    except (TypeError, ValueError):
        return 0.0
    return n if math.isfinite(n) else 0.0


def _non_negative(value: Any) -> float:
    return max(_number(value), 0.0)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO string or epoch milliseconds into an aware UTC datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def order_date(order: Dict[str, Any]) -> Optional[date]:
    for field in ("orderDate", "createdAt"):
        parsed = parse_timestamp(order.get(field))
        if parsed is not None:
            return parsed.date()
    return None


def items_total(items: Any) -> float:
    if not isinstance(items, list):
        return 0.0
    total = 0.0
    for item in items:
        if isinstance(item, dict):
            total += _non_negative(item.get("price")) * _non_negative(item.get("quantity"))
    return total


def order_total(order: Dict[str, Any]) -> float:
    if order.get("totalAmount") is not None:
        return _number(order["totalAmount"])
    if order.get("total") is not None:
        return _number(order["total"])
    return items_total(order.get("items"))


def total_revenue(orders: Iterable[Dict[str, Any]]) -> float:
    return sum(order_total(o) for o in orders)


def window_keys(days: int, today: Optional[date] = None) -> List[str]:
    if today is None:
        today = datetime.now(timezone.utc).date()
    return [(today - timedelta(days=i)).isoformat() for i in range(days - 1, -1, -1)]


def revenue_by_day(orders: Iterable[Dict[str, Any]], days: int = DEFAULT_DAYS, today: Optional[date] = None) -> Dict[str, int]:
    """Revenue per calendar day over the trailing window ending today.

    Returns an ordered mapping of ISO date -> rounded revenue, one entry per
    day, oldest first. Orders without a readable date, or dated outside the
    window, are left out.
    """
    days = int(days)
    if days < 1:
        raise ValueError("days must be positive")
    buckets: Dict[str, float] = {key: 0.0 for key in window_keys(days, today)}
    for order in orders:
        day = order_date(order)
        if day is None:
            continue
        key = day.isoformat()
        if key not in buckets:
            continue
        buckets[key] += order_total(order)
    return {key: round_half_up(value) for key, value in buckets.items()}


def _sort_timestamp(order: Dict[str, Any]) -> float:
    parsed = parse_timestamp(order.get("orderDate"))
    return parsed.timestamp() if parsed else 0.0


def derive_orders_from_users(users: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Flatten the order copies embedded in user records, newest first."""
    derived = []
    for user in users:
        embedded = user.get("orders")
        if not isinstance(embedded, list):
            continue
        user_name = user.get("name") or user.get("email") or "Unknown"
        for order in embedded:
            if isinstance(order, dict):
                derived.append({**order, "userId": user.get("id"), "userName": user_name})
    derived.sort(key=_sort_timestamp, reverse=True)
    return derived


def dashboard_summary(products: List[dict], users: List[dict], orders: List[dict]) -> Dict[str, Any]:
    revenue = total_revenue(orders)
    recent = []
    for o in orders[:RECENT_ORDERS]:
        recent.append({
            "id": o.get("id", o.get("orderId")),
            "customer": o.get("userName") or o.get("customer") or (str(o["userId"]) if o.get("userId") is not None else "Customer"),
            "total": order_total(o),
            "status": o.get("status") or "Pending",
        })
    return {
        "totalOrders": len(orders),
        "totalProducts": len(products),
        "totalCustomers": len(users),
        "totalRevenue": round_half_up(revenue),
        "averageOrder": round_half_up(revenue / len(orders)) if orders else 0,
        "recentOrders": recent,
    }
