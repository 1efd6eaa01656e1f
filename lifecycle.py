"""
Order lifecycle.

Orders move forward one step at a time, only by admin action:

    Pending -> Accepted -> Out for Delivery -> Delivered

``Cancelled`` exists as a terminal value but nothing in the storefront
produces it. The backend accepts any status write; the one-step rule lives
here.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from pymongo.errors import DuplicateKeyError, PyMongoError

import database
from cart import Cart
from schemas import CASH_ON_DELIVERY, Order, OrderStatus, User

logger = logging.getLogger(__name__)

STEPS = [
    OrderStatus.pending.value,
    OrderStatus.accepted.value,
    OrderStatus.out_for_delivery.value,
    OrderStatus.delivered.value,
]
TERMINAL = {OrderStatus.delivered.value, OrderStatus.cancelled.value}

# status -> (admin button label, status it moves to)
FORWARD_ACTIONS = {
    OrderStatus.pending.value: ("Accept", OrderStatus.accepted.value),
    OrderStatus.accepted.value: ("Dispatch", OrderStatus.out_for_delivery.value),
    OrderStatus.out_for_delivery.value: ("Complete", OrderStatus.delivered.value),
}

MAX_PLACEMENT_ATTEMPTS = 5


class OrderNotFound(Exception):
    pass


class TransitionError(Exception):
    pass


class OrderPlacementError(Exception):
    pass


class EmptyCart(ValueError):
    pass


def _status_value(status: Union[OrderStatus, str, None]) -> str:
    if isinstance(status, OrderStatus):
        return status.value
    return status or ""


def step_index(status: Union[OrderStatus, str, None]) -> int:
    value = _status_value(status)
    return STEPS.index(value) if value in STEPS else -1


def tracking_steps(order: Mapping[str, Any]) -> List[Dict[str, Any]]:
    current = step_index(order.get("status"))
    return [
        {"step": step, "index": idx, "done": idx <= current, "current": idx == current}
        for idx, step in enumerate(STEPS)
    ]


def tracking_message(order: Mapping[str, Any]) -> str:
    status = _status_value(order.get("status"))
    if status == OrderStatus.out_for_delivery.value:
        return "Driver is on the way..."
    return f"Order Status: {status}"


def next_status(status: Union[OrderStatus, str, None]) -> Optional[str]:
    action = FORWARD_ACTIONS.get(_status_value(status))
    return action[1] if action else None


def next_action(status: Union[OrderStatus, str, None]) -> Optional[str]:
    action = FORWARD_ACTIONS.get(_status_value(status))
    return action[0] if action else None


def is_live(order: Mapping[str, Any]) -> bool:
    return _status_value(order.get("status")) not in TERMINAL


def is_history(order: Mapping[str, Any]) -> bool:
    return not is_live(order)


def split_orders(orders: List[Mapping[str, Any]]) -> Dict[str, List[Mapping[str, Any]]]:
    return {
        "live": [o for o in orders if is_live(o)],
        "history": [o for o in orders if is_history(o)],
    }


def dashboard_stats(orders: List[Mapping[str, Any]], products: Optional[List[Any]] = None) -> Dict[str, int]:
    statuses = [_status_value(o.get("status")) for o in orders]
    return {
        "pending": statuses.count(OrderStatus.pending.value),
        "active": sum(s in (OrderStatus.accepted.value, OrderStatus.out_for_delivery.value) for s in statuses),
        "delivered": statuses.count(OrderStatus.delivered.value),
        "products": len(products or []),
    }


# ----- admin writes -----

def get_order(order_id: str) -> dict:
    order = database.select_one(database.ORDERS, "id", order_id)
    if not order:
        raise OrderNotFound(order_id)
    return order


def advance(order_id: str) -> dict:
    """Move an order exactly one step forward and return the updated row."""
    order = get_order(order_id)
    target = next_status(order.get("status"))
    if target is None:
        raise TransitionError(f"Order {order_id} is already {order.get('status')}")
    current = order.get("status")
    if not database.update(database.ORDERS, {"status": target}, "id", order_id, expect={"status": current}):
        # someone else moved it since the read above
        raise TransitionError(f"Order {order_id} is no longer {current}")
    order["status"] = target
    return order


def set_status(order_id: str, status: Union[OrderStatus, str]) -> dict:
    """Unconstrained status write, matching what the backend allows."""
    value = OrderStatus(_status_value(status)).value
    if not database.update(database.ORDERS, {"status": value}, "id", order_id):
        raise OrderNotFound(order_id)
    return get_order(order_id)


# ----- checkout -----

def _sequence_name(phone: str) -> str:
    return f"orders:{phone}"


def place_order(user: Union[User, Mapping[str, Any]], cart: Cart) -> Order:
    """
    Freeze the cart into a Pending cash-on-delivery order.

    The per-phone sequence comes from an atomic counter; the unique index on
    ``orders.id`` catches ids already taken by older rows and the next
    number is tried instead.
    """
    if isinstance(user, Mapping):
        user = User(**{k: user.get(k) for k in ("phone", "name", "address")})
    if cart.is_empty:
        raise EmptyCart("Your cart is empty.")

    items = cart.line_items()
    last_error: Optional[Exception] = None
    for _ in range(MAX_PLACEMENT_ATTEMPTS):
        try:
            seq = database.next_sequence(_sequence_name(user.phone))
            order = Order(
                id=f"{user.phone}-{seq}",
                user_phone=user.phone,
                customer_name=user.name,
                address=user.address,
                items=items,
                status=OrderStatus.pending,
                payment_mode=CASH_ON_DELIVERY,
                timestamp=database.utcnow_iso(),
            )
            database.insert(database.ORDERS, [order])
            logger.info("Placed order %s (%d lines)", order.id, len(items))
            return order
        except DuplicateKeyError as e:
            logger.warning("Order id collision for %s, retrying", user.phone)
            last_error = e
        except (PyMongoError, database.DatabaseUnavailable) as e:
            logger.exception("Order insert failed for %s", user.phone)
            raise OrderPlacementError(
                f"Order Failed: {e}. Please check that the orders table is reachable and accepts payment_mode."
            ) from e

    raise OrderPlacementError(f"Order Failed: could not allocate an order number ({last_error}).")
