import pytest
from pymongo.errors import PyMongoError

import database
import lifecycle
from cart import Cart
from schemas import OrderStatus, User

USER = User(phone="9876543210", name="Ravi Kale", address="12 Civil Lines, Nagpur")


def _cart(*names):
    cart = Cart()
    for i, name in enumerate(names):
        cart.add_or_increment({"_id": f"p{i}", "name": name, "price": 10.0})
    return cart


@pytest.mark.parametrize("status, index", [
    ("Pending", 0),
    ("Accepted", 1),
    ("Out for Delivery", 2),
    ("Delivered", 3),
    (OrderStatus.accepted, 1),
    ("Cancelled", -1),
    ("Shipped", -1),
    (None, -1),
])
def test_step_index(status, index):
    assert lifecycle.step_index(status) == index


def test_tracking_steps_mark_done_up_to_current():
    steps = lifecycle.tracking_steps({"status": "Accepted"})
    assert [s["done"] for s in steps] == [True, True, False, False]
    assert [s["current"] for s in steps] == [False, True, False, False]


def test_tracking_message():
    assert lifecycle.tracking_message({"status": "Out for Delivery"}) == "Driver is on the way..."
    assert lifecycle.tracking_message({"status": "Pending"}) == "Order Status: Pending"


def test_exactly_one_forward_action_per_state():
    assert lifecycle.next_action("Pending") == "Accept"
    assert lifecycle.next_action("Accepted") == "Dispatch"
    assert lifecycle.next_action("Out for Delivery") == "Complete"
    assert lifecycle.next_action("Delivered") is None
    assert lifecycle.next_action("Cancelled") is None


def test_live_and_history_split():
    orders = [{"status": "Pending"}, {"status": "Delivered"}, {"status": "Cancelled"}, {"status": "Accepted"}]
    split = lifecycle.split_orders(orders)
    assert [o["status"] for o in split["live"]] == ["Pending", "Accepted"]
    assert [o["status"] for o in split["history"]] == ["Delivered", "Cancelled"]


def test_dashboard_stats():
    orders = [{"status": s} for s in ("Pending", "Pending", "Accepted", "Out for Delivery", "Delivered")]
    assert lifecycle.dashboard_stats(orders, [{}, {}]) == {"pending": 2, "active": 2, "delivered": 1, "products": 2}


def test_place_order_freezes_cart(db):
    order = lifecycle.place_order(USER, _cart("River Sand", "Red Bricks"))
    assert order.id == "9876543210-1"
    assert order.status == OrderStatus.pending
    assert order.payment_mode == "Cash on Delivery"
    assert [(i.name, i.qty) for i in order.items] == [("River Sand", 1), ("Red Bricks", 1)]

    row = database.select_one(database.ORDERS, "id", order.id)
    assert row["customer_name"] == "Ravi Kale"
    assert row["status"] == "Pending"


def test_sequence_increments_per_phone(db):
    first = lifecycle.place_order(USER, _cart("Cement"))
    second = lifecycle.place_order(USER, _cart("Cement"))
    other = lifecycle.place_order({"phone": "9000000000", "name": "A", "address": "B"}, _cart("Cement"))
    assert (first.id, second.id, other.id) == ("9876543210-1", "9876543210-2", "9000000000-1")


def test_existing_order_ids_are_skipped(db):
    db[database.ORDERS].insert_one({"id": "9876543210-1", "user_phone": "9876543210", "status": "Delivered"})
    order = lifecycle.place_order(USER, _cart("Cement"))
    assert order.id == "9876543210-2"
    assert database.count(database.ORDERS, {"user_phone": "9876543210"}) == 2


def test_empty_cart_is_refused(db):
    with pytest.raises(lifecycle.EmptyCart):
        lifecycle.place_order(USER, Cart())
    assert database.count(database.ORDERS) == 0


def test_insert_failure_is_reported(db, monkeypatch):
    def boom(table, rows):
        raise PyMongoError("connection reset")

    monkeypatch.setattr(database, "insert", boom)
    with pytest.raises(lifecycle.OrderPlacementError, match="Order Failed"):
        lifecycle.place_order(USER, _cart("Cement"))


def test_missing_database_is_reported(monkeypatch):
    monkeypatch.setattr(database, "db", None)
    with pytest.raises(lifecycle.OrderPlacementError):
        lifecycle.place_order(USER, _cart("Cement"))


def test_advance_walks_the_whole_lifecycle(db):
    order = lifecycle.place_order(USER, _cart("Cement"))
    seen = [lifecycle.advance(order.id)["status"] for _ in range(3)]
    assert seen == ["Accepted", "Out for Delivery", "Delivered"]
    assert lifecycle.get_order(order.id)["status"] == "Delivered"

    with pytest.raises(lifecycle.TransitionError):
        lifecycle.advance(order.id)


def test_advance_unknown_order(db):
    with pytest.raises(lifecycle.OrderNotFound):
        lifecycle.advance("0000000000-9")


def test_set_status_allows_any_write(db):
    order = lifecycle.place_order(USER, _cart("Cement"))
    assert lifecycle.set_status(order.id, "Delivered")["status"] == "Delivered"
    assert lifecycle.set_status(order.id, OrderStatus.pending)["status"] == "Pending"

    with pytest.raises(ValueError):
        lifecycle.set_status(order.id, "Lost")
    with pytest.raises(lifecycle.OrderNotFound):
        lifecycle.set_status("missing-1", "Accepted")


def test_advance_refuses_a_stale_read(db, monkeypatch):
    order = lifecycle.place_order(USER, _cart("Cement"))
    lifecycle.set_status(order.id, "Delivered")
    monkeypatch.setattr(lifecycle, "get_order", lambda order_id: {"id": order_id, "status": "Out for Delivery"})

    with pytest.raises(lifecycle.TransitionError):
        lifecycle.advance(order.id)
    assert database.select_one(database.ORDERS, "id", order.id)["status"] == "Delivered"


def test_update_with_expected_fields(db):
    order = lifecycle.place_order(USER, _cart("Cement"))
    assert not database.update(database.ORDERS, {"status": "Accepted"}, "id", order.id, expect={"status": "Accepted"})
    assert database.update(database.ORDERS, {"status": "Accepted"}, "id", order.id, expect={"status": "Pending"})
    assert lifecycle.get_order(order.id)["status"] == "Accepted"
