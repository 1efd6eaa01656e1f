from cart import Cart
from schemas import Product

SAND = {"_id": "p1", "name": "River Sand", "price": 55.0}
BRICKS = {"_id": "p2", "name": "Red Bricks", "price": 8.0}


def test_adding_twice_merges_into_one_entry():
    cart = Cart()
    cart.add_or_increment(SAND)
    cart.add_or_increment(SAND)
    assert cart.quantity_of("p1") == 2
    assert cart.distinct_count() == 1
    assert len(cart.items()) == 1


def test_decrement_at_one_removes_entry():
    cart = Cart()
    cart.add_or_increment(SAND)
    assert cart.decrement_or_remove(SAND) == 0
    assert "p1" not in cart
    assert cart.items() == []
    assert cart.is_empty


def test_decrement_keeps_positive_quantity():
    cart = Cart()
    for _ in range(3):
        cart.add_or_increment(SAND)
    cart.decrement_or_remove("p1")
    assert cart.quantity_of("p1") == 2
    assert all(line.qty >= 1 for line in cart.items())


def test_decrement_absent_product_is_noop():
    cart = Cart()
    cart.add_or_increment(BRICKS)
    assert cart.decrement_or_remove(SAND) == 0
    assert cart.quantity_of("p2") == 1


def test_quantity_of_missing_is_zero():
    assert Cart().quantity_of("nope") == 0


def test_insertion_order_survives_quantity_changes():
    cart = Cart()
    cart.add_or_increment(SAND)
    cart.add_or_increment(BRICKS)
    cart.add_or_increment(SAND)
    cart.add_or_increment(SAND)
    assert [line.product_id for line in cart.items()] == ["p1", "p2"]


def test_total_item_count_sums_quantities():
    cart = Cart()
    cart.add_or_increment(SAND)
    cart.add_or_increment(SAND)
    cart.add_or_increment(BRICKS)
    assert cart.total_item_count() == 3
    assert cart.distinct_count() == 2


def test_accepts_product_models():
    cart = Cart()
    cart.add_or_increment(Product(_id="p9", name="Cement OPC 53", price=410))
    assert cart.quantity_of("p9") == 1


def test_line_items_are_frozen_copies():
    cart = Cart()
    cart.add_or_increment(SAND)
    lines = cart.line_items()
    cart.add_or_increment(SAND)
    assert lines[0].qty == 1
    assert lines[0].name == "River Sand"


def test_items_returns_copies():
    cart = Cart()
    cart.add_or_increment(SAND)
    cart.items()[0].qty = 99
    assert cart.quantity_of("p1") == 1
