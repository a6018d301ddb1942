import re
import threading

import pytest
from sqlalchemy import func, select

from marketplace.core.errors import (
    EmptyCart,
    IdempotencyKeyReused,
    InsufficientStock,
    MixedSellerCart,
    ProductUnavailable,
)
from marketplace.model.cart import CartLine
from marketplace.model.order import Order, OrderLine
from marketplace.model.product import Product
from marketplace.services.checkout import generate_order_number, place_order

BUYER = "buyer-1"


def _checkout(session_factory, buyer_id=BUYER, key=None):
    with session_factory() as db:
        return place_order(db, buyer_id=buyer_id, shipping_address="Kadıköy, İstanbul", idempotency_key=key)


def _count(session_factory, model):
    with session_factory() as db:
        return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_order_number_format():
    assert re.match(r"^ORD-\d+-[A-Z0-9]{6}$", generate_order_number())


def test_successful_checkout(session_factory, add_product, add_to_cart, get_product):
    pid = add_product(price_cents=1000, quantity=5)
    add_to_cart(BUYER, pid, 2)

    placed = _checkout(session_factory)

    assert placed.status == "Pending"
    assert placed.seller_id == "seller-1"
    assert placed.subtotal_cents == 2000
    assert placed.platform_fee_cents == 5800
    assert placed.total_cents == 7800
    assert placed.payment_method == "pending"
    assert [(l.product_id, l.quantity, l.unit_price_cents) for l in placed.lines] == [(pid, 2, 1000)]
    assert get_product(pid).quantity == 3
    assert _count(session_factory, CartLine) == 0
    assert _count(session_factory, OrderLine) == 1


def test_empty_cart(session_factory):
    with pytest.raises(EmptyCart):
        _checkout(session_factory)
    assert _count(session_factory, Order) == 0


def test_unavailable_product(session_factory, add_product, add_to_cart):
    pid = add_product(availability=False)
    add_to_cart(BUYER, pid, 1)
    with pytest.raises(ProductUnavailable) as exc:
        _checkout(session_factory)
    assert exc.value.details == {"product_id": pid}


def test_insufficient_stock_leaves_everything_untouched(session_factory, add_product, add_to_cart, get_product):
    first = add_product(name="Kalem", quantity=10)
    second = add_product(name="Defter", quantity=1)
    add_to_cart(BUYER, first, 3)
    add_to_cart(BUYER, second, 2)

    with pytest.raises(InsufficientStock) as exc:
        _checkout(session_factory)

    assert exc.value.details == {"product_id": second, "requested": 2, "available": 1}
    assert get_product(first).quantity == 10
    assert get_product(second).quantity == 1
    assert _count(session_factory, Order) == 0
    assert _count(session_factory, CartLine) == 2


def test_mixed_seller_cart_is_rejected(session_factory, add_product, add_to_cart):
    a = add_product(seller_id="seller-a")
    b = add_product(seller_id="seller-b")
    add_to_cart(BUYER, a)
    add_to_cart(BUYER, b)

    with pytest.raises(MixedSellerCart) as exc:
        _checkout(session_factory)
    assert exc.value.details == {"seller_ids": ["seller-a", "seller-b"]}
    assert _count(session_factory, Order) == 0


def test_price_is_read_at_checkout_and_frozen(session_factory, add_product, add_to_cart):
    pid = add_product(price_cents=1000)
    add_to_cart(BUYER, pid, 1)
    with session_factory() as db, db.begin():
        db.get(Product, pid).price_cents = 1250

    placed = _checkout(session_factory)
    assert placed.subtotal_cents == 1250

    with session_factory() as db, db.begin():
        db.get(Product, pid).price_cents = 9999
    with session_factory() as db:
        line = db.execute(select(OrderLine)).scalar_one()
        assert line.unit_price_cents == 1250


def test_order_lines_are_immutable(session_factory, add_product, add_to_cart):
    pid = add_product()
    add_to_cart(BUYER, pid, 1)
    _checkout(session_factory)

    with session_factory() as db:
        line = db.execute(select(OrderLine)).scalar_one()
        line.quantity = 5
        with pytest.raises(ValueError):
            db.commit()


def test_existing_order_is_returned_for_same_key(session_factory, add_product, add_to_cart, get_product):
    pid = add_product(quantity=5)
    add_to_cart(BUYER, pid, 1)
    first = _checkout(session_factory, key="retry-key-000000001")

    second = _checkout(session_factory, key="retry-key-000000001")

    assert second.recovered is True
    assert second.id == first.id
    assert second.lines == first.lines
    assert get_product(pid).quantity == 4
    assert _count(session_factory, Order) == 1


def test_key_of_another_buyer_is_rejected(session_factory, add_product, add_to_cart):
    pid = add_product()
    add_to_cart(BUYER, pid, 1)
    add_to_cart("buyer-2", pid, 1)
    _checkout(session_factory, key="shared-key-00000001")

    with pytest.raises(IdempotencyKeyReused):
        _checkout(session_factory, buyer_id="buyer-2", key="shared-key-00000001")


def test_concurrent_checkouts_never_oversell(session_factory, add_product, add_to_cart, get_product):
    pid = add_product(quantity=1)
    buyers = ["buyer-a", "buyer-b", "buyer-c", "buyer-d"]
    for buyer in buyers:
        add_to_cart(buyer, pid, 1)

    barrier = threading.Barrier(len(buyers))
    results = []
    lock = threading.Lock()

    def worker(buyer):
        barrier.wait()
        try:
            _checkout(session_factory, buyer_id=buyer)
            outcome = "ok"
        except InsufficientStock:
            outcome = "insufficient_stock"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=worker, args=(b,)) for b in buyers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert sorted(results) == ["insufficient_stock"] * 3 + ["ok"]
    assert get_product(pid).quantity == 0
    assert _count(session_factory, Order) == 1
