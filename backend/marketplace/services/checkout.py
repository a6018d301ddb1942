"""
marketplace/services/checkout.py - Cart → Order transaction.

`place_order` runs in a single database transaction:

1. Load the buyer's cart lines (empty → EmptyCart).
2. Lock the referenced product rows (ascending id; FOR UPDATE where supported)
   and validate every line before touching anything: missing or unavailable
   product → ProductUnavailable, quantity above stock → InsufficientStock,
   more than one seller → MixedSellerCart.
3. subtotal = Σ(current price × quantity), in integer cents; the price read here
   is frozen into each OrderLine.
4. fee = platform fee of the subtotal, total = subtotal + fee.
5. Insert the Order (Pending) and its lines, decrement stock with a guarded
   UPDATE (`quantity >= ordered`), delete the buyer's cart.

Any exception rolls the whole transaction back. If an order already exists
for the idempotency key (a retry after the ledger lost track of it) that order
is returned instead of creating a second one.
"""
import logging
import secrets
import string
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from marketplace.core.errors import (
    EmptyCart,
    IdempotencyKeyReused,
    InsufficientStock,
    MixedSellerCart,
    ProductUnavailable,
)
from marketplace.integrations.payment import DEFAULT_PAYMENT_METHOD
from marketplace.model.cart import CartLine
from marketplace.model.order import INITIAL_STATUS, Order, OrderLine
from marketplace.model.product import Product
from marketplace.services.fees import platform_fee_cents
from marketplace.utils.clock import utcnow

logger = logging.getLogger("marketplace.checkout")

_ORDER_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number(now: Optional[datetime] = None) -> str:
    """ORD-<epoch millis>-<6 random chars>; uniqueness is probabilistic (column is UNIQUE)."""
    now = now or utcnow()
    millis = int((now - datetime(1970, 1, 1)).total_seconds() * 1000)
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(6))
    return f"ORD-{millis}-{suffix}"


@dataclass(frozen=True)
class PlacedLine:
    product_id: int
    name: str
    unit_price_cents: int
    quantity: int

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class PlacedOrder:
    id: int
    order_number: str
    status: str
    buyer_id: str
    seller_id: str
    subtotal_cents: int
    platform_fee_cents: int
    total_cents: int
    shipping_address: str
    payment_method: str
    created_at: datetime
    lines: List[PlacedLine] = field(default_factory=list)
    recovered: bool = False  # True when an existing order was returned for the key


def _snapshot(order: Order, lines: List[PlacedLine], recovered: bool = False) -> PlacedOrder:
    # A recovered order is rendered as it was created, whatever its status is now
    return PlacedOrder(
        id=order.id,
        order_number=order.order_number,
        status=INITIAL_STATUS if recovered else order.status,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        subtotal_cents=order.subtotal_cents,
        platform_fee_cents=order.platform_fee_cents,
        total_cents=order.total_cents,
        shipping_address=order.shipping_address,
        payment_method=order.payment_method,
        created_at=order.created_at,
        lines=lines,
        recovered=recovered,
    )


def _find_order_for_key(db: Session, buyer_id: str, idempotency_key: Optional[str]) -> Optional[PlacedOrder]:
    if not idempotency_key:
        return None
    order = db.execute(
        select(Order).where(Order.idempotency_key == idempotency_key)
    ).scalar_one_or_none()
    if order is None:
        return None
    if order.buyer_id != buyer_id:
        raise IdempotencyKeyReused()
    lines = [
        PlacedLine(l.product_id, l.product_name, l.unit_price_cents, l.quantity)
        for l in order.lines
    ]
    return _snapshot(order, lines, recovered=True)


def _lock_products(db: Session, product_ids: List[int]) -> Dict[int, Product]:
    rows = db.execute(
        select(Product)
        .where(Product.id.in_(product_ids))
        .order_by(Product.id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalars().all()
    return {p.id: p for p in rows}


def _validate(cart_lines: List[CartLine], products: Dict[int, Product]) -> str:
    """All lines are checked before any write; returns the single seller id."""
    sellers = set()
    for line in cart_lines:
        product = products.get(line.product_id)
        if product is None or not product.availability:
            name = product.name if product is not None else f"#{line.product_id}"
            raise ProductUnavailable(
                f'Product "{name}" is no longer available',
                details={"product_id": line.product_id},
            )
        if line.quantity > product.quantity:
            raise InsufficientStock(
                f'Insufficient stock for "{product.name}". Only {product.quantity} available.',
                details={
                    "product_id": product.id,
                    "requested": line.quantity,
                    "available": product.quantity,
                },
            )
        sellers.add(product.seller_id)
    if len(sellers) > 1:
        raise MixedSellerCart(details={"seller_ids": sorted(sellers)})
    return sellers.pop()


def _decrement_stock(db: Session, product_id: int, quantity: int, now: datetime) -> None:
    result = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.quantity >= quantity)
        .values(quantity=Product.quantity - quantity, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Validation saw enough stock, so only a concurrent writer can get here
        raise InsufficientStock(details={"product_id": product_id, "requested": quantity})


def place_order(
    db: Session,
    *,
    buyer_id: str,
    shipping_address: str,
    payment_method: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> PlacedOrder:
    """Runs the cart → order transaction on a session with no transaction open yet."""
    with db.begin():
        existing = _find_order_for_key(db, buyer_id, idempotency_key)
        if existing is not None:
            logger.warning("Order %s already exists for idempotency key %s", existing.order_number, idempotency_key)
            return existing

        cart_lines = db.execute(
            select(CartLine).where(CartLine.user_id == buyer_id).order_by(CartLine.product_id)
        ).scalars().all()
        if not cart_lines:
            raise EmptyCart()

        products = _lock_products(db, [l.product_id for l in cart_lines])
        seller_id = _validate(cart_lines, products)

        placed_lines = [
            PlacedLine(
                product_id=l.product_id,
                name=products[l.product_id].name,
                unit_price_cents=products[l.product_id].price_cents,
                quantity=l.quantity,
            )
            for l in cart_lines
        ]
        subtotal = sum(l.subtotal_cents for l in placed_lines)
        fee = platform_fee_cents(subtotal)
        now = utcnow()

        order = Order(
            order_number=generate_order_number(now),
            buyer_id=buyer_id,
            seller_id=seller_id,
            subtotal_cents=subtotal,
            platform_fee_cents=fee,
            total_cents=subtotal + fee,
            shipping_address=shipping_address,
            payment_method=payment_method or DEFAULT_PAYMENT_METHOD,
            idempotency_key=idempotency_key,
            status=INITIAL_STATUS,
            created_at=now,
            updated_at=now,
        )
        db.add(order)
        db.flush()

        for l in placed_lines:
            db.add(OrderLine(
                order_id=order.id,
                product_id=l.product_id,
                product_name=l.name,
                quantity=l.quantity,
                unit_price_cents=l.unit_price_cents,
            ))
            _decrement_stock(db, l.product_id, l.quantity, now)

        db.execute(
            delete(CartLine)
            .where(CartLine.user_id == buyer_id)
            .execution_options(synchronize_session=False)
        )
        db.flush()
        placed = _snapshot(order, placed_lines)

    logger.info(
        "Order %s created for buyer %s (%d lines, total_cents=%d)",
        placed.order_number, buyer_id, len(placed.lines), placed.total_cents,
    )
    return placed
