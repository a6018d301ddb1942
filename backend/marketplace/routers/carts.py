"""
marketplace/routers/carts.py
Cart endpoints (logged-in users): add by id, change quantity, remove one, clear, get full cart.

Behavior
- One cart line per (user, product); adding an existing product increases its quantity.
- Adding checks that the product exists. Stock and availability are NOT reserved here;
  checkout re-validates everything inside its own transaction.
- GET /cart joins the current catalog: name, price, stock, availability, seller, qty, subtotal.
  Prices shown are the current ones; the order freezes the price it reads at checkout time.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from marketplace.core.auth import get_principal
from marketplace.database import get_db
from marketplace.model.cart import CartLine
from marketplace.model.product import Product
from marketplace.schemas.cart import AddItemBody, CartOut, UpdateItemBody
from marketplace.schemas.principal import Principal
from marketplace.utils.money import cents_to_amount

logger = logging.getLogger("marketplace.cart")

router = APIRouter(prefix="/cart", tags=["Cart"])


def _cart_lines(db: Session, uid: str) -> List[CartLine]:
    return db.execute(
        select(CartLine)
        .where(CartLine.user_id == uid)
        .options(selectinload(CartLine.product))
        .order_by(CartLine.product_id)
    ).scalars().all()


def _get_cart_impl(db: Session, uid: str) -> dict:
    items_out = []
    total_qty = 0
    total_cents = 0

    for line in _cart_lines(db, uid):
        p = line.product
        subtotal = p.price_cents * line.quantity
        total_qty += line.quantity
        total_cents += subtotal
        items_out.append({
            "product_id": p.id,
            "name": p.name,
            "price": cents_to_amount(p.price_cents),
            "stock": p.quantity,
            "availability": p.availability,
            "seller_id": p.seller_id,
            "qty": line.quantity,
            "subtotal": cents_to_amount(subtotal),
        })

    return {
        "user_id": uid,
        "items": items_out,
        "total_quantity": total_qty,
        "total": cents_to_amount(total_cents),
    }


def _find_line(db: Session, uid: str, product_id: int):
    return db.execute(
        select(CartLine).where(CartLine.user_id == uid, CartLine.product_id == product_id)
    ).scalar_one_or_none()


# ---------- routes ----------
@router.get("", response_model=CartOut)
def get_cart(current_user: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    """Full cart with current product information."""
    return _get_cart_impl(db, current_user.uid)


@router.post("/items", response_model=CartOut)
def add_to_cart(
    payload: AddItemBody,
    current_user: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """Add product to the cart by ID; increments the line if it is already there."""
    uid = current_user.uid
    for attempt in range(2):
        try:
            with db.begin():
                if db.get(Product, payload.product_id) is None:
                    raise HTTPException(status_code=404, detail="Product not found.")
                line = _find_line(db, uid, payload.product_id)
                if line is None:
                    db.add(CartLine(user_id=uid, product_id=payload.product_id, quantity=payload.quantity))
                else:
                    line.quantity = CartLine.quantity + payload.quantity
            break
        except IntegrityError:
            # Aynı ürünü ekleyen eşzamanlı istek satırı önce yazdı; ikinci turda artır
            if attempt:
                raise
            logger.info("Cart line for %s / %s inserted concurrently; retrying", uid, payload.product_id)
    return _get_cart_impl(db, uid)


@router.put("/items/{product_id}", response_model=CartOut)
def update_cart_item(
    product_id: int,
    payload: UpdateItemBody,
    current_user: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """Set the quantity of one line."""
    uid = current_user.uid
    with db.begin():
        line = _find_line(db, uid, product_id)
        if line is None:
            raise HTTPException(status_code=404, detail="Item not found in cart.")
        line.quantity = payload.quantity
    return _get_cart_impl(db, uid)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_cart_item(
    product_id: int,
    current_user: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """Remove one line by its product_id."""
    uid = current_user.uid
    with db.begin():
        line = _find_line(db, uid, product_id)
        if line is None:
            raise HTTPException(status_code=404, detail="Item not found in cart.")
        db.delete(line)
    return _get_cart_impl(db, uid)


@router.delete("", status_code=204)
def clear_cart(current_user: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    """Clear the entire cart."""
    with db.begin():
        db.execute(delete(CartLine).where(CartLine.user_id == current_user.uid))
    return Response(status_code=204)
