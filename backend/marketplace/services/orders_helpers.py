# marketplace/services/orders_helpers.py
from __future__ import annotations

from typing import Any, Dict, List

from marketplace.integrations.payment import stub_payment
from marketplace.model.order import Order
from marketplace.services.checkout import PlacedOrder
from marketplace.utils.money import cents_to_amount

__all__ = [
    "checkout_payload",
    "order_to_out",
]


def checkout_payload(placed: PlacedOrder) -> Dict[str, Any]:
    """
    201 body of POST /checkout. Built only from persisted order data; a recovered
    order is snapshotted with its creation status, so it yields the same body as the
    original response.
    """
    return {
        "message": "Checkout successful",
        "order": {
            "id": placed.id,
            "orderNumber": placed.order_number,
            "status": placed.status,
            "subtotal": cents_to_amount(placed.subtotal_cents),
            "platformFee": cents_to_amount(placed.platform_fee_cents),
            "total": cents_to_amount(placed.total_cents),
            "shippingAddress": placed.shipping_address,
            "createdAt": placed.created_at.isoformat(),
        },
        "items": [
            {
                "productId": line.product_id,
                "name": line.name,
                "price": cents_to_amount(line.unit_price_cents),
                "quantity": line.quantity,
                "subtotal": cents_to_amount(line.subtotal_cents),
            }
            for line in placed.lines
        ],
        "payment": stub_payment(placed.payment_method),
    }


def order_to_out(order: Order) -> Dict[str, Any]:
    """
    Order row → dict (OrderOut ile uyumlu, snake_case; schema camelCase alias'larla serialize eder).
    """
    items: List[Dict[str, Any]] = [
        {
            "product_id": line.product_id,
            "name": line.product_name,
            "price": cents_to_amount(line.unit_price_cents),
            "quantity": line.quantity,
            "subtotal": cents_to_amount(line.subtotal_cents),
        }
        for line in order.lines
    ]
    return {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "buyer_id": order.buyer_id,
        "seller_id": order.seller_id,
        "subtotal": cents_to_amount(order.subtotal_cents),
        "platform_fee": cents_to_amount(order.platform_fee_cents),
        "total": cents_to_amount(order.total_cents),
        "shipping_address": order.shipping_address,
        "payment": stub_payment(order.payment_method),
        "items": items,
        "created_at": order.created_at,
        "updated_at": order.updated_at,
    }
