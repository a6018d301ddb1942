# marketplace/services/order_status.py
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from marketplace.core.errors import Forbidden, InvalidStatus, OrderNotFound
from marketplace.model.order import ORDER_STATUSES, Order
from marketplace.schemas.principal import Principal
from marketplace.utils.clock import utcnow

logger = logging.getLogger("marketplace.orders")


def can_view(order: Order, principal: Principal) -> bool:
    return principal.is_admin or principal.uid in (order.buyer_id, order.seller_id)


def can_update_status(order: Order, principal: Principal) -> bool:
    return principal.is_admin or principal.uid == order.seller_id


def update_order_status(db: Session, order_id: int, new_status: str, principal: Principal) -> Order:
    """
    Direct status write by the order's seller or an admin.
    The value is checked against the allow-list before anything is read or written.
    """
    if new_status not in ORDER_STATUSES:
        raise InvalidStatus(
            f"Invalid status. Valid statuses: {', '.join(ORDER_STATUSES)}",
            details={"valid_statuses": list(ORDER_STATUSES)},
        )

    with db.begin():
        order = db.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.lines))
            .with_for_update()
        ).scalar_one_or_none()
        if order is None:
            raise OrderNotFound()
        if not can_update_status(order, principal):
            raise Forbidden("You can only update orders for your own products")

        previous = order.status
        order.status = new_status
        order.updated_at = utcnow()

    logger.info("Order %s status %s -> %s by %s", order.order_number, previous, new_status, principal.uid)
    return order
