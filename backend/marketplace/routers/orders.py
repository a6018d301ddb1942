from __future__ import annotations

import math
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from marketplace.core.auth import get_principal
from marketplace.core.security import require_admin
from marketplace.database import get_db
from marketplace.model.order import Order
from marketplace.schemas.order import OrderListOut, OrderOut, OrderStatusOut, OrderStatusUpdate
from marketplace.schemas.principal import Principal
from marketplace.services.order_status import can_view, update_order_status
from marketplace.services.orders_helpers import order_to_out

router = APIRouter(prefix="/orders", tags=["Orders"])
admin_router = APIRouter(prefix="/orders", tags=["Admin Orders"])


@router.get("", response_model=OrderListOut)
def list_my_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status", description="Pending, Confirmed, ..."),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """Buyer's order history, newest first."""
    where = [Order.buyer_id == principal.uid]
    if status_filter:
        where.append(Order.status == status_filter)

    total_count = db.execute(select(func.count(Order.id)).where(*where)).scalar_one()
    orders = db.execute(
        select(Order)
        .where(*where)
        .options(selectinload(Order.lines))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()

    total_pages = math.ceil(total_count / limit)
    return {
        "orders": [order_to_out(o) for o in orders],
        "pagination": {
            "current_page": page,
            "total_pages": total_pages,
            "total_count": total_count,
            "has_next_page": page < total_pages,
            "has_prev_page": page > 1,
        },
    }


@router.get("/{order_id}", response_model=OrderOut)
def get_order_detail(
    order_id: int,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """Tekil sipariş detayı (alıcı, satıcı veya admin görebilir)."""
    order = db.execute(
        select(Order).where(Order.id == order_id).options(selectinload(Order.lines))
    ).scalar_one_or_none()
    if order is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    if not can_view(order, principal):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied to this order")
    return order_to_out(order)


@router.put("/{order_id}/status", response_model=OrderStatusOut)
def put_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """Seller of the order or an admin; InvalidStatus / OrderNotFound / Forbidden are rendered by the app handler."""
    order = update_order_status(db, order_id, payload.status, principal)
    return {"order": order_to_out(order)}


@admin_router.get("", response_model=List[OrderOut], dependencies=[Depends(require_admin)])
def admin_list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    q = select(Order).options(selectinload(Order.lines)).order_by(Order.created_at.desc(), Order.id.desc())
    if status_filter:
        q = q.where(Order.status == status_filter)
    return [order_to_out(o) for o in db.execute(q).scalars().all()]
