# marketplace/schemas/order.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field

# Sipariş durumları
OrderStatus = Literal[
    "Pending",
    "Confirmed",
    "Shipped",
    "Delivered",
    "Cancelled",
    "Refunded",
]


# snake_case in Python, camelCase on the wire
class _Base(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OrderItemOut(_Base):
    product_id: int = Field(..., alias="productId")
    name: str
    price: float
    quantity: int
    subtotal: float


class OrderOut(_Base):
    id: int
    order_number: str = Field(..., alias="orderNumber")
    status: OrderStatus
    buyer_id: str = Field(..., alias="buyerId")
    seller_id: str = Field(..., alias="sellerId")
    subtotal: float
    platform_fee: float = Field(..., alias="platformFee")
    total: float
    shipping_address: str = Field(..., alias="shippingAddress")
    payment: Dict[str, str]
    items: List[OrderItemOut] = Field(default_factory=list)
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")


class Pagination(_Base):
    current_page: int = Field(..., alias="currentPage")
    total_pages: int = Field(..., alias="totalPages")
    total_count: int = Field(..., alias="totalCount")
    has_next_page: bool = Field(..., alias="hasNextPage")
    has_prev_page: bool = Field(..., alias="hasPrevPage")


class OrderListOut(_Base):
    orders: List[OrderOut]
    pagination: Pagination


# Status is validated against the allow-list by the service (400 invalid_status), not here
class OrderStatusUpdate(BaseModel):
    status: str = Field(..., description="Pending | Confirmed | Shipped | Delivered | Cancelled | Refunded")


class OrderStatusOut(_Base):
    message: str = "Order status updated successfully"
    order: OrderOut
