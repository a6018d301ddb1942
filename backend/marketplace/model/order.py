from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, event
from sqlalchemy.orm import relationship

from marketplace.database import Base
from marketplace.utils.clock import utcnow

# Sipariş durumları (allow-list)
ORDER_STATUSES = ("Pending", "Confirmed", "Shipped", "Delivered", "Cancelled", "Refunded")
INITIAL_STATUS = "Pending"


class Order(Base):
    __tablename__ = "orders"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(40), unique=True, nullable=False)
    buyer_id = Column(String(128), nullable=False, index=True)
    seller_id = Column(String(128), nullable=False, index=True)
    subtotal_cents = Column(Integer, nullable=False)
    platform_fee_cents = Column(Integer, nullable=False)
    total_cents = Column(Integer, nullable=False)
    shipping_address = Column(Text, nullable=False)
    payment_method = Column(String(40), nullable=False, default="pending")
    idempotency_key = Column(String(128), unique=True, nullable=True)
    status = Column(String(20), nullable=False, default=INITIAL_STATUS)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    lines = relationship("OrderLine", back_populates="order", order_by="OrderLine.id")

    __table_args__ = (
        CheckConstraint("total_cents = subtotal_cents + platform_fee_cents", name="ck_orders_total"),
    )


class OrderLine(Base):
    __tablename__ = "order_lines"
    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    product_name = Column(String(200), nullable=False)  # snapshot at order time
    quantity = Column(Integer, nullable=False)
    unit_price_cents = Column(Integer, nullable=False)  # frozen at order time

    order = relationship("Order", back_populates="lines")

    @property
    def subtotal_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@event.listens_for(OrderLine, "before_update")
def _order_lines_are_immutable(mapper, connection, target):
    raise ValueError(f"order line {target.id} is immutable")
