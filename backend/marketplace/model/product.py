from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, String, Text

from marketplace.database import Base
from marketplace.utils.clock import utcnow


class Product(Base):
    __tablename__ = "products"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    sku = Column(String(64), unique=True, nullable=True)
    price_cents = Column(Integer, nullable=False)            # fixed-point, 2 decimals
    quantity = Column(Integer, nullable=False, default=0)     # available stock
    availability = Column(Boolean, nullable=False, default=True)
    seller_id = Column(String(128), nullable=False, index=True)  # Firebase UID of the seller
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
    )
