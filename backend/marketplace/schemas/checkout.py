# marketplace/schemas/checkout.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CheckoutRequest(BaseModel):
    """POST /checkout body. Accepts camelCase (client) or snake_case names."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    shipping_address: str = Field(..., alias="shippingAddress", max_length=2000)
    payment_method: Optional[str] = Field(None, alias="paymentMethod", max_length=40)

    @field_validator("shipping_address")
    @classmethod
    def _address_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Shipping address is required")
        return v

    @field_validator("payment_method")
    @classmethod
    def _method_or_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        return v.strip() or None
