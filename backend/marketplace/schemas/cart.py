"""
marketplace/schemas/cart.py - Pydantic models for Cart.
"""
from pydantic import BaseModel, Field
from typing import List


class AddItemBody(BaseModel):
    """Add to cart by ID."""
    product_id: int = Field(..., description="Product ID")
    quantity: int = Field(1, ge=1, le=10000, description="Quantity (>=1)")


class UpdateItemBody(BaseModel):
    quantity: int = Field(..., ge=1, le=10000, description="New quantity (>=1)")


class CartItemOut(BaseModel):
    product_id: int = Field(..., description="ID of the product")
    name: str = Field(..., description="Name of the product")
    price: float = Field(..., description="Current unit price (checkout uses the price at order time)")
    stock: int = Field(..., description="Available quantity right now")
    availability: bool
    seller_id: str
    qty: int = Field(..., gt=0, description="Quantity of the product in the cart")
    subtotal: float


class CartOut(BaseModel):
    user_id: str = Field(..., description="ID of the user who owns this cart")
    items: List[CartItemOut] = Field(default_factory=list, description="List of cart items")
    total_quantity: int = 0
    total: float = 0.0
