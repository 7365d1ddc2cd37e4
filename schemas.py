"""
Database Schemas for the Storefront

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.
"""
from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, EmailStr

CASH_ON_DELIVERY = "Cash on Delivery"
MANUAL_PAYMENT = "Manual Payment"

PaymentMethod = Literal["Cash on Delivery", "Manual Payment"]


class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr
    password_hash: str = Field(..., description="bcrypt hash")
    is_admin: bool = False


class Product(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = Field(None, description="Pre-sale price, kept only when above price")
    image_url: str
    category: str
    description: str
    count_in_stock: int = Field(0, ge=0)
    colors: List[str] = []
    sizes: List[str] = []


class CustomerInfo(BaseModel):
    name: str
    phone: str
    email: Optional[str] = None


class ShippingAddress(BaseModel):
    address: str
    city: str


class OrderItem(BaseModel):
    """Snapshot of a cart line at order time; never follows later product edits."""
    name: str
    quantity: int = Field(..., ge=1)
    size: str = "N/A"
    color: str = "N/A"
    price: float = Field(..., ge=0)
    image_url: str
    product_id: str


class Order(BaseModel):
    user_id: str
    customer_info: CustomerInfo
    order_items: List[OrderItem]
    shipping_address: ShippingAddress
    total_price: float = Field(0.0, ge=0)
    payment_method: PaymentMethod = CASH_ON_DELIVERY
    transaction_id: Optional[str] = None
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
