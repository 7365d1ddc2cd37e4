"""
Client-side records, shaped the way the API serves them.
"""
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

import pricing


class Product(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = None
    image_url: str = ""
    category: str = ""
    description: str = ""
    count_in_stock: int = Field(0, ge=0)
    colors: List[str] = []
    sizes: List[str] = []
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def display_original_price(self) -> Optional[float]:
        """Struck-through price for cards and detail pages, None when not on sale."""
        return pricing.effective_original_price(self.price, self.original_price)

    @property
    def on_sale(self) -> bool:
        return self.display_original_price is not None

    @property
    def discount_percentage(self) -> Optional[int]:
        return pricing.discount_percentage(self.price, self.original_price)


CartKey = Tuple[str, str, str]


class CartItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    product: Product
    quantity: int = Field(..., ge=1)
    size: str
    color: str

    @property
    def key(self) -> CartKey:
        return (self.product.id, self.size, self.color)

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


class UserInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    email: str
    is_admin: bool = False
    token: str
