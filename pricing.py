"""
Pricing rules shared by the API and the client.

The discount rule lives here and nowhere else: product create, product update
and product display all go through `effective_original_price`.
"""
import math
import os
from typing import Iterable, List, Optional, Tuple

from schemas import OrderItem

SHIPPING_FEE = float(os.getenv("SHIPPING_FEE", "60"))


def _as_number(value) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def effective_original_price(price, candidate) -> Optional[float]:
    """Return `candidate` when it is a number strictly above `price`, else None."""
    original = _as_number(candidate)
    current = _as_number(price)
    if original is None or current is None:
        return None
    if original > current:
        return original
    return None


def discount_percentage(price, candidate) -> Optional[int]:
    original = effective_original_price(price, candidate)
    if original is None:
        return None
    # half-up, matching how the storefront has always displayed it
    return int(math.floor((original - float(price)) / original * 100 + 0.5))


def subtotal(line_items: Iterable[Tuple[float, int]]) -> float:
    return sum(unit_price * quantity for unit_price, quantity in line_items)


def compute_order_total(line_items: Iterable[Tuple[float, int]], shipping_fee: float = SHIPPING_FEE) -> float:
    """Sum of unit_price * quantity over (unit_price, quantity) pairs plus shipping."""
    if shipping_fee < 0:
        raise ValueError("shipping_fee must be non-negative")
    return subtotal(line_items) + shipping_fee


def order_item_pairs(items: Iterable[OrderItem]) -> List[Tuple[float, int]]:
    return [(item.price, item.quantity) for item in items]


def freeze_line_items(cart) -> List[OrderItem]:
    """Copy each cart entry into an order line as the product looks right now."""
    return [
        OrderItem(
            name=item.product.name,
            quantity=item.quantity,
            size=item.size,
            color=item.color,
            price=item.product.price,
            image_url=item.product.image_url,
            product_id=item.product.id,
        )
        for item in cart
    ]
