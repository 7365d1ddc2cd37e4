"""
Storefront flows on top of the state store and the REST client.

Validation happens here, before anything goes over the wire. Collaborator
failures propagate as ApiError and leave the store as it was; the caller
shows the message.
"""
from typing import List, Optional

import structlog
from pydantic import BaseModel, Field

from api_client import ApiClient
from errors import ApiError, AuthorizationError, FormValidationError
from models import CartItem, Product, UserInfo
from pricing import (
    SHIPPING_FEE,
    compute_order_total,
    effective_original_price,
    freeze_line_items,
    order_item_pairs,
    subtotal,
)
from schemas import CASH_ON_DELIVERY, MANUAL_PAYMENT, PaymentMethod
from state import LOGIN_PATH, AppStore, Boundary, guard, landing_path

logger = structlog.get_logger(__name__)

DEFAULT_SIZE = "One Size"
DEFAULT_COLOR = "Default"


class CheckoutForm(BaseModel):
    name: str
    phone: str
    address: str
    city: str = "Dhaka"
    payment_method: PaymentMethod = CASH_ON_DELIVERY
    transaction_id: str = ""


class ProductForm(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    original_price: Optional[float] = None
    image_url: str
    category: str
    description: str
    count_in_stock: int = Field(0, ge=0)
    colors: List[str] = []
    sizes: List[str] = []

    def to_payload(self) -> dict:
        data = self.model_dump(exclude={"original_price"})
        original = effective_original_price(self.price, self.original_price)
        if original is not None:
            data["original_price"] = original
        return data


class Storefront:
    def __init__(self, store: AppStore, api: ApiClient):
        self.store = store
        self.api = api
        if store.user_info is not None:
            api.token = store.user_info.token

    # ----------------------- Catalog -----------------------
    def catalog(self, category: Optional[str] = None, q: Optional[str] = None) -> List[Product]:
        return self.api.list_products(category=category, q=q)

    def product(self, product_id: str) -> Product:
        return self.api.get_product(product_id)

    # ----------------------- Cart / favorites -----------------------
    def add_to_cart(self, product: Product, size: Optional[str] = None, color: Optional[str] = None, quantity: int = 1):
        if product.count_in_stock <= 0:
            raise FormValidationError("Out of stock")
        if quantity < 1:
            raise FormValidationError("Quantity must be at least 1.")
        if product.sizes:
            if not size:
                raise FormValidationError("Please select a size.")
            if size not in product.sizes:
                raise FormValidationError(f"Size {size!r} is not available.")
        else:
            size = DEFAULT_SIZE
        if product.colors:
            if not color:
                raise FormValidationError("Please select a color.")
            if color not in product.colors:
                raise FormValidationError(f"Color {color!r} is not available.")
        else:
            color = DEFAULT_COLOR
        return self.store.add_to_cart(CartItem(product=product, quantity=quantity, size=size, color=color))

    def toggle_favorite(self, product: Product) -> bool:
        """Flip the favorite flag and return the new value."""
        if self.store.is_favorite(product.id):
            self.store.remove_favorite(product.id)
            return False
        self.store.add_favorite(product)
        return True

    # ----------------------- Session -----------------------
    def _start_session(self, user_info: UserInfo) -> str:
        self.store.login(user_info)
        self.api.token = user_info.token
        logger.info("session.started", user_id=user_info.id, is_admin=user_info.is_admin)
        return landing_path(user_info)

    def login(self, email: str, password: str) -> str:
        """Sign in and return the path to land on."""
        if not email or not password:
            raise FormValidationError("Email and password are required.")
        return self._start_session(self.api.login(email, password))

    def register(self, name: str, email: str, password: str, confirm_password: str) -> str:
        if password != confirm_password:
            raise FormValidationError("Passwords do not match")
        if not name or not email or not password:
            raise FormValidationError("Name, email and password are required.")
        return self._start_session(self.api.register(name, email, password))

    def logout(self) -> None:
        self.store.logout()
        self.api.token = None

    def _require(self, boundary: Boundary) -> UserInfo:
        redirect = guard(self.store.state, boundary)
        if redirect is not None:
            raise AuthorizationError("Not authorized", redirect)
        return self.store.user_info

    # ----------------------- Checkout -----------------------
    def order_summary(self) -> dict:
        items = freeze_line_items(self.store.cart)
        pairs = order_item_pairs(items)
        return {"subtotal": subtotal(pairs), "shipping": SHIPPING_FEE, "total": compute_order_total(pairs, SHIPPING_FEE)}

    def checkout(self, form: CheckoutForm) -> dict:
        cart = self.store.cart
        if not cart:
            raise FormValidationError("Your cart is empty.")
        transaction_id = form.transaction_id.strip()
        if form.payment_method == MANUAL_PAYMENT and not transaction_id:
            raise FormValidationError("Please provide a Transaction ID (TrxID) for manual payment.")
        user = self.store.user_info
        if user is None:
            raise AuthorizationError("You must be logged in to place an order.", LOGIN_PATH)

        items = freeze_line_items(cart)
        payload = {
            "order_items": [i.model_dump() for i in items],
            "shipping_address": {"address": form.address, "city": form.city},
            "customer_info": {"name": form.name, "phone": form.phone, "email": user.email},
            "payment_method": form.payment_method,
            "total_price": compute_order_total(order_item_pairs(items), SHIPPING_FEE),
        }
        if form.payment_method == MANUAL_PAYMENT:
            payload["transaction_id"] = transaction_id

        try:
            order = self.api.create_order(payload)
        except ApiError as e:
            logger.warning("checkout.failed", status=e.status_code, detail=e.message)
            raise
        self.store.clear_cart()
        logger.info("checkout.placed", order_id=order.get("id"), total=order.get("total_price"))
        return order

    def my_orders(self) -> List[dict]:
        self._require(Boundary.PROTECTED)
        return self.api.my_orders()

    def order(self, order_id: str) -> dict:
        self._require(Boundary.PROTECTED)
        return self.api.get_order(order_id)

    # ----------------------- Admin -----------------------
    def save_product(self, form: ProductForm, product_id: Optional[str] = None) -> Product:
        self._require(Boundary.ADMIN)
        payload = form.to_payload()
        if product_id:
            return self.api.update_product(product_id, payload)
        return self.api.create_product(payload)

    def delete_product(self, product_id: str) -> None:
        self._require(Boundary.ADMIN)
        self.api.delete_product(product_id)

    def upload_image(self, path: str) -> str:
        self._require(Boundary.ADMIN)
        return self.api.upload_image(path)

    def orders(self) -> List[dict]:
        self._require(Boundary.ADMIN)
        return self.api.list_orders()

    def mark_delivered(self, order_id: str) -> dict:
        self._require(Boundary.ADMIN)
        return self.api.mark_delivered(order_id)

    def delete_order(self, order_id: str) -> None:
        self._require(Boundary.ADMIN)
        self.api.delete_order(order_id)

    def stats(self) -> dict:
        self._require(Boundary.ADMIN)
        return self.api.stats()
