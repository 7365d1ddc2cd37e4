"""
Application state: cart, favorites and the signed-in user.

State is an immutable snapshot. The only way to change it is to dispatch one
of the actions below to an `AppStore`, which reduces the action into a new
snapshot and writes the cart, favorites and session to durable storage before
returning. Build one store at startup with `AppStore.load(storage)` and pass
it to whatever needs it.
"""
from enum import Enum
from typing import Annotated, List, Literal, Optional, Tuple, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from errors import StoreCorruptedError
from local_storage import LocalStorage
from models import CartItem, Product, UserInfo

logger = structlog.get_logger(__name__)

CART_KEY = "cart"
FAVORITES_KEY = "favorites"
USER_INFO_KEY = "user_info"


class AppState(BaseModel):
    model_config = ConfigDict(frozen=True)

    cart: Tuple[CartItem, ...] = ()
    favorites: Tuple[Product, ...] = ()
    user_info: Optional[UserInfo] = None


# ----------------------- Actions -----------------------
class CartAdd(BaseModel):
    type: Literal["cart_add"] = "cart_add"
    item: CartItem


class CartRemove(BaseModel):
    type: Literal["cart_remove"] = "cart_remove"
    product_id: str
    size: str
    color: str


class CartSetQuantity(BaseModel):
    type: Literal["cart_set_quantity"] = "cart_set_quantity"
    product_id: str
    size: str
    color: str
    quantity: int


class CartClear(BaseModel):
    type: Literal["cart_clear"] = "cart_clear"


class FavoriteAdd(BaseModel):
    type: Literal["favorite_add"] = "favorite_add"
    product: Product


class FavoriteRemove(BaseModel):
    type: Literal["favorite_remove"] = "favorite_remove"
    product_id: str


class SessionSet(BaseModel):
    type: Literal["session_set"] = "session_set"
    user_info: UserInfo


class SessionClear(BaseModel):
    type: Literal["session_clear"] = "session_clear"


Action = Annotated[
    Union[CartAdd, CartRemove, CartSetQuantity, CartClear, FavoriteAdd, FavoriteRemove, SessionSet, SessionClear],
    Field(discriminator="type"),
]
action_adapter = TypeAdapter(Action)


# ----------------------- Reducer -----------------------
def _without(cart: Tuple[CartItem, ...], key) -> Tuple[CartItem, ...]:
    return tuple(x for x in cart if x.key != key)


def reduce(state: AppState, action) -> AppState:
    if isinstance(action, CartAdd):
        new_item = action.item
        if any(x.key == new_item.key for x in state.cart):
            cart = tuple(
                x.model_copy(update={"quantity": x.quantity + new_item.quantity}) if x.key == new_item.key else x
                for x in state.cart
            )
        else:
            cart = state.cart + (new_item,)
        return state.model_copy(update={"cart": cart})

    if isinstance(action, CartRemove):
        key = (action.product_id, action.size, action.color)
        return state.model_copy(update={"cart": _without(state.cart, key)})

    if isinstance(action, CartSetQuantity):
        key = (action.product_id, action.size, action.color)
        if action.quantity <= 0:
            return state.model_copy(update={"cart": _without(state.cart, key)})
        cart = tuple(
            x.model_copy(update={"quantity": action.quantity}) if x.key == key else x
            for x in state.cart
        )
        return state.model_copy(update={"cart": cart})

    if isinstance(action, CartClear):
        return state.model_copy(update={"cart": ()})

    if isinstance(action, FavoriteAdd):
        if any(p.id == action.product.id for p in state.favorites):
            return state
        return state.model_copy(update={"favorites": state.favorites + (action.product,)})

    if isinstance(action, FavoriteRemove):
        favorites = tuple(p for p in state.favorites if p.id != action.product_id)
        return state.model_copy(update={"favorites": favorites})

    if isinstance(action, SessionSet):
        return state.model_copy(update={"user_info": action.user_info})

    if isinstance(action, SessionClear):
        # cart and favorites belong to the person signing out
        return AppState()

    raise TypeError(f"Unknown action: {action!r}")


# ----------------------- Persistence -----------------------
_cart_adapter = TypeAdapter(List[CartItem])
_favorites_adapter = TypeAdapter(List[Product])
_user_info_adapter = TypeAdapter(Optional[UserInfo])


def _read(storage: LocalStorage, key: str, adapter: TypeAdapter, default):
    try:
        raw = storage.get_item(key)
    except UnicodeDecodeError as e:
        raise StoreCorruptedError(f"Stored value for {key!r} is not UTF-8: {e}") from e
    if raw is None:
        return default
    try:
        return adapter.validate_json(raw)
    except ValidationError as e:
        raise StoreCorruptedError(f"Stored value for {key!r} is unreadable: {e}") from e


def load_state(storage: LocalStorage) -> AppState:
    return AppState(
        cart=tuple(_read(storage, CART_KEY, _cart_adapter, [])),
        favorites=tuple(_read(storage, FAVORITES_KEY, _favorites_adapter, [])),
        user_info=_read(storage, USER_INFO_KEY, _user_info_adapter, None),
    )


def save_state(storage: LocalStorage, state: AppState) -> None:
    storage.set_item(CART_KEY, _cart_adapter.dump_json(list(state.cart)).decode())
    storage.set_item(FAVORITES_KEY, _favorites_adapter.dump_json(list(state.favorites)).decode())
    storage.set_item(USER_INFO_KEY, _user_info_adapter.dump_json(state.user_info).decode())


# ----------------------- Store -----------------------
class AppStore:
    def __init__(self, storage: LocalStorage, state: Optional[AppState] = None):
        self.storage = storage
        self._state = state or AppState()

    @classmethod
    def load(cls, storage: LocalStorage) -> "AppStore":
        return cls(storage, load_state(storage))

    @property
    def state(self) -> AppState:
        return self._state

    def dispatch(self, action) -> AppState:
        new_state = reduce(self._state, action)
        self._state = new_state
        save_state(self.storage, new_state)
        logger.debug("store.dispatch", action=action.type, cart_size=len(new_state.cart))
        return new_state

    # Cart
    def add_to_cart(self, item: CartItem) -> AppState:
        return self.dispatch(CartAdd(item=item))

    def remove_from_cart(self, product_id: str, size: str, color: str) -> AppState:
        return self.dispatch(CartRemove(product_id=product_id, size=size, color=color))

    def update_quantity(self, product_id: str, size: str, color: str, quantity: int) -> AppState:
        return self.dispatch(CartSetQuantity(product_id=product_id, size=size, color=color, quantity=quantity))

    def clear_cart(self) -> AppState:
        return self.dispatch(CartClear())

    @property
    def cart(self) -> Tuple[CartItem, ...]:
        return self._state.cart

    @property
    def cart_count(self) -> int:
        return sum(x.quantity for x in self._state.cart)

    @property
    def cart_subtotal(self) -> float:
        return sum(x.line_total for x in self._state.cart)

    # Favorites
    def add_favorite(self, product: Product) -> AppState:
        return self.dispatch(FavoriteAdd(product=product))

    def remove_favorite(self, product_id: str) -> AppState:
        return self.dispatch(FavoriteRemove(product_id=product_id))

    def is_favorite(self, product_id: str) -> bool:
        return any(p.id == product_id for p in self._state.favorites)

    @property
    def favorites(self) -> Tuple[Product, ...]:
        return self._state.favorites

    # Session
    def login(self, user_info: UserInfo) -> AppState:
        return self.dispatch(SessionSet(user_info=user_info))

    def logout(self) -> AppState:
        return self.dispatch(SessionClear())

    @property
    def user_info(self) -> Optional[UserInfo]:
        return self._state.user_info


# ----------------------- Authorization gate -----------------------
class AuthState(str, Enum):
    ANONYMOUS = "anonymous"
    USER = "authenticated-user"
    ADMIN = "authenticated-admin"


class Boundary(str, Enum):
    PROTECTED = "protected"
    ADMIN = "admin"


LOGIN_PATH = "/login"
ADMIN_LOGIN_PATH = "/admin/login"
ADMIN_HOME_PATH = "/admin/dashboard"
HOME_PATH = "/"


def auth_state(user_info: Optional[UserInfo]) -> AuthState:
    if user_info is None:
        return AuthState.ANONYMOUS
    return AuthState.ADMIN if user_info.is_admin else AuthState.USER


def guard(state: AppState, boundary: Boundary) -> Optional[str]:
    """None when the boundary admits the current session, else where to send them."""
    current = auth_state(state.user_info)
    if boundary is Boundary.ADMIN:
        return None if current is AuthState.ADMIN else ADMIN_LOGIN_PATH
    if boundary is Boundary.PROTECTED:
        return None if current is not AuthState.ANONYMOUS else LOGIN_PATH
    raise TypeError(f"Unknown boundary: {boundary!r}")


def landing_path(user_info: UserInfo) -> str:
    return ADMIN_HOME_PATH if user_info.is_admin else HOME_PATH
