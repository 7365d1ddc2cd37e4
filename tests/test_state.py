import pytest

from errors import StoreCorruptedError
from local_storage import LocalStorage
from models import CartItem, Product, UserInfo
from state import (
    CART_KEY,
    USER_INFO_KEY,
    AppState,
    AppStore,
    AuthState,
    Boundary,
    CartAdd,
    CartRemove,
    CartSetQuantity,
    FavoriteAdd,
    SessionClear,
    action_adapter,
    auth_state,
    guard,
    landing_path,
    reduce,
)

SHIRT = Product(id="p1", name="Shirt", price=500, image_url="https://img/shirt.jpg", colors=["Red", "Blue"], sizes=["M", "L"])
JEANS = Product(id="p2", name="Jeans", price=300, image_url="https://img/jeans.jpg")
USER = UserInfo(id="u1", name="Rahim", email="rahim@shop.com", is_admin=False, token="t-user")
ADMIN = UserInfo(id="u2", name="Admin", email="admin@shop.com", is_admin=True, token="t-admin")


def item(product=SHIRT, quantity=1, size="M", color="Red"):
    return CartItem(product=product, quantity=quantity, size=size, color=color)


@pytest.fixture
def store(tmp_path):
    return AppStore.load(LocalStorage(str(tmp_path)))


def test_cart_add_merges_same_key():
    state = AppState()
    for qty in (1, 2, 3):
        state = reduce(state, CartAdd(item=item(quantity=qty)))
    assert len(state.cart) == 1
    assert state.cart[0].quantity == 6


def test_cart_add_keeps_variants_apart():
    state = reduce(AppState(), CartAdd(item=item(size="M")))
    state = reduce(state, CartAdd(item=item(size="L")))
    state = reduce(state, CartAdd(item=item(size="L", color="Blue")))
    assert [x.key for x in state.cart] == [("p1", "M", "Red"), ("p1", "L", "Red"), ("p1", "L", "Blue")]


def test_reduce_returns_new_snapshot():
    before = AppState()
    after = reduce(before, CartAdd(item=item()))
    assert before.cart == ()
    assert len(after.cart) == 1


def test_cart_remove_absent_is_noop():
    state = reduce(AppState(), CartAdd(item=item()))
    assert reduce(state, CartRemove(product_id="nope", size="M", color="Red")).cart == state.cart


def test_set_quantity_zero_equals_remove():
    state = reduce(AppState(), CartAdd(item=item()))
    state = reduce(state, CartAdd(item=item(product=JEANS, size="One Size", color="Default")))
    removed = reduce(state, CartRemove(product_id="p1", size="M", color="Red"))
    zeroed = reduce(state, CartSetQuantity(product_id="p1", size="M", color="Red", quantity=0))
    assert zeroed == removed
    assert reduce(state, CartSetQuantity(product_id="p1", size="M", color="Red", quantity=-2)) == removed


def test_set_quantity_replaces_and_ignores_absent():
    state = reduce(AppState(), CartAdd(item=item(quantity=2)))
    state = reduce(state, CartSetQuantity(product_id="p1", size="M", color="Red", quantity=5))
    assert state.cart[0].quantity == 5
    assert reduce(state, CartSetQuantity(product_id="p1", size="L", color="Red", quantity=9)) == state


def test_favorite_add_is_idempotent(store):
    store.add_favorite(SHIRT)
    store.add_favorite(SHIRT)
    assert [p.id for p in store.favorites] == ["p1"]
    assert store.is_favorite("p1")

    store.remove_favorite("p1")
    store.remove_favorite("p1")
    assert store.favorites == ()


def test_session_set_replaces_previous(store):
    store.login(USER)
    store.login(ADMIN)
    assert store.user_info == ADMIN


def test_logout_clears_session_cart_and_favorites(store):
    store.login(USER)
    store.add_to_cart(item())
    store.add_favorite(SHIRT)
    store.logout()
    assert store.state == AppState()


def test_unknown_action_raises():
    with pytest.raises(TypeError):
        reduce(AppState(), object())


def test_actions_parse_from_tagged_dicts():
    action = action_adapter.validate_python({"type": "cart_remove", "product_id": "p1", "size": "M", "color": "Red"})
    assert isinstance(action, CartRemove)
    assert isinstance(action_adapter.validate_python({"type": "session_clear"}), SessionClear)


def test_queries(store):
    store.add_to_cart(item(quantity=2))
    store.add_to_cart(item(product=JEANS, size="One Size", color="Default"))
    assert store.cart_count == 3
    assert store.cart_subtotal == 1300


def test_every_dispatch_is_persisted(tmp_path):
    storage = LocalStorage(str(tmp_path))
    store = AppStore.load(storage)
    store.dispatch(CartAdd(item=item(quantity=2)))
    store.dispatch(FavoriteAdd(product=JEANS))
    store.login(USER)

    reloaded = AppStore.load(storage)
    assert reloaded.state == store.state


def test_cart_round_trip_is_byte_identical(tmp_path):
    storage = LocalStorage(str(tmp_path))
    store = AppStore.load(storage)
    store.add_to_cart(item(quantity=2))
    store.add_to_cart(item(product=JEANS, size="One Size", color="Default"))
    written = storage.get_item(CART_KEY)

    restarted = AppStore.load(storage)
    restarted.dispatch(FavoriteAdd(product=SHIRT))
    assert storage.get_item(CART_KEY) == written


def test_absent_keys_load_defaults(tmp_path):
    assert AppStore.load(LocalStorage(str(tmp_path))).state == AppState()


def test_corrupted_storage_raises(tmp_path):
    storage = LocalStorage(str(tmp_path))
    storage.set_item(USER_INFO_KEY, "{not json")
    with pytest.raises(StoreCorruptedError):
        AppStore.load(storage)

    storage.set_item(USER_INFO_KEY, "null")
    storage.set_item(CART_KEY, '[{"quantity": 1}]')
    with pytest.raises(StoreCorruptedError):
        AppStore.load(storage)


def test_auth_states():
    assert auth_state(None) is AuthState.ANONYMOUS
    assert auth_state(USER) is AuthState.USER
    assert auth_state(ADMIN) is AuthState.ADMIN


def test_guard_boundaries():
    anonymous = AppState()
    user = AppState(user_info=USER)
    admin = AppState(user_info=ADMIN)

    assert guard(anonymous, Boundary.PROTECTED) == "/login"
    assert guard(user, Boundary.PROTECTED) is None
    assert guard(admin, Boundary.PROTECTED) is None

    assert guard(anonymous, Boundary.ADMIN) == "/admin/login"
    assert guard(user, Boundary.ADMIN) == "/admin/login"
    assert guard(admin, Boundary.ADMIN) is None


def test_logout_closes_protected_boundary(store):
    store.login(USER)
    assert guard(store.state, Boundary.PROTECTED) is None
    store.logout()
    assert guard(store.state, Boundary.PROTECTED) == "/login"


def test_landing_path():
    assert landing_path(ADMIN) == "/admin/dashboard"
    assert landing_path(USER) == "/"


def test_non_utf8_storage_raises(tmp_path):
    storage = LocalStorage(str(tmp_path))
    (tmp_path / "cart.json").write_bytes(b"\xff\xfe[")
    with pytest.raises(StoreCorruptedError):
        AppStore.load(storage)
