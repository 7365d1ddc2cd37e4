import pytest

from local_storage import LocalStorage


def test_missing_key_reads_none(tmp_path):
    storage = LocalStorage(str(tmp_path))
    assert storage.get_item("cart") is None


def test_set_get_remove(tmp_path):
    storage = LocalStorage(str(tmp_path))
    storage.set_item("cart", "[1, 2]")
    assert storage.get_item("cart") == "[1, 2]"
    assert storage.keys() == ["cart"]

    storage.remove_item("cart")
    assert storage.get_item("cart") is None
    storage.remove_item("cart")


def test_values_survive_a_new_instance(tmp_path):
    LocalStorage(str(tmp_path)).set_item("favorites", '["a"]')
    assert LocalStorage(str(tmp_path)).get_item("favorites") == '["a"]'


def test_last_write_wins(tmp_path):
    first = LocalStorage(str(tmp_path))
    second = LocalStorage(str(tmp_path))
    first.set_item("cart", "first")
    second.set_item("cart", "second")
    assert first.get_item("cart") == "second"


def test_clear(tmp_path):
    storage = LocalStorage(str(tmp_path))
    storage.set_item("cart", "[]")
    storage.set_item("user_info", "null")
    storage.clear()
    assert storage.keys() == []


@pytest.mark.parametrize("key", ["", "../escape", "a/b"])
def test_rejects_unsafe_keys(tmp_path, key):
    with pytest.raises(ValueError):
        LocalStorage(str(tmp_path)).get_item(key)
