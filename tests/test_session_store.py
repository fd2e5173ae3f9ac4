import pytest

from runtime.store.session_store import SessionStore


@pytest.mark.parametrize(
    "value",
    [None, True, 0, 1.5, "text", [1, [2, 3]], {"profile": {"name": "ann", "tags": ["a", "b"]}}],
)
def test_set_then_get_round_trips(value):
    store = SessionStore()
    store.set("key", value)
    assert store.get("key") == value


def test_get_missing_key_returns_none():
    assert SessionStore().get("missing") is None


def test_merge_is_shallow_last_write_wins():
    store = SessionStore()
    store.merge({"a": 1})
    store.merge({"a": 2, "b": 3})
    assert store.snapshot() == {"a": 2, "b": 3}

    store.merge({"profile": {"name": "ann", "age": 30}})
    store.merge({"profile": {"name": "bob"}})
    assert store.get("profile") == {"name": "bob"}


def test_returned_values_are_copies():
    store = SessionStore()
    original = {"items": [1, 2]}
    store.set("cart", original)
    original["items"].append(3)

    value = store.get("cart")
    value["items"].append(4)
    snapshot = store.snapshot()
    snapshot["cart"]["items"].clear()

    assert store.get("cart") == {"items": [1, 2]}


def test_non_json_values_are_rejected():
    store = SessionStore({"a": 1})
    with pytest.raises(TypeError):
        store.set("bad", object())
    with pytest.raises(TypeError):
        store.merge({"b": 2, "c": {1, 2}})
    assert store.snapshot() == {"a": 1}


def test_clear_key_and_clear_all():
    store = SessionStore({"a": 1, "b": 2})
    store.clear_key("a")
    store.clear_key("missing")
    assert store.keys() == ["b"]
    store.clear_all()
    assert len(store) == 0


def test_view_tracks_restore():
    store = SessionStore({"a": 1})
    view = store.view()
    store.restore({"b": 2})
    assert dict(view) == {"b": 2}
    assert "a" not in store
    with pytest.raises(TypeError):
        view["c"] = 3
