import pytest

from souin.layer_storage import CoalescingLayerStorage

LAYERED_KEY = "LayeredKey"
BYTE_KEY = "MyByteKey"
NONEXISTENT_KEY = "NonexistentKey"


def test_initialize_storage_is_empty():
    store = CoalescingLayerStorage()
    assert store.exists(LAYERED_KEY) is True


def test_read_and_write_in_the_layer_storage():
    store = CoalescingLayerStorage()
    store.set(LAYERED_KEY)
    assert store.exists(LAYERED_KEY) is False


def test_get_request_in_the_layer_storage():
    store = CoalescingLayerStorage()
    assert store.exists(NONEXISTENT_KEY) is True


def test_delete_request_in_cache():
    store = CoalescingLayerStorage()
    store.delete(BYTE_KEY)
    assert store.exists(BYTE_KEY) is True


def test_delete_after_set_restores_coalescing():
    store = CoalescingLayerStorage()
    store.set(BYTE_KEY)
    assert store.exists(BYTE_KEY) is False
    store.delete(BYTE_KEY)
    assert store.exists(BYTE_KEY) is True


def test_keys_are_independent():
    store = CoalescingLayerStorage()
    store.set(LAYERED_KEY)
    assert store.exists(BYTE_KEY) is True
    assert store.exists(LAYERED_KEY) is False


def test_set_after_close_raises():
    store = CoalescingLayerStorage()
    store.set(LAYERED_KEY)
    store.close()
    assert store.exists(LAYERED_KEY) is True
    with pytest.raises(RuntimeError):
        store.set(LAYERED_KEY)


def test_context_manager_closes():
    with CoalescingLayerStorage() as store:
        store.set(LAYERED_KEY)
        assert store.exists(LAYERED_KEY) is False
    with pytest.raises(RuntimeError):
        store.set(LAYERED_KEY)