import threading
import time

import pytest

from agollo import extension
from agollo.change_event import (
    ChangeListener,
    ConfigChangeType,
    create_add_config_change,
    create_config_change_event,
    create_deleted_config_change,
    create_modify_config_change,
)
from agollo.event_dispatch import Listener, use_event_dispatch
from agollo.repository import (
    Cache,
    Config,
    MemoryCache,
    MemoryCacheFactory,
    convert_to_properties,
    create_namespace_config,
    get_default_namespace,
)


@pytest.fixture(autouse=True)
def memory_cache_factory():
    previous = extension.get_cache_factory()
    extension.set_cache_factory(MemoryCacheFactory())
    yield
    extension.set_cache_factory(previous)


def _make_cache(configurations, namespace):
    cache = create_namespace_config(namespace)
    cache.update_apollo_config_cache(configurations, 120, namespace)
    return cache


def _wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class RecordingListener(Listener):
    def __init__(self):
        self._lock = threading.Lock()
        self.keys = {}

    def event(self, event):
        with self._lock:
            self.keys[event.key] = event.value

    def value(self, key):
        with self._lock:
            return self.keys.get(key), key in self.keys

    def __len__(self):
        with self._lock:
            return len(self.keys)


class SignallingChangeListener(ChangeListener):
    def __init__(self):
        self.changed = threading.Event()
        self.newest = threading.Event()
        self.last_full = None

    def on_change(self, event):
        self.changed.set()

    def on_newest_change(self, event):
        self.last_full = event
        self.newest.set()


CONFIGURATIONS = {
    "string": "string2",
    "int": 2,
    "string_int": "2",
    "float": 1.9,
    "string_float": "1.9",
    "bool": False,
    "string_bool": "false",
    "sliceString": ["1", "2", "3"],
    "sliceStringWithSeparator": "1,2,3",
    "sliceInt": [1, 2, 3],
    "sliceIntWithSeparator": "1,2,3",
    "sliceInter": [1, "2", 3],
}


@pytest.fixture
def config():
    cache = _make_cache(dict(CONFIGURATIONS), "test")
    result = cache.get_config("test")
    assert result is not None
    return result


def test_get_default_namespace():
    assert get_default_namespace() == "application"


def test_get_config_values(config):
    assert config.get_string_value("string", "s") == "string2"
    assert config.get_string_value("s", "s") == "s"

    assert config.get_int_value("int", 3) == 2
    assert config.get_int_value("string_int", 3) == 2
    assert config.get_int_value("float", 3) == 3
    assert config.get_int_value("i", 3) == 3

    assert config.get_float_value("float", 2) == 1.9
    assert config.get_float_value("string_float", 2) == 1.9
    assert config.get_float_value("int", 2) == 2.0
    assert config.get_float_value("f", 2) == 2.0

    assert config.get_bool_value("bool", True) is False
    assert config.get_bool_value("string_bool", True) is False
    assert config.get_bool_value("int", True) is True
    assert config.get_bool_value("b", False) is False

    assert config.get_string_slice_value("sliceString", ",", []) == ["1", "2", "3"]
    assert config.get_string_slice_value("sliceStringWithSeparator", ",", []) == ["1", "2", "3"]
    assert config.get_int_slice_value("sliceInt", ",", []) == [1, 2, 3]
    assert config.get_int_slice_value("sliceIntWithSeparator", ",", []) == [1, 2, 3]
    assert config.get_slice_value("sliceInter", []) == [1, "2", 3]


def test_get_content(config):
    content = config.get_content()
    for fragment in (
        "float=1",
        "int=2",
        "string=string2",
        "bool=false",
        "sliceString=[1 2 3]",
        "sliceInt=[1 2 3]",
    ):
        assert fragment in content


def test_get_config_immediately(config):
    assert config.get_string_value_immediately("string", "s") == "string2"
    assert config.get_string_value_immediately("s", "s") == "s"

    assert config.get_int_value_immediately("int", 3) == 2
    assert config.get_int_value_immediately("string_int", 3) == 2
    assert config.get_int_value_immediately("float", 3) == 3
    assert config.get_int_value_immediately("i", 3) == 3

    assert config.get_float_value_immediately("float", 2) == 1.9
    assert config.get_float_value_immediately("string_float", 2) == 1.9
    assert config.get_float_value_immediately("f", 2) == 2.0
    assert config.get_float_value_immediately("int", 2) == 2.0

    assert config.get_bool_value_immediately("bool", True) is False
    assert config.get_bool_value_immediately("string_bool", True) is False
    assert config.get_bool_value_immediately("int", False) is False
    assert config.get_bool_value_immediately("b", False) is False

    assert config.get_string_slice_value_immediately("sliceString", []) == ["1", "2", "3"]
    assert config.get_int_slice_value_immediately("sliceInt", []) == [1, 2, 3]
    assert config.get_slice_value_immediately("sliceInter", []) == [1, "2", 3]


def test_slice_immediately_rejects_mismatched_types(config):
    assert config.get_string_slice_value_immediately("sliceInter", ["x"]) == ["x"]
    assert config.get_int_slice_value_immediately("sliceString", [9]) == [9]


def test_int_slice_with_bad_element_returns_default():
    cache = _make_cache({"bad": "1,x,3"}, "ns")
    assert cache.get_config("ns").get_int_slice_value("bad", ",", [7]) == [7]


def test_get_value_immediately():
    config = Config("namespace", MemoryCache())
    assert config.get_value_immediately("namespace") == ""

    config.mark_initialized()
    assert config.get_value_immediately("namespace") == ""
    assert config.get_value_immediately("namespace1") == ""

    config.cache.set("namespace", 1, 3)
    assert config.get_value_immediately("namespace") == ""

    config.cache.set("namespace", "config", 3)
    assert config.get_value_immediately("namespace") == "config"


def test_wait_initialized_times_out_before_update():
    config = Config("ns", MemoryCache())
    assert config.wait_initialized(0.01) is False
    config.mark_initialized()
    assert config.wait_initialized(0.01) is True


def test_get_config_empty_namespace():
    cache = create_namespace_config("application")
    assert cache.get_config("") is None
    assert cache.get_config("missing") is None


def test_create_namespace_config_splits_namespaces():
    cache = create_namespace_config("application,abc1")
    assert cache.get_config("application").namespace == "application"
    assert cache.get_config("abc1").is_initialized is False


def test_update_returns_changes():
    cache = create_namespace_config("ns")
    first = cache.update_apollo_config_cache({"a": "1", "b": "2"}, 120, "ns")
    assert {k: c.change_type for k, c in first.items()} == {
        "a": ConfigChangeType.ADDED,
        "b": ConfigChangeType.ADDED,
    }
    assert cache.get_config("ns").is_initialized is True

    second = cache.update_apollo_config_cache({"a": "1", "b": "3", "c": "4"}, 120, "ns")
    assert set(second) == {"b", "c"}
    assert second["b"].old_value == "2"
    assert second["b"].new_value == "3"

    third = cache.update_apollo_config_cache({"c": "4"}, 120, "ns")
    assert {k: c.change_type for k, c in third.items()} == {
        "a": ConfigChangeType.DELETED,
        "b": ConfigChangeType.DELETED,
    }
    assert third["a"].old_value == "1"
    assert cache.get_config("ns").get_value("a") == ""


def test_update_distinguishes_int_and_float():
    cache = _make_cache({"n": 1}, "ns")
    changes = cache.update_apollo_config_cache({"n": 1.0}, 120, "ns")
    assert changes["n"].change_type is ConfigChangeType.MODIFIED


def test_update_with_nothing_stays_uninitialized():
    cache = create_namespace_config("ns")
    assert cache.update_apollo_config_cache({}, 120, "ns") is None
    assert cache.get_config("ns").is_initialized is False


def test_update_creates_unknown_namespace():
    cache = create_namespace_config("ns")
    cache.update_apollo_config_cache({"k": "v"}, 120, "other")
    assert cache.get_config("other").get_value("k") == "v"


def test_memory_cache_operations():
    cache = MemoryCache()
    cache.set("k", "v", 10)
    assert cache.get("k") == "v"
    assert cache.entry_count() == 1
    assert cache.items() == [("k", "v")]
    assert cache.delete("k") is True
    with pytest.raises(KeyError):
        cache.get("k")
    cache.set("x", 1, 10)
    cache.clear()
    assert cache.entry_count() == 0


def test_convert_to_properties_formats_values():
    cache = MemoryCache()
    cache.set("whole", 2.0, 1)
    cache.set("big", 1234567.0, 1)
    cache.set("none", None, 1)
    assert convert_to_properties(cache) == "whole=2\nbig=1.234567e+06\nnone=<nil>\n"
    assert convert_to_properties(None) == ""


def test_change_listener_registration():
    cache = Cache()
    listener = SignallingChangeListener()
    cache.add_change_listener(None)
    assert len(cache.get_change_listeners()) == 0

    cache.add_change_listener(listener)
    assert cache.get_change_listeners() == [listener]

    cache.remove_change_listener(None)
    assert len(cache.get_change_listeners()) == 1
    cache.remove_change_listener(listener)
    assert len(cache.get_change_listeners()) == 0


def test_push_change_event_reaches_listener():
    cache = Cache()
    listener = SignallingChangeListener()
    cache.add_change_listener(listener)
    changes = {
        "add": create_add_config_change("new"),
        "delete": create_deleted_config_change("old"),
        "modify": create_modify_config_change("old", "new"),
    }
    cache.push_change_event(create_config_change_event(changes, "a", 0))
    assert listener.changed.wait(5) is True


def test_push_newest_changes_reaches_listener():
    cache = Cache()
    listener = SignallingChangeListener()
    cache.add_change_listener(listener)
    cache.push_newest_changes("ns", {"k": "v"}, 4)
    assert listener.newest.wait(5) is True
    assert listener.last_full.changes == {"k": "v"}
    assert listener.last_full.notification_id == 4


def _change_event():
    add = create_add_config_change("new")
    return create_config_change_event(
        {
            "add": add,
            "adx": add,
            "delete": create_deleted_config_change("old"),
            "modify": create_modify_config_change("old", "new"),
        },
        "a",
        0,
    )


def test_reg_dispatch_in_repository():
    dispatch = use_event_dispatch()
    listener = RecordingListener()
    dispatch.register_listener(listener, "ad.*")
    cache = create_namespace_config("abc")
    cache.add_change_listener(dispatch)
    cache.push_change_event(_change_event())
    assert _wait_for(lambda: len(listener) == 2)
    assert listener.value("add") == ("new", True)
    assert listener.value("adx") == ("new", True)


def test_dispatch_in_repository():
    dispatch = use_event_dispatch()
    listener = RecordingListener()
    dispatch.register_listener(listener, "add", "delete")
    assert len(dispatch.listeners) == 2
    cache = create_namespace_config("abc")
    cache.add_change_listener(dispatch)
    cache.push_change_event(_change_event())
    assert _wait_for(lambda: len(listener) == 2)
    time.sleep(0.1)
    assert listener.value("add") == ("new", True)
    assert listener.value("delete") == ("old", True)
    assert listener.value("modify") == (None, False)