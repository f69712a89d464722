"""In-memory store of namespace configurations and change notification."""

from __future__ import annotations

import math
import re
import threading
from decimal import Decimal
from typing import Any, Iterable

from agollo import extension
from agollo.change_event import (
    ChangeEvent,
    ChangeListener,
    ConfigChange,
    FullChangeEvent,
    create_add_config_change,
    create_config_change_event,
    create_deleted_config_change,
    create_modify_config_change,
)
from agollo.utils import EMPTY

CONFIG_CACHE_EXPIRE_TIME = 120
DEFAULT_NAMESPACE = "application"

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_INT_RE = re.compile(r"[+-]?[0-9]+")
_BOOL_STRINGS = {
    "1": True, "t": True, "T": True, "TRUE": True, "true": True, "True": True,
    "0": False, "f": False, "F": False, "FALSE": False, "false": False, "False": False,
}


class MemoryCache:
    """Thread-safe key/value cache; expiry times are accepted but not enforced."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}
        self._lock = threading.Lock()

    def set(self, key: str, value: Any, expire_seconds: int) -> None:
        """Store ``value`` under ``key``."""
        with self._lock:
            self._data[key] = value

    def get(self, key: str) -> Any:
        """Return the value for ``key``; raise KeyError when absent."""
        with self._lock:
            return self._data[key]

    def delete(self, key: str) -> bool:
        """Remove ``key``; always reports success."""
        with self._lock:
            self._data.pop(key, None)
        return True

    def entry_count(self) -> int:
        """Return the number of stored entries."""
        with self._lock:
            return len(self._data)

    def items(self) -> list[tuple[str, Any]]:
        """Return a snapshot of all entries."""
        with self._lock:
            return list(self._data.items())

    def clear(self) -> None:
        """Remove every entry."""
        with self._lock:
            self._data.clear()


class MemoryCacheFactory:
    """Creates in-memory caches."""

    def create(self) -> MemoryCache:
        return MemoryCache()


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _atoi(text: str) -> int | None:
    if not _INT_RE.fullmatch(text):
        return None
    number = int(text)
    if not _INT64_MIN <= number <= _INT64_MAX:
        return None
    return number


def _parse_float(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _is_int_list(value: Any) -> bool:
    return isinstance(value, list) and all(_is_int(item) for item in value)


def _same_value(old: Any, new: Any) -> bool:
    return type(old) is type(new) and old == new


def _format_float(number: float) -> str:
    if math.isnan(number):
        return "NaN"
    if math.isinf(number):
        return "+Inf" if number > 0 else "-Inf"
    if number == 0:
        return "-0" if math.copysign(1.0, number) < 0 else "0"
    sign, digit_tuple, exponent = Decimal(repr(number)).as_tuple()
    raw = "".join(map(str, digit_tuple))
    digits = raw.rstrip("0")
    exponent += len(raw) - len(digits)
    count = len(digits)
    point = count + exponent
    exp = point - 1
    prefix = "-" if sign else ""
    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if count > 1 else "")
        exp_sign = "-" if exp < 0 else "+"
        return f"{prefix}{mantissa}e{exp_sign}{abs(exp):02d}"
    if point <= 0:
        return f"{prefix}0.{'0' * -point}{digits}"
    if point >= count:
        return prefix + digits + "0" * (point - count)
    return f"{prefix}{digits[:point]}.{digits[point:]}"


def _format_value(value: Any) -> str:
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, (list, tuple)):
        return "[" + " ".join(_format_value(item) for item in value) + "]"
    if isinstance(value, dict):
        pairs = sorted(value.items(), key=lambda item: str(item[0]))
        return "map[" + " ".join(f"{_format_value(k)}:{_format_value(v)}" for k, v in pairs) + "]"
    return str(value)


class Config:
    """Configuration values of one namespace."""

    def __init__(self, namespace: str, cache: Any) -> None:
        self.namespace = namespace
        self.cache = cache
        self._initialized = threading.Event()

    @property
    def is_initialized(self) -> bool:
        """Whether the namespace has received its first configuration."""
        return self._initialized.is_set()

    def mark_initialized(self) -> None:
        """Flag the namespace as initialised and release waiting readers."""
        self._initialized.set()

    def wait_initialized(self, timeout: float | None = None) -> bool:
        """Block until initialised or ``timeout`` elapses; return whether initialised."""
        return self._initialized.wait(timeout)

    def _get_config_value(self, key: str, wait: bool) -> Any:
        logger = extension.get_logger()
        if not self.is_initialized:
            if not wait:
                logger.error(
                    "getConfigValue fail, init not done, namespace:%s key:%s", self.namespace, key
                )
                return None
            self._initialized.wait()
        if self.cache is None:
            logger.error("get config value fail! namespace:%s not exist!", self.namespace)
            return None
        try:
            return self.cache.get(key)
        except KeyError as exc:
            logger.error("get config value fail! key:%s, error:%s", key, exc)
            return None

    def _string(self, key: str, wait: bool) -> str:
        value = self._get_config_value(key, wait)
        if value is None:
            return EMPTY
        if not isinstance(value, str):
            extension.get_logger().debug("convert to string fail ! source type:%s", type(value))
            return EMPTY
        return value

    def _int(self, key: str, default: int, wait: bool) -> int:
        value = self._get_config_value(key, wait)
        if value is None:
            return default
        if _is_int(value):
            return value
        if not isinstance(value, str):
            extension.get_logger().debug("convert to int fail ! source type:%s", type(value))
            return default
        number = _atoi(value)
        return default if number is None else number

    def _float(self, key: str, default: float, wait: bool) -> float:
        value = self._get_config_value(key, wait)
        if value is None:
            return default
        if isinstance(value, float):
            return value
        if not isinstance(value, str):
            extension.get_logger().debug("convert to float fail ! source type:%s", type(value))
            return default
        number = _parse_float(value)
        return default if number is None else number

    def _bool(self, key: str, default: bool, wait: bool) -> bool:
        value = self._get_config_value(key, wait)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if not isinstance(value, str):
            extension.get_logger().debug("convert to bool fail ! source type:%s", type(value))
            return default
        return _BOOL_STRINGS.get(value, default)

    def get_value_immediately(self, key: str) -> str:
        """Return the string value without waiting for initialisation."""
        return self._string(key, wait=False)

    def get_string_value_immediately(self, key: str, default: str) -> str:
        value = self.get_value_immediately(key)
        return default if value == EMPTY else value

    def get_string_slice_value_immediately(self, key: str, default: list[str]) -> list[str]:
        value = self._get_config_value(key, False)
        return value if value is not None and _is_str_list(value) else default

    def get_int_slice_value_immediately(self, key: str, default: list[int]) -> list[int]:
        value = self._get_config_value(key, False)
        return value if value is not None and _is_int_list(value) else default

    def get_slice_value_immediately(self, key: str, default: list[Any]) -> list[Any]:
        value = self._get_config_value(key, False)
        return value if isinstance(value, list) else default

    def get_int_value_immediately(self, key: str, default: int) -> int:
        return self._int(key, default, wait=False)

    def get_float_value_immediately(self, key: str, default: float) -> float:
        return self._float(key, default, wait=False)

    def get_bool_value_immediately(self, key: str, default: bool) -> bool:
        return self._bool(key, default, wait=False)

    def get_value(self, key: str) -> str:
        """Return the string value, waiting for initialisation first."""
        return self._string(key, wait=True)

    def get_string_value(self, key: str, default: str) -> str:
        value = self.get_value(key)
        return default if value == EMPTY else value

    def get_string_slice_value(self, key: str, separator: str, default: list[str] | None) -> list[str] | None:
        """Return a list of strings, splitting a string value on ``separator``."""
        value = self._get_config_value(key, True)
        if value is None:
            return default
        if _is_str_list(value):
            return value
        if not isinstance(value, str):
            return default
        return list(value) if separator == "" else value.split(separator)

    def get_int_slice_value(self, key: str, separator: str, default: list[int]) -> list[int]:
        """Return a list of ints, splitting and converting a string value if needed."""
        value = self._get_config_value(key, True)
        if value is None:
            return default
        if _is_int_list(value):
            return value
        parts = self.get_string_slice_value(key, separator, None)
        if parts is None:
            return default
        numbers = [_atoi(part) for part in parts]
        if any(number is None for number in numbers):
            return default
        return numbers

    def get_slice_value(self, key: str, default: list[Any]) -> list[Any]:
        value = self._get_config_value(key, True)
        return value if isinstance(value, list) else default

    def get_int_value(self, key: str, default: int) -> int:
        return self._int(key, default, wait=True)

    def get_float_value(self, key: str, default: float) -> float:
        return self._float(key, default, wait=True)

    def get_bool_value(self, key: str, default: bool) -> bool:
        return self._bool(key, default, wait=True)

    def get_content(self) -> str:
        """Return the namespace rendered as ``key=value`` lines."""
        return convert_to_properties(self.cache)


def _new_config(namespace: str) -> Config:
    factory = extension.get_cache_factory() or MemoryCacheFactory()
    return Config(namespace, factory.create())


def _split_namespaces(namespaces: str) -> Iterable[str]:
    for name in namespaces.split(","):
        name = name.strip()
        if name:
            yield name


class Cache:
    """Configurations of all namespaces plus their change listeners."""

    def __init__(self, configs: dict[str, Config] | None = None) -> None:
        self._configs: dict[str, Config] = dict(configs or {})
        self._listeners: list[ChangeListener] = []
        self._lock = threading.RLock()

    def get_config(self, namespace: str) -> Config | None:
        """Return the configuration of ``namespace``, or None."""
        if not namespace:
            return None
        with self._lock:
            return self._configs.get(namespace)

    def update_apollo_config_cache(
        self, configurations: dict[str, Any] | None, expire_time: int, namespace: str
    ) -> dict[str, ConfigChange] | None:
        """Replace a namespace's values and return the changes, or None if both are empty."""
        configurations = configurations or {}
        with self._lock:
            config = self._configs.get(namespace) if namespace else None
            if config is None:
                config = _new_config(namespace)
                self._configs[namespace] = config

        cache = config.cache
        if not configurations and cache.entry_count() == 0:
            return None

        old_keys = {key for key, _ in cache.items()}
        changes: dict[str, ConfigChange] = {}
        logger = extension.get_logger()

        for key, value in configurations.items():
            if key not in old_keys:
                changes[key] = create_add_config_change(value)
            else:
                old_value = _cache_get(cache, key)
                if not _same_value(old_value, value):
                    changes[key] = create_modify_config_change(old_value, value)
            try:
                cache.set(key, value, expire_time)
            except Exception as exc:  # custom caches may reject a value
                logger.error("set key %s to cache, error: %s", key, exc)
            old_keys.discard(key)

        for key in old_keys:
            changes[key] = create_deleted_config_change(_cache_get(cache, key))
            cache.delete(key)

        config.mark_initialized()
        return changes

    def add_change_listener(self, listener: ChangeListener | None) -> None:
        """Register a change listener; None is ignored."""
        if listener is None:
            return
        with self._lock:
            self._listeners.append(listener)

    def remove_change_listener(self, listener: ChangeListener | None) -> None:
        """Remove every registration of ``listener``; None is ignored."""
        if listener is None:
            return
        with self._lock:
            self._listeners = [item for item in self._listeners if item is not listener]

    def get_change_listeners(self) -> list[ChangeListener]:
        """Return a snapshot of the registered change listeners."""
        with self._lock:
            return list(self._listeners)

    def push_change_event(self, event: ChangeEvent) -> None:
        """Deliver ``event`` to every listener on its own thread."""
        for listener in self.get_change_listeners():
            threading.Thread(target=listener.on_change, args=(event,), daemon=True).start()

    def push_newest_changes(
        self, namespace: str, configurations: dict[str, Any], notification_id: int
    ) -> None:
        """Deliver the full configuration of a namespace to every listener."""
        event = FullChangeEvent(
            namespace=namespace, notification_id=notification_id, changes=configurations
        )
        for listener in self.get_change_listeners():
            threading.Thread(target=listener.on_newest_change, args=(event,), daemon=True).start()

    def create_change_event(
        self, changes: dict[str, ConfigChange], namespace: str, notification_id: int
    ) -> ChangeEvent:
        """Build a change event for this cache's listeners."""
        return create_config_change_event(changes, namespace, notification_id)


def _cache_get(cache: Any, key: str) -> Any:
    try:
        return cache.get(key)
    except KeyError:
        return None


def create_namespace_config(namespace: str) -> Cache:
    """Create a cache holding an uninitialised config for each comma-separated namespace."""
    configs: dict[str, Config] = {}
    for name in _split_namespaces(namespace):
        if name not in configs:
            configs[name] = _new_config(name)
    return Cache(configs)


def get_default_namespace() -> str:
    """Return the name of the default namespace."""
    return DEFAULT_NAMESPACE


def convert_to_properties(cache: Any) -> str:
    """Render a cache as ``key=value`` lines, one per entry."""
    if cache is None:
        return EMPTY
    return "".join(f"{key}={_format_value(value)}\n" for key, value in cache.items())