"""Dispatches configuration changes to listeners registered by key pattern."""

from __future__ import annotations

import re
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from agollo import extension
from agollo.change_event import (
    ChangeEvent,
    ChangeListener,
    ConfigChange,
    ConfigChangeType,
    FullChangeEvent,
)


class NilListenerError(ValueError):
    """Raised when a missing listener is registered or unregistered."""

    def __init__(self, message: str = "nil listener") -> None:
        super().__init__(message)


@dataclass
class Event:
    """A change to one key, as delivered to a listener."""

    event_type: ConfigChangeType
    key: str
    value: Any = None


class Listener(ABC):
    """Receives events for the keys it was registered for."""

    @abstractmethod
    def event(self, event: Event) -> None:
        """Handle one key change."""


def _invalid_key(key: str) -> bool:
    try:
        re.compile(key)
    except re.error:
        return True
    return False


class Dispatcher(ChangeListener):
    """Routes change events to listeners whose key pattern matches the changed key."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self._lock = threading.Lock()

    @property
    def listeners(self) -> dict[str, list[Listener]]:
        """A snapshot of the registered listeners per key pattern."""
        with self._lock:
            return {key: list(registered) for key, registered in self._listeners.items()}

    def register_listener(self, listener: Listener | None, *args: str) -> None:
        """Register ``listener`` for each key pattern in ``args``.

        Registration stops at the first pattern the listener already holds.
        """
        extension.get_logger().info("start add key %s add listener", args)
        if listener is None:
            raise NilListenerError()
        with self._lock:
            for key in args:
                if _invalid_key(key):
                    raise ValueError(f"invalid key format for key {key}")
                registered = self._listeners.setdefault(key, [])
                if any(existing is listener for existing in registered):
                    extension.get_logger().info("key %s had listener", key)
                    return
                registered.append(listener)

    def unregister_listener(self, listener: Listener | None, *args: str) -> None:
        """Remove ``listener`` from each key pattern in ``args``."""
        if listener is None:
            raise NilListenerError()
        with self._lock:
            for key in args:
                registered = self._listeners.get(key)
                if registered is None:
                    continue
                self._listeners[key] = [
                    existing for existing in registered if existing is not listener
                ]

    def on_change(self, event: ChangeEvent | None) -> None:
        if event is None:
            return
        extension.get_logger().info("get change event for namespace %s", event.namespace)
        for key, change in event.changes.items():
            self._dispatch_event(key, change)

    def on_newest_change(self, event: FullChangeEvent) -> None:
        """Full snapshots are not dispatched per key."""

    def _dispatch_event(self, event_key: str, change: ConfigChange) -> None:
        with self._lock:
            snapshot = [(pattern, list(registered)) for pattern, registered in self._listeners.items()]
        logger = extension.get_logger()
        for pattern, registered in snapshot:
            try:
                matched = re.search(pattern, event_key) is not None
            except re.error as exc:
                logger.error("regular expression for key %s, error: %s", event_key, exc)
                continue
            if not matched:
                continue
            for listener in registered:
                logger.info("event generated for %s key %s", pattern, event_key)
                threading.Thread(
                    target=listener.event,
                    args=(convert_to_event(event_key, change),),
                    daemon=True,
                ).start()


def use_event_dispatch() -> Dispatcher:
    """Return a new, empty dispatcher."""
    return Dispatcher()


def convert_to_event(key: str, change: ConfigChange) -> Event:
    """Turn a config change into an event carrying the relevant value."""
    if change.change_type is ConfigChangeType.DELETED:
        value = change.old_value
    else:
        value = change.new_value
    return Event(event_type=change.change_type, key=key, value=value)