"""Configuration change events and the listener interface that receives them."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class ConfigChangeType(enum.IntEnum):
    """Kind of change applied to a single configuration key."""

    ADDED = 0
    MODIFIED = 1
    DELETED = 2


@dataclass
class ConfigChange:
    """Old and new value of one key together with the kind of change."""

    change_type: ConfigChangeType
    old_value: Any = None
    new_value: Any = None


@dataclass
class ChangeEvent:
    """The keys that changed in one namespace."""

    namespace: str = ""
    notification_id: int = 0
    changes: dict[str, ConfigChange] = field(default_factory=dict)


@dataclass
class FullChangeEvent:
    """The complete, newest configuration of one namespace."""

    namespace: str = ""
    notification_id: int = 0
    changes: dict[str, Any] = field(default_factory=dict)


class ChangeListener(ABC):
    """Receives configuration change notifications."""

    @abstractmethod
    def on_change(self, event: ChangeEvent) -> None:
        """Handle the keys that changed."""

    @abstractmethod
    def on_newest_change(self, event: FullChangeEvent) -> None:
        """Handle the full, newest configuration."""


def create_modify_config_change(old_value: Any, new_value: Any) -> ConfigChange:
    """Return a change describing a modified key."""
    return ConfigChange(
        change_type=ConfigChangeType.MODIFIED, old_value=old_value, new_value=new_value
    )


def create_add_config_change(new_value: Any) -> ConfigChange:
    """Return a change describing an added key."""
    return ConfigChange(change_type=ConfigChangeType.ADDED, new_value=new_value)


def create_deleted_config_change(old_value: Any) -> ConfigChange:
    """Return a change describing a deleted key."""
    return ConfigChange(change_type=ConfigChangeType.DELETED, old_value=old_value)


def create_config_change_event(
    changes: dict[str, ConfigChange], namespace: str, notification_id: int
) -> ChangeEvent:
    """Build a change event for a namespace from a mapping of changes."""
    return ChangeEvent(namespace=namespace, notification_id=notification_id, changes=changes)