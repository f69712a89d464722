"""Registry of pluggable components used by the client."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any


class HTTPAuth(ABC):
    """Produces authorisation headers for requests to the config service."""

    @abstractmethod
    def http_headers(self, url: str, app_id: str, secret: str) -> dict[str, list[str]] | None:
        """Return the headers to send with a request to ``url``."""


class ContentParser(ABC):
    """Turns raw configuration content into a flat mapping."""

    @abstractmethod
    def parse(self, content: Any) -> dict[str, Any] | None:
        """Parse ``content`` into key/value pairs."""


_components: dict[str, Any] = {
    "cache_factory": None,
    "file_handler": None,
    "load_balance": None,
    "http_auth": None,
    "logger": logging.getLogger("agollo"),
}
_format_parsers: dict[Any, ContentParser] = {}


def set_cache_factory(factory: Any) -> None:
    """Replace the cache factory."""
    _components["cache_factory"] = factory


def get_cache_factory() -> Any:
    """Return the cache factory."""
    return _components["cache_factory"]


def set_file_handler(handler: Any) -> None:
    """Replace the backup file handler."""
    _components["file_handler"] = handler


def get_file_handler() -> Any:
    """Return the backup file handler."""
    return _components["file_handler"]


def add_format_parser(key: Any, parser: ContentParser) -> None:
    """Register a content parser for a config file format."""
    _format_parsers[key] = parser


def get_format_parser(key: Any) -> ContentParser | None:
    """Return the parser registered for a format, or None."""
    return _format_parsers.get(key)


def set_load_balance(load_balance: Any) -> None:
    """Replace the load balancer."""
    _components["load_balance"] = load_balance


def get_load_balance() -> Any:
    """Return the load balancer."""
    return _components["load_balance"]


def set_http_auth(http_auth: HTTPAuth | None) -> None:
    """Replace the HTTP authorisation component."""
    _components["http_auth"] = http_auth


def get_http_auth() -> HTTPAuth | None:
    """Return the HTTP authorisation component."""
    return _components["http_auth"]


def set_logger(logger: Any) -> None:
    """Replace the logger."""
    _components["logger"] = logger


def get_logger() -> Any:
    """Return the logger."""
    return _components["logger"]