"""Entry points for plugging custom components into the client."""

from __future__ import annotations

from typing import Any

from agollo import extension
from agollo.extension import HTTPAuth


def set_signature(auth: HTTPAuth | None) -> None:
    """Install a custom HTTP authorisation component; None is ignored."""
    if auth is not None:
        extension.set_http_auth(auth)


def set_backup_file_handler(handler: Any) -> None:
    """Install a custom backup file handler; None is ignored."""
    if handler is not None:
        extension.set_file_handler(handler)


def set_load_balance(load_balance: Any) -> None:
    """Install a custom load balancer; None is ignored."""
    if load_balance is not None:
        extension.set_load_balance(load_balance)


def set_logger(logger: Any) -> None:
    """Install a custom logger; None is ignored."""
    if logger is not None:
        extension.set_logger(logger)


def set_cache(cache_factory: Any) -> None:
    """Install a custom cache factory; None is ignored."""
    if cache_factory is not None:
        extension.set_cache_factory(cache_factory)