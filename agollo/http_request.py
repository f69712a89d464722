"""HTTP requests to the config service with retries and response callbacks."""

from __future__ import annotations

import functools
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import urlsplit

import requests

from agollo import extension

ON_ERROR_RETRY_INTERVAL = 2.0
CONNECT_TIMEOUT = 1.0
MAX_RETRIES = 5
DEFAULT_MAX_CONNS_PER_HOST = 512

_STATUS_OK = 200
_STATUS_NOT_MODIFIED = 304


class RequestError(Exception):
    """Raised when a request to the config service cannot be completed."""


@dataclass
class ConnectConfig:
    """Connection settings for one request; ``timeout`` is in seconds, 0 means default."""

    uri: str = ""
    app_id: str = ""
    secret: str = ""
    timeout: float = 0.0
    is_retry: bool = False


@dataclass
class CallBack:
    """Callbacks invoked for successful and not-modified responses."""

    success_callback: Callable[[bytes, "CallBack"], Any] | None = None
    not_modify_callback: Callable[[], None] | None = None
    app_config_func: Callable[[], Any] | None = None
    namespace: str = ""


@functools.lru_cache(maxsize=None)
def _session() -> requests.Session:
    session = requests.Session()
    adapter = requests.adapters.HTTPAdapter(
        pool_connections=DEFAULT_MAX_CONNS_PER_HOST,
        pool_maxsize=DEFAULT_MAX_CONNS_PER_HOST,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def _auth_headers(request_url: str, connection_config: ConnectConfig | None) -> dict[str, str]:
    http_auth = extension.get_http_auth()
    if http_auth is None:
        return {}
    app_id = connection_config.app_id if connection_config is not None else ""
    secret = connection_config.secret if connection_config is not None else ""
    headers = http_auth.http_headers(request_url, app_id, secret) or {}
    return {name: ", ".join(values) for name, values in headers.items()}


def request(
    request_url: str,
    connection_config: ConnectConfig | None,
    callback: CallBack | None,
) -> Any:
    """GET ``request_url``, retrying on failures, and hand the result to ``callback``.

    Returns what the success callback returns, or None. Raises RequestError when
    the URL is unusable or every attempt failed.
    """
    logger = extension.get_logger()
    if connection_config is not None and connection_config.timeout:
        timeout = connection_config.timeout
    else:
        timeout = CONNECT_TIMEOUT

    try:
        scheme = urlsplit(request_url).scheme
    except ValueError as exc:
        logger.error("request Apollo Server url: %r is invalid: %s", request_url, exc)
        raise RequestError(f"invalid url: {request_url}") from exc
    verify = not scheme.startswith("https")

    retries = MAX_RETRIES
    if connection_config is not None and not connection_config.is_retry:
        retries = 1

    session = _session()
    last_error: Exception | None = None
    for _ in range(retries):
        try:
            prepared = session.prepare_request(
                requests.Request(
                    "GET", request_url, headers=_auth_headers(request_url, connection_config)
                )
            )
        except (requests.RequestException, ValueError) as exc:
            logger.error(
                "Generate connect Apollo request Fail, url:%s, error:%s", request_url, exc
            )
            raise RequestError("generate connect Apollo request fail") from exc

        try:
            response = session.send(prepared, timeout=timeout, verify=verify)
            with response:
                status = response.status_code
                body = response.content if status == _STATUS_OK else b""
        except requests.RequestException as exc:
            last_error = exc
            logger.error("Connect Apollo Server Fail, url:%s, error:%s", request_url, exc)
            time.sleep(ON_ERROR_RETRY_INTERVAL)
            continue

        if status == _STATUS_OK:
            if callback is not None and callback.success_callback is not None:
                return callback.success_callback(body, callback)
            return None
        if status == _STATUS_NOT_MODIFIED:
            logger.debug("Config Not Modified")
            if callback is not None and callback.not_modify_callback is not None:
                callback.not_modify_callback()
            return None

        logger.error("Connect Apollo Server Fail, url:%s, StatusCode:%d", request_url, status)
        time.sleep(ON_ERROR_RETRY_INTERVAL)

    logger.error("Over Max Retry Still Error, error: %s", last_error)
    raise RequestError("over Max Retry Still Error") from last_error