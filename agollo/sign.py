"""Request signing for the config service's access-key authorisation."""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from urllib.parse import unquote, urlsplit

from agollo.extension import HTTPAuth

HTTP_HEADER_AUTHORIZATION = "Authorization"
HTTP_HEADER_TIMESTAMP = "Timestamp"

_AUTHORIZATION_FORMAT = "Apollo {app_id}:{signature}"
_DELIMITER = "\n"
_QUESTION = "?"


class AuthSignature(HTTPAuth):
    """Signs requests with HMAC-SHA1 over the timestamp and request path."""

    def http_headers(self, url: str, app_id: str, secret: str) -> dict[str, list[str]]:
        timestamp = str(time.time_ns() // 1_000_000)
        string_to_sign = timestamp + _DELIMITER + url_to_path_with_query(url)
        signature = sign_string(string_to_sign, secret)
        return {
            HTTP_HEADER_AUTHORIZATION: [
                _AUTHORIZATION_FORMAT.format(app_id=app_id, signature=signature)
            ],
            HTTP_HEADER_TIMESTAMP: [timestamp],
        }


def sign_string(string_to_sign: str, secret: str) -> str:
    """Return the base64 HMAC-SHA1 of ``string_to_sign`` keyed by ``secret``."""
    digest = hmac.new(secret.encode(), string_to_sign.encode(), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


def url_to_path_with_query(raw_url: str) -> str:
    """Return the path of a URL with its raw query, or "" if it cannot be parsed."""
    try:
        parts = urlsplit(raw_url)
    except ValueError:
        return ""
    path_with_query = unquote(parts.path)
    if parts.query:
        path_with_query += _QUESTION + parts.query
    return path_with_query