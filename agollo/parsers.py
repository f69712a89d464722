"""Content parsers for the supported configuration file formats."""

from __future__ import annotations

from typing import Any

import yaml

from agollo.extension import ContentParser
from agollo.utils import EMPTY


class NormalParser(ContentParser):
    """Default parser: content is kept as is and yields no key/value pairs."""

    def parse(self, content: Any) -> dict[str, Any] | None:
        return None


class PropertiesParser(ContentParser):
    """Properties content arrives already split into keys, so nothing is parsed."""

    def parse(self, content: Any) -> dict[str, Any] | None:
        return None


class YAMLParser(ContentParser):
    """Parses YAML content into a flat mapping with dotted, lower-case keys."""

    def parse(self, content: Any) -> dict[str, Any] | None:
        if not isinstance(content, str) or content == EMPTY:
            return None
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as exc:
            raise ValueError(f"invalid YAML content: {exc}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError("YAML content must be a mapping at the top level")
        return flatten_mapping(data)


def flatten_mapping(data: dict[Any, Any] | None) -> dict[str, Any] | None:
    """Flatten nested mappings into dotted lower-case keys; None stays None."""
    if data is None:
        return None
    flat: dict[str, Any] = {}
    _flatten_into(flat, data, "")
    return flat


def _flatten_into(flat: dict[str, Any], data: dict[Any, Any], prefix: str) -> None:
    for key, value in data.items():
        full_key = prefix + str(key).lower()
        if isinstance(value, dict):
            _flatten_into(flat, value, full_key + ".")
        else:
            flat[full_key] = value