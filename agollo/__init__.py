"""Client-side building blocks for the Apollo configuration service."""

__version__ = "4.0.0"

__all__ = [
    "change_event",
    "event_dispatch",
    "extension",
    "http_request",
    "parsers",
    "repository",
    "sign",
    "start",
    "utils",
]