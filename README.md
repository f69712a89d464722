# agollo

Client-side building blocks for the Apollo configuration service.

The package keeps configuration values per namespace in memory, works
out what changed between successive releases, passes those changes on
to listeners, signs requests to the config server, sends GET requests
with retries and parses YAML content.

## Installation

```
pip install agollo
```

For running the test suite:

```
pip install "agollo[test]"
pytest
```

## Namespace caches and typed lookups (`agollo.repository`)

```python
from agollo.repository import create_namespace_config

cache = create_namespace_config("application,extra")
changes = cache.update_apollo_config_cache(
    {"timeout": "30", "ratio": 1.5, "hosts": "a,b,c"}, 120, "application"
)

config = cache.get_config("application")
config.get_int_value("timeout", 10)                # 30
config.get_float_value("ratio", 1.0)               # 1.5
config.get_string_slice_value("hosts", ",", [])    # ["a", "b", "c"]
config.get_bool_value("missing", False)            # False
print(config.get_content())                        # "key=value" lines
```

`create_namespace_config` takes a comma-separated list of namespaces and
creates one uninitialised `Config` for each. `update_apollo_config_cache`
replaces the values of one namespace, creating its `Config` if needed,
marks it initialised and returns a mapping of key to `ConfigChange`. It
returns `None` when both the new values and the stored values are empty.

The typed getters fall back to the default when a key is missing or its
value cannot be converted. Strings are converted to `int`, `float` and
`bool` where they hold such a value (`"1"`, `"t"`, `"true"`, `"0"`,
`"false"` and similar spellings for booleans).

Getters without the `_immediately` suffix block until the namespace has
been initialised. Getters with the suffix return at once; while the
namespace is uninitialised, `get_value_immediately` returns an empty
string and the others return the default.

Values are stored in a `MemoryCache` made by `MemoryCacheFactory`,
unless a different cache factory has been installed (see below). The
expiry time given to `set` is accepted but not enforced.

## Change events and listeners

`agollo.change_event` defines `ConfigChangeType` (`ADDED`, `MODIFIED`,
`DELETED`), `ConfigChange`, `ChangeEvent`, `FullChangeEvent` and the
`ChangeListener` interface with `on_change` and `on_newest_change`.

A `Dispatcher` from `agollo.event_dispatch` is a `ChangeListener` that
sends one `Event` per changed key to listeners registered under
regular-expression key patterns:

```python
from agollo.change_event import create_config_change_event
from agollo.event_dispatch import Listener, use_event_dispatch

class Printer(Listener):
    def event(self, event):
        print(event.event_type, event.key, event.value)

dispatcher = use_event_dispatch()
dispatcher.register_listener(Printer(), "time.*", "hosts")
cache.add_change_listener(dispatcher)

cache.push_change_event(create_config_change_event(changes, "application", 0))
```

Patterns are matched with `re.search`. A deleted key's event carries the
old value; added and modified keys carry the new value. Each listener is
called on its own background thread, both by `Cache.push_change_event`,
`Cache.push_newest_changes` and by the dispatcher.

`register_listener` and `unregister_listener` raise `NilListenerError`
for a `None` listener, and `register_listener` raises `ValueError` for a
pattern that is not a valid regular expression. Registration stops at
the first pattern the listener is already registered under.

## Extension points

`agollo.extension` holds the components the rest of the package uses,
with a getter and setter for each: cache factory, backup file handler,
load balancer, HTTP authorisation (`HTTPAuth`), logger (by default the
standard `logging` logger named `agollo`) and content parsers per format
(`add_format_parser`, `get_format_parser`).

The functions in `agollo.start` install a component and ignore `None`:

- `set_cache(cache_factory)`
- `set_backup_file_handler(handler)`
- `set_load_balance(load_balance)`
- `set_signature(auth)`
- `set_logger(logger)`

## Signing requests (`agollo.sign`)

```python
from agollo.sign import AuthSignature

headers = AuthSignature().http_headers(
    "http://localhost:8080/configs/app/default/application?ip=1",
    "app",
    "secret",
)
```

The result maps `Authorization` (`Apollo <app_id>:<signature>`) and
`Timestamp` (milliseconds) to lists of header values. The signature is a
base64 HMAC-SHA1, computed by `sign_string`, over the timestamp and the
path with query returned by `url_to_path_with_query`.

## HTTP requests (`agollo.http_request`)

```python
from agollo.http_request import CallBack, ConnectConfig, request

result = request(
    "http://localhost:8080/configs/app/default/application",
    ConnectConfig(app_id="app", secret="secret", is_retry=True),
    CallBack(success_callback=lambda body, callback: body.decode()),
)
```

`request` sends a GET with the headers of the installed `HTTPAuth`, if
any. On status 200 it returns what the success callback returns; on 304
it calls the not-modified callback and returns `None`. Other statuses
and connection errors are retried after two seconds, up to five attempts
when `is_retry` is true and one otherwise; after that `RequestError` is
raised. The timeout is `ConnectConfig.timeout` seconds, or one second
when it is 0. Certificates are not verified for `https` URLs.

## Parsers (`agollo.parsers`)

`YAMLParser` turns YAML text into a flat mapping with dotted lower-case
keys, such as `{"a.a1": "a1"}`. It returns `None` for empty or non-string
content and raises `ValueError` for invalid YAML or a top level that is
not a mapping. `flatten_mapping` does the flattening on its own.
`NormalParser` and `PropertiesParser` always return `None`.

## Utilities (`agollo.utils`)

`get_internal_ip()` returns a non-loopback IPv4 address of this host, or
an empty string. `is_nil_object` and `is_not_nil` test for `None`.

## What this package does not do

There is no ready-made client: nothing loads an application config file,
polls the server for notifications, keeps a server list or writes backup
files. No load balancer or backup file handler is provided; the
extension registry only stores ones that you supply.