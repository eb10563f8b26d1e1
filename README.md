# souin

Building blocks for an HTTP cache layer. The package provides typed cache
configuration, per-request cache contexts, cache-key computation, bookkeeping
for request coalescing, and surrogate-key (ykey) tag storage. It has no
third-party dependencies.

## Installation

```
pip install .
```

To run the test suite, install the test extra:

```
pip install ".[test]"
pytest
```

## Configuration (`souin.config`)

The configuration types are dataclasses: `Configuration`, `DefaultCache`,
`Key`, `URL`, `Timeout`, `CacheProvider`, `CDN`, `Port`, `Regex`,
`CacheSettings`, `API`, `APIEndpoint`, `SecurityAPI`, `User` and
`SurrogateKeys`. Each one has a `from_dict` class method that builds it from a
decoded mapping. `Configuration.from_json` does the same from JSON text.
Duration fields are `datetime.timedelta` values. When a field is loaded, a
duration string is parsed with `parse_duration`.

```python
from souin.config import Configuration, DefaultCache, Key

configuration = Configuration(
    default_cache=DefaultCache(cache_name="Edge", key=Key(disable_host=True)),
)

configuration = Configuration.from_json(
    '{"default_cache": {"ttl": "1m30s", "allowed_http_verbs": ["GET", "POST"]}}'
)
```

- `parse_duration("1h30m")`, `parse_duration("1.5s")` and
  `parse_duration("250ms")` return a `timedelta`. Malformed input raises
  `ValueError`.
- `format_duration(timedelta(hours=1))` returns `"1h0m0s"`.
- `CacheKeys` is an ordered list of `(compiled pattern, Key)` overrides. Use
  `items()` to get them and `to_json()` to serialise them.
  `load_cache_keys(text)` reads overrides from JSON of the form
  `{"pattern": {...options}}`. `cache_keys_from_mapping(data)` reads them from a
  mapping or from a list of mappings.
- `Key.to_dict()` returns only the settings that are not empty.

## Request contexts (`souin.contexts`)

`get_context()` returns a `Context`. You set it up once from a configuration
with `init` and then apply it to every incoming `Request`:

```python
from souin.contexts import ContextKey, Request, get_context

context = get_context()
context.init(configuration)

request = Request(method="GET", url="http://domain.com/path?x=1")
request = context.set_base_context(request)
request = context.set_context(request, request)

request.value(ContextKey.KEY)               # "GET-http-domain.com-/path?x=1"
request.value(ContextKey.SUPPORTED_METHOD)  # whether the verb may be cached
```

`set_base_context` runs the time, cache-name, method, timeout and mode steps.
`set_context` runs the GraphQL step and then the key step. Each step
(`CacheContext`, `GraphQLContext`, `KeyContext`, `MethodContext`,
`ModeContext`, `NowContext`, `TimeoutContext`) can also be used on its own
through `setup(configuration)` and `apply(request)`.

What the steps do:

- The cache key is built from the method, the scheme, the host, the path, the
  query, the body hash and the configured header values. Each part can be
  switched off through `Key`. The first `CacheKeys` pattern that matches the
  request URL overrides those settings.
- When custom HTTP verbs are allowed, request bodies are hashed with SHA-256
  and added to the key. GraphQL mutations are not hashed: they are flagged
  under `ContextKey.IS_MUTATION_REQUEST`. `is_mutation(body)` performs the
  same check.
- The mode step reads `DefaultCache.mode`, which may be `bypass`,
  `bypass_request`, `bypass_response` or anything else (strict).
- The timeout step uses a 10 s backend timeout and a 10 ms cache timeout unless
  the configuration sets other values.

`Request` keeps its headers case-insensitively (`get_header` and
`set_header`). Its context values are read with `value(key)`. `with_values`
returns a copy of the request carrying extra context values.

## Storage helpers

- `souin.layer_storage.CoalescingLayerStorage` records keys of requests that
  must not be coalesced. `exists(key)` returns `True` while the key is *not*
  recorded. It can be used as a context manager, which calls `close()` on exit.
- `souin.ykeys.initialize_ykeys(keys)` builds a `YKeyStorage` from a mapping of
  tag name to `SurrogateKeys`. It returns `None` when the mapping is empty.

  ```python
  from souin.config import SurrogateKeys
  from souin.ykeys import initialize_ykeys

  storage = initialize_ykeys({"products": SurrogateKeys(url="shop/.+")})
  storage.get_validated_tags("http://domain.com/shop/1", {})  # ["products"]
  storage.add_to_tags("http://domain.com/shop/1", ["products"])
  storage.get("products")                 # "http://domain.com/shop/1"
  storage.invalidate_tags(["products"])   # ["http://domain.com/shop/1"]
  ```

- `souin.providers.AbstractProvider` and `AbstractReconnectProvider` are the
  abstract interfaces a storage backend implements.
  `RetrieverResponseProperties.set_matched_url_from_request(request)` resolves
  the TTL, headers and default Cache-Control that apply to a request. The
  pattern it matches against is built by
  `souin.helpers.initialize_regexp(configuration)`.
- `souin.helpers.CanceledRequestContextError` is the exception for a request
  that the client cancelled.

## What this package does not do

There is no HTTP server, reverse proxy or command-line program here. No
concrete storage backend is included: `AbstractProvider` has no
implementation, so cached responses are neither stored nor served. The
configuration is built in code, from a mapping or from JSON. Reading YAML
configuration files is not supported.