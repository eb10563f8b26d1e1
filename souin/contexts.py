"""Per-request context values computed before the cache is consulted."""

from __future__ import annotations

import copy
import hashlib
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable
from urllib.parse import urlsplit

DEFAULT_CACHE_NAME = "Souin"
DEFAULT_VERBS = ("GET", "HEAD")
DEFAULT_TIMEOUT_BACKEND = timedelta(seconds=10)
DEFAULT_TIMEOUT_CACHE = timedelta(milliseconds=10)

_MUTATION_PREFIX = b'{"query":"mutation'
_DAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


class ContextKey(str, Enum):
    """Names of the values attached to a request."""

    CACHE_NAME = "souin_ctx.CACHE_NAME"
    REQUEST_CACHE_CONTROL = "souin_ctx.REQUEST_CACHE_CONTROL"
    GRAPHQL = "souin_ctx.GRAPHQL"
    HASH_BODY = "souin_ctx.HASH_BODY"
    IS_MUTATION_REQUEST = "souin_ctx.IS_MUTATION_REQUEST"
    KEY = "souin_ctx.CACHE_KEY"
    DISPLAYABLE_KEY = "souin_ctx.DISPLAYABLE_KEY"
    IGNORED_HEADERS = "souin_ctx.IGNORE_HEADERS"
    SUPPORTED_METHOD = "souin_ctx.SUPPORTED_METHOD"
    MODE = "souin_ctx.MODE"
    NOW = "souin_ctx.NOW"
    TIMEOUT_CACHE = "souin_ctx.TIMEOUT_CACHE"
    TIMEOUT_CANCEL = "souin_ctx.TIMEOUT_CANCEL"
    TIMEOUT_DEADLINE = "souin_ctx.TIMEOUT_DEADLINE"
    CACHE_CONTROL_CTX = "souin_ctx.CACHE-CONTROL-CTX"


def _resolve_key(key: ContextKey | str) -> ContextKey:
    if isinstance(key, ContextKey):
        return key
    try:
        return ContextKey(key)
    except ValueError:
        pass
    try:
        return ContextKey[key.upper()]
    except KeyError:
        raise KeyError(f"unknown context value {key!r}") from None


@dataclass
class Request:
    """An incoming HTTP request together with its attached context values."""

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None
    tls: bool | None = None
    host: str | None = None
    values: dict[ContextKey, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.headers = {name.lower(): value for name, value in self.headers.items()}
        parts = urlsplit(self.url)
        if self.tls is None:
            self.tls = parts.scheme == "https"
        if self.host is None:
            self.host = parts.netloc or self.headers.get("host", "")

    @property
    def path(self) -> str:
        return urlsplit(self.url).path

    @property
    def raw_query(self) -> str:
        return urlsplit(self.url).query

    @property
    def request_uri(self) -> str:
        return self.url

    def get_header(self, name: str) -> str:
        """Return the header value, or an empty string when absent."""
        return self.headers.get(name.lower(), "")

    def set_header(self, name: str, value: str) -> None:
        self.headers[name.lower()] = value

    def with_values(self, **kwargs: Any) -> "Request":
        """Return a copy carrying the given context values, keyed by ContextKey member name."""
        added = {}
        for name, value in kwargs.items():
            try:
                added[ContextKey[name.upper()]] = value
            except KeyError:
                raise TypeError(f"unknown context value {name!r}") from None
        clone = copy.copy(self)
        clone.values = {**self.values, **added}
        return clone

    def value(self, key: ContextKey | str) -> Any:
        """Return a context value, or None when it was never set."""
        return self.values.get(_resolve_key(key))


def _parse_cache_control(header: str) -> dict[str, str | None]:
    directives: dict[str, str | None] = {}
    for part in header.split(","):
        part = part.strip()
        if not part:
            continue
        name, sep, argument = part.partition("=")
        directives[name.strip().lower()] = argument.strip().strip('"') if sep else None
    return directives


def _format_http_date(moment: datetime) -> str:
    return (
        f"{_DAYS[moment.weekday()]}, {moment.day:02d} {_MONTHS[moment.month - 1]} "
        f"{moment.year} {moment.hour:02d}:{moment.minute:02d}:{moment.second:02d} UTC"
    )


def is_mutation(body: bytes) -> bool:
    """Tell whether a GraphQL body is a mutation."""
    return len(body) > len(_MUTATION_PREFIX) and body.startswith(_MUTATION_PREFIX)


class _Step:
    def apply(self, request: Request) -> Request:
        raise NotImplementedError

    def apply_with_base(self, request: Request, base_request: Request) -> Request:
        return request


@dataclass
class CacheContext(_Step):
    cache_name: str = DEFAULT_CACHE_NAME

    def setup(self, configuration: Any) -> None:
        self.cache_name = configuration.default_cache.cache_name or DEFAULT_CACHE_NAME
        configuration.logger.debug("Set %s as Cache-Status name", self.cache_name)

    def apply(self, request: Request) -> Request:
        directives = _parse_cache_control(request.get_header("Cache-Control"))
        return request.with_values(cache_name=self.cache_name, request_cache_control=directives)

    def apply_with_base(self, request: Request, base_request: Request) -> Request:
        return request


@dataclass
class GraphQLContext(_Step):
    custom: bool = False

    def setup(self, configuration: Any) -> None:
        if configuration.default_cache.allowed_http_verbs:
            self.custom = True
            configuration.logger.debug("Enable GraphQL logic due to your custom HTTP verbs setup.")

    def apply(self, request: Request) -> Request:
        hash_body = ""
        mutation = False
        if self.custom and request.body:
            if is_mutation(request.body):
                mutation = True
            else:
                hash_body = "-" + hashlib.sha256(request.body).hexdigest()
        return request.with_values(
            graphql=self.custom, hash_body=hash_body, is_mutation_request=mutation
        )

    def apply_with_base(self, request: Request, base_request: Request) -> Request:
        # Bodies are immutable bytes, so both requests keep the same body untouched.
        return self.apply(request)


@dataclass
class KeyContext(_Step):
    disable_body: bool = False
    disable_host: bool = False
    disable_method: bool = False
    disable_query: bool = False
    displayable: bool = True
    headers: list[str] = field(default_factory=list)
    overrides: list[tuple[Any, "KeyContext"]] = field(default_factory=list)

    def setup(self, configuration: Any) -> None:
        key = configuration.default_cache.key
        self.disable_body = key.disable_body
        self.disable_host = key.disable_host
        self.disable_method = key.disable_method
        self.disable_query = key.disable_query
        self.displayable = not key.hide
        self.headers = list(key.headers or [])
        self.overrides = [
            (
                pattern,
                KeyContext(
                    disable_body=options.disable_body,
                    disable_host=options.disable_host,
                    disable_method=options.disable_method,
                    disable_query=options.disable_query,
                    displayable=not options.hide,
                    headers=list(options.headers or []),
                ),
            )
            for pattern, options in configuration.cache_keys
        ]

    @staticmethod
    def _hash_body(request: Request) -> str:
        value = request.value(ContextKey.HASH_BODY)
        if value is None:
            raise LookupError("the request body hash must be set before computing the key")
        return value

    def apply(self, request: Request) -> Request:
        scheme = "https-" if request.tls else "http-"
        query = ""
        body = ""
        host = ""
        method = ""
        displayable = self.displayable

        if not self.disable_query and request.raw_query:
            query = "?" + request.raw_query
        if not self.disable_body:
            body = self._hash_body(request)
        if not self.disable_host:
            host = f"{request.host}-"
        if not self.disable_method:
            method = f"{request.method}-"

        headers = self.headers
        header_values = "".join("-" + request.get_header(name) for name in self.headers)

        for pattern, override in self.overrides:
            if not pattern.search(request.request_uri):
                continue
            displayable = override.displayable
            query = ""
            if not override.disable_query and request.raw_query:
                query = "?" + request.raw_query
            if not override.disable_body:
                body = self._hash_body(request)
            method = "" if override.disable_method else f"{request.method}-"
            host = "" if override.disable_host else f"{request.host}-"
            if override.headers:
                headers = override.headers
                header_values = "".join(
                    "-" + request.get_header(name) for name in override.headers
                )
            break

        return request.with_values(
            key=method + scheme + host + request.path + query + body + header_values,
            ignored_headers=headers,
            displayable_key=displayable,
        )

    def apply_with_base(self, request: Request, base_request: Request) -> Request:
        return request


@dataclass
class MethodContext(_Step):
    allowed_verbs: list[str] = field(default_factory=lambda: list(DEFAULT_VERBS))
    custom: bool = False

    def setup(self, configuration: Any) -> None:
        verbs = configuration.default_cache.allowed_http_verbs
        self.allowed_verbs = list(DEFAULT_VERBS)
        if verbs:
            self.allowed_verbs = list(verbs)
            self.custom = True
        configuration.logger.debug(
            "Allow %d method(s). %s.", len(self.allowed_verbs), self.allowed_verbs
        )

    def apply(self, request: Request) -> Request:
        return request.with_values(supported_method=request.method in self.allowed_verbs)

    def apply_with_base(self, request: Request, base_request: Request) -> Request:
        return request


@dataclass
class ModeContext(_Step):
    strict: bool = True
    bypass_request: bool = False
    bypass_response: bool = False

    def setup(self, configuration: Any) -> None:
        mode = configuration.default_cache.mode
        self.bypass_request = mode in ("bypass", "bypass_request")
        self.bypass_response = mode in ("bypass", "bypass_response")
        self.strict = not self.bypass_request and not self.bypass_response
        configuration.logger.debug("The cache logic will run as %s: %s", mode, self)

    def apply(self, request: Request) -> Request:
        return request.with_values(mode=self)

    def apply_with_base(self, request: Request, base_request: Request) -> Request:
        return request


@dataclass
class NowContext(_Step):
    def setup(self, configuration: Any) -> None:
        """Nothing to configure."""

    def apply(self, request: Request) -> Request:
        now = datetime.now(timezone.utc)
        request.set_header("Date", _format_http_date(now))
        return request.with_values(now=now)

    def apply_with_base(self, request: Request, base_request: Request) -> Request:
        return request


@dataclass
class TimeoutContext(_Step):
    timeout_cache: timedelta = DEFAULT_TIMEOUT_CACHE
    timeout_backend: timedelta = DEFAULT_TIMEOUT_BACKEND

    def setup(self, configuration: Any) -> None:
        timeout = configuration.default_cache.timeout
        self.timeout_cache = timeout.cache or DEFAULT_TIMEOUT_CACHE
        self.timeout_backend = timeout.backend or DEFAULT_TIMEOUT_BACKEND
        configuration.logger.info("Set backend timeout to %s", self.timeout_backend)
        configuration.logger.info("Set cache timeout to %s", self.timeout_cache)

    def apply(self, request: Request) -> Request:
        cancelled = threading.Event()
        cancel: Callable[[], None] = cancelled.set
        return request.with_values(
            timeout_deadline=datetime.now(timezone.utc) + self.timeout_backend,
            timeout_cancel=cancel,
            timeout_cache=self.timeout_cache,
        )

    def apply_with_base(self, request: Request, base_request: Request) -> Request:
        return request


@dataclass
class Context:
    """All context steps, run in the order the cache handler needs."""

    cache_name: CacheContext = field(default_factory=CacheContext)
    graphql: GraphQLContext = field(default_factory=GraphQLContext)
    key: KeyContext = field(default_factory=KeyContext)
    method: MethodContext = field(default_factory=MethodContext)
    mode: ModeContext = field(default_factory=ModeContext)
    now: NowContext = field(default_factory=NowContext)
    timeout: TimeoutContext = field(default_factory=TimeoutContext)

    def init(self, configuration: Any) -> None:
        for step in (
            self.cache_name,
            self.graphql,
            self.key,
            self.method,
            self.mode,
            self.now,
            self.timeout,
        ):
            step.setup(configuration)

    def set_base_context(self, request: Request) -> Request:
        request = self.now.apply(request)
        request = self.cache_name.apply(request)
        request = self.method.apply(request)
        request = self.timeout.apply(request)
        return self.mode.apply(request)

    def set_context(self, request: Request, base_request: Request) -> Request:
        return self.key.apply(self.graphql.apply_with_base(request, base_request))


def get_context() -> Context:
    """Return a fresh set of context steps."""
    return Context()