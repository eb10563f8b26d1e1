"""Configuration model for the HTTP cache."""

import json
import logging
import re
import types
from dataclasses import dataclass, field, fields
from datetime import timedelta
from typing import Any, Iterable, Iterator, Mapping, Union, get_args, get_origin

_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_MAX_NANOSECONDS = (1 << 63) - 1
_SEGMENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]+)")
_TRUE_WORDS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_WORDS = {"0", "f", "F", "FALSE", "false", "False"}


def _to_nanoseconds(value: timedelta) -> int:
    return (value.days * 86400 + value.seconds) * 1_000_000_000 + value.microseconds * 1000


def _from_nanoseconds(total: int) -> timedelta:
    seconds, rest = divmod(total, 1_000_000_000)
    return timedelta(seconds=seconds, microseconds=rest // 1000)


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``"1h30m"``, ``"1.5s"`` or ``"250ms"``."""
    if not isinstance(text, str):
        raise TypeError(f"duration must be a string, not {type(text).__name__}")
    original = text
    sign = 1
    if text and text[0] in "+-":
        sign = -1 if text[0] == "-" else 1
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f"invalid duration {original!r}")

    total = 0
    position = 0
    while position < len(text):
        match = _SEGMENT.match(text, position)
        if match is None or not (match.group(1) or match.group(2)):
            raise ValueError(f"invalid duration {original!r}")
        whole, fraction, unit_name = match.groups()
        unit = _NANOSECONDS.get(unit_name)
        if unit is None:
            raise ValueError(f"unknown unit {unit_name!r} in duration {original!r}")
        total += int(whole or 0) * unit
        if fraction:
            total += int(fraction) * unit // 10 ** len(fraction)
        if total > _MAX_NANOSECONDS:
            raise ValueError(f"invalid duration {original!r}")
        position = match.end()

    return _from_nanoseconds(sign * total)


def _with_fraction(value: int, precision: int) -> str:
    whole, fraction = divmod(value, 10**precision)
    digits = str(fraction).rjust(precision, "0").rstrip("0")
    return f"{whole}.{digits}" if digits else str(whole)


def format_duration(value: timedelta) -> str:
    """Render a duration the way :func:`parse_duration` reads it, e.g. ``"1h0m0s"``."""
    total = _to_nanoseconds(value)
    sign = "-" if total < 0 else ""
    total = abs(total)
    if total == 0:
        return "0s"
    if total < 1_000:
        return f"{sign}{total}ns"
    if total < 1_000_000:
        return f"{sign}{_with_fraction(total, 3)}\u00b5s"
    if total < 1_000_000_000:
        return f"{sign}{_with_fraction(total, 6)}ms"

    seconds, rest = divmod(total, 1_000_000_000)
    hours, seconds = divmod(seconds, 3600)
    minutes, seconds = divmod(seconds, 60)
    second_text = _with_fraction(seconds * 1_000_000_000 + rest, 9)
    if hours:
        return f"{sign}{hours}h{minutes}m{second_text}s"
    if minutes:
        return f"{sign}{minutes}m{second_text}s"
    return f"{sign}{second_text}s"


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in _TRUE_WORDS:
            return True
        if value in _FALSE_WORDS:
            return False
        return False
    return bool(value)


def _convert(hint: Any, value: Any) -> Any:
    origin = get_origin(hint)
    if origin is Union or origin is types.UnionType:
        if value is None:
            return None
        inner = [arg for arg in get_args(hint) if arg is not type(None)]
        return _convert(inner[0], value)
    if hint is Any:
        return value
    if origin is list:
        if value is None:
            return []
        if not isinstance(value, (list, tuple)):
            raise TypeError(f"expected a list, got {type(value).__name__}")
        (item_hint,) = get_args(hint)
        return [_convert(item_hint, item) for item in value]
    if origin is dict:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise TypeError(f"expected a mapping, got {type(value).__name__}")
        _, item_hint = get_args(hint)
        return {str(key): _convert(item_hint, item) for key, item in value.items()}
    if hint is CacheKeys:
        return cache_keys_from_mapping(value)
    if isinstance(hint, type) and issubclass(hint, _Loadable):
        return hint.from_dict(value)
    if hint is timedelta:
        return value if isinstance(value, timedelta) else parse_duration(str(value))
    if hint is bool:
        return _as_bool(value)
    if hint is str:
        return "" if value is None else str(value)
    return value


class _Loadable:
    """Builds a dataclass from a decoded JSON or YAML mapping."""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None):
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise TypeError(f"{cls.__name__} expects a mapping, got {type(data).__name__}")
        values = {}
        for item in fields(cls):  # type: ignore[arg-type]
            name = item.metadata.get("key", item.name)
            if name is None or data.get(name) is None:
                continue
            values[item.name] = _convert(item.type, data[name])
        return cls(**values)


@dataclass
class Port(_Loadable):
    web: str = ""
    tls: str = ""


@dataclass
class CacheSettings(_Loadable):
    headers: list[str] = field(default_factory=list)
    port: Port = field(default_factory=Port)


@dataclass
class Regex(_Loadable):
    """Requests whose URL matches ``exclude`` are never cached."""

    exclude: str = ""


@dataclass
class URL(_Loadable):
    ttl: timedelta = timedelta(0)
    headers: list[str] = field(default_factory=list)
    default_cache_control: str = ""


@dataclass
class CacheProvider(_Loadable):
    url: str = ""
    path: str = ""
    configuration: Any = None


@dataclass
class Timeout(_Loadable):
    backend: timedelta = timedelta(0)
    cache: timedelta = timedelta(0)


@dataclass
class CDN(_Loadable):
    api_key: str = ""
    dynamic: bool = False
    email: str = ""
    hostname: str = ""
    network: str = ""
    provider: str = ""
    strategy: str = ""
    service_id: str = ""
    zone_id: str = ""


@dataclass
class Key(_Loadable):
    """Which parts of a request make up its cache key."""

    disable_body: bool = False
    disable_host: bool = False
    disable_method: bool = False
    disable_query: bool = False
    hide: bool = False
    headers: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the non-empty settings only."""
        result: dict[str, Any] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value:
                result[item.name] = list(value) if isinstance(value, list) else value
        return result


@dataclass
class DefaultCache(_Loadable):
    allowed_http_verbs: list[str] = field(default_factory=list)
    badger: CacheProvider = field(default_factory=CacheProvider)
    cdn: CDN = field(default_factory=CDN)
    cache_name: str = ""
    distributed: bool = False
    headers: list[str] = field(default_factory=list)
    key: Key = field(default_factory=Key)
    etcd: CacheProvider = field(default_factory=CacheProvider)
    mode: str = ""
    nuts: CacheProvider = field(default_factory=CacheProvider)
    olric: CacheProvider = field(default_factory=CacheProvider)
    redis: CacheProvider = field(default_factory=CacheProvider)
    port: Port = field(default_factory=Port)
    regex: Regex = field(default_factory=Regex)
    stale: timedelta = timedelta(0)
    storers: list[str] = field(default_factory=list)
    timeout: Timeout = field(default_factory=Timeout)
    ttl: timedelta = timedelta(0)
    default_cache_control: str = ""


@dataclass
class APIEndpoint(_Loadable):
    base_path: str = field(default="", metadata={"key": "basepath"})
    enable: bool = False
    security: bool = False


@dataclass
class User(_Loadable):
    username: str = ""
    password: str = field(default="", repr=False)


@dataclass
class SecurityAPI(_Loadable):
    base_path: str = field(default="", metadata={"key": "basepath"})
    enable: bool = False
    secret: str = field(default="", repr=False)
    users: list[User] = field(default_factory=list)


@dataclass
class API(_Loadable):
    base_path: str = field(default="", metadata={"key": "basepath"})
    debug: APIEndpoint = field(default_factory=APIEndpoint)
    prometheus: APIEndpoint = field(default_factory=APIEndpoint)
    souin: APIEndpoint = field(default_factory=APIEndpoint)
    security: SecurityAPI = field(default_factory=SecurityAPI)


@dataclass
class SurrogateKeys(_Loadable):
    """A tag definition: the URL pattern and header patterns it applies to."""

    url: str = ""
    headers: dict[str, str] | None = None


class CacheKeys:
    """Ordered list of per-URL key overrides, each a compiled pattern and its :class:`Key`."""

    def __init__(self, entries: Iterable[tuple[str | re.Pattern, Key]] = ()) -> None:
        self._entries: list[tuple[re.Pattern, Key]] = []
        for pattern, key in entries:
            self.append(pattern, key)

    def append(self, pattern: str | re.Pattern, key: Key | None = None) -> None:
        compiled = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
        self._entries.append((compiled, key if key is not None else Key()))

    def items(self) -> list[tuple[re.Pattern, Key]]:
        return list(self._entries)

    def to_json(self) -> str:
        parts = [
            f"{json.dumps(pattern.pattern)}: {json.dumps(key.to_dict(), separators=(',', ':'))}"
            for pattern, key in self._entries
        ]
        return "{" + ",".join(parts) + "}"

    def __iter__(self) -> Iterator[tuple[re.Pattern, Key]]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CacheKeys):
            return NotImplemented
        return [(p.pattern, k) for p, k in self._entries] == [
            (p.pattern, k) for p, k in other._entries
        ]

    def __repr__(self) -> str:
        return f"CacheKeys({[(p.pattern, k) for p, k in self._entries]!r})"


def cache_keys_from_mapping(data: Any) -> CacheKeys:
    """Build :class:`CacheKeys` from ``{pattern: options}`` or a list of such mappings."""
    keys = CacheKeys()
    if data is None:
        return keys
    groups = [data] if isinstance(data, Mapping) else data
    if not isinstance(groups, (list, tuple)):
        raise TypeError(f"cache keys must be a mapping or a list, got {type(data).__name__}")
    for group in groups:
        if not isinstance(group, Mapping):
            raise TypeError(f"cache key entry must be a mapping, got {type(group).__name__}")
        for pattern, options in group.items():
            keys.append(str(pattern), Key.from_dict(options))
    return keys


def load_cache_keys(text: str) -> CacheKeys:
    """Parse cache key overrides from their JSON form."""
    return cache_keys_from_mapping(json.loads(text))


@dataclass
class Configuration(_Loadable):
    default_cache: DefaultCache = field(default_factory=DefaultCache)
    urls: dict[str, URL] = field(default_factory=dict)
    api: API = field(default_factory=API)
    log_level: str = ""
    ykeys: dict[str, SurrogateKeys] = field(default_factory=dict)
    surrogate_keys: dict[str, SurrogateKeys] = field(default_factory=dict)
    cache_keys: CacheKeys = field(default_factory=CacheKeys)
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("souin"),
        metadata={"key": None},
        repr=False,
        compare=False,
    )

    @classmethod
    def from_json(cls, text: str) -> "Configuration":
        return cls.from_dict(json.loads(text))