"""Storage provider interfaces and the per-request retriever properties."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Protocol

from souin.config import URL, Configuration
from souin.contexts import Context, Request


class AbstractProvider(ABC):
    """Interface every cache storage backend implements."""

    @abstractmethod
    def list_keys(self) -> list[str]:
        """Return every stored key."""

    @abstractmethod
    def prefix(self, key: str, request: Request) -> bytes | None:
        """Return the stored value whose key starts with ``key`` and fits ``request``."""

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        """Return the stored value for ``key``."""

    @abstractmethod
    def set(self, key: str, value: bytes, url: URL, duration: timedelta) -> None:
        """Store ``value`` under ``key`` for ``duration``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``."""

    @abstractmethod
    def delete_many(self, key: str) -> None:
        """Remove every key matching the pattern ``key``."""

    @abstractmethod
    def init(self) -> None:
        """Prepare the backend for use."""

    @abstractmethod
    def reset(self) -> None:
        """Release the backend."""


class AbstractReconnectProvider(AbstractProvider):
    """A provider able to reconnect to a remote backend."""

    @abstractmethod
    def reconnect(self) -> None:
        """Re-establish the connection to the backend."""


class _URLReceiver(Protocol):
    def set_url(self, url: URL) -> None: ...


@dataclass
class RetrieverResponseProperties:
    """What the cache handler needs to retrieve and store one response."""

    configuration: Configuration = field(default_factory=Configuration)
    provider: AbstractProvider | None = None
    matched_url: URL = field(default_factory=URL)
    regexp_urls: re.Pattern[str] = field(default_factory=lambda: re.compile(""))
    transport: _URLReceiver | Any = None
    exclude_regex: re.Pattern[str] | None = None
    context: Context | None = None

    def set_matched_url_from_request(self, request: Request) -> URL:
        """Resolve the URL settings that apply to ``request`` and record them."""
        default_cache = self.configuration.default_cache
        match = self.regexp_urls.search(f"{request.host}{request.path}")
        matched = match.group(0) if match else ""

        url = URL(
            ttl=default_cache.ttl,
            headers=list(default_cache.headers),
            default_cache_control=default_cache.default_cache_control,
        )
        if matched:
            configured = self.configuration.urls.get(matched, URL())
            if configured.ttl:
                url.ttl = configured.ttl
            if configured.headers:
                url.headers = list(configured.headers)

        if self.transport is not None:
            self.transport.set_url(url)
        self.matched_url = url
        return url