"""Tag based invalidation: each tag lists the URLs stored under it."""

from __future__ import annotations

import re
import threading
from typing import Any, Iterable, Mapping

from souin.config import SurrogateKeys


def _matches(pattern: str, text: str) -> bool:
    try:
        return re.search(pattern, text) is not None
    except re.error:
        return False


def _header(headers: Mapping[str, Any] | None, name: str) -> str:
    if not headers:
        return ""
    wanted = name.lower()
    for header, value in headers.items():
        if header.lower() == wanted:
            if isinstance(value, (list, tuple)):
                return str(value[0]) if value else ""
            return str(value)
    return ""


class YKeyStorage:
    """Maps each configured tag to the comma separated URLs it covers."""

    def __init__(self, keys: Mapping[str, SurrogateKeys]) -> None:
        self.keys: dict[str, SurrogateKeys] = dict(keys)
        self._storage: dict[str, str] = {key: "" for key in self.keys}
        self._lock = threading.RLock()

    def get(self, tag: str) -> str | None:
        """Return the URLs stored under ``tag``, or None for an unknown tag."""
        with self._lock:
            return self._storage.get(tag)

    def get_validated_tags(self, key: str, headers: Mapping[str, Any] | None) -> list[str]:
        """Return the tags whose URL and header patterns accept this key and headers."""
        tags = []
        for name, definition in self.keys.items():
            if definition.url and not _matches(definition.url, key):
                continue
            if definition.headers is not None and not all(
                _matches(pattern, _header(headers, header))
                for header, pattern in definition.headers.items()
            ):
                continue
            tags.append(name)
        return tags

    def invalidate_tags(self, tags: Iterable[str]) -> list[str]:
        """Drop every URL listed under the given tags from all tags and return them."""
        urls: list[str] = []
        for tag in tags:
            stored = self.get(tag)
            if stored is not None:
                urls.extend(self.invalidate_tag_urls(stored))
        return urls

    def invalidate_tag_urls(self, urls: str) -> list[str]:
        """Remove each of the comma separated ``urls`` from every tag."""
        parts = urls.split(",")
        for url in parts:
            self._invalidate_url(url)
        return parts

    def _invalidate_url(self, url: str) -> None:
        pattern = re.compile(f"({url},)|(,{url}\\Z)|(^{url}\\Z)")
        with self._lock:
            for key in self.keys:
                stored = self._storage.get(key)
                if stored is not None and pattern.search(stored):
                    self._storage[key] = pattern.sub("", stored)

    def add_to_tags(self, url: str, tags: Iterable[str]) -> None:
        """Record ``url`` under each known tag that does not list it yet."""
        for tag in tags:
            self._add_to_tag(url, tag)

    def _add_to_tag(self, url: str, tag: str) -> None:
        with self._lock:
            stored = self._storage.get(tag)
            if stored is None:
                return
            if not re.search(url, stored):
                self._storage[tag] = f"{stored},{url}" if stored else url


def initialize_ykeys(keys: Mapping[str, SurrogateKeys] | None) -> YKeyStorage | None:
    """Build the tag storage, or return None when no tag is configured."""
    if not keys:
        return None
    return YKeyStorage(keys)