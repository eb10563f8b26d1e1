from datetime import timedelta

import pytest

from souin.config import URL, Configuration, DefaultCache
from souin.contexts import Request
from souin.helpers import initialize_regexp
from souin.providers import (
    AbstractProvider,
    AbstractReconnectProvider,
    RetrieverResponseProperties,
)


class _MemoryProvider(AbstractProvider):
    def __init__(self):
        self.data = {}

    def list_keys(self):
        return list(self.data)

    def prefix(self, key, request):
        for stored, value in self.data.items():
            if stored.startswith(key):
                return value
        return None

    def get(self, key):
        return self.data.get(key)

    def set(self, key, value, url, duration):
        self.data[key] = value

    def delete(self, key):
        self.data.pop(key, None)

    def delete_many(self, key):
        self.data.clear()

    def init(self):
        self.data = {}

    def reset(self):
        self.data = {}


class _RecordingTransport:
    def __init__(self):
        self.urls = []

    def set_url(self, url):
        self.urls.append(url)


def _configuration(urls):
    default_cache = DefaultCache(
        ttl=timedelta(minutes=2),
        headers=["Authorization"],
        default_cache_control="public",
    )
    return Configuration(default_cache=default_cache, urls=urls)


def _properties(urls):
    configuration = _configuration(urls)
    return RetrieverResponseProperties(
        configuration=configuration,
        regexp_urls=initialize_regexp(configuration),
        transport=_RecordingTransport(),
    )


def test_abstract_provider_cannot_be_instantiated():
    with pytest.raises(TypeError):
        AbstractProvider()


def test_reconnect_provider_requires_reconnect():
    with pytest.raises(TypeError, match="reconnect"):
        AbstractReconnectProvider()


def test_concrete_provider_round_trip():
    provider = _MemoryProvider()
    provider.set("GET-http-domain.com-/", b"body", URL(), timedelta(seconds=1))
    assert provider.get("GET-http-domain.com-/") == b"body"
    assert provider.list_keys() == ["GET-http-domain.com-/"]
    provider.delete("GET-http-domain.com-/")
    assert provider.get("GET-http-domain.com-/") is None


def test_matched_url_overrides_defaults():
    properties = _properties(
        {"domain.com/api": URL(ttl=timedelta(seconds=10), headers=["X-Id"])}
    )
    url = properties.set_matched_url_from_request(
        Request(method="GET", url="http://domain.com/api/users")
    )
    assert url.ttl == timedelta(seconds=10)
    assert url.headers == ["X-Id"]
    assert url.default_cache_control == "public"
    assert properties.matched_url == url
    assert properties.transport.urls == [url]


def test_unmatched_url_uses_defaults():
    properties = _properties(
        {"domain.com/api": URL(ttl=timedelta(seconds=10), headers=["X-Id"])}
    )
    url = properties.set_matched_url_from_request(
        Request(method="GET", url="http://other.com/page")
    )
    assert url.ttl == timedelta(minutes=2)
    assert url.headers == ["Authorization"]
    assert url.default_cache_control == "public"
    assert properties.transport.urls == [url]


def test_empty_url_settings_keep_defaults():
    properties = _properties({"domain.com/api": URL()})
    url = properties.set_matched_url_from_request(
        Request(method="GET", url="http://domain.com/api")
    )
    assert url.ttl == timedelta(minutes=2)
    assert url.headers == ["Authorization"]


def test_without_transport_matched_url_still_recorded():
    configuration = _configuration({})
    properties = RetrieverResponseProperties(
        configuration=configuration, regexp_urls=initialize_regexp(configuration)
    )
    url = properties.set_matched_url_from_request(
        Request(method="GET", url="http://domain.com/")
    )
    assert properties.matched_url == url
    assert url.ttl == timedelta(minutes=2)