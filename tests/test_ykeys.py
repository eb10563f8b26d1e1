from souin.config import SurrogateKeys
from souin.ykeys import initialize_ykeys

FIRST_KEY = "The_First_Test"
SECOND_KEY = "The_Second_Test"
THIRD_KEY = "The_Third_Test"
FOURTH_KEY = "The_Fourth_Test"


def mock_ykeys():
    return {
        FIRST_KEY: SurrogateKeys(headers={"Authorization": ".+", "Content-Type": ".+"}),
        SECOND_KEY: SurrogateKeys(url="the/second/.+"),
        THIRD_KEY: SurrogateKeys(),
        FOURTH_KEY: SurrogateKeys(),
    }


def test_initialize_ykeys():
    storage = initialize_ykeys(mock_ykeys())
    assert set(storage.keys) == {FIRST_KEY, SECOND_KEY, THIRD_KEY, FOURTH_KEY}
    assert all(storage.get(tag) == "" for tag in storage.keys)


def test_initialize_without_keys_returns_none():
    assert initialize_ykeys({}) is None
    assert initialize_ykeys(None) is None


def test_unknown_tag_is_none():
    storage = initialize_ykeys(mock_ykeys())
    assert storage.get("Unknown") is None
    storage.add_to_tags("http://the.url.com", ["Unknown"])
    assert storage.get("Unknown") is None


def test_add_to_tags():
    url = "http://the.url.com"
    storage = initialize_ykeys(mock_ykeys())
    storage.add_to_tags(url, [FIRST_KEY])
    assert url in storage.get(FIRST_KEY)

    storage.add_to_tags(url, [FIRST_KEY, SECOND_KEY])
    storage.add_to_tags("http://domain.com", [FIRST_KEY])
    first = storage.get(FIRST_KEY)
    assert url in first
    assert len(first.split(",")) == 2

    second = storage.get(SECOND_KEY)
    assert url in second
    assert len(second.split(",")) == 1

    storage.add_to_tags(url, [FIRST_KEY])
    storage.add_to_tags(url, [FIRST_KEY])
    storage.add_to_tags("http://domain.com", [FIRST_KEY])
    assert len(storage.get(FIRST_KEY).split(",")) == 2


def _filled_storage():
    storage = initialize_ykeys(mock_ykeys())
    storage.add_to_tags("http://the.url1.com", [FIRST_KEY, SECOND_KEY])
    storage.add_to_tags("http://the.url2.com", [FIRST_KEY, SECOND_KEY])
    storage.add_to_tags("http://the.url3.com", [FIRST_KEY, THIRD_KEY])
    storage.add_to_tags("http://the.url4.com", [THIRD_KEY, FOURTH_KEY])
    return storage


def test_invalidate_tags():
    storage = _filled_storage()
    urls = storage.invalidate_tags([FIRST_KEY])
    assert urls == ["http://the.url1.com", "http://the.url2.com", "http://the.url3.com"]
    assert storage.get(FIRST_KEY) == ""
    assert storage.get(SECOND_KEY) == ""
    assert storage.get(THIRD_KEY) == "http://the.url4.com"
    assert storage.get(FOURTH_KEY) == "http://the.url4.com"


def test_invalidate_tag_urls():
    storage = _filled_storage()
    urls = storage.invalidate_tag_urls("http://the.url1.com,http://the.url3.com")
    assert len(urls) == 2
    assert storage.get(FIRST_KEY) == "http://the.url2.com"
    assert storage.get(SECOND_KEY) == "http://the.url2.com"
    assert storage.get(THIRD_KEY) == "http://the.url4.com"
    assert storage.get(FOURTH_KEY) == "http://the.url4.com"


def test_get_validated_tags():
    storage = initialize_ykeys(mock_ykeys())
    base_url = "http://the.url.com"
    invalid_url = "http://domain.com/test/the/second"
    valid_url = invalid_url + "/anything"

    assert sorted(storage.get_validated_tags(base_url, None)) == sorted([THIRD_KEY, FOURTH_KEY])
    assert len(storage.get_validated_tags(invalid_url, None)) == 2
    assert sorted(storage.get_validated_tags(valid_url, None)) == sorted(
        [SECOND_KEY, THIRD_KEY, FOURTH_KEY]
    )

    headers = {"Authorization": "Bearer token", "Content-Type": "any value here"}
    assert sorted(storage.get_validated_tags(base_url, headers)) == sorted(
        [FIRST_KEY, THIRD_KEY, FOURTH_KEY]
    )
    assert len(storage.get_validated_tags(valid_url, headers)) == 4


def test_header_names_are_case_insensitive():
    storage = initialize_ykeys(mock_ykeys())
    headers = {"authorization": "Bearer token", "content-type": "text/plain"}
    assert FIRST_KEY in storage.get_validated_tags("http://the.url.com", headers)