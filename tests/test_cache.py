from unittest.mock import MagicMock

import redis

from movie_api.cache import ReadCache, build_cache_key


def test_build_cache_key():
    assert build_cache_key("movies:list", 1, None, 8) == "movies:list:1::8"


def test_set_uses_ttl():
    client = MagicMock()

    ReadCache(client, 600).set("k", {"a": 1})

    client.setex.assert_called_once_with("k", 600, '{"a": 1}')


def test_redis_outage_is_a_miss():
    client = MagicMock()
    client.get.side_effect = redis.ConnectionError("down")
    client.setex.side_effect = redis.ConnectionError("down")
    cache = ReadCache(client, 600)

    assert cache.get("k") is None
    cache.set("k", {"a": 1})


def test_invalidate_deletes_matching_keys():
    client = MagicMock()
    client.scan_iter.return_value = iter([b"movies:a", b"movies:b"])

    ReadCache(client, 600).invalidate("movies:")

    client.scan_iter.assert_called_once_with("movies:*")
    assert client.delete.call_count == 2
