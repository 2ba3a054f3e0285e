import pytest

from timetrack.errors import LocalCacheError
from timetrack.repositories.local_cache import LocalCache


def test_missing_file_returns_default(tmp_path):
    cache = LocalCache(tmp_path / "nested" / "cache.json")
    assert cache.get("timeTrackingClients") is None
    assert cache.get("timeTrackingClients", []) == []


def test_set_keeps_other_keys(tmp_path):
    cache = LocalCache(tmp_path / "nested" / "cache.json")
    cache.set("timeTrackingClients", [{"id": "c1"}])
    cache.set("timeTrackingEvents", [{"id": "e1"}])

    reopened = LocalCache(cache.path)
    assert reopened.get("timeTrackingClients") == [{"id": "c1"}]
    assert reopened.get("timeTrackingEvents") == [{"id": "e1"}]
    assert [p.name for p in cache.path.parent.iterdir()] == ["cache.json"]


def test_corrupt_file_raises(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("[1, 2", encoding="utf-8")
    with pytest.raises(LocalCacheError):
        LocalCache(path).get("timeTrackingClients")


def test_non_object_document_raises(tmp_path):
    path = tmp_path / "cache.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(LocalCacheError):
        LocalCache(path).get("timeTrackingClients")


def test_unserialisable_value_raises(tmp_path):
    cache = LocalCache(tmp_path / "cache.json")
    with pytest.raises(LocalCacheError):
        cache.set("timeTrackingClients", [object()])
    assert not cache.path.exists()
