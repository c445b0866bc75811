"""Unit tests for the list response cache."""

from datetime import datetime

from song_catalog.cache import ListCache, result_set_key
from song_catalog.models import Song


def make_song(song_hash, updated_at=datetime(2024, 1, 1)):
    return Song(song_hash=song_hash, title="T", artist="A", updated_at=updated_at)


class TestResultSetKey:
    def test_equal_sets_share_a_key(self):
        assert result_set_key([make_song("a"), make_song("b")]) == result_set_key([make_song("a"), make_song("b")])

    def test_update_changes_key(self):
        before = result_set_key([make_song("a")])
        after = result_set_key([make_song("a", updated_at=datetime(2024, 1, 2))])
        assert before != after

    def test_order_changes_key(self):
        assert result_set_key([make_song("a"), make_song("b")]) != result_set_key([make_song("b"), make_song("a")])


class TestListCache:
    def test_fetch_renders_once(self):
        cache = ListCache()
        renders = []

        def render(songs):
            renders.append(len(songs))
            return b"[]"

        songs = [make_song("a")]
        assert cache.fetch(songs, render) == b"[]"
        assert cache.fetch(list(songs), render) == b"[]"
        assert renders == [1]
        assert cache.stats()["hits"] == 1

    def test_evicts_oldest(self):
        cache = ListCache(max_entries=2)
        cache.set("a", b"1")
        cache.set("b", b"2")
        cache.get("a")
        cache.set("c", b"3")
        assert cache.get("b") is None
        assert cache.get("a") == b"1"

    def test_zero_size_disables_cache(self):
        cache = ListCache(max_entries=0)
        cache.set("a", b"1")
        assert cache.get("a") is None

    def test_clear(self):
        cache = ListCache()
        cache.set("a", b"1")
        assert cache.clear() == 1
        assert cache.stats()["entries"] == 0
