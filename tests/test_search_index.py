"""Unit tests for the fuzzy Search Index."""

import pytest
from song_catalog.models import Song
from song_catalog.search_index import SearchIndex, fuzzy_score, max_score


def make_song(song_hash, title, artist):
    return Song(song_hash=song_hash, title=title, artist=artist)


@pytest.fixture
def songs():
    return [
        make_song("1", "Around the World", "Daft Punk"),
        make_song("2", "Dancing Queen", "ABBA"),
        make_song("3", "Bohemian Rhapsody", "Queen"),
        make_song("4", "Billie Jean", "Michael Jackson"),
    ]


@pytest.fixture
def index(songs):
    return SearchIndex(songs)


class TestFuzzyScore:
    def test_exact_match_scores_max(self):
        assert fuzzy_score("daft", "daft") == max_score("daft") == 12

    def test_case_insensitive(self):
        assert fuzzy_score("Daft Punk", "DAFT") == 12

    def test_skipped_characters_score_less(self):
        assert fuzzy_score("daft punk", "dp") == 3 + 2

    def test_missing_character_scores_nothing(self):
        assert fuzzy_score("abc", "xyz") == 0

    def test_missing_character_does_not_advance(self):
        # 'x' is skipped, 'b' still matches right after 'a'
        assert fuzzy_score("ab", "axb") == 6


class TestSearch:
    def test_empty_query_returns_everything_in_order(self, index, songs):
        assert index.search("") == songs

    def test_single_character_returns_everything_in_order(self, index, songs):
        assert index.search("a") == songs

    def test_matches_artist(self, index):
        results = index.search("daft")
        assert results[0].song_hash == "1"

    def test_matches_title(self, index):
        results = index.search("billie")
        assert results[0].song_hash == "4"

    def test_tolerates_typos(self, index):
        results = index.search("daft pank")
        assert results[0].song_hash == "1"

    def test_ranks_closer_matches_first(self, index):
        # "Dancing Queen" only shares the leading "da" with the query
        results = [s.song_hash for s in index.search("daft")]
        assert results.index("1") < results.index("2")

    def test_no_match(self, index):
        assert index.search("zzzz") == []

    def test_query_truncated_to_max_pattern_length(self, songs):
        short = SearchIndex(songs, max_pattern_length=4)
        assert short.search("daftxxxxxxxx")[0].song_hash == "1"
        assert SearchIndex(songs).search("daftxxxxxxxx") == []

    def test_unsorted_keeps_index_order(self, songs):
        unsorted = SearchIndex(songs, should_sort=False)
        results = [s.song_hash for s in unsorted.search("queen")]
        assert results == sorted(results)

    def test_songs_with_missing_fields_are_searchable(self):
        index = SearchIndex([Song(song_hash="x", title="Solo")])
        assert [s.song_hash for s in index.search("solo")] == ["x"]


class TestPrecision:
    def test_shared_prefix_alone_is_not_a_match(self, index):
        # "Dancing Queen" only matches d, a of "daft": half the maximum score
        assert [s.song_hash for s in index.search("daft")] == ["1"]

    def test_in_order_subsequence_matches(self):
        # d-i-g all occur in order in "Dancing", so it is a genuine fuzzy hit
        songs = [make_song("1", "Dancing Queen", "ABBA"), make_song("2", "Digital Love", "Daft Punk")]
        assert [s.song_hash for s in SearchIndex(songs).search("dig")] == ["2", "1"]

    def test_threshold_is_two_thirds_of_max_score(self):
        # "abcz" scores 9 of 12 against "abc" and 6 of 12 against "aby"
        songs = [make_song("hit", "abc", "x"), make_song("miss", "aby", "x")]
        assert [s.song_hash for s in SearchIndex(songs).search("abcz")] == ["hit"]
