"""Unit tests for the Batch Ingestion Service and the song store."""

import asyncio

import pytest
from song_catalog.database import SongDatabase
from song_catalog.errors import SongValidationError
from song_catalog.ingestion import BatchIngestionService
from song_catalog.models import Song


def run(coro):
    return asyncio.run(coro)


def make_item(song_hash, title="Title", artist="Artist", **extra):
    item = {"song_hash": song_hash, "title": title, "artist": artist}
    item.update(extra)
    return item


@pytest.fixture
def db():
    database = SongDatabase("sqlite://")
    run(database.connect())
    yield database
    run(database.disconnect())


@pytest.fixture
def service(db):
    return BatchIngestionService(db)


class TestUpsertByHash:
    def test_creates_new_song(self, service, db):
        result = run(service.ingest([make_item("h1", "One More Time", "Daft Punk")]))
        assert result.all_succeeded
        stored = run(db.get_song("h1"))
        assert stored.title == "One More Time"
        assert stored.artist == "Daft Punk"
        assert stored.created_at is not None

    def test_second_ingest_updates_instead_of_duplicating(self, service, db):
        run(service.ingest([make_item("h1", "Old Title", "Old Artist", genre="House")]))
        run(service.ingest([{"song_hash": "h1", "title": "New Title", "genre": "Disco"}]))

        songs = run(db.get_all_songs())
        assert len(songs) == 1
        assert songs[0].title == "New Title"
        assert songs[0].genre == "Disco"
        # Not supplied in the second call, so unchanged
        assert songs[0].artist == "Old Artist"

    def test_created_at_never_overwritten(self, service, db):
        run(service.ingest([make_item("h1")]))
        first = run(db.get_song("h1"))
        run(service.ingest([make_item("h1", title="Changed")]))
        second = run(db.get_song("h1"))
        assert second.created_at == first.created_at
        assert second.title == "Changed"

    def test_identical_batch_is_idempotent(self, service, db):
        batch = [make_item("h1", "A", "X"), make_item("h2", "B", "Y", cover="b.jpg")]
        run(service.ingest(batch))
        before = run(db.get_all_songs())
        result = run(service.ingest(batch))
        after = run(db.get_all_songs())

        assert result.all_succeeded
        assert [s.song_hash for s in after] == [s.song_hash for s in before]
        assert [(s.title, s.artist, s.cover) for s in after] == [
            (s.title, s.artist, s.cover) for s in before
        ]

    def test_numeric_hash_is_stored_as_string(self, service, db):
        result = run(service.ingest([make_item(123)]))
        assert result.all_succeeded
        assert result.outcomes[0].song.song_hash == "123"
        assert run(db.get_song("123")) is not None

    def test_unknown_keys_are_dropped(self, service, db):
        result = run(service.ingest([make_item("h1", bpm="128", language="en")]))
        assert result.all_succeeded
        assert not hasattr(run(db.get_song("h1")), "bpm")


class TestPerItemOutcomes:
    def test_valid_item_persists_despite_invalid_sibling(self, service, db):
        result = run(service.ingest([
            make_item("h1", "Valid", "Artist"),
            {"title": "No hash", "artist": "Artist"},
        ]))

        assert not result.all_succeeded
        assert result.outcomes[0].success
        assert result.outcomes[0].errors == {}
        assert not result.outcomes[1].success
        assert "song_hash" in result.outcomes[1].errors

        stored = run(db.get_all_songs())
        assert [s.song_hash for s in stored] == ["h1"]

    def test_outcomes_keep_input_order_and_length(self, service):
        items = [make_item("h1"), {"song_hash": ""}, make_item("h3"), "not a song"]
        result = run(service.ingest(items))
        assert [o.position for o in result.outcomes] == [0, 1, 2, 3]
        assert [o.success for o in result.outcomes] == [True, False, True, False]

    def test_new_song_without_artist_fails_validation(self, service, db):
        result = run(service.ingest([{"song_hash": "h1", "title": "Lonely Title"}]))
        assert result.outcomes[0].errors == {"artist": ["can't be blank"]}
        assert run(db.get_song("h1")) is None

    def test_existing_song_accepts_partial_update(self, service, db):
        run(service.ingest([make_item("h1", "Title", "Artist")]))
        result = run(service.ingest([{"song_hash": "h1", "genre": "Pop"}]))
        assert result.all_succeeded
        assert result.outcomes[0].song.title == "Title"
        assert result.outcomes[0].song.genre == "Pop"

    def test_blanking_a_required_field_is_rejected(self, service, db):
        run(service.ingest([make_item("h1", "Title", "Artist")]))
        result = run(service.ingest([{"song_hash": "h1", "title": ""}]))
        assert result.outcomes[0].errors == {"title": ["can't be blank"]}
        assert run(db.get_song("h1")).title == "Title"

    def test_wrong_field_type_is_an_item_error(self, service):
        result = run(service.ingest([{"song_hash": "h1", "title": ["not", "a", "string"]}]))
        assert not result.outcomes[0].success
        assert "title" in result.outcomes[0].errors

    def test_error_payload_has_empty_maps_for_successes(self, service):
        result = run(service.ingest([make_item("h1"), {"artist": "x"}]))
        payload = result.error_payload()
        assert payload[0] == {}
        assert payload[1] == {"song_hash": ["can't be blank"]}

    def test_empty_batch_succeeds(self, service):
        result = run(service.ingest([]))
        assert result.all_succeeded
        assert result.outcomes == []


class TestSongDatabase:
    def test_storage_order_is_insertion_order(self, db):
        for h in ["c", "a", "b"]:
            run(db.save(Song(song_hash=h, title=h, artist=h)))
        assert [s.song_hash for s in run(db.get_all_songs())] == ["c", "a", "b"]

    def test_save_rejects_blank_title(self, db):
        with pytest.raises(SongValidationError) as exc:
            run(db.save(Song(song_hash="h1", title="", artist="A")))
        assert exc.value.errors == {"title": ["can't be blank"]}

    def test_create_rejects_taken_hash(self, db):
        run(db.create_song(Song(song_hash="h1", title="T", artist="A")))
        with pytest.raises(SongValidationError) as exc:
            run(db.create_song(Song(song_hash="h1", title="T2", artist="A2")))
        assert exc.value.errors == {"song_hash": ["has already been taken"]}

    def test_find_or_initialize_returns_unsaved_song(self, db):
        song = run(db.find_or_initialize("fresh"))
        assert song.song_hash == "fresh"
        assert not song.persisted

    def test_delete(self, db):
        run(db.save(Song(song_hash="h1", title="T", artist="A")))
        assert run(db.delete_song("h1")) is True
        assert run(db.delete_song("h1")) is False
        assert run(db.get_song("h1")) is None

    def test_tokens(self, db):
        assert run(db.token_exists("secret")) is False
        run(db.add_token("secret"))
        assert run(db.token_exists("secret")) is True
        assert run(db.token_exists("")) is False

    def test_not_connected_raises(self):
        with pytest.raises(RuntimeError):
            run(SongDatabase("sqlite://").get_all_songs())

    def test_token_owner(self, db):
        run(db.add_token("service"))
        run(db.add_token("personal", owner="alice"))
        assert run(db.token_owner("service")) is None
        assert run(db.token_owner("personal")) == "alice"


class TestCustomLists:
    @pytest.fixture
    def stocked(self, db):
        for h in ["h1", "h2", "h3"]:
            run(db.save(Song(song_hash=h, title=h, artist="A")))
        return db

    def test_first_entry_creates_list(self, stocked):
        assert run(stocked.get_custom_list("alice")) is None
        assert run(stocked.add_to_custom_list("alice", "h2")) is True
        assert run(stocked.get_custom_list_names()) == ["alice"]
        assert run(stocked.get_custom_list("alice")) == ["h2"]

    def test_adding_twice_is_a_noop(self, stocked):
        run(stocked.add_to_custom_list("alice", "h1"))
        assert run(stocked.add_to_custom_list("alice", "h1")) is False
        assert run(stocked.get_custom_list("alice")) == ["h1"]

    def test_lists_are_independent(self, stocked):
        run(stocked.add_to_custom_list("alice", "h1"))
        run(stocked.add_to_custom_list("bob", "h3"))
        assert run(stocked.get_custom_list_names()) == ["alice", "bob"]
        assert run(stocked.get_custom_list("bob")) == ["h3"]

    def test_remove_entry(self, stocked):
        run(stocked.add_to_custom_list("alice", "h1"))
        assert run(stocked.remove_from_custom_list("alice", "h1")) is True
        assert run(stocked.remove_from_custom_list("alice", "h1")) is False
        assert run(stocked.remove_from_custom_list("nobody", "h1")) is False
        assert run(stocked.get_custom_list("alice")) == []

    def test_deleting_song_removes_it_from_lists(self, stocked):
        run(stocked.add_to_custom_list("alice", "h1"))
        run(stocked.add_to_custom_list("alice", "h2"))
        run(stocked.delete_song("h1"))
        assert run(stocked.get_custom_list("alice")) == ["h2"]
