"""
Request handlers for the song resource.

Each handler takes the store and an explicit request model and returns a
``Success`` or ``Failure``. Nothing here knows about HTTP frameworks or
response formats; the serializer chosen for the request renders the result.
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from .database import SongDatabase
from .errors import NotFoundError, SongValidationError
from .ingestion import BatchIngestionService, apply_updates
from .models import (
    BatchRequest,
    Song,
    SongCreateRequest,
    SongDescriptor,
    SongUpdateRequest,
    field_errors,
)


class Success(BaseModel):
    status: int = 200
    payload: Any = None
    location: Optional[str] = None


class Failure(BaseModel):
    status: int = 422
    errors: Union[Dict[str, List[str]], List[Dict[str, List[str]]]]


HandlerResult = Union[Success, Failure]


def song_location(song: Song) -> str:
    return f"/songs/{song.song_hash}"


async def _load(db: SongDatabase, song_id: str) -> Song:
    song = await db.get_song(song_id)
    if song is None:
        raise NotFoundError(song_id)
    return song


def _not_found(e: NotFoundError) -> Failure:
    return Failure(status=404, errors={"song": [f"not found: {e.song_id}"]})


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

async def list_songs(db: SongDatabase) -> HandlerResult:
    """Every stored song, in storage order."""
    return Success(payload=await db.get_all_songs())


async def show_song(db: SongDatabase, song_id: str) -> HandlerResult:
    try:
        return Success(payload=await _load(db, song_id))
    except NotFoundError as e:
        return _not_found(e)


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------

async def create_song(db: SongDatabase, request: SongCreateRequest) -> HandlerResult:
    try:
        descriptor = SongDescriptor.model_validate(request.song)
    except ValidationError as e:
        return Failure(errors=field_errors(e))

    song = apply_updates(Song(song_hash=descriptor.song_hash), descriptor)
    try:
        saved = await db.create_song(song)
    except SongValidationError as e:
        return Failure(errors=e.errors)
    return Success(status=201, payload=saved, location=song_location(saved))


async def batch_create(ingestion: BatchIngestionService, request: BatchRequest) -> HandlerResult:
    """
    Upsert every item of the batch by hash.

    Items are persisted independently. The status only summarises them:
    201 with the saved songs when all succeeded, otherwise 422 with one error
    map per item (empty for the items that were saved anyway).
    """
    result = await ingestion.ingest(request.songs)
    if result.all_succeeded:
        return Success(status=201, payload=result.songs())
    return Failure(status=422, errors=result.error_payload())


async def update_song(db: SongDatabase, song_id: str, request: SongUpdateRequest) -> HandlerResult:
    try:
        song = await _load(db, song_id)
    except NotFoundError as e:
        return _not_found(e)

    try:
        saved = await db.save(apply_updates(song, request.song))
    except SongValidationError as e:
        return Failure(errors=e.errors)
    return Success(payload=saved, location=song_location(saved))


async def delete_song(db: SongDatabase, song_id: str) -> HandlerResult:
    if not await db.delete_song(song_id):
        return _not_found(NotFoundError(song_id))
    return Success(status=204)


# ---------------------------------------------------------------------------
# Custom lists
# ---------------------------------------------------------------------------

def _list_not_found(name: str) -> Failure:
    return Failure(status=404, errors={"list": [f"not found: {name}"]})


async def list_custom_lists(db: SongDatabase) -> HandlerResult:
    return Success(payload=await db.get_custom_list_names())


async def show_custom_list(db: SongDatabase, name: str) -> HandlerResult:
    """Song hashes in the list."""
    hashes = await db.get_custom_list(name)
    if hashes is None:
        return _list_not_found(name)
    return Success(payload=hashes)


async def add_to_custom_list(db: SongDatabase, name: str, song_hash: str) -> HandlerResult:
    """Idempotent; the list is created by its first entry."""
    try:
        await _load(db, song_hash)
    except NotFoundError as e:
        return _not_found(e)
    await db.add_to_custom_list(name, song_hash)
    return Success(status=201)


async def remove_from_custom_list(db: SongDatabase, name: str, song_hash: str) -> HandlerResult:
    if not await db.remove_from_custom_list(name, song_hash):
        return Failure(status=404, errors={"list": [f"{song_hash} is not in {name}"]})
    return Success()
