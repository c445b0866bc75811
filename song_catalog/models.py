"""
Data Models for the Song Catalog

Wire models shared by the HTTP service and the browser client, plus the
record-level validation rules applied before a song is persisted.
"""

from typing import Optional, List, Dict, Any
from datetime import datetime

from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_core import PydanticCustomError


# Fields a client may set on a song (anything else in a payload is dropped)
PERMITTED_KEYS = ("title", "artist", "cover", "song_hash", "genre")

BLANK_MESSAGE = "can't be blank"


# ---------------------------------------------------------------------------
# Song models
# ---------------------------------------------------------------------------

class Song(BaseModel):
    """A catalog song as stored and served.

    Title and artist are plain strings that may be empty here: records with
    missing display fields can exist in storage, and the browser filters
    them out of the list it shows.
    """

    song_hash: str = Field(..., description="Content hash, the song's identity")
    title: str = Field("", description="Song title")
    artist: str = Field("", description="Song artist")
    cover: Optional[str] = Field(None, description="Cover art URL or file name")
    genre: Optional[str] = Field(None, description="Musical genre")
    created_at: Optional[datetime] = Field(None, description="Set once, on first save")
    updated_at: Optional[datetime] = Field(None, description="Refreshed on every save")

    @field_validator("title", "artist", mode="before")
    @classmethod
    def _none_to_empty(cls, v):
        return "" if v is None else v

    def display_name(self) -> str:
        return f"{self.artist} - {self.title}"

    @property
    def persisted(self) -> bool:
        return self.created_at is not None


class SongFields(BaseModel):
    """Attribute updates for a song. Only fields actually sent are applied."""

    model_config = {"extra": "ignore"}

    title: Optional[str] = None
    artist: Optional[str] = None
    cover: Optional[str] = None
    genre: Optional[str] = None

    def updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SongDescriptor(SongFields):
    """One entry of an ingestion batch, or the body of a single create."""

    song_hash: str = Field(..., description="Content hash supplied by the client")

    @field_validator("song_hash", mode="before")
    @classmethod
    def _number_to_str(cls, v):
        # Some exporters write numeric hashes unquoted
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("song_hash")
    @classmethod
    def _hash_present(cls, v: str) -> str:
        if not v.strip():
            raise PydanticCustomError("blank", BLANK_MESSAGE)
        return v

    def updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude={"song_hash"})


class SongRecord(BaseModel):
    """Validation rules a song must satisfy before it is persisted."""

    song_hash: str
    title: str
    artist: str
    cover: Optional[str] = None
    genre: Optional[str] = None

    @field_validator("song_hash", "title", "artist")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise PydanticCustomError("blank", BLANK_MESSAGE)
        return v


def field_errors(exc: ValidationError) -> Dict[str, List[str]]:
    """Flatten a pydantic ValidationError into a ``{field: [message]}`` map."""
    errors: Dict[str, List[str]] = {}
    for err in exc.errors():
        loc = err.get("loc") or ("base",)
        field = str(loc[0]) if loc else "base"
        message = BLANK_MESSAGE if err.get("type") == "missing" else err.get("msg", "is invalid")
        errors.setdefault(field, []).append(message)
    return errors


def validate_song(song: Song) -> Dict[str, List[str]]:
    """Return field errors for ``song``; an empty dict means it is valid."""
    try:
        SongRecord.model_validate(song.model_dump(include=set(PERMITTED_KEYS)))
    except ValidationError as e:
        return field_errors(e)
    return {}


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class SongCreateRequest(BaseModel):
    """Body of ``POST /songs``."""

    song: Dict[str, Any] = Field(default_factory=dict)


class SongUpdateRequest(BaseModel):
    """Body of ``PATCH/PUT /songs/{id}``."""

    song: SongFields = Field(default_factory=SongFields)


class BatchRequest(BaseModel):
    """Body of ``POST /songs/batch``.

    Items stay untyped here so that one malformed entry fails on its own
    instead of rejecting the whole request.
    """

    songs: List[Any] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Ingestion results
# ---------------------------------------------------------------------------

class ItemOutcome(BaseModel):
    """Result of upserting one batch item."""

    position: int = Field(..., ge=0, description="0-based index in the batch")
    success: bool = False
    song: Optional[Song] = None
    errors: Dict[str, List[str]] = Field(default_factory=dict)


class BatchResult(BaseModel):
    """Per-item outcomes of a batch, in input order."""

    outcomes: List[ItemOutcome] = Field(default_factory=list)

    @property
    def all_succeeded(self) -> bool:
        return all(o.success for o in self.outcomes)

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    def songs(self) -> List[Song]:
        return [o.song for o in self.outcomes if o.song is not None]

    def error_payload(self) -> List[Dict[str, List[str]]]:
        return [o.errors for o in self.outcomes]
