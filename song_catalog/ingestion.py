"""
Batch Ingestion Service

Upserts a batch of song descriptors by content hash. Every item is looked
up, updated and saved on its own: a failing item never rolls back or blocks
its siblings, and the batch result reports each outcome in input order.
"""

from typing import Any, Iterable

from loguru import logger
from pydantic import ValidationError

from .database import SongDatabase
from .errors import SongValidationError
from .models import (
    BatchResult,
    ItemOutcome,
    Song,
    SongDescriptor,
    field_errors,
)


class BatchIngestionService:
    """Applies descriptor batches to the song store."""

    def __init__(self, db: SongDatabase) -> None:
        self.db = db

    async def ingest(self, items: Iterable[Any]) -> BatchResult:
        result = BatchResult()
        for position, item in enumerate(items):
            result.outcomes.append(await self.upsert(position, item))

        if result.all_succeeded:
            logger.info(f"Batch ingested: {len(result.outcomes)} songs")
        else:
            logger.warning(
                f"Batch ingested with failures: {result.failed_count} of "
                f"{len(result.outcomes)} items rejected"
            )
        return result

    async def upsert(self, position: int, item: Any) -> ItemOutcome:
        """Upsert one raw descriptor. Never raises for bad input."""
        try:
            descriptor = SongDescriptor.model_validate(item)
        except ValidationError as e:
            return ItemOutcome(position=position, errors=field_errors(e))

        song = await self.db.find_or_initialize(descriptor.song_hash)
        song = apply_updates(song, descriptor)
        try:
            saved = await self.db.save(song)
        except SongValidationError as e:
            logger.debug(f"Item {position} ({descriptor.song_hash}) rejected: {e}")
            return ItemOutcome(position=position, errors=e.errors)

        return ItemOutcome(position=position, success=True, song=saved)


def apply_updates(song: Song, fields) -> Song:
    """Copy of ``song`` with every supplied field from ``fields`` applied.

    Hash and timestamps are never taken from the update.
    """
    updates = fields.updates()
    for key in ("song_hash", "created_at", "updated_at"):
        updates.pop(key, None)
    return Song.model_validate({**song.model_dump(), **updates})
