"""Error types raised by the catalog store, handlers and auth layer."""

from typing import Dict, List, Optional


class CatalogError(Exception):
    """Base class for catalog errors."""


class SongValidationError(CatalogError):
    """A song failed record validation. ``errors`` maps field -> messages."""

    def __init__(self, errors: Dict[str, List[str]]) -> None:
        self.errors = errors
        summary = "; ".join(f"{k} {', '.join(v)}" for k, v in errors.items())
        super().__init__(f"Validation failed: {summary}")


class NotFoundError(CatalogError, LookupError):
    def __init__(self, song_id: str) -> None:
        self.song_id = song_id
        super().__init__(f"Song not found: {song_id}")


class AuthError(CatalogError):
    """Missing or unknown bearer token."""

    def __init__(self, reason: Optional[str] = None) -> None:
        super().__init__(reason or "HTTP Token: Access denied.")
