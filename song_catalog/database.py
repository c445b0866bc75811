"""
Song Record Store

SQLAlchemy-backed storage for catalog songs, keyed by content hash, for the
named custom lists that group them, and for the API tokens that authorize
write requests. Works with SQLite locally and any SQLAlchemy URL in
deployment.
"""

from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, List

import sqlalchemy as sa
from sqlalchemy.orm import (
    DeclarativeBase,
    Mapped,
    Session,
    mapped_column,
    sessionmaker,
)
from sqlalchemy.pool import StaticPool
from loguru import logger

from .errors import SongValidationError
from .models import Song, validate_song


class Base(DeclarativeBase):
    pass


class SongRow(Base):
    __tablename__ = "songs"

    # Surrogate key keeps insertion order stable for listing
    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    song_hash: Mapped[str] = mapped_column(sa.String, unique=True, index=True, nullable=False)
    title: Mapped[str] = mapped_column(sa.String, nullable=False, default="")
    artist: Mapped[str] = mapped_column(sa.String, nullable=False, default="")
    cover: Mapped[Optional[str]] = mapped_column(sa.String)
    genre: Mapped[Optional[str]] = mapped_column(sa.String)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<SongRow {self.song_hash} {self.artist} - {self.title}>"


class ApiKeyRow(Base):
    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    access_token: Mapped[str] = mapped_column(sa.String, unique=True, index=True, nullable=False)
    # Name of the user the token belongs to; None for service tokens
    owner: Mapped[Optional[str]] = mapped_column(sa.String)
    created_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)


class CustomListRow(Base):
    __tablename__ = "custom_lists"

    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(sa.String, unique=True, index=True, nullable=False)


class CustomListEntryRow(Base):
    __tablename__ = "custom_list_entries"

    list_id: Mapped[int] = mapped_column(sa.ForeignKey("custom_lists.id"), primary_key=True)
    song_hash: Mapped[str] = mapped_column(sa.ForeignKey("songs.song_hash"), primary_key=True)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SongDatabase:
    """
    Read/write interface for the song store.
    One short-lived session per operation; no state is shared between calls
    apart from the engine's connection pool.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self.engine: Optional[sa.Engine] = None
        self._sessions: Optional[sessionmaker] = None
        self._connected = False

    async def connect(self) -> None:
        """Open the engine and create tables that do not exist yet."""
        try:
            logger.info(f"Connecting to song store at: {self._redacted_url()}")
            self.engine = sa.create_engine(self.database_url, **self._engine_options())
            Base.metadata.create_all(self.engine)
            self._sessions = sessionmaker(self.engine, expire_on_commit=False)
            self._connected = True
            logger.info("Song store ready.")
        except Exception as e:
            logger.error(f"Failed to connect to song store: {e}")
            raise RuntimeError(f"Database connection failed: {e}") from e

    def _engine_options(self) -> dict:
        url = sa.make_url(self.database_url)
        if url.get_backend_name() != "sqlite":
            return {}
        options: dict = {"connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # A single shared connection, otherwise every session sees a fresh empty db
            options["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
        return options

    def _redacted_url(self) -> str:
        return sa.make_url(self.database_url).render_as_string(hide_password=True)

    async def is_connected(self) -> bool:
        return self._connected and self.engine is not None

    async def disconnect(self) -> None:
        if self.engine:
            try:
                self.engine.dispose()
                logger.info("Song store connection closed.")
            finally:
                self.engine = None
                self._sessions = None
                self._connected = False

    def _session(self) -> Session:
        if not self._sessions:
            raise RuntimeError("Database not connected")
        return self._sessions()

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    async def get_all_songs(self) -> List[Song]:
        """All songs in storage order."""
        with self._session() as session:
            rows = session.scalars(sa.select(SongRow).order_by(SongRow.id)).all()
            return [self._row_to_song(r) for r in rows]

    async def get_song(self, song_hash: str) -> Optional[Song]:
        with self._session() as session:
            row = self._find_row(session, song_hash)
            return self._row_to_song(row) if row else None

    async def find_or_initialize(self, song_hash: str) -> Song:
        """The stored song for ``song_hash``, or a new unsaved one with empty fields."""
        existing = await self.get_song(song_hash)
        if existing is not None:
            return existing
        return Song(song_hash=song_hash)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    async def save(self, song: Song) -> Song:
        """
        Validate and persist ``song``, inserting or updating by hash.

        ``created_at`` is only ever set on insert. Raises SongValidationError
        without touching storage when the record is invalid.
        """
        errors = validate_song(song)
        if errors:
            raise SongValidationError(errors)

        with self._session() as session:
            row = self._find_row(session, song.song_hash)
            now = _now()
            if row is None:
                row = SongRow(song_hash=song.song_hash, created_at=now)
                session.add(row)
            row.title = song.title
            row.artist = song.artist
            row.cover = song.cover
            row.genre = song.genre
            row.updated_at = now
            session.commit()
            # Read back what the backend stored (SQLite drops tz info)
            session.refresh(row)
            return self._row_to_song(row)

    async def create_song(self, song: Song) -> Song:
        """Insert a new song; a hash that is already stored is a validation error."""
        errors = validate_song(song)
        if await self.get_song(song.song_hash) is not None:
            errors.setdefault("song_hash", []).append("has already been taken")
        if errors:
            raise SongValidationError(errors)
        return await self.save(song)

    async def delete_song(self, song_hash: str) -> bool:
        with self._session() as session:
            row = self._find_row(session, song_hash)
            if row is None:
                return False
            session.execute(
                sa.delete(CustomListEntryRow).where(CustomListEntryRow.song_hash == song_hash)
            )
            session.delete(row)
            session.commit()
        logger.info(f"Deleted song {song_hash}")
        return True

    # ------------------------------------------------------------------
    # API tokens
    # ------------------------------------------------------------------

    async def token_exists(self, token: str) -> bool:
        if not token:
            return False
        with self._session() as session:
            stmt = sa.select(ApiKeyRow.id).where(ApiKeyRow.access_token == token)
            return session.scalar(stmt) is not None

    async def token_owner(self, token: str) -> Optional[str]:
        with self._session() as session:
            stmt = sa.select(ApiKeyRow.owner).where(ApiKeyRow.access_token == token)
            return session.scalar(stmt)

    async def add_token(self, token: str, owner: Optional[str] = None) -> None:
        with self._session() as session:
            session.add(ApiKeyRow(access_token=token, owner=owner, created_at=_now()))
            session.commit()
        if owner:
            logger.info(f"Registered a new API token for {owner}.")
        else:
            logger.info("Registered a new API token.")

    # ------------------------------------------------------------------
    # Custom lists
    # ------------------------------------------------------------------

    async def get_custom_list_names(self) -> List[str]:
        with self._session() as session:
            return list(session.scalars(sa.select(CustomListRow.name).order_by(CustomListRow.id)))

    async def get_custom_list(self, name: str) -> Optional[List[str]]:
        """Song hashes in list ``name``, or None when there is no such list."""
        with self._session() as session:
            list_id = session.scalar(sa.select(CustomListRow.id).where(CustomListRow.name == name))
            if list_id is None:
                return None
            stmt = (
                sa.select(CustomListEntryRow.song_hash)
                .where(CustomListEntryRow.list_id == list_id)
                .order_by(CustomListEntryRow.song_hash)
            )
            return list(session.scalars(stmt))

    async def add_to_custom_list(self, name: str, song_hash: str) -> bool:
        """Add a song to a list, creating the list on first use. False if already present."""
        with self._session() as session:
            list_row = session.scalars(sa.select(CustomListRow).where(CustomListRow.name == name)).first()
            if list_row is None:
                list_row = CustomListRow(name=name)
                session.add(list_row)
                session.flush()
                logger.info(f"Created custom list {name!r}")
            if session.get(CustomListEntryRow, (list_row.id, song_hash)) is not None:
                return False
            session.add(CustomListEntryRow(list_id=list_row.id, song_hash=song_hash))
            session.commit()
        return True

    async def remove_from_custom_list(self, name: str, song_hash: str) -> bool:
        with self._session() as session:
            list_id = session.scalar(sa.select(CustomListRow.id).where(CustomListRow.name == name))
            if list_id is None:
                return False
            deleted = session.execute(
                sa.delete(CustomListEntryRow)
                .where(CustomListEntryRow.list_id == list_id)
                .where(CustomListEntryRow.song_hash == song_hash)
            ).rowcount
            session.commit()
        if deleted:
            logger.info(f"Removed {song_hash} from custom list {name!r}")
        return bool(deleted)

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------

    @staticmethod
    def _find_row(session: Session, song_hash: str) -> Optional[SongRow]:
        stmt = sa.select(SongRow).where(SongRow.song_hash == song_hash)
        return session.scalars(stmt).first()

    @staticmethod
    def _row_to_song(row: SongRow) -> Song:
        return Song(
            song_hash=row.song_hash,
            title=row.title or "",
            artist=row.artist or "",
            cover=row.cover,
            genre=row.genre,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
