"""
catalog/store.py -- SQLAlchemy-backed persistence layer for the music catalog.

Uses SQLAlchemy Core (not ORM) so the dataclasses in catalog/models.py remain
the authoritative domain representation. Relations are plain foreign-key
columns; the joins that fill in artist_name / album_name / favorite names
live in the queries below.

Pattern: Repository + Data Mapper. CatalogStore is the repository (one clean
interface per entity). The _row_to_* functions are the mappers. Route
handlers never touch SQL directly.

Tenant isolation: every read, update, and delete takes org_id and puts it in
the WHERE clause. A row from another organization is never returned, never
modified, and reported exactly like a missing row (None / False).

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = CatalogStore()                               # SQLite default
    store = CatalogStore("postgresql://user:pw@host/db") # PostgreSQL
    artist = store.create_artist(Artist(name="Nina", organization_id=org_id))
    store.list_albums(org_id, artist_id=artist.id)
    store.close()
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    select,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from catalog.models import Album, Artist, Favorite, Track
from core.config import get_settings
from core.database import apply_migrations, make_engine
from core.errors import ConflictError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_artists = Table(
    "artists",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("organization_id", String(36), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("grammy", Boolean, nullable=False, server_default="0"),
    Column("hidden", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_albums = Table(
    "albums",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("organization_id", String(36), nullable=False, index=True),
    Column("artist_id", String(36), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("year", Integer),
    Column("hidden", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_tracks = Table(
    "tracks",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("organization_id", String(36), nullable=False, index=True),
    Column("artist_id", String(36), nullable=False, index=True),
    Column("album_id", String(36), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("duration", Integer),
    Column("hidden", Boolean, nullable=False, server_default="0"),
    Column("created_at", String(32), nullable=False),
)

_favorites = Table(
    "favorites",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("organization_id", String(36), nullable=False),
    Column("user_id", String(36), nullable=False, index=True),
    Column("category", String(10), nullable=False),
    Column("item_id", String(36), nullable=False),
    Column("created_at", String(32), nullable=False),
    UniqueConstraint("user_id", "category", "item_id", name="uq_favorite_user_item"),
)

_ITEM_TABLES: dict[str, Table] = {
    "artist": _artists,
    "album": _albums,
    "track": _tracks,
}

# Columns callers may change through update_*(). Anything else is rejected
# before it reaches SQL.
_ARTIST_FIELDS = {"name", "grammy", "hidden"}
_ALBUM_FIELDS = {"name", "year", "hidden", "artist_id"}
_TRACK_FIELDS = {"name", "duration", "hidden", "artist_id", "album_id"}

_MIGRATIONS = [
    (1, "create artists, albums, tracks, favorites", _metadata.create_all),
]

_album_select = select(_albums, _artists.c.name.label("artist_name")).select_from(
    _albums.outerjoin(_artists, _artists.c.id == _albums.c.artist_id)
)

_track_select = select(
    _tracks,
    _artists.c.name.label("artist_name"),
    _albums.c.name.label("album_name"),
).select_from(
    _tracks.outerjoin(_artists, _artists.c.id == _tracks.c.artist_id).outerjoin(
        _albums, _albums.c.id == _tracks.c.album_id
    )
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def _check_fields(fields: dict, allowed: set) -> None:
    unknown = set(fields) - allowed
    if unknown:
        raise ValueError(f"Unknown fields: {sorted(unknown)!r}")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CatalogStore:
    """Repository for Artist, Album, Track, and Favorite entities."""

    def __init__(self, db_url: Optional[str] = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        apply_migrations(self.engine, "catalog", _MIGRATIONS)

    # ------------------------------------------------------------------
    # Artists
    # ------------------------------------------------------------------

    def create_artist(self, artist: Artist) -> Artist:
        created = Artist(
            id=_new_id(),
            name=artist.name,
            organization_id=artist.organization_id,
            grammy=artist.grammy,
            hidden=artist.hidden,
            created_at=_now_iso(),
        )
        with self.engine.begin() as conn:
            conn.execute(
                _artists.insert().values(
                    id=created.id,
                    organization_id=created.organization_id,
                    name=created.name,
                    grammy=created.grammy,
                    hidden=created.hidden,
                    created_at=created.created_at,
                )
            )
        return created

    def get_artist(self, org_id: str, artist_id: str) -> Optional[Artist]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _artists.select().where((_artists.c.id == artist_id) & (_artists.c.organization_id == org_id))
            ).fetchone()
        return _row_to_artist(row) if row is not None else None

    def list_artists(
        self,
        org_id: str,
        limit: int = 5,
        offset: int = 0,
        grammy: Optional[bool] = None,
        hidden: Optional[bool] = None,
    ) -> list[Artist]:
        """Return one page of an organization's artists ordered by name."""
        query = _artists.select().where(_artists.c.organization_id == org_id)
        if grammy is not None:
            query = query.where(_artists.c.grammy == grammy)
        if hidden is not None:
            query = query.where(_artists.c.hidden == hidden)
        query = query.order_by(_artists.c.name, _artists.c.id).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_artist(r) for r in rows]

    def update_artist(self, org_id: str, artist_id: str, **fields) -> bool:
        """Update name / grammy / hidden. Returns False if not found in org."""
        _check_fields(fields, _ARTIST_FIELDS)
        with self.engine.begin() as conn:
            result = conn.execute(
                _artists.update()
                .where((_artists.c.id == artist_id) & (_artists.c.organization_id == org_id))
                .values(**fields)
            )
        return result.rowcount > 0

    def delete_artist(self, org_id: str, artist_id: str) -> Optional[Artist]:
        """Delete an artist with its albums, tracks, and every favorite pointing at them.

        Returns the deleted Artist, or None if it was not found in org.
        """
        with self.engine.begin() as conn:
            row = conn.execute(
                _artists.select().where((_artists.c.id == artist_id) & (_artists.c.organization_id == org_id))
            ).fetchone()
            if row is None:
                return None
            album_ids = [
                r.id for r in conn.execute(select(_albums.c.id).where(_albums.c.artist_id == artist_id)).fetchall()
            ]
            track_ids = [
                r.id for r in conn.execute(select(_tracks.c.id).where(_tracks.c.artist_id == artist_id)).fetchall()
            ]
            _delete_favorites_for_items(conn, "track", track_ids)
            _delete_favorites_for_items(conn, "album", album_ids)
            _delete_favorites_for_items(conn, "artist", [artist_id])
            conn.execute(_tracks.delete().where(_tracks.c.artist_id == artist_id))
            conn.execute(_albums.delete().where(_albums.c.artist_id == artist_id))
            conn.execute(_artists.delete().where(_artists.c.id == artist_id))
        return _row_to_artist(row)

    # ------------------------------------------------------------------
    # Albums
    # ------------------------------------------------------------------

    def create_album(self, album: Album) -> Album:
        """Insert an album. The caller checks that artist_id exists in the org."""
        created = Album(
            id=_new_id(),
            name=album.name,
            artist_id=album.artist_id,
            organization_id=album.organization_id,
            year=album.year,
            hidden=album.hidden,
            created_at=_now_iso(),
        )
        with self.engine.begin() as conn:
            conn.execute(
                _albums.insert().values(
                    id=created.id,
                    organization_id=created.organization_id,
                    artist_id=created.artist_id,
                    name=created.name,
                    year=created.year,
                    hidden=created.hidden,
                    created_at=created.created_at,
                )
            )
        return created

    def get_album(self, org_id: str, album_id: str) -> Optional[Album]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _album_select.where((_albums.c.id == album_id) & (_albums.c.organization_id == org_id))
            ).fetchone()
        return _row_to_album(row) if row is not None else None

    def list_albums(
        self,
        org_id: str,
        limit: int = 5,
        offset: int = 0,
        artist_id: Optional[str] = None,
        hidden: Optional[bool] = None,
    ) -> list[Album]:
        query = _album_select.where(_albums.c.organization_id == org_id)
        if artist_id is not None:
            query = query.where(_albums.c.artist_id == artist_id)
        if hidden is not None:
            query = query.where(_albums.c.hidden == hidden)
        query = query.order_by(_albums.c.name, _albums.c.id).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_album(r) for r in rows]

    def update_album(self, org_id: str, album_id: str, **fields) -> bool:
        _check_fields(fields, _ALBUM_FIELDS)
        with self.engine.begin() as conn:
            result = conn.execute(
                _albums.update()
                .where((_albums.c.id == album_id) & (_albums.c.organization_id == org_id))
                .values(**fields)
            )
        return result.rowcount > 0

    def delete_album(self, org_id: str, album_id: str) -> Optional[Album]:
        """Delete an album with its tracks and the favorites pointing at them."""
        with self.engine.begin() as conn:
            row = conn.execute(
                _album_select.where((_albums.c.id == album_id) & (_albums.c.organization_id == org_id))
            ).fetchone()
            if row is None:
                return None
            track_ids = [
                r.id for r in conn.execute(select(_tracks.c.id).where(_tracks.c.album_id == album_id)).fetchall()
            ]
            _delete_favorites_for_items(conn, "track", track_ids)
            _delete_favorites_for_items(conn, "album", [album_id])
            conn.execute(_tracks.delete().where(_tracks.c.album_id == album_id))
            conn.execute(_albums.delete().where(_albums.c.id == album_id))
        return _row_to_album(row)

    # ------------------------------------------------------------------
    # Tracks
    # ------------------------------------------------------------------

    def create_track(self, track: Track) -> Track:
        """Insert a track. The caller checks artist_id and album_id exist in the org."""
        created = Track(
            id=_new_id(),
            name=track.name,
            artist_id=track.artist_id,
            album_id=track.album_id,
            organization_id=track.organization_id,
            duration=track.duration,
            hidden=track.hidden,
            created_at=_now_iso(),
        )
        with self.engine.begin() as conn:
            conn.execute(
                _tracks.insert().values(
                    id=created.id,
                    organization_id=created.organization_id,
                    artist_id=created.artist_id,
                    album_id=created.album_id,
                    name=created.name,
                    duration=created.duration,
                    hidden=created.hidden,
                    created_at=created.created_at,
                )
            )
        return created

    def get_track(self, org_id: str, track_id: str) -> Optional[Track]:
        with self.engine.connect() as conn:
            row = conn.execute(
                _track_select.where((_tracks.c.id == track_id) & (_tracks.c.organization_id == org_id))
            ).fetchone()
        return _row_to_track(row) if row is not None else None

    def list_tracks(
        self,
        org_id: str,
        limit: int = 5,
        offset: int = 0,
        artist_id: Optional[str] = None,
        album_id: Optional[str] = None,
        hidden: Optional[bool] = None,
    ) -> list[Track]:
        query = _track_select.where(_tracks.c.organization_id == org_id)
        if artist_id is not None:
            query = query.where(_tracks.c.artist_id == artist_id)
        if album_id is not None:
            query = query.where(_tracks.c.album_id == album_id)
        if hidden is not None:
            query = query.where(_tracks.c.hidden == hidden)
        query = query.order_by(_tracks.c.name, _tracks.c.id).limit(limit).offset(offset)
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_track(r) for r in rows]

    def update_track(self, org_id: str, track_id: str, **fields) -> bool:
        _check_fields(fields, _TRACK_FIELDS)
        with self.engine.begin() as conn:
            result = conn.execute(
                _tracks.update()
                .where((_tracks.c.id == track_id) & (_tracks.c.organization_id == org_id))
                .values(**fields)
            )
        return result.rowcount > 0

    def delete_track(self, org_id: str, track_id: str) -> Optional[Track]:
        with self.engine.begin() as conn:
            row = conn.execute(
                _track_select.where((_tracks.c.id == track_id) & (_tracks.c.organization_id == org_id))
            ).fetchone()
            if row is None:
                return None
            _delete_favorites_for_items(conn, "track", [track_id])
            conn.execute(_tracks.delete().where(_tracks.c.id == track_id))
        return _row_to_track(row)

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    def item_exists(self, org_id: str, category: str, item_id: str) -> bool:
        """True if an artist/album/track with item_id exists in org."""
        table = _ITEM_TABLES[category]
        with self.engine.connect() as conn:
            row = conn.execute(
                select(table.c.id).where((table.c.id == item_id) & (table.c.organization_id == org_id))
            ).fetchone()
        return row is not None

    def create_favorite(self, favorite: Favorite) -> Favorite:
        """Insert a favorite. Raises ConflictError if the user already has it."""
        if favorite.category not in _ITEM_TABLES:
            raise ValueError(f"Unknown favorite category: {favorite.category!r}")
        created = Favorite(
            id=_new_id(),
            user_id=favorite.user_id,
            category=favorite.category,
            item_id=favorite.item_id,
            organization_id=favorite.organization_id,
            created_at=_now_iso(),
        )
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    _favorites.insert().values(
                        id=created.id,
                        organization_id=created.organization_id,
                        user_id=created.user_id,
                        category=created.category,
                        item_id=created.item_id,
                        created_at=created.created_at,
                    )
                )
        except IntegrityError as exc:
            raise ConflictError("Item is already in favorites.") from exc
        return created

    def list_favorites(
        self,
        org_id: str,
        user_id: str,
        category: str,
        limit: int = 5,
        offset: int = 0,
    ) -> list[Favorite]:
        """Return one page of a user's favorites in one category, newest first."""
        table = _ITEM_TABLES[category]
        query = (
            select(_favorites, table.c.name.label("name"))
            .select_from(_favorites.outerjoin(table, table.c.id == _favorites.c.item_id))
            .where(
                (_favorites.c.organization_id == org_id)
                & (_favorites.c.user_id == user_id)
                & (_favorites.c.category == category)
            )
            .order_by(_favorites.c.created_at.desc(), _favorites.c.id)
            .limit(limit)
            .offset(offset)
        )
        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()
        return [_row_to_favorite(r) for r in rows]

    def delete_favorite(self, org_id: str, user_id: str, favorite_id: str) -> bool:
        """Remove one of the caller's own favorites. False if not theirs or not found."""
        with self.engine.begin() as conn:
            result = conn.execute(
                _favorites.delete().where(
                    (_favorites.c.id == favorite_id)
                    & (_favorites.c.user_id == user_id)
                    & (_favorites.c.organization_id == org_id)
                )
            )
        return result.rowcount > 0

    def delete_favorites_for_user(self, user_id: str) -> int:
        """Remove every favorite of a user. Called when the user is deleted."""
        with self.engine.begin() as conn:
            result = conn.execute(_favorites.delete().where(_favorites.c.user_id == user_id))
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


def _delete_favorites_for_items(conn: Connection, category: str, item_ids: list[str]) -> None:
    if not item_ids:
        return
    conn.execute(
        _favorites.delete().where((_favorites.c.category == category) & (_favorites.c.item_id.in_(item_ids)))
    )


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_artist(row) -> Artist:
    return Artist(
        id=row.id,
        name=row.name,
        organization_id=row.organization_id,
        grammy=bool(row.grammy),
        hidden=bool(row.hidden),
        created_at=row.created_at,
    )


def _row_to_album(row) -> Album:
    return Album(
        id=row.id,
        name=row.name,
        artist_id=row.artist_id,
        organization_id=row.organization_id,
        year=row.year,
        hidden=bool(row.hidden),
        artist_name=row.artist_name,
        created_at=row.created_at,
    )


def _row_to_track(row) -> Track:
    return Track(
        id=row.id,
        name=row.name,
        artist_id=row.artist_id,
        album_id=row.album_id,
        organization_id=row.organization_id,
        duration=row.duration,
        hidden=bool(row.hidden),
        artist_name=row.artist_name,
        album_name=row.album_name,
        created_at=row.created_at,
    )


def _row_to_favorite(row) -> Favorite:
    return Favorite(
        id=row.id,
        user_id=row.user_id,
        category=row.category,
        item_id=row.item_id,
        organization_id=row.organization_id,
        name=row.name,
        created_at=row.created_at,
    )
