"""
catalog/models.py -- Domain dataclasses for the music catalog.

These are pure data containers with zero logic. All scoping (organization
filters, cascades on delete) lives in catalog/store.py.

Every record carries organization_id: the store filters on it for every read
and write, so a row from another tenant is indistinguishable from a missing
one.

id is None before the record is written to the database.
"""

from dataclasses import dataclass
from typing import Optional

FAVORITE_CATEGORIES = ("artist", "album", "track")


@dataclass
class Artist:
    name: str
    organization_id: str
    grammy: bool = False
    hidden: bool = False
    id: Optional[str] = None
    created_at: str = ""  # ISO 8601, set by store on insert


@dataclass
class Album:
    """An album by one artist.

    artist_name is a read-side join filled in by the store; it is never
    written.
    """

    name: str
    artist_id: str
    organization_id: str
    year: Optional[int] = None
    hidden: bool = False
    id: Optional[str] = None
    artist_name: Optional[str] = None
    created_at: str = ""


@dataclass
class Track:
    """A track on one album. artist_name / album_name are read-side joins."""

    name: str
    artist_id: str
    album_id: str
    organization_id: str
    duration: Optional[int] = None  # seconds
    hidden: bool = False
    id: Optional[str] = None
    artist_name: Optional[str] = None
    album_name: Optional[str] = None
    created_at: str = ""


@dataclass
class Favorite:
    """A user's bookmark of one artist, album, or track.

    name is the referenced item's name, filled in by the store on read.
    """

    user_id: str
    category: str  # "artist" | "album" | "track"
    item_id: str
    organization_id: str
    id: Optional[str] = None
    name: Optional[str] = None
    created_at: str = ""
