"""
API request and response models for the Music Library REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
catalog/models.py, which own the internal domain representation. Route
handlers map between the two.

Every response, success or error, uses the same envelope:

    {"status": <int>, "data": <any|null>, "message": <str>, "error": <any|null>}

envelope() builds it; the exception handlers in api/main.py build the error
variants.

Separation of concerns: auth/ and catalog/ models = domain truth;
api/ models = API contract.
"""

import re
from enum import Enum
from typing import Any, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import User
from catalog.models import Album, Artist, Favorite, Track

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PASSWORD_MIN_CHARS = 8
# bcrypt ignores everything past 72 bytes.
PASSWORD_MAX_BYTES = 72

_EMAIL_RE = re.compile(EMAIL_PATTERN)


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def _check_email(value: str) -> str:
    value = value.strip()
    if not _EMAIL_RE.match(value):
        raise ValueError("must be a valid email address")
    return value.lower()


def _check_password(value: str) -> str:
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValueError(f"password must be at most {PASSWORD_MAX_BYTES} bytes")
    return value


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    Admin = "Admin"
    Editor = "Editor"
    Viewer = "Viewer"


class CategoryEnum(str, Enum):
    artist = "artist"
    album = "album"
    track = "track"


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class Envelope(BaseModel):
    """Uniform response body for every endpoint."""

    model_config = ConfigDict(frozen=True)

    status: int
    data: Any = None
    message: str
    error: Any = None


def envelope(
    status_code: int,
    message: str,
    data: Any = None,
    error: Any = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    """Render an Envelope as a JSONResponse with a matching status code."""
    return JSONResponse(
        status_code=status_code,
        content=Envelope(status=status_code, data=data, message=message, error=error).model_dump(mode="json"),
        headers=headers,
    )


# ---------------------------------------------------------------------------
# Auth request models
# ---------------------------------------------------------------------------
# Password fields are never stripped: what the user typed at signup is what
# they must type at login. Email and organization fields are stripped per field.


class SignupRequest(BaseModel):
    """Request body for POST /signup.

    organization_name bootstraps a new organization with the caller as Admin.
    organization_id joins an existing one as Viewer. Whether one of them is
    present is decided in auth/flows.py, after the email conflict check.
    """

    email: str = Field(max_length=255)
    password: str = Field(min_length=PASSWORD_MIN_CHARS)
    organization_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    organization_id: Optional[str] = Field(default=None, min_length=1, max_length=36)
    description: Optional[str] = Field(default=None, max_length=1000)

    @field_validator("organization_name", "organization_id", "description", mode="before")
    @classmethod
    def strip_text(cls, value: Any) -> Any:
        return _strip(value)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _check_password(value)


class LoginRequest(BaseModel):
    """Request body for POST /login."""

    email: str = Field(max_length=255)
    password: str = Field(min_length=1, max_length=1024)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)


class LoginData(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str


# ---------------------------------------------------------------------------
# User management models
# ---------------------------------------------------------------------------


class UserCreate(BaseModel):
    """Request body for POST /users/add-user (Admin only)."""

    email: str = Field(max_length=255)
    password: str = Field(min_length=PASSWORD_MIN_CHARS)
    role: RoleEnum

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _check_password(value)


class PasswordUpdate(BaseModel):
    """Request body for PUT /users/update-password."""

    old_password: str = Field(min_length=1, max_length=1024)
    new_password: str = Field(min_length=PASSWORD_MIN_CHARS)

    @field_validator("new_password")
    @classmethod
    def validate_new_password(cls, value: str) -> str:
        return _check_password(value)


class UserOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    role: str
    created_at: Optional[str]

    @classmethod
    def from_user(cls, user: User) -> "UserOut":
        return cls(user_id=user.id, email=user.email, role=user.role, created_at=user.created_at)


# ---------------------------------------------------------------------------
# Catalog request models
# ---------------------------------------------------------------------------


class ArtistCreate(BaseModel):
    """Request body for POST /artists/add-artist."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    grammy: bool = False
    hidden: bool = False


class ArtistUpdate(BaseModel):
    """Request body for PUT /artists/{artist_id}. Omitted fields are left alone."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    grammy: Optional[bool] = None
    hidden: Optional[bool] = None


class AlbumCreate(BaseModel):
    """Request body for POST /albums/add-album. artist_id must exist in the caller's org."""

    model_config = ConfigDict(str_strip_whitespace=True)

    artist_id: str = Field(min_length=1, max_length=36)
    name: str = Field(min_length=1, max_length=255)
    year: Optional[int] = Field(default=None, ge=0, le=9999)
    hidden: bool = False


class AlbumUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    artist_id: Optional[str] = Field(default=None, min_length=1, max_length=36)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    year: Optional[int] = Field(default=None, ge=0, le=9999)
    hidden: Optional[bool] = None


class TrackCreate(BaseModel):
    """Request body for POST /tracks/add-track. artist_id and album_id must exist in the caller's org."""

    model_config = ConfigDict(str_strip_whitespace=True)

    artist_id: str = Field(min_length=1, max_length=36)
    album_id: str = Field(min_length=1, max_length=36)
    name: str = Field(min_length=1, max_length=255)
    duration: Optional[int] = Field(default=None, ge=0, description="Length in seconds.")
    hidden: bool = False


class TrackUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    artist_id: Optional[str] = Field(default=None, min_length=1, max_length=36)
    album_id: Optional[str] = Field(default=None, min_length=1, max_length=36)
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    duration: Optional[int] = Field(default=None, ge=0)
    hidden: Optional[bool] = None


class FavoriteCreate(BaseModel):
    """Request body for POST /favorites/add-favorite."""

    model_config = ConfigDict(str_strip_whitespace=True)

    category: CategoryEnum
    item_id: str = Field(min_length=1, max_length=36)


# ---------------------------------------------------------------------------
# Catalog response models
# ---------------------------------------------------------------------------


class ArtistOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    artist_id: str
    name: str
    grammy: bool
    hidden: bool

    @classmethod
    def from_artist(cls, artist: Artist) -> "ArtistOut":
        return cls(artist_id=artist.id, name=artist.name, grammy=artist.grammy, hidden=artist.hidden)


class AlbumOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    album_id: str
    artist_id: str
    artist_name: Optional[str]
    name: str
    year: Optional[int]
    hidden: bool

    @classmethod
    def from_album(cls, album: Album) -> "AlbumOut":
        return cls(
            album_id=album.id,
            artist_id=album.artist_id,
            artist_name=album.artist_name,
            name=album.name,
            year=album.year,
            hidden=album.hidden,
        )


class TrackOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    track_id: str
    artist_id: str
    album_id: str
    artist_name: Optional[str]
    album_name: Optional[str]
    name: str
    duration: Optional[int]
    hidden: bool

    @classmethod
    def from_track(cls, track: Track) -> "TrackOut":
        return cls(
            track_id=track.id,
            artist_id=track.artist_id,
            album_id=track.album_id,
            artist_name=track.artist_name,
            album_name=track.album_name,
            name=track.name,
            duration=track.duration,
            hidden=track.hidden,
        )


class FavoriteOut(BaseModel):
    model_config = ConfigDict(frozen=True)

    favorite_id: str
    category: str
    item_id: str
    name: Optional[str]

    @classmethod
    def from_favorite(cls, favorite: Favorite) -> "FavoriteOut":
        return cls(
            favorite_id=favorite.id,
            category=favorite.category,
            item_id=favorite.item_id,
            name=favorite.name,
        )


class HealthData(BaseModel):
    """data payload of GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
    database: str = "ok"
