"""
api/routes/tracks.py -- Track catalog routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /tracks                 -- list tracks, optional artist_id / album_id / hidden filters
  POST   /tracks/add-track       -- create track (Admin, Editor); 201
  GET    /tracks/{track_id}      -- track detail
  PUT    /tracks/{track_id}      -- update track (Admin, Editor); 204
  DELETE /tracks/{track_id}      -- delete track (Admin, Editor)

A track's artist and album must both exist in the caller's organization, and the
album must belong to that artist (400 otherwise).
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from api.models import TrackCreate, TrackOut, TrackUpdate, envelope
from auth.dependencies import get_principal, require_roles
from auth.models import ROLE_ADMIN, ROLE_EDITOR, Principal
from catalog.models import Track
from catalog.store import CatalogStore
from core.errors import BadRequestError, NotFoundError

router = APIRouter()

_writers = require_roles(ROLE_ADMIN, ROLE_EDITOR)


def _check_parents(catalog: CatalogStore, org_id: str, artist_id: str, album_id: str) -> None:
    if catalog.get_artist(org_id, artist_id) is None:
        raise NotFoundError("Artist not found.")
    album = catalog.get_album(org_id, album_id)
    if album is None:
        raise NotFoundError("Album not found.")
    if album.artist_id != artist_id:
        raise BadRequestError("Album does not belong to the artist.")


@router.get("/tracks")
def list_tracks(
    request: Request,
    limit: int = Query(5, ge=1, le=100),
    offset: int = Query(0, ge=0),
    artist_id: Optional[str] = None,
    album_id: Optional[str] = None,
    hidden: Optional[bool] = None,
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    tracks = catalog.list_tracks(
        principal.organization_id,
        limit=limit,
        offset=offset,
        artist_id=artist_id,
        album_id=album_id,
        hidden=hidden,
    )
    return envelope(
        200,
        "Tracks retrieved successfully.",
        data=[TrackOut.from_track(t).model_dump() for t in tracks],
    )


@router.post("/tracks/add-track", status_code=201)
def add_track(
    request: Request,
    body: TrackCreate,
    principal: Principal = Depends(_writers),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    _check_parents(catalog, principal.organization_id, body.artist_id, body.album_id)
    track = catalog.create_track(
        Track(
            name=body.name,
            artist_id=body.artist_id,
            album_id=body.album_id,
            organization_id=principal.organization_id,
            duration=body.duration,
            hidden=body.hidden,
        )
    )
    created = catalog.get_track(principal.organization_id, track.id)
    return envelope(201, "Track created successfully.", data=TrackOut.from_track(created).model_dump())


@router.get("/tracks/{track_id}")
def get_track(
    request: Request,
    track_id: str,
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    track = catalog.get_track(principal.organization_id, track_id)
    if track is None:
        raise NotFoundError("Track not found.")
    return envelope(200, "Track retrieved successfully.", data=TrackOut.from_track(track).model_dump())


@router.put("/tracks/{track_id}", status_code=204)
def update_track(
    request: Request,
    track_id: str,
    body: TrackUpdate,
    principal: Principal = Depends(_writers),
) -> Response:
    catalog: CatalogStore = request.app.state.catalog
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise BadRequestError("No fields to update.")
    if "artist_id" in updates or "album_id" in updates:
        current = catalog.get_track(principal.organization_id, track_id)
        if current is None:
            raise NotFoundError("Track not found.")
        _check_parents(
            catalog,
            principal.organization_id,
            updates.get("artist_id", current.artist_id),
            updates.get("album_id", current.album_id),
        )
    if not catalog.update_track(principal.organization_id, track_id, **updates):
        raise NotFoundError("Track not found.")
    return Response(status_code=204)


@router.delete("/tracks/{track_id}")
def delete_track(
    request: Request,
    track_id: str,
    principal: Principal = Depends(_writers),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    deleted = catalog.delete_track(principal.organization_id, track_id)
    if deleted is None:
        raise NotFoundError("Track not found.")
    return envelope(200, f"Track:{deleted.name} deleted successfully.")
