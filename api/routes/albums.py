"""
api/routes/albums.py -- Album catalog routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /albums                 -- list albums, optional artist_id / hidden filters
  POST   /albums/add-album       -- create album (Admin, Editor); 201
  GET    /albums/{album_id}      -- album detail
  PUT    /albums/{album_id}      -- update album (Admin, Editor); 204
  DELETE /albums/{album_id}      -- delete album with its tracks (Admin, Editor)

An album's artist must exist in the caller's organization, on create and on
re-assignment; otherwise the request is a 404.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from api.models import AlbumCreate, AlbumOut, AlbumUpdate, envelope
from auth.dependencies import get_principal, require_roles
from auth.models import ROLE_ADMIN, ROLE_EDITOR, Principal
from catalog.models import Album
from catalog.store import CatalogStore
from core.errors import BadRequestError, NotFoundError

router = APIRouter()

_writers = require_roles(ROLE_ADMIN, ROLE_EDITOR)


@router.get("/albums")
def list_albums(
    request: Request,
    limit: int = Query(5, ge=1, le=100),
    offset: int = Query(0, ge=0),
    artist_id: Optional[str] = None,
    hidden: Optional[bool] = None,
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    albums = catalog.list_albums(
        principal.organization_id, limit=limit, offset=offset, artist_id=artist_id, hidden=hidden
    )
    return envelope(
        200,
        "Albums retrieved successfully.",
        data=[AlbumOut.from_album(a).model_dump() for a in albums],
    )


@router.post("/albums/add-album", status_code=201)
def add_album(
    request: Request,
    body: AlbumCreate,
    principal: Principal = Depends(_writers),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    if catalog.get_artist(principal.organization_id, body.artist_id) is None:
        raise NotFoundError("Artist not found.")
    album = catalog.create_album(
        Album(
            name=body.name,
            artist_id=body.artist_id,
            organization_id=principal.organization_id,
            year=body.year,
            hidden=body.hidden,
        )
    )
    created = catalog.get_album(principal.organization_id, album.id)
    return envelope(201, "Album created successfully.", data=AlbumOut.from_album(created).model_dump())


@router.get("/albums/{album_id}")
def get_album(
    request: Request,
    album_id: str,
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    album = catalog.get_album(principal.organization_id, album_id)
    if album is None:
        raise NotFoundError("Album not found.")
    return envelope(200, "Album retrieved successfully.", data=AlbumOut.from_album(album).model_dump())


@router.put("/albums/{album_id}", status_code=204)
def update_album(
    request: Request,
    album_id: str,
    body: AlbumUpdate,
    principal: Principal = Depends(_writers),
) -> Response:
    catalog: CatalogStore = request.app.state.catalog
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise BadRequestError("No fields to update.")
    if "artist_id" in updates and catalog.get_artist(principal.organization_id, updates["artist_id"]) is None:
        raise NotFoundError("Artist not found.")
    if not catalog.update_album(principal.organization_id, album_id, **updates):
        raise NotFoundError("Album not found.")
    return Response(status_code=204)


@router.delete("/albums/{album_id}")
def delete_album(
    request: Request,
    album_id: str,
    principal: Principal = Depends(_writers),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    deleted = catalog.delete_album(principal.organization_id, album_id)
    if deleted is None:
        raise NotFoundError("Album not found.")
    return envelope(200, f"Album:{deleted.name} deleted successfully.")
