"""
api/routes/artists.py -- Artist catalog routes.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /artists                 -- list artists (any role)
  POST   /artists/add-artist      -- create artist (Admin); 201
  GET    /artists/{artist_id}     -- artist detail (any role)
  PUT    /artists/{artist_id}     -- update artist (Admin, Editor); 204
  DELETE /artists/{artist_id}     -- delete artist with its albums and tracks (Admin, Editor)

Every query is scoped to principal.organization_id. Another organization's
artist is a 404.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from api.models import ArtistCreate, ArtistOut, ArtistUpdate, envelope
from auth.dependencies import get_principal, require_roles
from auth.models import ROLE_ADMIN, ROLE_EDITOR, Principal
from catalog.models import Artist
from catalog.store import CatalogStore
from core.errors import BadRequestError, NotFoundError

router = APIRouter()

_writers = require_roles(ROLE_ADMIN, ROLE_EDITOR)


@router.get("/artists")
def list_artists(
    request: Request,
    limit: int = Query(5, ge=1, le=100),
    offset: int = Query(0, ge=0),
    grammy: Optional[bool] = None,
    hidden: Optional[bool] = None,
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    artists = catalog.list_artists(
        principal.organization_id, limit=limit, offset=offset, grammy=grammy, hidden=hidden
    )
    return envelope(
        200,
        "Artists retrieved successfully.",
        data=[ArtistOut.from_artist(a).model_dump() for a in artists],
    )


@router.post("/artists/add-artist", status_code=201)
def add_artist(
    request: Request,
    body: ArtistCreate,
    principal: Principal = Depends(require_roles(ROLE_ADMIN)),
) -> JSONResponse:
    """Create an artist. Only Admins may add artists; Editors may change them."""
    catalog: CatalogStore = request.app.state.catalog
    artist = catalog.create_artist(
        Artist(
            name=body.name,
            organization_id=principal.organization_id,
            grammy=body.grammy,
            hidden=body.hidden,
        )
    )
    return envelope(201, "Artist created successfully.", data=ArtistOut.from_artist(artist).model_dump())


@router.get("/artists/{artist_id}")
def get_artist(
    request: Request,
    artist_id: str,
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    artist = catalog.get_artist(principal.organization_id, artist_id)
    if artist is None:
        raise NotFoundError("Artist not found.")
    return envelope(200, "Artist retrieved successfully.", data=ArtistOut.from_artist(artist).model_dump())


@router.put("/artists/{artist_id}", status_code=204)
def update_artist(
    request: Request,
    artist_id: str,
    body: ArtistUpdate,
    principal: Principal = Depends(_writers),
) -> Response:
    catalog: CatalogStore = request.app.state.catalog
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise BadRequestError("No fields to update.")
    if not catalog.update_artist(principal.organization_id, artist_id, **updates):
        raise NotFoundError("Artist not found.")
    return Response(status_code=204)


@router.delete("/artists/{artist_id}")
def delete_artist(
    request: Request,
    artist_id: str,
    principal: Principal = Depends(_writers),
) -> JSONResponse:
    """Delete an artist. Its albums, tracks, and related favorites go with it."""
    catalog: CatalogStore = request.app.state.catalog
    deleted = catalog.delete_artist(principal.organization_id, artist_id)
    if deleted is None:
        raise NotFoundError("Artist not found.")
    return envelope(200, f"Artist:{deleted.name} deleted successfully.")
