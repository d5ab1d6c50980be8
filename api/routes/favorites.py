"""
api/routes/favorites.py -- Per-user favorites.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST   /favorites/add-favorite                  -- bookmark an artist/album/track; 201
  DELETE /favorites/remove-favorite/{favorite_id} -- remove one of the caller's favorites
  GET    /favorites/{category}                    -- list the caller's favorites in a category

Any authenticated role may manage its own favorites. The item must belong to
the caller's organization (404 otherwise), and a favorite that belongs to
another user is reported as 404 on removal.
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from api.models import CategoryEnum, FavoriteCreate, FavoriteOut, envelope
from auth.dependencies import get_principal
from auth.models import Principal
from catalog.models import Favorite
from catalog.store import CatalogStore
from core.errors import NotFoundError

router = APIRouter()


@router.post("/favorites/add-favorite", status_code=201)
def add_favorite(
    request: Request,
    body: FavoriteCreate,
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    if not catalog.item_exists(principal.organization_id, body.category.value, body.item_id):
        raise NotFoundError(f"{body.category.value.capitalize()} not found.")
    favorite = catalog.create_favorite(
        Favorite(
            user_id=principal.user_id,
            category=body.category.value,
            item_id=body.item_id,
            organization_id=principal.organization_id,
        )
    )
    return envelope(201, "Favorite added successfully.", data={"favorite_id": favorite.id})


@router.delete("/favorites/remove-favorite/{favorite_id}")
def remove_favorite(
    request: Request,
    favorite_id: str,
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    if not catalog.delete_favorite(principal.organization_id, principal.user_id, favorite_id):
        raise NotFoundError("Favorite not found.")
    return envelope(200, "Favorite removed successfully.")


@router.get("/favorites/{category}")
def list_favorites(
    request: Request,
    category: CategoryEnum,
    limit: int = Query(5, ge=1, le=100),
    offset: int = Query(0, ge=0),
    principal: Principal = Depends(get_principal),
) -> JSONResponse:
    catalog: CatalogStore = request.app.state.catalog
    favorites = catalog.list_favorites(
        principal.organization_id,
        principal.user_id,
        category.value,
        limit=limit,
        offset=offset,
    )
    return envelope(
        200,
        "Favorites retrieved successfully.",
        data=[FavoriteOut.from_favorite(f).model_dump() for f in favorites],
    )
