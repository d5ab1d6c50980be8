"""
api/routes/users.py -- User management within the caller's organization.

Routes (in registration order to avoid FastAPI path capture conflicts):
  GET    /users                   -- list users (Admin)
  POST   /users/add-user          -- create an Editor or Viewer (Admin); 201
  PUT    /users/update-password   -- change own password (any role); 204
  DELETE /users/{user_id}         -- delete a user (Admin)

Tenant isolation: every lookup is filtered by principal.organization_id; a
user id from another organization is reported as 404, exactly like an
unknown id.

Deleting a user also removes their favorites and revokes every live session
they hold, so an already-issued token stops working immediately.

Handlers are plain `def`: the stores make blocking SQLAlchemy calls, so
FastAPI runs them in its threadpool instead of on the event loop.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from api.models import PasswordUpdate, RoleEnum, UserCreate, UserOut, envelope
from auth.dependencies import get_principal, require_roles
from auth.models import ROLE_ADMIN, Principal, User
from auth.store import CredentialStore
from auth.tokens import hash_password, verify_password
from catalog.store import CatalogStore
from core.errors import ForbiddenError, NotFoundError

logger = logging.getLogger("musiclib.api")

# Auth policy:
# - GET    /users:                  Admin
# - POST   /users/add-user:         Admin
# - PUT    /users/update-password:  any authenticated role
# - DELETE /users/{user_id}:        Admin
router = APIRouter()

_admin_only = require_roles(ROLE_ADMIN)


@router.get("/users")
def list_users(
    request: Request,
    limit: int = Query(5, ge=1, le=100),
    offset: int = Query(0, ge=0),
    role: Optional[RoleEnum] = None,
    principal: Principal = Depends(_admin_only),
) -> JSONResponse:
    """List users of the caller's organization, optionally filtered by role."""
    store: CredentialStore = request.app.state.credentials
    users = store.list_users(
        principal.organization_id,
        role=role.value if role is not None else None,
        limit=limit,
        offset=offset,
    )
    return envelope(
        200,
        "Users retrieved successfully.",
        data=[UserOut.from_user(u).model_dump() for u in users],
    )


@router.post("/users/add-user", status_code=201)
def add_user(
    request: Request,
    body: UserCreate,
    principal: Principal = Depends(_admin_only),
) -> JSONResponse:
    """Create an Editor or Viewer in the caller's organization.

    Admins are only ever created by signup, one per organization.
    """
    if body.role == RoleEnum.Admin:
        raise ForbiddenError("Users with the Admin role cannot be added.")
    store: CredentialStore = request.app.state.credentials
    user = store.create_user(
        User(
            email=body.email,
            role=body.role.value,
            organization_id=principal.organization_id,
            hashed_password=hash_password(body.password),
        )
    )
    logger.info("User %s added to organization %s by %s", user.id, principal.organization_id, principal.user_id)
    return envelope(201, "User created successfully.")


@router.put("/users/update-password", status_code=204)
def update_password(
    request: Request,
    body: PasswordUpdate,
    principal: Principal = Depends(get_principal),
) -> Response:
    """Change the caller's own password after re-checking the old one."""
    store: CredentialStore = request.app.state.credentials
    user = store.find_user_by_id(principal.user_id)
    if user is None or user.organization_id != principal.organization_id:
        raise NotFoundError("User not found.")
    if not verify_password(body.old_password, user.hashed_password):
        raise ForbiddenError("Old password is incorrect.")
    store.update_password(user.id, hash_password(body.new_password))
    logger.info("User %s changed their password", user.id)
    return Response(status_code=204)


@router.delete("/users/{user_id}")
def delete_user(
    request: Request,
    user_id: str,
    principal: Principal = Depends(_admin_only),
) -> JSONResponse:
    """Delete a user of the caller's organization.

    The organization's founding admin cannot be deleted.
    """
    store: CredentialStore = request.app.state.credentials
    catalog: CatalogStore = request.app.state.catalog

    target = store.find_user_by_id(user_id)
    if target is None or target.organization_id != principal.organization_id:
        raise NotFoundError("User not found.")
    org = store.find_organization_by_id(principal.organization_id)
    if org is not None and org.admin_id == target.id:
        raise ForbiddenError("The organization's admin cannot be deleted.")

    store.delete_user(principal.organization_id, target.id)
    catalog.delete_favorites_for_user(target.id)
    revoked = request.app.state.tokens.revoke_all_for_user(target.id)
    logger.info("User %s deleted by %s (%d sessions revoked)", target.id, principal.user_id, revoked)
    return envelope(200, "User deleted successfully.")
