"""
api/routes/auth.py -- Signup, login, and logout endpoints.

Routes:
  POST /signup   -- create a user (bootstrap org as Admin, or join as Viewer); 201
  POST /login    -- exchange email + password for a bearer token; 200 {token}
  GET  /logout   -- revoke the presented token only; 200

The handlers are thin: body validation is done by the Pydantic models in
api/models.py, and every decision (lockout, inactive organization, password
check, revocation) is made in auth/flows.py, which raises core.errors.ApiError
subclasses that api/main.py renders as envelopes.

Security:
  POST /login is rate-limited per IP by slowapi (settings.login_rate_limit),
      on top of the per-email lockout in auth/attempts.py.
  Cache-Control: no-store on login responses.
  signup and login are sync handlers so bcrypt runs in the threadpool, not on
      the event loop.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter, login_rate_limit
from api.models import LoginData, LoginRequest, SignupRequest, envelope
from auth import flows
from auth.dependencies import get_principal
from auth.models import Principal

# Auth policy:
# - POST /signup: public
# - POST /login:  public, per-IP rate limit
# - GET  /logout: requires a live bearer token (get_principal)
router = APIRouter()


@router.post("/signup", status_code=201)
def signup(request: Request, body: SignupRequest) -> JSONResponse:
    """Create a user.

    With organization_name: a new organization is created and the caller
    becomes its Admin. With organization_id: the caller joins that
    organization as a Viewer.
    """
    flows.signup(
        request.app.state.credentials,
        email=body.email,
        password=body.password,
        organization_name=body.organization_name,
        organization_id=body.organization_id,
        description=body.description,
    )
    return envelope(201, "User created successfully.")


@router.post("/login")
@limiter.limit(login_rate_limit)  # must be BELOW @router so the route registers the limited function
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Verify credentials and return a new session token.

    Order of checks: lockout (429), unknown email (404), inactive
    organization (403), wrong password (401).
    """
    token = flows.login(
        request.app.state.credentials,
        request.app.state.tokens,
        request.app.state.attempts,
        email=body.email,
        password=body.password,
    )
    return envelope(
        200,
        "Login successful.",
        data=LoginData(token=token).model_dump(),
        headers={"Cache-Control": "no-store"},
    )


@router.get("/logout")
async def logout(request: Request, principal: Principal = Depends(get_principal)) -> JSONResponse:
    """Revoke the token that authenticated this request.

    Other sessions of the same user (other devices) stay live.
    """
    flows.logout(request.app.state.tokens, request.state.token)
    return envelope(200, "User logged out successfully.")
