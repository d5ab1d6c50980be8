"""
auth/flows.py -- Signup, login, and logout orchestration.

Each flow runs its steps strictly in order and fails fast with the first
applicable core.errors.ApiError. Route handlers in api/routes/auth.py only
translate HTTP bodies into these calls and the results into envelopes, so
the flows can be exercised directly in unit tests.

Request-shape validation (email format, password length, field types)
happens before a flow is called, in the Pydantic request models.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging

from auth.attempts import LoginAttemptLimiter
from auth.models import ROLE_ADMIN, ROLE_VIEWER, Organization, User
from auth.store import CredentialStore, normalize_email
from auth.tokens import TokenService, hash_password, verify_password
from core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitedError,
    UnauthenticatedError,
)

logger = logging.getLogger("musiclib.auth")


def signup(
    store: CredentialStore,
    email: str,
    password: str,
    organization_name: str | None = None,
    organization_id: str | None = None,
    description: str | None = None,
) -> User:
    """Create a user, bootstrapping a new organization when requested.

    Bootstrap branch (organization_name, no organization_id): creates the
    organization, its Admin, and the admin_id link in one transaction.
    Join branch (organization_id): creates a Viewer in an existing
    organization. organization_id wins when both are given.
    """
    email = normalize_email(email)

    if organization_id:
        if store.find_organization_by_id(organization_id) is None:
            raise NotFoundError("Organization not found.")
        if store.find_user_by_email(email) is not None:
            raise ConflictError("Email already exists.")
        user = store.create_user(
            User(
                email=email,
                role=ROLE_VIEWER,
                organization_id=organization_id,
                hashed_password=hash_password(password),
            )
        )
        logger.info("User %s joined organization %s", user.id, organization_id)
        return user

    if not organization_name:
        if store.find_user_by_email(email) is not None:
            raise ConflictError("Email already exists.")
        raise BadRequestError("organization_name is required to create a new organization.")

    # Hash outside the transaction.
    hashed = hash_password(password)
    with store.transaction() as conn:
        if store.find_user_by_email(email, conn=conn) is not None:
            raise ConflictError("Email already exists.")
        if store.find_organization_by_name(organization_name, conn=conn) is not None:
            raise ConflictError("Organization name already exists.")
        org = store.create_organization(Organization(name=organization_name, description=description), conn=conn)
        user = store.create_user(
            User(email=email, role=ROLE_ADMIN, organization_id=org.id, hashed_password=hashed),
            conn=conn,
        )
        store.set_organization_admin(org.id, user.id, conn=conn)
    logger.info("Organization %s created with admin %s", org.id, user.id)
    return user


def login(
    store: CredentialStore,
    tokens: TokenService,
    attempts: LoginAttemptLimiter,
    email: str,
    password: str,
) -> str:
    """Verify credentials and return a new live session token.

    The lockout check runs before the user lookup and the password check, so
    a locked-out email gets 429 whether or not the password is right.
    """
    email = normalize_email(email)

    if attempts.is_blocked(email):
        raise RateLimitedError(
            "Too many login attempts. Please try again later.",
            retry_after=attempts.retry_after(email),
        )

    user = store.find_user_by_email(email)
    if user is None:
        raise NotFoundError("User not found.")

    org = store.find_organization_by_id(user.organization_id)
    if org is None or not org.active:
        raise ForbiddenError("Your organization is inactive.")

    if not verify_password(password, user.hashed_password):
        attempts.record_failure(email)
        logger.info("Failed login for user %s", user.id)
        raise UnauthenticatedError("Invalid credentials.")

    attempts.reset(email)
    token = tokens.issue(user.id, user.role, user.organization_id)
    logger.info("User %s logged in", user.id)
    return token


def logout(tokens: TokenService, token: str) -> None:
    """Revoke exactly the presented token; other sessions stay live."""
    if not tokens.revoke(token):
        raise UnauthenticatedError("Invalid token")
