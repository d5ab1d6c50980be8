"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in catalog/models.py -- dataclasses own domain shape; stores, flows, and
routes do the work.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLE_ADMIN = "Admin"
ROLE_EDITOR = "Editor"
ROLE_VIEWER = "Viewer"
ROLES = (ROLE_ADMIN, ROLE_EDITOR, ROLE_VIEWER)


@dataclass
class Organization:
    """A tenant. Every user and every catalog row belongs to exactly one.

    admin_id is None only inside the signup transaction, between inserting
    the organization and inserting its founding admin. Outside that
    transaction it always references an Admin user of this organization.
    """

    name: str
    id: str | None = None
    description: str | None = None
    admin_id: str | None = None
    created_at: str | None = None
    active: bool = True


@dataclass
class User:
    """An account that can log in.

    email is stored lowercase and is unique across all organizations, not
    per organization. hashed_password is a bcrypt digest; the plaintext is
    never stored.
    """

    email: str
    role: str  # "Admin", "Editor", "Viewer"
    organization_id: str
    hashed_password: str
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Principal:
    """The authenticated identity attached to a request.

    Built from verified token claims only; no database read is involved.
    token_id is the JWT "jti" claim, the key the SessionRegistry tracks.
    """

    user_id: str
    role: str
    organization_id: str
    token_id: str
    expires_at: float
