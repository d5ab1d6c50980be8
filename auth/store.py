"""
auth/store.py -- SQLAlchemy Core persistence layer for organizations and users.

Pattern: Repository + Data Mapper (same as catalog/store.py).
CredentialStore is the repository; _row_to_user / _row_to_organization are
the mappers. Flow, dependency, and route code never touches SQL directly.

Transactions:
  Every method accepts an optional `conn`. Without it the method opens and
  commits its own transaction. With it the method joins the caller's
  transaction, so a flow can group several calls into one unit of work:

      with store.transaction() as conn:
          org = store.create_organization(Organization(name="Acme"), conn=conn)
          user = store.create_user(User(...), conn=conn)
          store.set_organization_admin(org.id, user.id, conn=conn)

  Any exception inside the block rolls back every write made through conn.

Security:
  All queries use bound parameters. No f-strings in SQL.

Uniqueness:
  users.email and organizations.name are UNIQUE in SQL. A duplicate insert
  surfaces as ConflictError, whether it was caught by a pre-check in the
  flow or by the constraint under a concurrent race.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, MetaData, String, Table, Text, func, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError

from auth.models import Organization, User
from core.config import get_settings
from core.database import apply_migrations, make_engine
from core.errors import ConflictError

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_organizations = Table(
    "organizations",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("description", Text),
    Column("admin_id", String(36), unique=True),  # NULL only mid-signup
    Column("created_at", String(32), nullable=False),
    Column("active", Boolean, nullable=False, server_default="1"),
)

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("role", String(10), nullable=False),
    Column("organization_id", String(36), nullable=False, index=True),
    Column("created_at", String(32), nullable=False),
)

_MIGRATIONS = [
    (1, "create organizations and users", _metadata.create_all),
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _new_id() -> str:
    return str(uuid.uuid4())


def normalize_email(email: str) -> str:
    """Canonical form used for storage, lookup, and login throttling keys."""
    return email.strip().lower()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class CredentialStore:
    """Repository for Organization and User records.

    Usage:
        store = CredentialStore()
        org = store.create_organization(Organization(name="Acme"))
        user = store.find_user_by_email("admin@acme.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        self.engine: Engine = make_engine(db_url or get_settings().database_url)
        apply_migrations(self.engine, "auth", _MIGRATIONS)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection whose writes commit together or not at all."""
        with self.engine.begin() as conn:
            yield conn

    @contextmanager
    def _connect(self, conn: Connection | None) -> Iterator[Connection]:
        if conn is not None:
            yield conn
            return
        with self.engine.begin() as own:
            yield own

    # ------------------------------------------------------------------
    # Organization queries
    # ------------------------------------------------------------------

    def create_organization(self, org: Organization, conn: Connection | None = None) -> Organization:
        """Insert a new organization and return it with id and created_at set.

        Raises ConflictError if the name is already taken.
        """
        created = Organization(
            id=_new_id(),
            name=org.name,
            description=org.description,
            admin_id=org.admin_id,
            created_at=_now_iso(),
            active=org.active,
        )
        try:
            with self._connect(conn) as c:
                c.execute(
                    _organizations.insert().values(
                        id=created.id,
                        name=created.name,
                        description=created.description,
                        admin_id=created.admin_id,
                        created_at=created.created_at,
                        active=created.active,
                    )
                )
        except IntegrityError as exc:
            raise ConflictError("Organization name already exists.") from exc
        return created

    def find_organization_by_id(self, org_id: str, conn: Connection | None = None) -> Organization | None:
        with self._connect(conn) as c:
            row = c.execute(_organizations.select().where(_organizations.c.id == org_id)).fetchone()
        return _row_to_organization(row) if row is not None else None

    def find_organization_by_name(self, name: str, conn: Connection | None = None) -> Organization | None:
        """Look up an organization by exact name (case-sensitive)."""
        with self._connect(conn) as c:
            row = c.execute(_organizations.select().where(_organizations.c.name == name)).fetchone()
        return _row_to_organization(row) if row is not None else None

    def set_organization_admin(self, org_id: str, user_id: str, conn: Connection | None = None) -> bool:
        """Record the founding admin. Returns False if org_id was not found."""
        with self._connect(conn) as c:
            result = c.execute(
                _organizations.update().where(_organizations.c.id == org_id).values(admin_id=user_id)
            )
        return result.rowcount > 0

    def set_organization_active(self, org_id: str, active: bool, conn: Connection | None = None) -> bool:
        """Enable or disable logins for an organization. Returns False if not found."""
        with self._connect(conn) as c:
            result = c.execute(_organizations.update().where(_organizations.c.id == org_id).values(active=active))
        return result.rowcount > 0

    def list_organizations(self, conn: Connection | None = None) -> list[Organization]:
        """Return all organizations ordered by name. Used by the admin CLI."""
        with self._connect(conn) as c:
            rows = c.execute(_organizations.select().order_by(_organizations.c.name)).fetchall()
        return [_row_to_organization(r) for r in rows]

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def create_user(self, user: User, conn: Connection | None = None) -> User:
        """Insert a new user and return it with id and created_at set.

        Raises ConflictError if the email already exists in any organization.
        """
        created = User(
            id=_new_id(),
            email=normalize_email(user.email),
            role=user.role,
            organization_id=user.organization_id,
            hashed_password=user.hashed_password,
            created_at=_now_iso(),
        )
        try:
            with self._connect(conn) as c:
                c.execute(
                    _users.insert().values(
                        id=created.id,
                        email=created.email,
                        hashed_password=created.hashed_password,
                        role=created.role,
                        organization_id=created.organization_id,
                        created_at=created.created_at,
                    )
                )
        except IntegrityError as exc:
            raise ConflictError("Email already exists.") from exc
        return created

    def find_user_by_email(self, email: str, conn: Connection | None = None) -> User | None:
        with self._connect(conn) as c:
            row = c.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    def find_user_by_id(self, user_id: str, conn: Connection | None = None) -> User | None:
        with self._connect(conn) as c:
            row = c.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def list_users(
        self,
        org_id: str,
        role: str | None = None,
        limit: int = 5,
        offset: int = 0,
        conn: Connection | None = None,
    ) -> list[User]:
        """Return users of one organization ordered by email."""
        query = _users.select().where(_users.c.organization_id == org_id)
        if role is not None:
            query = query.where(_users.c.role == role)
        query = query.order_by(_users.c.email).limit(limit).offset(offset)
        with self._connect(conn) as c:
            rows = c.execute(query).fetchall()
        return [_row_to_user(r) for r in rows]

    def count_users(self, org_id: str, conn: Connection | None = None) -> int:
        with self._connect(conn) as c:
            result = c.execute(
                select(func.count()).select_from(_users).where(_users.c.organization_id == org_id)
            ).scalar()
        return result or 0

    def update_password(self, user_id: str, hashed_password: str, conn: Connection | None = None) -> bool:
        with self._connect(conn) as c:
            result = c.execute(_users.update().where(_users.c.id == user_id).values(hashed_password=hashed_password))
        return result.rowcount > 0

    def delete_user(self, org_id: str, user_id: str, conn: Connection | None = None) -> bool:
        """Delete a user of the given organization. Returns False if not found.

        The organization filter is part of the WHERE clause, so a user id
        from another tenant behaves exactly like an unknown id.
        """
        with self._connect(conn) as c:
            result = c.execute(
                _users.delete().where((_users.c.id == user_id) & (_users.c.organization_id == org_id))
            )
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_organization(row) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        description=row.description,
        admin_id=row.admin_id,
        created_at=row.created_at,
        active=bool(row.active),
    )


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        email=row.email,
        hashed_password=row.hashed_password,
        role=row.role,
        organization_id=row.organization_id,
        created_at=row.created_at,
    )
