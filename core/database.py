"""
core/database.py -- Engine factory and explicit, versioned schema migrations.

Both stores (auth/store.py and catalog/store.py) build their engine here so
SQLite connection settings live in one place, and both evolve their schema
through apply_migrations() rather than an implicit "alter on boot" sync.

Migrations:
  Each store declares an ordered list of (version, description, callable)
  steps. apply_migrations() records every applied step in a
  schema_migrations table keyed by (component, version) and runs only the
  steps that have not been recorded yet, each inside its own transaction.
  A schema change is a new numbered step, reviewed like any other code.

Usage:
    _MIGRATIONS = [
        (1, "create users and organizations", _metadata.create_all),
        (2, "add users.last_login", lambda conn: conn.execute(text("ALTER TABLE ..."))),
    ]
    engine = make_engine(db_url)
    apply_migrations(engine, "auth", _MIGRATIONS)

Layer rule: core/ is the kernel. No imports from api/, auth/, or catalog/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, event, select
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger("musiclib.db")

Migration = tuple[int, str, Callable[[Connection], None]]

_metadata = MetaData()

_schema_migrations = Table(
    "schema_migrations",
    _metadata,
    Column("component", String(50), primary_key=True),
    Column("version", Integer, primary_key=True),
    Column("description", String(255), nullable=False),
    Column("applied_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    WAL (Write-Ahead Logging) allows readers to proceed without blocking
    during writes. Set per-connection because SQLite PRAGMAs are not
    inherited by new connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def make_engine(db_url: str) -> Engine:
    """Create an Engine, applying SQLite-specific connection settings.

    SQLite requires check_same_thread=False because FastAPI runs sync route
    handlers in a thread pool, so one pooled connection may be used from
    several threads over its lifetime.
    """
    connect_args: dict = {}
    if db_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _set_wal_mode)
    return engine


# ---------------------------------------------------------------------------
# Migrations
# ---------------------------------------------------------------------------


def applied_versions(engine: Engine, component: str) -> set[int]:
    """Return the migration versions already recorded for a component."""
    _metadata.create_all(engine)
    with engine.connect() as conn:
        rows = conn.execute(
            select(_schema_migrations.c.version).where(_schema_migrations.c.component == component)
        ).fetchall()
    return {row.version for row in rows}


def apply_migrations(engine: Engine, component: str, migrations: Sequence[Migration]) -> list[int]:
    """Apply pending migrations for a component in version order.

    Returns the versions applied by this call (empty when the schema is
    already current). Raises ValueError if two steps share a version.
    A failing step rolls back its own transaction and propagates; earlier
    steps stay applied.
    """
    versions = [m[0] for m in migrations]
    if len(versions) != len(set(versions)):
        raise ValueError(f"Duplicate migration versions for {component!r}: {versions!r}")

    done = applied_versions(engine, component)
    applied: list[int] = []
    for version, description, step in sorted(migrations, key=lambda m: m[0]):
        if version in done:
            continue
        with engine.begin() as conn:
            step(conn)
            conn.execute(
                _schema_migrations.insert().values(
                    component=component,
                    version=version,
                    description=description,
                    applied_at=datetime.now(timezone.utc).isoformat(),
                )
            )
        logger.info("Applied migration %s/%d: %s", component, version, description)
        applied.append(version)
    return applied


def ping(engine: Engine) -> bool:
    """Return True if the database answers a trivial query."""
    with engine.connect() as conn:
        conn.exec_driver_sql("SELECT 1")
    return True
