#!/usr/bin/env python3
"""
Music Library API -- server and administration command line.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py migrate
  python main.py orgs
  python main.py org-deactivate <organization-id>
  python main.py org-activate <organization-id>

Environment variables (see core/config.py):
  SECRET_KEY    Required unless DEBUG=true. At least 32 characters.
  DATABASE_URL  SQLAlchemy URL. Defaults to a SQLite file next to this script.
  DEBUG         "true" enables an auto-generated dev SECRET_KEY and /docs.

Organization activation is administrative: there is no HTTP route for it.
Deactivating an organization makes every login for its users fail with 403;
tokens already issued stay valid until they expire or are revoked.
"""

import argparse
import sys

from auth.store import CredentialStore
from catalog.store import CatalogStore


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("asgi:app", host=args.host, port=args.port, reload=args.reload)
    return 0


def _cmd_migrate(args: argparse.Namespace) -> int:
    # Constructing a store applies its pending migrations.
    CredentialStore().close()
    CatalogStore().close()
    print("Database schema is up to date.")
    return 0


def _cmd_orgs(args: argparse.Namespace) -> int:
    store = CredentialStore()
    try:
        orgs = store.list_organizations()
        if not orgs:
            print("No organizations.")
            return 0
        print(f"{'ID':<36}  {'ACTIVE':<6}  {'USERS':>5}  NAME")
        for org in orgs:
            active = "yes" if org.active else "no"
            print(f"{org.id:<36}  {active:<6}  {store.count_users(org.id):>5}  {org.name}")
    finally:
        store.close()
    return 0


def _set_active(org_id: str, active: bool) -> int:
    store = CredentialStore()
    try:
        if not store.set_organization_active(org_id, active):
            print(f"  [!] Organization '{org_id}' not found.", file=sys.stderr)
            return 1
    finally:
        store.close()
    print(f"Organization {org_id} {'activated' if active else 'deactivated'}.")
    return 0


def _cmd_org_activate(args: argparse.Namespace) -> int:
    return _set_active(args.organization_id, True)


def _cmd_org_deactivate(args: argparse.Namespace) -> int:
    return _set_active(args.organization_id, False)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="music-library",
        description="Multi-tenant music catalog API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py serve --reload
  DATABASE_URL=postgresql://user:pw@host/db python main.py migrate
  python main.py org-deactivate 6f1c...
        """,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    serve.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    serve.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    serve.set_defaults(func=_cmd_serve)

    migrate = sub.add_parser("migrate", help="Apply pending schema migrations and exit")
    migrate.set_defaults(func=_cmd_migrate)

    orgs = sub.add_parser("orgs", help="List organizations with their status and user counts")
    orgs.set_defaults(func=_cmd_orgs)

    activate = sub.add_parser("org-activate", help="Allow logins for an organization")
    activate.add_argument("organization_id", metavar="ORG-ID")
    activate.set_defaults(func=_cmd_org_activate)

    deactivate = sub.add_parser("org-deactivate", help="Block logins for an organization")
    deactivate.add_argument("organization_id", metavar="ORG-ID")
    deactivate.set_defaults(func=_cmd_org_deactivate)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return 0
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
