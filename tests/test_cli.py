"""Tests for the administration commands in main.py.

The stores are redirected to a named in-memory database so the commands run
against real tables without touching the default SQLite file.
"""

import uuid

import pytest

import main
from auth import flows
from auth.store import CredentialStore
from catalog.store import CatalogStore


@pytest.fixture
def db(monkeypatch):
    url = f"sqlite:///file:test_cli_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    # Keep one store open so the shared in-memory database outlives each command.
    keeper = CredentialStore(url)
    monkeypatch.setattr(main, "CredentialStore", lambda: CredentialStore(url))
    monkeypatch.setattr(main, "CatalogStore", lambda: CatalogStore(url))
    yield keeper
    keeper.close()


def test_no_command_prints_help(capsys):
    assert main.main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()


def test_migrate(db, capsys):
    assert main.main(["migrate"]) == 0
    assert "up to date" in capsys.readouterr().out


def test_orgs_lists_status_and_user_count(db, capsys):
    flows.signup(db, "admin@x.com", "Secur3Pass", organization_name="Acme")
    assert main.main(["orgs"]) == 0
    out = capsys.readouterr().out
    assert "Acme" in out
    assert "yes" in out


def test_org_deactivate_and_activate(db):
    flows.signup(db, "admin@x.com", "Secur3Pass", organization_name="Acme")
    org = db.find_organization_by_name("Acme")

    assert main.main(["org-deactivate", org.id]) == 0
    assert db.find_organization_by_id(org.id).active is False
    assert main.main(["org-activate", org.id]) == 0
    assert db.find_organization_by_id(org.id).active is True


def test_unknown_organization_fails(db, capsys):
    assert main.main(["org-deactivate", "missing"]) == 1
    assert "not found" in capsys.readouterr().err
