"""
tests/test_health.py -- Integration tests for GET /health.

Covers:
  - 200 envelope with status, version, and database fields
  - No authentication required
  - 503 when the database does not answer
"""

from __future__ import annotations

from sqlalchemy.exc import OperationalError

import api.main


def test_health_returns_200_envelope(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == 200
    assert body["error"] is None
    assert body["data"]["status"] == "ok"
    assert body["data"]["database"] == "ok"
    assert body["data"]["version"] == api.main.API_VERSION


def test_health_no_auth_required(client):
    resp = client.get("/health", headers={})
    assert resp.status_code == 200


def test_health_reports_database_outage(client, monkeypatch):
    def broken_ping(engine):
        raise OperationalError("SELECT 1", {}, Exception("database is gone"))

    monkeypatch.setattr(api.main, "ping", broken_ping)
    resp = client.get("/health")
    assert resp.status_code == 503
    body = resp.json()
    assert body["message"] == "Database unavailable."
    assert body["data"]["database"] == "unavailable"
