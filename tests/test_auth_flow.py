"""
tests/test_auth_flow.py -- Integration tests for signup, login, logout, and
the bearer-token dependency.

These tests exercise the full stack: FastAPI routing -> request validation ->
auth/flows.py -> CredentialStore / TokenService / SessionRegistry /
LoginAttemptLimiter -> envelope rendering in api/main.py.

Coverage:
  - Signup: bootstrap (Admin + admin_id), join (Viewer), 400/404/409 branches
  - Login: success, 404 unknown email, 401 wrong password, 403 inactive org,
    429 lockout (even with the right password), unlock after the window,
    per-IP 429 from slowapi
  - Logout: per-token revocation, other devices stay live, reuse is 401
  - Authorization header shapes: missing 401, malformed 400, bad token 401
"""

from __future__ import annotations

from types import SimpleNamespace

from fastapi.testclient import TestClient

from auth.attempts import LoginAttemptLimiter
from auth.models import ROLE_ADMIN, ROLE_VIEWER
from auth.tokens import TokenService
from core.config import get_settings

PASSWORD = "Secur3Pass"


def _signup(client: TestClient, **body):
    payload = {"password": PASSWORD}
    payload.update(body)
    return client.post("/signup", json=payload)


def _login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post("/login", json={"email": email, "password": password})


def _bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Signup
# ---------------------------------------------------------------------------


class TestSignup:
    def test_bootstrap_creates_admin_and_links_organization(self, client, stores) -> None:
        resp = _signup(client, email="admin@x.com", organization_name="Acme")
        assert resp.status_code == 201, resp.text
        assert resp.json() == {"status": 201, "data": None, "message": "User created successfully.", "error": None}

        user = stores.credentials.find_user_by_email("admin@x.com")
        org = stores.credentials.find_organization_by_name("Acme")
        assert user.role == ROLE_ADMIN
        assert org.admin_id == user.id
        assert user.organization_id == org.id

    def test_join_existing_organization_as_viewer(self, client, stores) -> None:
        _signup(client, email="admin@x.com", organization_name="Acme")
        org = stores.credentials.find_organization_by_name("Acme")

        resp = _signup(client, email="viewer@x.com", organization_id=org.id)
        assert resp.status_code == 201, resp.text
        user = stores.credentials.find_user_by_email("viewer@x.com")
        assert user.role == ROLE_VIEWER
        assert user.organization_id == org.id

    def test_join_unknown_organization_is_404(self, client) -> None:
        resp = _signup(client, email="viewer@x.com", organization_id="no-such-org")
        assert resp.status_code == 404
        assert resp.json()["message"] == "Organization not found."

    def test_duplicate_email_is_409_on_both_branches(self, client, stores) -> None:
        _signup(client, email="admin@x.com", organization_name="Acme")
        org = stores.credentials.find_organization_by_name("Acme")

        again = _signup(client, email="admin@x.com", organization_name="Other")
        joined = _signup(client, email="ADMIN@x.com", organization_id=org.id)

        assert again.status_code == 409
        assert joined.status_code == 409
        assert stores.credentials.count_users(org.id) == 1
        assert stores.credentials.find_organization_by_name("Other") is None

    def test_duplicate_organization_name_is_409(self, client, stores) -> None:
        _signup(client, email="a@x.com", organization_name="Acme")
        resp = _signup(client, email="b@x.com", organization_name="Acme")
        assert resp.status_code == 409
        assert stores.credentials.find_user_by_email("b@x.com") is None

    def test_missing_organization_fields_is_400(self, client) -> None:
        resp = _signup(client, email="a@x.com")
        assert resp.status_code == 400
        assert "organization_name" in resp.json()["message"]

    def test_existing_email_without_organization_is_409(self, client, stores) -> None:
        _signup(client, email="test@example.com", organization_name="Test Org")
        resp = client.post("/signup", json={"email": "test@example.com", "password": "differentPassword"})
        assert resp.status_code == 409
        assert resp.json()["message"] == "Email already exists."

    def test_password_whitespace_is_kept(self, client) -> None:
        _signup(client, email="admin@x.com", password="  Secur3Pass  ", organization_name="  Acme  ")
        assert _login(client, "  admin@x.com ", "  Secur3Pass  ").status_code == 200
        assert _login(client, "admin@x.com", "Secur3Pass").status_code == 401

    def test_invalid_email_is_400(self, client) -> None:
        resp = _signup(client, email="not-an-email", organization_name="Acme")
        assert resp.status_code == 400
        body = resp.json()
        assert "valid email" in body["message"]
        assert body["error"][0]["field"] == "email"

    def test_missing_email_is_400(self, client) -> None:
        resp = client.post("/signup", json={"password": PASSWORD, "organization_name": "Acme"})
        assert resp.status_code == 400
        assert "email" in resp.json()["message"]

    def test_short_password_is_400(self, client) -> None:
        resp = client.post("/signup", json={"email": "a@x.com", "password": "short", "organization_name": "Acme"})
        assert resp.status_code == 400
        assert "password" in resp.json()["message"]

    def test_password_over_72_bytes_is_400(self, client) -> None:
        resp = client.post(
            "/signup",
            json={"email": "a@x.com", "password": "é" * 40, "organization_name": "Acme"},
        )
        assert resp.status_code == 400
        assert "password" in resp.json()["message"]


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_returns_token(self, client) -> None:
        _signup(client, email="admin@x.com", organization_name="Acme")
        resp = _login(client, "admin@x.com")
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["message"] == "Login successful."
        assert body["data"]["token"]
        assert resp.headers["Cache-Control"] == "no-store"

    def test_login_email_is_case_insensitive(self, client) -> None:
        _signup(client, email="Admin@X.com", organization_name="Acme")
        assert _login(client, "admin@x.com").status_code == 200

    def test_unknown_email_is_404(self, client) -> None:
        resp = _login(client, "ghost@x.com")
        assert resp.status_code == 404
        assert resp.json()["message"] == "User not found."

    def test_wrong_password_is_401(self, client) -> None:
        _signup(client, email="admin@x.com", organization_name="Acme")
        resp = _login(client, "admin@x.com", "WrongPass1")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid credentials."

    def test_per_ip_limit_returns_429(self, client, monkeypatch) -> None:
        monkeypatch.setattr("api.limiter.get_settings", lambda: SimpleNamespace(login_rate_limit="2/minute"))
        statuses = [_login(client, f"ghost{i}@x.com").status_code for i in range(5)]
        assert statuses[:2] == [404, 404]
        assert statuses[2:] == [429, 429, 429]

        resp = _login(client, "ghost@x.com")
        assert resp.json()["message"] == "Too many requests. Please try again later."
        assert "Retry-After" in resp.headers

    def test_malformed_login_body_is_400(self, client) -> None:
        assert client.post("/login", json={"email": "admin@x.com"}).status_code == 400
        assert client.post("/login", json={"email": "nope", "password": PASSWORD}).status_code == 400

    def test_inactive_organization_is_403_even_with_correct_password(self, client, stores) -> None:
        _signup(client, email="admin@x.com", organization_name="Acme")
        org = stores.credentials.find_organization_by_name("Acme")
        stores.credentials.set_organization_active(org.id, False)

        resp = _login(client, "admin@x.com")
        assert resp.status_code == 403
        assert "organization is inactive" in resp.json()["message"]

    def test_five_failures_lock_out_the_correct_password(self, client) -> None:
        _signup(client, email="test@example.com", organization_name="Acme")
        for _ in range(5):
            assert _login(client, "test@example.com", "WrongPass1").status_code == 401

        resp = _login(client, "test@example.com")
        assert resp.status_code == 429
        assert "Too many login attempts" in resp.json()["message"]
        assert int(resp.headers["Retry-After"]) > 0

    def test_lockout_applies_to_unknown_email_before_lookup(self, client, stores) -> None:
        for _ in range(5):
            stores.attempts.record_failure("ghost@x.com")
        assert _login(client, "ghost@x.com").status_code == 429

    def test_lockout_is_per_email(self, client) -> None:
        _signup(client, email="a@x.com", organization_name="Acme")
        _signup(client, email="b@x.com", organization_name="Beta")
        for _ in range(5):
            _login(client, "a@x.com", "WrongPass1")
        assert _login(client, "b@x.com").status_code == 200

    def test_login_succeeds_after_window_passes(self, client) -> None:
        now = [1000.0]
        client.app.state.attempts = LoginAttemptLimiter(max_attempts=5, window_seconds=900, clock=lambda: now[0])
        _signup(client, email="test@example.com", organization_name="Acme")
        for _ in range(5):
            _login(client, "test@example.com", "WrongPass1")
        assert _login(client, "test@example.com").status_code == 429

        now[0] += 901
        assert _login(client, "test@example.com").status_code == 200

    def test_success_resets_failure_count(self, client, stores) -> None:
        _signup(client, email="a@x.com", organization_name="Acme")
        for _ in range(4):
            _login(client, "a@x.com", "WrongPass1")
        assert _login(client, "a@x.com").status_code == 200
        assert stores.attempts.failures("a@x.com") == 0


# ---------------------------------------------------------------------------
# Logout and sessions
# ---------------------------------------------------------------------------


class TestLogout:
    def test_acme_signup_login_logout_then_token_is_dead(self, client) -> None:
        resp = _signup(client, email="admin@x.com", organization_name="Acme")
        assert resp.status_code == 201
        token = _login(client, "admin@x.com").json()["data"]["token"]

        resp = client.get("/logout", headers=_bearer(token))
        assert resp.status_code == 200
        assert resp.json()["message"] == "User logged out successfully."

        for path in ("/artists", "/albums", "/tracks", "/users", "/favorites/artist", "/logout"):
            assert client.get(path, headers=_bearer(token)).status_code == 401, path

    def test_logout_is_per_token(self, client) -> None:
        _signup(client, email="admin@x.com", organization_name="Acme")
        laptop = _login(client, "admin@x.com").json()["data"]["token"]
        phone = _login(client, "admin@x.com").json()["data"]["token"]

        assert client.get("/logout", headers=_bearer(laptop)).status_code == 200
        assert client.get("/artists", headers=_bearer(laptop)).status_code == 401
        assert client.get("/artists", headers=_bearer(phone)).status_code == 200

    def test_logout_without_header_is_401(self, client) -> None:
        resp = client.get("/logout")
        assert resp.status_code == 401
        assert resp.json()["message"] == "Unauthorized Access"

    def test_logout_with_invalid_token_is_401(self, client) -> None:
        resp = client.get("/logout", headers={"Authorization": "Bearer invalid_token"})
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid token"

    def test_malformed_header_is_400(self, client) -> None:
        for header in ("", "Token abc", "Bearer", "Bearer a b", "bearer abc"):
            resp = client.get("/logout", headers={"Authorization": header})
            assert resp.status_code == 400, header
            assert resp.json() == {"status": 400, "data": None, "message": "Bad Request", "error": None}

    def test_expired_token_is_401(self, client, stores) -> None:
        _signup(client, email="admin@x.com", organization_name="Acme")
        user = stores.credentials.find_user_by_email("admin@x.com")
        expired = TokenService(get_settings().secret_key, stores.registry, ttl_seconds=-60)
        token = expired.issue(user.id, user.role, user.organization_id)

        resp = client.get("/artists", headers=_bearer(token))
        assert resp.status_code == 401

    def test_token_signed_with_another_key_is_401(self, client, stores) -> None:
        _signup(client, email="admin@x.com", organization_name="Acme")
        user = stores.credentials.find_user_by_email("admin@x.com")
        forged = TokenService("x" * 64, stores.registry).issue(user.id, user.role, user.organization_id)

        resp = client.get("/artists", headers=_bearer(forged))
        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid token"
