"""
auth/tokens.py -- Password hashing and session token utilities.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the principal (sub = user id, role, org = organization id) plus iat,
       exp, and a random jti. Verification returns None on any failure --
       the auth dependency turns that into a 401.

  Revocation: a signature cannot express "logged out". Every issued jti is
       registered in a SessionRegistry and TokenService.revoke() removes it;
       the auth dependency checks both the signature and the registry.

  Passwords: bcrypt used directly (no passlib wrapper). Cost factor comes
       from Settings.bcrypt_rounds. bcrypt.checkpw compares digests in
       constant time, so response time does not reveal how much of a
       password matched.

  SECRET_KEY: sourced from core.config.get_settings() by the caller that
       constructs TokenService (api/main.py lifespan). The Settings class
       validates the key at startup [M6].

Layer rule: no imports from api/ or catalog/. Import from core/ is allowed --
core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import time
import uuid

import bcrypt
from jose import JWTError, jwt

from auth.models import ROLES, Principal
from auth.sessions import SessionRegistry
from core.config import get_settings

logger = logging.getLogger("musiclib.auth")

_ALGORITHM = "HS256"

# ---------------------------------------------------------------------------
# Password hashing (bcrypt -- direct usage, no passlib wrapper)
# ---------------------------------------------------------------------------


def hash_password(plain: str, rounds: int | None = None) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    bcrypt only considers the first 72 bytes of input. The API layer rejects
    longer passwords (api/models.py) so nothing is silently truncated.
    """
    cost = rounds if rounds is not None else get_settings().bcrypt_rounds
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=cost)).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A digest that is not a well-formed bcrypt hash never matches.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


class TokenService:
    """Issue, validate, and revoke signed session tokens.

    Usage:
        registry = SessionRegistry()
        tokens = TokenService(settings.secret_key, registry, ttl_seconds=86400)
        token = tokens.issue(user.id, user.role, user.organization_id)
        principal = tokens.validate(token)        # Principal or None
        registry.is_live(principal.token_id)      # True until revoked
        tokens.revoke(token)
    """

    def __init__(self, secret_key: str, registry: SessionRegistry, ttl_seconds: int = 24 * 60 * 60) -> None:
        self._secret_key = secret_key
        self.registry = registry
        self.ttl_seconds = ttl_seconds

    def issue(self, user_id: str, role: str, organization_id: str) -> str:
        """Encode a signed JWT for the principal and register it as live."""
        issued_at = int(time.time())
        expires_at = issued_at + self.ttl_seconds
        token_id = uuid.uuid4().hex
        payload = {
            "sub": user_id,
            "role": role,
            "org": organization_id,
            "iat": issued_at,
            "exp": expires_at,
            "jti": token_id,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)
        self.registry.register(token_id, user_id, float(expires_at))
        return token

    def _decode(self, token: str, verify_exp: bool = True) -> dict | None:
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                options={"verify_exp": verify_exp},
            )
        except JWTError:
            return None
        for claim in ("sub", "role", "org", "exp", "jti"):
            if claim not in payload:
                return None
        if payload["role"] not in ROLES:
            return None
        return payload

    def validate(self, token: str) -> Principal | None:
        """Verify signature, shape, and expiry. Returns the Principal or None.

        Does not consult the registry: a revoked but unexpired token still
        validates here. Callers that authorize requests must also check
        registry.is_live(principal.token_id).
        """
        payload = self._decode(token)
        if payload is None:
            return None
        return Principal(
            user_id=str(payload["sub"]),
            role=payload["role"],
            organization_id=str(payload["org"]),
            token_id=str(payload["jti"]),
            expires_at=float(payload["exp"]),
        )

    def is_live(self, principal: Principal) -> bool:
        return self.registry.is_live(principal.token_id)

    def revoke(self, token: str) -> bool:
        """Make one token unusable. Returns False if it was not live.

        Expiry is not checked so an already-expired token can still be
        cleared from the registry; a forged token is never accepted.
        """
        payload = self._decode(token, verify_exp=False)
        if payload is None:
            return False
        return self.registry.revoke(str(payload["jti"]))

    def revoke_all_for_user(self, user_id: str) -> int:
        """Log a user out everywhere. Returns how many sessions were revoked."""
        return self.registry.revoke_all_for_user(user_id)
