"""
Credentials: bcrypt password hashing (passlib) and signed JWTs (python-jose).

Access and refresh tokens are signed with different keys and carry a
``type`` claim, so one can never be replayed as the other. Refresh tokens
are stored only as a SHA-256 digest on the user row.
"""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt
from passlib.context import CryptContext

from zenamanage.core.config import settings

# ── Passwords ─────────────────────────────────────────────────────────────────
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(plain_password: str) -> str:
    return pwd_context.hash(plain_password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def validate_password_strength(password: str) -> str:
    """Require 8+ characters with an uppercase letter and a digit."""
    problems = []
    if len(password) < 8:
        problems.append("be at least 8 characters long")
    if not any(c.isupper() for c in password):
        problems.append("contain at least one uppercase letter")
    if not any(c.isdigit() for c in password):
        problems.append("contain at least one digit")
    if problems:
        raise ValueError("Password must " + " and ".join(problems))
    return password


# ── Tokens ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class _TokenKind:
    name: str
    secret: str
    lifetime: timedelta


def _access_kind() -> _TokenKind:
    return _TokenKind(
        "access",
        settings.SECRET_KEY,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def _refresh_kind() -> _TokenKind:
    return _TokenKind(
        "refresh",
        settings.REFRESH_SECRET_KEY,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def _sign(kind: _TokenKind, subject: str, **claims: Any) -> str:
    issued = datetime.now(timezone.utc)
    claims.update(
        sub=subject,
        type=kind.name,
        iat=issued,
        exp=issued + kind.lifetime,
        jti=secrets.token_hex(16),
    )
    return jwt.encode(claims, kind.secret, algorithm=settings.ALGORITHM)


def _verify(kind: _TokenKind, token: str) -> dict[str, Any]:
    claims = jwt.decode(token, kind.secret, algorithms=[settings.ALGORITHM])
    if claims.get("type") != kind.name:
        raise JWTError(f"Expected a {kind.name} token")
    return claims


def create_access_token(user_id: str, role: str, tenant_id: str) -> str:
    """
    Short-lived bearer token. ``role`` and ``tenant_id`` are hints for
    clients and the push channel; request auth re-reads both from the user row.
    """
    return _sign(_access_kind(), user_id, role=role, tenant_id=tenant_id)


def create_refresh_token(user_id: str) -> str:
    return _sign(_refresh_kind(), user_id)


def decode_access_token(token: str) -> dict[str, Any]:
    """Return the claims of a valid access token; raise JWTError otherwise."""
    return _verify(_access_kind(), token)


def decode_refresh_token(token: str) -> dict[str, Any]:
    return _verify(_refresh_kind(), token)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()
