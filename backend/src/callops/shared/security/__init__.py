"""Security utilities — bearer token verification.

Tokens are issued by the external auth service; this service only verifies
them.  ``create_access_token`` exists for local tooling and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

from jose import JWTError, jwt

from callops.domain.exceptions import AuthenticationError


# ── JWT ──────────────────────────────────────────────────────
def create_access_token(
    data: dict[str, Any],
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 30,
) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + timedelta(minutes=expires_minutes)
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, secret_key, algorithm=algorithm)


def decode_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, secret_key, algorithms=[algorithm])
    except JWTError as exc:
        raise AuthenticationError(f"Invalid token: {exc}") from exc
    if payload.get("type", "access") != "access":
        raise AuthenticationError("Invalid token: not an access token")
    if not payload.get("sub"):
        raise AuthenticationError("Invalid token: missing subject")
    return payload  # type: ignore[no-any-return]


def parse_bearer(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer ...`` header."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid Authorization header")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthenticationError("Missing or invalid Authorization header")
    return token
