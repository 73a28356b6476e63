"""Bearer tokens for the identity collaborator.

Login is handled upstream; this module only mints tokens for scripts and tests
and turns an incoming token back into the acting user's id.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from worklane.config import settings

ALGORITHM = "HS256"

@dataclass(frozen=True)
class AccessClaims:
    user_id: uuid.UUID
    issued_at: datetime
    expires_at: datetime

def now_utc() -> datetime:
    return datetime.now(timezone.utc)

def issue_access_token(user_id: str | uuid.UUID, expires_in: timedelta | None = None) -> str:
    iat = now_utc()
    exp = iat + (expires_in if expires_in is not None else timedelta(minutes=settings.jwt_expires_minutes))
    payload = {
        "sub": str(user_id),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=ALGORITHM)

def decode_access_token(token: str) -> AccessClaims:
    """Verify signature, issuer, audience and expiry; raise ``jwt.InvalidTokenError`` otherwise."""
    payload = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[ALGORITHM],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        options={"require": ["sub", "exp", "iat"]},
    )
    try:
        user_id = uuid.UUID(payload["sub"])
    except ValueError:
        raise jwt.InvalidTokenError("subject is not a user id") from None

    return AccessClaims(
        user_id=user_id,
        issued_at=datetime.fromtimestamp(payload["iat"], timezone.utc),
        expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc),
    )
