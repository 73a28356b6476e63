import logging

import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from worklane.auth.tokens import decode_access_token
from worklane.db import get_db
from worklane.models.user import User

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the acting user from the bearer token."""
    if creds is None or creds.scheme.lower() != "bearer":
        raise _unauthorized("missing bearer token")

    try:
        claims = decode_access_token(creds.credentials)
    except jwt.InvalidTokenError as e:
        logger.info("rejected bearer token: %s", e)
        raise _unauthorized("invalid token")

    user = db.get(User, claims.user_id)
    if user is None:
        raise _unauthorized("user not found")
    return user
