"""
Access-token verification.

Tokens are issued by the account service and signed with the shared
JWT_SECRET; this service only verifies them. The `sub` claim carries the
user id that every analytics query is scoped to.
"""

from typing import Optional
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel
import structlog

from app.shared.core.config import get_settings

logger = structlog.get_logger()

# auto_error=False so a missing header gets the same envelope as a bad token
bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """Identity resolved from a verified access token."""
    id: UUID
    email: Optional[str] = None


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def decode_jwt(token: str) -> dict:
    """
    Verify signature and expiry and return the claims.

    Raises:
        HTTPException 401 if the token is expired or invalid
    """
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.warning("jwt_expired")
        raise _unauthorized("Token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning("jwt_invalid", error=str(e))
        raise _unauthorized("Invalid token")


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None:
        raise _unauthorized("Not authenticated")

    claims = decode_jwt(credentials.credentials)
    try:
        user_id = UUID(str(claims.get("sub")))
    except ValueError:
        logger.warning("jwt_bad_subject")
        raise _unauthorized("Invalid token payload")

    # Rate limiting keys on the user once auth has run
    request.state.user_id = user_id

    logger.debug("user_authenticated", user_id=str(user_id))
    return CurrentUser(id=user_id, email=claims.get("email"))
