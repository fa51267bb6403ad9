from datetime import timedelta
from typing import Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

import models
from database import get_db
from core.config import settings
from core import exceptions as exc
from core.logging_config import get_logger
from core.timeutils import utcnow

logger = get_logger(__name__)

ADMIN_ROLE = "admin"

# Missing credentials are reported by get_current_user as NO_TOKEN
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, expires_minutes: Optional[int] = None) -> str:
    """Issue a signed bearer token whose `id` claim identifies the user."""
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    now = utcnow()
    payload = {
        "id": user_id,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("auth_token_expired")
        raise exc.AuthenticationRequiredException(detail="Token expired.", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError as e:
        logger.info("auth_token_invalid", error=str(e))
        raise exc.AuthenticationRequiredException(detail="Invalid token.", code="INVALID_TOKEN")


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the bearer token to a user or fail with 401."""
    if credentials is None or not credentials.credentials:
        raise exc.AuthenticationRequiredException()

    payload = decode_access_token(credentials.credentials)
    user_id = payload.get("id")
    if user_id is None:
        raise exc.AuthenticationRequiredException(detail="Invalid token.", code="INVALID_TOKEN")

    user = db.get(models.User, user_id)
    if user is None:
        logger.warning("auth_user_not_found", user_id=user_id)
        raise exc.AuthenticationRequiredException(detail="User not found.", code="USER_NOT_FOUND")
    return user


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if user.role != ADMIN_ROLE:
        logger.warning("admin_access_denied", user_id=user.id, role=user.role)
        raise exc.NotAuthorizedError(detail="Access denied. Admin privileges required.", code="ADMIN_REQUIRED")
    return user


def is_admin(user: models.User) -> bool:
    return user.role == ADMIN_ROLE
