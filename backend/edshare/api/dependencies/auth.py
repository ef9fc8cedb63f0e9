# backend/edshare/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

The bearer token's ``sub`` claim carries the user id; the user must exist
and be active.
"""

import logging
from typing import Callable, Optional

from fastapi import Depends, HTTPException, status
from jwt import PyJWTError
from sqlalchemy.orm import Session

from ...auth import decode_access_token, oauth2_scheme_optional
from ...core.enums import RoleName
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user_id(token: Optional[str] = Depends(oauth2_scheme_optional)) -> str:
    """
    Validate the bearer token and return its subject.

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    if not token:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_access_token(token)
    except PyJWTError as e:
        logger.error(f"JWT validation error: {str(e)}")
        raise _unauthorized("Could not validate credentials")

    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        logger.warning("Token payload missing 'sub' field")
        raise _unauthorized("Could not validate credentials")
    return user_id


def get_current_active_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    user = RepositoryFactory.create_user_repository(db).get_active(user_id)
    if user is None:
        raise _unauthorized("Could not validate credentials")
    return user


def require_roles(*roles: RoleName) -> Callable[..., User]:
    """Ensure the current user holds one of the provided roles."""

    allowed = set(roles)

    def checker(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role_name not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User lacks required role(s): {', '.join(sorted(r.value for r in allowed))}",
            )
        return current_user

    return checker
