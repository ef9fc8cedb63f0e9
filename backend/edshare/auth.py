# backend/edshare/auth.py
"""
Bearer token handling.

Tokens are issued by the account service; this API only verifies them.
``create_access_token`` exists for internal tooling and tests.
"""

from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, Optional, cast

from fastapi.security import OAuth2PasswordBearer
import jwt

from .core.config import settings

logger = logging.getLogger(__name__)

oauth2_scheme_optional = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)

DEFAULT_TOKEN_LIFETIME = timedelta(minutes=60)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a JWT access token (signature and expiry)."""
    payload = jwt.decode(
        token,
        settings.secret_key.get_secret_value(),
        algorithms=[settings.algorithm],
        options={"verify_aud": False},
    )
    return cast(Dict[str, Any], payload)


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = dict(data)
    expire = datetime.now(timezone.utc) + (expires_delta or DEFAULT_TOKEN_LIFETIME)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key.get_secret_value(), algorithm=settings.algorithm)
