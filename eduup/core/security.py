# Fichier: eduup/core/security.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from jose import jwt
from passlib import exc as passlib_exc
from passlib.context import CryptContext

from eduup.core.config import settings

ALGORITHM = "HS256"
ACCESS_TOKEN_COOKIE = "access_token"

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
logger = logging.getLogger(__name__)


# --- JWT ---
def create_access_token(subject: Any, expires_delta: Optional[timedelta] = None) -> str:
    """Signed JWT whose ``sub`` claim is the user id."""
    lifetime = expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {"exp": datetime.now(timezone.utc) + lifetime, "sub": str(subject)}
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_access_token(token: str) -> int:
    """
    Returns the user id carried by a token.

    Raises:
        jose.ExpiredSignatureError: the token has expired.
        jose.JWTError: bad signature or malformed token.
        ValueError: the ``sub`` claim is missing or not a user id.
    """
    claims = jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    subject = claims.get("sub")
    if subject is None:
        raise ValueError("token without 'sub'")
    return int(subject)


def auth_cookie_options() -> dict[str, Any]:
    # Front and back run on different domains in production.
    secure = settings.ENVIRONMENT == "production"
    return {"path": "/", "samesite": "none" if secure else "lax", "secure": secure}


# --- Passwords ---
def verify_password(plain_password: str | None, hashed_password: str | None) -> bool:
    if not plain_password or not hashed_password:
        return False

    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError, passlib_exc.PasslibError) as exc:
        logger.warning("Password verification failed: %s", exc)
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)
