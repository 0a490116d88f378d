import logging
import re
from urllib.parse import unquote

from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from starlette.datastructures import State
from sqlalchemy.orm import Session
from jose import JWTError, ExpiredSignatureError

from eduup.db import session as db_session
from eduup.core import security
from eduup.crud.guest_progress_crud import GuestProgressStorage
from eduup.models.user.user_model import User

log = logging.getLogger(__name__)


def _get_state_container(request: Request | None) -> Optional[State]:
    if request is None:
        return None

    state = getattr(request, "state", None)
    if state is None:
        state = State()
        setattr(request, "state", state)
    return state


def get_db(request: Request = None) -> Generator[Session, None, None]:  # type: ignore[assignment]
    """Provide one SQLAlchemy session per request.

    ``get_current_user`` and the route handler both depend on ``get_db``.
    The session is cached on ``request.state`` with a reference counter so
    the user loaded during authentication stays attached until the last
    dependency exits. Without a request (scripts) a plain session is used.
    """

    if request is None:
        db = db_session.SessionLocal()
        try:
            yield db
        finally:
            db.close()
        return

    state = _get_state_container(request)
    db = getattr(state, "_db_session", None)
    if db is None:
        db = db_session.SessionLocal()
        setattr(state, "_db_session", db)
        setattr(state, "_db_refcount", 0)

    refcount = getattr(state, "_db_refcount", 0) + 1
    setattr(state, "_db_refcount", refcount)

    try:
        yield db
    finally:
        refcount = getattr(state, "_db_refcount", 1) - 1
        if refcount <= 0:
            try:
                db.close()
            finally:
                for attr in ("_db_session", "_db_refcount"):
                    if hasattr(state, attr):
                        delattr(state, attr)
        else:
            setattr(state, "_db_refcount", refcount)


def _normalize_token_value(raw_token: str | None) -> str | None:
    """Return a clean JWT string extracted from various transport formats.

    Cookie values may be percent-encoded (``Bearer%20…``) or quoted, and the
    ``Bearer`` prefix is matched case-insensitively.
    """

    if raw_token is None:
        return None

    token = raw_token.strip().strip('"').strip("'")
    if not token:
        return None

    token = unquote(token)

    match = re.match(r"^(bearer|token)[\s,:]+(.+)$", token, flags=re.IGNORECASE)
    if match:
        token = match.group(2)
    else:
        parts = token.split()
        if len(parts) >= 2 and parts[0].lower().rstrip(",") in {"bearer", "token"}:
            token = parts[1]

    token = token.strip()
    return token or None


def _decode_user_from_token(token: str | None, db: Session) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
    )

    token = _normalize_token_value(token)
    if not token:
        log.warning("Authentication failed: no token supplied.")
        raise credentials_exception

    try:
        user_id = security.decode_access_token(token)
    except ExpiredSignatureError:
        log.warning("Authentication failed: token expired.")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="token_expired")
    except (JWTError, ValueError, TypeError):
        log.warning("Authentication failed: malformed token.")
        raise credentials_exception

    user = db.get(User, user_id)
    if user is None:
        log.warning(f"Authentication failed: user {user_id} not found.")
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="inactive_user")

    return user


def _token_candidates(request: Request) -> tuple[str | None, ...]:
    return (
        request.cookies.get(security.ACCESS_TOKEN_COOKIE),
        request.headers.get("Authorization"),
        request.headers.get("X-Access-Token"),
        request.headers.get("X-Auth-Token"),
        request.query_params.get("access_token"),
        request.query_params.get("token"),
    )


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    last_unauthorized_error: HTTPException | None = None

    for candidate in _token_candidates(request):
        token = _normalize_token_value(candidate)
        if not token:
            continue

        try:
            return _decode_user_from_token(token, db)
        except HTTPException as exc:
            if exc.status_code != status.HTTP_401_UNAUTHORIZED:
                raise
            last_unauthorized_error = exc

    if last_unauthorized_error is not None:
        raise last_unauthorized_error

    return _decode_user_from_token(None, db)


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """The signed-in user, or None for guests and stale tokens."""

    try:
        return get_current_user(request, db)
    except HTTPException as exc:
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            return None
        raise


def get_bearer_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Only an ``Authorization: Bearer`` header is accepted."""

    header = request.headers.get("Authorization") or ""
    if not header.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: Missing Bearer token")
    token = header[len("bearer "):].strip()
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized: Empty token")
    return _decode_user_from_token(token, db)


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_superuser:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin privileges required")
    return current_user


def get_guest_storage(request: Request, db: Session = Depends(get_db)) -> GuestProgressStorage:
    """Guest progress rows of the visitor identified by the session."""
    return GuestProgressStorage(db, request.session)
