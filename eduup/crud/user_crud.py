# Fichier: eduup/crud/user_crud.py

import re
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from eduup.core.security import get_password_hash, verify_password
from eduup.models.user.user_model import User
from eduup.schemas.user.user_schema import UserCreate

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20
USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.]+$")
PASSWORD_MIN_LENGTH = 6


class UsernameError(ValueError):
    """Chosen username breaks the naming rules."""


def validate_username(raw: Optional[str]) -> str:
    """
    Checks a username against the naming rules.

    Args:
        raw: The username as typed.

    Returns:
        The trimmed username.

    Raises:
        UsernameError: with a Czech message for the username dialog.
    """
    username = (raw or "").strip()
    if len(username) < USERNAME_MIN_LENGTH:
        raise UsernameError(f"Uživatelské jméno musí mít alespoň {USERNAME_MIN_LENGTH} znaky.")
    if len(username) > USERNAME_MAX_LENGTH:
        raise UsernameError(f"Uživatelské jméno může mít nejvýše {USERNAME_MAX_LENGTH} znaků.")
    if not USERNAME_PATTERN.match(username):
        raise UsernameError("Povolená jsou jen písmena bez diakritiky, číslice, podtržítko a tečka.")
    return username


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    """
    Récupère un utilisateur par son nom d'utilisateur.

    The comparison ignores case, so "Anna" and "anna" cannot both exist.
    """
    return db.query(User).filter(func.lower(User.username) == username.strip().lower()).first()


def get_user_by_login(db: Session, login: str) -> Optional[User]:
    """Login accepts either the e-mail or the username."""
    if "@" in login:
        return get_user_by_email(db, login)
    return get_user_by_username(db, login)


def authenticate(db: Session, login: str, password: str) -> Optional[User]:
    user = get_user_by_login(db, login)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user


def create_user(db: Session, user: UserCreate, *, is_superuser: bool = False) -> User:
    db_user = User(
        email=user.email.strip().lower(),
        username=user.username,
        hashed_password=get_password_hash(user.password),
        is_superuser=is_superuser,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def set_username(db: Session, user: User, username: str) -> User:
    user.username = username
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def set_password(db: Session, user: User, password: str) -> User:
    user.hashed_password = get_password_hash(password)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def touch_last_login(db: Session, user: User) -> None:
    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
