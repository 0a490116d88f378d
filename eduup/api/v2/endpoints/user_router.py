# Fichier: eduup/api/v2/endpoints/user_router.py

import logging

from fastapi import APIRouter, Depends, HTTPException, status, Response
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eduup.schemas.user import user_schema
from eduup.crud import user_crud
from eduup.core import security
from eduup.api.v2.dependencies import get_db, get_current_user
from eduup.models.user.user_model import User

router = APIRouter()
logger = logging.getLogger(__name__)

USERNAME_TAKEN_DETAIL = "Username already exists"


def _validated_username_or_400(raw: str) -> str:
    try:
        return user_crud.validate_username(raw)
    except user_crud.UsernameError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/", response_model=user_schema.User, status_code=status.HTTP_201_CREATED)
def create_user_endpoint(
    user_in: user_schema.UserCreate,
    db: Session = Depends(get_db),
):
    if user_crud.get_user_by_email(db, email=user_in.email):
        raise HTTPException(status_code=400, detail="Email already registered")

    if user_in.username is not None:
        user_in.username = _validated_username_or_400(user_in.username)
        if user_crud.get_user_by_username(db, username=user_in.username):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=USERNAME_TAKEN_DETAIL)

    user = user_crud.create_user(db=db, user=user_in)
    logger.info(f"New account {user.id} registered")
    return user


@router.post("/login", response_model=user_schema.Token)
def login_for_access_token(
    response: Response,
    db: Session = Depends(get_db),
    form_data: OAuth2PasswordRequestForm = Depends(),
):
    user = user_crud.authenticate(db, form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Incorrect username or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="inactive_user")

    user_crud.touch_last_login(db, user)
    access_token = security.create_access_token(subject=str(user.id))

    response.set_cookie(
        key=security.ACCESS_TOKEN_COOKIE,
        value=access_token,
        httponly=True,
        **security.auth_cookie_options(),
    )
    return {"access_token": access_token, "token_type": "bearer"}


@router.post("/logout")
def logout() -> JSONResponse:
    response = JSONResponse({"message": "Logout successful"})
    response.delete_cookie(key=security.ACCESS_TOKEN_COOKIE, **security.auth_cookie_options())
    return response


@router.get("/me", response_model=user_schema.User)
def read_users_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me/username", response_model=user_schema.User)
def update_username(
    payload: user_schema.UsernameUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Sets the public name shown on the leaderboard."""
    username = _validated_username_or_400(payload.username)

    existing = user_crud.get_user_by_username(db, username=username)
    if existing and existing.id != current_user.id:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=USERNAME_TAKEN_DETAIL)

    try:
        return user_crud.set_username(db, current_user, username)
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=USERNAME_TAKEN_DETAIL)


@router.post("/me/password")
def change_password(
    payload: user_schema.PasswordChange,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if len(payload.password or "") < user_crud.PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Heslo musí mít alespoň {user_crud.PASSWORD_MIN_LENGTH} znaků.",
        )
    user_crud.set_password(db, current_user, payload.password)
    return {"message": "Password changed"}
