import pytest
from fastapi import HTTPException
from starlette.responses import Response

from eduup.api.v2.endpoints import user_router
from eduup.core.security import verify_password
from eduup.crud import user_crud
from eduup.schemas.user.user_schema import PasswordChange, UserCreate, UsernameUpdate
from tests.utils import create_user


@pytest.mark.parametrize(
    "raw",
    ["ab", "a" * 21, "jméno", "with space", "dash-name"],
)
def test_validate_username_rejects_bad_names(raw):
    with pytest.raises(user_crud.UsernameError):
        user_crud.validate_username(raw)


def test_validate_username_trims():
    assert user_crud.validate_username("  karel.novak_1 ") == "karel.novak_1"


def test_register_then_login_by_username(db_session):
    created = user_router.create_user_endpoint(
        UserCreate(email="Karel@Example.com", password="tajne123", username="karel"), db=db_session
    )
    assert created.email == "karel@example.com"

    form = type("Form", (), {"username": "KAREL", "password": "tajne123"})()
    response = Response()
    token = user_router.login_for_access_token(response, db=db_session, form_data=form)

    assert token["token_type"] == "bearer"
    assert "access_token=" in response.headers["set-cookie"]


def test_login_with_wrong_password(db_session):
    user_crud.create_user(db_session, UserCreate(email="eva@example.com", password="spravne1"))
    form = type("Form", (), {"username": "eva@example.com", "password": "spatne11"})()

    with pytest.raises(HTTPException) as exc:
        user_router.login_for_access_token(Response(), db=db_session, form_data=form)
    assert exc.value.status_code == 401


def test_register_duplicates(db_session):
    create_user(db_session, username="taken", email="taken@example.com")

    with pytest.raises(HTTPException) as email_exc:
        user_router.create_user_endpoint(UserCreate(email="TAKEN@example.com", password="secret1"), db=db_session)
    with pytest.raises(HTTPException) as name_exc:
        user_router.create_user_endpoint(
            UserCreate(email="new@example.com", password="secret1", username="Taken"), db=db_session
        )

    assert email_exc.value.status_code == 400
    assert name_exc.value.status_code == 409


def test_update_username(db_session):
    create_user(db_session, username="obsazeno", email="a@example.com")
    me = create_user(db_session, username=None, email="me@example.com")

    with pytest.raises(HTTPException) as conflict:
        user_router.update_username(UsernameUpdate(username="OBSAZENO"), db=db_session, current_user=me)
    with pytest.raises(HTTPException) as invalid:
        user_router.update_username(UsernameUpdate(username="x"), db=db_session, current_user=me)
    updated = user_router.update_username(UsernameUpdate(username=" novy_nick "), db=db_session, current_user=me)

    assert conflict.value.status_code == 409
    assert invalid.value.status_code == 400
    assert updated.username == "novy_nick"


def test_change_password(db_session):
    me = user_crud.create_user(db_session, UserCreate(email="heslo@example.com", password="puvodni1"))

    with pytest.raises(HTTPException) as short:
        user_router.change_password(PasswordChange(password="123"), db=db_session, current_user=me)
    user_router.change_password(PasswordChange(password="nove-heslo"), db=db_session, current_user=me)

    assert short.value.status_code == 400
    assert verify_password("nove-heslo", me.hashed_password)
