from datetime import timedelta

import pytest
from fastapi import HTTPException

from eduup.api.v2.dependencies import get_bearer_user, get_current_user, get_optional_user
from eduup.core import security
from tests.utils import create_user, fake_request


def test_token_round_trip():
    token = security.create_access_token(42)

    assert security.decode_access_token(token) == 42


def test_bearer_user_requires_header(db_session):
    with pytest.raises(HTTPException) as exc:
        get_bearer_user(fake_request(), db_session)
    assert exc.value.status_code == 401


def test_bearer_user_from_header(db_session):
    user = create_user(db_session)
    token = security.create_access_token(user.id)

    request = fake_request(headers={"Authorization": f"Bearer {token}"})

    assert get_bearer_user(request, db_session).id == user.id


def test_current_user_from_encoded_cookie(db_session):
    user = create_user(db_session)
    request = fake_request()
    request.cookies[security.ACCESS_TOKEN_COOKIE] = f"Bearer%20{security.create_access_token(user.id)}"

    assert get_current_user(request, db_session).id == user.id


def test_expired_token(db_session):
    user = create_user(db_session)
    token = security.create_access_token(user.id, expires_delta=timedelta(minutes=-5))

    with pytest.raises(HTTPException) as exc:
        get_current_user(fake_request(headers={"Authorization": f"Bearer {token}"}), db_session)
    assert exc.value.detail == "token_expired"


def test_optional_user_for_guests_and_inactive_accounts(db_session):
    assert get_optional_user(fake_request(), db_session) is None
    assert get_optional_user(fake_request(headers={"Authorization": "Bearer nonsense"}), db_session) is None

    user = create_user(db_session, is_active=False)
    request = fake_request(headers={"Authorization": f"Bearer {security.create_access_token(user.id)}"})
    with pytest.raises(HTTPException) as exc:
        get_optional_user(request, db_session)
    assert exc.value.status_code == 403


def test_cookie_options_follow_environment(monkeypatch):
    monkeypatch.setattr(security.settings, "ENVIRONMENT", "production")
    assert security.auth_cookie_options() == {"path": "/", "samesite": "none", "secure": True}

    monkeypatch.setattr(security.settings, "ENVIRONMENT", "test")
    assert security.auth_cookie_options()["samesite"] == "lax"
