from datetime import datetime, timedelta, timezone

from sqlalchemy import update

from client.api import ErpApiClient
from core.config import settings
from db.database import async_session_maker
from db.users import AccessToken


def _age_token(client, headers, seconds):
    token = headers["Authorization"].split(" ", 1)[1]

    async def _update():
        async with async_session_maker() as session:
            await session.execute(
                update(AccessToken)
                .where(AccessToken.token == token)
                .values(created_at=datetime.now(timezone.utc) - timedelta(seconds=seconds))
            )
            await session.commit()

    client.portal.call(_update)


def _fresh_login(client, make_user, email):
    make_user("sales", email=email)
    resp = client.post("/auth/login", data={"username": email, "password": "Passw0rd!x"})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


def test_expired_token_is_refreshed(client, make_user):
    headers = _fresh_login(client, make_user, "refresh.a@inventory-erp.com")
    _age_token(client, headers, settings.access_token_ttl_seconds + 60)

    assert client.get("/session/me", headers=headers).status_code == 401

    resp = client.post("/session/refresh", headers=headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["expiresIn"] == settings.access_token_ttl_seconds
    new_headers = {"Authorization": f"Bearer {data['accessToken']}"}
    assert new_headers != headers

    assert client.get("/session/me", headers=new_headers).status_code == 200
    # the old token was rotated out
    assert client.post("/session/refresh", headers=headers).status_code == 401


def test_refresh_window_closes(client, make_user):
    headers = _fresh_login(client, make_user, "refresh.b@inventory-erp.com")
    _age_token(client, headers, settings.refresh_token_ttl_seconds + 60)

    resp = client.post("/session/refresh", headers=headers)
    assert resp.status_code == 401
    assert resp.json()["type"] == "Authentication"

    assert client.post("/session/refresh").status_code == 401


def _api(client, email):
    return ErpApiClient(base_url="http://testserver", email=email, password="Passw0rd!x", session=client)


def test_api_client_survives_expired_token(client, make_user):
    email = "refresh.c@inventory-erp.com"
    make_user("sales", email=email)
    api = _api(client, email)
    api.login()
    first = api.access_token
    _age_token(client, {"Authorization": f"Bearer {first}"}, settings.access_token_ttl_seconds + 60)

    me = api.me()
    assert me["data"]["email"] == email
    assert api.access_token and api.access_token != first


def test_api_client_logs_in_again_after_refresh_window(client, make_user):
    email = "refresh.d@inventory-erp.com"
    make_user("sales", email=email)
    api = _api(client, email)
    api.login()
    first = api.access_token
    _age_token(client, {"Authorization": f"Bearer {first}"}, settings.refresh_token_ttl_seconds + 60)

    assert api.me()["data"]["email"] == email
    assert api.access_token != first
