import os

# must be set before settings / the engine are imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CSRF_ENABLED"] = "False"
os.environ["LOG_FORMAT"] = "text"
os.environ["ROOT_ADMIN_PASSWORD"] = "RootPass!2024"

import pytest
from fastapi.testclient import TestClient

from core.config import settings
from db.database import async_session_maker
from main import app
from scripts.seed_demo_data import seed_demo_data
from scripts.seed_reference_data import seed_reference_data


async def _seed():
    async with async_session_maker() as session:
        await seed_reference_data(session)
        await seed_demo_data(session)


def login(client, email, password):
    resp = client.post("/auth/login", data={"username": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['access_token']}"}


@pytest.fixture(scope="session")
def client():
    # one app / event loop for the whole run: the in-memory database lives on its connection
    with TestClient(app) as c:
        c.portal.call(_seed)
        yield c


@pytest.fixture(scope="session")
def admin_headers(client):
    return login(client, settings.root_admin_email, settings.root_admin_password)


@pytest.fixture(scope="session")
def make_user(client, admin_headers):
    created = {}

    def _make(role_name, email=None, password="Passw0rd!x"):
        email = email or f"{role_name}.user@inventory-erp.com"
        if email not in created:
            resp = client.post(
                "/users/",
                json={"email": email, "password": password, "role_name": role_name, "firstname": role_name.title()},
                headers=admin_headers,
            )
            assert resp.status_code == 201, resp.text
            created[email] = login(client, email, password)
        return created[email]

    return _make
