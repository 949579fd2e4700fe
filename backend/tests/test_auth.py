from datetime import timedelta

from conftest import PASSWORD, auth
from localmart.core.config import settings
from localmart.core.security import create_session_token
from localmart.models import UserRole


async def test_register_and_login(client):
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "name": "Asha",
            "email": "Asha@Example.com",
            "password": "long-enough-1",
            "role": "customer",
        },
    )
    assert response.status_code == 201
    user_id = response.json()["user_id"]

    login = await client.post(
        "/api/v1/auth/login",
        json={"email": "asha@example.com", "password": "long-enough-1"},
    )
    assert login.status_code == 200
    assert login.json()["user_id"] == user_id
    assert login.json()["role"] == "customer"
    assert settings.session_cookie_name in login.cookies

    token = login.json()["access_token"]
    me = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["email"] == "asha@example.com"
    assert me.json()["reward_points"] == 0


async def test_duplicate_email(client, factory):
    existing = await factory.user()
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "name": "Copy",
            "email": existing.email,
            "password": "long-enough-1",
            "role": "shopkeeper",
        },
    )
    assert response.status_code == 409


async def test_register_validation(client):
    response = await client.post(
        "/api/v1/auth/register",
        json={"name": "Short", "email": "x@example.com", "password": "short", "role": "customer"},
    )
    assert response.status_code == 400

    response = await client.post(
        "/api/v1/auth/register",
        json={"name": "Role", "email": "y@example.com", "password": "long-enough-1", "role": "admin"},
    )
    assert response.status_code == 400


async def test_wrong_password(client, factory):
    user = await factory.user()
    response = await client.post(
        "/api/v1/auth/login", json={"email": user.email, "password": "not-it-at-all"}
    )
    assert response.status_code == 401
    assert response.json()["code"] == "unauthorized"


async def test_cookie_session(client, factory):
    user = await factory.user(name="Cookie Monster")
    login = await client.post(
        "/api/v1/auth/login", json={"email": user.email, "password": PASSWORD}
    )
    token = login.cookies[settings.session_cookie_name]
    client.cookies.clear()

    me = await client.get(
        "/api/v1/users/me",
        headers={"Cookie": f"{settings.session_cookie_name}={token}"},
    )
    assert me.json()["name"] == "Cookie Monster"


async def test_missing_and_bad_tokens(client, factory):
    assert (await client.get("/api/v1/users/me")).status_code == 401

    bad = await client.get("/api/v1/users/me", headers={"Authorization": "Bearer nonsense"})
    assert bad.status_code == 401

    user = await factory.user()
    expired = create_session_token(user.id, user.role, expires_delta=timedelta(minutes=-1))
    response = await client.get(
        "/api/v1/users/me", headers={"Authorization": f"Bearer {expired}"}
    )
    assert response.status_code == 401


async def test_role_guards(client, factory):
    customer = await factory.user()
    keeper = await factory.user(UserRole.SHOPKEEPER)

    assert (await client.post("/api/v1/analytics", headers=auth(customer))).status_code == 403
    assert (await client.get("/api/v1/cart", headers=auth(keeper))).status_code == 403


async def test_update_me(client, factory):
    user = await factory.user()
    response = await client.put("/api/v1/users/me", json={"name": "New Name"}, headers=auth(user))
    assert response.json()["name"] == "New Name"


async def test_health(client):
    response = await client.get("/health")
    assert response.json()["status"] == "healthy"
