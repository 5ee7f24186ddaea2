"""HTTP-level tests for /api/auth."""

import asyncio

from tests.conftest import PASSWORD

UNAUTHORIZED = {"detail": "Unauthorized"}


async def login(client, login_or_email="alice", password=PASSWORD, user_agent="curl/8.4.0"):
    response = await client.post(
        "/api/auth/login",
        json={"loginOrEmail": login_or_email, "password": password},
        headers={"User-Agent": user_agent},
    )
    # Cookies are always sent explicitly so each request shows which token it carries.
    client.cookies.clear()
    return response


def refresh_cookie(token):
    return {"Cookie": f"refreshToken={token}"}


async def test_login_returns_access_token_and_refresh_cookie(client, user, issuer):
    response = await login(client)

    assert response.status_code == 200
    access_token = response.json()["accessToken"]
    assert issuer.verify_access_token(access_token).user_id == user.id

    claims = issuer.verify_refresh_token(response.cookies["refreshToken"])
    assert claims.user_id == user.id

    set_cookie = response.headers["set-cookie"]
    assert "HttpOnly" in set_cookie
    assert "Secure" in set_cookie
    assert "SameSite=strict" in set_cookie
    assert "Path=/" in set_cookie
    assert f"Max-Age={int(issuer.refresh_ttl.total_seconds())}" in set_cookie


async def test_login_by_email(client, user):
    response = await login(client, login_or_email="alice@example.com")

    assert response.status_code == 200


async def test_bad_credentials_give_bare_401(client, user):
    wrong_password = await login(client, password="nope")
    unknown_user = await login(client, login_or_email="nobody")

    for response in (wrong_password, unknown_user):
        assert response.status_code == 401
        assert response.json() == UNAUTHORIZED
        assert "set-cookie" not in response.headers


async def test_overlong_password_gives_bare_401(client, user):
    response = await login(client, password="x" * 100)

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED


async def test_login_validates_body(client):
    response = await client.post("/api/auth/login", json={"loginOrEmail": ""})

    assert response.status_code == 422


async def test_refresh_rotates_cookie(client, user, issuer):
    first = (await login(client)).cookies["refreshToken"]

    response = await client.post("/api/auth/refresh-token", headers=refresh_cookie(first))

    assert response.status_code == 200
    assert "accessToken" in response.json()
    second = response.cookies["refreshToken"]
    assert second != first
    old, new = issuer.verify_refresh_token(first), issuer.verify_refresh_token(second)
    assert new.device_id == old.device_id
    assert new.iat > old.iat


async def test_replayed_refresh_token_kills_the_device(client, user):
    r1 = (await login(client)).cookies["refreshToken"]
    r2 = (await client.post("/api/auth/refresh-token", headers=refresh_cookie(r1))).cookies["refreshToken"]
    client.cookies.clear()

    replay = await client.post("/api/auth/refresh-token", headers=refresh_cookie(r1))
    client.cookies.clear()
    after = await client.post("/api/auth/refresh-token", headers=refresh_cookie(r2))

    assert replay.status_code == 401
    assert replay.json() == UNAUTHORIZED
    assert after.status_code == 401
    assert after.json() == UNAUTHORIZED


async def test_simultaneous_refreshes_with_one_cookie_have_one_winner(client, user):
    token = (await login(client)).cookies["refreshToken"]

    responses = await asyncio.gather(
        client.post("/api/auth/refresh-token", headers=refresh_cookie(token)),
        client.post("/api/auth/refresh-token", headers=refresh_cookie(token)),
    )
    client.cookies.clear()

    assert sorted(r.status_code for r in responses) == [200, 401]
    # the losing request was treated as reuse, so the device is gone
    winner = next(r for r in responses if r.status_code == 200).cookies["refreshToken"]
    after = await client.post("/api/auth/refresh-token", headers=refresh_cookie(winner))
    assert after.status_code == 401


async def test_refresh_without_cookie_is_401(client):
    response = await client.post("/api/auth/refresh-token")

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED
    assert response.headers["www-authenticate"] == "Bearer"


async def test_refresh_with_access_token_in_cookie_is_401(client, user):
    access_token = (await login(client)).json()["accessToken"]

    response = await client.post("/api/auth/refresh-token", headers=refresh_cookie(access_token))

    assert response.status_code == 401


async def test_logout_clears_cookie_and_ends_session(client, user):
    token = (await login(client)).cookies["refreshToken"]

    response = await client.post("/api/auth/logout", headers=refresh_cookie(token))
    client.cookies.clear()

    assert response.status_code == 204
    set_cookie = response.headers["set-cookie"]
    assert set_cookie.startswith("refreshToken=")
    assert "Max-Age=0" in set_cookie

    again = await client.post("/api/auth/refresh-token", headers=refresh_cookie(token))
    assert again.status_code == 401


async def test_logout_with_stale_token_is_401(client, user):
    r1 = (await login(client)).cookies["refreshToken"]
    r2 = (await client.post("/api/auth/refresh-token", headers=refresh_cookie(r1))).cookies["refreshToken"]
    client.cookies.clear()

    response = await client.post("/api/auth/logout", headers=refresh_cookie(r1))
    client.cookies.clear()

    assert response.status_code == 401
    assert response.json() == UNAUTHORIZED
    # the session survives a stale logout
    still_ok = await client.post("/api/auth/refresh-token", headers=refresh_cookie(r2))
    assert still_ok.status_code == 200


async def test_me_with_bearer_access_token(client, user):
    access_token = (await login(client)).json()["accessToken"]

    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {access_token}"})

    assert response.status_code == 200
    assert response.json() == {"userId": str(user.id), "login": "alice", "email": "alice@example.com"}


async def test_me_rejects_missing_or_refresh_token(client, user):
    refresh_token = (await login(client)).cookies["refreshToken"]

    missing = await client.get("/api/auth/me")
    wrong_kind = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {refresh_token}"})

    assert missing.status_code == 401
    assert wrong_kind.status_code == 401
    assert wrong_kind.json() == UNAUTHORIZED


async def test_health(client):
    response = await client.get("/health")

    assert response.json() == {"status": "ok"}
