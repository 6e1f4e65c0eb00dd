import pytest

from eisc.core.exceptions import ConflictError, UnauthorizedError
from eisc.deps import SESSION_COOKIE_NAME
from eisc.services.identity import DEMO_EMAIL, DEMO_PASSWORD, UserDirectory
from eisc.storage.memory import DEMO_USER_ID


def test_directory_register_and_authenticate():
    directory = UserDirectory()
    identity = directory.register("Ana@Example.com", "s3cret-pass", "Ana")
    assert identity.is_new_user
    again = directory.authenticate("ana@example.com", "s3cret-pass")
    assert again.user_id == identity.user_id
    assert not again.is_new_user
    with pytest.raises(UnauthorizedError):
        directory.authenticate("ana@example.com", "wrong")
    with pytest.raises(ConflictError):
        directory.register("ana@example.com", "other-pass", "Ana 2")


def test_directories_are_isolated():
    assert UserDirectory(seed_demo=True).authenticate(DEMO_EMAIL, DEMO_PASSWORD).user_id == DEMO_USER_ID
    with pytest.raises(UnauthorizedError):
        UserDirectory().authenticate(DEMO_EMAIL, DEMO_PASSWORD)


async def test_register_flow_seeds_registration_bonus(client):
    r = await client.post(
        "/v1/auth/register",
        json={"email": "nueva@eisc.io", "password": "password123", "display_name": "Nueva"},
    )
    assert r.status_code == 200
    assert r.json()["user"]["is_new_user"] is True
    client.cookies.set(SESSION_COOKIE_NAME, r.cookies[SESSION_COOKIE_NAME])

    r = await client.get("/v1/wallet/balance")
    assert r.json()["balance"]["available"] == 1

    r = await client.get("/v1/auth/me")
    assert r.json()["display_name"] == "Nueva"


async def test_login_demo_user(client):
    r = await client.post("/v1/auth/login", json={"email": DEMO_EMAIL, "password": DEMO_PASSWORD})
    assert r.status_code == 200
    assert r.json()["user"]["user_id"] == DEMO_USER_ID

    r = await client.post("/v1/auth/login", json={"email": DEMO_EMAIL, "password": "nope"})
    assert r.status_code == 401


async def test_tampered_cookie_rejected(client):
    client.cookies.set(SESSION_COOKIE_NAME, "not-a-signed-value")
    r = await client.get("/v1/auth/me")
    assert r.status_code == 401


def test_passwords_are_stored_as_bcrypt_hashes():
    from eisc.core.security import hash_password, pwd_context, verify_password

    stored = hash_password("s3cret-pass")
    assert stored.startswith("$2b$")
    assert pwd_context.identify(stored) == "bcrypt"
    assert verify_password("s3cret-pass", stored)
    assert not verify_password("s3cret-pasS", stored)
    assert hash_password("s3cret-pass") != stored
