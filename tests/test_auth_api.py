"""Тесты HTTP API сервиса авторизации."""
import hashlib
from unittest import mock

from prometheus_client import REGISTRY
from redis.exceptions import RedisError

from filmoteka.config.settings import settings
from filmoteka.services.auth_service import models
from filmoteka.services.auth_service.csrf import CSRF_KEY_PREFIX
from filmoteka.shared.exceptions import StoreUnavailableError

CSRF = "X-CSRF-Token"

ALICE = {
    "login": "alice",
    "password": "p@ss",
    "name": "A",
    "birthDate": "1990-01-01",
    "email": "a@x.io",
}


def get_token(client):
    res = client.post("/api/v1/csrf")
    assert res.status_code == 200
    token = res.headers[CSRF]
    assert token and token != "null"
    return token


def signup(client, payload=None):
    return client.post(
        "/signup", json=payload or ALICE, headers={CSRF: get_token(client)}
    )


def signin(client, login="alice", password="p@ss"):
    return client.post(
        "/signin",
        json={"login": login, "password": password},
        headers={CSRF: get_token(client)},
    )


def test_signup_signin_authcheck(auth_client, db):
    res = signup(auth_client)
    assert res.status_code == 200
    assert res.json() == {"status": 200, "body": None}

    stored = db.query(models.User).filter_by(login="alice").one()
    assert stored.password_hash != "p@ss"
    assert stored.role == models.UserRole.REGULAR

    res = signin(auth_client)
    assert res.status_code == 200
    set_cookie = res.headers["set-cookie"]
    assert set_cookie.startswith(f"{settings.SESSION_COOKIE_NAME}=")
    assert "HttpOnly" in set_cookie
    assert "Path=/" in set_cookie
    assert res.cookies.get(settings.SESSION_COOKIE_NAME)

    res = auth_client.get("/authcheck")
    assert res.status_code == 200
    assert res.json() == {"status": 200, "body": {"login": "alice", "role": "regular"}}


def test_logout_invalidates_session(auth_client, sessions):
    signup(auth_client)
    res = signin(auth_client)
    session_id = res.cookies.get(settings.SESSION_COOKIE_NAME)

    res = auth_client.post("/logout")
    assert res.status_code == 200
    assert not sessions.find_active_session(session_id)

    auth_client.cookies.set(settings.SESSION_COOKIE_NAME, session_id)
    res = auth_client.get("/authcheck")
    assert res.status_code == 401
    assert res.json() == {"status": 401, "body": None}


def test_logout_without_session(auth_client):
    res = auth_client.get("/logout")
    assert res.status_code == 401

    auth_client.cookies.set(settings.SESSION_COOKIE_NAME, "unknown")
    res = auth_client.get("/logout")
    assert res.status_code == 401


def test_authcheck_without_cookie(auth_client):
    res = auth_client.get("/authcheck")
    assert res.status_code == 401


def test_signin_without_csrf_token(auth_client):
    res = auth_client.post("/signin", json={"login": "alice", "password": "p@ss"})
    assert res.status_code == 412
    assert res.headers[CSRF] == "null"
    assert res.json() == {"status": 412, "body": None}


def test_signin_with_expired_csrf_token(auth_client, csrf_redis, expire_key):
    token = get_token(auth_client)
    expire_key(csrf_redis, CSRF_KEY_PREFIX + token)

    res = auth_client.post(
        "/signin", json={"login": "alice", "password": "p@ss"}, headers={CSRF: token}
    )
    assert res.status_code == 412


def test_csrf_checked_before_body(auth_client):
    res = auth_client.post("/signup", content=b"{not json")
    assert res.status_code == 412


def test_signin_bad_body(auth_client):
    res = auth_client.post(
        "/signin", content=b"{not json", headers={CSRF: get_token(auth_client)}
    )
    assert res.status_code == 400

    res = auth_client.post(
        "/signin", json={"login": "alice"}, headers={CSRF: get_token(auth_client)}
    )
    assert res.status_code == 400


def test_signin_wrong_credentials(auth_client):
    signup(auth_client)

    assert signin(auth_client, password="wrong").status_code == 401
    assert signin(auth_client, login="bob").status_code == 401


def test_signin_wrong_method(auth_client):
    res = auth_client.get("/signin")
    assert res.status_code == 405
    assert res.json() == {"status": 405, "body": None}


def test_signup_duplicate_login(auth_client):
    assert signup(auth_client).status_code == 200

    res = signup(auth_client)
    assert res.status_code == 409
    assert res.json() == {"status": 409, "body": None}


def test_signup_duplicate_login_reported_before_email(auth_client):
    signup(auth_client)

    res = signup(auth_client, {**ALICE, "email": "not-an-email"})
    assert res.status_code == 409


def test_signup_invalid_email(auth_client, db):
    res = signup(auth_client, {**ALICE, "email": "not-an-email"})
    assert res.status_code == 400
    assert db.query(models.User).count() == 0


def test_csrf_token_reused_while_valid(auth_client):
    token = get_token(auth_client)

    res = auth_client.get("/api/v1/csrf", headers={CSRF: token})
    assert res.status_code == 200
    assert res.headers[CSRF] == token


def test_csrf_unknown_token_replaced(auth_client):
    res = auth_client.get("/api/v1/csrf", headers={CSRF: "forged"})
    assert res.status_code == 200
    assert res.headers[CSRF] != "forged"


def test_csrf_store_error(auth_client, csrf_redis):
    with mock.patch.object(csrf_redis, "set", side_effect=RedisError("down")):
        res = auth_client.get("/api/v1/csrf")

    assert res.status_code == 500
    assert res.headers[CSRF] == "null"
    assert res.json() == {"status": 500, "body": None}


def test_authcheck_session_store_error(auth_client, session_redis):
    auth_client.cookies.set(settings.SESSION_COOKIE_NAME, "whatever")
    with mock.patch.object(session_redis, "get", side_effect=RedisError("down")):
        res = auth_client.get("/authcheck")

    assert res.status_code == 500


def test_get_profile(auth_client):
    signup(auth_client)
    signin(auth_client)

    res = auth_client.get("/api/v1/settings")
    assert res.status_code == 200
    assert res.json()["body"] == {
        "email": "a@x.io",
        "name": "A",
        "login": "alice",
        "photo": None,
        "birthDate": "1990-01-01",
    }


def test_profile_requires_session(auth_client):
    assert auth_client.get("/api/v1/settings").status_code == 401
    assert auth_client.post("/api/v1/settings", data={"email": "b@x.io"}).status_code == 401


def test_edit_profile_with_avatar(auth_client, upload_dirs):
    avatars, _ = upload_dirs
    signup(auth_client)
    signin(auth_client)

    content = b"\x89PNG fake image"
    res = auth_client.post(
        "/api/v1/settings",
        data={"email": "new@x.io", "birthday": "1991-02-02", "password": "n3w"},
        files={"photo": ("me.png", content, "image/png")},
    )
    assert res.status_code == 200

    stored_name = hashlib.sha256(content).hexdigest() + ".png"
    assert (avatars / stored_name).read_bytes() == content

    profile = auth_client.get("/api/v1/settings").json()["body"]
    assert profile["email"] == "new@x.io"
    assert profile["birthDate"] == "1991-02-02"
    assert profile["photo"] == settings.AVATAR_URL_PREFIX + stored_name
    assert profile["name"] == "A"

    auth_client.post("/logout")
    assert signin(auth_client, password="n3w").status_code == 200


def test_edit_profile_same_password(auth_client):
    signup(auth_client)
    signin(auth_client)

    res = auth_client.post("/api/v1/settings", data={"password": "p@ss"})
    assert res.status_code == 409


def test_rejected_edit_keeps_no_avatar(auth_client, upload_dirs):
    avatars, _ = upload_dirs
    signup(auth_client)
    signin(auth_client)

    res = auth_client.post(
        "/api/v1/settings",
        data={"password": "p@ss"},
        files={"photo": ("me.png", b"\x89PNG fake image", "image/png")},
    )
    assert res.status_code == 409
    assert not avatars.exists() or not any(avatars.iterdir())
    assert auth_client.get("/api/v1/settings").json()["body"]["photo"] is None


def test_edit_profile_requires_form(auth_client):
    signup(auth_client)
    signin(auth_client)

    res = auth_client.post("/api/v1/settings", json={"email": "new@x.io"})
    assert res.status_code == 400
    assert res.json() == {"status": 400, "body": None}

    assert auth_client.get("/api/v1/settings").json()["body"]["email"] == "a@x.io"


def test_edit_profile_invalid_email(auth_client):
    signup(auth_client)
    signin(auth_client)

    res = auth_client.post("/api/v1/settings", data={"email": "broken"})
    assert res.status_code == 400


def test_edit_profile_unsafe_avatar_name(auth_client):
    signup(auth_client)
    signin(auth_client)

    res = auth_client.post(
        "/api/v1/settings",
        files={"photo": ("../../etc/passwd", b"data", "text/plain")},
    )
    assert res.status_code == 400


def test_edit_profile_login_change_keeps_session(auth_client):
    signup(auth_client)
    signup(auth_client, {**ALICE, "login": "bob"})
    signin(auth_client)

    res = auth_client.post("/api/v1/settings", data={"login": "bob"})
    assert res.status_code == 409

    res = auth_client.post("/api/v1/settings", data={"login": "alice2"})
    assert res.status_code == 200

    res = auth_client.get("/authcheck")
    assert res.json()["body"]["login"] == "alice2"


def test_login_change_survives_session_store_error(auth_client, sessions, db):
    signup(auth_client)
    signin(auth_client)

    with mock.patch.object(
        sessions, "rebind_session", side_effect=StoreUnavailableError("session")
    ):
        res = auth_client.post("/api/v1/settings", data={"login": "alice2"})

    assert res.status_code == 200
    db.expire_all()
    assert db.query(models.User).filter_by(login="alice2").count() == 1
    assert db.query(models.User).filter_by(login="alice").count() == 0


def test_metrics_endpoint(auth_client):
    labels = {"service": "auth-service", "status": "401", "path": "/authcheck"}
    before = REGISTRY.get_sample_value("http_hits_total", labels) or 0

    auth_client.get("/authcheck")

    assert REGISTRY.get_sample_value("http_hits_total", labels) == before + 1

    res = auth_client.get("/metrics")
    assert res.status_code == 200
    assert "http_hits_total" in res.text


def test_health(auth_client):
    res = auth_client.get("/health")
    assert res.status_code == 200
    body = res.json()
    assert body["service"] == "auth-service"
    assert body["dependencies"]["database"] == "healthy"
