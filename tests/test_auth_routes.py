"""
tests/test_auth_routes.py -- /api/auth endpoints through the Flask test client.

Status codes, envelopes and cookie attributes are asserted on real responses.
The clients do not keep cookies; each request passes the token it means to
present, either as a Cookie header or as a Bearer header.
"""

from __future__ import annotations

from flask.testing import FlaskClient

from models.refresh_token import RefreshToken
from models.user import User
from tests.helpers import bearer, cookie_value, set_cookies

EMAIL = "alice@example.com"
PASSWORD = "pw123456"


def _register(client: FlaskClient, email: str = EMAIL, password: str = PASSWORD, **extra):
    return client.post("/api/auth/register", json={"email": email, "password": password, **extra})


def _login(client: FlaskClient, email: str = EMAIL, password: str = PASSWORD):
    return client.post("/api/auth/login", json={"email": email, "password": password})


class TestRegisterRoute:
    def test_created_with_user_and_token(self, client: FlaskClient) -> None:
        resp = _register(client, firstName="Alice", lastName="Liddell")
        assert resp.status_code == 201
        body = resp.get_json()
        user = body["data"]["user"]
        assert user["email"] == EMAIL
        assert user["firstName"] == "Alice"
        assert user["lastName"] == "Liddell"
        assert user["isActive"] is True
        assert {"id", "createdAt", "updatedAt"} <= set(user)
        assert not {"password", "password_hash", "passwordHash"} & set(user)
        assert body["data"]["accessToken"]

    def test_sets_session_cookies(self, client: FlaskClient) -> None:
        resp = _register(client)
        cookies = set_cookies(resp)
        access, refresh = cookies["accessToken"], cookies["refreshToken"]
        for header in (access, refresh):
            assert "HttpOnly" in header
            assert "SameSite=Strict" in header
            assert "Path=/" in header
            assert "Secure" not in header
        assert "Max-Age=900" in access
        assert "Max-Age=604800" in refresh
        assert cookie_value(resp, "accessToken") == resp.get_json()["data"]["accessToken"]

    def test_duplicate_email(self, client: FlaskClient, storage) -> None:
        _register(client)
        resp = _register(client, password="something-else")
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "USER_EXISTS"
        assert storage.count(RefreshToken) == 1

    def test_missing_password(self, client: FlaskClient) -> None:
        resp = client.post("/api/auth/register", json={"email": EMAIL})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "VALIDATION_ERROR"
        assert "password" in body["details"]
        assert body["message"] == "Email and password are required"

    def test_empty_email(self, client: FlaskClient) -> None:
        resp = _register(client, email="")
        assert resp.status_code == 400

    def test_password_over_bcrypt_limit(self, client: FlaskClient, storage) -> None:
        resp = _register(client, password="p" * 80)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "VALIDATION_ERROR"
        assert body["message"] == "Invalid input: password"
        assert body["details"]["password"] == ["Must be at most 72 bytes."]
        assert storage.count(User) == 0

    def test_password_limit_counts_utf8_bytes(self, client: FlaskClient) -> None:
        # 37 characters, 74 bytes
        assert _register(client, password="\u00e9" * 37).status_code == 400

    def test_password_at_bcrypt_limit(self, client: FlaskClient) -> None:
        password = "p" * 72
        assert _register(client, password=password).status_code == 201
        assert _login(client, password=password).status_code == 200

    def test_wrong_field_type_is_named(self, client: FlaskClient) -> None:
        resp = _register(client, firstName=123)
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["message"] == "Invalid input: firstName"
        assert "firstName" in body["details"]

    def test_body_not_json(self, client: FlaskClient) -> None:
        resp = client.post("/api/auth/register", data="email=a", content_type="text/plain")
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_REQUEST_BODY"

    def test_body_not_object(self, client: FlaskClient) -> None:
        resp = client.post("/api/auth/register", json=["alice@example.com", "pw"])
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "INVALID_REQUEST_BODY"


class TestLoginRoute:
    def test_success(self, client: FlaskClient, storage) -> None:
        registered = _register(client).get_json()["data"]["accessToken"]
        resp = _login(client)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["data"]["user"]["email"] == EMAIL
        assert body["data"]["accessToken"] != registered
        assert storage.count(RefreshToken) == 2

    def test_invalid_credentials_are_generic(self, client: FlaskClient) -> None:
        _register(client)
        unknown = _login(client, email="nobody@example.com")
        wrong = _login(client, password="wrong-password")
        assert unknown.status_code == wrong.status_code == 401
        assert unknown.get_json() == wrong.get_json()
        assert unknown.get_json()["message"] == "Invalid email or password"

    def test_deactivated(self, client: FlaskClient, storage) -> None:
        _register(client)
        user = storage.find_user_by_email(EMAIL)
        user.is_active = False
        storage.save()
        resp = _login(client)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "ACCOUNT_DEACTIVATED"

    def test_missing_fields(self, client: FlaskClient) -> None:
        resp = client.post("/api/auth/login", json={"password": PASSWORD})
        assert resp.status_code == 400

    def test_overlong_password_is_just_wrong(self, client: FlaskClient) -> None:
        _register(client)
        resp = _login(client, password="p" * 100)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "INVALID_CREDENTIALS"


class TestRefreshRoute:
    def test_refresh_from_cookie(self, client: FlaskClient) -> None:
        refresh = cookie_value(_register(client), "refreshToken")
        resp = client.post("/api/auth/refresh", headers={"Cookie": f"refreshToken={refresh}"})
        assert resp.status_code == 200
        token = resp.get_json()["data"]["accessToken"]
        assert cookie_value(resp, "accessToken") == token
        assert "refreshToken" not in set_cookies(resp)

    def test_refresh_from_bearer_header(self, client: FlaskClient) -> None:
        refresh = cookie_value(_register(client), "refreshToken")
        resp = client.post("/api/auth/refresh", headers=bearer(refresh))
        assert resp.status_code == 200

    def test_missing(self, client: FlaskClient) -> None:
        resp = client.post("/api/auth/refresh")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "REFRESH_TOKEN_REQUIRED"

    def test_invalid(self, client: FlaskClient) -> None:
        resp = client.post("/api/auth/refresh", headers=bearer("not-a-token"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "INVALID_REFRESH_TOKEN"

    def test_access_token_is_not_a_refresh_token(self, client: FlaskClient) -> None:
        access = _register(client).get_json()["data"]["accessToken"]
        resp = client.post("/api/auth/refresh", headers=bearer(access))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "INVALID_REFRESH_TOKEN"


class TestProtectedRoutes:
    def test_profile(self, client: FlaskClient) -> None:
        access = _register(client).get_json()["data"]["accessToken"]
        resp = client.get("/api/auth/profile", headers=bearer(access))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["email"] == EMAIL

    def test_profile_via_cookie(self, client: FlaskClient) -> None:
        access = cookie_value(_register(client), "accessToken")
        resp = client.get("/api/auth/profile", headers={"Cookie": f"accessToken={access}"})
        assert resp.status_code == 200

    def test_profile_requires_token(self, client: FlaskClient) -> None:
        resp = client.get("/api/auth/profile")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "UNAUTHORIZED"

    def test_profile_rejects_bad_token(self, client: FlaskClient) -> None:
        resp = client.get("/api/auth/profile", headers=bearer("abc.def.ghi"))
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid or expired access token"

    def test_profile_of_deleted_user(self, client: FlaskClient, storage) -> None:
        body = _register(client).get_json()["data"]
        storage.delete_user(body["user"]["id"])
        resp = client.get("/api/auth/profile", headers=bearer(body["accessToken"]))
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "USER_NOT_FOUND"

    def test_verify(self, client: FlaskClient) -> None:
        body = _register(client).get_json()["data"]
        resp = client.get("/api/auth/verify", headers=bearer(body["accessToken"]))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["authenticated"] is True
        assert data["user"] == {"userId": body["user"]["id"], "email": EMAIL}

    def test_logout_deletes_cookie_session(self, client: FlaskClient, storage) -> None:
        resp = _register(client)
        access, refresh = cookie_value(resp, "accessToken"), cookie_value(resp, "refreshToken")

        out = client.post("/api/auth/logout", headers={"Cookie": f"accessToken={access}; refreshToken={refresh}"})
        assert out.status_code == 200
        cleared = set_cookies(out)
        assert cleared["accessToken"].startswith("accessToken=;")
        assert cleared["refreshToken"].startswith("refreshToken=;")
        assert storage.find_refresh_token(refresh) is None

        again = client.post("/api/auth/refresh", headers={"Cookie": f"refreshToken={refresh}"})
        assert again.status_code == 401

    def test_logout_without_refresh_cookie(self, client: FlaskClient) -> None:
        access = _register(client).get_json()["data"]["accessToken"]
        resp = client.post("/api/auth/logout", headers=bearer(access))
        assert resp.status_code == 200

    def test_logout_all_requires_identity(self, client: FlaskClient) -> None:
        resp = client.post("/api/auth/logout-all")
        assert resp.status_code == 401


def test_full_session_lifecycle(client: FlaskClient) -> None:
    """register -> login -> refresh (twice) -> logout-all -> refresh denied."""
    registered = _register(client)
    assert registered.status_code == 201
    first_access = registered.get_json()["data"]["accessToken"]

    logged_in = _login(client)
    assert logged_in.status_code == 200
    access = logged_in.get_json()["data"]["accessToken"]
    refresh = cookie_value(logged_in, "refreshToken")
    assert access != first_access

    refreshed = client.post("/api/auth/refresh", headers=bearer(refresh))
    assert refreshed.status_code == 200
    assert refreshed.get_json()["data"]["accessToken"] not in (access, first_access)
    # not rotated: the same refresh token keeps working
    assert client.post("/api/auth/refresh", headers=bearer(refresh)).status_code == 200

    out = client.post("/api/auth/logout-all", headers=bearer(access))
    assert out.status_code == 200

    denied = client.post("/api/auth/refresh", headers=bearer(refresh))
    assert denied.status_code == 401
    assert denied.get_json()["error"] == "REFRESH_TOKEN_EXPIRED"
    first_refresh = cookie_value(registered, "refreshToken")
    assert client.post("/api/auth/refresh", headers=bearer(first_refresh)).status_code == 401


class TestAppRoutes:
    def test_health(self, client: FlaskClient) -> None:
        resp = client.get("/health")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "ok"
        assert body["environment"] == "test"

    def test_root_without_token(self, client: FlaskClient) -> None:
        resp = client.get("/")
        assert resp.status_code == 200
        assert resp.get_json()["authenticated"] is False

    def test_root_with_token(self, client: FlaskClient) -> None:
        access = _register(client).get_json()["data"]["accessToken"]
        assert client.get("/", headers=bearer(access)).get_json()["authenticated"] is True

    def test_unknown_route(self, client: FlaskClient) -> None:
        resp = client.get("/api/auth/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOT_FOUND"

    def test_unexpected_error_is_generic(self, app, client: FlaskClient, monkeypatch) -> None:
        storage = app.extensions["storage"]

        def boom(*args, **kwargs):
            raise RuntimeError("db exploded: SELECT users.password_hash ...")

        monkeypatch.setattr(storage, "find_user_by_email", boom)
        resp = _login(client)
        assert resp.status_code == 500
        body = resp.get_json()
        assert body["error"] == "INTERNAL_ERROR"
        assert "SELECT" not in resp.get_data(as_text=True)
