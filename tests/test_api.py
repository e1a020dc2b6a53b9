from datetime import datetime, timedelta, timezone

import pytest

from api import create_app
from models import storage
from models.roles import Role
from tests.conftest import bearer, refresh_cookie
from utils.security import TokenSigner

ANN = {"name": "Ann", "email": "ann@x.com", "password": "secret1", "phone": "1234567890"}


def register(client, **overrides):
    return client.post("/api/v1/auth/register", json={**ANN, **overrides})


def login(client, email="ann@x.com", password="secret1"):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def refresh(client, token=None):
    body = {"refresh_token": token} if token else None
    return client.post("/api/v1/auth/refresh", json=body)


def promote(app, email):
    auth = app.extensions["auth"]
    user = auth.users.find_by_email(email)
    user.role = Role.ADMIN
    auth.users.save(user)
    storage.close()


class TestRegister:
    def test_register_scenario(self, client):
        resp = register(client)
        assert resp.status_code == 201
        body = resp.get_json()
        assert body["user"]["email"] == "ann@x.com"
        assert isinstance(body["access_token"], str) and body["access_token"]
        assert body["token_type"] == "bearer"
        assert body["expires_in"] == 900
        assert "password_hash" not in body["user"]
        assert "refresh_token" not in body

    def test_refresh_cookie_is_http_only(self, client):
        resp = register(client)
        cookie = next(h for h in resp.headers.getlist("Set-Cookie") if h.startswith("refresh_token="))
        assert "HttpOnly" in cookie
        assert "SameSite=Lax" in cookie
        assert "Secure" not in cookie
        max_age = int(cookie.split("Max-Age=", 1)[1].split(";", 1)[0])
        assert 7 * 24 * 3600 - 60 < max_age <= 7 * 24 * 3600

    def test_duplicate_email(self, client):
        register(client)
        resp = register(client, email="ANN@x.com")
        assert resp.status_code == 409
        assert resp.get_json()["error"] == "DUPLICATE_EMAIL"

    def test_validation_error_lists_fields(self, client):
        resp = client.post("/api/v1/auth/register", json={"email": "bad", "password": "123"})
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["error"] == "VALIDATION_ERROR"
        assert {"name", "email", "password", "phone"} <= set(body["details"])

    def test_non_json_body_is_validation_error(self, client):
        resp = client.post("/api/v1/auth/register", data="not json", content_type="text/plain")
        assert resp.status_code == 400


class TestLogin:
    def test_login_scenario(self, client):
        register(client)
        resp = login(client)
        assert resp.status_code == 200
        assert resp.get_json()["access_token"]
        assert refresh_cookie(resp)

    def test_wrong_password_and_unknown_email_look_identical(self, client):
        register(client)
        wrong = login(client, password="nope-nope")
        unknown = login(client, email="nobody@x.com")
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.get_json() == unknown.get_json()
        assert wrong.get_json()["error"] == "INVALID_CREDENTIALS"


class TestMe:
    def test_me(self, client):
        token = register(client).get_json()["access_token"]
        resp = client.get("/api/v1/auth/me", headers=bearer(token))
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["email"] == "ann@x.com"
        assert "password_hash" not in data

    def test_me_without_token(self, client):
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "UNAUTHORIZED"

    def test_me_with_expired_token(self, app, client):
        user_id = register(client).get_json()["user"]["id"]
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        expired = TokenSigner(
            app.config["JWT_ACCESS_SECRET"],
            app.config["JWT_REFRESH_SECRET"],
            issuer=app.config["JWT_ISSUER"],
            clock=lambda: past,
        ).sign_access(user_id, "Student")
        resp = client.get("/api/v1/auth/me", headers=bearer(expired))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "UNAUTHORIZED"

    def test_update_profile(self, client):
        token = register(client).get_json()["access_token"]
        resp = client.patch("/api/v1/auth/me", json={"phone": "0987654321"}, headers=bearer(token))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["phone"] == "0987654321"


class TestRefresh:
    def test_refresh_from_cookie(self, client):
        register(client)
        resp = client.post("/api/v1/auth/refresh")
        assert resp.status_code == 200
        assert resp.get_json()["access_token"]
        assert refresh_cookie(resp)

    def test_refresh_reuse_revokes_everything(self, app):
        client = app.test_client(use_cookies=False)
        first = refresh_cookie(register(client))

        rotated = refresh(client, first)
        assert rotated.status_code == 200
        second = refresh_cookie(rotated)
        assert second and second != first

        reused = refresh(client, first)
        assert reused.status_code == 401
        assert reused.get_json()["error"] == "TOKEN_REUSE"

        after = refresh(client, second)
        assert after.status_code == 401
        assert after.get_json()["error"] == "TOKEN_REUSE"

    def test_missing_refresh_token(self, app):
        resp = app.test_client(use_cookies=False).post("/api/v1/auth/refresh")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "INVALID_TOKEN"

    def test_garbage_refresh_token(self, client):
        resp = refresh(client, "garbage")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "INVALID_TOKEN"


class TestLogout:
    def test_logout_revokes_and_clears_cookie(self, app):
        client = app.test_client(use_cookies=False)
        resp = register(client)
        token = resp.get_json()["access_token"]
        rt = refresh_cookie(resp)

        out = client.post("/api/v1/auth/logout", json={"refresh_token": rt}, headers=bearer(token))
        assert out.status_code == 204
        cleared = next(h for h in out.headers.getlist("Set-Cookie") if h.startswith("refresh_token="))
        assert "Max-Age=0" in cleared or "Expires=Thu, 01 Jan 1970" in cleared

        user_id = resp.get_json()["user"]["id"]
        assert app.extensions["auth"].tokens.count(user_id) == 0

    def test_logout_requires_access_token(self, client):
        register(client)
        assert client.post("/api/v1/auth/logout").status_code == 401


class TestChangePassword:
    def test_change_password(self, client):
        token = register(client).get_json()["access_token"]
        resp = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "secret1", "new_password": "secret2"},
            headers=bearer(token),
        )
        assert resp.status_code == 204
        assert login(client).status_code == 401
        assert login(client, password="secret2").status_code == 200

    def test_wrong_current_password(self, client):
        token = register(client).get_json()["access_token"]
        resp = client.post(
            "/api/v1/auth/change-password",
            json={"current_password": "nope", "new_password": "secret2"},
            headers=bearer(token),
        )
        assert resp.status_code == 401


class TestAdmin:
    def test_student_is_forbidden(self, client):
        token = register(client).get_json()["access_token"]
        resp = client.get("/api/v1/admin/users", headers=bearer(token))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "FORBIDDEN"

    def test_admin_lists_users(self, app, client):
        token = register(client).get_json()["access_token"]
        register(client, email="bob@x.com", name="Bob")
        promote(app, "ann@x.com")

        resp = client.get("/api/v1/admin/users?limit=1", headers=bearer(token))
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["meta"] == {"page": 1, "limit": 1, "total": 2}
        assert len(body["data"]) == 1

    def test_admin_sets_role(self, app, client):
        token = register(client).get_json()["access_token"]
        bob_id = register(client, email="bob@x.com", name="Bob").get_json()["user"]["id"]
        promote(app, "ann@x.com")

        resp = client.patch(f"/api/v1/admin/users/{bob_id}/role", json={"role": "Admin"}, headers=bearer(token))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["role"] == "Admin"

        bad = client.patch(f"/api/v1/admin/users/{bob_id}/role", json={"role": "Janitor"}, headers=bearer(token))
        assert bad.status_code == 400

        missing = client.patch("/api/v1/admin/users/nope/role", json={"role": "Admin"}, headers=bearer(token))
        assert missing.status_code == 404

    def test_deactivate_blocks_login_and_refresh(self, app):
        client = app.test_client(use_cookies=False)
        token = register(client).get_json()["access_token"]
        bob = register(client, email="bob@x.com", name="Bob")
        bob_id = bob.get_json()["user"]["id"]
        bob_refresh = refresh_cookie(bob)
        promote(app, "ann@x.com")

        resp = client.post(f"/api/v1/admin/users/{bob_id}/deactivate", headers=bearer(token))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["is_active"] is False

        assert login(client, email="bob@x.com").status_code == 401
        assert refresh(client, bob_refresh).status_code == 401

        resp = client.post(f"/api/v1/admin/users/{bob_id}/activate", headers=bearer(token))
        assert resp.status_code == 200
        assert login(client, email="bob@x.com").status_code == 200

    def test_admin_cannot_deactivate_self(self, app, client):
        body = register(client).get_json()
        promote(app, "ann@x.com")
        resp = client.post(f"/api/v1/admin/users/{body['user']['id']}/deactivate", headers=bearer(body["access_token"]))
        assert resp.status_code == 409


class TestRequestBodies:
    @pytest.mark.parametrize("path", ["/api/v1/auth/register", "/api/v1/auth/login", "/api/v1/auth/refresh"])
    @pytest.mark.parametrize("body", [["x"], "x", 42])
    def test_non_object_json_is_validation_error(self, client, path, body):
        resp = client.post(path, json=body)
        assert resp.status_code == 400
        data = resp.get_json()
        assert data["error"] == "VALIDATION_ERROR"
        assert data["details"] == {"_schema": ["Invalid input type."]}

    def test_non_object_json_on_authenticated_routes(self, client):
        token = register(client).get_json()["access_token"]
        for method, path in [("patch", "/api/v1/auth/me"), ("post", "/api/v1/auth/change-password")]:
            resp = getattr(client, method)(path, json=["x"], headers=bearer(token))
            assert resp.status_code == 400
            assert resp.get_json()["error"] == "VALIDATION_ERROR"


class TestAppWiring:
    def test_health(self, client):
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.get_json() == {"status": "ok", "database": "ok"}

    def test_unknown_route_uses_error_envelope(self, client):
        resp = client.get("/api/v1/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOT_FOUND"

    def test_internal_errors_do_not_leak(self, app):
        @app.get("/boom")
        def boom():
            raise RuntimeError("driver said: password=hunter2")

        resp = app.test_client().get("/boom")
        assert resp.status_code == 500
        body = resp.get_json()
        assert body == {"error": "INTERNAL_ERROR", "message": "An unexpected error occurred", "status": 500}

    def test_equal_secrets_refused(self, tmp_path):
        with pytest.raises(RuntimeError):
            create_app(
                "testing",
                {
                    "DATABASE_URL": f"sqlite:///{tmp_path / 'x.db'}",
                    "JWT_ACCESS_SECRET": "same",
                    "JWT_REFRESH_SECRET": "same",
                },
            )

    def test_production_cookie_is_secure(self, tmp_path):
        app = create_app(
            "testing",
            {"DATABASE_URL": f"sqlite:///{tmp_path / 'prod.db'}", "PRODUCTION": True},
        )
        try:
            resp = register(app.test_client())
            cookie = next(h for h in resp.headers.getlist("Set-Cookie") if h.startswith("refresh_token="))
            assert "Secure" in cookie
        finally:
            storage.drop_all()
