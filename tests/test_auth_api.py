"""HTTP surface: status codes, envelopes and the cookie contract."""
from datetime import timedelta

import pytest
from flask import g

from api import create_app
from api.auth import FORGOT_PASSWORD_MESSAGE
from api.config import DEV_JWT_SECRET, ProductionConfig
from models import Role, SystemSetting
from tests._helpers import API, PASSWORD, bearer, cookie_value, csrf_headers, login, register
from utils.decorators import quota_required


def _set_setting(auth_services, key, value):
    auth_services.storage.new(SystemSetting(key=key, value=value))
    auth_services.storage.save()


def _set_cookie_headers(resp, name):
    return [h for h in resp.headers.getlist("Set-Cookie") if h.startswith(f"{name}=")]


def test_register_login_refresh_scenario(client):
    created = register(client)
    assert created.status_code == 201
    body = created.get_json()["data"]
    assert body["account"]["email"] == "a@x.com"
    assert body["access_token"]
    assert body["token_type"] == "bearer"
    original_access = body["access_token"]
    original_refresh = cookie_value(client, "refreshToken")
    assert original_refresh

    wrong = login(client, password="not-the-password")
    assert wrong.status_code == 401
    assert wrong.get_json()["message"] == "Invalid email or password"

    refreshed = client.post(f"{API}/auth/refresh", headers=csrf_headers(client))
    assert refreshed.status_code == 200
    assert refreshed.get_json()["data"]["access_token"] != original_access
    assert cookie_value(client, "refreshToken") != original_refresh

    client.set_cookie("refreshToken", original_refresh)
    replay = client.post(f"{API}/auth/refresh", headers=csrf_headers(client))
    assert replay.status_code == 401
    assert replay.get_json()["error"] == "REAUTHENTICATION_REQUIRED"
    # the server clears both cookies once the session is gone
    assert cookie_value(client, "refreshToken") is None
    assert cookie_value(client, "csrfToken") is None


def test_cookie_attributes(client):
    resp = register(client)
    refresh_header = _set_cookie_headers(resp, "refreshToken")[0]
    csrf_header = _set_cookie_headers(resp, "csrfToken")[0]

    for header in (refresh_header, csrf_header):
        assert "SameSite=Strict" in header
        assert "Path=/" in header
        assert "Max-Age=2592000" in header
    assert "HttpOnly" in refresh_header
    assert "HttpOnly" not in csrf_header
    assert csrf_header.split(";")[0] == f"csrfToken={resp.get_json()['data']['csrf_token']}"
    assert "refreshToken" not in resp.get_data(as_text=True)


class TestRegister:
    def test_duplicate_email(self, client):
        register(client, email="Dup@x.com")
        resp = register(client, email="dup@X.COM")
        assert resp.status_code == 409
        assert resp.get_json() == {"error": "CONFLICT", "message": "Email already registered", "status": 409}

    def test_short_password(self, client):
        resp = register(client, password="short")
        assert resp.status_code == 422
        assert resp.get_json()["error"] == "VALIDATION_ERROR"
        assert "12" in resp.get_json()["message"]

    @pytest.mark.parametrize("payload", [{}, {"email": "not-an-email", "password": PASSWORD}, {"password": PASSWORD}])
    def test_malformed_body(self, client, payload):
        resp = client.post(f"{API}/auth/register", json=payload)
        assert resp.status_code == 422
        assert "details" in resp.get_json()

    def test_account_output_hides_secrets(self, client):
        account = register(client, name="Ada").get_json()["data"]["account"]
        assert account["name"] == "Ada"
        assert account["role"] == "FREE"
        assert account["has_password"] is True
        assert account["subscription_active"] is False
        assert "password_hash" not in account
        assert "reset_password_token" not in account

    def test_unencodable_password(self, client, auth_services):
        # JSON escapes decode to a lone surrogate that has no UTF-8 form
        body = '{"email": "a@x.com", "password": "' + "\\ud800" * 12 + '"}'
        resp = client.post(f"{API}/auth/register", data=body, content_type="application/json")
        assert resp.status_code == 422
        assert resp.get_json()["error"] == "VALIDATION_ERROR"
        assert auth_services.accounts.find_by_email("a@x.com") is None


class TestLogin:
    def test_login_sets_cookies(self, client):
        register(client)
        client.delete_cookie("refreshToken")
        resp = login(client, email=" A@X.com ")
        assert resp.status_code == 200
        assert cookie_value(client, "refreshToken")

    def test_unknown_and_malformed_emails_look_like_wrong_password(self, client):
        register(client)
        bodies = [
            login(client, password="wrong-password!").get_json(),
            login(client, email="nobody@x.com").get_json(),
            login(client, email="not-an-email").get_json(),
        ]
        assert bodies[0] == bodies[1] == bodies[2]
        assert bodies[0]["error"] == "INVALID_CREDENTIALS"

    def test_unencodable_password_is_invalid_credentials(self, client):
        register(client)
        body = '{"email": "a@x.com", "password": "' + "\\ud800" * 12 + '"}'
        resp = client.post(f"{API}/auth/login", data=body, content_type="application/json")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "INVALID_CREDENTIALS"


class TestSessionEndpoints:
    def test_refresh_without_cookie(self, client):
        client.set_cookie("csrfToken", "abc")
        resp = client.post(f"{API}/auth/refresh", headers={"X-CSRF-Token": "abc"})
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "REAUTHENTICATION_REQUIRED"

    def test_logout(self, client, auth_services):
        register(client)
        refresh_token = cookie_value(client, "refreshToken")
        resp = client.post(f"{API}/auth/logout", headers=csrf_headers(client))
        assert resp.status_code == 200
        assert cookie_value(client, "refreshToken") is None
        assert auth_services.sessions.find_valid(refresh_token) is None

    def test_logout_without_session_still_succeeds(self, client):
        client.set_cookie("csrfToken", "abc")
        resp = client.post(f"{API}/auth/logout", headers={"X-CSRF-Token": "abc"})
        assert resp.status_code == 200

    def test_refresh_with_no_cookies_at_all(self, client):
        resp = client.post(f"{API}/auth/refresh")
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "REAUTHENTICATION_REQUIRED"

    def test_logout_with_no_cookies_at_all(self, client):
        resp = client.post(f"{API}/auth/logout")
        assert resp.status_code == 200

    def test_logout_all(self, client, auth_services):
        access = register(client).get_json()["data"]["access_token"]
        login(client)
        login(client)
        resp = client.post(f"{API}/auth/logout-all", headers=bearer(access))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["revoked"] == 3
        assert cookie_value(client, "refreshToken") is None

    def test_me(self, client):
        access = register(client).get_json()["data"]["access_token"]
        resp = client.get(f"{API}/auth/me", headers=bearer(access))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["email"] == "a@x.com"

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Token abc"}, {"Authorization": "Bearer "}])
    def test_me_without_bearer(self, client, headers):
        resp = client.get(f"{API}/auth/me", headers=headers)
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "UNAUTHORIZED"

    def test_me_with_expired_token(self, client, orchestrator):
        account_id = register(client).get_json()["data"]["account"]["id"]
        expired = orchestrator.signer.issue({"sub": account_id}, timedelta(seconds=-10))
        resp = client.get(f"{API}/auth/me", headers=bearer(expired))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "TOKEN_EXPIRED"

    def test_me_with_garbage_token(self, client):
        resp = client.get(f"{API}/auth/me", headers=bearer("abc.def.ghi"))
        assert resp.status_code == 401
        assert resp.get_json()["error"] == "INVALID_TOKEN"

    def test_check_email(self, client):
        register(client)
        yes = client.post(f"{API}/auth/check-email", json={"email": "A@x.com"})
        no = client.post(f"{API}/auth/check-email", json={"email": "b@x.com"})
        assert yes.get_json() == {"data": {"exists": True}}
        assert no.get_json() == {"data": {"exists": False}}


class TestPasswordResetEndpoints:
    def test_reset_via_emailed_link(self, client, mailer):
        register(client)
        resp = client.post(f"{API}/auth/forgot-password", json={"email": "a@x.com"})
        assert resp.status_code == 200
        assert resp.get_json()["message"] == FORGOT_PASSWORD_MESSAGE
        token = mailer.last_token()

        check = client.get(f"{API}/auth/validate-reset-token", query_string={"token": token})
        assert check.get_json() == {"data": {"valid": True}}

        reset = client.post(f"{API}/auth/reset-password", json={"token": token, "password": "brand-new-passphrase"})
        assert reset.status_code == 200
        assert login(client, password="brand-new-passphrase").status_code == 200
        assert login(client).status_code == 401

        again = client.post(f"{API}/auth/reset-password", json={"token": token, "password": "third-passphrase!"})
        assert again.status_code == 401
        assert again.get_json()["error"] == "INVALID_TOKEN"
        check = client.get(f"{API}/auth/validate-reset-token", query_string={"token": token})
        assert check.get_json() == {"data": {"valid": False}}

    def test_unknown_email_gets_same_answer(self, client, mailer):
        resp = client.post(f"{API}/auth/forgot-password", json={"email": "ghost@x.com"})
        assert resp.status_code == 200
        assert resp.get_json()["message"] == FORGOT_PASSWORD_MESSAGE
        assert mailer.sent == []

    def test_mail_outage(self, client, mailer):
        register(client)
        mailer.failures = 10
        resp = client.post(f"{API}/auth/forgot-password", json={"email": "a@x.com"})
        assert resp.status_code == 502
        assert resp.get_json()["error"] == "EXTERNAL_SERVICE_ERROR"

    def test_validate_without_token(self, client):
        resp = client.get(f"{API}/auth/validate-reset-token")
        assert resp.get_json() == {"data": {"valid": False}}

    def test_reset_with_short_password(self, client, mailer):
        register(client)
        client.post(f"{API}/auth/forgot-password", json={"email": "a@x.com"})
        resp = client.post(f"{API}/auth/reset-password", json={"token": mailer.last_token(), "password": "short"})
        assert resp.status_code == 422


class TestMaintenanceMode:
    def test_blocks_non_admin_bearer_routes(self, client, auth_services):
        access = register(client).get_json()["data"]["access_token"]
        _set_setting(auth_services, "maintenanceMode", "true")
        resp = client.get(f"{API}/auth/me", headers=bearer(access))
        assert resp.status_code == 503
        assert resp.get_json()["error"] == "SERVICE_UNAVAILABLE"
        assert client.get(f"{API}/settings/maintenance").get_json() == {"data": {"maintenance_mode": True}}

    def test_admin_passes(self, client, auth_services, make_account):
        make_account("admin@x.com", role=Role.ADMIN)
        access = login(client, email="admin@x.com").get_json()["data"]["access_token"]
        _set_setting(auth_services, "maintenanceMode", "true")
        assert client.get(f"{API}/auth/me", headers=bearer(access)).status_code == 200

    def test_unreadable_settings_fail_open(self, client, auth_services):
        access = register(client).get_json()["data"]["access_token"]
        auth_services.storage.close()
        SystemSetting.__table__.drop(auth_services.storage.engine)

        assert client.get(f"{API}/settings/maintenance").get_json() == {"data": {"maintenance_mode": False}}
        assert client.get(f"{API}/auth/me", headers=bearer(access)).status_code == 200


class TestUsers:
    def test_update_profile(self, client):
        access = register(client).get_json()["data"]["access_token"]
        resp = client.patch(
            f"{API}/users/me",
            json={"name": "New Name", "avatar_url": "https://img.example/a.png", "role": "ADMIN"},
            headers=bearer(access),
        )
        assert resp.status_code == 200
        data = resp.get_json()["data"]
        assert data["name"] == "New Name"
        assert data["avatar_url"] == "https://img.example/a.png"
        assert data["role"] == "FREE"

    def test_update_profile_rejects_bad_url(self, client):
        access = register(client).get_json()["data"]["access_token"]
        resp = client.patch(f"{API}/users/me", json={"avatar_url": "nope"}, headers=bearer(access))
        assert resp.status_code == 422

    def test_admin_changes_role(self, client, make_account):
        make_account("admin@x.com", role=Role.ADMIN)
        target_id = register(client).get_json()["data"]["account"]["id"]
        admin_access = login(client, email="admin@x.com").get_json()["data"]["access_token"]

        resp = client.post(f"{API}/users/{target_id}/role", json={"role": "VIP"}, headers=bearer(admin_access))
        assert resp.status_code == 200
        assert resp.get_json()["data"]["role"] == "VIP"

        refreshed_role = login(client).get_json()["data"]["account"]["role"]
        assert refreshed_role == "VIP"

    def test_role_change_requires_admin(self, client, make_account):
        make_account("vip@x.com", role=Role.VIP)
        target_id = register(client).get_json()["data"]["account"]["id"]
        vip_access = login(client, email="vip@x.com").get_json()["data"]["access_token"]
        resp = client.post(f"{API}/users/{target_id}/role", json={"role": "ADMIN"}, headers=bearer(vip_access))
        assert resp.status_code == 403
        assert resp.get_json()["error"] == "FORBIDDEN"

    def test_role_change_validation_and_unknown_account(self, client, make_account):
        make_account("admin@x.com", role=Role.ADMIN)
        admin_access = login(client, email="admin@x.com").get_json()["data"]["access_token"]
        bad = client.post(f"{API}/users/some-id/role", json={"role": "OWNER"}, headers=bearer(admin_access))
        missing = client.post(f"{API}/users/some-id/role", json={"role": "VIP"}, headers=bearer(admin_access))
        assert bad.status_code == 422
        assert missing.status_code == 404

    def test_admin_counts_sessions(self, client, make_account):
        make_account("admin@x.com", role=Role.ADMIN)
        target_id = register(client).get_json()["data"]["account"]["id"]
        login(client)
        admin_access = login(client, email="admin@x.com").get_json()["data"]["access_token"]
        resp = client.get(f"{API}/users/{target_id}/sessions", headers=bearer(admin_access))
        assert resp.get_json()["data"] == {"account_id": target_id, "active_sessions": 2}


def test_quota_guard(app, client, auth_services):
    @app.post("/generate")
    @quota_required()
    def generate():
        auth_services.accounts.increment_usage(g.current_account.id)
        return {"ok": True}

    _set_setting(auth_services, "monthlyFreeQuota", "2")
    access = register(client).get_json()["data"]["access_token"]

    assert client.post("/generate", headers=bearer(access)).status_code == 200
    assert client.post("/generate", headers=bearer(access)).status_code == 200
    denied = client.post("/generate", headers=bearer(access))
    assert denied.status_code == 403
    assert denied.get_json()["details"] == {"slides_generated": 2, "max_slides": 2}


def test_vip_has_no_quota(app, client, auth_services, make_account):
    @app.post("/generate")
    @quota_required()
    def generate():
        auth_services.accounts.increment_usage(g.current_account.id)
        return {"ok": True}

    make_account("vip@x.com", role=Role.VIP, max_slides_per_month=0)
    access = login(client, email="vip@x.com").get_json()["data"]["access_token"]
    assert client.post("/generate", headers=bearer(access)).status_code == 200


class TestAppShell:
    def test_health(self, client):
        resp = client.get(f"{API}/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "ok"

    def test_unknown_route(self, client):
        resp = client.get("/nope")
        assert resp.status_code == 404
        assert resp.get_json()["error"] == "NOT_FOUND"

    def test_cors_allows_frontend_with_credentials(self, client):
        resp = client.get(f"{API}/health", headers={"Origin": "http://frontend.test"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://frontend.test"
        assert resp.headers["Access-Control-Allow-Credentials"] == "true"

    def test_cors_ignores_other_origins(self, client):
        resp = client.get(f"{API}/health", headers={"Origin": "http://evil.test"})
        assert "Access-Control-Allow-Origin" not in resp.headers

    def test_production_refuses_dev_secret(self, monkeypatch):
        monkeypatch.setattr(ProductionConfig, "JWT_SECRET", DEV_JWT_SECRET)
        monkeypatch.setattr(ProductionConfig, "APP_ENV", "production")
        with pytest.raises(RuntimeError):
            create_app("production")
