# tests/test_api.py
"""
API tests for the /api/auth endpoints.

Most tests skip the app lifespan: the fixture wires in-memory stores and
the shared FakeClock into the global auth services instead.
"""

import importlib
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

import zahnflow.core.security.session_security as session_security
import zahnflow.main as main_module
from zahnflow.core.config import settings
from zahnflow.core.security import init_auth_services
from zahnflow.main import app, limiter
from zahnflow.services.seed import DEMO_EMAIL, DEMO_PASSWORD

from tests.conftest import USER_1, USER_2


@pytest.fixture
def services(test_settings, credential_store, session_store, clock):
    services = init_auth_services(test_settings, credential_store, session_store, clock=clock)
    limiter.reset()
    yield services
    session_security.auth_services = None


@pytest.fixture
def client(services):
    return TestClient(app)


def login(client, user=USER_1, password=None, **headers):
    return client.post(
        "/api/auth/login",
        json={"email": user["email"], "password": password or user["password"]},
        headers=headers,
    )


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestLogin:

    def test_login_success_sets_cookie(self, client):
        response = login(client)

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == USER_1["id"]
        assert data["user"]["email"] == USER_1["email"]
        assert "password_hash" not in data["user"]
        assert data["token"]

        cookie = response.headers["set-cookie"]
        assert cookie.startswith(f"token={data['token']}")
        assert "HttpOnly" in cookie
        assert "SameSite=strict" in cookie
        assert "Max-Age=86400" in cookie

    def test_email_is_case_insensitive(self, client):
        response = client.post(
            "/api/auth/login",
            json={"email": "A@B.COM", "password": USER_1["password"]},
        )
        assert response.status_code == 200

    def test_wrong_password_and_unknown_email_look_identical(self, client):
        wrong_password = login(client, password="falsch")
        unknown_email = client.post(
            "/api/auth/login",
            json={"email": "niemand@zahnflow.de", "password": "falsch"},
        )

        assert wrong_password.status_code == unknown_email.status_code == 401
        assert wrong_password.json() == unknown_email.json() == {"error": "Ungültige E-Mail oder Passwort."}
        assert "set-cookie" not in wrong_password.headers

    def test_validation_errors(self, client):
        response = client.post("/api/auth/login", json={"email": "keine-mail", "password": ""})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "Validierungsfehler"
        fields = {d["field"] for d in data["details"]}
        assert fields == {"email", "password"}

    def test_session_metadata_recorded(self, client, services):
        login(client, **{"User-Agent": "Praxis-PC Firefox", "X-Forwarded-For": "10.0.0.7"})

        response = client.get("/api/auth/sessions")
        [session] = response.json()["sessions"]
        assert session["deviceInfo"] == "Praxis-PC Firefox"
        # No trusted proxy configured: the header is client-controlled and ignored
        assert session["ipAddress"] == "testclient"

    def test_session_ip_behind_trusted_proxy(self, client, monkeypatch):
        monkeypatch.setattr(settings, "TRUSTED_PROXY_HOPS", 1)
        login(client, **{"X-Forwarded-For": "6.6.6.6, 10.0.0.7"})

        [session] = client.get("/api/auth/sessions").json()["sessions"]
        assert session["ipAddress"] == "10.0.0.7"

    def test_forwarded_header_does_not_reset_rate_limit(self, client):
        for i in range(5):
            response = login(client, password="falsch", **{"X-Forwarded-For": f"198.51.100.{i}"})
            assert response.status_code == 401

        response = login(client, **{"X-Forwarded-For": "198.51.100.99"})
        assert response.status_code == 429

    def test_login_rate_limited(self, client):
        for _ in range(5):
            assert login(client, password="falsch").status_code == 401

        response = login(client)
        assert response.status_code == 429
        assert response.json()["error"] == "Zu viele Anmeldeversuche. Bitte versuchen Sie es später erneut."
        assert response.headers["Retry-After"] == "60"


class TestAuthenticatedRequests:

    def test_me_with_cookie(self, client):
        login(client)

        response = client.get("/api/auth/me")
        assert response.status_code == 200
        assert response.json()["user"]["name"] == USER_1["name"]

    def test_me_with_bearer_header(self, client):
        token = login(client).json()["token"]
        client.cookies.clear()

        response = client.get("/api/auth/me", headers=bearer(token))
        assert response.status_code == 200
        assert response.json()["user"]["id"] == USER_1["id"]

    def test_missing_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.json() == {"error": "Nicht autorisiert. Bitte melden Sie sich an."}
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client):
        response = client.get("/api/auth/me", headers=bearer("garbage"))

        assert response.status_code == 401
        assert response.json() == {"error": "Session abgelaufen oder ungültig. Bitte erneut anmelden."}

    def test_expired_session(self, client, clock):
        login(client)
        clock.advance(hours=24, seconds=1)

        assert client.get("/api/auth/me").status_code == 401


class TestLogout:

    def test_logout_clears_cookie_and_session(self, client):
        token = login(client).json()["token"]

        response = client.post("/api/auth/logout")
        assert response.status_code == 200
        assert response.json() == {"message": "Erfolgreich abgemeldet."}
        assert 'token=""' in response.headers["set-cookie"] or "Max-Age=0" in response.headers["set-cookie"]

        assert client.get("/api/auth/me", headers=bearer(token)).status_code == 401

    def test_logout_without_token(self, client):
        response = client.post("/api/auth/logout")
        assert response.status_code == 200

    def test_logout_twice(self, client):
        token = login(client).json()["token"]
        client.cookies.clear()

        assert client.post("/api/auth/logout", headers=bearer(token)).status_code == 200
        assert client.post("/api/auth/logout", headers=bearer(token)).status_code == 200

    def test_logout_all(self, client, clock):
        first = login(client).json()["token"]
        clock.advance(minutes=1)
        second = login(client).json()["token"]

        response = client.post("/api/auth/logout-all", headers=bearer(second))
        assert response.status_code == 200
        assert response.json() == {"message": "Von allen Geräten abgemeldet."}

        client.cookies.clear()
        for token in (first, second):
            assert client.get("/api/auth/me", headers=bearer(token)).status_code == 401


class TestSessions:

    def test_list_sessions(self, client, clock):
        login(client, **{"User-Agent": "Tablet"})
        clock.advance(minutes=1)
        token = login(client, **{"User-Agent": "Empfang"}).json()["token"]
        client.cookies.clear()

        response = client.get("/api/auth/sessions", headers=bearer(token))
        assert response.status_code == 200
        sessions = response.json()["sessions"]
        assert [s["deviceInfo"] for s in sessions] == ["Empfang", "Tablet"]
        assert set(sessions[0]) == {"id", "deviceInfo", "ipAddress", "lastActivity", "createdAt"}

    def test_session_cap(self, client, clock):
        for device in ("d1", "d2", "d3", "d4"):
            clock.advance(minutes=1)
            login(client, **{"User-Agent": device})

        sessions = client.get("/api/auth/sessions").json()["sessions"]
        assert sorted(s["deviceInfo"] for s in sessions) == ["d2", "d3", "d4"]

    def test_revoke_session(self, client, clock):
        other = login(client, **{"User-Agent": "Tablet"}).json()["token"]
        clock.advance(minutes=1)
        login(client, **{"User-Agent": "Empfang"})

        sessions = client.get("/api/auth/sessions").json()["sessions"]
        tablet = next(s for s in sessions if s["deviceInfo"] == "Tablet")

        response = client.delete(f"/api/auth/sessions/{tablet['id']}")
        assert response.status_code == 200
        assert response.json() == {"message": "Session beendet."}

        assert client.get("/api/auth/me").status_code == 200
        client.cookies.clear()
        assert client.get("/api/auth/me", headers=bearer(other)).status_code == 401

    def test_revoke_unknown_session(self, client):
        login(client)

        response = client.delete("/api/auth/sessions/does-not-exist")
        assert response.status_code == 404
        assert response.json() == {"error": "Session nicht gefunden."}

    def test_cannot_revoke_foreign_session(self, services):
        praxis = TestClient(app)
        anna = TestClient(app)
        login(praxis, user=USER_2)
        login(anna, user=USER_1)

        [foreign] = praxis.get("/api/auth/sessions").json()["sessions"]

        response = anna.delete(f"/api/auth/sessions/{foreign['id']}")
        assert response.status_code == 404
        assert praxis.get("/api/auth/me").status_code == 200


class TestHealth:

    @pytest.mark.parametrize("endpoint", ["/", "/healthz", "/api/health"])
    def test_public_endpoints(self, client, endpoint):
        assert client.get(endpoint).status_code == 200

    def test_health_payload(self, client):
        data = client.get("/api/health").json()
        assert data["status"] == "ok"
        assert "timestamp" in data


class TestStoreFailures:

    @pytest.fixture
    def failing_client(self, services):
        # The 500 handler runs, then Starlette re-raises; keep the response instead
        return TestClient(app, raise_server_exceptions=False)

    def test_validation_store_outage(self, failing_client, session_store, monkeypatch):
        token = login(failing_client).json()["token"]
        monkeypatch.setattr(
            session_store, "find_by_token_hash",
            AsyncMock(side_effect=ConnectionError("redis 10.0.0.3:6379 refused")),
        )

        response = failing_client.get("/api/auth/me", headers=bearer(token))

        assert response.status_code == 500
        assert response.json() == {"error": "Verbindungsfehler. Bitte versuchen Sie es später erneut."}

    def test_logout_store_outage(self, failing_client, session_store, monkeypatch):
        token = login(failing_client).json()["token"]
        monkeypatch.setattr(
            session_store, "delete_by_token_hash",
            AsyncMock(side_effect=RuntimeError("pipeline aborted")),
        )

        response = failing_client.post("/api/auth/logout", headers=bearer(token))

        assert response.status_code == 500
        assert response.json() == {"error": "Ein Fehler ist aufgetreten. Bitte versuchen Sie es später erneut."}
        assert "pipeline" not in response.text


class TestWithoutReachableRedis:
    """App started with a REDIS_URL nobody listens on"""

    @pytest.fixture
    def unreachable_redis_app(self, monkeypatch):
        monkeypatch.setattr(settings, "REDIS_URL", "redis://127.0.0.1:1/0")
        monkeypatch.setattr(settings, "SEED_DEMO_USER", True)
        monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
        # Limiter storage and stores are chosen from settings at import and startup
        module = importlib.reload(main_module)
        yield module.app
        monkeypatch.undo()
        importlib.reload(main_module)
        session_security.auth_services = None

    def test_login_falls_back_to_memory(self, unreachable_redis_app):
        with TestClient(unreachable_redis_app) as client:
            response = client.post(
                "/api/auth/login",
                json={"email": DEMO_EMAIL, "password": DEMO_PASSWORD},
            )

            assert response.status_code == 200
            assert response.json()["user"]["email"] == DEMO_EMAIL
            assert client.get("/api/auth/me").status_code == 200

    def test_login_limit_still_applies(self, unreachable_redis_app):
        with TestClient(unreachable_redis_app) as client:
            for _ in range(5):
                response = client.post(
                    "/api/auth/login",
                    json={"email": DEMO_EMAIL, "password": "falsch"},
                )
                assert response.status_code == 401

            response = client.post(
                "/api/auth/login",
                json={"email": DEMO_EMAIL, "password": DEMO_PASSWORD},
            )
            assert response.status_code == 429
