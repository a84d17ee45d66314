from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient

import portal.api.server as srv
from portal.api.deps import require_identity
from portal.auth.config import load_auth_config
from portal.auth.errors import SigningError
from portal.auth.models import Identity


def _attrs(header: str) -> list:
    return [p.strip() for p in header.split(";")]


def _login(c: TestClient, **kwargs):
    return c.post("/api/auth/login", json={"username": "admin", "password": "admin"}, **kwargs)


def _session_cookie(r) -> str:
    header = r.headers.get("set-cookie", "")
    first = _attrs(header)[0]
    assert first.startswith("app_session_id=")
    return first


def test_healthz_is_public() -> None:
    c = TestClient(srv.app)
    r = c.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_login_success_concrete_scenario() -> None:
    """admin/admin against default configuration."""
    c = TestClient(srv.app)
    r = _login(c)
    assert r.status_code == 200
    assert r.json() == {
        "success": True,
        "user": {"id": 1, "username": "admin", "name": "ADP Administrator", "role": "admin"},
    }
    attrs = _attrs(r.headers["set-cookie"])
    assert "HttpOnly" in attrs
    assert "SameSite=None" in attrs
    assert "Path=/" in attrs
    assert f"Max-Age={365 * 24 * 3600}" in attrs
    assert "Secure" not in attrs
    assert r.headers.get("cache-control") == "no-store"


def test_login_sets_secure_when_forwarded_https() -> None:
    c = TestClient(srv.app)
    r = _login(c, headers={"x-forwarded-proto": "https"})
    assert r.status_code == 200
    assert "Secure" in _attrs(r.headers["set-cookie"])


def test_login_sets_secure_on_native_tls() -> None:
    c = TestClient(srv.app, base_url="https://testserver")
    r = _login(c)
    assert "Secure" in _attrs(r.headers["set-cookie"])


def test_login_missing_credentials() -> None:
    """Login should fail with 400 if credentials are missing."""
    c = TestClient(srv.app)

    r = c.post("/api/auth/login", json={"password": "test"})
    assert r.status_code == 400
    assert "error" in r.json()

    r = c.post("/api/auth/login", json={"username": "test"})
    assert r.status_code == 400

    r = c.post("/api/auth/login", json={"username": 1, "password": "admin"})
    assert r.status_code == 400

    r = c.post("/api/auth/login", content=b"not json", headers={"content-type": "application/json"})
    assert r.status_code == 400

    r = c.post("/api/auth/login")
    assert r.status_code == 400
    assert "set-cookie" not in {k.lower() for k in r.headers.keys()}


def test_login_invalid_credentials_sets_no_cookie() -> None:
    c = TestClient(srv.app)
    for body in ({"username": "admin", "password": "wrong"}, {"username": "root", "password": "admin"}):
        r = c.post("/api/auth/login", json=body)
        assert r.status_code == 401
        assert r.json() == {"error": "Invalid credentials"}
        assert "set-cookie" not in {k.lower() for k in r.headers.keys()}


def test_login_signing_failure_is_500(monkeypatch) -> None:
    def _boom(self, identity, now=None, ttl=None):  # type: ignore[no-untyped-def]
        raise SigningError("hsm unavailable")

    monkeypatch.setattr("portal.auth.session.SessionCodec.issue", _boom)
    c = TestClient(srv.app)
    r = _login(c)
    assert r.status_code == 500
    # Internal detail stays in the server log.
    assert r.json() == {"error": "Failed to create session"}


def test_wrong_methods_are_405() -> None:
    c = TestClient(srv.app)
    for method, path in (("GET", "/api/auth/login"), ("POST", "/api/auth/session"), ("GET", "/api/auth/logout")):
        r = c.request(method, path)
        assert r.status_code == 405, (method, path)
        assert r.json() == {"error": "Method not allowed"}


def test_session_without_cookie_is_anonymous() -> None:
    c = TestClient(srv.app)
    r = c.get("/api/auth/session")
    assert r.status_code == 200
    assert r.json() == {"authenticated": False}


def test_login_then_session_with_issued_cookie() -> None:
    c = TestClient(srv.app)
    cookie = _session_cookie(_login(c))
    c.cookies.clear()

    r = c.get("/api/auth/session", headers={"cookie": f"theme=dark; {cookie}"})
    assert r.status_code == 200
    assert r.json() == {
        "authenticated": True,
        "user": {"id": 1, "username": "admin", "name": "ADP Administrator", "role": "admin"},
    }


def test_session_with_tampered_cookie_is_anonymous() -> None:
    c = TestClient(srv.app)
    cookie = _session_cookie(_login(c))
    c.cookies.clear()
    tampered = cookie[:-3] + ("AAA" if not cookie.endswith("AAA") else "BBB")
    r = c.get("/api/auth/session", headers={"cookie": tampered})
    assert r.status_code == 200
    assert r.json() == {"authenticated": False}


def test_session_expiry_boundary(monkeypatch) -> None:
    t0 = datetime(2026, 5, 1, tzinfo=timezone.utc)
    ttl = timedelta(seconds=load_auth_config().session_ttl_seconds)
    monkeypatch.setattr("portal.auth.session.utcnow", lambda: t0)
    c = TestClient(srv.app)
    cookie = _session_cookie(_login(c))
    c.cookies.clear()

    monkeypatch.setattr("portal.auth.session.utcnow", lambda: t0 + ttl - timedelta(seconds=1))
    assert c.get("/api/auth/session", headers={"cookie": cookie}).json()["authenticated"] is True

    monkeypatch.setattr("portal.auth.session.utcnow", lambda: t0 + ttl + timedelta(seconds=1))
    assert c.get("/api/auth/session", headers={"cookie": cookie}).json() == {"authenticated": False}


def test_browser_flow_login_session_logout() -> None:
    """The client cookie jar behaves like a browser across the three calls."""
    c = TestClient(srv.app)
    assert _login(c).status_code == 200
    assert c.get("/api/auth/session").json()["authenticated"] is True

    r = c.post("/api/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"success": True}
    attrs = _attrs(r.headers["set-cookie"])
    assert attrs[0] == "app_session_id="
    assert "Max-Age=0" in attrs

    assert c.get("/api/auth/session").json() == {"authenticated": False}


def test_logout_is_unconditional() -> None:
    c = TestClient(srv.app)
    for _ in range(2):
        r = c.post("/api/auth/logout")
        assert r.status_code == 200
        assert r.json() == {"success": True}


def test_logout_does_not_invalidate_the_token_value_itself() -> None:
    """No revocation store: a copied token keeps working until it expires."""
    c = TestClient(srv.app)
    cookie = _session_cookie(_login(c))
    c.post("/api/auth/logout")
    c.cookies.clear()
    r = c.get("/api/auth/session", headers={"cookie": cookie})
    assert r.json()["authenticated"] is True


def test_auth_me_requires_auth() -> None:
    c = TestClient(srv.app)
    r = c.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}
    # No WWW-Authenticate, so browsers don't show a basic-auth popup.
    assert "www-authenticate" not in {k.lower() for k in r.headers.keys()}


def test_auth_me_returns_identity_with_email() -> None:
    c = TestClient(srv.app)
    cookie = _session_cookie(_login(c))
    c.cookies.clear()
    r = c.get("/api/auth/me", headers={"cookie": cookie})
    assert r.status_code == 200
    assert r.json()["user"]["email"] == "admin@adp.local"
    assert r.json()["user"]["role"] == "admin"


def test_require_identity_guards_downstream_routes() -> None:
    seen = {}

    @srv.app.get("/api/_test/protected")
    def _protected(identity: Identity = Depends(require_identity)):  # type: ignore[no-untyped-def]
        seen["identity"] = identity
        return {"username": identity.username}

    try:
        c = TestClient(srv.app)
        assert c.get("/api/_test/protected").status_code == 401
        _login(c)
        r = c.get("/api/_test/protected")
        assert r.status_code == 200
        assert r.json() == {"username": "admin"}
        assert seen["identity"].open_id == "demo-admin-001"
    finally:
        srv.app.router.routes[:] = [
            rt for rt in srv.app.router.routes if getattr(rt, "path", None) != "/api/_test/protected"
        ]


def test_configured_credentials_are_used(monkeypatch) -> None:
    monkeypatch.setenv("DEMO_USERNAME", "ops")
    monkeypatch.setenv("DEMO_PASSWORD", "hunter2")
    monkeypatch.setenv("DEMO_DISPLAY_NAME", "Ops Team")
    load_auth_config.cache_clear()
    c = TestClient(srv.app)
    assert _login(c).status_code == 401
    r = c.post("/api/auth/login", json={"username": "ops", "password": "hunter2"})
    assert r.status_code == 200
    assert r.json()["user"] == {"id": 1, "username": "ops", "name": "Ops Team", "role": "admin"}


def test_token_signed_with_another_secret_is_rejected(monkeypatch) -> None:
    c = TestClient(srv.app)
    cookie = _session_cookie(_login(c))
    c.cookies.clear()

    monkeypatch.setenv("JWT_SECRET", "rotated-secret")
    load_auth_config.cache_clear()
    assert c.get("/api/auth/session", headers={"cookie": cookie}).json() == {"authenticated": False}


def test_login_then_session_with_configured_user_id(monkeypatch) -> None:
    monkeypatch.setenv("DEMO_USER_ID", "7")
    load_auth_config.cache_clear()
    c = TestClient(srv.app)
    r = _login(c)
    assert r.status_code == 200
    assert r.json()["user"]["id"] == 7

    r = c.get("/api/auth/session", headers={"cookie": _session_cookie(r)})
    assert r.json()["authenticated"] is True
    assert r.json()["user"]["id"] == 7


def test_trailing_slash_is_not_redirected() -> None:
    c = TestClient(srv.app)
    r = c.get("/api/auth/session/", follow_redirects=False)
    assert r.status_code == 404
    assert r.json() == {"error": "Not found"}


@pytest.mark.parametrize("env,expected", [("debug", "debug"), ("WARNING", "warning"), ("bogus", "info"), ("notset", "info")])
def test_run_passes_log_level_to_uvicorn(monkeypatch, env: str, expected: str) -> None:
    import uvicorn

    calls = []
    monkeypatch.setenv("LOG_LEVEL", env)
    monkeypatch.setattr(uvicorn, "run", lambda app, **kwargs: calls.append(kwargs))
    srv.run(host="127.0.0.1", port=9999)
    assert calls == [{"host": "127.0.0.1", "port": 9999, "log_level": expected}]
