from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

import auth
from errors import ValidationFailure
from main import app


def test_login_sets_session_cookie(client, admin):
    r = client.post("/auth", json={"username": "admin", "password": "s3cret"})
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["user"] == {"id": admin["id"], "username": "admin", "role": "admin"}

    set_cookie = r.headers["set-cookie"]
    assert "admin_token=" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "samesite=strict" in set_cookie.lower()
    assert "Path=/" in set_cookie

    r = client.get("/auth")
    assert r.status_code == 200
    assert r.json()["user"]["username"] == "admin"


@pytest.mark.parametrize("username,password", [("admin", "wrong"), ("nobody", "s3cret")])
def test_bad_credentials_are_indistinguishable(client, admin, username, password):
    r = client.post("/auth", json={"username": username, "password": password})
    assert r.status_code == 401
    assert r.json() == {"success": False, "error": "Invalid credentials"}
    assert "set-cookie" not in r.headers


def test_login_requires_both_fields(client, admin):
    r = client.post("/auth", json={"username": "admin"})
    assert r.status_code == 400
    assert r.json()["error"] == "Username and password are required"


def test_verify_without_cookie(client):
    r = client.get("/auth")
    assert r.status_code == 401
    assert r.json()["error"] == "No token found"


def test_verify_rejects_tampered_token(client, admin):
    token = auth.create_access_token(admin)
    header, payload, sig = token.split(".")
    forged = auth.b64url_encode(b'{"id":"x","username":"mallory","role":"admin","exp":9999999999}')
    client.cookies.set("admin_token", f"{header}.{forged}.{sig}")
    r = client.get("/auth")
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid token"


def test_verify_rejects_expired_token(client, admin):
    client.cookies.set("admin_token", auth.create_access_token(admin, timedelta(seconds=-5)))
    r = client.get("/auth")
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid token"


def test_verify_rejects_garbage(client):
    client.cookies.set("admin_token", "not-a-token")
    r = client.get("/auth")
    assert r.status_code == 401
    assert r.json()["error"] == "Invalid token"


def test_logout_clears_session(client, admin):
    client.post("/auth", json={"username": "admin", "password": "s3cret"})
    r = client.delete("/auth")
    assert r.status_code == 200
    assert r.json()["message"] == "Logged out successfully"
    assert "admin_token=" in r.headers["set-cookie"]

    r = client.get("/auth")
    assert r.status_code == 401


def test_admin_routes_require_session(client):
    for path in ("/admin/orders", "/admin/products", "/admin/settings", "/admin/inventory/logs"):
        r = client.get(path)
        assert r.status_code == 401, path
        assert r.json()["success"] is False


def test_non_admin_role_is_rejected(client):
    client.cookies.set("admin_token", auth.create_access_token({"id": "1", "username": "bob", "role": "viewer"}))
    r = client.get("/admin/orders")
    assert r.status_code == 401
    assert r.json()["error"] == "Unauthorized"


def test_jwt_decode_checks_signature():
    token = auth.jwt_encode({"id": "1", "exp": 9999999999}, "one-secret")
    assert auth.jwt_decode(token, "one-secret")["id"] == "1"
    with pytest.raises(ValueError):
        auth.jwt_decode(token, "other-secret")


def test_jwt_decode_requires_expiry():
    token = auth.jwt_encode({"id": "1"}, "s")
    with pytest.raises(ValueError):
        auth.jwt_decode(token, "s")


def test_create_admin_then_login(db, client):
    created = auth.create_admin(db, "ops", "hunter2", name="Ops", email="ops@example.com")
    assert created["role"] == "admin"
    stored = db["admin"].find_one({"username": "ops"})
    assert stored["password_hash"] != "hunter2"

    r = client.post("/auth", json={"username": "ops", "password": "hunter2"})
    assert r.status_code == 200

    with pytest.raises(ValidationFailure):
        auth.create_admin(db, "ops", "again")


def test_database_unavailable_is_reported(monkeypatch):
    import database
    monkeypatch.setattr(database, "db", None)
    with TestClient(app) as c:
        r = c.post("/auth", json={"username": "admin", "password": "x"})
    assert r.status_code == 500
    assert r.json()["error"] == "Database not available"
