"""Login, session and token handling"""
from gws_backup import auth, cache
from gws_backup.models import AdminUser, AuditLog

from .conftest import PASSWORD, headers_for


def test_login_returns_token_and_user(client, super_admin, db):
    resp = client.post("/api/auth/login", json={"username": "root", "password": PASSWORD})
    assert resp.status_code == 200
    data = resp.json()
    assert data["user"] == {"id": super_admin.id, "username": "root", "role": "super_admin"}
    payload = auth.decode_token(data["token"])
    assert payload["sub"] == str(super_admin.id)
    assert payload["role"] == "super_admin"

    db.refresh(super_admin)
    assert super_admin.last_login is not None
    assert db.query(AuditLog).filter(AuditLog.action == "login").count() == 1


def test_login_requires_both_fields(client):
    resp = client.post("/api/auth/login", json={"username": "root"})
    assert resp.status_code == 400


def test_login_rejects_bad_password(client, super_admin):
    resp = client.post("/api/auth/login", json={"username": "root", "password": "wrong-password"})
    assert resp.status_code == 401


def test_login_rate_limited_after_five_failures(client, super_admin):
    for _ in range(5):
        assert client.post("/api/auth/login", json={"username": "root", "password": "nope"}).status_code == 401
    resp = client.post("/api/auth/login", json={"username": "root", "password": PASSWORD})
    assert resp.status_code == 429


def test_login_works_when_redis_down(client, super_admin, redis_down):
    resp = client.post("/api/auth/login", json={"username": "root", "password": PASSWORD})
    assert resp.status_code == 200


def test_me_requires_token(client):
    resp = client.get("/api/auth/me")
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Access token required"


def test_me_rejects_garbage_token(client):
    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


def test_me_returns_current_admin(client, super_headers):
    resp = client.get("/api/auth/me", headers=super_headers)
    assert resp.status_code == 200
    assert resp.json()["user"]["username"] == "root"


def test_change_password_revokes_old_tokens(client, super_admin, super_headers):
    resp = client.post("/api/auth/change-password", headers=super_headers, json={
        "currentPassword": PASSWORD, "newPassword": "new-password-1",
    })
    assert resp.status_code == 200
    assert client.get("/api/auth/me", headers=super_headers).status_code == 401

    resp = client.post("/api/auth/login", json={"username": "root", "password": "new-password-1"})
    assert resp.status_code == 200


def test_change_password_validation(client, super_headers):
    short = client.post("/api/auth/change-password", headers=super_headers, json={
        "currentPassword": PASSWORD, "newPassword": "short",
    })
    assert short.status_code == 400
    wrong = client.post("/api/auth/change-password", headers=super_headers, json={
        "currentPassword": "not-my-password", "newPassword": "long-enough-1",
    })
    assert wrong.status_code == 401
    missing = client.post("/api/auth/change-password", headers=super_headers, json={})
    assert missing.status_code == 400


def test_setup_creates_first_super_admin_once(client, db):
    resp = client.post("/api/auth/setup", json={"username": "first", "password": "first-pass-1"})
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "super_admin"

    again = client.post("/api/auth/setup", json={"username": "second", "password": "second-pass-1"})
    assert again.status_code == 403
    assert db.query(AdminUser).count() == 1


def test_setup_rejects_short_password(client):
    resp = client.post("/api/auth/setup", json={"username": "first", "password": "short"})
    assert resp.status_code == 400


def test_logout_is_audited(client, super_headers, db):
    resp = client.post("/api/auth/logout", headers=super_headers)
    assert resp.status_code == 200
    assert db.query(AuditLog).filter(AuditLog.action == "logout").count() == 1


def test_deleted_admin_token_is_rejected(client, make_admin, db):
    admin = make_admin("temp", "admin")
    headers = headers_for(admin)
    db.delete(admin)
    db.commit()
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_audit_failure_does_not_break_request(client, super_headers, monkeypatch):
    def broken_add(*args, **kwargs):
        raise RuntimeError("disk full")

    from gws_backup import services
    monkeypatch.setattr(services, "AuditLog", broken_add)
    resp = client.post("/api/auth/logout", headers=super_headers)
    assert resp.status_code == 200


def test_rate_limit_counter_cleared_after_success(client, super_admin, fake_redis):
    client.post("/api/auth/login", json={"username": "root", "password": "nope"})
    client.post("/api/auth/login", json={"username": "root", "password": PASSWORD})
    assert not any(k.startswith(cache.RATE_LIMIT_PREFIX) for k in fake_redis.values)
