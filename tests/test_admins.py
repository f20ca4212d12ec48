"""Admin account management (super_admin only)"""
import pytest

from gws_backup.auth import verify_password
from gws_backup.models import AdminUser

from .conftest import PASSWORD, headers_for


def test_admin_list_newest_first(client, super_headers, make_admin):
    make_admin("second", "viewer")
    resp = client.get("/api/auth/admin-list", headers=super_headers)
    assert resp.status_code == 200
    names = [a["username"] for a in resp.json()["admins"]]
    assert names == ["second", "root"]


@pytest.mark.parametrize("fixture", ["admin_headers", "viewer_headers"])
def test_admin_management_needs_super_admin(client, request, fixture):
    headers = request.getfixturevalue(fixture)
    resp = client.get("/api/auth/admin-list", headers=headers)
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Only super_admin can perform this action"
    resp = client.post("/api/auth/admin-create", headers=headers,
                       json={"username": "x", "password": "long-enough"})
    assert resp.status_code == 403


def test_create_admin_defaults_to_admin_role(client, super_headers, db):
    resp = client.post("/api/auth/admin-create", headers=super_headers,
                       json={"username": "newbie", "password": "newbie-pass"})
    assert resp.status_code == 201
    assert resp.json()["admin"]["role"] == "admin"
    assert db.query(AdminUser).filter(AdminUser.username == "newbie").one().role == "admin"


def test_create_admin_validation(client, super_headers):
    dup = client.post("/api/auth/admin-create", headers=super_headers,
                      json={"username": "root", "password": "long-enough"})
    assert dup.status_code == 409
    bad_role = client.post("/api/auth/admin-create", headers=super_headers,
                           json={"username": "x", "password": "long-enough", "role": "owner"})
    assert bad_role.status_code == 400
    short = client.post("/api/auth/admin-create", headers=super_headers,
                        json={"username": "x", "password": "short"})
    assert short.status_code == 400


def test_reset_password_of_other_admin(client, super_headers, make_admin, db):
    target = make_admin("target", "admin")
    old_headers = headers_for(target)
    resp = client.post("/api/auth/admin-reset-password", headers=super_headers,
                       json={"adminId": target.id, "newPassword": "fresh-pass-1"})
    assert resp.status_code == 200
    db.refresh(target)
    assert verify_password("fresh-pass-1", target.password_hash)
    assert client.get("/api/auth/me", headers=old_headers).status_code == 401


def test_reset_own_password_refused(client, super_admin, super_headers):
    resp = client.post("/api/auth/admin-reset-password", headers=super_headers,
                       json={"adminId": super_admin.id, "newPassword": "fresh-pass-1"})
    assert resp.status_code == 400


def test_reset_unknown_admin(client, super_headers):
    resp = client.post("/api/auth/admin-reset-password", headers=super_headers,
                       json={"adminId": 9999, "newPassword": "fresh-pass-1"})
    assert resp.status_code == 404


def test_update_role(client, super_headers, make_admin, db):
    target = make_admin("target", "viewer")
    resp = client.put("/api/auth/admin-update-role", headers=super_headers,
                      json={"adminId": target.id, "newRole": "admin"})
    assert resp.status_code == 200
    db.refresh(target)
    assert target.role == "admin"


def test_update_role_rejects_invalid_and_self(client, super_admin, super_headers, make_admin):
    target = make_admin("target", "viewer")
    invalid = client.put("/api/auth/admin-update-role", headers=super_headers,
                         json={"adminId": target.id, "newRole": "owner"})
    assert invalid.status_code == 400
    own = client.put("/api/auth/admin-update-role", headers=super_headers,
                     json={"adminId": super_admin.id, "newRole": "viewer"})
    assert own.status_code == 400


def test_delete_admin(client, super_headers, make_admin, db):
    target = make_admin("target", "admin")
    resp = client.post("/api/auth/admin-delete", headers=super_headers, json={"adminId": target.id})
    assert resp.status_code == 200
    assert db.query(AdminUser).filter(AdminUser.username == "target").first() is None


def test_delete_guards(client, super_admin, super_headers, make_admin):
    other_super = make_admin("other-root", "super_admin")
    assert client.post("/api/auth/admin-delete", headers=super_headers,
                       json={"adminId": other_super.id}).status_code == 403
    assert client.post("/api/auth/admin-delete", headers=super_headers,
                       json={"adminId": super_admin.id}).status_code == 400
    assert client.post("/api/auth/admin-delete", headers=super_headers,
                       json={"adminId": 9999}).status_code == 404


def test_audit_log_records_admin_actions(client, super_headers):
    client.post("/api/auth/admin-create", headers=super_headers,
                json={"username": "newbie", "password": "newbie-pass"})
    resp = client.get("/api/auth/audit", headers=super_headers, params={"action": "create_admin"})
    assert resp.status_code == 200
    logs = resp.json()["logs"]
    assert len(logs) == 1
    assert logs[0]["admin_username"] == "root"


def test_login_as_created_admin(client, super_headers):
    client.post("/api/auth/admin-create", headers=super_headers,
                json={"username": "newbie", "password": PASSWORD, "role": "viewer"})
    resp = client.post("/api/auth/login", json={"username": "newbie", "password": PASSWORD})
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "viewer"
