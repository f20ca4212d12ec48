"""Mailbox listing, status changes and IMAP bookkeeping"""
import json
from datetime import datetime, timedelta

from gws_backup import cache
from gws_backup.models import Email, ImapConnection, MailUser, PstExport


def test_list_users_with_aggregates(client, viewer_headers, mailbox, recent_emails):
    resp = client.get("/api/users", headers=viewer_headers)
    assert resp.status_code == 200
    data = resp.json()
    [user] = data["users"]
    assert user["email"] == "alice@example.com"
    assert user["domain_name"] == "example.com"
    assert user["email_count"] == 2
    assert user["total_size"] == 2000
    assert user["connection"] is None
    assert data["pagination"] == {"page": 1, "limit": 50, "total": 1, "pages": 1}


def test_list_users_status_filter(client, viewer_headers, mailbox, db, domain):
    db.add(MailUser(domain_id=domain.id, email="old@example.com", status="inactive"))
    db.commit()
    resp = client.get("/api/users", headers=viewer_headers, params={"status": "inactive"})
    assert [u["email"] for u in resp.json()["users"]] == ["old@example.com"]
    assert resp.json()["pagination"]["total"] == 1


def test_get_user_not_found(client, viewer_headers):
    assert client.get("/api/users/999", headers=viewer_headers).status_code == 404


def test_status_change_queues_imap_request(client, admin_headers, mailbox, db, fake_redis):
    resp = client.patch(f"/api/users/{mailbox.id}/status", headers=admin_headers,
                        json={"status": "inactive"})
    assert resp.status_code == 200
    db.refresh(mailbox)
    assert mailbox.status == "inactive"
    [job] = fake_redis.lists[cache.IMAP_QUEUE_KEY]
    assert json.loads(job)["action"] == "disconnect"


def test_status_change_rejects_unknown_status(client, admin_headers, mailbox):
    resp = client.patch(f"/api/users/{mailbox.id}/status", headers=admin_headers,
                        json={"status": "frozen"})
    assert resp.status_code == 400


def test_imap_status_never_connected(client, viewer_headers, mailbox):
    resp = client.get(f"/api/users/{mailbox.id}/imap-status", headers=viewer_headers)
    assert resp.json()["status"] == "never_connected"
    assert resp.json()["connected"] is False


def test_connect_then_disconnect(client, admin_headers, mailbox):
    resp = client.post(f"/api/users/{mailbox.id}/connect", headers=admin_headers)
    assert resp.status_code == 200
    status = client.get(f"/api/users/{mailbox.id}/imap-status", headers=admin_headers).json()
    assert status["connected"] is True
    assert status["isRecent"] is True

    client.post(f"/api/users/{mailbox.id}/disconnect", headers=admin_headers)
    status = client.get(f"/api/users/{mailbox.id}/imap-status", headers=admin_headers).json()
    assert status["connected"] is False
    assert status["status"] == "disconnected"


def test_connect_and_disconnect_without_queue_log_warning(client, admin_headers, mailbox, redis_down, caplog):
    caplog.set_level("WARNING", logger="gws_backup.services")
    email = mailbox.email
    assert client.post(f"/api/users/{mailbox.id}/connect", headers=admin_headers).status_code == 200
    assert client.post(f"/api/users/{mailbox.id}/disconnect", headers=admin_headers).status_code == 200
    messages = [r.getMessage() for r in caplog.records if r.name == "gws_backup.services"]
    assert f"IMAP connect request for {email} not queued (Redis unavailable)" in messages
    assert f"IMAP disconnect request for {email} not queued (Redis unavailable)" in messages


def test_stale_connection_is_not_connected(client, viewer_headers, mailbox, db):
    db.add(ImapConnection(
        user_id=mailbox.id, connection_id="conn-stale", status="connected",
        last_activity=datetime.utcnow() - timedelta(days=2),
    ))
    db.commit()
    status = client.get(f"/api/users/{mailbox.id}/imap-status", headers=viewer_headers).json()
    assert status["connected"] is False
    assert status["isRecent"] is False


def test_connect_inactive_user_is_404(client, admin_headers, mailbox, db):
    mailbox.status = "inactive"
    db.commit()
    assert client.post(f"/api/users/{mailbox.id}/connect", headers=admin_headers).status_code == 404


def test_manual_user_backup(client, admin_headers, mailbox, fake_redis):
    resp = client.post(f"/api/users/{mailbox.id}/backup", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["email"] == "alice@example.com"
    assert fake_redis.llen(cache.BACKUP_QUEUE_KEY) == 1


def test_manual_user_backup_without_queue(client, admin_headers, mailbox, redis_down):
    resp = client.post(f"/api/users/{mailbox.id}/backup", headers=admin_headers)
    assert resp.status_code == 503


def test_user_stats(client, viewer_headers, mailbox, recent_emails):
    resp = client.get(f"/api/users/{mailbox.id}/stats", headers=viewer_headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["stats"]["total_emails"] == 2
    assert data["stats"]["recent_emails"] == 2
    assert sum(day["count"] for day in data["daily"]) == 2


def test_delete_user_cascades(client, admin_headers, mailbox, recent_emails, db):
    db.add(PstExport(id="exp-1", user_id=mailbox.id, status="completed", export_format="eml"))
    db.commit()
    resp = client.delete(f"/api/users/{mailbox.id}", headers=admin_headers)
    assert resp.status_code == 200
    assert db.query(MailUser).count() == 0
    assert db.query(Email).count() == 0
    assert db.query(PstExport).count() == 0


def test_viewer_cannot_delete_user(client, viewer_headers, mailbox):
    assert client.delete(f"/api/users/{mailbox.id}", headers=viewer_headers).status_code == 403
