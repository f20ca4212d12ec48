"""Core services: audit logging, domains, mailboxes, archived mail, backup config."""

import logging
import re
import uuid
from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import func, or_, select
from gws_backup.models import (
    AdminUser, Attachment, AuditLog, BackupConfig, Domain, Email,
    ImapConnection, MailUser, PstExport, USER_STATUSES,
)
from gws_backup.config import settings
from gws_backup import cache, mailfiles

logger = logging.getLogger(__name__)

DOMAIN_RE = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?(\.[a-zA-Z0-9]([a-zA-Z0-9\-]{0,61}[a-zA-Z0-9])?)*$"
)
CONNECTION_FRESHNESS = timedelta(hours=24)
MAX_BULK_DELETE = 100


class NotFoundError(LookupError):
    pass


class ConflictError(Exception):
    pass


def _ts(value):
    return str(value) if value else None


def page_info(page: int, limit: int, total: int) -> dict:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": (total + limit - 1) // limit if limit else 0,
    }


# ── Audit ─────────────────────────────────────────────────────────────

def log_audit(
    db: Session,
    admin_user_id: int,
    action: str,
    resource: str = None,
    resource_id=None,
    ip_address: str = None,
    details: str = None,
):
    """Record an admin action. Never raises."""
    try:
        db.add(AuditLog(
            admin_user_id=admin_user_id,
            action=action,
            resource=resource,
            resource_id=str(resource_id) if resource_id is not None else None,
            details=details,
            ip_address=ip_address,
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error("Failed to log audit action %s: %s", action, e)


def get_audit_log(db: Session, action: str = None, page: int = 1, per_page: int = 50) -> dict:
    query = (
        db.query(AuditLog, AdminUser.username)
        .outerjoin(AdminUser, AdminUser.id == AuditLog.admin_user_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    )
    if action:
        query = query.filter(AuditLog.action == action)
    total = query.count()
    rows = query.offset((page - 1) * per_page).limit(per_page).all()
    return {
        "logs": [
            {
                "id": log.id,
                "admin_user_id": log.admin_user_id,
                "admin_username": username,
                "action": log.action,
                "resource": log.resource,
                "resource_id": log.resource_id,
                "details": log.details,
                "ip_address": log.ip_address,
                "created_at": _ts(log.created_at),
            }
            for log, username in rows
        ],
        "pagination": page_info(page, per_page, total),
    }


# ── Domains ───────────────────────────────────────────────────────────

def domain_to_dict(d: Domain) -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "created_at": _ts(d.created_at),
        "updated_at": _ts(d.updated_at),
    }


def list_domains(db: Session) -> list[dict]:
    rows = (
        db.query(Domain, func.count(MailUser.id))
        .outerjoin(MailUser, MailUser.domain_id == Domain.id)
        .group_by(Domain.id)
        .order_by(Domain.created_at.desc(), Domain.id.desc())
        .all()
    )
    return [dict(domain_to_dict(d), user_count=count) for d, count in rows]


def get_domain_detail(db: Session, domain_id: int) -> dict:
    domain = db.query(Domain).filter(Domain.id == domain_id).first()
    if not domain:
        raise NotFoundError("Domain not found")
    users = (
        db.query(MailUser)
        .filter(MailUser.domain_id == domain_id)
        .order_by(MailUser.email)
        .all()
    )
    total_emails, total_size = (
        db.query(func.count(Email.id), func.sum(Email.size))
        .join(MailUser, MailUser.id == Email.user_id)
        .filter(MailUser.domain_id == domain_id)
        .one()
    )
    return {
        "domain": domain_to_dict(domain),
        "users": [
            {
                "id": u.id,
                "email": u.email,
                "status": u.status,
                "last_uid": u.last_uid,
                "created_at": _ts(u.created_at),
            }
            for u in users
        ],
        "stats": {"total_emails": total_emails or 0, "total_size": int(total_size or 0)},
    }


def _validate_domain_name(name: str):
    if not name:
        raise ValueError("Domain name required")
    if not DOMAIN_RE.match(name):
        raise ValueError("Invalid domain name format")


def create_domain(db: Session, name: str) -> Domain:
    _validate_domain_name(name)
    if db.query(Domain).filter(Domain.name == name).first():
        raise ConflictError("Domain already exists")
    domain = Domain(name=name)
    db.add(domain)
    db.commit()
    db.refresh(domain)
    return domain


def update_domain(db: Session, domain_id: int, name: str) -> Domain:
    if not name:
        raise ValueError("Domain name required")
    domain = db.query(Domain).filter(Domain.id == domain_id).first()
    if not domain:
        raise NotFoundError("Domain not found")
    _validate_domain_name(name)
    clash = db.query(Domain).filter(Domain.name == name, Domain.id != domain_id).first()
    if clash:
        raise ConflictError("Domain name already exists")
    domain.name = name
    domain.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(domain)
    return domain


def delete_domain(db: Session, domain_id: int) -> Domain:
    domain = db.query(Domain).filter(Domain.id == domain_id).first()
    if not domain:
        raise NotFoundError("Domain not found")
    users = db.query(func.count(MailUser.id)).filter(MailUser.domain_id == domain_id).scalar()
    if users:
        raise ConflictError("Cannot delete domain with existing users")
    db.delete(domain)
    db.commit()
    return domain


def discover_users(db: Session, domain_id: int, emails: list) -> dict:
    """Register mailboxes for a domain, skipping mismatches and duplicates."""
    domain = db.query(Domain).filter(Domain.id == domain_id).first()
    if not domain:
        raise NotFoundError("Domain not found")

    added, skipped = [], []
    suffix = f"@{domain.name}".lower()
    for email in emails:
        if not isinstance(email, str) or "@" not in email or not email.lower().endswith(suffix):
            skipped.append({"email": email, "reason": "Invalid email or domain mismatch"})
            continue
        if db.query(MailUser).filter(MailUser.email == email).first():
            skipped.append({"email": email, "reason": "User already exists"})
            continue
        user = MailUser(domain_id=domain.id, email=email, status="active")
        db.add(user)
        db.flush()
        added.append({"id": user.id, "email": email})
    db.commit()
    return {"added": added, "skipped": skipped}


# ── Mailboxes ─────────────────────────────────────────────────────────

def connection_summary(conn: ImapConnection, now: datetime = None) -> dict:
    now = now or datetime.utcnow()
    last_activity = conn.last_activity or conn.created_at or now
    since = now - last_activity
    is_recent = since < CONNECTION_FRESHNESS
    connected = conn.status == "connected" and is_recent
    return {
        "id": conn.id,
        "connection_id": conn.connection_id,
        "status": conn.status,
        "last_activity": _ts(conn.last_activity),
        "isRecent": is_recent,
        "timeSinceActivity": int(since.total_seconds()),
        "connected": connected,
        "message": "IMAP connection is active" if connected else f"IMAP connection is {conn.status}",
    }


def latest_connection(db: Session, user_id: int):
    return (
        db.query(ImapConnection)
        .filter(ImapConnection.user_id == user_id)
        .order_by(ImapConnection.last_activity.desc(), ImapConnection.id.desc())
        .first()
    )


def _user_query(db: Session):
    return (
        db.query(
            MailUser,
            Domain.name,
            func.count(Email.id),
            func.sum(Email.size),
            func.max(Email.date),
        )
        .outerjoin(Domain, Domain.id == MailUser.domain_id)
        .outerjoin(Email, Email.user_id == MailUser.id)
        .group_by(MailUser.id, Domain.name)
    )


def _user_row_to_dict(row) -> dict:
    user, domain_name, email_count, total_size, last_email = row
    return {
        "id": user.id,
        "domain_id": user.domain_id,
        "domain_name": domain_name,
        "email": user.email,
        "status": user.status,
        "last_uid": user.last_uid,
        "email_count": email_count or 0,
        "total_size": int(total_size or 0),
        "last_email_date": _ts(last_email),
        "created_at": _ts(user.created_at),
        "updated_at": _ts(user.updated_at),
    }


def list_users(
    db: Session, domain_id: int = None, status: str = None, page: int = 1, limit: int = 50
) -> dict:
    query = _user_query(db)
    count_query = db.query(func.count(MailUser.id))
    if domain_id:
        query = query.filter(MailUser.domain_id == domain_id)
        count_query = count_query.filter(MailUser.domain_id == domain_id)
    if status:
        query = query.filter(MailUser.status == status)
        count_query = count_query.filter(MailUser.status == status)

    total = count_query.scalar() or 0
    rows = query.order_by(MailUser.email).offset((page - 1) * limit).limit(limit).all()

    users = []
    now = datetime.utcnow()
    for row in rows:
        data = _user_row_to_dict(row)
        conn = latest_connection(db, data["id"])
        data["connection"] = connection_summary(conn, now) if conn else None
        users.append(data)
    return {"users": users, "pagination": page_info(page, limit, total)}


def get_user_detail(db: Session, user_id: int) -> dict:
    row = _user_query(db).filter(MailUser.id == user_id).first()
    if not row:
        raise NotFoundError("User not found")
    conn = latest_connection(db, user_id)
    return {
        "user": _user_row_to_dict(row),
        "connection": connection_summary(conn) if conn else None,
    }


def get_user(db: Session, user_id: int, active_only: bool = False) -> MailUser:
    query = db.query(MailUser).filter(MailUser.id == user_id)
    if active_only:
        query = query.filter(MailUser.status == "active")
    user = query.first()
    if not user:
        raise NotFoundError("User not found or inactive" if active_only else "User not found")
    return user


def set_user_status(db: Session, user_id: int, status: str) -> MailUser:
    if status not in USER_STATUSES:
        raise ValueError("Invalid status. Must be active or inactive")
    user = get_user(db, user_id)
    user.status = status
    user.updated_at = datetime.utcnow()
    db.commit()
    _request_imap(user, "connect" if status == "active" else "disconnect")
    return user


def _request_imap(user: MailUser, action: str):
    if not cache.enqueue_imap({"userId": user.id, "email": user.email, "action": action}):
        logger.warning("IMAP %s request for %s not queued (Redis unavailable)", action, user.email)


def connect_user(db: Session, user_id: int) -> ImapConnection:
    """Record a connected session. The IMAP engine picks it up from the queue."""
    user = get_user(db, user_id, active_only=True)
    now = datetime.utcnow()
    conn = latest_connection(db, user.id)
    connection_id = f"conn-{user.id}-{uuid.uuid4().hex[:12]}"
    if conn:
        conn.connection_id = connection_id
        conn.status = "connected"
        conn.last_activity = now
    else:
        conn = ImapConnection(
            user_id=user.id,
            connection_id=connection_id,
            status="connected",
            last_activity=now,
            created_at=now,
        )
        db.add(conn)
    db.commit()
    _request_imap(user, "connect")
    return conn


def disconnect_user(db: Session, user_id: int) -> MailUser:
    user = get_user(db, user_id)
    db.query(ImapConnection).filter(ImapConnection.user_id == user.id).update(
        {"status": "disconnected", "last_activity": datetime.utcnow()},
        synchronize_session=False,
    )
    db.commit()
    _request_imap(user, "disconnect")
    return user


def imap_status(db: Session, user_id: int) -> dict:
    conn = latest_connection(db, user_id)
    if not conn:
        return {
            "connected": False,
            "status": "never_connected",
            "lastActivity": None,
            "connectionId": None,
            "message": "User has never connected to IMAP",
        }
    summary = connection_summary(conn)
    return {
        "connected": summary["connected"],
        "status": conn.status,
        "lastActivity": summary["last_activity"],
        "connectionId": conn.connection_id,
        "timeSinceActivity": summary["timeSinceActivity"],
        "isRecent": summary["isRecent"],
        "message": summary["message"],
    }


def request_user_backup(db: Session, user_id: int, requested_by: str) -> MailUser:
    user = get_user(db, user_id, active_only=True)
    queued = cache.enqueue_backup({
        "userId": user.id,
        "email": user.email,
        "requestedBy": requested_by,
        "requestedAt": datetime.utcnow().isoformat(),
    })
    if not queued:
        raise RuntimeError("Backup queue unavailable")
    return user


def user_stats(db: Session, user_id: int, period_days: int = 30) -> dict:
    get_user(db, user_id)
    since = datetime.utcnow() - timedelta(days=period_days)
    total, size, first, last = (
        db.query(func.count(Email.id), func.sum(Email.size), func.min(Email.date), func.max(Email.date))
        .filter(Email.user_id == user_id)
        .one()
    )
    recent = (
        db.query(func.count(Email.id))
        .filter(Email.user_id == user_id, Email.date >= since)
        .scalar()
    )
    day = func.date(Email.date)
    daily = (
        db.query(day, func.count(Email.id), func.sum(Email.size))
        .filter(Email.user_id == user_id, Email.date >= since)
        .group_by(day)
        .order_by(day.desc())
        .limit(30)
        .all()
    )
    return {
        "stats": {
            "total_emails": total or 0,
            "total_size": int(size or 0),
            "recent_emails": recent or 0,
            "first_email_date": _ts(first),
            "last_email_date": _ts(last),
        },
        "daily": [
            {"date": str(d), "count": c, "size": int(s or 0)} for d, c, s in daily
        ],
    }


def delete_user(db: Session, user_id: int) -> MailUser:
    """Delete a mailbox with its mail, attachments, connections and exports."""
    user = get_user(db, user_id)
    email_ids = select(Email.id).where(Email.user_id == user.id)
    attachments = db.query(Attachment).filter(Attachment.email_id.in_(email_ids)).count()
    emails = db.query(Email).filter(Email.user_id == user.id).count()
    logger.info("Deleting user %s: %d emails, %d attachments", user.email, emails, attachments)

    db.query(Attachment).filter(Attachment.email_id.in_(email_ids)).delete(synchronize_session=False)
    db.query(Email).filter(Email.user_id == user.id).delete(synchronize_session=False)
    db.query(ImapConnection).filter(ImapConnection.user_id == user.id).delete(synchronize_session=False)
    db.query(PstExport).filter(PstExport.user_id == user.id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    return user


# ── Archived mail ─────────────────────────────────────────────────────

EMAIL_SORT_FIELDS = {"date", "subject", "from_email", "size"}


def email_to_dict(e: Email) -> dict:
    return {
        "id": e.id,
        "user_id": e.user_id,
        "message_id": e.message_id,
        "subject": e.subject,
        "from_email": e.from_email,
        "to_email": e.to_email,
        "date": _ts(e.date),
        "eml_path": e.eml_path,
        "size": e.size,
        "folder": e.folder,
        "indexed_at": _ts(e.indexed_at),
    }


def attachment_to_dict(a: Attachment) -> dict:
    return {
        "id": a.id,
        "email_id": a.email_id,
        "filename": a.filename,
        "mime_type": a.mime_type,
        "size": a.size,
    }


def _parse_datetime(value: str, field: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid {field}: {value}")


def search_emails(
    db: Session,
    q: str = None,
    subject: str = None,
    sender: str = None,
    recipient: str = None,
    user_id: int = None,
    folder: str = None,
    date_from: str = None,
    date_to: str = None,
    page: int = 1,
    limit: int = 50,
    sort: str = "date",
    order: str = "desc",
) -> dict:
    conditions = []
    if q:
        like = f"%{q}%"
        conditions.append(or_(
            Email.subject.ilike(like), Email.from_email.ilike(like), Email.to_email.ilike(like)
        ))
    if subject:
        conditions.append(Email.subject.ilike(f"%{subject}%"))
    if sender:
        conditions.append(Email.from_email.ilike(f"%{sender}%"))
    if recipient:
        conditions.append(Email.to_email.ilike(f"%{recipient}%"))
    if user_id:
        conditions.append(Email.user_id == user_id)
    if folder:
        conditions.append(Email.folder == folder)
    if date_from:
        conditions.append(Email.date >= _parse_datetime(date_from, "date_from"))
    if date_to:
        conditions.append(Email.date <= _parse_datetime(date_to, "date_to"))

    total = db.query(func.count(Email.id)).filter(*conditions).scalar() or 0

    sort_col = getattr(Email, sort if sort in EMAIL_SORT_FIELDS else "date")
    sort_col = sort_col.asc() if (order or "").lower() == "asc" else sort_col.desc()
    rows = (
        db.query(Email, MailUser.email, Domain.name, func.count(Attachment.id))
        .outerjoin(MailUser, MailUser.id == Email.user_id)
        .outerjoin(Domain, Domain.id == MailUser.domain_id)
        .outerjoin(Attachment, Attachment.email_id == Email.id)
        .filter(*conditions)
        .group_by(Email.id, MailUser.email, Domain.name)
        .order_by(sort_col, Email.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    emails = [
        dict(email_to_dict(e), user_email=user_email, domain_name=domain_name,
             attachment_count=count)
        for e, user_email, domain_name, count in rows
    ]
    return {"emails": emails, "pagination": page_info(page, limit, total)}


def get_email(db: Session, email_id: int) -> Email:
    email = db.query(Email).filter(Email.id == email_id).first()
    if not email:
        raise NotFoundError("Email not found")
    return email


def get_email_detail(db: Session, email_id: int) -> dict:
    row = (
        db.query(Email, MailUser.email, Domain.name)
        .outerjoin(MailUser, MailUser.id == Email.user_id)
        .outerjoin(Domain, Domain.id == MailUser.domain_id)
        .filter(Email.id == email_id)
        .first()
    )
    if not row:
        raise NotFoundError("Email not found")
    email, user_email, domain_name = row
    bodies = mailfiles.extract_bodies(mailfiles.read_eml(email))
    attachments = db.query(Attachment).filter(Attachment.email_id == email_id).order_by(Attachment.id).all()
    data = dict(email_to_dict(email), user_email=user_email, domain_name=domain_name, **bodies)
    return {"email": data, "attachments": [attachment_to_dict(a) for a in attachments]}


def get_attachment(db: Session, email_id: int, attachment_id: int) -> tuple[bytes, str, str]:
    """Attachment bytes from disk, or extracted from the stored EML."""
    attachment = (
        db.query(Attachment)
        .filter(Attachment.id == attachment_id, Attachment.email_id == email_id)
        .first()
    )
    if not attachment:
        raise NotFoundError("Attachment not found")
    content_type = attachment.mime_type or "application/octet-stream"
    if attachment.file_path:
        try:
            with open(attachment.file_path, "rb") as fh:
                return fh.read(), content_type, attachment.filename
        except OSError as e:
            logger.warning("Attachment file %s unreadable, extracting from EML: %s",
                           attachment.file_path, e)
    email = get_email(db, email_id)
    found = mailfiles.find_attachment(mailfiles.read_eml(email), attachment.filename)
    if not found:
        raise NotFoundError("Attachment content not found")
    payload, part_type = found
    return payload, attachment.mime_type or part_type, attachment.filename


def email_stats(db: Session, period_days: int = 30) -> dict:
    since = datetime.utcnow() - timedelta(days=period_days)
    total, size, active_users, avg_size, latest, oldest = (
        db.query(
            func.count(Email.id),
            func.coalesce(func.sum(Email.size), 0),
            func.count(func.distinct(Email.user_id)),
            func.coalesce(func.avg(Email.size), 0),
            func.max(Email.date),
            func.min(Email.date),
        )
        .filter(Email.date >= since)
        .one()
    )
    users = (
        db.query(MailUser.email, func.count(Email.id), func.coalesce(func.sum(Email.size), 0),
                 func.max(Email.date))
        .join(Email, Email.user_id == MailUser.id)
        .filter(Email.date >= since)
        .group_by(MailUser.id, MailUser.email)
        .order_by(func.count(Email.id).desc())
        .limit(10)
        .all()
    )
    domains = (
        db.query(Domain.name, func.count(Email.id), func.coalesce(func.sum(Email.size), 0))
        .join(MailUser, MailUser.domain_id == Domain.id)
        .join(Email, Email.user_id == MailUser.id)
        .filter(Email.date >= since)
        .group_by(Domain.id, Domain.name)
        .order_by(func.count(Email.id).desc())
        .all()
    )
    day = func.date(Email.date)
    daily = (
        db.query(day, func.count(Email.id), func.coalesce(func.sum(Email.size), 0))
        .filter(Email.date >= datetime.utcnow() - timedelta(days=7))
        .group_by(day)
        .order_by(day.desc())
        .all()
    )
    return {
        "overview": {
            "total_emails": total or 0,
            "total_size": int(size or 0),
            "active_users": active_users or 0,
            "avg_size": float(avg_size or 0),
            "latest_email": _ts(latest),
            "oldest_email": _ts(oldest),
        },
        "users": [
            {"user_email": e, "email_count": c, "total_size": int(s), "latest_email": _ts(l)}
            for e, c, s, l in users
        ],
        "domains": [
            {"domain": n, "email_count": c, "total_size": int(s)} for n, c, s in domains
        ],
        "daily": [
            {"date": str(d), "email_count": c, "total_size": int(s)} for d, c, s in daily
        ],
        "period": period_days,
    }


def delete_email(db: Session, email_id: int) -> Email:
    email = get_email(db, email_id)
    mailfiles.remove_file(email.eml_path)
    db.query(Attachment).filter(Attachment.email_id == email.id).delete(synchronize_session=False)
    db.delete(email)
    db.commit()
    return email


def bulk_delete_emails(db: Session, email_ids: list) -> dict:
    if not isinstance(email_ids, list) or not email_ids:
        raise ValueError("emailIds must be a non-empty array")
    if len(email_ids) > MAX_BULK_DELETE:
        raise ValueError(f"Cannot delete more than {MAX_BULK_DELETE} emails at once")

    deleted, failed = [], []
    for email_id in email_ids:
        try:
            delete_email(db, int(email_id))
            deleted.append(email_id)
        except NotFoundError:
            failed.append({"id": email_id, "reason": "Email not found"})
        except (TypeError, ValueError):
            failed.append({"id": email_id, "reason": "Invalid email id"})
    return {"deleted": deleted, "failed": failed}


# ── Backup configuration ──────────────────────────────────────────────

BACKUP_INTERVALS = (5, 15, 30, 60)
CONCURRENT_USERS_RANGE = (1, 10)
BATCH_SIZE_RANGE = (1, 100)
BATCH_DELAY_RANGE = (500, 10000)


def get_backup_config(db: Session) -> BackupConfig:
    config = db.query(BackupConfig).filter(BackupConfig.id == 1).first()
    if config is None:
        config = BackupConfig(
            id=1,
            backup_interval=settings.BACKUP_INTERVAL,
            max_concurrent_users=settings.MAX_CONCURRENT_USERS,
            batch_size=settings.BATCH_SIZE,
            batch_delay=settings.BATCH_DELAY,
            use_real_gmail=settings.USE_REAL_GMAIL,
        )
        db.add(config)
        db.commit()
        db.refresh(config)
    return config


def backup_config_to_dict(c: BackupConfig) -> dict:
    return {
        "backupInterval": c.backup_interval,
        "maxConcurrentUsers": c.max_concurrent_users,
        "batchSize": c.batch_size,
        "batchDelay": c.batch_delay,
        "useRealGmail": bool(c.use_real_gmail),
    }


def _check_range(value: int, bounds: tuple, message: str):
    low, high = bounds
    if value < low or value > high:
        raise ValueError(message)


def update_backup_config(
    db: Session,
    backup_interval: int = None,
    max_concurrent_users: int = None,
    batch_size: int = None,
    batch_delay: int = None,
) -> BackupConfig:
    if backup_interval is not None and backup_interval not in BACKUP_INTERVALS:
        raise ValueError("Invalid backup interval. Must be 5, 15, 30, or 60 minutes")
    if max_concurrent_users is not None:
        _check_range(max_concurrent_users, CONCURRENT_USERS_RANGE,
                     "Max concurrent users must be between 1 and 10")
    if batch_size is not None:
        _check_range(batch_size, BATCH_SIZE_RANGE, "Batch size must be between 1 and 100")
    if batch_delay is not None:
        _check_range(batch_delay, BATCH_DELAY_RANGE,
                     "Batch delay must be between 500ms and 10000ms")

    config = get_backup_config(db)
    if backup_interval is not None:
        config.backup_interval = backup_interval
    if max_concurrent_users is not None:
        config.max_concurrent_users = max_concurrent_users
    if batch_size is not None:
        config.batch_size = batch_size
    if batch_delay is not None:
        config.batch_delay = batch_delay
    config.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(config)
    return config


def request_full_backup(db: Session, requested_by: str, user_id: int = None) -> dict:
    if user_id is not None:
        user = request_user_backup(db, user_id, requested_by)
        return {"userId": user.id, "email": user.email}
    queued = cache.enqueue_backup({
        "userId": None,
        "requestedBy": requested_by,
        "requestedAt": datetime.utcnow().isoformat(),
    })
    if not queued:
        raise RuntimeError("Backup queue unavailable")
    return {"userId": None}
