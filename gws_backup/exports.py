"""Export jobs: creation, listing, stats, retry. Generation happens in the worker."""

import logging
import math
import os
import uuid
from datetime import date, datetime, timedelta
from sqlalchemy.orm import Session
from sqlalchemy import func
from gws_backup.models import Email, MailUser, PstExport, EXPORT_FORMATS, EXPORT_STATUSES
from gws_backup.services import NotFoundError, page_info, get_user
from gws_backup.config import settings
from gws_backup import cache, mailfiles

logger = logging.getLogger(__name__)

EMAILS_PER_MINUTE = 50
STATS_WINDOW = timedelta(days=30)
MEDIA_TYPES = {
    "eml": "application/zip",
    "pst": "application/vnd.ms-outlook",
}


def _ts(value):
    return str(value) if value else None


def export_to_dict(e: PstExport, user_email: str = None) -> dict:
    return {
        "id": e.id,
        "user_id": e.user_id,
        "user_email": user_email,
        "filename": e.filename,
        "status": e.status,
        "progress": e.progress or 0,
        "start_date": _ts(e.start_date),
        "end_date": _ts(e.end_date),
        "format": e.export_format,
        "file_path": e.file_path,
        "retry_count": e.retry_count or 0,
        "created_at": _ts(e.created_at),
        "completed_at": _ts(e.completed_at),
    }


def parse_date(value, field: str):
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise ValueError(f"Invalid {field}: {value}")


def _range_filter(query, start: date, end: date):
    if start:
        query = query.filter(Email.date >= datetime.combine(start, datetime.min.time()))
    if end:
        # end date is inclusive
        query = query.filter(Email.date < datetime.combine(end + timedelta(days=1), datetime.min.time()))
    return query


def _job_payload(export: PstExport, user: MailUser) -> dict:
    return {
        "exportId": export.id,
        "userId": user.id,
        "userEmail": user.email,
        "startDate": _ts(export.start_date),
        "endDate": _ts(export.end_date),
        "format": export.export_format,
        "filename": export.filename,
        "retryCount": export.retry_count or 0,
        "exportDir": settings.EXPORT_DIR,
    }


def create_export(db: Session, user_id, start_date=None, end_date=None, export_format: str = "eml") -> dict:
    """Validate the request, record a pending export and queue it."""
    if not user_id:
        raise ValueError("User ID is required")
    export_format = (export_format or "eml").lower()
    if export_format not in EXPORT_FORMATS:
        raise ValueError("Invalid format. Must be eml or pst")
    start = parse_date(start_date, "startDate")
    end = parse_date(end_date, "endDate")
    if start and end and start > end:
        raise ValueError("Start date must be before end date")

    user = get_user(db, int(user_id))

    count = _range_filter(
        db.query(func.count(Email.id)).filter(Email.user_id == user.id), start, end
    ).scalar() or 0
    if count == 0:
        first, last = (
            db.query(func.min(Email.date), func.max(Email.date))
            .filter(Email.user_id == user.id)
            .one()
        )
        if first is None:
            raise ValueError(f"No emails found for {user.email}")
        raise ValueError(
            f"No emails found for {user.email} in the selected date range. "
            f"Available emails are from {first.date()} to {last.date()}"
        )

    now = datetime.utcnow()
    export = PstExport(
        id=str(uuid.uuid4()),
        user_id=user.id,
        filename=f"backup_{user.id}_{now.strftime('%Y%m%d%H%M%S')}.zip",
        status="pending",
        progress=0,
        start_date=start,
        end_date=end,
        export_format=export_format,
        retry_count=0,
        created_at=now,
    )
    db.add(export)
    db.commit()
    db.refresh(export)

    if not cache.enqueue_export(_job_payload(export, user)):
        logger.warning("Export %s recorded but not queued (Redis unavailable)", export.id)
    logger.info("Export %s created for %s: %d emails (%s)", export.id, user.email, count, export_format)

    return {
        "id": export.id,
        "exportId": export.id,
        "status": "pending",
        "message": "Export queued successfully",
        "estimatedEmails": count,
        "estimatedTimeMinutes": math.ceil(count / EMAILS_PER_MINUTE),
        "format": export_format,
    }


def list_exports(db: Session, user_id: int = None, status: str = None, page: int = 1, limit: int = 20) -> dict:
    query = (
        db.query(PstExport, MailUser.email)
        .outerjoin(MailUser, MailUser.id == PstExport.user_id)
    )
    count_query = db.query(func.count(PstExport.id))
    if user_id:
        query = query.filter(PstExport.user_id == user_id)
        count_query = count_query.filter(PstExport.user_id == user_id)
    if status:
        if status not in EXPORT_STATUSES:
            raise ValueError(f"Invalid status '{status}'")
        query = query.filter(PstExport.status == status)
        count_query = count_query.filter(PstExport.status == status)

    total = count_query.scalar() or 0
    rows = (
        query.order_by(PstExport.created_at.desc(), PstExport.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "exports": [export_to_dict(e, email) for e, email in rows],
        "pagination": page_info(page, limit, total),
    }


def get_export(db: Session, export_id: str) -> PstExport:
    export = db.query(PstExport).filter(PstExport.id == export_id).first()
    if not export:
        raise NotFoundError("Export not found")
    return export


def get_export_detail(db: Session, export_id: str) -> dict:
    export = get_export(db, export_id)
    email = db.query(MailUser.email).filter(MailUser.id == export.user_id).scalar()
    return export_to_dict(export, email)


def resolve_path(file_path: str) -> str:
    """Worker-relative paths live under EXPORT_DIR."""
    if os.path.isabs(file_path):
        return file_path
    return os.path.join(settings.EXPORT_DIR, file_path)


def download_info(db: Session, export_id: str) -> tuple[str, str, str]:
    """Path, media type and filename of a finished export."""
    export = get_export(db, export_id)
    if export.status != "completed":
        raise ValueError("Export not completed yet")
    if not export.file_path:
        raise NotFoundError("Export file not found")
    path = resolve_path(export.file_path)
    if not os.path.isfile(path):
        raise NotFoundError("Export file not found")
    media_type = MEDIA_TYPES.get(export.export_format, "application/octet-stream")
    return path, media_type, export.filename or os.path.basename(path)


def delete_export(db: Session, export_id: str) -> PstExport:
    export = get_export(db, export_id)
    if export.file_path:
        mailfiles.remove_file(resolve_path(export.file_path))
    db.delete(export)
    db.commit()
    logger.info("Export %s deleted", export_id)
    return export


def retry_export(db: Session, export_id: str) -> PstExport:
    """Reset a failed export and put the same id back on the queue."""
    export = get_export(db, export_id)
    if export.status != "failed":
        raise ValueError("Only failed exports can be retried")
    user = get_user(db, export.user_id)

    export.status = "pending"
    export.progress = 0
    export.file_path = None
    export.completed_at = None
    export.retry_count = (export.retry_count or 0) + 1
    db.commit()
    db.refresh(export)

    if not cache.enqueue_export(_job_payload(export, user)):
        logger.warning("Export %s reset but not queued (Redis unavailable)", export.id)
    logger.info("Export %s retried (attempt %d)", export.id, export.retry_count)
    return export


def export_stats(db: Session) -> dict:
    since = datetime.utcnow() - STATS_WINDOW
    rows = (
        db.query(PstExport.status, PstExport.created_at, PstExport.completed_at)
        .filter(PstExport.created_at >= since)
        .all()
    )
    counts = {status: 0 for status in EXPORT_STATUSES}
    durations = []
    for status, created, completed in rows:
        counts[status] = counts.get(status, 0) + 1
        if status == "completed" and created and completed:
            durations.append((completed - created).total_seconds() / 60)

    total = len(rows)
    finished = counts["completed"] + counts["failed"]
    recent_failures = (
        db.query(PstExport, MailUser.email)
        .outerjoin(MailUser, MailUser.id == PstExport.user_id)
        .filter(PstExport.status == "failed")
        .order_by(PstExport.created_at.desc(), PstExport.id.desc())
        .limit(5)
        .all()
    )
    return {
        "stats": {
            "total": total,
            "completed": counts["completed"],
            "failed": counts["failed"],
            "processing": counts["processing"],
            "pending": counts["pending"],
            "successRate": round(counts["completed"] * 100 / finished, 1) if finished else 0,
            "avgProcessingMinutes": round(sum(durations) / len(durations), 1) if durations else None,
        },
        "queue": cache.get_queue_status(),
        "recentFailures": [export_to_dict(e, email) for e, email in recent_failures],
    }
