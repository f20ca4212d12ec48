from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session
from gws_backup.database import get_db
from gws_backup.models import AdminUser
from gws_backup.auth import client_ip, require_admin, require_viewer
from gws_backup.services import NotFoundError
from gws_backup import mailfiles, services

router = APIRouter(prefix="/emails", tags=["emails"])


# ── Search & stats ────────────────────────────────────────────────────

@router.get("/search")
def search(
    q: str = Query(None),
    subject: str = Query(None),
    sender: str = Query(None, alias="from"),
    recipient: str = Query(None, alias="to"),
    user_id: int = Query(None),
    folder: str = Query(None),
    date_from: str = Query(None),
    date_to: str = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    sort: str = Query("date"),
    order: str = Query("desc"),
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        return services.search_emails(
            db, q, subject, sender, recipient, user_id, folder,
            date_from, date_to, page, limit, sort, order,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))

@router.get("/stats/overview")
def stats_overview(
    period: int = Query(30, ge=1, le=365),
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    return services.email_stats(db, period)


# ── Bulk ──────────────────────────────────────────────────────────────

@router.delete("/bulk")
def bulk_delete(
    request: Request,
    emailIds: list = Body(None, embed=True),
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        result = services.bulk_delete_emails(db, emailIds)
    except ValueError as e:
        raise HTTPException(400, str(e))
    services.log_audit(db, user.id, "bulk_delete_emails", "emails", None, client_ip(request),
                       details=f"deleted={len(result['deleted'])}")
    return {
        "message": f"Deleted {len(result['deleted'])} emails",
        **result,
    }


# ── Single message ────────────────────────────────────────────────────

@router.get("/{email_id}")
def get_email(
    email_id: int,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        return services.get_email_detail(db, email_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))

@router.get("/{email_id}/content")
def email_content(
    email_id: int,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        email = services.get_email(db, email_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    return Response(
        content=mailfiles.read_eml(email),
        media_type="message/rfc822",
        headers={"Content-Disposition": f'attachment; filename="email_{email.id}.eml"'},
    )

@router.get("/{email_id}/preview")
def email_preview(
    email_id: int,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        email = services.get_email(db, email_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    raw = mailfiles.read_eml(email)
    content_type, body = mailfiles.split_preview(raw.decode("utf-8", errors="replace"))
    return {"contentType": content_type, "body": body}

@router.get("/{email_id}/attachments")
def list_attachments(
    email_id: int,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        detail = services.get_email_detail(db, email_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    return {"attachments": detail["attachments"]}

@router.get("/{email_id}/attachments/{attachment_id}")
def get_attachment(
    email_id: int,
    attachment_id: int,
    download: bool = Query(True),
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        payload, content_type, filename = services.get_attachment(db, email_id, attachment_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    disposition = "attachment" if download else "inline"
    return Response(
        content=payload,
        media_type=content_type,
        headers={"Content-Disposition": f'{disposition}; filename="{filename}"'},
    )

@router.delete("/{email_id}")
def delete_email(
    email_id: int,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        services.delete_email(db, email_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    services.log_audit(db, user.id, "delete_email", "emails", email_id, client_ip(request))
    return {"message": "Email deleted successfully"}
