import logging
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session
from gws_backup.database import get_db
from gws_backup.models import AdminUser
from gws_backup.auth import client_ip, require_admin, require_viewer
from gws_backup.services import NotFoundError
from gws_backup import services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


class StatusChange(BaseModel):
    status: str = None


@router.get("")
def list_users(
    domain_id: int = Query(None),
    status: str = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    return services.list_users(db, domain_id, status, page, limit)

@router.get("/{user_id}")
def get_user(
    user_id: int,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        return services.get_user_detail(db, user_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))

@router.patch("/{user_id}/status")
def change_status(
    user_id: int,
    body: StatusChange,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        mailbox = services.set_user_status(db, user_id, body.status)
    except ValueError as e:
        raise HTTPException(400, str(e))
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    services.log_audit(db, user.id, "update_user_status", "users", user_id, client_ip(request),
                       details=body.status)
    return {"message": f"User status updated to {mailbox.status}", "userId": mailbox.id, "status": mailbox.status}

@router.post("/{user_id}/connect")
def connect(
    user_id: int,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        conn = services.connect_user(db, user_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    services.log_audit(db, user.id, "connect_imap", "users", user_id, client_ip(request))
    return {"message": "IMAP connection requested", "connectionId": conn.connection_id, "status": conn.status}

@router.post("/{user_id}/disconnect")
def disconnect(
    user_id: int,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        services.disconnect_user(db, user_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    services.log_audit(db, user.id, "disconnect_imap", "users", user_id, client_ip(request))
    return {"message": "IMAP connection closed"}

@router.post("/{user_id}/backup")
def backup_user(
    user_id: int,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        mailbox = services.request_user_backup(db, user_id, user.username)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except RuntimeError as e:
        raise HTTPException(503, str(e))
    services.log_audit(db, user.id, "manual_backup", "users", user_id, client_ip(request))
    return {"message": "Backup requested", "userId": mailbox.id, "email": mailbox.email}

@router.get("/{user_id}/imap-status")
def imap_status(
    user_id: int,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    return services.imap_status(db, user_id)

@router.get("/{user_id}/stats")
def user_stats(
    user_id: int,
    period: int = Query(30, ge=1, le=365),
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        return services.user_stats(db, user_id, period)
    except NotFoundError as e:
        raise HTTPException(404, str(e))

@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        mailbox = services.delete_user(db, user_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    services.log_audit(db, user.id, "delete_user", "users", user_id, client_ip(request),
                       details=mailbox.email)
    return {"message": f"User {mailbox.email} deleted successfully"}
