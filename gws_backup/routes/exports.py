from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session
from gws_backup.database import get_db
from gws_backup.models import AdminUser
from gws_backup.auth import client_ip, require_admin, require_viewer
from gws_backup.services import NotFoundError
from gws_backup import exports, services

router = APIRouter(prefix="/exports", tags=["exports"])


class ExportCreate(BaseModel):
    userId: int = None
    startDate: str = None
    endDate: str = None
    format: str = "eml"


@router.post("", status_code=201)
def create_export(
    body: ExportCreate,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        result = exports.create_export(db, body.userId, body.startDate, body.endDate, body.format)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    services.log_audit(db, user.id, "create_export", "pst_exports", result["id"], client_ip(request),
                       details=f"user={body.userId} format={result['format']}")
    return result

@router.get("")
def list_exports(
    userId: int = Query(None),
    status: str = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        return exports.list_exports(db, userId, status, page, limit)
    except ValueError as e:
        raise HTTPException(400, str(e))

@router.get("/stats/overview")
def stats_overview(
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    return exports.export_stats(db)

@router.get("/{export_id}")
def get_export(
    export_id: str,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        return {"export": exports.get_export_detail(db, export_id)}
    except NotFoundError as e:
        raise HTTPException(404, str(e))

@router.get("/{export_id}/download")
def download_export(
    export_id: str,
    request: Request,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        path, media_type, filename = exports.download_info(db, export_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    services.log_audit(db, user.id, "download_export", "pst_exports", export_id, client_ip(request))
    return FileResponse(path, media_type=media_type, filename=filename)

@router.delete("/{export_id}")
def delete_export(
    export_id: str,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        exports.delete_export(db, export_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    services.log_audit(db, user.id, "delete_export", "pst_exports", export_id, client_ip(request))
    return {"message": "Export deleted successfully"}

@router.post("/{export_id}/retry")
def retry_export(
    export_id: str,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        export = exports.retry_export(db, export_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ValueError as e:
        raise HTTPException(400, str(e))
    services.log_audit(db, user.id, "retry_export", "pst_exports", export_id, client_ip(request))
    return {
        "message": "Export queued for retry",
        "exportId": export.id,
        "status": export.status,
        "retryCount": export.retry_count,
    }
