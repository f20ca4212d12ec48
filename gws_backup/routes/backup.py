from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session
from gws_backup.database import get_db
from gws_backup.models import AdminUser
from gws_backup.auth import client_ip, require_admin, require_viewer
from gws_backup.services import NotFoundError
from gws_backup import cache, services

router = APIRouter(prefix="/backup", tags=["backup"])


class BackupConfigUpdate(BaseModel):
    backupInterval: int = None
    maxConcurrentUsers: int = None
    batchSize: int = None
    batchDelay: int = None


@router.get("/config")
def get_config(
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    return {"config": services.backup_config_to_dict(services.get_backup_config(db))}

@router.put("/config")
def update_config(
    body: BackupConfigUpdate,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        config = services.update_backup_config(
            db, body.backupInterval, body.maxConcurrentUsers, body.batchSize, body.batchDelay
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    data = services.backup_config_to_dict(config)
    services.log_audit(db, user.id, "update_backup_config", "backup_config", config.id,
                       client_ip(request), details=str(data))
    return {"message": "Backup configuration updated successfully", "config": data}

@router.get("/status")
def backup_status(user: AdminUser = Depends(require_viewer)):
    status = cache.get_backup_status()
    if status is None:
        return {"status": {"state": "idle", "message": "No backup running"}}
    return {"status": status}

@router.post("/manual")
def manual_backup(
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        services.request_full_backup(db, user.username)
    except RuntimeError as e:
        raise HTTPException(503, str(e))
    services.log_audit(db, user.id, "manual_backup", "backup", None, client_ip(request))
    return {"message": "Manual backup for all users requested"}

@router.post("/manual/{user_id}")
def manual_user_backup(
    user_id: int,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        result = services.request_full_backup(db, user.username, user_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except RuntimeError as e:
        raise HTTPException(503, str(e))
    services.log_audit(db, user.id, "manual_backup", "users", user_id, client_ip(request))
    return {"message": f"Manual backup for {result['email']} requested", **result}
