"""Login, session and admin-account management endpoints."""

import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session
from gws_backup.database import get_db
from gws_backup.models import AdminUser, ADMIN_ROLES
from gws_backup.auth import (
    client_ip, create_token, get_current_user, hash_password, require_super_admin,
    validate_password, verify_password,
)
from gws_backup import cache, services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


# ── Schemas ───────────────────────────────────────────────────────────

class Credentials(BaseModel):
    username: str = None
    password: str = None

class PasswordChange(BaseModel):
    currentPassword: str = None
    newPassword: str = None

class AdminCreate(BaseModel):
    username: str = None
    password: str = None
    role: str = "admin"

class AdminPasswordReset(BaseModel):
    adminId: int = None
    newPassword: str = None

class AdminRoleUpdate(BaseModel):
    adminId: int = None
    newRole: str = None

class AdminDelete(BaseModel):
    adminId: int = None


def _admin_to_dict(a: AdminUser) -> dict:
    return {
        "id": a.id,
        "username": a.username,
        "role": a.role,
        "last_login": str(a.last_login) if a.last_login else None,
        "created_at": str(a.created_at) if a.created_at else None,
    }


def _get_target(db: Session, admin_id, current: AdminUser, own_message: str) -> AdminUser:
    if not admin_id:
        raise HTTPException(400, "Admin ID is required")
    if admin_id == current.id:
        raise HTTPException(400, own_message)
    target = db.query(AdminUser).filter(AdminUser.id == admin_id).first()
    if not target:
        raise HTTPException(404, "Admin user not found")
    return target


# ── Session ───────────────────────────────────────────────────────────

@router.post("/login")
def login(body: Credentials, request: Request, db: Session = Depends(get_db)):
    if not body.username or not body.password:
        raise HTTPException(400, "Username and password required")

    ip = client_ip(request)
    rate_key = f"login:{ip}"
    if cache.check_rate_limit(rate_key, max_attempts=5, window=300):
        raise HTTPException(429, "Too many login attempts, try again in 5 minutes")

    user = db.query(AdminUser).filter(AdminUser.username == body.username).first()
    if not user or not verify_password(body.password, user.password_hash):
        logger.info("Failed login for %s from %s", body.username, ip)
        raise HTTPException(401, "Invalid credentials")

    cache.clear_rate_limit(rate_key)
    user.last_login = datetime.utcnow()
    db.commit()
    services.log_audit(db, user.id, "login", ip_address=ip)

    token = create_token(user.id, user.username, user.role, user.token_version)
    return {
        "token": token,
        "user": {"id": user.id, "username": user.username, "role": user.role},
    }

@router.post("/logout")
def logout(
    request: Request,
    user: AdminUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    services.log_audit(db, user.id, "logout", ip_address=client_ip(request))
    return {"message": "Logged out successfully"}

@router.get("/me")
def me(user: AdminUser = Depends(get_current_user)):
    return {
        "user": {
            "id": user.id,
            "username": user.username,
            "role": user.role,
            "last_login": str(user.last_login) if user.last_login else None,
        }
    }

@router.post("/change-password")
def change_password(
    body: PasswordChange,
    request: Request,
    user: AdminUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if not body.currentPassword or not body.newPassword:
        raise HTTPException(400, "Current and new password required")
    validate_password(body.newPassword, "New password")
    if not verify_password(body.currentPassword, user.password_hash):
        raise HTTPException(401, "Current password is incorrect")

    user.password_hash = hash_password(body.newPassword)
    user.token_version += 1
    db.commit()
    services.log_audit(db, user.id, "change_password", ip_address=client_ip(request))
    return {"message": "Password changed successfully"}

@router.post("/setup")
def setup(body: Credentials, request: Request, db: Session = Depends(get_db)):
    """Create the first account. Refused once any admin exists."""
    if db.query(AdminUser).count() > 0:
        raise HTTPException(403, "Setup already completed")
    if not body.username or not body.password:
        raise HTTPException(400, "Username and password required")
    validate_password(body.password)

    admin = AdminUser(
        username=body.username,
        password_hash=hash_password(body.password),
        role="super_admin",
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Initial super admin %s created", admin.username)
    services.log_audit(db, admin.id, "initial_setup", "admin_users", admin.id, client_ip(request))
    return {
        "message": "Admin user created successfully",
        "user": {"id": admin.id, "username": admin.username, "role": admin.role},
    }


# ── Admin management (super_admin only) ──────────────────────────────

@router.get("/admin-list")
def admin_list(
    user: AdminUser = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    admins = (
        db.query(AdminUser)
        .order_by(AdminUser.created_at.desc(), AdminUser.id.desc())
        .all()
    )
    return {"admins": [_admin_to_dict(a) for a in admins]}

@router.post("/admin-create", status_code=201)
def admin_create(
    body: AdminCreate,
    request: Request,
    user: AdminUser = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if not body.username or not body.password:
        raise HTTPException(400, "Username and password required")
    role = body.role or "admin"
    if role not in ADMIN_ROLES:
        raise HTTPException(400, "Invalid role. Must be viewer, admin, or super_admin")
    validate_password(body.password)
    if db.query(AdminUser).filter(AdminUser.username == body.username).first():
        raise HTTPException(409, "Username already exists")

    admin = AdminUser(
        username=body.username,
        password_hash=hash_password(body.password),
        role=role,
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info("Admin %s (%s) created by %s", admin.username, role, user.username)
    services.log_audit(db, user.id, "create_admin", "admin_users", admin.id, client_ip(request))
    return {
        "message": "Admin user created successfully",
        "admin": {"id": admin.id, "username": admin.username, "role": admin.role},
    }

@router.post("/admin-reset-password")
def admin_reset_password(
    body: AdminPasswordReset,
    request: Request,
    user: AdminUser = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if not body.newPassword:
        raise HTTPException(400, "Admin ID and new password required")
    validate_password(body.newPassword)
    target = _get_target(
        db, body.adminId, user, "Use change-password to change your own password"
    )
    target.password_hash = hash_password(body.newPassword)
    target.token_version += 1
    db.commit()
    services.log_audit(db, user.id, "reset_admin_password", "admin_users", target.id, client_ip(request))
    return {"message": f"Password reset for {target.username}"}

@router.put("/admin-update-role")
def admin_update_role(
    body: AdminRoleUpdate,
    request: Request,
    user: AdminUser = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    if body.newRole not in ADMIN_ROLES:
        raise HTTPException(400, "Invalid role. Must be viewer, admin, or super_admin")
    target = _get_target(db, body.adminId, user, "Cannot change your own role")
    target.role = body.newRole
    target.token_version += 1
    db.commit()
    services.log_audit(db, user.id, "update_admin_role", "admin_users", target.id, client_ip(request),
                       details=body.newRole)
    return {
        "message": f"Role updated to {target.role}",
        "admin": {"id": target.id, "username": target.username, "role": target.role},
    }

@router.post("/admin-delete")
def admin_delete(
    body: AdminDelete,
    request: Request,
    user: AdminUser = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    target = _get_target(db, body.adminId, user, "Cannot delete your own account")
    if target.role == "super_admin":
        raise HTTPException(403, "Cannot delete a super_admin account")
    username = target.username
    db.delete(target)
    db.commit()
    logger.info("Admin %s deleted by %s", username, user.username)
    services.log_audit(db, user.id, "delete_admin", "admin_users", body.adminId, client_ip(request))
    return {"message": f"Admin {username} deleted"}

@router.get("/audit")
def audit_log(
    action: str = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    user: AdminUser = Depends(require_super_admin),
    db: Session = Depends(get_db),
):
    return services.get_audit_log(db, action, page, per_page)
