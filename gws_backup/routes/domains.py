from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session
from gws_backup.database import get_db
from gws_backup.models import AdminUser
from gws_backup.auth import client_ip, require_admin, require_viewer
from gws_backup.services import ConflictError, NotFoundError
from gws_backup import services

router = APIRouter(prefix="/domains", tags=["domains"])


class DomainBody(BaseModel):
    name: str = None

class DiscoverUsers(BaseModel):
    userEmails: list = None


@router.get("")
def list_domains(
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    return {"domains": services.list_domains(db)}

@router.get("/{domain_id}")
def get_domain(
    domain_id: int,
    user: AdminUser = Depends(require_viewer),
    db: Session = Depends(get_db),
):
    try:
        return services.get_domain_detail(db, domain_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))

@router.post("", status_code=201)
def create_domain(
    body: DomainBody,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        domain = services.create_domain(db, (body.name or "").strip())
    except ValueError as e:
        raise HTTPException(400, str(e))
    except ConflictError as e:
        raise HTTPException(409, str(e))
    services.log_audit(db, user.id, "create_domain", "domains", domain.id, client_ip(request))
    return {"message": "Domain created successfully", "domain": services.domain_to_dict(domain)}

@router.put("/{domain_id}")
def update_domain(
    domain_id: int,
    body: DomainBody,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        domain = services.update_domain(db, domain_id, (body.name or "").strip())
    except ValueError as e:
        raise HTTPException(400, str(e))
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ConflictError as e:
        raise HTTPException(409, str(e))
    services.log_audit(db, user.id, "update_domain", "domains", domain.id, client_ip(request))
    return {"message": "Domain updated successfully", "domain": services.domain_to_dict(domain)}

@router.delete("/{domain_id}")
def delete_domain(
    domain_id: int,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    try:
        domain = services.delete_domain(db, domain_id)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    except ConflictError as e:
        raise HTTPException(409, str(e))
    services.log_audit(db, user.id, "delete_domain", "domains", domain_id, client_ip(request),
                       details=domain.name)
    return {"message": "Domain deleted successfully"}

@router.post("/{domain_id}/discover-users")
def discover_users(
    domain_id: int,
    body: DiscoverUsers,
    request: Request,
    user: AdminUser = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if not isinstance(body.userEmails, list):
        raise HTTPException(400, "userEmails array required")
    try:
        result = services.discover_users(db, domain_id, body.userEmails)
    except NotFoundError as e:
        raise HTTPException(404, str(e))
    services.log_audit(db, user.id, "discover_users", "domains", domain_id, client_ip(request),
                       details=f"added={len(result['added'])}")
    return {
        "message": f"Added {len(result['added'])} users, skipped {len(result['skipped'])}",
        **result,
    }
