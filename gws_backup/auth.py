"""Authentication: JWT tokens, password hashing, role-gated dependencies."""

import jwt
import bcrypt
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session
from gws_backup.database import get_db
from gws_backup.config import settings

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
BCRYPT_ROUNDS = 12
MIN_PASSWORD_LENGTH = 8

ROLE_LEVELS = {
    "viewer": 1,
    "admin": 2,
    "super_admin": 3,
}


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # malformed hash in the row
        return False


def validate_password(password: str, field: str = "Password"):
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(400, f"{field} must be at least {MIN_PASSWORD_LENGTH} characters")


def create_token(user_id: int, username: str, role: str, token_version: int = 0) -> str:
    payload = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "ver": token_version,
        "exp": datetime.utcnow() + timedelta(hours=settings.JWT_EXPIRE_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(401, "Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(401, "Invalid token")


def _extract_token(request: Request) -> Optional[str]:
    """Extract JWT from Authorization header."""
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth[7:]
    return None


def client_ip(request: Request) -> str:
    return request.headers.get(
        "X-Real-IP", request.client.host if request.client else "unknown"
    )


async def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
):
    from gws_backup.models import AdminUser

    token = _extract_token(request)
    if not token:
        raise HTTPException(401, "Access token required")

    payload = decode_token(token)
    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise HTTPException(401, "Invalid token")
    user = db.query(AdminUser).filter(AdminUser.id == user_id).first()
    if not user:
        raise HTTPException(401, "User not found")
    if payload.get("ver", 0) != user.token_version:
        raise HTTPException(401, "Token revoked — please log in again")
    return user


def require_role(min_role: str) -> Callable:
    """Dependency factory: the caller's stored role must reach min_role."""
    min_level = ROLE_LEVELS[min_role]

    async def _role_dep(user=Depends(get_current_user)):
        if ROLE_LEVELS.get(user.role, 0) < min_level:
            if min_role == "super_admin":
                raise HTTPException(403, "Only super_admin can perform this action")
            raise HTTPException(403, f"Role '{min_role}' or higher required (your role: '{user.role}')")
        return user

    _role_dep.__name__ = f"require_{min_role}"
    return _role_dep


require_viewer = require_role("viewer")
require_admin = require_role("admin")
require_super_admin = require_role("super_admin")
